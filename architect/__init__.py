"""
Architect - requirements interview, blueprint suites and implementation prompts
over a metered credit ledger.
"""

__version__ = "1.0.0"
