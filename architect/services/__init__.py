"""
Business logic services for Architect.
"""

from architect.services.completion import CompletionClient
from architect.services.conversation import ConversationStateMachine, TurnEvent
from architect.services.coordinator import BatchHandler, BatchResult, GenerationCoordinator
from architect.services.credit_ledger import CreditLedger
from architect.services.projects import ProjectService
from architect.services.prompt_progress import PromptProgress
from architect.services.sequence_workflow import SequenceWorkflow
from architect.services.status import derive_batch_status
from architect.services.suite_workflow import SuiteStatusReport, SuiteWorkflow

__all__ = [
    "CompletionClient",
    "ConversationStateMachine",
    "TurnEvent",
    "BatchHandler",
    "BatchResult",
    "GenerationCoordinator",
    "CreditLedger",
    "ProjectService",
    "PromptProgress",
    "SequenceWorkflow",
    "derive_batch_status",
    "SuiteStatusReport",
    "SuiteWorkflow",
]
