"""
API endpoints for Architect.
"""

from architect.routers.accounts import router as accounts_router
from architect.routers.conversations import router as conversations_router
from architect.routers.projects import router as projects_router
from architect.routers.sequences import router as sequences_router
from architect.routers.suites import router as suites_router

__all__ = [
    "accounts_router",
    "conversations_router",
    "projects_router",
    "sequences_router",
    "suites_router",
]
