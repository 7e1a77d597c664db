"""
FastAPI dependencies shared by the routers.
"""

import uuid

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from architect.database import async_session_maker, get_db
from architect.exceptions import InvalidInputError
from architect.services.completion import CompletionClient
from architect.services.conversation import ConversationStateMachine
from architect.services.sequence_workflow import SequenceWorkflow
from architect.services.suite_workflow import SuiteWorkflow


async def get_current_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> uuid.UUID:
    """
    Caller identity, as forwarded by the authenticating gateway.

    Ownership is checked per resource by the services.
    """
    try:
        return uuid.UUID(x_user_id)
    except ValueError as e:
        raise InvalidInputError("X-User-Id must be a UUID") from e


def get_completion_client(request: Request) -> CompletionClient:
    """The process-wide client built in the app lifespan."""
    return request.app.state.completion_client


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request session (SSE streams)."""
    return async_session_maker


def get_conversation_machine(
    db: AsyncSession = Depends(get_db),
    completion: CompletionClient = Depends(get_completion_client),
) -> ConversationStateMachine:
    return ConversationStateMachine(db, completion)


def get_suite_workflow(
    db: AsyncSession = Depends(get_db),
    completion: CompletionClient = Depends(get_completion_client),
) -> SuiteWorkflow:
    return SuiteWorkflow(db, completion)


def get_sequence_workflow(
    db: AsyncSession = Depends(get_db),
    completion: CompletionClient = Depends(get_completion_client),
) -> SequenceWorkflow:
    return SequenceWorkflow(db, completion)
