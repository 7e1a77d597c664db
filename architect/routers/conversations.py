"""
Interview endpoints. Turns are streamed as server-sent events.
"""

import json
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from architect.dependencies import (
    get_completion_client,
    get_conversation_machine,
    get_current_user_id,
    get_session_factory,
)
from architect.exceptions import InvalidInputError
from architect.logging_config import get_logger
from architect.schemas.schemas import ConversationResponse, ErrorResponse, InterrogateRequest
from architect.services.completion import CompletionClient
from architect.services.conversation import ConversationStateMachine, TurnEvent

logger = get_logger(__name__)

router = APIRouter(prefix="/api/ai", tags=["interview"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: TurnEvent) -> str:
    return f"event: {event.event}\ndata: {json.dumps(event.data)}\n\n"


@router.post(
    "/interrogate-stream",
    responses={
        400: {"model": ErrorResponse},
        402: {"model": ErrorResponse, "description": "Insufficient credits"},
        404: {"model": ErrorResponse},
    },
)
async def interrogate_stream(
    data: InterrogateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    machine: ConversationStateMachine = Depends(get_conversation_machine),
    completion: CompletionClient = Depends(get_completion_client),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Start an interview or answer its current question, then stream the next one.

    Rejections (bad input, unknown conversation, insufficient credits) are
    plain JSON errors returned before the stream opens.
    """
    if data.conversation_id is not None:
        conversation = await machine.continue_conversation(user_id, data.conversation_id, data.user_message)
    elif data.project_id is not None and data.initial_description:
        conversation = await machine.start_conversation(user_id, data.project_id, data.initial_description)
    else:
        raise InvalidInputError("projectId and initialDescription are required")

    conversation_id = conversation.conversation_id

    async def events():
        async with session_factory() as stream_db:
            streamer = ConversationStateMachine(stream_db, completion)
            async for event in streamer.stream_turn(conversation_id):
                yield format_sse(event)

    return StreamingResponse(events(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get(
    "/conversation/{project_id}",
    response_model=ConversationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_latest_conversation(
    project_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    machine: ConversationStateMachine = Depends(get_conversation_machine),
):
    """Most recent interview of a project, with its full transcript."""
    conversation = await machine.latest_for_project(user_id, project_id)
    return ConversationResponse.model_validate(conversation)
