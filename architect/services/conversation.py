"""
Conversation State Machine - the requirements interview.

NEW -> ACTIVE -> COMPLETE. A turn runs in two steps:

1. Admission (start_conversation / continue_conversation): validate, charge
   the message cost, append the user's answer and commit. Errors here are
   clean rejections raised before any stream is opened.
2. stream_turn: stream the analyst's reply fragment by fragment, then parse
   the buffered text and persist the assistant turn.

The answer is committed before the completion call, so it survives an
upstream failure or a client that goes away mid-stream.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from architect.config import settings
from architect.database import commit_or_raise
from architect.exceptions import ArchitectError, ConversationNotFoundError, InvalidInputError
from architect.logging_config import get_logger
from architect.models import Conversation, ConversationStatus, Project, TurnRole
from architect.services.completion import CompletionClient
from architect.services.credit_ledger import CreditLedger
from architect.services.projects import ProjectService
from architect.services.prompts.interrogation import (
    INTERROGATION_SYSTEM_PROMPT,
    InterviewReply,
    build_interrogation_user_prompt,
    parse_interview_reply,
)

logger = get_logger(__name__)

STREAM_ERROR_MESSAGE = "AI service temporarily unavailable"


@dataclass
class TurnEvent:
    """One server-sent event of a streamed turn: start, chunk, done or error."""
    event: str
    data: dict[str, Any] = field(default_factory=dict)


class ConversationStateMachine:
    def __init__(self, db: AsyncSession, completion: CompletionClient):
        self.db = db
        self.completion = completion
        self.ledger = CreditLedger(db)

    async def start_conversation(
        self,
        user_id: uuid.UUID,
        project_id: uuid.UUID,
        initial_description: str,
    ) -> Conversation:
        """Create an empty interview for an owned project. Free."""
        description = (initial_description or "").strip()
        if not description:
            raise InvalidInputError("projectId and initialDescription are required")

        await ProjectService(self.db).get_project(user_id, project_id)

        conversation = Conversation(
            project_id=project_id,
            user_id=user_id,
            initial_description=description,
            messages=[],
            questions_asked=0,
            status=ConversationStatus.ACTIVE.value,
        )
        self.db.add(conversation)
        await commit_or_raise(self.db, "start_conversation")

        logger.info(
            "conversation_started",
            conversation_id=str(conversation.conversation_id),
            project_id=str(project_id),
        )
        return conversation

    async def get_conversation(self, user_id: uuid.UUID, conversation_id: uuid.UUID) -> Conversation:
        result = await self.db.execute(
            select(Conversation).where(
                Conversation.conversation_id == conversation_id,
                Conversation.user_id == user_id,
            )
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def latest_for_project(self, user_id: uuid.UUID, project_id: uuid.UUID) -> Conversation:
        await ProjectService(self.db).get_project(user_id, project_id)
        result = await self.db.execute(
            select(Conversation)
            .where(Conversation.project_id == project_id, Conversation.user_id == user_id)
            .order_by(Conversation.created_at.desc())
            .limit(1)
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise ConversationNotFoundError(f"project {project_id}")
        return conversation

    async def continue_conversation(
        self,
        user_id: uuid.UUID,
        conversation_id: uuid.UUID,
        answer: str | None,
    ) -> Conversation:
        """
        Admit one user answer.

        With an answer: charge the message cost, append the user turn and
        commit, all before the completion service is called. Without one (a
        client re-requesting the current question) nothing is charged.

        Raises:
            ConversationNotFoundError: Unknown or foreign conversation
            InvalidInputError: The interview is already complete
            InsufficientCreditsError: Balance below the message cost
        """
        conversation = await self.get_conversation(user_id, conversation_id)
        if conversation.is_complete:
            raise InvalidInputError(
                "Interview is already complete",
                details={"conversation_id": str(conversation_id)},
            )

        answer = (answer or "").strip()
        if answer:
            await self.ledger.deduct(
                user_id,
                settings.credit_cost_message,
                reason="interview_message",
                reference_id=str(conversation_id),
            )
            conversation.append_turn(TurnRole.USER, answer)
            await commit_or_raise(self.db, "save_user_turn")
            logger.info(
                "user_turn_saved",
                conversation_id=str(conversation_id),
                turns=len(conversation.messages),
            )

        return conversation

    async def stream_turn(self, conversation_id: uuid.UUID) -> AsyncIterator[TurnEvent]:
        """
        Stream the next analyst reply for an admitted turn.

        Yields start, then one chunk per fragment, then done. An upstream or
        storage failure ends the stream with a single error event; the user
        turn stays persisted and nothing is refunded.

        A consumer that stops reading (client disconnect) closes this
        generator at its current yield: the partial reply is discarded and
        nothing about the assistant turn is stored. The user turn saved by
        continue_conversation stays, so a follow-up call without an answer
        asks again free of charge.
        """
        conversation = await self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        yield TurnEvent("start", {
            "conversationId": str(conversation.conversation_id),
            "questionsAsked": conversation.questions_asked,
        })

        user_prompt = build_interrogation_user_prompt(
            conversation.initial_description,
            conversation.messages,
            conversation.questions_asked,
        )

        buffer: list[str] = []
        try:
            async for fragment in self.completion.stream(INTERROGATION_SYSTEM_PROMPT, user_prompt):
                buffer.append(fragment)
                yield TurnEvent("chunk", {"content": fragment})

            reply = parse_interview_reply("".join(buffer))
            await self._record_reply(conversation, reply)
        except ArchitectError as e:
            logger.error(
                "conversation_stream_failed",
                conversation_id=str(conversation_id),
                error=e.message,
                error_type=type(e).__name__,
                received_chars=sum(len(f) for f in buffer),
            )
            yield TurnEvent("error", {"error": STREAM_ERROR_MESSAGE})
            return

        yield TurnEvent("done", {
            "question": reply.question,
            "category": reply.category,
            "isComplete": reply.is_complete,
            "completionReason": reply.completion_reason,
            "questionsAsked": conversation.questions_asked,
        })

    async def _record_reply(self, conversation: Conversation, reply: InterviewReply) -> None:
        conversation.append_turn(TurnRole.ASSISTANT, reply.question, category=reply.category)
        conversation.questions_asked += 1

        if reply.project_type:
            conversation.project_type = reply.project_type
        if reply.detected_features:
            conversation.detected_features = list(reply.detected_features)

        if reply.is_complete:
            conversation.status = ConversationStatus.COMPLETE.value
            conversation.is_ready_for_blueprints = True
            conversation.completion_reason = reply.completion_reason

        project = await self.db.get(Project, conversation.project_id)
        if project is not None:
            if reply.project_type:
                project.project_type = reply.project_type
            if reply.detected_features:
                project.detected_features = list(reply.detected_features)

        await commit_or_raise(self.db, "save_assistant_turn")

        logger.info(
            "assistant_turn_saved",
            conversation_id=str(conversation.conversation_id),
            questions_asked=conversation.questions_asked,
            category=reply.category,
            is_complete=reply.is_complete,
        )
