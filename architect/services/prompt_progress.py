"""
Prompt progress - client-driven status changes of implementation prompts.

pending -> unlocked is automatic: finishing prompt k (completed or skipped)
unlocks prompt k+1 when, and only when, k+1 is still pending. Clients drive
everything else through the transition table in models.sequence.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from architect.database import commit_or_raise
from architect.exceptions import InvalidStatusTransitionError, PrerequisitesIncompleteError, PromptNotFoundError
from architect.logging_config import get_logger
from architect.models import ImplementationPrompt, Project, PromptSequence, PromptStatus
from architect.models.sequence import FINISHED_PROMPT_STATUSES, PROMPT_TRANSITIONS
from architect.models.status import check_transition

logger = get_logger(__name__)

# Statuses that require the prompt's prerequisites to be finished first
GATED_STATUSES = frozenset({PromptStatus.IN_PROGRESS, PromptStatus.COMPLETED})


async def unlock_next(db: AsyncSession, sequence_id: uuid.UUID, sequence_number: int) -> bool:
    """Open prompt k+1 if it is pending. A single conditional UPDATE."""
    result = await db.execute(
        update(ImplementationPrompt)
        .where(
            ImplementationPrompt.sequence_id == sequence_id,
            ImplementationPrompt.sequence_number == sequence_number + 1,
            ImplementationPrompt.status == PromptStatus.PENDING.value,
        )
        .values(status=PromptStatus.UNLOCKED.value)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount > 0


async def release_after(db: AsyncSession, sequence_id: uuid.UUID, sequence_number: int) -> bool:
    """
    Unlock prompt k+1 if prompt k is already finished.

    For prompts appended behind a finished one, whose opening status change
    happened before they existed.
    """
    result = await db.execute(
        select(ImplementationPrompt.status).where(
            ImplementationPrompt.sequence_id == sequence_id,
            ImplementationPrompt.sequence_number == sequence_number,
        )
    )
    if result.scalar_one_or_none() not in {s.value for s in FINISHED_PROMPT_STATUSES}:
        return False
    return await unlock_next(db, sequence_id, sequence_number)


class PromptProgress:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def set_prompt_status(
        self,
        user_id: uuid.UUID,
        prompt_id: uuid.UUID,
        status: PromptStatus | str,
    ) -> tuple[ImplementationPrompt, PromptSequence]:
        """
        Move a prompt to a new status.

        Re-sending the current status is a no-op.

        Raises:
            PromptNotFoundError: Unknown or foreign prompt
            InvalidStatusTransitionError: Not allowed from the current status,
                or an attempt to unlock a prompt by hand
            PrerequisitesIncompleteError: A prerequisite prompt of the same
                sequence is neither completed nor skipped
        """
        prompt = await self._owned_prompt(user_id, prompt_id)
        sequence = await self.db.get(PromptSequence, prompt.sequence_id)
        requested = PromptStatus(status)
        previous = PromptStatus(prompt.status)

        if requested is previous:
            return prompt, sequence

        if previous is PromptStatus.PENDING:
            # Only finishing the previous prompt opens a pending one
            raise InvalidStatusTransitionError("prompt", previous.value, requested.value)
        check_transition(PROMPT_TRANSITIONS, "prompt", previous, requested)

        if requested in GATED_STATUSES:
            incomplete = await self._incomplete_prerequisites(prompt)
            if incomplete:
                raise PrerequisitesIncompleteError(prompt_id, incomplete)

        prompt.status = requested.value
        if requested is PromptStatus.COMPLETED:
            prompt.completed_at = datetime.now(timezone.utc)
            sequence.completed_prompts += 1
        elif previous is PromptStatus.COMPLETED:
            prompt.completed_at = None
            sequence.completed_prompts = max(0, sequence.completed_prompts - 1)

        unlocked = False
        if requested in FINISHED_PROMPT_STATUSES:
            unlocked = await unlock_next(self.db, prompt.sequence_id, prompt.sequence_number)

        await commit_or_raise(self.db, "set_prompt_status")

        logger.info(
            "prompt_status_changed",
            prompt_id=str(prompt_id),
            sequence_number=prompt.sequence_number,
            previous=previous.value,
            status=requested.value,
            next_unlocked=unlocked,
        )
        return prompt, sequence

    async def _incomplete_prerequisites(self, prompt: ImplementationPrompt) -> list[str]:
        """
        Prerequisite titles naming prompts of the same sequence that aren't finished.

        Free-form prerequisites the generator wrote ("Required files: ...")
        match no prompt and never block.
        """
        titles = [t for t in (prompt.prerequisites or []) if t != prompt.title]
        if not titles:
            return []

        result = await self.db.execute(
            select(ImplementationPrompt.title, ImplementationPrompt.status).where(
                ImplementationPrompt.sequence_id == prompt.sequence_id,
                ImplementationPrompt.title.in_(titles),
            )
        )
        finished = {s.value for s in FINISHED_PROMPT_STATUSES}
        blocking = {title for title, status in result.all() if status not in finished}
        return [t for t in titles if t in blocking]

    async def _owned_prompt(self, user_id: uuid.UUID, prompt_id: uuid.UUID) -> ImplementationPrompt:
        result = await self.db.execute(
            select(ImplementationPrompt)
            .join(Project, Project.project_id == ImplementationPrompt.project_id)
            .where(ImplementationPrompt.prompt_id == prompt_id, Project.user_id == user_id)
        )
        prompt = result.scalar_one_or_none()
        if prompt is None:
            raise PromptNotFoundError(prompt_id)
        return prompt
