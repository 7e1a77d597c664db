"""
Suite Workflow - blueprint suite generation on top of GenerationCoordinator.

GenerateSuite:
1. Reuse the project's active suite if there is one (no charge).
2. Otherwise claim the project's active-suite slot with an insert-if-absent,
   charge SUITE_COST and create one pending blueprint per selected type, all
   in one transaction. A request that loses the race for the slot charges
   nothing and returns the winner's suite.
3. Generate the blueprints one at a time, committing every step.
4. Store the status derived from the item statuses. A suite that ends in
   error (nothing usable) is refunded once; partial suites keep the charge.
"""

import uuid
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from architect.config import settings
from architect.database import commit_or_raise, insert_if_absent
from architect.exceptions import (
    ConversationNotFoundError,
    ConversationNotReadyError,
    InsufficientCreditsError,
    InvalidInputError,
    ItemGenerationError,
    PersistenceError,
    SuiteNotFoundError,
)
from architect.logging_config import get_logger
from architect.models import (
    Blueprint,
    BlueprintStatus,
    BlueprintSuite,
    BatchStatus,
    Conversation,
    Project,
)
from architect.models.status import ACTIVE_BATCH_STATUSES, BATCH_TRANSITIONS, check_transition
from architect.models.suite import BLUEPRINT_TRANSITIONS
from architect.services.blueprint_selector import get_blueprint_title, select_blueprints
from architect.services.completion import CompletionClient
from architect.services.coordinator import BatchHandler, GenerationCoordinator
from architect.services.credit_ledger import CreditLedger
from architect.services.prompts.blueprints import (
    BLUEPRINT_SYSTEM_PROMPT,
    PriorBlueprint,
    build_blueprint_prompt,
    build_conversation_summary,
)
from architect.services.status import count_complete, derive_batch_status

logger = get_logger(__name__)

MAX_ERROR_CHARS = 1000


@dataclass
class SuiteStatusReport:
    """Read-only view of a project's suite for a conversation."""
    has_existing: bool
    suite_id: uuid.UUID | None = None
    status: str | None = None
    pending_count: int = 0
    generating_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    total_count: int = 0


class BlueprintBatchHandler(BatchHandler[Blueprint, str]):
    """Generates one blueprint per call; every step is committed."""

    batch_kind = "blueprint_suite"

    def __init__(
        self,
        db: AsyncSession,
        completion: CompletionClient,
        suite: BlueprintSuite,
        conversation_summary: str,
        prior_blueprints: list[PriorBlueprint],
    ):
        self.db = db
        self.completion = completion
        self.suite = suite
        self.conversation_summary = conversation_summary
        self.prior_blueprints = prior_blueprints

    def describe(self, item: Blueprint) -> str:
        return item.type

    async def mark_generating(self, item: Blueprint) -> None:
        item.status = check_transition(
            BLUEPRINT_TRANSITIONS, "blueprint", item.status, BlueprintStatus.GENERATING
        ).value
        item.error = None
        await commit_or_raise(self.db, "mark_blueprint_generating")

    async def generate(self, item: Blueprint) -> str:
        prompt = build_blueprint_prompt(
            item.type, item.title, self.conversation_summary, self.prior_blueprints
        )
        content = await self.completion.complete(BLUEPRINT_SYSTEM_PROMPT, prompt)
        if not content or not content.strip():
            raise ItemGenerationError(item.type, "empty response")
        return content.strip()

    async def mark_complete(self, item: Blueprint, output: str) -> None:
        item.content = output
        item.status = BlueprintStatus.COMPLETE.value
        self.suite.completed_count += 1
        self.prior_blueprints.append(PriorBlueprint(item.title, output))
        await commit_or_raise(self.db, "mark_blueprint_complete")

    async def mark_failed(self, item: Blueprint, error: Exception) -> None:
        item.status = BlueprintStatus.ERROR.value
        item.error = (str(error) or type(error).__name__)[:MAX_ERROR_CHARS]
        await commit_or_raise(self.db, "mark_blueprint_failed")


class SuiteWorkflow:
    def __init__(
        self,
        db: AsyncSession,
        completion: CompletionClient,
        coordinator: GenerationCoordinator | None = None,
    ):
        self.db = db
        self.completion = completion
        self.coordinator = coordinator or GenerationCoordinator()
        self.ledger = CreditLedger(db)

    async def generate_suite(self, user_id: uuid.UUID, conversation_id: uuid.UUID) -> BlueprintSuite:
        """
        Generate (or return) the blueprint suite for an interview.

        Raises:
            ConversationNotFoundError: Unknown or foreign conversation
            ConversationNotReadyError: Interview not complete yet
            InsufficientCreditsError: Balance below SUITE_COST; nothing created
        """
        conversation = await self._owned_conversation(user_id, conversation_id)
        if not conversation.is_ready_for_blueprints:
            raise ConversationNotReadyError(conversation_id)

        project_id = conversation.project_id
        existing = await self._active_suite(project_id)
        if existing is not None:
            logger.info(
                "suite_reused",
                suite_id=str(existing.suite_id),
                project_id=str(project_id),
                status=existing.status,
            )
            return existing

        project = await self.db.get(Project, project_id)
        types = select_blueprints(
            conversation.project_type or (project.project_type if project else None),
            conversation.detected_features or (project.detected_features if project else None),
        )

        suite_id = await insert_if_absent(
            self.db,
            BlueprintSuite,
            {
                "project_id": project_id,
                "conversation_id": conversation_id,
                "active_project_id": project_id,
                "status": BatchStatus.GENERATING.value,
                "blueprint_types": types,
                "completed_count": 0,
                "total_count": len(types),
            },
            conflict_columns=["active_project_id"],
            returning=BlueprintSuite.suite_id,
        )
        if suite_id is None:
            # Another request claimed the slot between our check and insert
            await self.db.rollback()
            winner = await self._active_suite(project_id)
            if winner is None:
                raise PersistenceError("claim_suite_slot")
            logger.info("suite_slot_taken", suite_id=str(winner.suite_id), project_id=str(project_id))
            return winner

        try:
            await self.ledger.deduct(
                user_id,
                settings.credit_cost_suite,
                reason="blueprint_suite_generation",
                reference_id=str(suite_id),
            )
        except InsufficientCreditsError:
            await self.db.rollback()
            raise

        blueprints = [
            Blueprint(
                suite_id=suite_id,
                position=position,
                type=blueprint_type,
                title=get_blueprint_title(blueprint_type),
                content="",
                status=BlueprintStatus.PENDING.value,
            )
            for position, blueprint_type in enumerate(types, start=1)
        ]
        self.db.add_all(blueprints)
        await commit_or_raise(self.db, "create_suite")

        suite = await self.db.get(BlueprintSuite, suite_id)
        logger.info(
            "suite_created",
            suite_id=str(suite_id),
            project_id=str(project_id),
            types=types,
            charged=str(settings.credit_cost_suite),
        )

        await self._generate(suite, conversation, blueprints, prior=[])
        await self._finalize(suite, refund_to=user_id)
        return suite

    async def resume_suite(self, user_id: uuid.UUID, suite_id: uuid.UUID) -> BlueprintSuite:
        """
        Regenerate every blueprint that is not complete. Free, and never refunds.

        An error suite re-takes the project's active slot, so it can only be
        resumed while the project has no other active suite.
        """
        suite = await self._owned_suite(user_id, suite_id)
        blueprints = await self.list_blueprints(suite.suite_id)
        remaining = [b for b in blueprints if b.status != BlueprintStatus.COMPLETE.value]
        if not remaining:
            logger.info("suite_resume_noop", suite_id=str(suite_id), status=suite.status)
            return suite

        if suite.status == BatchStatus.ERROR.value:
            active = await self._active_suite(suite.project_id)
            if active is not None and active.suite_id != suite.suite_id:
                raise InvalidInputError(
                    "Project already has an active blueprint suite",
                    details={"active_suite_id": str(active.suite_id)},
                )

        suite.set_status(check_transition(
            BATCH_TRANSITIONS, "suite", suite.status, BatchStatus.GENERATING
        ))
        suite.completed_count = len(blueprints) - len(remaining)
        await commit_or_raise(self.db, "resume_suite")

        logger.info(
            "suite_resumed",
            suite_id=str(suite_id),
            remaining=[b.type for b in remaining],
        )

        conversation = await self.db.get(Conversation, suite.conversation_id)
        prior = [
            PriorBlueprint(b.title, b.content)
            for b in blueprints
            if b.status == BlueprintStatus.COMPLETE.value
        ]
        await self._generate(suite, conversation, remaining, prior)
        await self._finalize(suite)
        return suite

    async def check_suite_status(self, user_id: uuid.UUID, conversation_id: uuid.UUID) -> SuiteStatusReport:
        """Counts for the project's current suite, without generating anything."""
        conversation = await self._owned_conversation(user_id, conversation_id)
        suite = await self._active_suite(conversation.project_id) or await self._latest_suite(
            conversation.project_id
        )
        if suite is None:
            return SuiteStatusReport(has_existing=False)

        result = await self.db.execute(
            select(Blueprint.status, func.count())
            .where(Blueprint.suite_id == suite.suite_id)
            .group_by(Blueprint.status)
        )
        counts = dict(result.all())
        return SuiteStatusReport(
            has_existing=True,
            suite_id=suite.suite_id,
            status=suite.status,
            pending_count=counts.get(BlueprintStatus.PENDING.value, 0),
            generating_count=counts.get(BlueprintStatus.GENERATING.value, 0),
            completed_count=counts.get(BlueprintStatus.COMPLETE.value, 0),
            failed_count=counts.get(BlueprintStatus.ERROR.value, 0),
            total_count=suite.total_count,
        )

    async def get_suite(self, user_id: uuid.UUID, suite_id: uuid.UUID) -> tuple[BlueprintSuite, list[Blueprint]]:
        suite = await self._owned_suite(user_id, suite_id)
        return suite, await self.list_blueprints(suite.suite_id)

    async def list_blueprints(self, suite_id: uuid.UUID) -> list[Blueprint]:
        result = await self.db.execute(
            select(Blueprint).where(Blueprint.suite_id == suite_id).order_by(Blueprint.position)
        )
        return list(result.scalars().all())

    async def _generate(
        self,
        suite: BlueprintSuite,
        conversation: Conversation,
        items: Sequence[Blueprint],
        prior: list[PriorBlueprint],
    ) -> None:
        summary = build_conversation_summary(conversation.initial_description, conversation.messages)
        handler = BlueprintBatchHandler(self.db, self.completion, suite, summary, prior)
        await self.coordinator.run(items, handler)

    async def _finalize(self, suite: BlueprintSuite, refund_to: uuid.UUID | None = None) -> BatchStatus:
        """
        Derive the suite status from all of its blueprints and store it.

        With refund_to set (a freshly charged run), an error outcome refunds
        SUITE_COST in the same commit as the status.
        """
        result = await self.db.execute(
            select(Blueprint.status).where(Blueprint.suite_id == suite.suite_id)
        )
        statuses = list(result.scalars().all())
        status = derive_batch_status(statuses)

        suite.completed_count, suite.total_count = count_complete(statuses)
        suite.set_status(check_transition(BATCH_TRANSITIONS, "suite", suite.status, status))

        if status is BatchStatus.ERROR and refund_to is not None:
            await self.ledger.refund(
                refund_to,
                settings.credit_cost_suite,
                reason="blueprint_suite_failed",
                reference_id=str(suite.suite_id),
            )
            logger.warning(
                "suite_refunded",
                suite_id=str(suite.suite_id),
                amount=str(settings.credit_cost_suite),
            )

        await commit_or_raise(self.db, "finalize_suite")

        logger.info(
            "suite_finished",
            suite_id=str(suite.suite_id),
            status=status.value,
            completed=suite.completed_count,
            total=suite.total_count,
        )
        return status

    async def _owned_conversation(self, user_id: uuid.UUID, conversation_id: uuid.UUID) -> Conversation:
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

    async def _owned_suite(self, user_id: uuid.UUID, suite_id: uuid.UUID) -> BlueprintSuite:
        result = await self.db.execute(
            select(BlueprintSuite)
            .join(Project, Project.project_id == BlueprintSuite.project_id)
            .where(BlueprintSuite.suite_id == suite_id, Project.user_id == user_id)
        )
        suite = result.scalar_one_or_none()
        if suite is None:
            raise SuiteNotFoundError(suite_id)
        return suite

    async def _active_suite(self, project_id: uuid.UUID) -> BlueprintSuite | None:
        result = await self.db.execute(
            select(BlueprintSuite).where(
                BlueprintSuite.project_id == project_id,
                BlueprintSuite.status.in_([s.value for s in ACTIVE_BATCH_STATUSES]),
            )
        )
        return result.scalars().first()

    async def _latest_suite(self, project_id: uuid.UUID) -> BlueprintSuite | None:
        result = await self.db.execute(
            select(BlueprintSuite)
            .where(BlueprintSuite.project_id == project_id)
            .order_by(BlueprintSuite.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
