"""
Sequence Workflow - implementation prompts generated category by category.

Each category is one coordinator item and one completion call yielding up to
three prompts. Categories run in PROMPT_CATEGORIES order, which is also their
dependency order, and later requests list the titles already generated.

GenerateSequence either resumes the project's sequence (free; only
categories with no prompts yet are generated) or creates it: an
insert-if-absent on the project plus a SEQUENCE_COST charge in one
transaction. A newly charged run that ends with zero prompts is refunded.

RegenerateItem rewrites one prompt as a one-item batch: it charges the
regeneration cost and refunds it when the batch yields nothing usable.
"""

import uuid
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from architect.config import settings
from architect.database import commit_or_raise, insert_if_absent
from architect.exceptions import (
    InsufficientCreditsError,
    InvalidInputError,
    ItemGenerationError,
    PersistenceError,
    ProjectNotFoundError,
    PromptNotFoundError,
    SuiteNotCompleteError,
    SuiteNotFoundError,
)
from architect.logging_config import get_logger
from architect.models import (
    BatchStatus,
    Blueprint,
    BlueprintStatus,
    BlueprintSuite,
    ImplementationPrompt,
    Project,
    PromptCategory,
    PromptSequence,
    PromptStatus,
)
from architect.models.sequence import PROMPT_CATEGORIES, PROMPT_TRANSITIONS
from architect.models.status import BATCH_TRANSITIONS, check_transition
from architect.services.completion import CompletionClient
from architect.services.coordinator import BatchHandler, GenerationCoordinator
from architect.services.credit_ledger import CreditLedger
from architect.services.prompt_progress import release_after
from architect.services.prompts.implementation import (
    CATEGORY_INFO,
    ENGINEERING_MANAGER_SYSTEM_PROMPT,
    MAX_PROMPTS_PER_CATEGORY,
    BlueprintContext,
    ParsedPrompt,
    build_implementation_prompt_request,
    build_regeneration_request,
    extract_tech_stack,
    get_default_user_actions,
    parse_prompt_response,
)
from architect.services.status import derive_batch_status

logger = get_logger(__name__)

# Earlier titles every new prompt lists as prerequisites
PREREQUISITE_WINDOW = 3

MAX_ERROR_CHARS = 1000


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(i for i in items if i))


def parse_skip_categories(values: Iterable[str] | None) -> list[PromptCategory]:
    """Validate a client skip list; keeps PROMPT_CATEGORIES order."""
    requested = set(values or ())
    known = {c.value for c in PROMPT_CATEGORIES}
    unknown = sorted(requested - known)
    if unknown:
        raise InvalidInputError(
            "Unknown prompt categories",
            details={"unknown_categories": unknown, "allowed": sorted(known)},
        )
    return [c for c in PROMPT_CATEGORIES if c.value in requested]


class CategoryBatchHandler(BatchHandler[PromptCategory, list[ParsedPrompt]]):
    """
    One category per item.

    Numbering continues from the prompts already stored, so a resumed run
    extends the sequence instead of restarting it.
    """

    batch_kind = "prompt_sequence"

    def __init__(
        self,
        db: AsyncSession,
        completion: CompletionClient,
        sequence: PromptSequence,
        project_title: str,
        blueprints: Sequence[BlueprintContext],
        existing_titles: list[str],
    ):
        self.db = db
        self.completion = completion
        self.sequence = sequence
        self.project_title = project_title
        self.blueprints = blueprints
        self.tech_stack = extract_tech_stack(blueprints)
        self.titles = existing_titles
        self.last_number = len(existing_titles)

    def describe(self, item: PromptCategory) -> str:
        return item.value

    async def mark_generating(self, item: PromptCategory) -> None:
        # A category has no row of its own until it yields prompts
        logger.debug("category_generating", sequence_id=str(self.sequence.sequence_id), category=item.value)

    async def generate(self, item: PromptCategory) -> list[ParsedPrompt]:
        request = build_implementation_prompt_request(
            item, self.blueprints, self.project_title, self.tech_stack, self.titles
        )
        response = await self.completion.complete(ENGINEERING_MANAGER_SYSTEM_PROMPT, request)
        parsed = parse_prompt_response(response)[:MAX_PROMPTS_PER_CATEGORY]
        if not parsed:
            raise ItemGenerationError(item.value, "response contained no prompts")
        return parsed

    async def mark_complete(self, item: PromptCategory, output: list[ParsedPrompt]) -> None:
        info = CATEGORY_INFO[item]
        for parsed in output:
            self.last_number += 1
            self.db.add(ImplementationPrompt(
                sequence_id=self.sequence.sequence_id,
                project_id=self.sequence.project_id,
                suite_id=self.sequence.suite_id,
                sequence_number=self.last_number,
                category=item.value,
                title=parsed.title,
                content=parsed.content,
                prerequisites=_unique([*self.titles[-PREREQUISITE_WINDOW:], *parsed.prerequisites]),
                user_actions=parsed.user_actions or get_default_user_actions(item),
                acceptance_criteria=parsed.acceptance_criteria,
                next_step=parsed.next_step or None,
                estimated_time=info.estimated_time,
                # Only the first prompt the sequence ever gets starts open
                status=(PromptStatus.UNLOCKED if self.last_number == 1 else PromptStatus.PENDING).value,
            ))
            self.titles.append(parsed.title)

        self.sequence.total_prompts = self.last_number
        self.sequence.current_prompt_index = self.last_number
        self.sequence.failed_categories = [c for c in self.sequence.failed_categories or [] if c != item.value]
        await commit_or_raise(self.db, "save_category_prompts")

    async def mark_failed(self, item: PromptCategory, error: Exception) -> None:
        # No prompts were stored for the category; a resume retries it
        self.sequence.failed_categories = _unique([*(self.sequence.failed_categories or []), item.value])
        self.sequence.last_error = f"{item.value}: {str(error) or type(error).__name__}"[:MAX_ERROR_CHARS]
        await commit_or_raise(self.db, "mark_category_failed")


class RegenerationHandler(BatchHandler[ImplementationPrompt, ParsedPrompt]):
    """Rewrites one existing prompt in place."""

    batch_kind = "prompt_regeneration"

    def __init__(self, db: AsyncSession, completion: CompletionClient, request: str):
        self.db = db
        self.completion = completion
        self.request = request

    def describe(self, item: ImplementationPrompt) -> str:
        return item.title

    async def mark_generating(self, item: ImplementationPrompt) -> None:
        # The prompt keeps its status and content until a usable rewrite arrives
        pass

    async def generate(self, item: ImplementationPrompt) -> ParsedPrompt:
        response = await self.completion.complete(ENGINEERING_MANAGER_SYSTEM_PROMPT, self.request)
        parsed = parse_prompt_response(response)
        if not parsed:
            raise ItemGenerationError(item.title, "failed to parse regenerated prompt")
        return parsed[0]

    async def mark_complete(self, item: ImplementationPrompt, output: ParsedPrompt) -> None:
        item.content = output.content
        if output.user_actions:
            item.user_actions = output.user_actions
        if output.acceptance_criteria:
            item.acceptance_criteria = output.acceptance_criteria
        if output.next_step:
            item.next_step = output.next_step

        if item.status == PromptStatus.COMPLETED.value:
            item.status = check_transition(
                PROMPT_TRANSITIONS, "prompt", item.status, PromptStatus.UNLOCKED
            ).value
            item.completed_at = None
            sequence = await self.db.get(PromptSequence, item.sequence_id)
            if sequence is not None:
                sequence.completed_prompts = max(0, sequence.completed_prompts - 1)

    async def mark_failed(self, item: ImplementationPrompt, error: Exception) -> None:
        # Stored prompt is left as it was; regenerate_prompt refunds and raises the error
        pass


class SequenceWorkflow:
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

    async def generate_sequence(
        self,
        user_id: uuid.UUID,
        suite_id: uuid.UUID,
        skip_categories: Iterable[str] | None = None,
    ) -> PromptSequence:
        """
        Generate, resume, or return the project's prompt sequence.

        The skip list only applies when the sequence is created; it is stored
        and honoured by every later resume.

        Raises:
            SuiteNotFoundError: Unknown or foreign suite
            SuiteNotCompleteError: Suite status is not complete
            InvalidInputError: Unknown category, or every category skipped
            InsufficientCreditsError: Balance below SEQUENCE_COST; nothing created
        """
        suite, project = await self._owned_suite(user_id, suite_id)
        if suite.status != BatchStatus.COMPLETE.value:
            raise SuiteNotCompleteError(suite_id, suite.status)

        skipped = parse_skip_categories(skip_categories)

        project_id = project.project_id
        existing = await self._sequence_for_project(project_id)
        if existing is not None:
            return await self._resume_or_return(existing, project)

        targets = [c for c in PROMPT_CATEGORIES if c not in skipped]
        if not targets:
            raise InvalidInputError("At least one prompt category must be generated")

        sequence_id = await insert_if_absent(
            self.db,
            PromptSequence,
            {
                "project_id": project_id,
                "suite_id": suite.suite_id,
                "user_id": user_id,
                "status": BatchStatus.GENERATING.value,
                "total_prompts": 0,
                "completed_prompts": 0,
                "current_prompt_index": 0,
                "skip_categories": [c.value for c in skipped],
                "failed_categories": [],
                "credits_charged": settings.credit_cost_sequence,
            },
            conflict_columns=["project_id"],
            returning=PromptSequence.sequence_id,
        )
        if sequence_id is None:
            await self.db.rollback()
            winner = await self._sequence_for_project(project_id)
            if winner is None:
                raise PersistenceError("claim_sequence_slot")
            logger.info("sequence_slot_taken", sequence_id=str(winner.sequence_id))
            return winner

        try:
            await self.ledger.deduct(
                user_id,
                settings.credit_cost_sequence,
                reason="prompt_sequence_generation",
                reference_id=str(sequence_id),
            )
        except InsufficientCreditsError:
            await self.db.rollback()
            raise
        await commit_or_raise(self.db, "create_sequence")

        sequence = await self.db.get(PromptSequence, sequence_id)
        logger.info(
            "sequence_created",
            sequence_id=str(sequence_id),
            project_id=str(project_id),
            categories=[c.value for c in targets],
            skipped=[c.value for c in skipped],
        )

        await self._generate(sequence, project, targets, existing_titles=[])
        await self._finalize(sequence, charged_run=True)
        return sequence

    async def _resume_or_return(self, sequence: PromptSequence, project: Project) -> PromptSequence:
        counts = await self._category_counts(sequence.sequence_id)
        skipped = set(sequence.skip_categories or ())
        missing = [c for c in PROMPT_CATEGORIES if c.value not in skipped and not counts.get(c.value)]
        pending = await self._count_prompts(sequence.sequence_id, PromptStatus.PENDING)

        stuck = sequence.status == BatchStatus.GENERATING.value
        unfinished = sequence.status != BatchStatus.COMPLETE.value and (pending > 0 or bool(missing))
        if not (stuck or unfinished):
            logger.info("sequence_reused", sequence_id=str(sequence.sequence_id), status=sequence.status)
            return sequence

        sequence.status = check_transition(
            BATCH_TRANSITIONS, "sequence", sequence.status, BatchStatus.GENERATING
        ).value
        await commit_or_raise(self.db, "resume_sequence")
        logger.info(
            "sequence_resumed",
            sequence_id=str(sequence.sequence_id),
            stuck=stuck,
            pending=pending,
            missing=[c.value for c in missing],
        )

        if missing:
            titles = await self._titles(sequence.sequence_id)
            last_before_resume = len(titles)
            await self._generate(sequence, project, missing, existing_titles=list(titles))
            if last_before_resume:
                await release_after(self.db, sequence.sequence_id, last_before_resume)
        await self._finalize(sequence, charged_run=False)
        return sequence

    async def regenerate_prompt(self, user_id: uuid.UUID, prompt_id: uuid.UUID) -> ImplementationPrompt:
        """
        Regenerate one prompt's content, keeping its title.

        Raises:
            PromptNotFoundError: Unknown or foreign prompt
            InsufficientCreditsError: Balance below the regeneration cost
            ItemGenerationError: Nothing usable came back (the charge is refunded)
        """
        prompt = await self._owned_prompt(user_id, prompt_id)
        sequence = await self.db.get(PromptSequence, prompt.sequence_id)
        project = await self.db.get(Project, prompt.project_id)
        cost = settings.credit_cost_regenerate

        await self.ledger.deduct(
            user_id, cost, reason="prompt_regeneration", reference_id=str(prompt_id),
        )
        await commit_or_raise(self.db, "charge_regeneration")

        blueprints = await self._blueprint_context(sequence.suite_id)
        result = await self.db.execute(
            select(ImplementationPrompt.title)
            .where(
                ImplementationPrompt.sequence_id == prompt.sequence_id,
                ImplementationPrompt.sequence_number < prompt.sequence_number,
            )
            .order_by(ImplementationPrompt.sequence_number)
        )
        request = build_regeneration_request(
            build_implementation_prompt_request(
                PromptCategory(prompt.category),
                blueprints,
                project.title,
                extract_tech_stack(blueprints),
                list(result.scalars().all()),
            ),
            prompt.title,
        )

        batch = await self.coordinator.run([prompt], RegenerationHandler(self.db, self.completion, request))
        if batch.status is BatchStatus.ERROR:
            await self.ledger.refund(
                user_id, cost, reason="prompt_regeneration_failed", reference_id=str(prompt_id),
            )
            await commit_or_raise(self.db, "refund_regeneration")
            raise ItemGenerationError(prompt.title, next(iter(batch.errors.values()), "no usable prompt"))

        await commit_or_raise(self.db, "save_regenerated_prompt")
        logger.info("prompt_regenerated", prompt_id=str(prompt_id), status=prompt.status)
        return prompt

    async def get_project_sequence(
        self, user_id: uuid.UUID, project_id: uuid.UUID
    ) -> tuple[PromptSequence | None, list[ImplementationPrompt]]:
        result = await self.db.execute(
            select(Project).where(Project.project_id == project_id, Project.user_id == user_id)
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_id)

        sequence = await self._sequence_for_project(project_id)
        if sequence is None:
            return None, []
        return sequence, await self.list_prompts(sequence.sequence_id)

    async def list_prompts(self, sequence_id: uuid.UUID) -> list[ImplementationPrompt]:
        result = await self.db.execute(
            select(ImplementationPrompt)
            .where(ImplementationPrompt.sequence_id == sequence_id)
            .order_by(ImplementationPrompt.sequence_number)
        )
        return list(result.scalars().all())

    async def _generate(
        self,
        sequence: PromptSequence,
        project: Project,
        categories: Sequence[PromptCategory],
        existing_titles: list[str],
    ) -> None:
        blueprints = await self._blueprint_context(sequence.suite_id)
        handler = CategoryBatchHandler(
            self.db, self.completion, sequence, project.title, blueprints, existing_titles,
        )
        await self.coordinator.run(categories, handler)

    async def _finalize(self, sequence: PromptSequence, charged_run: bool) -> BatchStatus:
        """
        Status over the sequence's target categories: a category counts as
        complete once it holds at least one prompt.

        A charged run that left the sequence without any prompt is refunded
        in the same commit.
        """
        counts = await self._category_counts(sequence.sequence_id)
        skipped = set(sequence.skip_categories or ())
        statuses = [
            BlueprintStatus.COMPLETE.value if counts.get(c.value) else BlueprintStatus.ERROR.value
            for c in PROMPT_CATEGORIES
            if c.value not in skipped
        ]
        status = derive_batch_status(statuses)
        total = sum(counts.values())

        sequence.status = check_transition(BATCH_TRANSITIONS, "sequence", sequence.status, status).value
        sequence.total_prompts = total
        if not sequence.failed_categories:
            sequence.last_error = None

        if charged_run and total == 0 and sequence.credits_charged > 0:
            await self.ledger.refund(
                sequence.user_id,
                sequence.credits_charged,
                reason="prompt_sequence_failed",
                reference_id=str(sequence.sequence_id),
            )
            logger.warning(
                "sequence_refunded",
                sequence_id=str(sequence.sequence_id),
                amount=str(sequence.credits_charged),
            )
            sequence.credits_charged = Decimal("0")

        await commit_or_raise(self.db, "finalize_sequence")
        logger.info(
            "sequence_finished",
            sequence_id=str(sequence.sequence_id),
            status=status.value,
            total_prompts=total,
        )
        return status

    async def _blueprint_context(self, suite_id: uuid.UUID) -> list[BlueprintContext]:
        result = await self.db.execute(
            select(Blueprint)
            .where(Blueprint.suite_id == suite_id, Blueprint.status == BlueprintStatus.COMPLETE.value)
            .order_by(Blueprint.position)
        )
        return [BlueprintContext(b.type, b.title, b.content) for b in result.scalars().all()]

    async def _category_counts(self, sequence_id: uuid.UUID) -> dict[str, int]:
        result = await self.db.execute(
            select(ImplementationPrompt.category, func.count())
            .where(ImplementationPrompt.sequence_id == sequence_id)
            .group_by(ImplementationPrompt.category)
        )
        return dict(result.all())

    async def _count_prompts(self, sequence_id: uuid.UUID, status: PromptStatus) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(ImplementationPrompt)
            .where(
                ImplementationPrompt.sequence_id == sequence_id,
                ImplementationPrompt.status == status.value,
            )
        )
        return result.scalar_one()

    async def _titles(self, sequence_id: uuid.UUID) -> list[str]:
        result = await self.db.execute(
            select(ImplementationPrompt.title)
            .where(ImplementationPrompt.sequence_id == sequence_id)
            .order_by(ImplementationPrompt.sequence_number)
        )
        return list(result.scalars().all())

    async def _sequence_for_project(self, project_id: uuid.UUID) -> PromptSequence | None:
        result = await self.db.execute(
            select(PromptSequence).where(PromptSequence.project_id == project_id)
        )
        return result.scalar_one_or_none()

    async def _owned_suite(self, user_id: uuid.UUID, suite_id: uuid.UUID) -> tuple[BlueprintSuite, Project]:
        result = await self.db.execute(
            select(BlueprintSuite, Project)
            .join(Project, Project.project_id == BlueprintSuite.project_id)
            .where(BlueprintSuite.suite_id == suite_id, Project.user_id == user_id)
        )
        row = result.one_or_none()
        if row is None:
            raise SuiteNotFoundError(suite_id)
        return row[0], row[1]

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
