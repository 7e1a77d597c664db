"""Tests for SequenceWorkflow: generation, numbering, resume, skip lists and regeneration."""
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from architect.exceptions import (
    CompletionServiceError,
    InsufficientCreditsError,
    InvalidInputError,
    ItemGenerationError,
    ProjectNotFoundError,
    PromptNotFoundError,
    SuiteNotCompleteError,
    SuiteNotFoundError,
)
from architect.models import BatchStatus, PromptSequence
from architect.models.sequence import PROMPT_CATEGORIES
from architect.services.credit_ledger import CreditLedger
from architect.services.prompt_progress import PromptProgress
from architect.services.sequence_workflow import SequenceWorkflow, parse_skip_categories

from conftest import FakeCompletionClient, balance_of, prompt_reply

CATEGORY_VALUES = [c.value for c in PROMPT_CATEGORIES]


def category_replies(categories=CATEGORY_VALUES) -> list[str]:
    return [prompt_reply(f"{category} step") for category in categories]


def snapshot(prompts):
    return [(p.sequence_number, p.category, p.title, p.status) for p in prompts]


class TestParseSkipCategories:
    def test_keeps_category_order(self):
        assert [c.value for c in parse_skip_categories(["testing", "auth"])] == ["auth", "testing"]

    def test_empty(self):
        assert parse_skip_categories(None) == []

    def test_unknown_category(self):
        with pytest.raises(InvalidInputError) as exc_info:
            parse_skip_categories(["auth", "deployment"])
        assert exc_info.value.details["unknown_categories"] == ["deployment"]


class TestGenerateSequence:
    async def test_one_prompt_per_category(self, db, account, complete_suite):
        workflow = SequenceWorkflow(db, FakeCompletionClient(category_replies()))

        sequence = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        assert sequence.status == "complete"
        assert sequence.total_prompts == 8
        assert sequence.credits_charged == Decimal("1.5")
        prompts = await workflow.list_prompts(sequence.sequence_id)
        assert [p.sequence_number for p in prompts] == list(range(1, 9))
        assert [p.category for p in prompts] == CATEGORY_VALUES
        assert [p.status for p in prompts] == ["unlocked"] + ["pending"] * 7
        assert await balance_of(db, account.user_id) == Decimal("28.5")

    async def test_prompt_fields(self, db, account, complete_suite):
        workflow = SequenceWorkflow(db, FakeCompletionClient(category_replies()))
        sequence = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)
        prompts = await workflow.list_prompts(sequence.sequence_id)

        fifth = prompts[4]
        assert fifth.title == "shared-components step"
        assert fifth.content == "Implement shared-components step."
        assert fifth.prerequisites == ["database step", "auth step", "api step", "Node.js 20 installed"]
        assert fifth.user_actions == ["Run npm install"]
        assert fifth.acceptance_criteria == ["shared-components step works end to end"]
        assert fifth.next_step == "the next component"
        assert fifth.estimated_time == "60-90 mins"
        assert prompts[0].prerequisites == ["Node.js 20 installed"]

    async def test_requests_carry_context(self, db, account, complete_suite):
        completion = FakeCompletionClient(category_replies())
        await SequenceWorkflow(db, completion).generate_sequence(account.user_id, complete_suite.suite_id)

        assert "Tech Stack: SvelteKit" in completion.calls[0]
        assert "- Project: Dog Walker Marketplace" in completion.calls[0]
        assert "- setup step\n- database step" in completion.calls[2]

    async def test_at_most_three_prompts_per_category(self, db, account, complete_suite):
        replies = category_replies()
        replies[0] = prompt_reply("Scaffold", "Env File", "Lint Config", "Docker Compose")
        workflow = SequenceWorkflow(db, FakeCompletionClient(replies))

        sequence = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        prompts = await workflow.list_prompts(sequence.sequence_id)
        assert [p.title for p in prompts[:4]] == ["Scaffold", "Env File", "Lint Config", "database step"]
        assert sequence.total_prompts == 10
        assert prompts[3].sequence_number == 4

    async def test_unparseable_category_counts_as_failed(self, db, account, complete_suite):
        replies = category_replies()
        replies[3] = "Sorry, I can't help with that."
        workflow = SequenceWorkflow(db, FakeCompletionClient(replies))

        sequence = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        assert sequence.status == "partial"
        prompts = await workflow.list_prompts(sequence.sequence_id)
        assert "api" not in [p.category for p in prompts]
        assert [p.sequence_number for p in prompts] == list(range(1, 8))
        assert sequence.failed_categories == ["api"]
        assert "response contained no prompts" in sequence.last_error

    async def test_zero_prompts_is_refunded(self, db, account, complete_suite):
        workflow = SequenceWorkflow(db, FakeCompletionClient([CompletionServiceError("down")] * 8))

        sequence = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        assert sequence.status == "error"
        assert sequence.total_prompts == 0
        assert sequence.credits_charged == Decimal("0")
        assert await balance_of(db, account.user_id) == Decimal("30")
        transactions, _ = await CreditLedger(db).list_transactions(account.user_id)
        assert [t.reason for t in transactions].count("prompt_sequence_failed") == 1

    async def test_finished_sequence_is_returned_unchanged(self, db, account, complete_suite):
        completion = FakeCompletionClient(category_replies())
        workflow = SequenceWorkflow(db, completion)
        first = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        second = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        assert second.sequence_id == first.sequence_id
        assert len(completion.calls) == 8
        assert await balance_of(db, account.user_id) == Decimal("28.5")

    async def test_suite_must_be_complete(self, db, account, complete_suite):
        complete_suite.set_status(BatchStatus.PARTIAL)
        await db.commit()

        with pytest.raises(SuiteNotCompleteError):
            await SequenceWorkflow(db, FakeCompletionClient()).generate_sequence(
                account.user_id, complete_suite.suite_id
            )

    async def test_foreign_suite_is_not_found(self, db, other_account, complete_suite):
        with pytest.raises(SuiteNotFoundError):
            await SequenceWorkflow(db, FakeCompletionClient()).generate_sequence(
                other_account.user_id, complete_suite.suite_id
            )

    async def test_insufficient_credits_creates_nothing(self, db, account, complete_suite):
        user_id = account.user_id
        suite_id = complete_suite.suite_id
        await CreditLedger(db).deduct(user_id, Decimal("29"), reason="spent_elsewhere")
        await db.commit()
        completion = FakeCompletionClient(category_replies())

        with pytest.raises(InsufficientCreditsError):
            await SequenceWorkflow(db, completion).generate_sequence(user_id, suite_id)

        count = await db.execute(select(func.count()).select_from(PromptSequence))
        assert count.scalar_one() == 0
        assert completion.calls == []


class TestSkipCategories:
    async def test_skipped_categories_are_not_generated(self, db, account, complete_suite):
        completion = FakeCompletionClient(category_replies(
            [c for c in CATEGORY_VALUES if c not in ("auth", "testing")]
        ))
        workflow = SequenceWorkflow(db, completion)

        sequence = await workflow.generate_sequence(
            account.user_id, complete_suite.suite_id, ["testing", "auth"]
        )

        assert sequence.status == "complete"
        assert sequence.skip_categories == ["auth", "testing"]
        assert sequence.total_prompts == 6
        assert len(completion.calls) == 6

    async def test_stored_skip_list_survives_resume(self, db, account, complete_suite):
        replies = category_replies([c for c in CATEGORY_VALUES if c != "testing"])
        replies[-1] = CompletionServiceError("down")  # pages
        workflow = SequenceWorkflow(db, FakeCompletionClient(replies))
        sequence = await workflow.generate_sequence(account.user_id, complete_suite.suite_id, ["testing"])
        assert sequence.status == "partial"

        completion = FakeCompletionClient(category_replies(["pages"]))
        workflow.completion = completion
        resumed = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        assert resumed.status == "complete"
        assert len(completion.calls) == 1
        prompts = await workflow.list_prompts(sequence.sequence_id)
        assert "testing" not in [p.category for p in prompts]

    async def test_every_category_skipped(self, db, account, complete_suite):
        with pytest.raises(InvalidInputError):
            await SequenceWorkflow(db, FakeCompletionClient()).generate_sequence(
                account.user_id, complete_suite.suite_id, CATEGORY_VALUES
            )
        assert await balance_of(db, account.user_id) == Decimal("30")

    async def test_unknown_category_is_rejected(self, db, account, complete_suite):
        with pytest.raises(InvalidInputError):
            await SequenceWorkflow(db, FakeCompletionClient()).generate_sequence(
                account.user_id, complete_suite.suite_id, ["deployment"]
            )


class TestResumeSequence:
    async def _partial_sequence(self, db, account, complete_suite):
        """Everything but pages and testing generated."""
        replies = category_replies()
        replies[6] = CompletionServiceError("overloaded")
        replies[7] = CompletionServiceError("overloaded")
        workflow = SequenceWorkflow(db, FakeCompletionClient(replies))
        sequence = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)
        return workflow, sequence

    async def test_resume_generates_only_missing_categories(self, db, account, complete_suite):
        workflow, sequence = await self._partial_sequence(db, account, complete_suite)
        assert sequence.status == "partial"
        assert sequence.total_prompts == 6
        before = snapshot(await workflow.list_prompts(sequence.sequence_id))

        completion = FakeCompletionClient(category_replies(["pages", "testing"]))
        workflow.completion = completion
        resumed = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        assert resumed.sequence_id == sequence.sequence_id
        assert resumed.status == "complete"
        assert len(completion.calls) == 2
        assert "- features step" in completion.calls[0]

        after = snapshot(await workflow.list_prompts(sequence.sequence_id))
        assert after[:6] == before
        assert after[6:] == [
            (7, "pages", "pages step", "pending"),
            (8, "testing", "testing step", "pending"),
        ]
        assert await balance_of(db, account.user_id) == Decimal("28.5")

    async def test_numbering_stays_dense_across_resumes(self, db, account, complete_suite):
        workflow, sequence = await self._partial_sequence(db, account, complete_suite)

        workflow.completion = FakeCompletionClient([prompt_reply("Home Page", "Settings Page"), CompletionServiceError("down")])
        await workflow.generate_sequence(account.user_id, complete_suite.suite_id)
        workflow.completion = FakeCompletionClient(category_replies(["testing"]))
        resumed = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        prompts = await workflow.list_prompts(sequence.sequence_id)
        assert [p.sequence_number for p in prompts] == list(range(1, 10))
        assert resumed.total_prompts == 9
        assert resumed.status == "complete"
        assert await balance_of(db, account.user_id) == Decimal("28.5")

    async def test_resume_after_refund_is_free(self, db, account, complete_suite):
        workflow = SequenceWorkflow(db, FakeCompletionClient([CompletionServiceError("down")] * 8))
        await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        workflow.completion = FakeCompletionClient(category_replies())
        resumed = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        assert resumed.status == "complete"
        prompts = await workflow.list_prompts(resumed.sequence_id)
        assert prompts[0].status == "unlocked"
        assert await balance_of(db, account.user_id) == Decimal("30")

    async def test_appended_prompt_opens_behind_finished_one(self, db, account, complete_suite):
        workflow, sequence = await self._partial_sequence(db, account, complete_suite)
        progress = PromptProgress(db)
        for prompt in await workflow.list_prompts(sequence.sequence_id):
            await progress.set_prompt_status(account.user_id, prompt.prompt_id, "completed")

        workflow.completion = FakeCompletionClient(category_replies(["pages", "testing"]))
        await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        prompts = await workflow.list_prompts(sequence.sequence_id)
        assert [p.status for p in prompts[6:]] == ["unlocked", "pending"]

        started, _ = await progress.set_prompt_status(account.user_id, prompts[6].prompt_id, "in_progress")
        assert started.status == "in_progress"

    async def test_appended_prompt_waits_behind_unfinished_one(self, db, account, complete_suite):
        workflow, sequence = await self._partial_sequence(db, account, complete_suite)
        progress = PromptProgress(db)
        for prompt in (await workflow.list_prompts(sequence.sequence_id))[:5]:
            await progress.set_prompt_status(account.user_id, prompt.prompt_id, "completed")

        workflow.completion = FakeCompletionClient(category_replies(["pages", "testing"]))
        await workflow.generate_sequence(account.user_id, complete_suite.suite_id)

        prompts = await workflow.list_prompts(sequence.sequence_id)
        assert [p.status for p in prompts[5:]] == ["unlocked", "pending", "pending"]

    async def test_failed_categories_are_recorded_until_resumed(self, db, account, complete_suite):
        workflow, sequence = await self._partial_sequence(db, account, complete_suite)
        assert sequence.failed_categories == ["pages", "testing"]
        assert sequence.last_error.startswith("testing: ")
        assert "overloaded" in sequence.last_error

        workflow.completion = FakeCompletionClient([prompt_reply("Home Page"), CompletionServiceError("down again")])
        partly = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)
        assert partly.failed_categories == ["testing"]
        assert "down again" in partly.last_error

        workflow.completion = FakeCompletionClient(category_replies(["testing"]))
        resumed = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)
        assert resumed.status == "complete"
        assert resumed.failed_categories == []
        assert resumed.last_error is None


class TestRegeneratePrompt:
    async def _sequence(self, db, account, complete_suite):
        workflow = SequenceWorkflow(db, FakeCompletionClient(category_replies()))
        sequence = await workflow.generate_sequence(account.user_id, complete_suite.suite_id)
        return workflow, await workflow.list_prompts(sequence.sequence_id)

    async def test_content_is_replaced_and_title_kept(self, db, account, complete_suite):
        workflow, prompts = await self._sequence(db, account, complete_suite)
        target = prompts[2]
        completion = FakeCompletionClient([prompt_reply("Something Else")])
        workflow.completion = completion

        prompt = await workflow.regenerate_prompt(account.user_id, target.prompt_id)

        assert prompt.title == "auth step"
        assert prompt.content == "Implement Something Else."
        assert 'titled "auth step"' in completion.calls[0]
        assert "- setup step\n- database step" in completion.calls[0]
        assert "- api step" not in completion.calls[0]
        assert await balance_of(db, account.user_id) == Decimal("28.3")

    async def test_completed_prompt_is_reopened(self, db, account, complete_suite):
        workflow, prompts = await self._sequence(db, account, complete_suite)
        first = prompts[0]
        _, sequence = await PromptProgress(db).set_prompt_status(account.user_id, first.prompt_id, "completed")
        assert sequence.completed_prompts == 1

        workflow.completion = FakeCompletionClient([prompt_reply("setup step")])
        prompt = await workflow.regenerate_prompt(account.user_id, first.prompt_id)

        assert prompt.status == "unlocked"
        assert prompt.completed_at is None
        assert sequence.completed_prompts == 0

    async def test_unusable_reply_is_refunded(self, db, account, complete_suite):
        workflow, prompts = await self._sequence(db, account, complete_suite)
        before = prompts[1].content
        workflow.completion = FakeCompletionClient(["No components today."])

        with pytest.raises(ItemGenerationError):
            await workflow.regenerate_prompt(account.user_id, prompts[1].prompt_id)

        assert prompts[1].content == before
        assert await balance_of(db, account.user_id) == Decimal("28.5")

    async def test_upstream_failure_is_refunded(self, db, account, complete_suite):
        workflow, prompts = await self._sequence(db, account, complete_suite)
        workflow.completion = FakeCompletionClient([CompletionServiceError("timeout")])

        with pytest.raises(ItemGenerationError) as exc_info:
            await workflow.regenerate_prompt(account.user_id, prompts[0].prompt_id)

        assert "timeout" in exc_info.value.message
        assert await balance_of(db, account.user_id) == Decimal("28.5")

    async def test_foreign_prompt(self, db, account, other_account, complete_suite):
        workflow, prompts = await self._sequence(db, account, complete_suite)
        with pytest.raises(PromptNotFoundError):
            await workflow.regenerate_prompt(other_account.user_id, prompts[0].prompt_id)
        assert await balance_of(db, other_account.user_id) == Decimal("30")


class TestProjectSequence:
    async def test_no_sequence_yet(self, db, account, project):
        sequence, prompts = await SequenceWorkflow(db, FakeCompletionClient()).get_project_sequence(
            account.user_id, project.project_id
        )
        assert sequence is None
        assert prompts == []

    async def test_foreign_project(self, db, other_account, project):
        with pytest.raises(ProjectNotFoundError):
            await SequenceWorkflow(db, FakeCompletionClient()).get_project_sequence(
                other_account.user_id, project.project_id
            )

    async def test_unknown_project(self, db, account):
        with pytest.raises(ProjectNotFoundError):
            await SequenceWorkflow(db, FakeCompletionClient()).get_project_sequence(account.user_id, uuid.uuid4())


class TestConcurrentCreation:
    async def test_request_losing_the_insert_returns_the_winner_uncharged(self, db, account, complete_suite):
        user_id, suite_id = account.user_id, complete_suite.suite_id
        winner = await SequenceWorkflow(db, FakeCompletionClient(category_replies())).generate_sequence(
            user_id, suite_id
        )
        winner_id = winner.sequence_id

        completion = FakeCompletionClient(category_replies())
        late = SequenceWorkflow(db, completion)
        lookup = late._sequence_for_project
        lookups = []

        async def lookup_before_winner_committed(project_id):
            # The first check runs before the other request's row is visible
            lookups.append(project_id)
            return None if len(lookups) == 1 else await lookup(project_id)

        late._sequence_for_project = lookup_before_winner_committed

        returned = await late.generate_sequence(user_id, suite_id)

        assert returned.sequence_id == winner_id
        assert completion.calls == []
        assert await balance_of(db, user_id) == Decimal("28.5")
        count = await db.execute(select(func.count()).select_from(PromptSequence))
        assert count.scalar_one() == 1
