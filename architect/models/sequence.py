"""
Prompt sequence: the ordered implementation prompts generated from a complete suite.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from architect.database import Base, JSONType
from architect.models.account import CREDIT_PRECISION
from architect.models.status import BatchStatus, ensure_exhaustive


class PromptCategory(str, Enum):
    """Implementation phases. Declaration order is the generation and dependency order."""
    SETUP = "setup"
    DATABASE = "database"
    AUTH = "auth"
    API = "api"
    SHARED_COMPONENTS = "shared-components"
    FEATURES = "features"
    PAGES = "pages"
    TESTING = "testing"


PROMPT_CATEGORIES: tuple[PromptCategory, ...] = tuple(PromptCategory)


class PromptStatus(str, Enum):
    PENDING = "pending"
    UNLOCKED = "unlocked"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


PROMPT_TRANSITIONS: dict[PromptStatus, frozenset[PromptStatus]] = {
    # pending -> unlocked happens only when the previous prompt is finished
    PromptStatus.PENDING: frozenset({PromptStatus.UNLOCKED}),
    PromptStatus.UNLOCKED: frozenset({
        PromptStatus.IN_PROGRESS,
        PromptStatus.COMPLETED,
        PromptStatus.SKIPPED,
    }),
    PromptStatus.IN_PROGRESS: frozenset({
        PromptStatus.UNLOCKED,
        PromptStatus.COMPLETED,
        PromptStatus.SKIPPED,
    }),
    # undo
    PromptStatus.COMPLETED: frozenset({PromptStatus.UNLOCKED}),
    PromptStatus.SKIPPED: frozenset(),
}

ensure_exhaustive(PROMPT_TRANSITIONS, PromptStatus)

# Statuses that release the next prompt and satisfy a prerequisite
FINISHED_PROMPT_STATUSES = frozenset({PromptStatus.COMPLETED, PromptStatus.SKIPPED})


class PromptSequence(Base):
    __tablename__ = "prompt_sequences"

    sequence_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False
    )
    suite_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("blueprint_suites.suite_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.user_id", ondelete="CASCADE"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BatchStatus.GENERATING.value
    )
    total_prompts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_prompts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_prompt_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skip_categories: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    # Categories whose last attempt produced nothing; a resume retries them
    failed_categories: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    # What the creating run charged; reset to 0 when refunded
    credits_charged: Mapped[Decimal] = mapped_column(CREDIT_PRECISION, nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        # One sequence per project; creation is an insert-if-absent on this key
        UniqueConstraint("project_id", name="uq_prompt_sequences_project"),
    )

    def __repr__(self) -> str:
        return f"<PromptSequence(sequence_id={self.sequence_id}, status={self.status})>"


class ImplementationPrompt(Base):
    __tablename__ = "implementation_prompts"

    prompt_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    sequence_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("prompt_sequences.sequence_id", ondelete="CASCADE"), nullable=False
    )
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    suite_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # 1-based, dense, continues across resumed runs
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    prerequisites: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    user_actions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    acceptance_criteria: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    next_step: Mapped[str | None] = mapped_column(Text, nullable=True)
    estimated_time: Mapped[str | None] = mapped_column(String(32), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PromptStatus.PENDING.value
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("sequence_id", "sequence_number", name="uq_prompts_sequence_number"),
        Index("idx_prompts_project_number", "project_id", "sequence_number"),
    )

    def __repr__(self) -> str:
        return f"<ImplementationPrompt(#{self.sequence_number} {self.title!r}, status={self.status})>"
