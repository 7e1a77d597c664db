"""
Blueprint suite: one batch of generated documents for a project.

A project holds at most one *active* suite (generating | complete | partial).
`active_project_id` mirrors `project_id` while the suite is active and is NULL
once it ends in error; its UNIQUE constraint turns suite creation into an
atomic insert-if-absent.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from architect.database import Base, JSONType
from architect.models.status import ACTIVE_BATCH_STATUSES, BatchStatus, ensure_exhaustive


class BlueprintStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


BLUEPRINT_TRANSITIONS: dict[BlueprintStatus, frozenset[BlueprintStatus]] = {
    BlueprintStatus.PENDING: frozenset({BlueprintStatus.GENERATING}),
    # generating -> generating: a resume picks up an item orphaned mid-call
    BlueprintStatus.GENERATING: frozenset({
        BlueprintStatus.GENERATING,
        BlueprintStatus.COMPLETE,
        BlueprintStatus.ERROR,
    }),
    BlueprintStatus.ERROR: frozenset({BlueprintStatus.GENERATING}),
    BlueprintStatus.COMPLETE: frozenset(),
}

ensure_exhaustive(BLUEPRINT_TRANSITIONS, BlueprintStatus)


class BlueprintSuite(Base):
    __tablename__ = "blueprint_suites"

    suite_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("conversations.conversation_id", ondelete="CASCADE"), nullable=False
    )
    active_project_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BatchStatus.GENERATING.value
    )
    blueprint_types: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("active_project_id", name="uq_blueprint_suites_active_project"),
        Index("idx_blueprint_suites_project_time", "project_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<BlueprintSuite(suite_id={self.suite_id}, status={self.status})>"

    def set_status(self, status: BatchStatus) -> None:
        """Set status and keep the active-slot column in step with it."""
        self.status = status.value
        self.active_project_id = self.project_id if status in ACTIVE_BATCH_STATUSES else None


class Blueprint(Base):
    """One generated document of a suite."""

    __tablename__ = "blueprints"

    blueprint_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    suite_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("blueprint_suites.suite_id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BlueprintStatus.PENDING.value
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)  # last failure, for diagnostics

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("suite_id", "position", name="uq_blueprints_suite_position"),
    )

    def __repr__(self) -> str:
        return f"<Blueprint(type={self.type}, status={self.status})>"
