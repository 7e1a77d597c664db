"""
Interview conversation model.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from architect.database import Base, JSONType


class ConversationStatus(str, Enum):
    """Interview lifecycle: a new conversation is ACTIVE until the analyst signals completion."""
    ACTIVE = "in_progress"
    COMPLETE = "complete"


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Conversation(Base):
    """
    Requirements interview for one project.

    `messages` holds the ordered turns as dicts:
    {"role": "user" | "assistant", "content": str, "category": str | None}
    """

    __tablename__ = "conversations"

    conversation_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.user_id", ondelete="CASCADE"), nullable=False
    )
    initial_description: Mapped[str] = mapped_column(Text, nullable=False)

    messages: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    questions_asked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ConversationStatus.ACTIVE.value
    )
    is_ready_for_blueprints: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completion_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Hidden classification from the analyst's replies
    project_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    detected_features: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_conversations_project_time", "project_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Conversation(conversation_id={self.conversation_id}, status={self.status})>"

    @property
    def is_complete(self) -> bool:
        return self.status == ConversationStatus.COMPLETE.value

    def append_turn(self, role: TurnRole, content: str, category: str | None = None) -> None:
        """Append a turn. Reassigns the list so the JSON column is flagged dirty."""
        turn = {"role": role.value, "content": content}
        if category is not None:
            turn["category"] = category
        self.messages = [*(self.messages or []), turn]
