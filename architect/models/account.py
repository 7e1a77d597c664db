"""
Account model and the credit journal.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from architect.database import Base

CREDIT_PRECISION = Numeric(10, 2)


class TransactionType(str, Enum):
    """Types of credit transactions."""
    GRANT = "grant"
    SPEND = "spend"
    REFUND = "refund"
    BONUS = "bonus"


class Account(Base):
    """A user's identity and credit balance. Mutated only by the credit ledger."""

    __tablename__ = "accounts"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    credits: Mapped[Decimal] = mapped_column(CREDIT_PRECISION, nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<Account(user_id={self.user_id}, credits={self.credits})>"


class CreditTransaction(Base):
    """One credit movement. Spends are negative, grants and refunds positive."""

    __tablename__ = "credit_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accounts.user_id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(CREDIT_PRECISION, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)  # suite_generation, interview_message, ...
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    balance_after: Mapped[Decimal] = mapped_column(CREDIT_PRECISION, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_credit_transactions_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<CreditTransaction(id={self.id}, type={self.transaction_type}, amount={self.amount})>"
