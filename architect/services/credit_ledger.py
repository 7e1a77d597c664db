"""
Credit Ledger - atomic debit/credit of per-user credit balances.

Every balance change is a single conditional UPDATE ... RETURNING, so two
concurrent requests for the same account can never both spend the last
credits. Each movement is journaled in credit_transactions.

The ledger only flushes; committing is the caller's responsibility so a
charge can share a transaction with the records it pays for.
"""

import uuid
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from architect.config import settings
from architect.exceptions import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    InsufficientCreditsError,
    InvalidCreditOperationError,
)
from architect.logging_config import get_logger
from architect.models.account import Account, CreditTransaction, TransactionType

logger = get_logger(__name__)


class CreditLedger:
    """Manages credit operations for accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register_account(
        self,
        user_id: uuid.UUID,
        email: str | None = None,
        initial_credits: Decimal | None = None,
    ) -> Account:
        """
        Create an account with the starting balance.

        Raises:
            AccountAlreadyExistsError: If the user already has an account
        """
        existing = await self.db.get(Account, user_id)
        if existing is not None:
            raise AccountAlreadyExistsError(user_id)

        credits = settings.default_credits if initial_credits is None else initial_credits
        account = Account(user_id=user_id, email=email, credits=credits)
        self.db.add(account)
        await self.db.flush()

        if credits > 0:
            self.db.add(CreditTransaction(
                user_id=user_id,
                amount=credits,
                transaction_type=TransactionType.GRANT.value,
                reason="registration",
                balance_after=credits,
                description=f"Starting balance of {credits} credits",
            ))
            await self.db.flush()

        logger.info("account_registered", user_id=str(user_id), credits=str(credits))
        return account

    async def get_balance(self, user_id: uuid.UUID) -> Decimal:
        """Current balance. Raises AccountNotFoundError for unknown users."""
        result = await self.db.execute(
            select(Account.credits).where(Account.user_id == user_id)
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise AccountNotFoundError(user_id)
        return balance

    async def deduct(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        reason: str,
        reference_id: str | None = None,
    ) -> Decimal:
        """
        Spend credits if the balance covers them.

        The check and the decrement are one statement.

        Returns:
            Remaining balance

        Raises:
            InsufficientCreditsError: If balance < amount (carries the balance)
            AccountNotFoundError: If the account doesn't exist
        """
        amount = self._validate_amount(amount)

        stmt = (
            update(Account)
            .where(Account.user_id == user_id, Account.credits >= amount)
            .values(credits=Account.credits - amount)
            .returning(Account.credits)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        remaining = result.scalar_one_or_none()

        if remaining is None:
            available = await self.get_balance(user_id)
            logger.warning(
                "insufficient_credits",
                user_id=str(user_id),
                required=str(amount),
                available=str(available),
                reason=reason,
            )
            raise InsufficientCreditsError(required=amount, available=available, user_id=user_id)

        await self._journal(
            user_id, -amount, TransactionType.SPEND, reason, reference_id, remaining,
        )
        logger.info(
            "credits_spent",
            user_id=str(user_id),
            amount=str(amount),
            reason=reason,
            reference_id=reference_id,
            remaining=str(remaining),
        )
        return remaining

    async def refund(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        reason: str,
        reference_id: str | None = None,
    ) -> Decimal:
        """
        Give credits back unconditionally.

        Idempotency is the caller's job: workflows refund at most once per batch.
        """
        new_balance = await self._increment(user_id, amount)
        await self._journal(
            user_id, amount, TransactionType.REFUND, reason, reference_id, new_balance,
        )
        logger.info(
            "credits_refunded",
            user_id=str(user_id),
            amount=str(amount),
            reason=reason,
            reference_id=reference_id,
            new_balance=str(new_balance),
        )
        return new_balance

    async def grant(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        reason: str = "admin_grant",
        transaction_type: TransactionType = TransactionType.GRANT,
    ) -> Decimal:
        """Top up an account (admin grants, promotional bonuses)."""
        new_balance = await self._increment(user_id, amount)
        await self._journal(user_id, amount, transaction_type, reason, None, new_balance)
        logger.info(
            "credits_granted",
            user_id=str(user_id),
            amount=str(amount),
            transaction_type=transaction_type.value,
            new_balance=str(new_balance),
        )
        return new_balance

    async def list_transactions(
        self,
        user_id: uuid.UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CreditTransaction], int]:
        """
        Get transaction history for an account, newest first.

        Returns:
            Tuple of (transactions list, total count)
        """
        await self.get_balance(user_id)

        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        transactions = list(result.scalars().all())

        count_result = await self.db.execute(
            select(func.count()).select_from(CreditTransaction).where(CreditTransaction.user_id == user_id)
        )
        total = count_result.scalar_one()

        return transactions, total

    async def _increment(self, user_id: uuid.UUID, amount: Decimal) -> Decimal:
        amount = self._validate_amount(amount)
        stmt = (
            update(Account)
            .where(Account.user_id == user_id)
            .values(credits=Account.credits + amount)
            .returning(Account.credits)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            raise AccountNotFoundError(user_id)
        return new_balance

    async def _journal(
        self,
        user_id: uuid.UUID,
        amount: Decimal,
        transaction_type: TransactionType,
        reason: str,
        reference_id: str | None,
        balance_after: Decimal,
    ) -> None:
        self.db.add(CreditTransaction(
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type.value,
            reason=reason,
            reference_id=reference_id,
            balance_after=balance_after,
        ))
        await self.db.flush()

    @staticmethod
    def _validate_amount(amount: Decimal) -> Decimal:
        amount = Decimal(amount)
        if amount <= 0:
            raise InvalidCreditOperationError("Amount must be positive")
        return amount
