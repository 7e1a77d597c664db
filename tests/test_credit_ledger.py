"""Tests for CreditLedger against the database."""
import uuid
from decimal import Decimal

import pytest

from architect.exceptions import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    InsufficientCreditsError,
    InvalidCreditOperationError,
)
from architect.models import TransactionType
from architect.services.credit_ledger import CreditLedger


class TestRegistration:
    async def test_starting_balance_is_journaled(self, db):
        ledger = CreditLedger(db)
        user_id = uuid.uuid4()
        await ledger.register_account(user_id, email="dev@example.com")
        await db.commit()

        assert await ledger.get_balance(user_id) == Decimal("30")
        transactions, total = await ledger.list_transactions(user_id)
        assert total == 1
        assert transactions[0].transaction_type == TransactionType.GRANT.value
        assert transactions[0].reason == "registration"

    async def test_duplicate_registration(self, db, account):
        with pytest.raises(AccountAlreadyExistsError):
            await CreditLedger(db).register_account(account.user_id)

    async def test_zero_starting_balance_has_no_journal_entry(self, db):
        ledger = CreditLedger(db)
        user_id = uuid.uuid4()
        await ledger.register_account(user_id, initial_credits=Decimal("0"))
        await db.commit()
        assert (await ledger.list_transactions(user_id))[1] == 0


class TestDeduct:
    async def test_deduct_returns_remaining(self, db, account):
        ledger = CreditLedger(db)
        remaining = await ledger.deduct(account.user_id, Decimal("3"), reason="blueprint_suite_generation")
        await db.commit()

        assert remaining == Decimal("27")
        assert await ledger.get_balance(account.user_id) == Decimal("27")

    async def test_fractional_costs(self, db, account):
        ledger = CreditLedger(db)
        for _ in range(3):
            await ledger.deduct(account.user_id, Decimal("0.1"), reason="interview_message")
        await db.commit()
        assert await ledger.get_balance(account.user_id) == Decimal("29.7")

    async def test_spend_down_to_zero(self, db, account):
        ledger = CreditLedger(db)
        assert await ledger.deduct(account.user_id, Decimal("30"), reason="everything") == Decimal("0")

    async def test_insufficient_credits_changes_nothing(self, db, account):
        ledger = CreditLedger(db)
        with pytest.raises(InsufficientCreditsError) as exc_info:
            await ledger.deduct(account.user_id, Decimal("31"), reason="too_much")

        assert exc_info.value.available == Decimal("30")
        assert exc_info.value.required == Decimal("31")
        assert await ledger.get_balance(account.user_id) == Decimal("30")
        assert (await ledger.list_transactions(account.user_id))[1] == 1

    async def test_second_spend_of_last_credits_fails(self, db, account):
        ledger = CreditLedger(db)
        await ledger.deduct(account.user_id, Decimal("20"), reason="first")
        with pytest.raises(InsufficientCreditsError):
            await ledger.deduct(account.user_id, Decimal("20"), reason="second")
        assert await ledger.get_balance(account.user_id) == Decimal("10")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
    async def test_non_positive_amount(self, db, account, amount):
        with pytest.raises(InvalidCreditOperationError):
            await CreditLedger(db).deduct(account.user_id, amount, reason="bad")

    async def test_unknown_account(self, db):
        with pytest.raises(AccountNotFoundError):
            await CreditLedger(db).deduct(uuid.uuid4(), Decimal("1"), reason="ghost")


class TestRefundAndGrant:
    async def test_refund_restores_balance(self, db, account):
        ledger = CreditLedger(db)
        await ledger.deduct(account.user_id, Decimal("3"), reason="blueprint_suite_generation", reference_id="s1")
        await ledger.refund(account.user_id, Decimal("3"), reason="blueprint_suite_failed", reference_id="s1")
        await db.commit()

        assert await ledger.get_balance(account.user_id) == Decimal("30")
        transactions, total = await ledger.list_transactions(account.user_id)
        assert total == 3
        assert transactions[0].transaction_type == TransactionType.REFUND.value
        assert transactions[0].amount == Decimal("3")
        assert transactions[1].amount == Decimal("-3")
        assert transactions[0].balance_after == Decimal("30")

    async def test_bonus_grant(self, db, account):
        ledger = CreditLedger(db)
        new_balance = await ledger.grant(
            account.user_id, Decimal("10"), reason="launch_promo", transaction_type=TransactionType.BONUS,
        )
        assert new_balance == Decimal("40")
        transactions, _ = await ledger.list_transactions(account.user_id, limit=1)
        assert transactions[0].transaction_type == TransactionType.BONUS.value

    async def test_grant_to_unknown_account(self, db):
        with pytest.raises(AccountNotFoundError):
            await CreditLedger(db).grant(uuid.uuid4(), Decimal("5"))


class TestTransactions:
    async def test_pagination(self, db, account):
        ledger = CreditLedger(db)
        for _ in range(4):
            await ledger.deduct(account.user_id, Decimal("1"), reason="interview_message")
        await db.commit()

        page, total = await ledger.list_transactions(account.user_id, limit=2, offset=1)
        assert total == 5
        assert len(page) == 2
        assert [t.balance_after for t in page] == [Decimal("27"), Decimal("28")]

    async def test_unknown_account(self, db):
        with pytest.raises(AccountNotFoundError):
            await CreditLedger(db).list_transactions(uuid.uuid4())
