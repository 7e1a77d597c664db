"""
Account API endpoints: registration, balance, transaction history, grants.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from architect.database import commit_or_raise, get_db
from architect.dependencies import get_current_user_id
from architect.logging_config import get_logger
from architect.models import TransactionType
from architect.schemas.schemas import (
    AccountCreate,
    AccountResponse,
    BalanceResponse,
    ErrorResponse,
    GrantRequest,
    GrantResponse,
    TransactionListResponse,
    TransactionResponse,
)
from architect.services.credit_ledger import CreditLedger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Account already exists"}},
)
async def register_account(data: AccountCreate, db: AsyncSession = Depends(get_db)):
    """Register an account with the starting credit balance."""
    logger.info("register_account_request", user_id=str(data.user_id))
    account = await CreditLedger(db).register_account(data.user_id, email=data.email)
    await commit_or_raise(db, "register_account")
    await db.refresh(account)
    return AccountResponse.model_validate(account)


@router.get(
    "/me",
    response_model=BalanceResponse,
    responses={404: {"model": ErrorResponse, "description": "Account not found"}},
)
async def get_balance(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    credits = await CreditLedger(db).get_balance(user_id)
    return BalanceResponse(user_id=user_id, credits=credits)


@router.get("/me/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Credit movements, newest first."""
    transactions, total = await CreditLedger(db).list_transactions(user_id, limit=limit, offset=offset)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
    )


@router.post(
    "/{user_id}/grants",
    response_model=GrantResponse,
    responses={404: {"model": ErrorResponse, "description": "Account not found"}},
)
async def grant_credits(
    user_id: uuid.UUID,
    data: GrantRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Top up an account.

    Admin operation; access control belongs to the gateway in front of this API.
    """
    transaction_type = TransactionType.BONUS if data.bonus else TransactionType.GRANT
    new_balance = await CreditLedger(db).grant(
        user_id, data.amount, reason=data.reason, transaction_type=transaction_type,
    )
    await commit_or_raise(db, "grant_credits")
    return GrantResponse(user_id=user_id, amount=data.amount, new_balance=new_balance)
