"""Wallet balance and ledger API router."""

from datetime import date
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query

from wallet_ledger.deps import CurrentUserId, DbSession
from wallet_ledger.logger import async_log_timing, get_logger
from wallet_ledger.schemas import (
    BalanceCheckResponse,
    LedgerEntryResponse,
    LedgerPeriodResponse,
    WalletBalanceResponse,
    WalletLedgerResponse,
)
from wallet_ledger.services.balance import WalletNotFoundError, recompute_wallet_balance, verify_wallet_balance
from wallet_ledger.services.ledger_view import get_wallet_ledger
from wallet_ledger.utils.exceptions import raise_bad_request, raise_not_found

router = APIRouter(prefix="/wallets", tags=["wallets"])
logger = get_logger(__name__)


@router.post("/{wallet_id}/recompute", response_model=WalletBalanceResponse)
async def recompute_balance(
    wallet_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> WalletBalanceResponse:
    """Rebuild the wallet's cached balance from its full history."""
    try:
        async with async_log_timing("recompute_wallet_balance", logger=logger, wallet_id=str(wallet_id)):
            balance = await recompute_wallet_balance(db, user_id, wallet_id)
        await db.commit()
    except WalletNotFoundError as exc:
        await db.rollback()
        raise_not_found("Wallet", cause=exc)
    return WalletBalanceResponse(wallet_id=wallet_id, balance=balance)


@router.get("/{wallet_id}/balance-check", response_model=BalanceCheckResponse)
async def balance_check(
    wallet_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> BalanceCheckResponse:
    """Compare cached and derived balances without writing anything."""
    try:
        check = await verify_wallet_balance(db, user_id, wallet_id)
    except WalletNotFoundError as exc:
        raise_not_found("Wallet", cause=exc)
    return BalanceCheckResponse(
        wallet_id=check.wallet_id,
        cached_balance=check.cached_balance,
        derived_balance=check.derived_balance,
        drift=check.drift,
        is_consistent=check.is_consistent,
    )


@router.get("/{wallet_id}/ledger", response_model=WalletLedgerResponse)
async def wallet_ledger(
    wallet_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    period: Literal["monthly", "yearly"] | None = Query(default=None),
) -> WalletLedgerResponse:
    """Transactions and transfers in date order with running balances."""
    try:
        ledger = await get_wallet_ledger(db, user_id, wallet_id, start=start, end=end, period=period)
    except WalletNotFoundError as exc:
        raise_not_found("Wallet", cause=exc)
    except ValueError as exc:
        raise_bad_request(str(exc), cause=exc)

    return WalletLedgerResponse(
        wallet_id=ledger.wallet_id,
        start=ledger.start,
        end=ledger.end,
        opening_balance=ledger.opening_balance,
        closing_balance=ledger.closing_balance,
        entries=[LedgerEntryResponse.model_validate(entry) for entry in ledger.entries],
        periods=[LedgerPeriodResponse.model_validate(item) for item in ledger.periods],
    )
