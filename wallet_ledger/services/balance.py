"""Wallet balance recomputation.

A wallet's current_balance is a cache. The only way it is ever written is by
deriving it from scratch:

    initial_balance + Σ income − Σ expense + Σ transfers in − Σ transfers out

Every mutation that touches a wallet's transactions or transfers calls
``recompute_wallets`` for each affected wallet before its session commits.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.logger import get_logger
from wallet_ledger.models import Transaction, TransactionType, Wallet, WalletTransfer

logger = get_logger(__name__)

CENT = Decimal("0.01")


class BalanceError(Exception):
    """Base exception for balance errors."""


class WalletNotFoundError(BalanceError):
    """Wallet does not exist or belongs to another owner."""


@dataclass(frozen=True)
class BalanceCheck:
    """Cached vs derived balance of a wallet."""

    wallet_id: UUID
    cached_balance: Decimal
    derived_balance: Decimal

    @property
    def drift(self) -> Decimal:
        return self.cached_balance - self.derived_balance

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0


async def get_wallet(db: AsyncSession, user_id: UUID, wallet_id: UUID, *, for_update: bool = False) -> Wallet:
    """Load an owner's wallet or raise ``WalletNotFoundError``."""
    query = select(Wallet).where(Wallet.id == wallet_id).where(Wallet.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    wallet = result.scalar_one_or_none()
    if wallet is None:
        raise WalletNotFoundError(f"Wallet {wallet_id} not found")
    return wallet


async def derive_wallet_balance(db: AsyncSession, wallet: Wallet) -> Decimal:
    """Compute the balance of ``wallet`` from its persisted history."""
    txn_result = await db.execute(
        select(Transaction.type, Transaction.amount)
        .where(Transaction.user_id == wallet.user_id)
        .where(Transaction.wallet_id == wallet.id)
    )
    income = Decimal("0")
    expense = Decimal("0")
    for txn_type, amount in txn_result.all():
        if txn_type == TransactionType.INCOME:
            income += amount
        else:
            expense += amount

    transfer_result = await db.execute(
        select(WalletTransfer.from_wallet_id, WalletTransfer.to_wallet_id, WalletTransfer.amount)
        .where(WalletTransfer.user_id == wallet.user_id)
        .where((WalletTransfer.from_wallet_id == wallet.id) | (WalletTransfer.to_wallet_id == wallet.id))
    )
    transfers_in = Decimal("0")
    transfers_out = Decimal("0")
    for from_wallet_id, to_wallet_id, amount in transfer_result.all():
        if to_wallet_id == wallet.id:
            transfers_in += amount
        if from_wallet_id == wallet.id:
            transfers_out += amount

    balance = wallet.initial_balance + income - expense + transfers_in - transfers_out
    return balance.quantize(CENT)


async def recompute_wallet_balance(db: AsyncSession, user_id: UUID, wallet_id: UUID) -> Decimal:
    """Recompute and persist a wallet's balance.

    The wallet row is locked for the rest of the transaction so concurrent
    recomputes of the same wallet serialize. initial_balance is re-read from
    storage, never taken from a caller.

    Raises:
        WalletNotFoundError: If the wallet does not belong to ``user_id``
    """
    wallet = await get_wallet(db, user_id, wallet_id, for_update=True)
    await db.refresh(wallet, ["initial_balance", "current_balance"])

    previous = wallet.current_balance
    balance = await derive_wallet_balance(db, wallet)

    if previous is not None and previous != balance:
        logger.info(
            "Wallet balance corrected",
            wallet_id=str(wallet_id),
            previous_balance=str(previous),
            new_balance=str(balance),
            drift=str(previous - balance),
        )

    wallet.current_balance = balance
    await db.flush()
    return balance


async def recompute_wallets(
    db: AsyncSession, user_id: UUID, wallet_ids: Iterable[UUID | None]
) -> dict[UUID, Decimal]:
    """Recompute several wallets, each once, in a stable lock order."""
    distinct_ids = sorted({wallet_id for wallet_id in wallet_ids if wallet_id is not None}, key=str)
    return {wallet_id: await recompute_wallet_balance(db, user_id, wallet_id) for wallet_id in distinct_ids}


async def verify_wallet_balance(db: AsyncSession, user_id: UUID, wallet_id: UUID) -> BalanceCheck:
    """Compare the cached balance with the derived one without writing."""
    wallet = await get_wallet(db, user_id, wallet_id)
    derived = await derive_wallet_balance(db, wallet)
    check = BalanceCheck(wallet_id=wallet.id, cached_balance=wallet.current_balance, derived_balance=derived)
    if not check.is_consistent:
        logger.warning(
            "Wallet balance drift detected",
            wallet_id=str(wallet_id),
            cached_balance=str(check.cached_balance),
            derived_balance=str(derived),
        )
    return check
