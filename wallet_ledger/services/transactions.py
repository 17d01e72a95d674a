"""Transaction bookkeeping with balance maintenance.

Every mutation recomputes the balance of each wallet it touched, so the
cached wallet balance can never fall out of step with its history.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.logger import get_logger
from wallet_ledger.models import Transaction
from wallet_ledger.schemas.wallet import TransactionCreate, TransactionUpdate
from wallet_ledger.services.balance import get_wallet, recompute_wallets

logger = get_logger(__name__)


class TransactionServiceError(Exception):
    """Base exception for transaction service errors."""


class TransactionNotFoundError(TransactionServiceError):
    """Transaction not found error."""


async def get_transaction(db: AsyncSession, user_id: UUID, transaction_id: UUID) -> Transaction:
    result = await db.execute(
        select(Transaction).where(Transaction.id == transaction_id).where(Transaction.user_id == user_id)
    )
    txn = result.scalar_one_or_none()
    if txn is None:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
    return txn


async def create_transaction(db: AsyncSession, user_id: UUID, data: TransactionCreate) -> Transaction:
    """Record a transaction and refresh its wallet's balance.

    Raises:
        WalletNotFoundError: If ``wallet_id`` is set but not owned by the user
    """
    if data.wallet_id is not None:
        await get_wallet(db, user_id, data.wallet_id)

    txn = Transaction(user_id=user_id, **data.model_dump())
    db.add(txn)
    await db.flush()

    await recompute_wallets(db, user_id, [txn.wallet_id])
    logger.info(
        "Transaction created",
        transaction_id=str(txn.id),
        wallet_id=str(txn.wallet_id) if txn.wallet_id else None,
        type=txn.type.value,
    )
    return txn


async def update_transaction(
    db: AsyncSession, user_id: UUID, transaction_id: UUID, data: TransactionUpdate
) -> Transaction:
    """Apply a partial update; recompute the old and the new wallet."""
    txn = await get_transaction(db, user_id, transaction_id)
    changes = data.model_dump(exclude_unset=True)

    new_wallet_id = changes.get("wallet_id", txn.wallet_id)
    if new_wallet_id is not None and new_wallet_id != txn.wallet_id:
        await get_wallet(db, user_id, new_wallet_id)

    previous_wallet_id = txn.wallet_id
    for field, value in changes.items():
        setattr(txn, field, value)
    await db.flush()

    await recompute_wallets(db, user_id, [previous_wallet_id, txn.wallet_id])
    logger.info(
        "Transaction updated",
        transaction_id=str(txn.id),
        fields=sorted(changes),
    )
    return txn


async def delete_transaction(db: AsyncSession, user_id: UUID, transaction_id: UUID) -> None:
    """Delete a transaction.

    A Reconciliation pointing at it keeps its row with a null transaction id.
    """
    txn = await get_transaction(db, user_id, transaction_id)
    wallet_id = txn.wallet_id
    await db.delete(txn)
    await db.flush()

    await recompute_wallets(db, user_id, [wallet_id])
    logger.info("Transaction deleted", transaction_id=str(transaction_id))
