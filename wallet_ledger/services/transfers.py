"""Wallet-to-wallet transfers with balance maintenance."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.logger import get_logger
from wallet_ledger.models import WalletTransfer
from wallet_ledger.schemas.wallet import TransferCreate, TransferUpdate
from wallet_ledger.services.balance import get_wallet, recompute_wallets

logger = get_logger(__name__)


class TransferServiceError(Exception):
    """Base exception for transfer service errors."""


class TransferNotFoundError(TransferServiceError):
    """Transfer not found error."""


class InvalidTransferError(TransferServiceError):
    """Transfer would move money from a wallet to itself."""


async def get_transfer(db: AsyncSession, user_id: UUID, transfer_id: UUID) -> WalletTransfer:
    result = await db.execute(
        select(WalletTransfer).where(WalletTransfer.id == transfer_id).where(WalletTransfer.user_id == user_id)
    )
    transfer = result.scalar_one_or_none()
    if transfer is None:
        raise TransferNotFoundError(f"Transfer {transfer_id} not found")
    return transfer


async def create_transfer(db: AsyncSession, user_id: UUID, data: TransferCreate) -> WalletTransfer:
    """Move money between two of the user's wallets.

    Raises:
        InvalidTransferError: If both ends are the same wallet
        WalletNotFoundError: If either wallet is not owned by the user
    """
    if data.from_wallet_id == data.to_wallet_id:
        raise InvalidTransferError("Source and destination wallets must differ")
    await get_wallet(db, user_id, data.from_wallet_id)
    await get_wallet(db, user_id, data.to_wallet_id)

    transfer = WalletTransfer(user_id=user_id, **data.model_dump())
    db.add(transfer)
    await db.flush()

    await recompute_wallets(db, user_id, [transfer.from_wallet_id, transfer.to_wallet_id])
    logger.info(
        "Transfer created",
        transfer_id=str(transfer.id),
        from_wallet_id=str(transfer.from_wallet_id),
        to_wallet_id=str(transfer.to_wallet_id),
        amount=str(transfer.amount),
    )
    return transfer


async def update_transfer(
    db: AsyncSession, user_id: UUID, transfer_id: UUID, data: TransferUpdate
) -> WalletTransfer:
    """Apply a partial update; recompute every wallet on either side, before and after."""
    transfer = await get_transfer(db, user_id, transfer_id)
    changes = data.model_dump(exclude_unset=True)

    new_from = changes.get("from_wallet_id", transfer.from_wallet_id)
    new_to = changes.get("to_wallet_id", transfer.to_wallet_id)
    if new_from is None or new_to is None:
        raise InvalidTransferError("Transfer wallets cannot be cleared")
    if new_from == new_to:
        raise InvalidTransferError("Source and destination wallets must differ")
    for wallet_id in {new_from, new_to} - {transfer.from_wallet_id, transfer.to_wallet_id}:
        await get_wallet(db, user_id, wallet_id)

    affected = [transfer.from_wallet_id, transfer.to_wallet_id, new_from, new_to]
    for field, value in changes.items():
        setattr(transfer, field, value)
    await db.flush()

    await recompute_wallets(db, user_id, affected)
    logger.info("Transfer updated", transfer_id=str(transfer.id), fields=sorted(changes))
    return transfer


async def delete_transfer(db: AsyncSession, user_id: UUID, transfer_id: UUID) -> None:
    transfer = await get_transfer(db, user_id, transfer_id)
    affected = [transfer.from_wallet_id, transfer.to_wallet_id]
    await db.delete(transfer)
    await db.flush()

    await recompute_wallets(db, user_id, affected)
    logger.info("Transfer deleted", transfer_id=str(transfer_id))
