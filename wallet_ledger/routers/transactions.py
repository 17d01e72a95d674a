"""Transaction and transfer bookkeeping API router.

Every write here recomputes the balance of each wallet it touches before
the request commits.
"""

from uuid import UUID

from fastapi import APIRouter, status

from wallet_ledger.deps import CurrentUserId, DbSession
from wallet_ledger.logger import get_logger
from wallet_ledger.schemas import (
    SuccessResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
    TransferCreate,
    TransferResponse,
    TransferUpdate,
)
from wallet_ledger.services import transactions as transaction_service
from wallet_ledger.services import transfers as transfer_service
from wallet_ledger.services.balance import WalletNotFoundError
from wallet_ledger.services.transactions import TransactionNotFoundError
from wallet_ledger.services.transfers import InvalidTransferError, TransferNotFoundError
from wallet_ledger.utils.exceptions import raise_bad_request, raise_not_found

router = APIRouter(tags=["transactions"])
logger = get_logger(__name__)


@router.post("/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionCreate,
    db: DbSession,
    user_id: CurrentUserId,
) -> TransactionResponse:
    try:
        txn = await transaction_service.create_transaction(db, user_id, payload)
        await db.commit()
    except WalletNotFoundError as exc:
        await db.rollback()
        raise_not_found("Wallet", cause=exc)
    return TransactionResponse.model_validate(txn)


@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    db: DbSession,
    user_id: CurrentUserId,
) -> TransactionResponse:
    """Update a transaction; moving it between wallets recomputes both."""
    try:
        txn = await transaction_service.update_transaction(db, user_id, transaction_id, payload)
        await db.commit()
    except TransactionNotFoundError as exc:
        await db.rollback()
        raise_not_found("Transaction", cause=exc)
    except WalletNotFoundError as exc:
        await db.rollback()
        raise_not_found("Wallet", cause=exc)
    await db.refresh(txn)
    return TransactionResponse.model_validate(txn)


@router.delete("/transactions/{transaction_id}", response_model=SuccessResponse)
async def delete_transaction(
    transaction_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> SuccessResponse:
    try:
        await transaction_service.delete_transaction(db, user_id, transaction_id)
        await db.commit()
    except TransactionNotFoundError as exc:
        await db.rollback()
        raise_not_found("Transaction", cause=exc)
    return SuccessResponse()


@router.post("/transfers", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    payload: TransferCreate,
    db: DbSession,
    user_id: CurrentUserId,
) -> TransferResponse:
    try:
        transfer = await transfer_service.create_transfer(db, user_id, payload)
        await db.commit()
    except WalletNotFoundError as exc:
        await db.rollback()
        raise_not_found("Wallet", cause=exc)
    except InvalidTransferError as exc:
        await db.rollback()
        raise_bad_request(str(exc), cause=exc)
    return TransferResponse.model_validate(transfer)


@router.patch("/transfers/{transfer_id}", response_model=TransferResponse)
async def update_transfer(
    transfer_id: UUID,
    payload: TransferUpdate,
    db: DbSession,
    user_id: CurrentUserId,
) -> TransferResponse:
    try:
        transfer = await transfer_service.update_transfer(db, user_id, transfer_id, payload)
        await db.commit()
    except TransferNotFoundError as exc:
        await db.rollback()
        raise_not_found("Transfer", cause=exc)
    except WalletNotFoundError as exc:
        await db.rollback()
        raise_not_found("Wallet", cause=exc)
    except InvalidTransferError as exc:
        await db.rollback()
        raise_bad_request(str(exc), cause=exc)
    return TransferResponse.model_validate(transfer)


@router.delete("/transfers/{transfer_id}", response_model=SuccessResponse)
async def delete_transfer(
    transfer_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> SuccessResponse:
    try:
        await transfer_service.delete_transfer(db, user_id, transfer_id)
        await db.commit()
    except TransferNotFoundError as exc:
        await db.rollback()
        raise_not_found("Transfer", cause=exc)
    return SuccessResponse()
