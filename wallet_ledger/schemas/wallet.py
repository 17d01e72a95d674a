"""Pydantic schemas for wallets, transactions and transfers."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from wallet_ledger.models.transaction import TransactionType
from wallet_ledger.schemas.base import BaseResponse

PositiveAmount = Annotated[Decimal, Field(gt=0, max_digits=18, decimal_places=2)]


def _reject_explicit_nulls(model: BaseModel, fields: tuple[str, ...]) -> None:
    """Fields may be omitted from a partial update but not cleared."""
    cleared = sorted(name for name in fields if name in model.model_fields_set and getattr(model, name) is None)
    if cleared:
        raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")


class TransactionCreate(BaseModel):
    """Schema for recording an income or expense."""

    wallet_id: UUID | None = None
    type: TransactionType
    amount: PositiveAmount
    txn_date: date
    description: Annotated[str, Field(min_length=1)]
    category: Annotated[str, Field(min_length=1, max_length=100)]
    supplier: Annotated[str | None, Field(None, max_length=255)] = None
    subtype: Annotated[str | None, Field(None, max_length=50)] = None


class TransactionUpdate(BaseModel):
    """Partial update. Only fields that are set are applied."""

    wallet_id: UUID | None = None
    type: TransactionType | None = None
    amount: PositiveAmount | None = None
    txn_date: date | None = None
    description: Annotated[str | None, Field(None, min_length=1)] = None
    category: Annotated[str | None, Field(None, min_length=1, max_length=100)] = None
    supplier: Annotated[str | None, Field(None, max_length=255)] = None
    subtype: Annotated[str | None, Field(None, max_length=50)] = None

    @model_validator(mode="after")
    def check_required_not_cleared(self) -> "TransactionUpdate":
        _reject_explicit_nulls(self, ("type", "amount", "txn_date", "description", "category"))
        return self


class TransactionResponse(BaseResponse):
    id: UUID
    wallet_id: UUID | None
    type: TransactionType
    amount: Decimal
    txn_date: date
    description: str
    category: str
    supplier: str | None
    subtype: str | None
    created_at: datetime
    updated_at: datetime


class TransferCreate(BaseModel):
    """Schema for moving money between two wallets."""

    from_wallet_id: UUID
    to_wallet_id: UUID
    amount: PositiveAmount
    transfer_date: date
    description: Annotated[str | None, Field(None, max_length=500)] = None
    currency: Annotated[str, Field(min_length=3, max_length=3)] = "BRL"

    @model_validator(mode="after")
    def check_distinct_wallets(self) -> "TransferCreate":
        if self.from_wallet_id == self.to_wallet_id:
            raise ValueError("Source and destination wallets must differ")
        return self


class TransferUpdate(BaseModel):
    from_wallet_id: UUID | None = None
    to_wallet_id: UUID | None = None
    amount: PositiveAmount | None = None
    transfer_date: date | None = None
    description: Annotated[str | None, Field(None, max_length=500)] = None

    @model_validator(mode="after")
    def check_required_not_cleared(self) -> "TransferUpdate":
        _reject_explicit_nulls(self, ("from_wallet_id", "to_wallet_id", "amount", "transfer_date"))
        return self


class TransferResponse(BaseResponse):
    id: UUID
    from_wallet_id: UUID
    to_wallet_id: UUID
    amount: Decimal
    currency: str
    description: str | None
    transfer_date: date
    created_at: datetime


class WalletBalanceResponse(BaseModel):
    """Result of a balance recomputation."""

    success: bool = True
    wallet_id: UUID
    balance: Decimal


class BalanceCheckResponse(BaseModel):
    wallet_id: UUID
    cached_balance: Decimal
    derived_balance: Decimal
    drift: Decimal
    is_consistent: bool
