"""Pydantic schemas for the unified wallet ledger view."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from wallet_ledger.schemas.base import BaseResponse


class LedgerEntryKind(str, Enum):
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    INCOME = "income"
    EXPENSE = "expense"


class LedgerEntryResponse(BaseResponse):
    kind: LedgerEntryKind
    date: date
    description: str
    amount: Decimal
    running_balance: Decimal
    source_id: UUID


class LedgerPeriodResponse(BaseResponse):
    period_start: date
    period_end: date
    opening_balance: Decimal
    closing_balance: Decimal
    entries: list[LedgerEntryResponse]


class WalletLedgerResponse(BaseModel):
    wallet_id: UUID
    start: date | None
    end: date | None
    opening_balance: Decimal
    closing_balance: Decimal
    entries: list[LedgerEntryResponse] = []
    periods: list[LedgerPeriodResponse] = []
