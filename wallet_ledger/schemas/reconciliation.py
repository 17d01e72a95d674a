"""Pydantic schemas for reconciliation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from wallet_ledger.models.reconciliation import MatchType
from wallet_ledger.models.statement import StatementLineStatus
from wallet_ledger.schemas.base import BaseResponse


class ManualMatchType(str, Enum):
    """Match types a caller may record when linking an existing transaction."""

    AUTO = "auto"
    MANUAL = "manual"


class ReconcileRequest(BaseModel):
    transaction_id: UUID
    match_type: ManualMatchType = ManualMatchType.MANUAL
    confidence: Annotated[int | None, Field(None, ge=0, le=100)] = None
    notes: str | None = None


class CreateTransactionRequest(BaseModel):
    category: Annotated[str, Field(min_length=1, max_length=100)]
    supplier: Annotated[str | None, Field(None, max_length=255)] = None


class LineActionResponse(BaseModel):
    """Outcome of a state transition on a statement line."""

    success: bool = True
    line_id: UUID
    status: StatementLineStatus
    transaction_id: UUID | None = None


class BatchDeleteResponse(BaseModel):
    success: bool = True
    batch_id: UUID
    deleted_lines: int


class MatchSuggestionResponse(BaseResponse):
    transaction_id: UUID
    description: str
    amount: Decimal
    date: date
    category: str
    confidence: int
    match_reasons: list[str]


class ReconciliationRecordResponse(BaseResponse):
    id: UUID
    transaction_id: UUID | None
    match_type: MatchType
    confidence_score: int | None
    reconciled_at: datetime
    notes: str | None


class MatchedTransactionSummary(BaseResponse):
    id: UUID
    description: str
    amount: Decimal
    txn_date: date
    category: str


class StatementLineResponse(BaseResponse):
    """A statement line with its reconciliation state and suggestions."""

    id: UUID
    wallet_id: UUID
    bank_reference: str | None
    transaction_date: date
    description: str
    counterparty: str | None
    amount: Decimal
    fingerprint: str
    import_batch_id: UUID
    source_file_name: str | None
    imported_at: datetime
    reconciliation_status: StatementLineStatus
    reconciliation: ReconciliationRecordResponse | None = None
    matched_transaction: MatchedTransactionSummary | None = None
    suggestions: list[MatchSuggestionResponse] = Field(default_factory=list)


class ReconciliationStatsResponse(BaseModel):
    total: int
    pending: int
    reconciled: int
    created: int
    ignored: int
    total_income: Decimal
    total_expense: Decimal
    percent_reconciled: int
