"""Pydantic schemas for statement import."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class StatementLineInput(BaseModel):
    """One bank line as handed to the importer.

    fingerprint is optional; the importer computes it when absent.
    """

    transaction_date: date
    description: Annotated[str, Field(min_length=1)]
    amount: Annotated[Decimal, Field(max_digits=18, decimal_places=2)]
    bank_reference: Annotated[str | None, Field(None, max_length=100)] = None
    counterparty: Annotated[str | None, Field(None, max_length=255)] = None
    fingerprint: Annotated[str | None, Field(None, max_length=128)] = None


class ImportLinesRequest(BaseModel):
    lines: list[StatementLineInput]
    source_file_name: Annotated[str | None, Field(None, max_length=255)] = None


class ImportResultResponse(BaseModel):
    success: bool = True
    batch_id: UUID
    count: int


class ColumnRole(str, Enum):
    """Meaning assigned to a CSV column."""

    DATE = "date"
    DESCRIPTION = "description"
    AMOUNT = "amount"
    CREDIT = "credit"
    DEBIT = "debit"
    BANK_REFERENCE = "bank_reference"
    COUNTERPARTY = "counterparty"
    IGNORE = "ignore"


class ColumnMapping(BaseModel):
    """Maps a CSV header to a column role."""

    column: str
    role: ColumnRole


class CsvImportRequest(BaseModel):
    """Raw CSV text plus the column mapping chosen by the user."""

    content: Annotated[str, Field(min_length=1)]
    mappings: list[ColumnMapping]
    source_file_name: Annotated[str | None, Field(None, max_length=255)] = None

    @field_validator("mappings")
    @classmethod
    def check_mappings(cls, value: list[ColumnMapping]) -> list[ColumnMapping]:
        roles = {mapping.role for mapping in value}
        missing = [role.value for role in (ColumnRole.DATE, ColumnRole.DESCRIPTION) if role not in roles]
        if missing:
            raise ValueError(f"Missing required column roles: {', '.join(missing)}")
        has_amount = ColumnRole.AMOUNT in roles
        has_split = ColumnRole.CREDIT in roles and ColumnRole.DEBIT in roles
        if not (has_amount or has_split):
            raise ValueError("Map either an amount column or both credit and debit columns")
        return value


class CsvImportResponse(BaseModel):
    success: bool = True
    batch_id: UUID | None
    imported: int
    duplicates: int
    skipped_rows: int


class FingerprintListResponse(BaseModel):
    wallet_id: UUID
    fingerprints: list[str]


class ImportBatchResponse(BaseModel):
    batch_id: UUID
    source_file_name: str | None
    imported_at: datetime
    line_count: int
    pending: int
    reconciled: int
    created: int
    ignored: int
