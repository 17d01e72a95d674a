from wallet_ledger.schemas.base import BaseResponse, ListResponse, SuccessResponse
from wallet_ledger.schemas.ledger import (
    LedgerEntryKind,
    LedgerEntryResponse,
    LedgerPeriodResponse,
    WalletLedgerResponse,
)
from wallet_ledger.schemas.reconciliation import (
    BatchDeleteResponse,
    CreateTransactionRequest,
    LineActionResponse,
    ManualMatchType,
    MatchedTransactionSummary,
    MatchSuggestionResponse,
    ReconcileRequest,
    ReconciliationRecordResponse,
    ReconciliationStatsResponse,
    StatementLineResponse,
)
from wallet_ledger.schemas.statement import (
    ColumnMapping,
    ColumnRole,
    CsvImportRequest,
    CsvImportResponse,
    FingerprintListResponse,
    ImportBatchResponse,
    ImportLinesRequest,
    ImportResultResponse,
    StatementLineInput,
)
from wallet_ledger.schemas.wallet import (
    BalanceCheckResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
    TransferCreate,
    TransferResponse,
    TransferUpdate,
    WalletBalanceResponse,
)

__all__ = [
    "BaseResponse",
    "ListResponse",
    "SuccessResponse",
    "LedgerEntryKind",
    "LedgerEntryResponse",
    "LedgerPeriodResponse",
    "WalletLedgerResponse",
    "BatchDeleteResponse",
    "CreateTransactionRequest",
    "LineActionResponse",
    "ManualMatchType",
    "MatchedTransactionSummary",
    "MatchSuggestionResponse",
    "ReconcileRequest",
    "ReconciliationRecordResponse",
    "ReconciliationStatsResponse",
    "StatementLineResponse",
    "ColumnMapping",
    "ColumnRole",
    "CsvImportRequest",
    "CsvImportResponse",
    "FingerprintListResponse",
    "ImportBatchResponse",
    "ImportLinesRequest",
    "ImportResultResponse",
    "StatementLineInput",
    "BalanceCheckResponse",
    "TransactionCreate",
    "TransactionResponse",
    "TransactionUpdate",
    "TransferCreate",
    "TransferResponse",
    "TransferUpdate",
    "WalletBalanceResponse",
]
