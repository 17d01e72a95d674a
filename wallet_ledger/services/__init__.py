"""Services package."""

from wallet_ledger.services.balance import (
    BalanceCheck,
    BalanceError,
    WalletNotFoundError,
    recompute_wallet_balance,
    recompute_wallets,
    verify_wallet_balance,
)
from wallet_ledger.services.csv_parsing import CsvParseError
from wallet_ledger.services.fingerprint import deduplicate_lines, generate_fingerprint
from wallet_ledger.services.ledger_view import build_ledger, build_period_ledgers, get_wallet_ledger
from wallet_ledger.services.matching import MatchingConfig, MatchSuggestion, load_matching_config, suggest_matches
from wallet_ledger.services.reconciliation import (
    BatchNotFoundError,
    InvalidTransitionError,
    LineNotFoundError,
    NothingToUndoError,
    ReconciliationError,
    TransactionAlreadyReconciledError,
    TransactionNotFoundError,
    create_transaction_from_line,
    delete_import_batch,
    get_reconciliation_stats,
    ignore_line,
    list_import_batches,
    list_statement_lines,
    reconcile_with_transaction,
    undo_reconciliation,
)
from wallet_ledger.services.similarity import text_similarity
from wallet_ledger.services.statement_import import (
    EmptyImportError,
    StatementImportError,
    get_existing_fingerprints,
    import_bank_lines,
    import_csv_statement,
)
from wallet_ledger.services.transactions import TransactionServiceError
from wallet_ledger.services.transfers import InvalidTransferError, TransferServiceError

__all__ = [
    # Balance
    "BalanceCheck",
    "BalanceError",
    "WalletNotFoundError",
    "recompute_wallet_balance",
    "recompute_wallets",
    "verify_wallet_balance",
    # Import
    "CsvParseError",
    "EmptyImportError",
    "StatementImportError",
    "deduplicate_lines",
    "generate_fingerprint",
    "get_existing_fingerprints",
    "import_bank_lines",
    "import_csv_statement",
    # Ledger view
    "build_ledger",
    "build_period_ledgers",
    "get_wallet_ledger",
    # Matching
    "MatchingConfig",
    "MatchSuggestion",
    "load_matching_config",
    "suggest_matches",
    "text_similarity",
    # Reconciliation
    "BatchNotFoundError",
    "InvalidTransitionError",
    "LineNotFoundError",
    "NothingToUndoError",
    "ReconciliationError",
    "TransactionAlreadyReconciledError",
    "TransactionNotFoundError",
    "create_transaction_from_line",
    "delete_import_batch",
    "get_reconciliation_stats",
    "ignore_line",
    "list_import_batches",
    "list_statement_lines",
    "reconcile_with_transaction",
    "undo_reconciliation",
    # Bookkeeping
    "InvalidTransferError",
    "TransactionServiceError",
    "TransferServiceError",
]
