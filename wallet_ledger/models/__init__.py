"""SQLAlchemy models package."""

from wallet_ledger.models.reconciliation import MatchType, Reconciliation
from wallet_ledger.models.statement import StatementLine, StatementLineStatus
from wallet_ledger.models.transaction import Transaction, TransactionSubtype, TransactionType
from wallet_ledger.models.wallet import Wallet, WalletTransfer

__all__ = [
    "MatchType",
    "Reconciliation",
    "StatementLine",
    "StatementLineStatus",
    "Transaction",
    "TransactionSubtype",
    "TransactionType",
    "Wallet",
    "WalletTransfer",
]
