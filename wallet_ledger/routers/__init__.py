"""API routers."""

from wallet_ledger.routers import reconciliation, transactions, wallets

__all__ = ["reconciliation", "transactions", "wallets"]
