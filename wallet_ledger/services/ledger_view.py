"""Unified, read-only ledger of a wallet.

Merges transactions and transfers into one chronological stream with a
running balance. Persisted balances are never written from here; see
``services.balance`` for that.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models import Transaction, TransactionType, WalletTransfer
from wallet_ledger.schemas.ledger import LedgerEntryKind
from wallet_ledger.services.balance import get_wallet


# Same-day ordering: money arriving through transfers shows before it is spent.
_KIND_PRIORITY = {
    LedgerEntryKind.TRANSFER_IN: 0,
    LedgerEntryKind.TRANSFER_OUT: 0,
    LedgerEntryKind.INCOME: 1,
    LedgerEntryKind.EXPENSE: 2,
}

SUPPORTED_PERIODS = ("monthly", "yearly")


@dataclass
class LedgerEntry:
    kind: LedgerEntryKind
    date: date
    description: str
    amount: Decimal
    source_id: UUID
    running_balance: Decimal = Decimal("0")


@dataclass
class LedgerPeriod:
    period_start: date
    period_end: date
    opening_balance: Decimal
    closing_balance: Decimal
    entries: list[LedgerEntry] = field(default_factory=list)


@dataclass
class WalletLedger:
    wallet_id: UUID
    start: date | None
    end: date | None
    opening_balance: Decimal
    closing_balance: Decimal
    entries: list[LedgerEntry] = field(default_factory=list)
    periods: list[LedgerPeriod] = field(default_factory=list)


def _transaction_entry(txn: Transaction) -> LedgerEntry:
    if txn.type == TransactionType.INCOME:
        return LedgerEntry(LedgerEntryKind.INCOME, txn.txn_date, txn.description, txn.amount, txn.id)
    return LedgerEntry(LedgerEntryKind.EXPENSE, txn.txn_date, txn.description, -txn.amount, txn.id)


def _transfer_entry(wallet_id: UUID, transfer: WalletTransfer) -> LedgerEntry | None:
    description = transfer.description or "Transfer"
    if transfer.to_wallet_id == wallet_id:
        return LedgerEntry(
            LedgerEntryKind.TRANSFER_IN, transfer.transfer_date, description, transfer.amount, transfer.id
        )
    if transfer.from_wallet_id == wallet_id:
        return LedgerEntry(
            LedgerEntryKind.TRANSFER_OUT, transfer.transfer_date, description, -transfer.amount, transfer.id
        )
    return None


def _collect_entries(
    wallet_id: UUID,
    transactions: Iterable[Transaction],
    transfers: Iterable[WalletTransfer],
) -> list[LedgerEntry]:
    entries = [_transaction_entry(txn) for txn in transactions if txn.wallet_id == wallet_id]
    for transfer in transfers:
        entry = _transfer_entry(wallet_id, transfer)
        if entry is not None:
            entries.append(entry)
    entries.sort(key=lambda entry: (entry.date, _KIND_PRIORITY[entry.kind], str(entry.source_id)))
    return entries


def _apply_running_balance(entries: list[LedgerEntry], opening_balance: Decimal) -> Decimal:
    balance = opening_balance
    for entry in entries:
        balance += entry.amount
        entry.running_balance = balance
    return balance


def build_ledger(
    wallet_id: UUID,
    transactions: Iterable[Transaction],
    transfers: Iterable[WalletTransfer],
    opening_balance: Decimal,
) -> list[LedgerEntry]:
    """Order entries by (date, transfer < income < expense, source id) with running balances.

    Transactions of other wallets and transfers that do not touch
    ``wallet_id`` are ignored.
    """
    entries = _collect_entries(wallet_id, transactions, transfers)
    _apply_running_balance(entries, opening_balance)
    return entries


def period_bounds(day: date, period: str) -> tuple[date, date]:
    if period == "yearly":
        return date(day.year, 1, 1), date(day.year, 12, 31)
    if period == "monthly":
        start = date(day.year, day.month, 1)
        next_month = date(day.year + (day.month == 12), day.month % 12 + 1, 1)
        return start, next_month - timedelta(days=1)
    raise ValueError(f"Unsupported period: {period!r}")


def build_period_ledgers(
    wallet_id: UUID,
    transactions: Iterable[Transaction],
    transfers: Iterable[WalletTransfer],
    initial_balance: Decimal,
    *,
    period: str = "monthly",
) -> list[LedgerPeriod]:
    """Group the ledger into calendar periods.

    Each period opens at the previous period's closing balance; the first
    opens at ``initial_balance``. Periods without entries are omitted.
    """
    if period not in SUPPORTED_PERIODS:
        raise ValueError(f"Unsupported period: {period!r}")

    periods: list[LedgerPeriod] = []
    balance = initial_balance
    for entry in _collect_entries(wallet_id, transactions, transfers):
        start, end = period_bounds(entry.date, period)
        if not periods or periods[-1].period_start != start:
            periods.append(LedgerPeriod(start, end, opening_balance=balance, closing_balance=balance))
        current = periods[-1]
        balance += entry.amount
        entry.running_balance = balance
        current.entries.append(entry)
        current.closing_balance = balance
    return periods


async def get_wallet_ledger(
    db: AsyncSession,
    user_id: UUID,
    wallet_id: UUID,
    *,
    start: date | None = None,
    end: date | None = None,
    period: str | None = None,
) -> WalletLedger:
    """Ledger of a wallet over an optional date window.

    The window opens at the initial balance plus the net effect of every
    entry dated before ``start``.

    Raises:
        WalletNotFoundError: If the wallet is not owned by ``user_id``
        ValueError: If ``start`` is after ``end`` or ``period`` is unknown
    """
    if start and end and start > end:
        raise ValueError("start must not be after end")
    if period is not None and period not in SUPPORTED_PERIODS:
        raise ValueError(f"Unsupported period: {period!r}")

    wallet = await get_wallet(db, user_id, wallet_id)

    txn_query = (
        select(Transaction).where(Transaction.user_id == user_id).where(Transaction.wallet_id == wallet_id)
    )
    transfer_query = (
        select(WalletTransfer)
        .where(WalletTransfer.user_id == user_id)
        .where(or_(WalletTransfer.from_wallet_id == wallet_id, WalletTransfer.to_wallet_id == wallet_id))
    )
    if end is not None:
        txn_query = txn_query.where(Transaction.txn_date <= end)
        transfer_query = transfer_query.where(WalletTransfer.transfer_date <= end)

    transactions = list((await db.execute(txn_query)).scalars().all())
    transfers = list((await db.execute(transfer_query)).scalars().all())

    opening = wallet.initial_balance
    if start is not None:
        earlier = _collect_entries(
            wallet_id,
            [txn for txn in transactions if txn.txn_date < start],
            [transfer for transfer in transfers if transfer.transfer_date < start],
        )
        opening += sum((entry.amount for entry in earlier), Decimal("0"))
        transactions = [txn for txn in transactions if txn.txn_date >= start]
        transfers = [transfer for transfer in transfers if transfer.transfer_date >= start]

    ledger = WalletLedger(
        wallet_id=wallet_id,
        start=start,
        end=end,
        opening_balance=opening,
        closing_balance=opening,
    )
    if period is None:
        ledger.entries = build_ledger(wallet_id, transactions, transfers, opening)
        if ledger.entries:
            ledger.closing_balance = ledger.entries[-1].running_balance
    else:
        ledger.periods = build_period_ledgers(wallet_id, transactions, transfers, opening, period=period)
        if ledger.periods:
            ledger.closing_balance = ledger.periods[-1].closing_balance
    return ledger
