"""Reconciliation ledger: the statement line state machine.

States: pending → reconciled | created | ignored, and back to pending only
through ``undo_reconciliation``. Each operation checks its preconditions
before writing and only flushes; the caller commits once so the
Reconciliation row and the status change land together.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from wallet_ledger.logger import get_logger, log_timing
from wallet_ledger.models import (
    MatchType,
    Reconciliation,
    StatementLine,
    StatementLineStatus,
    Transaction,
    TransactionSubtype,
)
from wallet_ledger.services.balance import get_wallet, recompute_wallets
from wallet_ledger.services.matching import (
    MatchingConfig,
    MatchSuggestion,
    expected_transaction_type,
    load_matching_config,
    load_wallet_candidates,
    suggest_matches,
)

logger = get_logger(__name__)


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""


class LineNotFoundError(ReconciliationError):
    """Statement line not found for this owner."""


class TransactionNotFoundError(ReconciliationError):
    """Transaction not found for this owner."""


class BatchNotFoundError(ReconciliationError):
    """Import batch has no lines for this owner."""


class InvalidTransitionError(ReconciliationError):
    """The line's current status does not allow the requested operation."""


class TransactionAlreadyReconciledError(ReconciliationError):
    """The transaction is already linked to another statement line."""


class NothingToUndoError(ReconciliationError):
    """The line is pending and has no reconciliation to undo."""


P = StatementLineStatus
ALLOWED_TRANSITIONS: dict[StatementLineStatus, frozenset[StatementLineStatus]] = {
    P.PENDING: frozenset({P.RECONCILED, P.CREATED, P.IGNORED}),
    P.RECONCILED: frozenset({P.PENDING}),
    P.CREATED: frozenset({P.PENDING}),
    P.IGNORED: frozenset({P.PENDING}),
}


def check_transition(line: StatementLine, target: StatementLineStatus) -> None:
    current = line.reconciliation_status
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Statement line {line.id} is {current.value}; cannot move to {target.value}"
        )


async def get_line(db: AsyncSession, user_id: UUID, line_id: UUID, *, for_update: bool = False) -> StatementLine:
    query = (
        select(StatementLine)
        .where(StatementLine.id == line_id)
        .where(StatementLine.user_id == user_id)
        .options(selectinload(StatementLine.reconciliation))
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    line = result.scalar_one_or_none()
    if line is None:
        raise LineNotFoundError(f"Statement line {line_id} not found")
    return line


async def _ensure_transaction_unlinked(db: AsyncSession, transaction_id: UUID) -> None:
    result = await db.execute(
        select(Reconciliation.id).where(Reconciliation.transaction_id == transaction_id)
    )
    if result.scalar_one_or_none() is not None:
        raise TransactionAlreadyReconciledError(f"Transaction {transaction_id} is already reconciled")


async def _link(
    db: AsyncSession,
    user_id: UUID,
    line: StatementLine,
    transaction_id: UUID,
    *,
    match_type: MatchType,
    status: StatementLineStatus,
    confidence: int | None,
    notes: str | None,
) -> Reconciliation:
    record = Reconciliation(
        user_id=user_id,
        bank_line_id=line.id,
        transaction_id=transaction_id,
        match_type=match_type,
        confidence_score=confidence,
        reconciled_by=user_id,
        notes=notes,
    )
    db.add(record)
    line.reconciliation_status = status
    try:
        await db.flush()
    except IntegrityError as exc:
        # Another request linked the same transaction after our check
        raise TransactionAlreadyReconciledError(f"Transaction {transaction_id} is already reconciled") from exc
    set_committed_value(line, "reconciliation", record)
    return record


async def reconcile_with_transaction(
    db: AsyncSession,
    user_id: UUID,
    line_id: UUID,
    transaction_id: UUID,
    *,
    match_type: MatchType = MatchType.MANUAL,
    confidence: int | None = None,
    notes: str | None = None,
) -> Reconciliation:
    """Link a pending line to an existing, unlinked transaction.

    Raises:
        LineNotFoundError: If the line does not belong to ``user_id``
        TransactionNotFoundError: If the transaction does not belong to ``user_id``
        InvalidTransitionError: If the line is not pending or ``match_type`` is ``created``
        TransactionAlreadyReconciledError: If the transaction is already linked
    """
    if match_type == MatchType.CREATED:
        raise InvalidTransitionError("Use create_transaction_from_line for created matches")
    if confidence is not None and not 0 <= confidence <= 100:
        raise ValueError("confidence must be between 0 and 100")

    line = await get_line(db, user_id, line_id, for_update=True)
    check_transition(line, StatementLineStatus.RECONCILED)

    result = await db.execute(
        select(Transaction.id).where(Transaction.id == transaction_id).where(Transaction.user_id == user_id)
    )
    if result.scalar_one_or_none() is None:
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
    await _ensure_transaction_unlinked(db, transaction_id)

    record = await _link(
        db,
        user_id,
        line,
        transaction_id,
        match_type=match_type,
        status=StatementLineStatus.RECONCILED,
        confidence=confidence,
        notes=notes,
    )

    logger.info(
        "Statement line reconciled",
        line_id=str(line.id),
        transaction_id=str(transaction_id),
        match_type=match_type.value,
        confidence=confidence,
    )
    return record


async def create_transaction_from_line(
    db: AsyncSession,
    user_id: UUID,
    line_id: UUID,
    category: str,
    *,
    supplier: str | None = None,
) -> Transaction:
    """Book a new transaction from a pending line and link it.

    The transaction takes the line's date, absolute amount and upper-cased
    description; its type follows the line's sign. The wallet balance is
    recomputed afterwards.
    """
    line = await get_line(db, user_id, line_id, for_update=True)
    check_transition(line, StatementLineStatus.CREATED)

    txn = Transaction(
        user_id=user_id,
        wallet_id=line.wallet_id,
        type=expected_transaction_type(line.amount),
        amount=abs(line.amount),
        txn_date=line.transaction_date,
        description=line.description.upper(),
        category=category,
        supplier=supplier or line.counterparty,
        subtype=TransactionSubtype.ACCOUNT.value,
    )
    db.add(txn)
    await db.flush()

    await _link(
        db,
        user_id,
        line,
        txn.id,
        match_type=MatchType.CREATED,
        status=StatementLineStatus.CREATED,
        confidence=None,
        notes=None,
    )
    await recompute_wallets(db, user_id, [line.wallet_id])

    logger.info(
        "Transaction created from statement line",
        line_id=str(line.id),
        transaction_id=str(txn.id),
        category=category,
    )
    return txn


async def ignore_line(db: AsyncSession, user_id: UUID, line_id: UUID) -> StatementLine:
    line = await get_line(db, user_id, line_id, for_update=True)
    check_transition(line, StatementLineStatus.IGNORED)
    line.reconciliation_status = StatementLineStatus.IGNORED
    await db.flush()
    logger.info("Statement line ignored", line_id=str(line.id))
    return line


async def undo_reconciliation(db: AsyncSession, user_id: UUID, line_id: UUID) -> StatementLine:
    """Return a line to pending.

    Deletes its Reconciliation row if it has one. Linked or created
    transactions are left untouched. An ignored line has no row, so undoing
    it only resets the status.

    Raises:
        NothingToUndoError: If the line is already pending
    """
    line = await get_line(db, user_id, line_id, for_update=True)
    if line.reconciliation_status == StatementLineStatus.PENDING:
        raise NothingToUndoError(f"Statement line {line.id} has nothing to undo")
    check_transition(line, StatementLineStatus.PENDING)

    previous = line.reconciliation_status
    if line.reconciliation is not None:
        await db.delete(line.reconciliation)
    line.reconciliation_status = StatementLineStatus.PENDING
    await db.flush()
    set_committed_value(line, "reconciliation", None)

    logger.info("Statement line reset to pending", line_id=str(line.id), previous_status=previous.value)
    return line


async def delete_import_batch(db: AsyncSession, user_id: UUID, batch_id: UUID) -> int:
    """Delete every line of an import batch along with their reconciliations.

    Transactions created from those lines stay as ordinary bookkeeping.
    Returns the number of deleted lines.
    """
    result = await db.execute(
        select(StatementLine.id)
        .where(StatementLine.import_batch_id == batch_id)
        .where(StatementLine.user_id == user_id)
    )
    line_ids = list(result.scalars().all())
    if not line_ids:
        raise BatchNotFoundError(f"Import batch {batch_id} not found")

    await db.execute(
        delete(Reconciliation)
        .where(Reconciliation.bank_line_id.in_(line_ids))
        .where(Reconciliation.user_id == user_id)
    )
    await db.execute(
        delete(StatementLine).where(StatementLine.id.in_(line_ids))
    )
    await db.flush()

    logger.info("Import batch deleted", batch_id=str(batch_id), deleted_lines=len(line_ids))
    return len(line_ids)


# =============================================================================
# Read models
# =============================================================================


@dataclass
class StatementLineView:
    line: StatementLine
    matched_transaction: Transaction | None = None
    suggestions: list[MatchSuggestion] = field(default_factory=list)


@dataclass(frozen=True)
class ReconciliationStats:
    total: int
    pending: int
    reconciled: int
    created: int
    ignored: int
    total_income: Decimal
    total_expense: Decimal
    percent_reconciled: int


@dataclass(frozen=True)
class ImportBatchSummary:
    batch_id: UUID
    source_file_name: str | None
    imported_at: datetime
    line_count: int
    pending: int
    reconciled: int
    created: int
    ignored: int


async def list_statement_lines(
    db: AsyncSession,
    user_id: UUID,
    wallet_id: UUID,
    *,
    status: StatementLineStatus | None = None,
    config: MatchingConfig | None = None,
) -> list[StatementLineView]:
    """Lines of a wallet, newest first, with match state and suggestions.

    Suggestions are computed for pending lines only, from one candidate
    query covering the date span of all of them.
    """
    await get_wallet(db, user_id, wallet_id)
    config = config or load_matching_config()

    query = (
        select(StatementLine)
        .where(StatementLine.user_id == user_id)
        .where(StatementLine.wallet_id == wallet_id)
        .options(selectinload(StatementLine.reconciliation))
        .execution_options(populate_existing=True)
        .order_by(StatementLine.transaction_date.desc(), StatementLine.id)
    )
    if status is not None:
        query = query.where(StatementLine.reconciliation_status == status)
    result = await db.execute(query)
    lines = list(result.scalars().all())

    linked_ids = {
        line.reconciliation.transaction_id
        for line in lines
        if line.reconciliation is not None and line.reconciliation.transaction_id is not None
    }
    matched: dict[UUID, Transaction] = {}
    if linked_ids:
        txn_result = await db.execute(
            select(Transaction).where(Transaction.id.in_(linked_ids)).where(Transaction.user_id == user_id)
        )
        matched = {txn.id: txn for txn in txn_result.scalars().all()}

    pending = [line for line in lines if line.reconciliation_status == StatementLineStatus.PENDING]
    candidates: list[Transaction] = []
    if pending:
        candidates = await load_wallet_candidates(
            db,
            user_id=user_id,
            wallet_id=wallet_id,
            date_from=min(line.transaction_date for line in pending),
            date_to=max(line.transaction_date for line in pending),
            config=config,
        )

    views: list[StatementLineView] = []
    with log_timing(
        "score_candidates", logger=logger, level="debug", wallet_id=str(wallet_id), pending=len(pending)
    ) as timing:
        for line in lines:
            view = StatementLineView(line=line)
            if line.reconciliation is not None and line.reconciliation.transaction_id is not None:
                view.matched_transaction = matched.get(line.reconciliation.transaction_id)
            if line.reconciliation_status == StatementLineStatus.PENDING:
                view.suggestions = suggest_matches(line, candidates, config=config)
            views.append(view)
        timing["candidates"] = len(candidates)
    return views


def _percent(part: int, whole: int) -> int:
    if whole == 0:
        return 0
    return int((Decimal(part * 100) / Decimal(whole)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def get_reconciliation_stats(db: AsyncSession, user_id: UUID, wallet_id: UUID) -> ReconciliationStats:
    """Counts by status and income/expense totals over a wallet's imported lines."""
    await get_wallet(db, user_id, wallet_id)
    result = await db.execute(
        select(StatementLine.reconciliation_status, StatementLine.amount)
        .where(StatementLine.user_id == user_id)
        .where(StatementLine.wallet_id == wallet_id)
    )
    counts: Counter[StatementLineStatus] = Counter()
    income = Decimal("0")
    expense = Decimal("0")
    for status, amount in result.all():
        counts[status] += 1
        if amount > 0:
            income += amount
        elif amount < 0:
            expense += abs(amount)

    total = sum(counts.values())
    done = counts[StatementLineStatus.RECONCILED] + counts[StatementLineStatus.CREATED]
    return ReconciliationStats(
        total=total,
        pending=counts[StatementLineStatus.PENDING],
        reconciled=counts[StatementLineStatus.RECONCILED],
        created=counts[StatementLineStatus.CREATED],
        ignored=counts[StatementLineStatus.IGNORED],
        total_income=income,
        total_expense=expense,
        percent_reconciled=_percent(done, total),
    )


async def list_import_batches(db: AsyncSession, user_id: UUID, wallet_id: UUID) -> list[ImportBatchSummary]:
    """Import batches of a wallet, most recent first."""
    await get_wallet(db, user_id, wallet_id)
    result = await db.execute(
        select(
            StatementLine.import_batch_id,
            StatementLine.source_file_name,
            StatementLine.imported_at,
            StatementLine.reconciliation_status,
        )
        .where(StatementLine.user_id == user_id)
        .where(StatementLine.wallet_id == wallet_id)
    )

    grouped: dict[UUID, list] = defaultdict(list)
    for row in result.all():
        grouped[row.import_batch_id].append(row)

    summaries = []
    for batch_id, rows in grouped.items():
        counts = Counter(row.reconciliation_status for row in rows)
        summaries.append(
            ImportBatchSummary(
                batch_id=batch_id,
                source_file_name=rows[0].source_file_name,
                imported_at=min(row.imported_at for row in rows),
                line_count=len(rows),
                pending=counts[StatementLineStatus.PENDING],
                reconciled=counts[StatementLineStatus.RECONCILED],
                created=counts[StatementLineStatus.CREATED],
                ignored=counts[StatementLineStatus.IGNORED],
            )
        )
    summaries.sort(key=lambda summary: (summary.imported_at, str(summary.batch_id)), reverse=True)
    return summaries
