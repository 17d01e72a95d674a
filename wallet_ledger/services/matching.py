"""Match suggestion engine for imported statement lines.

Scores every plausible transaction against a statement line with additive
points (amount, date, text) and returns the best few. Amount and date are
hard cutoffs; text similarity only ever adds evidence.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.config import settings
from wallet_ledger.logger import get_logger
from wallet_ledger.models import Reconciliation, StatementLine, Transaction, TransactionType
from wallet_ledger.services.similarity import text_similarity

logger = get_logger(__name__)


@dataclass(frozen=True)
class MatchingConfig:
    """Runtime configuration for suggestion scoring."""

    excluded_subtypes: frozenset[str]
    max_suggestions: int = 5
    min_confidence: int = 40
    candidate_pool_limit: int = 500
    amount_tolerance: Decimal = Decimal("0.01")
    points_exact_amount: int = 40
    points_close_amount: int = 20
    points_same_day: int = 30
    points_within_3_days: int = 15
    points_within_7_days: int = 5
    points_high_text: int = 30
    points_partial_text: int = 15
    high_text_threshold: int = 80
    partial_text_threshold: int = 50
    max_date_distance_days: int = 7


def load_matching_config() -> MatchingConfig:
    """Build the matching configuration from application settings."""
    return MatchingConfig(
        excluded_subtypes=frozenset(settings.excluded_subtypes),
        max_suggestions=settings.max_suggestions,
        min_confidence=settings.min_confidence,
        candidate_pool_limit=settings.candidate_pool_limit,
    )


@dataclass
class MatchSuggestion:
    """A candidate transaction for a statement line. Computed on read."""

    transaction_id: UUID
    description: str
    amount: Decimal
    date: date
    category: str
    confidence: int
    match_reasons: list[str]


def expected_transaction_type(amount: Decimal) -> TransactionType:
    """Credits match income, debits match expenses."""
    return TransactionType.INCOME if amount >= 0 else TransactionType.EXPENSE


def score_amount(line_amount: Decimal, txn_amount: Decimal, config: MatchingConfig) -> tuple[int, str] | None:
    """Return (points, reason) or None when the amounts are too far apart."""
    bank_amount = abs(line_amount)
    diff = abs(bank_amount - abs(txn_amount))
    if diff == 0:
        return config.points_exact_amount, "exact_amount"
    if diff <= bank_amount * config.amount_tolerance:
        return config.points_close_amount, "close_amount"
    return None


def score_date(line_date: date, txn_date: date, config: MatchingConfig) -> tuple[int, str] | None:
    """Return (points, reason) or None when the dates are more than a week apart."""
    days = abs((line_date - txn_date).days)
    if days == 0:
        return config.points_same_day, "same_date"
    if days <= 3:
        return config.points_within_3_days, "date_within_3_days"
    if days <= config.max_date_distance_days:
        return config.points_within_7_days, "date_within_7_days"
    return None


def score_text(line: StatementLine, txn: Transaction, config: MatchingConfig) -> tuple[int, str | None]:
    description_score = text_similarity(line.description, txn.description)
    counterparty_score = (
        text_similarity(line.counterparty, txn.supplier or txn.description) if line.counterparty else 0
    )
    best = max(description_score, counterparty_score)
    if best >= config.high_text_threshold:
        return config.points_high_text, "high_text_match"
    if best >= config.partial_text_threshold:
        return config.points_partial_text, "partial_text_match"
    return 0, None


def is_eligible(txn: Transaction, line: StatementLine, config: MatchingConfig, linked_ids: frozenset[UUID]) -> bool:
    if txn.id in linked_ids:
        return False
    if txn.type != expected_transaction_type(line.amount):
        return False
    if txn.subtype and txn.subtype in config.excluded_subtypes:
        return False
    return True


def prefilter_candidates(
    line: StatementLine,
    candidates: Iterable[Transaction],
    config: MatchingConfig,
) -> list[Transaction]:
    """Cheap amount/date window filter applied before any edit-distance work.

    Keeps pool order and caps the pool at ``candidate_pool_limit``.
    """
    bank_amount = abs(line.amount)
    tolerance = bank_amount * config.amount_tolerance
    window = timedelta(days=config.max_date_distance_days)
    kept: list[Transaction] = []
    for txn in candidates:
        if abs(bank_amount - abs(txn.amount)) > tolerance:
            continue
        if abs(line.transaction_date - txn.txn_date) > window:
            continue
        kept.append(txn)
        if len(kept) >= config.candidate_pool_limit:
            logger.warning(
                "Candidate pool capped",
                line_id=str(line.id),
                limit=config.candidate_pool_limit,
            )
            break
    return kept


def suggest_matches(
    line: StatementLine,
    candidates: Sequence[Transaction],
    *,
    config: MatchingConfig | None = None,
    linked_transaction_ids: Iterable[UUID] = (),
) -> list[MatchSuggestion]:
    """Rank candidate transactions for one statement line.

    Pure function: no I/O, no mutation. Candidates that are already linked,
    of the wrong type, of an excluded subtype, or outside the amount/date
    cutoffs are skipped. Ties in confidence are ordered by transaction id.
    """
    config = config or load_matching_config()
    linked = frozenset(linked_transaction_ids)

    eligible = [txn for txn in candidates if is_eligible(txn, line, config, linked)]
    suggestions: list[MatchSuggestion] = []

    for txn in prefilter_candidates(line, eligible, config):
        amount_points = score_amount(line.amount, txn.amount, config)
        if amount_points is None:
            continue
        date_points = score_date(line.transaction_date, txn.txn_date, config)
        if date_points is None:
            continue
        text_points, text_reason = score_text(line, txn, config)

        confidence = amount_points[0] + date_points[0] + text_points
        if confidence < config.min_confidence:
            continue

        reasons = [amount_points[1], date_points[1]]
        if text_reason:
            reasons.append(text_reason)

        suggestions.append(
            MatchSuggestion(
                transaction_id=txn.id,
                description=txn.description,
                amount=txn.amount,
                date=txn.txn_date,
                category=txn.category,
                confidence=confidence,
                match_reasons=reasons,
            )
        )

    suggestions.sort(key=lambda item: (-item.confidence, item.transaction_id))
    return suggestions[: config.max_suggestions]


# =============================================================================
# Candidate pool loading
# =============================================================================


def linked_transaction_ids_query():
    return select(Reconciliation.transaction_id).where(Reconciliation.transaction_id.isnot(None))


async def load_wallet_candidates(
    db: AsyncSession,
    *,
    user_id: UUID,
    wallet_id: UUID,
    date_from: date,
    date_to: date,
    config: MatchingConfig | None = None,
) -> list[Transaction]:
    """Fetch unlinked, non-excluded transactions of a wallet within a date window.

    One query serves every pending line of a wallet; per-line filtering
    happens in ``suggest_matches``.
    """
    config = config or load_matching_config()
    window = timedelta(days=config.max_date_distance_days)

    query = (
        select(Transaction)
        .where(Transaction.user_id == user_id)
        .where(Transaction.wallet_id == wallet_id)
        .where(Transaction.txn_date.between(date_from - window, date_to + window))
        .where(Transaction.id.notin_(linked_transaction_ids_query()))
        .order_by(Transaction.txn_date, Transaction.id)
    )
    if config.excluded_subtypes:
        query = query.where(
            or_(
                Transaction.subtype.is_(None),
                Transaction.subtype.notin_(sorted(config.excluded_subtypes)),
            )
        )

    result = await db.execute(query)
    return list(result.scalars().all())


async def load_candidate_pool(
    db: AsyncSession,
    line: StatementLine,
    *,
    config: MatchingConfig | None = None,
) -> list[Transaction]:
    """Candidate pool for a single line, pre-filtered by type, amount and date."""
    config = config or load_matching_config()
    bank_amount = abs(line.amount)
    # Slightly wider than the scoring tolerance; the engine applies the exact rule.
    margin = bank_amount * config.amount_tolerance + Decimal("0.01")
    window = timedelta(days=config.max_date_distance_days)

    query = (
        select(Transaction)
        .where(Transaction.user_id == line.user_id)
        .where(Transaction.wallet_id == line.wallet_id)
        .where(Transaction.type == expected_transaction_type(line.amount))
        .where(Transaction.amount.between(bank_amount - margin, bank_amount + margin))
        .where(Transaction.txn_date.between(line.transaction_date - window, line.transaction_date + window))
        .where(Transaction.id.notin_(linked_transaction_ids_query()))
        .order_by(Transaction.txn_date, Transaction.id)
        .limit(config.candidate_pool_limit)
    )
    if config.excluded_subtypes:
        query = query.where(
            or_(
                Transaction.subtype.is_(None),
                Transaction.subtype.notin_(sorted(config.excluded_subtypes)),
            )
        )

    result = await db.execute(query)
    return list(result.scalars().all())


async def suggest_for_line(
    db: AsyncSession,
    line: StatementLine,
    *,
    config: MatchingConfig | None = None,
) -> list[MatchSuggestion]:
    """Load the pool for ``line`` and score it."""
    config = config or load_matching_config()
    pool = await load_candidate_pool(db, line, config=config)
    return suggest_matches(line, pool, config=config)
