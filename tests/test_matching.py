"""Tests for the match suggestion engine."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from wallet_ledger.models import StatementLine, StatementLineStatus, Transaction, TransactionType
from wallet_ledger.services.matching import (
    MatchingConfig,
    expected_transaction_type,
    prefilter_candidates,
    score_amount,
    score_date,
    suggest_matches,
)

LINE_DATE = date(2024, 3, 10)
OWNER = uuid4()
WALLET = uuid4()


@pytest.fixture
def config() -> MatchingConfig:
    return MatchingConfig(excluded_subtypes=frozenset({"transfer_out", "transfer_in", "card_payment"}))


def make_line(amount: str, description: str = "SUPERMARKET XYZ", counterparty: str | None = None) -> StatementLine:
    return StatementLine(
        id=uuid4(),
        user_id=OWNER,
        wallet_id=WALLET,
        transaction_date=LINE_DATE,
        description=description,
        counterparty=counterparty,
        amount=Decimal(amount),
        fingerprint="fp",
        import_batch_id=uuid4(),
        reconciliation_status=StatementLineStatus.PENDING,
    )


def make_txn(
    amount: str,
    *,
    days: int = 0,
    description: str = "Supermarket XYZ",
    txn_type: TransactionType = TransactionType.EXPENSE,
    supplier: str | None = None,
    subtype: str | None = None,
    txn_id: UUID | None = None,
) -> Transaction:
    return Transaction(
        id=txn_id or uuid4(),
        user_id=OWNER,
        wallet_id=WALLET,
        type=txn_type,
        amount=Decimal(amount),
        txn_date=LINE_DATE + timedelta(days=days),
        description=description,
        category="groceries",
        supplier=supplier,
        subtype=subtype,
    )


class TestScoringRules:
    def test_credit_expects_income_and_debit_expects_expense(self):
        assert expected_transaction_type(Decimal("10")) == TransactionType.INCOME
        assert expected_transaction_type(Decimal("0")) == TransactionType.INCOME
        assert expected_transaction_type(Decimal("-0.01")) == TransactionType.EXPENSE

    def test_amount_points(self, config):
        assert score_amount(Decimal("-100.00"), Decimal("100.00"), config) == (40, "exact_amount")
        assert score_amount(Decimal("-100.00"), Decimal("101.00"), config) == (20, "close_amount")
        assert score_amount(Decimal("-100.00"), Decimal("99.00"), config) == (20, "close_amount")
        assert score_amount(Decimal("-100.00"), Decimal("101.01"), config) is None

    @pytest.mark.parametrize(
        ("days", "expected"),
        [
            (0, (30, "same_date")),
            (1, (15, "date_within_3_days")),
            (-3, (15, "date_within_3_days")),
            (4, (5, "date_within_7_days")),
            (-7, (5, "date_within_7_days")),
            (8, None),
        ],
    )
    def test_date_points(self, config, days, expected):
        assert score_date(LINE_DATE, LINE_DATE + timedelta(days=days), config) == expected


class TestSuggestMatches:
    def test_perfect_match_scores_100(self, config):
        """
        GIVEN a debit line and an expense with equal amount, date and description
        WHEN suggestions are computed
        THEN the transaction scores 100 with all three reasons
        """
        line = make_line("-100.00")
        txn = make_txn("100.00")

        suggestions = suggest_matches(line, [txn], config=config)

        assert len(suggestions) == 1
        assert suggestions[0].transaction_id == txn.id
        assert suggestions[0].confidence == 100
        assert suggestions[0].match_reasons == ["exact_amount", "same_date", "high_text_match"]

    def test_exact_amount_near_date_and_similar_text_scores_85(self, config):
        line = make_line("-100.00")
        txn = make_txn("100.00", days=2, description="Supermarket XY")

        suggestions = suggest_matches(line, [txn], config=config)

        assert suggestions[0].confidence == 85
        assert suggestions[0].match_reasons == ["exact_amount", "date_within_3_days", "high_text_match"]

    def test_partial_text_match(self, config):
        line = make_line("-100.00")
        txn = make_txn("100.00", description="Supermarket")

        suggestions = suggest_matches(line, [txn], config=config)

        assert suggestions[0].confidence == 85
        assert suggestions[0].match_reasons[-1] == "partial_text_match"

    def test_counterparty_matches_supplier(self, config):
        line = make_line("-250.00", description="PIX ENVIADO 0042", counterparty="ACME LTDA")
        txn = make_txn("250.00", description="Office chairs", supplier="Acme Ltda")

        suggestions = suggest_matches(line, [txn], config=config)

        assert suggestions[0].confidence == 100
        assert "high_text_match" in suggestions[0].match_reasons

    def test_minimum_confidence_boundary(self, config):
        """
        GIVEN one candidate scoring exactly 40 and one scoring 35
        WHEN suggestions are computed
        THEN only the 40-point candidate is suggested
        """
        line = make_line("-100.00")
        at_threshold = make_txn("101.00", days=5, description="Supermarket")  # 20 + 5 + 15
        below = make_txn("101.00", days=2, description="Electricity bill")  # 20 + 15

        suggestions = suggest_matches(line, [at_threshold, below], config=config)

        assert [item.transaction_id for item in suggestions] == [at_threshold.id]
        assert suggestions[0].confidence == 40

    def test_amount_and_date_are_hard_cutoffs(self, config):
        line = make_line("-100.00")
        too_far_in_amount = make_txn("102.00")
        too_far_in_time = make_txn("100.00", days=8)

        assert suggest_matches(line, [too_far_in_amount, too_far_in_time], config=config) == []

    def test_wrong_direction_is_never_suggested(self, config):
        line = make_line("-100.00")
        income = make_txn("100.00", txn_type=TransactionType.INCOME)

        assert suggest_matches(line, [income], config=config) == []

    def test_excluded_subtypes_are_skipped(self, config):
        line = make_line("-100.00")
        transfer = make_txn("100.00", subtype="transfer_out")
        regular = make_txn("100.00", subtype="account")

        suggestions = suggest_matches(line, [transfer, regular], config=config)

        assert [item.transaction_id for item in suggestions] == [regular.id]

    def test_linked_transactions_are_skipped(self, config):
        line = make_line("-100.00")
        linked = make_txn("100.00")
        free = make_txn("100.00", days=1)

        suggestions = suggest_matches(line, [linked, free], config=config, linked_transaction_ids=[linked.id])

        assert [item.transaction_id for item in suggestions] == [free.id]

    def test_ordered_by_confidence_then_transaction_id(self, config):
        """
        GIVEN candidates with tied and distinct confidences
        WHEN suggestions are computed
        THEN they are ordered by confidence descending and ties by id ascending
        """
        line = make_line("-100.00")
        low = make_txn("100.00", days=5, txn_id=UUID(int=1))
        tie_b = make_txn("100.00", txn_id=UUID(int=3))
        tie_a = make_txn("100.00", txn_id=UUID(int=2))

        suggestions = suggest_matches(line, [low, tie_b, tie_a], config=config)

        assert [item.transaction_id for item in suggestions] == [UUID(int=2), UUID(int=3), UUID(int=1)]
        assert [item.confidence for item in suggestions] == [100, 100, 75]

    def test_results_are_capped(self, config):
        line = make_line("-100.00")
        candidates = [make_txn("100.00") for _ in range(7)]

        suggestions = suggest_matches(line, candidates, config=config)

        assert len(suggestions) == 5

    def test_input_is_not_mutated(self, config):
        line = make_line("-100.00")
        candidates = [make_txn("100.00", days=1), make_txn("100.00")]
        before = [txn.id for txn in candidates]

        suggest_matches(line, candidates, config=config)

        assert [txn.id for txn in candidates] == before
        assert line.reconciliation_status == StatementLineStatus.PENDING


class TestPrefilter:
    def test_pool_is_capped_in_order(self):
        config = MatchingConfig(excluded_subtypes=frozenset(), candidate_pool_limit=2)
        line = make_line("-100.00")
        candidates = [make_txn("100.00") for _ in range(3)]

        kept = prefilter_candidates(line, candidates, config)

        assert kept == candidates[:2]

    def test_window_drops_distant_candidates(self, config):
        line = make_line("50.00")
        near = make_txn("50.25", days=-7, txn_type=TransactionType.INCOME)
        far = make_txn("50.00", days=9, txn_type=TransactionType.INCOME)

        assert prefilter_candidates(line, [near, far], config) == [near]
