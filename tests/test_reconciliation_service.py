"""Tests for the statement line state machine and its read models."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.models import (
    MatchType,
    Reconciliation,
    StatementLine,
    StatementLineStatus,
    Transaction,
    TransactionType,
)
from wallet_ledger.services import reconciliation as reconciliation_module
from wallet_ledger.services import transactions as transaction_service
from wallet_ledger.services.balance import get_wallet
from wallet_ledger.services.reconciliation import (
    BatchNotFoundError,
    InvalidTransitionError,
    LineNotFoundError,
    NothingToUndoError,
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


@pytest_asyncio.fixture
async def ledger(db, user_id, make_wallet, make_line, make_transaction):
    """A wallet with one pending debit line and a matching expense."""
    wallet = await make_wallet(user_id, initial_balance="500.00")
    line = await make_line(user_id, wallet.id, amount="-80.00", description="SUPERMARKET XYZ")
    txn = await make_transaction(user_id, wallet.id, amount="80.00", description="Supermarket XYZ")
    return wallet, line, txn


async def reconciliation_for(db, line_id):
    result = await db.execute(select(Reconciliation).where(Reconciliation.bank_line_id == line_id))
    return result.scalar_one_or_none()


@pytest.mark.asyncio
class TestReconcileWithTransaction:
    async def test_links_pending_line(self, db, user_id, ledger):
        """
        GIVEN a pending line and an unlinked transaction
        WHEN they are reconciled with a confidence
        THEN the line is reconciled and one record links them
        """
        _, line, txn = ledger

        record = await reconcile_with_transaction(
            db, user_id, line.id, txn.id, match_type=MatchType.AUTO, confidence=100, notes="auto"
        )
        await db.commit()

        assert line.reconciliation_status == StatementLineStatus.RECONCILED
        assert record.transaction_id == txn.id
        assert record.match_type == MatchType.AUTO
        assert record.confidence_score == 100
        assert record.reconciled_by == user_id
        assert (await reconciliation_for(db, line.id)).id == record.id

    async def test_line_can_only_be_matched_once(self, db, user_id, ledger, make_transaction):
        wallet, line, txn = ledger
        other = await make_transaction(user_id, wallet.id, amount="80.00")
        await reconcile_with_transaction(db, user_id, line.id, txn.id)

        with pytest.raises(InvalidTransitionError):
            await reconcile_with_transaction(db, user_id, line.id, other.id)

    async def test_transaction_can_only_be_matched_once(self, db, user_id, ledger, make_line):
        wallet, line, txn = ledger
        second_line = await make_line(user_id, wallet.id, amount="-80.00")
        await reconcile_with_transaction(db, user_id, line.id, txn.id)

        with pytest.raises(TransactionAlreadyReconciledError):
            await reconcile_with_transaction(db, user_id, second_line.id, txn.id)
        assert second_line.reconciliation_status == StatementLineStatus.PENDING

    async def test_concurrent_match_of_same_transaction(
        self, db, db_engine, user_id, ledger, make_line, monkeypatch
    ):
        """
        GIVEN a second request whose unlinked-transaction check ran before a first request committed
        WHEN the second request links another line to the same transaction
        THEN the unique constraint surfaces as TransactionAlreadyReconciledError
        """
        wallet, line, txn = ledger
        second_line = await make_line(user_id, wallet.id, amount="-80.00")
        await reconcile_with_transaction(db, user_id, line.id, txn.id)
        await db.commit()

        async def check_passed_earlier(session, transaction_id):
            return None

        monkeypatch.setattr(reconciliation_module, "_ensure_transaction_unlinked", check_passed_earlier)
        other = AsyncSession(db_engine, expire_on_commit=False)
        try:
            with pytest.raises(TransactionAlreadyReconciledError):
                await reconcile_with_transaction(other, user_id, second_line.id, txn.id)
            await other.rollback()
        finally:
            await other.close()

        result = await db.execute(
            select(StatementLine.reconciliation_status).where(StatementLine.id == second_line.id)
        )
        assert result.scalar_one() == StatementLineStatus.PENDING

    async def test_foreign_records_are_not_found(self, db, user_id, ledger, make_transaction):
        wallet, line, _ = ledger
        foreign_txn = await make_transaction(uuid4(), None, amount="80.00")

        with pytest.raises(TransactionNotFoundError):
            await reconcile_with_transaction(db, user_id, line.id, foreign_txn.id)
        with pytest.raises(LineNotFoundError):
            await reconcile_with_transaction(db, uuid4(), line.id, foreign_txn.id)

    async def test_created_match_type_is_reserved(self, db, user_id, ledger):
        _, line, txn = ledger
        with pytest.raises(InvalidTransitionError):
            await reconcile_with_transaction(db, user_id, line.id, txn.id, match_type=MatchType.CREATED)

    async def test_confidence_out_of_range(self, db, user_id, ledger):
        _, line, txn = ledger
        with pytest.raises(ValueError):
            await reconcile_with_transaction(db, user_id, line.id, txn.id, confidence=101)


@pytest.mark.asyncio
class TestCreateTransactionFromLine:
    async def test_books_and_links_a_new_transaction(self, db, user_id, make_wallet, make_line):
        """
        GIVEN a pending debit line with a counterparty
        WHEN a transaction is created from it
        THEN an expense mirrors the line, the line is created and the wallet balance follows
        """
        wallet = await make_wallet(user_id, initial_balance="500.00")
        line = await make_line(
            user_id, wallet.id, amount="-80.00", description="Padaria central", counterparty="PADARIA LTDA"
        )

        txn = await create_transaction_from_line(db, user_id, line.id, "food")
        await db.commit()

        assert txn.type == TransactionType.EXPENSE
        assert txn.amount == Decimal("80.00")
        assert txn.txn_date == line.transaction_date
        assert txn.description == "PADARIA CENTRAL"
        assert txn.supplier == "PADARIA LTDA"
        assert txn.subtype == "account"
        assert line.reconciliation_status == StatementLineStatus.CREATED

        record = await reconciliation_for(db, line.id)
        assert record.match_type == MatchType.CREATED
        assert record.transaction_id == txn.id
        assert record.confidence_score is None
        assert (await get_wallet(db, user_id, wallet.id)).current_balance == Decimal("420.00")

    async def test_credit_line_books_income(self, db, user_id, make_wallet, make_line):
        wallet = await make_wallet(user_id)
        line = await make_line(user_id, wallet.id, amount="35.10")

        txn = await create_transaction_from_line(db, user_id, line.id, "refund", supplier="Store")

        assert txn.type == TransactionType.INCOME
        assert txn.supplier == "Store"

    async def test_only_pending_lines(self, db, user_id, ledger):
        _, line, _ = ledger
        await ignore_line(db, user_id, line.id)

        with pytest.raises(InvalidTransitionError):
            await create_transaction_from_line(db, user_id, line.id, "food")


@pytest.mark.asyncio
class TestIgnoreAndUndo:
    async def test_ignore_then_undo(self, db, user_id, ledger):
        _, line, _ = ledger

        await ignore_line(db, user_id, line.id)
        assert line.reconciliation_status == StatementLineStatus.IGNORED
        with pytest.raises(InvalidTransitionError):
            await ignore_line(db, user_id, line.id)

        assert await reconciliation_for(db, line.id) is None

        await undo_reconciliation(db, user_id, line.id)
        assert line.reconciliation_status == StatementLineStatus.PENDING
        assert line.reconciliation is None

    async def test_undo_pending_has_nothing_to_undo(self, db, user_id, ledger):
        _, line, _ = ledger
        with pytest.raises(NothingToUndoError):
            await undo_reconciliation(db, user_id, line.id)

    async def test_undo_unlinks_but_keeps_the_transaction(self, db, user_id, ledger, make_line):
        """
        GIVEN a reconciled line
        WHEN the reconciliation is undone
        THEN the record is gone, the transaction remains and can be matched again
        """
        wallet, line, txn = ledger
        await reconcile_with_transaction(db, user_id, line.id, txn.id)
        await db.commit()

        await undo_reconciliation(db, user_id, line.id)
        await db.commit()

        assert line.reconciliation_status == StatementLineStatus.PENDING
        assert await reconciliation_for(db, line.id) is None
        assert await db.get(Transaction, txn.id) is not None

        other_line = await make_line(user_id, wallet.id, amount="-80.00")
        await reconcile_with_transaction(db, user_id, other_line.id, txn.id)

    async def test_undo_created_keeps_booked_transaction(self, db, user_id, ledger):
        wallet, line, _ = ledger
        created = await create_transaction_from_line(db, user_id, line.id, "food")
        await db.commit()

        await undo_reconciliation(db, user_id, line.id)
        await db.commit()

        assert await db.get(Transaction, created.id) is not None
        assert (await get_wallet(db, user_id, wallet.id)).current_balance == Decimal("420.00")

    async def test_deleting_a_linked_transaction_keeps_the_record(self, db, user_id, ledger):
        _, line, txn = ledger
        await reconcile_with_transaction(db, user_id, line.id, txn.id)
        await db.commit()

        await transaction_service.delete_transaction(db, user_id, txn.id)
        await db.commit()

        result = await db.execute(select(Reconciliation.transaction_id).where(Reconciliation.bank_line_id == line.id))
        assert result.scalar_one() is None


@pytest.mark.asyncio
class TestDeleteImportBatch:
    async def test_removes_lines_and_records_only(self, db, user_id, make_wallet, make_line):
        """
        GIVEN a batch with a created line and a pending line, and a second batch
        WHEN the first batch is deleted
        THEN its lines and records are gone while the booked transaction and the other batch stay
        """
        wallet = await make_wallet(user_id)
        batch_id = uuid4()
        created_line = await make_line(user_id, wallet.id, amount="-10.00", batch_id=batch_id)
        await make_line(user_id, wallet.id, amount="-20.00", batch_id=batch_id)
        survivor = await make_line(user_id, wallet.id, amount="-30.00")
        txn = await create_transaction_from_line(db, user_id, created_line.id, "misc")
        await db.commit()

        deleted = await delete_import_batch(db, user_id, batch_id)
        await db.commit()

        assert deleted == 2
        remaining = (await db.execute(select(StatementLine.id))).scalars().all()
        assert remaining == [survivor.id]
        assert (await db.execute(select(Reconciliation.id))).scalars().all() == []
        assert await db.get(Transaction, txn.id) is not None

    async def test_unknown_or_foreign_batch(self, db, user_id, make_wallet, make_line):
        wallet = await make_wallet(user_id)
        batch_id = uuid4()
        await make_line(user_id, wallet.id, amount="-10.00", batch_id=batch_id)

        with pytest.raises(BatchNotFoundError):
            await delete_import_batch(db, user_id, uuid4())
        with pytest.raises(BatchNotFoundError):
            await delete_import_batch(db, uuid4(), batch_id)


@pytest.mark.asyncio
class TestReadModels:
    async def test_lines_carry_match_state_and_suggestions(self, db, user_id, ledger, make_line, make_transaction):
        wallet, pending_line, txn = ledger
        matched_line = await make_line(
            user_id, wallet.id, amount="-45.00", transaction_date=date(2024, 3, 12), description="GAS STATION"
        )
        matched_txn = await make_transaction(user_id, wallet.id, amount="45.00", txn_date=date(2024, 3, 12))
        await reconcile_with_transaction(db, user_id, matched_line.id, matched_txn.id)
        await db.commit()

        views = await list_statement_lines(db, user_id, wallet.id)

        by_id = {view.line.id: view for view in views}
        assert [view.line.id for view in views] == [matched_line.id, pending_line.id]
        assert by_id[matched_line.id].matched_transaction.id == matched_txn.id
        assert by_id[matched_line.id].suggestions == []
        suggestions = by_id[pending_line.id].suggestions
        assert [item.transaction_id for item in suggestions] == [txn.id]
        assert suggestions[0].confidence == 100

    async def test_status_filter(self, db, user_id, ledger):
        wallet, line, _ = ledger
        await ignore_line(db, user_id, line.id)
        await db.commit()

        assert await list_statement_lines(db, user_id, wallet.id, status=StatementLineStatus.PENDING) == []
        ignored = await list_statement_lines(db, user_id, wallet.id, status=StatementLineStatus.IGNORED)
        assert [view.line.id for view in ignored] == [line.id]

    async def test_stats(self, db, user_id, make_wallet, make_line, make_transaction):
        """
        GIVEN three lines of which one is reconciled and one ignored
        WHEN stats are computed
        THEN counts, totals and a rounded percentage are reported
        """
        wallet = await make_wallet(user_id)
        credit = await make_line(user_id, wallet.id, amount="100.00")
        debit = await make_line(user_id, wallet.id, amount="-40.00")
        await make_line(user_id, wallet.id, amount="-2.50")
        txn = await make_transaction(user_id, wallet.id, amount="100.00", txn_type=TransactionType.INCOME)
        await reconcile_with_transaction(db, user_id, credit.id, txn.id)
        await ignore_line(db, user_id, debit.id)
        await db.commit()

        stats = await get_reconciliation_stats(db, user_id, wallet.id)

        assert (stats.total, stats.pending, stats.reconciled, stats.created, stats.ignored) == (3, 1, 1, 0, 1)
        assert stats.total_income == Decimal("100.00")
        assert stats.total_expense == Decimal("42.50")
        assert stats.percent_reconciled == 33

    async def test_stats_of_empty_wallet(self, db, user_id, make_wallet):
        wallet = await make_wallet(user_id)
        stats = await get_reconciliation_stats(db, user_id, wallet.id)
        assert stats.total == 0
        assert stats.percent_reconciled == 0

    async def test_import_batches(self, db, user_id, make_wallet, make_line):
        wallet = await make_wallet(user_id)
        batch_id = uuid4()
        first = await make_line(user_id, wallet.id, amount="-1.00", batch_id=batch_id)
        await make_line(user_id, wallet.id, amount="-2.00", batch_id=batch_id)
        await make_line(user_id, wallet.id, amount="-3.00")
        await ignore_line(db, user_id, first.id)
        await db.commit()

        batches = await list_import_batches(db, user_id, wallet.id)

        assert len(batches) == 2
        summary = next(batch for batch in batches if batch.batch_id == batch_id)
        assert (summary.line_count, summary.pending, summary.ignored) == (2, 1, 1)
        assert batches[0].imported_at >= batches[1].imported_at
