"""Tests for statement line import."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from wallet_ledger.models import StatementLine, StatementLineStatus
from wallet_ledger.schemas.statement import ColumnMapping, ColumnRole, StatementLineInput
from wallet_ledger.services.balance import WalletNotFoundError
from wallet_ledger.services.csv_parsing import CsvParseError
from wallet_ledger.services.statement_import import (
    EmptyImportError,
    get_existing_fingerprints,
    import_bank_lines,
    import_csv_statement,
)

CSV_EXPORT = (
    "Data;Historico;Valor\n"
    "01/03/2024;PIX RECEBIDO;1.500,00\n"
    "02/03/2024;PADARIA;-12,50\n"
    "02/03/2024;PADARIA;-12,50\n"
)
MAPPINGS = [
    ColumnMapping(column="Data", role=ColumnRole.DATE),
    ColumnMapping(column="Historico", role=ColumnRole.DESCRIPTION),
    ColumnMapping(column="Valor", role=ColumnRole.AMOUNT),
]


@pytest.mark.asyncio
class TestImportBankLines:
    async def test_lines_share_a_batch_and_start_pending(self, db, user_id, make_wallet):
        wallet = await make_wallet(user_id)
        lines = [
            StatementLineInput(transaction_date=date(2024, 3, 1), description="Rent", amount=Decimal("-900.00")),
            StatementLineInput(
                transaction_date=date(2024, 3, 2),
                description="Refund",
                amount=Decimal("15.00"),
                fingerprint="custom-fingerprint",
            ),
        ]

        result = await import_bank_lines(db, user_id, wallet.id, lines, source_file_name="march.csv")
        await db.commit()

        assert result.count == 2
        rows = (await db.execute(select(StatementLine).order_by(StatementLine.transaction_date))).scalars().all()
        assert {row.import_batch_id for row in rows} == {result.batch_id}
        assert all(row.reconciliation_status == StatementLineStatus.PENDING for row in rows)
        assert rows[0].fingerprint == "2024-03-01|-900.00|rent"
        assert rows[1].fingerprint == "custom-fingerprint"
        assert rows[0].source_file_name == "march.csv"

    async def test_duplicates_are_not_rejected(self, db, user_id, make_wallet):
        wallet = await make_wallet(user_id)
        line = StatementLineInput(transaction_date=date(2024, 3, 1), description="Rent", amount=Decimal("-1"))

        first = await import_bank_lines(db, user_id, wallet.id, [line])
        second = await import_bank_lines(db, user_id, wallet.id, [line])

        assert first.batch_id != second.batch_id
        assert await get_existing_fingerprints(db, user_id, wallet.id) == {"2024-03-01|-1.00|rent"}

    async def test_empty_import_is_rejected(self, db, user_id, make_wallet):
        wallet = await make_wallet(user_id)
        with pytest.raises(EmptyImportError):
            await import_bank_lines(db, user_id, wallet.id, [])

    async def test_foreign_wallet_is_rejected(self, db, user_id, make_wallet):
        wallet = await make_wallet(uuid4())
        line = StatementLineInput(transaction_date=date(2024, 3, 1), description="Rent", amount=Decimal("-1"))
        with pytest.raises(WalletNotFoundError):
            await import_bank_lines(db, user_id, wallet.id, [line])

    async def test_fingerprints_are_scoped_to_owner_and_wallet(self, db, user_id, make_wallet):
        mine = await make_wallet(user_id)
        other = await make_wallet(user_id, name="Other")
        line = StatementLineInput(transaction_date=date(2024, 3, 1), description="Rent", amount=Decimal("-1"))
        await import_bank_lines(db, user_id, other.id, [line])

        assert await get_existing_fingerprints(db, user_id, mine.id) == set()
        assert await get_existing_fingerprints(db, uuid4(), other.id) == set()


@pytest.mark.asyncio
class TestImportCsvStatement:
    async def test_reimport_skips_known_lines(self, db, user_id, make_wallet):
        """
        GIVEN a CSV export with a repeated row
        WHEN it is imported twice
        THEN the first import keeps two lines and the second imports nothing
        """
        wallet = await make_wallet(user_id)

        first = await import_csv_statement(db, user_id, wallet.id, CSV_EXPORT, MAPPINGS, source_file_name="a.csv")
        await db.commit()
        second = await import_csv_statement(db, user_id, wallet.id, CSV_EXPORT, MAPPINGS)

        assert (first.imported, first.duplicates, first.skipped_rows) == (2, 1, 0)
        assert first.batch_id is not None
        assert (second.imported, second.duplicates) == (0, 3)
        assert second.batch_id is None

    async def test_bad_date_aborts_the_whole_import(self, db, user_id, make_wallet):
        wallet = await make_wallet(user_id)
        content = "Data;Historico;Valor\n01/03/2024;OK;1,00\nontem;BAD;2,00\n"

        with pytest.raises(CsvParseError):
            await import_csv_statement(db, user_id, wallet.id, content, MAPPINGS)

        assert await get_existing_fingerprints(db, user_id, wallet.id) == set()
