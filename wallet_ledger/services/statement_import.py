"""Statement line import.

Lines are inserted as a batch sharing one ``import_batch_id`` so that a
whole import can be rolled back later. The importer itself never rejects
duplicates; callers dedup against ``get_existing_fingerprints`` first.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wallet_ledger.logger import get_logger
from wallet_ledger.models import StatementLine, StatementLineStatus
from wallet_ledger.schemas.statement import ColumnMapping, StatementLineInput
from wallet_ledger.services.balance import get_wallet
from wallet_ledger.services.csv_parsing import parse_csv_content, transform_with_mappings
from wallet_ledger.services.fingerprint import deduplicate_lines, generate_fingerprint

logger = get_logger(__name__)


class StatementImportError(Exception):
    """Base exception for statement import errors."""


class EmptyImportError(StatementImportError):
    """Nothing to import."""


@dataclass(frozen=True)
class ImportResult:
    batch_id: UUID
    count: int


@dataclass(frozen=True)
class CsvImportResult:
    batch_id: UUID | None
    imported: int
    duplicates: int
    skipped_rows: int


async def get_existing_fingerprints(db: AsyncSession, user_id: UUID, wallet_id: UUID) -> set[str]:
    """Fingerprints of every line already imported into a wallet."""
    result = await db.execute(
        select(StatementLine.fingerprint)
        .where(StatementLine.user_id == user_id)
        .where(StatementLine.wallet_id == wallet_id)
    )
    return set(result.scalars().all())


async def import_bank_lines(
    db: AsyncSession,
    user_id: UUID,
    wallet_id: UUID,
    lines: Sequence[StatementLineInput],
    *,
    source_file_name: str | None = None,
) -> ImportResult:
    """Insert ``lines`` as one pending batch.

    Raises:
        WalletNotFoundError: If the wallet is not owned by ``user_id``
        EmptyImportError: If ``lines`` is empty
    """
    if not lines:
        raise EmptyImportError("No lines to import")
    await get_wallet(db, user_id, wallet_id)

    batch_id = uuid4()
    rows = [
        StatementLine(
            user_id=user_id,
            wallet_id=wallet_id,
            bank_reference=line.bank_reference,
            transaction_date=line.transaction_date,
            description=line.description,
            counterparty=line.counterparty,
            amount=line.amount,
            fingerprint=line.fingerprint
            or generate_fingerprint(line.transaction_date, line.amount, line.description),
            import_batch_id=batch_id,
            source_file_name=source_file_name,
            reconciliation_status=StatementLineStatus.PENDING,
        )
        for line in lines
    ]
    db.add_all(rows)
    await db.flush()

    logger.info(
        "Statement lines imported",
        wallet_id=str(wallet_id),
        batch_id=str(batch_id),
        count=len(rows),
        source_file_name=source_file_name,
    )
    return ImportResult(batch_id=batch_id, count=len(rows))


async def import_csv_statement(
    db: AsyncSession,
    user_id: UUID,
    wallet_id: UUID,
    content: str,
    mappings: Sequence[ColumnMapping],
    *,
    source_file_name: str | None = None,
) -> CsvImportResult:
    """Parse a CSV export, drop already-imported rows and import the rest.

    Raises:
        CsvParseError: If the content or mapping is unusable
        WalletNotFoundError: If the wallet is not owned by ``user_id``
    """
    await get_wallet(db, user_id, wallet_id)

    table = parse_csv_content(content)
    transformed = transform_with_mappings(table.headers, table.rows, mappings)
    existing = await get_existing_fingerprints(db, user_id, wallet_id)
    unique, duplicates = deduplicate_lines(transformed.lines, existing)

    batch_id = None
    if unique:
        result = await import_bank_lines(db, user_id, wallet_id, unique, source_file_name=source_file_name)
        batch_id = result.batch_id

    logger.info(
        "CSV statement processed",
        wallet_id=str(wallet_id),
        separator=table.separator,
        imported=len(unique),
        duplicates=duplicates,
        skipped_rows=transformed.skipped_rows,
    )
    return CsvImportResult(
        batch_id=batch_id,
        imported=len(unique),
        duplicates=duplicates,
        skipped_rows=transformed.skipped_rows,
    )
