"""Reconciliation API router."""

from typing import NoReturn
from uuid import UUID

from fastapi import APIRouter, Query, status

from wallet_ledger.deps import CurrentUserId, DbSession
from wallet_ledger.logger import get_logger
from wallet_ledger.models import MatchType, StatementLineStatus
from wallet_ledger.schemas import (
    BatchDeleteResponse,
    CreateTransactionRequest,
    CsvImportRequest,
    CsvImportResponse,
    FingerprintListResponse,
    ImportBatchResponse,
    ImportLinesRequest,
    ImportResultResponse,
    LineActionResponse,
    ListResponse,
    MatchedTransactionSummary,
    MatchSuggestionResponse,
    ReconcileRequest,
    ReconciliationStatsResponse,
    StatementLineResponse,
)
from wallet_ledger.services import reconciliation as reconciliation_service
from wallet_ledger.services import statement_import
from wallet_ledger.services.balance import WalletNotFoundError
from wallet_ledger.services.csv_parsing import CsvParseError
from wallet_ledger.services.reconciliation import (
    BatchNotFoundError,
    LineNotFoundError,
    ReconciliationError,
    StatementLineView,
    TransactionNotFoundError,
)
from wallet_ledger.services.statement_import import StatementImportError
from wallet_ledger.utils.exceptions import raise_bad_request, raise_conflict, raise_not_found

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])
logger = get_logger(__name__)


def _raise_for(exc: Exception) -> NoReturn:
    """Map a service failure onto its HTTP status."""
    if isinstance(exc, WalletNotFoundError):
        raise_not_found("Wallet", cause=exc)
    if isinstance(exc, LineNotFoundError):
        raise_not_found("Statement line", cause=exc)
    if isinstance(exc, TransactionNotFoundError):
        raise_not_found("Transaction", cause=exc)
    if isinstance(exc, BatchNotFoundError):
        raise_not_found("Import batch", cause=exc)
    if isinstance(exc, ReconciliationError):
        raise_conflict(str(exc), cause=exc)
    raise_bad_request(str(exc), cause=exc)


def _build_line_response(view: StatementLineView) -> StatementLineResponse:
    response = StatementLineResponse.model_validate(view.line)
    if view.matched_transaction is not None:
        response.matched_transaction = MatchedTransactionSummary.model_validate(view.matched_transaction)
    response.suggestions = [MatchSuggestionResponse.model_validate(item) for item in view.suggestions]
    return response


# =============================================================================
# Import
# =============================================================================


@router.post(
    "/wallets/{wallet_id}/lines",
    response_model=ImportResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_lines(
    wallet_id: UUID,
    payload: ImportLinesRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> ImportResultResponse:
    """Import statement lines as one batch. Duplicates are not rejected."""
    try:
        result = await statement_import.import_bank_lines(
            db, user_id, wallet_id, payload.lines, source_file_name=payload.source_file_name
        )
        await db.commit()
    except (WalletNotFoundError, StatementImportError) as exc:
        await db.rollback()
        _raise_for(exc)
    return ImportResultResponse(batch_id=result.batch_id, count=result.count)


@router.post(
    "/wallets/{wallet_id}/import-csv",
    response_model=CsvImportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_csv(
    wallet_id: UUID,
    payload: CsvImportRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> CsvImportResponse:
    """Parse a CSV export, skip lines already imported, import the rest."""
    try:
        result = await statement_import.import_csv_statement(
            db,
            user_id,
            wallet_id,
            payload.content,
            payload.mappings,
            source_file_name=payload.source_file_name,
        )
        await db.commit()
    except (WalletNotFoundError, CsvParseError, StatementImportError) as exc:
        await db.rollback()
        _raise_for(exc)
    return CsvImportResponse(
        batch_id=result.batch_id,
        imported=result.imported,
        duplicates=result.duplicates,
        skipped_rows=result.skipped_rows,
    )


@router.get("/wallets/{wallet_id}/fingerprints", response_model=FingerprintListResponse)
async def existing_fingerprints(
    wallet_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> FingerprintListResponse:
    fingerprints = await statement_import.get_existing_fingerprints(db, user_id, wallet_id)
    return FingerprintListResponse(wallet_id=wallet_id, fingerprints=sorted(fingerprints))


# =============================================================================
# Read models
# =============================================================================


@router.get("/wallets/{wallet_id}/lines", response_model=ListResponse[StatementLineResponse])
async def list_lines(
    wallet_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
    line_status: StatementLineStatus | None = Query(default=None, alias="status"),
) -> ListResponse[StatementLineResponse]:
    """Statement lines with their match state; pending lines carry suggestions."""
    try:
        views = await reconciliation_service.list_statement_lines(db, user_id, wallet_id, status=line_status)
    except WalletNotFoundError as exc:
        _raise_for(exc)
    items = [_build_line_response(view) for view in views]
    return ListResponse[StatementLineResponse](items=items, total=len(items))


@router.get("/wallets/{wallet_id}/stats", response_model=ReconciliationStatsResponse)
async def reconciliation_stats(
    wallet_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> ReconciliationStatsResponse:
    try:
        stats = await reconciliation_service.get_reconciliation_stats(db, user_id, wallet_id)
    except WalletNotFoundError as exc:
        _raise_for(exc)
    return ReconciliationStatsResponse(
        total=stats.total,
        pending=stats.pending,
        reconciled=stats.reconciled,
        created=stats.created,
        ignored=stats.ignored,
        total_income=stats.total_income,
        total_expense=stats.total_expense,
        percent_reconciled=stats.percent_reconciled,
    )


@router.get("/wallets/{wallet_id}/batches", response_model=ListResponse[ImportBatchResponse])
async def list_batches(
    wallet_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> ListResponse[ImportBatchResponse]:
    try:
        batches = await reconciliation_service.list_import_batches(db, user_id, wallet_id)
    except WalletNotFoundError as exc:
        _raise_for(exc)
    items = [ImportBatchResponse.model_validate(batch, from_attributes=True) for batch in batches]
    return ListResponse[ImportBatchResponse](items=items, total=len(items))


# =============================================================================
# State transitions
# =============================================================================


@router.post("/lines/{line_id}/reconcile", response_model=LineActionResponse)
async def reconcile_line(
    line_id: UUID,
    payload: ReconcileRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> LineActionResponse:
    """Link a pending line to an existing transaction."""
    try:
        record = await reconciliation_service.reconcile_with_transaction(
            db,
            user_id,
            line_id,
            payload.transaction_id,
            match_type=MatchType(payload.match_type.value),
            confidence=payload.confidence,
            notes=payload.notes,
        )
        await db.commit()
    except ReconciliationError as exc:
        await db.rollback()
        logger.debug("Reconcile rejected", line_id=str(line_id), reason=str(exc))
        _raise_for(exc)
    return LineActionResponse(
        line_id=line_id,
        status=StatementLineStatus.RECONCILED,
        transaction_id=record.transaction_id,
    )


@router.post("/lines/{line_id}/create-transaction", response_model=LineActionResponse)
async def create_transaction(
    line_id: UUID,
    payload: CreateTransactionRequest,
    db: DbSession,
    user_id: CurrentUserId,
) -> LineActionResponse:
    """Book a new transaction from a pending line and link it."""
    try:
        txn = await reconciliation_service.create_transaction_from_line(
            db, user_id, line_id, payload.category, supplier=payload.supplier
        )
        await db.commit()
    except (ReconciliationError, WalletNotFoundError) as exc:
        await db.rollback()
        _raise_for(exc)
    return LineActionResponse(line_id=line_id, status=StatementLineStatus.CREATED, transaction_id=txn.id)


@router.post("/lines/{line_id}/ignore", response_model=LineActionResponse)
async def ignore_line(
    line_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> LineActionResponse:
    try:
        line = await reconciliation_service.ignore_line(db, user_id, line_id)
        await db.commit()
    except ReconciliationError as exc:
        await db.rollback()
        _raise_for(exc)
    return LineActionResponse(line_id=line.id, status=line.reconciliation_status)


@router.post("/lines/{line_id}/undo", response_model=LineActionResponse)
async def undo_line(
    line_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> LineActionResponse:
    """Return a line to pending. Linked transactions are kept."""
    try:
        line = await reconciliation_service.undo_reconciliation(db, user_id, line_id)
        await db.commit()
    except ReconciliationError as exc:
        await db.rollback()
        _raise_for(exc)
    return LineActionResponse(line_id=line.id, status=line.reconciliation_status)


@router.delete("/batches/{batch_id}", response_model=BatchDeleteResponse)
async def delete_batch(
    batch_id: UUID,
    db: DbSession,
    user_id: CurrentUserId,
) -> BatchDeleteResponse:
    """Delete an import batch with its lines and their reconciliations."""
    try:
        deleted = await reconciliation_service.delete_import_batch(db, user_id, batch_id)
        await db.commit()
    except ReconciliationError as exc:
        await db.rollback()
        _raise_for(exc)
    return BatchDeleteResponse(batch_id=batch_id, deleted_lines=deleted)
