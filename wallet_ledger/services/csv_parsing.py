"""Bank statement CSV parsing.

Turns raw CSV exports into ``StatementLineInput`` rows ready for import.
Handles the separators and number/date formats Brazilian and US banks emit.
"""

import csv
import io
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from wallet_ledger.logger import get_logger
from wallet_ledger.schemas.statement import ColumnMapping, ColumnRole, StatementLineInput
from wallet_ledger.services.fingerprint import generate_fingerprint

logger = get_logger(__name__)

CANDIDATE_SEPARATORS = (";", ",", "\t")
SNIFF_LINES = 5
CENT = Decimal("0.01")

_CURRENCY_AND_SPACE = re.compile(r"[R$€£\s]")
_SIGN_MARKERS = re.compile(r"[-+()CD]", re.IGNORECASE)
_DMY = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$")
_ISO = re.compile(r"^(\d{4})[/\-](\d{1,2})[/\-](\d{1,2})$")
_WHITESPACE = re.compile(r"\s+")


class CsvParseError(Exception):
    """CSV content or mapping cannot be turned into statement lines."""


@dataclass
class CsvTable:
    headers: list[str]
    rows: list[list[str]]
    separator: str


@dataclass
class TransformResult:
    lines: list[StatementLineInput] = field(default_factory=list)
    skipped_rows: int = 0


def detect_separator(content: str) -> str:
    """Pick the candidate separator that occurs most in the first lines."""
    sample = "\n".join(content.split("\n")[:SNIFF_LINES])
    best, best_count = ",", 0
    for separator in CANDIDATE_SEPARATORS:
        count = sample.count(separator)
        if count > best_count:
            best, best_count = separator, count
    return best


def parse_csv_content(content: str) -> CsvTable:
    """Split CSV text into a header row and data rows.

    Blank lines are dropped; quoted fields may contain the separator and
    doubled quotes. Cells are trimmed.
    """
    normalized = content.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")
    separator = detect_separator(normalized)
    non_blank = [line for line in normalized.split("\n") if line.strip()]
    if not non_blank:
        return CsvTable(headers=[], rows=[], separator=separator)

    reader = csv.reader(io.StringIO("\n".join(non_blank)), delimiter=separator, quotechar='"')
    parsed = [[cell.strip() for cell in row] for row in reader]
    return CsvTable(headers=parsed[0], rows=parsed[1:], separator=separator)


def parse_amount(raw: str | None) -> Decimal:
    """Parse a bank amount string into a signed Decimal.

    Negative when it starts with ``-``, carries a ``D``/``deb`` debit marker,
    or is wrapped in parentheses. With both ``,`` and ``.`` present the last
    one is the decimal separator; a lone comma followed by at most two digits
    is a decimal comma. Unparseable input yields zero.
    """
    if not raw:
        return Decimal("0")

    cleaned = _CURRENCY_AND_SPACE.sub("", raw).strip()
    negative = (
        cleaned.startswith("-")
        or "D" in cleaned
        or "deb" in cleaned.lower()
        or (cleaned.startswith("(") and cleaned.endswith(")"))
    )
    cleaned = _SIGN_MARKERS.sub("", cleaned).strip()

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".", 1)
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        parts = cleaned.split(",")
        if len(parts) == 2 and len(parts[1]) <= 2:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")

    match = re.match(r"^\d*\.?\d+|^\d+\.?", cleaned)
    if not match:
        return Decimal("0")
    try:
        value = Decimal(match.group(0))
    except InvalidOperation:
        return Decimal("0")
    return -abs(value) if negative else value


def parse_date(raw: str) -> date:
    """Parse ``DD/MM/YYYY`` (also ``-`` or ``.``, two-digit years) or ISO dates.

    Two-digit years above 50 belong to the 1900s.

    Raises:
        CsvParseError: If the value is not a recognisable date
    """
    cleaned = raw.strip()
    try:
        dmy = _DMY.match(cleaned)
        if dmy:
            day, month, year = dmy.groups()
            if len(year) == 2:
                year = ("19" if int(year) > 50 else "20") + year
            return date(int(year), int(month), int(day))

        iso = _ISO.match(cleaned)
        if iso:
            year, month, day = iso.groups()
            return date(int(year), int(month), int(day))
    except ValueError as exc:
        raise CsvParseError(f"Invalid date: {raw!r}") from exc

    raise CsvParseError(f"Unrecognised date format: {raw!r}")


def normalize_text(text: str) -> str:
    """Trim, collapse internal whitespace and upper-case."""
    return _WHITESPACE.sub(" ", text.strip()).upper()


def _resolve_columns(headers: Sequence[str], mappings: Sequence[ColumnMapping]) -> dict[ColumnRole, int]:
    positions = {header.strip().lower(): index for index, header in enumerate(headers)}
    resolved: dict[ColumnRole, int] = {}
    for mapping in mappings:
        if mapping.role == ColumnRole.IGNORE or mapping.role in resolved:
            continue
        index = positions.get(mapping.column.strip().lower())
        if index is None:
            raise CsvParseError(f"Column {mapping.column!r} not found in CSV header")
        resolved[mapping.role] = index

    if ColumnRole.DATE not in resolved or ColumnRole.DESCRIPTION not in resolved:
        raise CsvParseError("Date and description columns are required")
    if ColumnRole.AMOUNT not in resolved and not (
        ColumnRole.CREDIT in resolved and ColumnRole.DEBIT in resolved
    ):
        raise CsvParseError("An amount column or both credit and debit columns are required")
    return resolved


def _cell(row: Sequence[str], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index]


def transform_with_mappings(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    mappings: Sequence[ColumnMapping],
) -> TransformResult:
    """Turn CSV rows into statement lines using the chosen column roles.

    Empty rows, rows whose amount parses to zero and rows without a
    description are skipped. With split credit/debit columns the amount is
    ``credit - |debit|``.

    Raises:
        CsvParseError: On a bad mapping or an unparseable date
    """
    columns = _resolve_columns(headers, mappings)
    result = TransformResult()

    for row_number, row in enumerate(rows, start=2):
        if all(not cell.strip() for cell in row):
            result.skipped_rows += 1
            continue

        if ColumnRole.AMOUNT in columns:
            amount = parse_amount(_cell(row, columns[ColumnRole.AMOUNT]))
        else:
            credit = parse_amount(_cell(row, columns[ColumnRole.CREDIT]))
            debit = parse_amount(_cell(row, columns[ColumnRole.DEBIT]))
            amount = credit - abs(debit)
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)

        raw_description = _cell(row, columns[ColumnRole.DESCRIPTION])
        if amount == 0 or not raw_description.strip():
            result.skipped_rows += 1
            continue

        try:
            txn_date = parse_date(_cell(row, columns[ColumnRole.DATE]))
        except CsvParseError as exc:
            raise CsvParseError(f"Row {row_number}: {exc}") from exc

        description = normalize_text(raw_description)
        bank_reference = _cell(row, columns.get(ColumnRole.BANK_REFERENCE)).strip() or None
        counterparty = normalize_text(_cell(row, columns.get(ColumnRole.COUNTERPARTY))) or None

        result.lines.append(
            StatementLineInput(
                transaction_date=txn_date,
                description=description,
                amount=amount,
                bank_reference=bank_reference,
                counterparty=counterparty,
                fingerprint=generate_fingerprint(txn_date, amount, description),
            )
        )

    logger.debug(
        "CSV rows transformed",
        rows=len(rows),
        lines=len(result.lines),
        skipped_rows=result.skipped_rows,
    )
    return result
