"""Deduplication fingerprints for imported statement lines."""

import re
from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol, TypeVar

_NON_ALNUM = re.compile(r"[^a-z0-9]")
FINGERPRINT_DESCRIPTION_LENGTH = 30


class Fingerprinted(Protocol):
    fingerprint: str


F = TypeVar("F", bound=Fingerprinted)


def normalize_fingerprint_description(description: str) -> str:
    """Lowercase, keep only ASCII letters and digits, truncate to 30 chars."""
    return _NON_ALNUM.sub("", description.lower())[:FINGERPRINT_DESCRIPTION_LENGTH]


def format_fingerprint_amount(amount: Decimal) -> str:
    quantized = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if quantized.is_zero():
        # -0.00 and 0.00 are the same amount
        quantized = quantized.copy_abs()
    return str(quantized)


def generate_fingerprint(txn_date: date, amount: Decimal, description: str) -> str:
    """Build the dedup key ``date|amount|normalized-description``.

    The amount must already be a parsed decimal; this function only formats it.
    """
    return "|".join(
        [
            txn_date.isoformat(),
            format_fingerprint_amount(amount),
            normalize_fingerprint_description(description),
        ]
    )


def deduplicate_lines(lines: Iterable[F], existing_fingerprints: set[str]) -> tuple[list[F], int]:
    """Drop lines whose fingerprint is already known.

    Duplicates inside the incoming batch are dropped too, so a file that
    repeats a row imports it once.
    """
    seen = set(existing_fingerprints)
    unique: list[F] = []
    duplicates = 0
    for line in lines:
        if line.fingerprint in seen:
            duplicates += 1
            continue
        seen.add(line.fingerprint)
        unique.append(line)
    return unique, duplicates
