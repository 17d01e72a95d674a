"""Edit-distance based text similarity."""

from decimal import ROUND_HALF_UP, Decimal

from rapidfuzz.distance import Levenshtein


def text_similarity(a: str | None, b: str | None) -> int:
    """Score two strings from 0 (unrelated) to 100 (identical).

    Both strings are case-folded and trimmed first. The score is
    ``(max_len - levenshtein_distance) / max_len`` as a percentage, rounded
    half away from zero.
    """
    norm_a = (a or "").strip().lower()
    norm_b = (b or "").strip().lower()

    if norm_a == norm_b:
        # Two empty strings are equal, matching the identity case.
        return 100
    if not norm_a or not norm_b:
        return 0

    max_len = max(len(norm_a), len(norm_b))
    distance = Levenshtein.distance(norm_a, norm_b)
    ratio = Decimal(100 * (max_len - distance)) / Decimal(max_len)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
