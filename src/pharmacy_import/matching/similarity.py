from __future__ import annotations


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert/delete/substitute, each cost 1) between `a` and `b`."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a             # keep the rolling row on the shorter string
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,            # deletion
                current[j - 1] + 1,         # insertion
                previous[j - 1] + cost,     # substitution
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Normalized similarity in `[0, 1]`: `1 - levenshtein(a, b) / max(len(a), len(b))`.

    Comparison is case-insensitive and ignores surrounding whitespace. Symmetric, and
    `similarity(a, a) == 1.0` for every `a` (including the empty string).
    """
    a = a.strip().casefold()
    b = b.strip().casefold()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest
