from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .types import RejectCode


@dataclass(frozen=True, slots=True)
class ParseError(Exception):
    """Handles rejected fields, with additonal rejection details from error messages."""
    code: RejectCode            # used to classify rejection type encountered
    detail: str                 # error message encountered that led to rejection.


_NULL_STRINGS = {"", "null", "n/a"}

_CENTS = Decimal("0.01")


def normalize_cell(v: Any) -> Any:
    """
    Transform a raw CSV cell into normalized shape.

    Strips surrounding whitespace and one layer of wrapping double quotes left over
    from naive upstream splitting. Null-like strings become `None`.
    """
    if v is None:
        return None
    if isinstance(v, str):
        s = v.strip()
        if len(s) >= 2 and s[0] == '"' and s[-1] == '"':
            s = s[1:-1].strip()
        if s.lower() in _NULL_STRINGS:
            return None
        return s
    return v


def collapse_whitespace(s: str) -> str:
    """Squash runs of whitespace into single spaces and trim."""
    return " ".join(s.split())


def title_case(s: str) -> str:
    """`"cardiovascular  DRUGS"` -> `"Cardiovascular Drugs"`."""
    return " ".join(w[:1].upper() + w[1:].lower() for w in s.split())



## -- text / str fields

def parse_optional_text(v: Any) -> str | None:
    """
    Assign optional text for row, or assign `None` on no successful expected match.
    """
    v = normalize_cell(v)
    if v is None:
        return None
    return collapse_whitespace(str(v)) or None



## -- numeric fields

# Postgres `integer` and `numeric(12,2)` column limits
INT4_MIN, INT4_MAX = -2_147_483_648, 2_147_483_647
NUMERIC_PRECISION = 12


def parse_int(v: Any, *, field: str) -> int:
    """Parse whole numbers that fit an `integer` column. Raise on anything else."""
    v = normalize_cell(v)
    if v is None:
        raise ParseError(RejectCode.missing_required, f"Missing required field: {field}")
    try:
        # Non `int` guard: "12.3", "1e3" or "1_000" should fail, not be sneakily coerced to `int`
        if isinstance(v, str) and any(c in v.lower() for c in ".e_"):
            raise ValueError(f"input number is non-integer: {v!r}")
        n = int(v)
    except (TypeError, ValueError):
        raise ParseError(RejectCode.invalid_int, f'{field} must be a whole number (got: "{v}")')
    if not INT4_MIN <= n <= INT4_MAX:
        raise ParseError(RejectCode.out_of_range, f'{field} is out of range for an integer column (got: "{v}")')
    return n


def parse_decimal(v: Any, *, field: str, exact: bool = False) -> Decimal:
    """
    Parse a money-like value, quantized to cents.
    Raise on missing, non numeric, or non finite (`NaN`, `Infinity`) input, and on
    values exceeding `numeric(12,2)` once quantized.

    With `exact=True` the same checks apply but the value comes back as written,
    so range checks see `0.001` rather than its rounded `0.00`.
    """
    v = normalize_cell(v)
    if v is None:
        raise ParseError(RejectCode.missing_required, f"Missing required field: {field}")
    try:
        d = Decimal(str(v))     # convert possible int -> str first
    except (InvalidOperation, ValueError):
        raise ParseError(RejectCode.invalid_numeric, f'{field} must be a number (got: "{v}")')
    if not d.is_finite():
        raise ParseError(RejectCode.invalid_numeric, f'{field} must be a number (got: "{v}")')

    too_large = ParseError(RejectCode.invalid_numeric, f'{field} exceeds precision (12,2) (got: "{v}")')
    try:
        d2 = d.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise too_large
    # total digits, ignoring sign and decimal dot
    if len(d2.as_tuple().digits) > NUMERIC_PRECISION:
        raise too_large
    return d if exact else d2



## -- dates

_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_SLASHED = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DASHED = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_DOTTED = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")

SUPPORTED_DATE_FORMATS = ("YYYY-MM-DD", "DD/MM/YYYY", "DD-MM-YYYY", "MM/DD/YYYY", "DD.MM.YYYY")


def _make_date(year: str, month: str, day: str) -> date | None:
    y, m, d = int(year), int(month), int(day)
    if not 1900 <= y <= 2100:
        return None
    try:
        return date(y, m, d)
    except ValueError:
        return None


def parse_flexible_date(v: Any, *, field: str) -> date:
    """
    Parse a date in any of `SUPPORTED_DATE_FORMATS`.

    Resolution order for ambiguous input: ISO first, then day-first, then month-first.
    `03/04/2026` is the 3rd of April; `12/31/2026` only fits month-first.
    """
    v = normalize_cell(v)
    if v is None:
        raise ParseError(RejectCode.missing_required, f"Missing required field: {field}")
    s = str(v)

    m = _ISO.match(s)
    if m:
        parsed = _make_date(m.group(1), m.group(2), m.group(3))
        if parsed is not None:
            return parsed

    for pattern in (_SLASHED, _DASHED, _DOTTED):
        m = pattern.match(s)
        if not m:
            continue
        a, b, year = m.groups()
        parsed = _make_date(year, b, a)                 # day-first
        if parsed is None and pattern is _SLASHED:
            parsed = _make_date(year, a, b)             # month-first (US)
        if parsed is not None:
            return parsed

    raise ParseError(
        RejectCode.invalid_numeric,
        f'Invalid date format "{s}". Supported formats: {", ".join(SUPPORTED_DATE_FORMATS)}',
    )
