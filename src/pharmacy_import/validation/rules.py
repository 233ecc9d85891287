from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from functools import partial
from typing import Any, Callable, Sequence

from pharmacy_import.parsing.primitives import ParseError, parse_decimal, parse_int
from pharmacy_import.parsing.profiles.products import DOSAGE_FORMS, DRUG_CLASSIFICATIONS
from pharmacy_import.parsing.types import ImportRecord, RejectCode, RejectRow, RowIssue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RangeRule:
    """Constraint on an explicitly supplied numeric cell."""
    field: str
    parse: Callable[..., Any]
    bound: Any
    inclusive: bool                 # `>= bound` when True, `> bound` otherwise

    def check(self, raw: str) -> RowIssue | None:
        try:
            value = self.parse(raw, field=self.field)
        except ParseError as e:
            return RowIssue(e.code, e.detail)
        ok = value >= self.bound if self.inclusive else value > self.bound
        if ok:
            return None
        wording = f"at least {self.bound}" if self.inclusive else f"greater than {self.bound}"
        return RowIssue(RejectCode.out_of_range, f'{self.field} must be {wording} (got: "{raw}")')


_exact_decimal = partial(parse_decimal, exact=True)

# only explicit user input is checked; defaults satisfy these by construction
RANGE_RULES: tuple[RangeRule, ...] = (
    RangeRule("price_per_piece", _exact_decimal, Decimal("0"), inclusive=False),
    RangeRule("cost_price", _exact_decimal, Decimal("0"), inclusive=True),
    RangeRule("base_price", _exact_decimal, Decimal("0"), inclusive=True),
    RangeRule("pieces_per_sheet", parse_int, 1, inclusive=True),
    RangeRule("sheets_per_box", parse_int, 1, inclusive=True),
    RangeRule("stock_in_pieces", parse_int, 0, inclusive=True),
    RangeRule("reorder_level", parse_int, 1, inclusive=True),
)

_KNOWN_FORMS = {f.upper() for f in DOSAGE_FORMS}
_KNOWN_CLASSIFICATIONS = {c.casefold() for c in DRUG_CLASSIFICATIONS}


@dataclass(frozen=True)
class ValidationResult:
    """Validator output. Every input record lands in exactly one of `valid` / `rejections`."""
    valid: tuple[ImportRecord, ...]
    rejections: tuple[RejectRow, ...]
    warnings: tuple[str, ...]

    @property
    def errors(self) -> list[str]:
        """One `Row {n} ({name}): ...` string per rejected record."""
        return [r.message for r in self.rejections]


def check_record(record: ImportRecord) -> list[RowIssue]:
    """Every hard problem with `record`, in column order. Empty means accept."""
    issues: list[RowIssue] = []
    if not record.generic_name:
        issues.append(RowIssue(RejectCode.missing_required, "Missing required field: generic_name"))

    for rule in RANGE_RULES:
        raw = record.explicit.get(rule.field)
        if raw is None:
            continue
        issue = rule.check(raw)
        if issue is not None:
            issues.append(issue)
    return issues


def warnings_for(record: ImportRecord, *, today: date) -> list[str]:
    """Non-blocking notes for an accepted record."""
    prefix = f"Row {record.row_number} ({record.display_name})"
    out: list[str] = []

    raw_expiry = record.explicit.get("expiry_date")
    if raw_expiry is not None and record.expiry_date is None:
        out.append(f'{prefix}: expiry_date "{raw_expiry}" could not be parsed and was left empty')
    elif record.expiry_date is not None and record.expiry_date < today:
        out.append(f"{prefix}: product has expired date ({record.expiry_date.isoformat()})")

    form = record.explicit.get("dosage_form")
    if form is not None and form.upper() not in _KNOWN_FORMS:
        out.append(f'{prefix}: new dosage_form "{form}" will be added')

    classification = record.explicit.get("drug_classification")
    if classification is not None and classification.casefold() not in _KNOWN_CLASSIFICATIONS:
        out.append(f'{prefix}: new drug_classification "{classification}" will be added')
    return out


def validate(records: Sequence[ImportRecord], *, today: date | None = None) -> ValidationResult:
    """
    Partition `records` into accepted and rejected.

    All problems on a row are collected before deciding, so the single error
    string for a rejected row lists every issue. Expired or unparseable expiry
    dates are warnings only.
    """
    today = today or date.today()
    valid: list[ImportRecord] = []
    rejections: list[RejectRow] = []
    warnings: list[str] = []

    for record in records:
        issues = check_record(record)
        if issues:
            reject = RejectRow(
                row_number=record.row_number,
                display_name=record.display_name,
                issues=tuple(issues),
                raw_payload=dict(record.explicit),
            )
            logger.debug("rejected %s", reject.message)
            rejections.append(reject)
            continue

        valid.append(record)
        for w in warnings_for(record, today=today):
            logger.warning(w)
            warnings.append(w)

    logger.info("validated %d rows: %d valid, %d rejected", len(records), len(valid), len(rejections))
    return ValidationResult(valid=tuple(valid), rejections=tuple(rejections), warnings=tuple(warnings))
