from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping, Sequence

from pharmacy_import.parsing.adapter import header_key, map_headers
from pharmacy_import.parsing.primitives import normalize_cell
from pharmacy_import.parsing.profiles.products import FIELD_ALIASES, PRIMARY_FIELD, PRODUCT_ALIASES
from pharmacy_import.parsing.types import RawRow
from pharmacy_import.pipeline.errors import ParseFailure

logger = logging.getLogger(__name__)

# a primary cell splitting into more pieces than this is a mangled line, not a name
_MAX_PRIMARY_PIECES = 3


@dataclass(frozen=True)
class ParsedCsv:
    """Tokenizer output: the kept rows plus bookkeeping for the summary."""
    headers: tuple[str, ...]                # raw header cells, as written
    fields: tuple[str | None, ...]          # canonical field per column (`None` == ignored)
    rows: tuple[RawRow, ...]
    total_rows: int                         # every data line seen, kept or skipped
    skipped_rows: int


def iter_csv_records(text: str) -> Iterator[list[str]]:
    """
    Yields the cells of every record in `text`.

    Quoted cells may hold the delimiter, escaped quotes (`""`) and raw newlines;
    a record only ends at a newline outside quotes. Blank lines yield `[]`.
    """
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=",", quotechar='"', doublequote=True, skipinitialspace=True)
    yield from reader


def _header_aliases_of(field: str) -> set[str]:
    return {header_key(v) for v in (field, *FIELD_ALIASES.get(field, ()))}


def _skip_reason(cells: Sequence[str], values: Mapping[str, str | None], duplicate_headers: set[str]) -> str | None:
    """Why a row should be dropped silently, or `None` to keep it."""
    if not any(c.strip() for c in cells):
        return "blank row"

    primary = normalize_cell(values.get(PRIMARY_FIELD))
    if primary is None:
        return None         # validator reports the missing name
    if header_key(primary) in duplicate_headers:
        return "duplicate header row"
    if "," in primary and len(primary.split(",")) > _MAX_PRIMARY_PIECES:
        return f"malformed data in {PRIMARY_FIELD}"
    return None


def parse_csv_text(text: str) -> ParsedCsv:
    """
    Tokenize raw CSV text into `RawRow`s keyed by canonical field names.

    The first record is the header. Unrecognized columns are ignored. Blank rows,
    repeated header rows and obviously mangled rows are dropped (logged, counted in
    `skipped_rows`, never reported as errors).

    Raises `ParseFailure` on empty input or a header without data rows.
    """
    text = text.lstrip("\ufeff").strip()
    if not text:
        raise ParseFailure("CSV is empty")

    records = iter_csv_records(text)
    try:
        headers = next(records)
    except csv.Error as e:
        raise ParseFailure(f"CSV header could not be read: {e}") from e

    fields = map_headers(headers, PRODUCT_ALIASES)
    ignored = [h for h, f in zip(headers, fields) if f is None]
    if ignored:
        logger.debug("ignoring unrecognized columns: %s", ignored)
    if PRIMARY_FIELD not in fields:
        logger.warning("no %s column found in header %s", PRIMARY_FIELD, list(headers))

    duplicate_headers = _header_aliases_of(PRIMARY_FIELD)

    rows: list[RawRow] = []
    total = skipped = 0
    try:
        for source_row, cells in enumerate(records, start=1):
            total += 1
            row_number = source_row + 1

            if cells and len(cells) != len(headers):
                logger.warning("row %d: expected %d fields, got %d", row_number, len(headers), len(cells))

            values: dict[str, str | None] = {}
            for i, f in enumerate(fields):
                if f is None:
                    continue
                values[f] = cells[i] if i < len(cells) else None

            reason = _skip_reason(cells, values, duplicate_headers)
            if reason is not None:
                skipped += 1
                logger.warning("row %d: skipped (%s)", row_number, reason)
                continue

            raw = {h: (cells[i] if i < len(cells) else "") for i, h in enumerate(headers)}
            rows.append(RawRow(source_row=source_row, values=values, raw=raw))
    except csv.Error as e:
        raise ParseFailure(f"CSV could not be tokenized near row {total + 1}: {e}") from e

    if total == 0:
        raise ParseFailure("CSV must have at least a header row and one data row")

    logger.info("parsed %d rows (%d skipped)", len(rows), skipped)
    return ParsedCsv(
        headers=tuple(headers),
        fields=tuple(fields),
        rows=tuple(rows),
        total_rows=total,
        skipped_rows=skipped,
    )


def read_csv_file(path: Path) -> ParsedCsv:
    """Read `path` as UTF-8 (BOM tolerant) and tokenize it."""
    return parse_csv_text(path.read_text(encoding="utf-8-sig"))
