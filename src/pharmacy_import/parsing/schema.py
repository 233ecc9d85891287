from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from .primitives import ParseError, normalize_cell

logger = logging.getLogger(__name__)

# Typing:
# Parser turns a cleaned, non-empty cell into a typed value (raises `ParseError`).
Parser = Callable[[Any], Any]


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Any given field's configurable expectations."""
    out_name: str               # canonical field name, also the lookup key in the row.
    parser: Parser              # how to parse this field's value.
    default: Any = None         # used when the cell is absent or unparseable.
    minimum: Any = None         # parsed values below this are clamped up to it.


@dataclass(frozen=True, slots=True)
class RowNormalizer:
    """
    Best-effort typing of a single row of fields. Never rejects.

    For every `FieldSpec`, in order:
    - absent/empty cell -> `default`
    - unparseable cell  -> `default` (logged at DEBUG, the validator reports it)
    - parsed cell       -> clamped to `minimum` if given

    Returns the typed values alongside the cleaned text of every cell the user
    actually supplied, so later stages can tell defaults from explicit input.
    """
    fields: Sequence[FieldSpec]

    def normalize(self, values: Mapping[str, Any], *, row_number: int) -> tuple[dict[str, Any], dict[str, str]]:
        out: dict[str, Any] = {}
        explicit: dict[str, str] = {}

        for f in self.fields:
            cleaned = normalize_cell(values.get(f.out_name))
            if cleaned is None:
                out[f.out_name] = f.default
                continue

            explicit[f.out_name] = str(cleaned)
            try:
                parsed = f.parser(cleaned)
            except ParseError as e:
                logger.debug("row %d: %s, using default %r", row_number, e.detail, f.default)
                out[f.out_name] = f.default
                continue

            if f.minimum is not None and parsed is not None and parsed < f.minimum:
                parsed = f.minimum
            out[f.out_name] = parsed

        return out, explicit
