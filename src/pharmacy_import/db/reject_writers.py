from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence
from uuid import UUID

from psycopg import Connection, sql
from psycopg.types.json import Jsonb

from pharmacy_import.parsing.types import RejectRow


@dataclass(frozen=True)
class RejectInsert:
    """Shape of an `import_rejects` row."""
    source_row: int
    raw_payload: Mapping[str, Any]
    reason_code: str
    reason_detail: str

    @classmethod
    def from_reject(cls, reject: RejectRow) -> RejectInsert:
        return cls(
            source_row=reject.row_number,
            raw_payload=dict(reject.raw_payload),
            reason_code=reject.reason_code.value,
            reason_detail=reject.reason_detail,
        )


# cols that should expect jsonb conversion
_JSONB_COLS = {"raw_payload"}


def _adapt(col: str, value: Any) -> Any:
    """Adapt python values to DB types (e.g., `jsonb`)."""
    if col in _JSONB_COLS and value is not None:
        return Jsonb(value)
    return value


def insert_reject_rows(conn: Connection, *, run_id: UUID, rejects: Sequence[RejectInsert]) -> int:
    """
    Insert `rejects` into `import_rejects`. Returns the number written.

    Table/column identifiers are fixed constants; values are parameterized.
    """
    cols = ("run_id", "source_row", "raw_payload", "reason_code", "reason_detail")

    query = sql.SQL("INSERT INTO {tbl} ({cols}) VALUES ({vals})").format(
        tbl=sql.Identifier("import_rejects"),
        cols=sql.SQL(", ").join(sql.Identifier(c) for c in cols),
        vals=sql.SQL(", ").join(sql.Placeholder() for _ in cols),
    )

    params: list[tuple[Any, ...]] = [
        (
            run_id,
            r.source_row,
            _adapt("raw_payload", dict(r.raw_payload)),
            r.reason_code,
            r.reason_detail,
        )
        for r in rejects
    ]

    if params:
        with conn.cursor() as cur:
            cur.executemany(query, params)
    return len(params)
