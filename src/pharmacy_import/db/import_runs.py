from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal
from uuid import UUID

from psycopg import Connection


RunStatus = Literal["running", "succeeded", "failed", "cancelled"]


@dataclass(frozen=True)
class ImportRunRow:
    """A row of the `import_runs` ledger."""
    run_id: UUID
    input_path: str
    status: RunStatus
    total_rows: int | None
    loaded_rows: int | None
    rejected_rows: int | None
    skipped_rows: int | None


def insert_import_run(conn: Connection, *, input_path: Path) -> UUID:
    """
    Create an `import_runs` row in status `running`, returns `run_id`.

    The caller commits right away so the ledger survives a failed load.
    """
    row = conn.execute(
        """
        INSERT INTO import_runs (input_path, status)
        VALUES (%s, 'running')
        RETURNING run_id
        """,
        (str(input_path),),
    ).fetchone()
    assert row is not None
    return row[0]


def finish_import_run(
    conn: Connection,
    *,
    run_id: UUID,
    status: RunStatus,
    total: int | None = None,
    loaded: int | None = None,
    rejected: int | None = None,
    skipped: int | None = None,
) -> None:
    """Set the final status and counts of a run."""
    conn.execute(
        """
        UPDATE import_runs
           SET status = %s,
               total_rows = %s,
               loaded_rows = %s,
               rejected_rows = %s,
               skipped_rows = %s,
               finished_at = now()
         WHERE run_id = %s
        """,
        (status, total, loaded, rejected, skipped, run_id),
    )


def get_import_run(conn: Connection, *, run_id: UUID) -> ImportRunRow | None:
    row = conn.execute(
        """
        SELECT run_id, input_path, status, total_rows, loaded_rows, rejected_rows, skipped_rows
          FROM import_runs
         WHERE run_id = %s
        """,
        (run_id,),
    ).fetchone()
    if row is None:
        return None
    return ImportRunRow(*row)
