from __future__ import annotations

import logging
from pathlib import Path

import psycopg

from pharmacy_import.db.connect import connect

logger = logging.getLogger(__name__)


def run_sql_file(conn: psycopg.Connection, sql_path: Path) -> None:
    """Execute a `.sql` file statement by statement, then commit."""
    text = sql_path.read_text(encoding="utf-8")
    statements = [s.strip() for s in text.split(";") if s.strip()]

    with conn.cursor() as cur:
        for i, stmt in enumerate(statements, 1):
            try:
                cur.execute(stmt)
            except Exception as e:
                raise RuntimeError(
                    f"DB init failed in {sql_path} on statement #{i}\n"
                    f"Postgres raised with: {e}\n"
                    f"--- statement ---\n{stmt}\n--- end ---\n"
                ) from e
    conn.commit()
    logger.info("applied %s (%d statements)", sql_path, len(statements))


def sql_files(sql_path: Path) -> list[Path]:
    """`sql_path` itself, or every `*.sql` in it in ascending name order."""
    if sql_path.is_dir():
        return sorted(sql_path.glob("*.sql"))
    return [sql_path]


def db_init(*, sql_path: Path, database_url: str | None = None) -> list[Path]:
    """
    Initialize (or re-initialize) the schema from `sql_path`.

    - A directory runs all its `*.sql` files in ascending order.
    - A file runs just that file.

    Returns the files applied.
    """
    files = sql_files(sql_path)
    if not files:
        raise FileNotFoundError(f"no .sql files found at {sql_path}")

    with connect(database_url) as conn:
        for p in files:
            run_sql_file(conn, p)
    return files
