from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Sequence
from uuid import UUID

from psycopg import Connection

from pharmacy_import.config import ImportSettings
from pharmacy_import.db.categories import PostgresCategoryStore
from pharmacy_import.db.import_runs import finish_import_run, insert_import_run
from pharmacy_import.db.products import PostgresProductStore
from pharmacy_import.db.reject_writers import RejectInsert, insert_reject_rows
from pharmacy_import.ingest.summary import LoadSummary
from pharmacy_import.pipeline.approval import Approver
from pharmacy_import.pipeline.orchestrator import ImportBatchResult, ImportState, run_import
from pharmacy_import.pipeline.stores import InMemoryCategoryStore, InMemoryProductStore

logger = logging.getLogger(__name__)


def read_input(path: Path) -> str:
    """Whole file as text, UTF-8 with or without BOM."""
    return path.read_text(encoding="utf-8-sig")


def _summarize(result: ImportBatchResult, *, run_id: UUID | None, input_path: Path, loaded: int) -> LoadSummary:
    return LoadSummary(
        run_id=run_id,
        input_path=str(input_path),
        status="cancelled" if result.state is ImportState.cancelled else "succeeded",
        total=result.total_rows,
        loaded=loaded,
        rejected=len(result.errors),
        skipped=result.skipped_rows,
        created_categories=tuple(c.name for c in result.created_categories),
    )


def load_file(
    conn: Connection,
    *,
    input_path: Path,
    approver: Approver,
    settings: ImportSettings | None = None,
    today: date | None = None,
) -> tuple[LoadSummary, ImportBatchResult]:
    """
    End-to-end import of one product CSV into Postgres:
      - create an `import_runs` row (committed immediately),
      - parse, validate and reconcile categories, asking `approver` about new ones,
            - approved categories are created (each committed on its own),
            - rows with rejected categories join the other rejected rows,
      - insert valid rows into `products` and rejected rows into `import_rejects`,
      - and mark the run `succeeded` / `cancelled` / `failed`.

    Bad rows never raise. Raises on parse failure, category store failure and
    infrastructure errors, after marking the run failed.
    """
    text = read_input(input_path)

    ## -- run ledger, committed immediately
    run_id: UUID = insert_import_run(conn, input_path=input_path)
    conn.commit()

    try:
        result = run_import(text, PostgresCategoryStore(conn), approver, settings=settings, today=today)

        if result.state is ImportState.cancelled:
            finish_import_run(conn, run_id=run_id, status="cancelled", total=result.total_rows, skipped=result.skipped_rows)
            conn.commit()
            return _summarize(result, run_id=run_id, input_path=input_path, loaded=0), result

        loaded = PostgresProductStore(conn, run_id=run_id).insert_products(result.valid_records)
        insert_reject_rows(conn, run_id=run_id, rejects=[RejectInsert.from_reject(r) for r in result.rejections])

        finish_import_run(
            conn,
            run_id=run_id,
            status="succeeded",
            total=result.total_rows,
            loaded=loaded,
            rejected=len(result.errors),
            skipped=result.skipped_rows,
        )
        conn.commit()
        return _summarize(result, run_id=run_id, input_path=input_path, loaded=loaded), result

    except Exception:
        # revert everything but the ledger and already created categories
        conn.rollback()
        finish_import_run(conn, run_id=run_id, status="failed")
        conn.commit()
        raise


def dry_run_file(
    *,
    input_path: Path,
    approver: Approver,
    existing_categories: Sequence[str] = (),
    settings: ImportSettings | None = None,
    today: date | None = None,
) -> tuple[LoadSummary, ImportBatchResult]:
    """Same as `load_file`, against in-memory stores. Nothing is persisted."""
    text = read_input(input_path)
    result = run_import(text, InMemoryCategoryStore(existing_categories), approver, settings=settings, today=today)
    loaded = 0
    if result.state is not ImportState.cancelled:
        loaded = InMemoryProductStore().insert_products(result.valid_records)
    return _summarize(result, run_id=None, input_path=input_path, loaded=loaded), result
