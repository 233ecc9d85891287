from __future__ import annotations

from typing import Any, Sequence
from uuid import UUID

from psycopg import Connection, sql
from psycopg.types.json import Jsonb

from pharmacy_import.parsing.types import ImportRecord


# whitelisted `products` columns written by imports (`id`, `is_active`, `created_at` have DB defaults)
PRODUCT_COLUMNS: tuple[str, ...] = (
    "run_id",
    "name",
    "generic_name",
    "brand_name",
    "category_id",
    "category_name",
    "description",
    "dosage_strength",
    "dosage_form",
    "drug_classification",
    "price_per_piece",
    "cost_price",
    "base_price",
    "margin_percentage",
    "pieces_per_sheet",
    "sheets_per_box",
    "stock_in_pieces",
    "reorder_level",
    "expiry_date",
    "batch_number",
    "supplier_name",
    "import_metadata",
)

_JSONB_COLS = {"import_metadata"}


def _adapt(col: str, value: Any) -> Any:
    if col in _JSONB_COLS and value is not None:
        return Jsonb(value)
    return value


def product_params(record: ImportRecord, *, run_id: UUID | None) -> tuple[Any, ...]:
    """One parameter tuple for `record`, ordered like `PRODUCT_COLUMNS`."""
    if record.category_id is None:
        raise ValueError(f"row {record.row_number}: record has no category_id")
    m = record.to_mapping()
    m["run_id"] = run_id
    return tuple(_adapt(c, m[c]) for c in PRODUCT_COLUMNS)


def insert_product_rows(conn: Connection, *, records: Sequence[ImportRecord], run_id: UUID | None) -> int:
    """Bulk insert into `products`. Returns the number of rows written."""
    query = sql.SQL("INSERT INTO {tbl} ({cols}) VALUES ({vals})").format(
        tbl=sql.Identifier("products"),
        cols=sql.SQL(", ").join(sql.Identifier(c) for c in PRODUCT_COLUMNS),
        vals=sql.SQL(", ").join(sql.Placeholder() for _ in PRODUCT_COLUMNS),
    )
    params = [product_params(r, run_id=run_id) for r in records]
    if params:
        with conn.cursor() as cur:
            cur.executemany(query, params)
    return len(params)


class PostgresProductStore:
    """`ProductStore` writing into `products`; the caller owns the transaction."""

    def __init__(self, conn: Connection, *, run_id: UUID | None = None) -> None:
        self.conn = conn
        self.run_id = run_id

    def insert_products(self, records: Sequence[ImportRecord]) -> int:
        return insert_product_rows(self.conn, records=records, run_id=self.run_id)
