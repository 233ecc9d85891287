from __future__ import annotations

import logging
from typing import Sequence

from psycopg import Connection

from pharmacy_import.matching.categories import category_color, category_icon
from pharmacy_import.pipeline.stores import CategoryRef

logger = logging.getLogger(__name__)


class PostgresCategoryStore:
    """
    `CategoryStore` over the `categories` table.

    Each created category is committed on its own, so categories made before a
    failure stay in place and a retry binds to them instead of duplicating.
    """

    def __init__(self, conn: Connection, *, commit: bool = True) -> None:
        self.conn = conn
        self.commit = commit

    def list_categories(self) -> list[CategoryRef]:
        rows = self.conn.execute(
            "SELECT id, name FROM categories WHERE is_active ORDER BY lower(name), id"
        ).fetchall()
        return [CategoryRef(id=str(r[0]), name=r[1]) for r in rows]

    def _create_one(self, name: str) -> CategoryRef:
        clean = name.strip()
        # an existing row with the same name (active or not) is reused and reactivated
        id_, stored_name, inserted = self.conn.execute(
            """
            INSERT INTO categories (name, description, color_code, icon)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT ((lower(name))) DO UPDATE SET is_active = true
            RETURNING id, name, (xmax = 0) AS inserted
            """,
            (clean, f"Created during CSV import: {clean}", category_color(clean), category_icon(clean)),
        ).fetchone()
        if not inserted:
            logger.info("category %r already exists as %r", clean, stored_name)
        if self.commit:
            self.conn.commit()
        return CategoryRef(id=str(id_), name=stored_name)

    def create_categories(self, names: Sequence[str]) -> dict[str, CategoryRef]:
        return {n: self._create_one(n) for n in names}
