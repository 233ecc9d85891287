from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Protocol, Sequence

from pharmacy_import.parsing.types import ImportRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CategoryRef:
    """Identity of an existing category."""
    id: str
    name: str


# -- Protocols: what the import core needs from the outside world


class CategoryStore(Protocol):
    """CRUD + search over the categories table, as far as imports need it."""

    def list_categories(self) -> Sequence[CategoryRef]: ...

    # Must be idempotent: a name that already exists (case-insensitively) returns
    # the existing ref instead of creating a duplicate.
    def create_categories(self, names: Sequence[str]) -> Mapping[str, CategoryRef]: ...


class ProductStore(Protocol):
    """Bulk insert of fully resolved records. Returns the inserted count."""

    def insert_products(self, records: Sequence[ImportRecord]) -> int: ...



class InMemoryCategoryStore:
    """Dict-backed `CategoryStore`, for tests and dry runs."""

    def __init__(self, names: Sequence[str] = ()) -> None:
        self._by_key: dict[str, CategoryRef] = {}
        self._next_id = 1
        for n in names:
            self._create(n)

    def _create(self, name: str) -> CategoryRef:
        key = name.strip().casefold()
        existing = self._by_key.get(key)
        if existing is not None:
            return existing
        ref = CategoryRef(id=f"cat-{self._next_id}", name=name.strip())
        self._next_id += 1
        self._by_key[key] = ref
        return ref

    def list_categories(self) -> list[CategoryRef]:
        return list(self._by_key.values())

    def create_categories(self, names: Sequence[str]) -> dict[str, CategoryRef]:
        return {n: self._create(n) for n in names}


class InMemoryProductStore:
    """Keeps inserted records in a list."""

    def __init__(self) -> None:
        self.records: list[ImportRecord] = []

    def insert_products(self, records: Sequence[ImportRecord]) -> int:
        missing = [r.row_number for r in records if r.category_id is None]
        if missing:
            raise ValueError(f"records without category_id on rows: {missing}")
        self.records.extend(records)
        return len(records)
