from __future__ import annotations

from typing import Callable

import pytest

from pharmacy_import.parsing.types import ImportRecord
from pharmacy_import.pipeline.stores import InMemoryCategoryStore, InMemoryProductStore


def test_category_creation_is_idempotent() -> None:
    store = InMemoryCategoryStore()
    first = store.create_categories(["Pain Relief"])["Pain Relief"]
    again = store.create_categories(["pain relief "])["pain relief "]
    assert again == first
    assert store.list_categories() == [first]


def test_product_store_requires_category_ids(make_record: Callable[..., ImportRecord]) -> None:
    store = InMemoryProductStore()
    with pytest.raises(ValueError, match="category_id"):
        store.insert_products([make_record({"generic_name": "Aspirin"})])
    assert store.records == []
