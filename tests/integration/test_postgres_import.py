from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Mapping, Sequence

import psycopg
import pytest

from pharmacy_import.cli.loader import load_file
from pharmacy_import.db.categories import PostgresCategoryStore
from pharmacy_import.db.import_runs import get_import_run
from pharmacy_import.pipeline.approval import ApproveAll
from pharmacy_import.pipeline.errors import ParseFailure
from pharmacy_import.pipeline.orchestrator import CategoryDecision
from pharmacy_import.pipeline.stores import CategoryRef


class ScriptedApprover:
    """Answers from a fixed `{key: decision}` table."""

    def __init__(self, decisions: Mapping[str, CategoryDecision]) -> None:
        self.decisions = decisions

    def decide(self, candidates: Sequence[object]) -> Mapping[str, CategoryDecision]:
        return self.decisions


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "products.csv"
    p.write_text(text, encoding="utf-8")
    return p


def test_category_store_creation_is_idempotent(conn: psycopg.Connection) -> None:
    store = PostgresCategoryStore(conn)
    first = store.create_categories(["Pain Relief"])["Pain Relief"]
    again = store.create_categories(["pain relief"])["pain relief"]

    assert again == first
    assert store.list_categories() == [first]
    color, icon = conn.execute("SELECT color_code, icon FROM categories").fetchone()
    assert (color, icon) == ("#EF4444", "Zap")


def test_approving_a_deactivated_category_reactivates_it(conn: psycopg.Connection) -> None:
    store = PostgresCategoryStore(conn)
    old = store.create_categories(["Antifungal"])["Antifungal"]
    conn.execute("UPDATE categories SET is_active = false")
    conn.commit()
    assert store.list_categories() == []

    again = store.create_categories(["antifungal"])["antifungal"]
    assert again == old
    assert store.list_categories() == [old]


def test_load_file_end_to_end(conn: psycopg.Connection, tmp_path: Path, today: date) -> None:
    PostgresCategoryStore(conn).create_categories(["Pain Relief", "General"])
    path = _write(
        tmp_path,
        "generic_name,brand_name,category_name,price_per_piece,cost_price,stock_in_pieces,expiry_date\n"
        "Paracetamol,Biogesic,Pain Releif,2.50,2.00,100,31/12/2026\n"
        "Losartan,Cozaar,Cardiovascular Drugs,8.00,,50,\n"
        "Amlodipine,,Cardiovascular Drugs,6.00,,20,\n"
        "Aspirin,,,-5.00,,,\n"
        "\n",
    )

    summary, result = load_file(conn, input_path=path, approver=ApproveAll(), today=today)

    assert summary.render_one_line() == (
        f"products: total=4 loaded=3 rejected=1 skipped=0 run_id={summary.run_id}"
    )
    assert summary.created_categories == ("Cardiovascular Drugs",)

    rows = conn.execute(
        """
        SELECT p.generic_name, c.name, p.margin_percentage, p.expiry_date, p.import_metadata->>'source_row'
          FROM products p JOIN categories c ON c.id = p.category_id
         WHERE p.run_id = %s
         ORDER BY p.generic_name
        """,
        (summary.run_id,),
    ).fetchall()
    assert [(r[0], r[1]) for r in rows] == [
        ("Amlodipine", "Cardiovascular Drugs"),
        ("Losartan", "Cardiovascular Drugs"),
        ("Paracetamol", "Pain Relief"),
    ]
    paracetamol = rows[2]
    assert str(paracetamol[2]) == "25.00"
    assert paracetamol[3] == date(2026, 12, 31)
    assert paracetamol[4] == "2"

    rejects = conn.execute(
        "SELECT source_row, reason_code, raw_payload->>'price_per_piece' FROM import_rejects WHERE run_id = %s",
        (summary.run_id,),
    ).fetchall()
    assert rejects == [(5, "out_of_range", "-5.00")]

    run = get_import_run(conn, run_id=summary.run_id)
    assert run is not None
    assert run.status == "succeeded"
    assert (run.total_rows, run.loaded_rows, run.rejected_rows, run.skipped_rows) == (4, 3, 1, 0)
    assert len(result.valid_records) == 3


def test_load_file_maps_to_existing_category(conn: psycopg.Connection, tmp_path: Path, today: date) -> None:
    store = PostgresCategoryStore(conn)
    cardio: CategoryRef = store.create_categories(["Cardiovascular"])["Cardiovascular"]
    path = _write(tmp_path, "generic_name,category_name\nLosartan,Heart Meds\n")

    summary, _ = load_file(
        conn,
        input_path=path,
        approver=ScriptedApprover({"heart meds": CategoryDecision.map_to(cardio)}),
        today=today,
    )
    assert summary.loaded == 1
    assert conn.execute("SELECT count(*) FROM categories").fetchone()[0] == 1
    assert conn.execute("SELECT category_id::text FROM products").fetchone()[0] == cardio.id


def test_parse_failure_marks_run_failed(conn: psycopg.Connection, tmp_path: Path) -> None:
    path = _write(tmp_path, "generic_name\n")
    with pytest.raises(ParseFailure):
        load_file(conn, input_path=path, approver=ApproveAll())

    status = conn.execute("SELECT status FROM import_runs").fetchone()[0]
    assert status == "failed"
    assert conn.execute("SELECT count(*) FROM products").fetchone()[0] == 0
