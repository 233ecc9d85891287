from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
from uuid import UUID

import pytest

import pharmacy_import.cli.main as cli_main
from pharmacy_import.cli.main import main
from pharmacy_import.ingest.summary import LoadSummary
from pharmacy_import.pipeline.approval import ApproveAll, PromptApprover, RejectAll
from pharmacy_import.pipeline.orchestrator import ImportBatchResult, ImportState


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from reconfiguring the package logger during tests."""
    monkeypatch.setattr(cli_main, "setup_logging", lambda verbose=False: None)


def test_cli_help_prints_and_exits_zero(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as e:
        main(["-h"])

    assert e.value.code == 0
    out = capsys.readouterr().out
    assert "usage: pharmacy-import" in out
    assert "load" in out
    assert "template" in out


def test_cli_template_writes_sample(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    out_path = tmp_path / "template.csv"
    assert main(["template", "--output", str(out_path)]) == 0
    assert out_path.read_text(encoding="utf-8").startswith("generic_name,brand_name,category_name")
    assert str(out_path) in capsys.readouterr().out


def test_cli_dry_run_prints_summary(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    products = tmp_path / "products.csv"
    products.write_text(
        "generic_name,price_per_piece,category_name\n"
        "Paracetamol,2.50,Pain Relief\n"
        "Aspirin,-5.00,Pain Relief\n"
        "Losartan,8.00,Heart Meds\n",
        encoding="utf-8",
    )
    rc = main(["load", "--input", str(products), "--dry-run", "--approve", "none",
               "--category", "Pain Relief", "--show-errors"])
    assert rc == 0

    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[-1] == "products: total=3 loaded=1 rejected=2 skipped=0 run_id=None"
    assert 'error: Row 3 (Aspirin): price_per_piece must be greater than 0 (got: "-5.00")' in lines
    assert 'error: Row 4 (Losartan): category_name: category not approved ("Heart Meds")' in lines


def test_cli_dry_run_parse_failure_returns_one(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    assert main(["load", "--input", str(empty), "--dry-run"]) == 1
    assert capsys.readouterr().out == ""


def test_cli_missing_input_returns_two(tmp_path: Path) -> None:
    assert main(["load", "--input", str(tmp_path / "nope.csv"), "--dry-run"]) == 2


def test_cli_load_calls_loader_and_prints_summary(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """`load` without `--dry-run` goes through `connect()` and `load_file()`; both are patched here."""
    products = tmp_path / "products.csv"
    products.write_text("generic_name\nParacetamol\n", encoding="utf-8")

    @contextmanager
    def fake_connect() -> Iterator[object]:
        yield object()

    calls: dict[str, object] = {}

    def fake_load_file(conn: object, *, input_path: Path, approver: object, settings: object) -> tuple[LoadSummary, ImportBatchResult]:
        calls["conn"] = conn
        calls["input_path"] = input_path
        calls["approver"] = approver
        summary = LoadSummary(
            run_id=UUID("00000000-0000-0000-0000-000000000001"),
            input_path=str(input_path),
            status="succeeded",
            total=10,
            loaded=9,
            rejected=1,
            skipped=0,
        )
        result = ImportBatchResult(
            state=ImportState.complete,
            valid_records=(),
            errors=("Row 3 (Aspirin): Missing required field: generic_name",),
            warnings=(),
            new_categories=(),
            total_rows=10,
        )
        return summary, result

    monkeypatch.setattr(cli_main, "connect", fake_connect)
    monkeypatch.setattr(cli_main, "load_file", fake_load_file)

    rc = main(["load", "--input", str(products), "--approve", "all"])
    assert rc == 0

    out = capsys.readouterr().out.strip()
    assert out == "products: total=10 loaded=9 rejected=1 skipped=0 run_id=00000000-0000-0000-0000-000000000001"
    assert Path(str(calls["input_path"])) == products
    assert isinstance(calls["approver"], ApproveAll)


def test_approver_choice() -> None:
    assert isinstance(cli_main._approver("all"), ApproveAll)
    assert isinstance(cli_main._approver("none"), RejectAll)
    assert isinstance(cli_main._approver("prompt"), PromptApprover)
