from __future__ import annotations

from datetime import date
from typing import Callable

from pharmacy_import.parsing.types import ImportRecord, RejectCode
from pharmacy_import.validation.rules import validate

MakeRecord = Callable[..., ImportRecord]


def test_missing_generic_name_is_rejected(make_record: MakeRecord, today: date) -> None:
    result = validate([make_record({"generic_name": "", "price_per_piece": "5.00"})], today=today)
    assert result.valid == ()
    assert result.errors == ["Row 2 (Unknown): Missing required field: generic_name"]
    assert result.rejections[0].reason_code == RejectCode.missing_required


def test_negative_price_is_rejected_with_the_literal_value(make_record: MakeRecord, today: date) -> None:
    result = validate([make_record({"generic_name": "Aspirin", "price_per_piece": "-5.00"})], today=today)
    assert result.errors == ['Row 2 (Aspirin): price_per_piece must be greater than 0 (got: "-5.00")']
    assert result.rejections[0].reason_code == RejectCode.out_of_range


def test_zero_price_is_rejected(make_record: MakeRecord, today: date) -> None:
    result = validate([make_record({"generic_name": "Aspirin", "price_per_piece": "0"})], today=today)
    assert "greater than 0" in result.errors[0]


def test_all_problems_on_a_row_are_reported_together(make_record: MakeRecord, today: date) -> None:
    """One aggregated error string per rejected row."""
    rec = make_record({
        "generic_name": "",
        "brand_name": "Biogesic",
        "price_per_piece": "abc",
        "stock_in_pieces": "-1",
        "pieces_per_sheet": "12.5",
    }, row_index=3)
    result = validate([rec], today=today)
    assert len(result.errors) == 1
    assert result.errors[0] == (
        "Row 5 (Biogesic): Missing required field: generic_name; "
        'price_per_piece must be a number (got: "abc"); '
        'pieces_per_sheet must be a whole number (got: "12.5"); '
        'stock_in_pieces must be at least 0 (got: "-1")'
    )
    assert [i.code for i in result.rejections[0].issues] == [
        RejectCode.missing_required,
        RejectCode.invalid_numeric,
        RejectCode.invalid_int,
        RejectCode.out_of_range,
    ]


def test_minimums_on_packaging_and_costs(make_record: MakeRecord, today: date) -> None:
    rec = make_record({"generic_name": "Aspirin", "sheets_per_box": "0", "reorder_level": "0", "cost_price": "-1"})
    detail = validate([rec], today=today).rejections[0].reason_detail
    assert 'cost_price must be at least 0 (got: "-1")' in detail
    assert 'sheets_per_box must be at least 1 (got: "0")' in detail
    assert 'reorder_level must be at least 1 (got: "0")' in detail


def test_defaults_are_never_rejected(make_record: MakeRecord, today: date) -> None:
    result = validate([make_record({"generic_name": "Aspirin"})], today=today)
    assert len(result.valid) == 1
    assert result.errors == []
    assert result.warnings == ()


def test_warnings_do_not_block(make_record: MakeRecord, today: date) -> None:
    rec = make_record({
        "generic_name": "Aspirin",
        "expiry_date": "2020-01-01",
        "dosage_form": "LOZENGE",
        "drug_classification": "Herbal",
    })
    result = validate([rec], today=today)
    assert len(result.valid) == 1
    assert result.warnings == (
        "Row 2 (Aspirin): product has expired date (2020-01-01)",
        'Row 2 (Aspirin): new dosage_form "LOZENGE" will be added',
        'Row 2 (Aspirin): new drug_classification "Herbal" will be added',
    )


def test_known_values_match_case_insensitively(make_record: MakeRecord, today: date) -> None:
    rec = make_record({"generic_name": "Aspirin", "dosage_form": "tablets", "drug_classification": "prescription (rx)"})
    assert validate([rec], today=today).warnings == ()


def test_unparseable_expiry_is_a_warning(make_record: MakeRecord, today: date) -> None:
    result = validate([make_record({"generic_name": "Aspirin", "expiry_date": "soon"})], today=today)
    assert len(result.valid) == 1
    assert result.warnings == ('Row 2 (Aspirin): expiry_date "soon" could not be parsed and was left empty',)


def test_partition_is_complete(make_record: MakeRecord, today: date) -> None:
    records = [
        make_record({"generic_name": "Aspirin"}, 0),
        make_record({"generic_name": ""}, 1),
        make_record({"generic_name": "Ibuprofen", "stock_in_pieces": "x"}, 2),
        make_record({"generic_name": "Losartan"}, 3),
    ]
    result = validate(records, today=today)
    assert len(result.valid) + len(result.errors) == len(records)
    assert [r.generic_name for r in result.valid] == ["Aspirin", "Losartan"]
    assert [r.row_number for r in result.rejections] == [3, 4]


def test_sub_cent_amounts_are_judged_before_rounding(make_record: MakeRecord, today: date) -> None:
    ok = make_record({"generic_name": "Aspirin", "price_per_piece": "0.001"})
    bad = make_record({"generic_name": "Ibuprofen", "cost_price": "-0.001"}, row_index=1)
    result = validate([ok, bad], today=today)
    assert [r.generic_name for r in result.valid] == ["Aspirin"]
    assert result.errors == ['Row 3 (Ibuprofen): cost_price must be at least 0 (got: "-0.001")']


def test_oversize_stock_is_rejected(make_record: MakeRecord, today: date) -> None:
    result = validate([make_record({"generic_name": "Aspirin", "stock_in_pieces": "99999999999"})], today=today)
    assert result.rejections[0].reason_code == RejectCode.out_of_range
