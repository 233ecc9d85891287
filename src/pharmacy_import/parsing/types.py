from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping


class RejectCode(str, Enum):
    """Typed rejection classifications."""
    missing_required = "missing_required"
    invalid_int = "invalid_int"                 # non whole number in an integer column
    invalid_numeric = "invalid_numeric"
    out_of_range = "out_of_range"               # parsed fine, violates a bound
    category_rejected = "category_rejected"     # approver turned the proposed category down


@dataclass(frozen=True, slots=True)
class RawRow:
    """One data line from the CSV, keyed by canonical field name."""
    source_row: int                     # 1-based data row, header not counted
    values: Mapping[str, str | None]    # canonical field -> raw cell text
    raw: Mapping[str, str]              # original header -> raw cell text

    @property
    def row_number(self) -> int:
        """Row number as a spreadsheet user sees it (header is row 1)."""
        return self.source_row + 1


@dataclass(frozen=True, slots=True)
class UnitProfile:
    """Packaging hierarchy implied by a dosage form."""
    group: str                          # LIQUIDS, SOLIDS, SACHETS, DEVICES or DEFAULT
    units: tuple[str, ...]
    primary_pricing_unit: str
    has_sheets: bool
    has_boxes: bool

    def to_mapping(self) -> dict[str, Any]:
        return {
            "group": self.group,
            "units": list(self.units),
            "primary_pricing_unit": self.primary_pricing_unit,
            "has_sheets": self.has_sheets,
            "has_boxes": self.has_boxes,
        }


@dataclass(frozen=True, slots=True)
class ImportRecord:
    """A normalized, typed product ready for validation and insertion."""
    row_number: int
    row_index: int
    generic_name: str
    brand_name: str
    product_name: str
    category_name: str
    description: str
    dosage_strength: str | None
    dosage_form: str | None
    drug_classification: str
    price_per_piece: Decimal
    cost_price: Decimal | None
    base_price: Decimal | None
    margin_percentage: Decimal | None
    pieces_per_sheet: int
    sheets_per_box: int
    stock_in_pieces: int
    reorder_level: int
    expiry_date: date | None
    batch_number: str
    supplier_name: str | None
    unit_profile: UnitProfile
    # cleaned text the user actually supplied, by canonical field (absent == defaulted)
    explicit: Mapping[str, str] = field(default_factory=dict)
    category_id: str | None = None

    @property
    def display_name(self) -> str:
        """Name used in row messages: generic, then explicit brand, then `Unknown`."""
        return self.generic_name or self.explicit.get("brand_name") or "Unknown"

    def to_mapping(self) -> dict[str, Any]:
        """Values keyed by `products` column name."""
        return {
            "name": self.product_name,
            "generic_name": self.generic_name,
            "brand_name": self.brand_name,
            "category_id": self.category_id,
            "category_name": self.category_name,
            "description": self.description,
            "dosage_strength": self.dosage_strength,
            "dosage_form": self.dosage_form,
            "drug_classification": self.drug_classification,
            "price_per_piece": self.price_per_piece,
            "cost_price": self.cost_price,
            "base_price": self.base_price,
            "margin_percentage": self.margin_percentage,
            "pieces_per_sheet": self.pieces_per_sheet,
            "sheets_per_box": self.sheets_per_box,
            "stock_in_pieces": self.stock_in_pieces,
            "reorder_level": self.reorder_level,
            "expiry_date": self.expiry_date,
            "batch_number": self.batch_number,
            "supplier_name": self.supplier_name,
            "import_metadata": {
                "unit_config": self.unit_profile.to_mapping(),
                "source_row": self.row_number,
                "import_source": "csv",
            },
        }


@dataclass(frozen=True, slots=True)
class RowIssue:
    """A single problem found on a row."""
    code: RejectCode
    detail: str


@dataclass(frozen=True, slots=True)
class RejectRow:
    """Rejected row's contents."""
    row_number: int
    display_name: str
    issues: tuple[RowIssue, ...]
    raw_payload: Mapping[str, Any]      # the cleaned values the row carried

    @property
    def reason_code(self) -> RejectCode:
        """First issue wins as the headline classification."""
        return self.issues[0].code

    @property
    def reason_detail(self) -> str:
        return "; ".join(i.detail for i in self.issues)

    @property
    def message(self) -> str:
        """`Row {n} ({name}): {issue1}; {issue2}`"""
        return f"Row {self.row_number} ({self.display_name}): {self.reason_detail}"
