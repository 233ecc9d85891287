from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache

from pharmacy_import.config import ImportSettings
from pharmacy_import.parsing.adapter import build_alias_index
from pharmacy_import.parsing.primitives import (
    collapse_whitespace,
    parse_decimal,
    parse_flexible_date,
    parse_int,
    parse_optional_text,
)
from pharmacy_import.parsing.schema import FieldSpec, RowNormalizer
from pharmacy_import.parsing.types import ImportRecord, RawRow, UnitProfile

logger = logging.getLogger(__name__)


# Recognized columns: canonical field -> accepted header variants (matched case-insensitively,
# spaces/hyphens equal to underscores).
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "product_name": ("Product Name", "name", "product"),
    "generic_name": ("Generic Name", "generic"),
    "brand_name": ("Brand", "brand"),
    "category_name": ("Category", "category"),
    "dosage_strength": ("Dosage Strength", "strength"),
    "dosage_form": ("Dosage Form", "form"),
    "drug_classification": ("Drug Classification", "classification"),
    "description": ("Description",),
    "supplier_name": ("Supplier", "supplier", "manufacturer"),
    "price_per_piece": ("Unit Price", "Price per Piece", "price"),
    "cost_price": ("Cost Price", "cost"),
    "base_price": ("Base Price",),
    "pieces_per_sheet": ("Pieces per Sheet",),
    "sheets_per_box": ("Sheets per Box",),
    "stock_in_pieces": ("Stock (Pieces)", "stock"),
    "reorder_level": ("Reorder Level",),
    "expiry_date": ("Expiry Date", "expiry"),
    "batch_number": ("Batch Number", "batch"),
}

PRODUCT_ALIASES: dict[str, str] = build_alias_index(FIELD_ALIASES)

# the field that identifies a row, used for duplicate-header and malformed-row detection
PRIMARY_FIELD = "generic_name"

DOSAGE_FORMS = ("SACHET", "TABLETS", "SYRUP", "CAPSULES", "DROPS", "INHALER", "NEBULIZER", "SUSPENSION")
DRUG_CLASSIFICATIONS = ("Prescription (Rx)", "Over-the-Counter (OTC)", "Controlled Substance")


## -- packaging profiles by dosage form

_UNIT_RULES: tuple[UnitProfile, ...] = (
    UnitProfile("LIQUIDS", ("ml", "bottle"), "bottle", has_sheets=False, has_boxes=False),
    UnitProfile("SOLIDS", ("piece", "sheet", "box"), "piece", has_sheets=True, has_boxes=True),
    UnitProfile("SACHETS", ("piece", "box"), "piece", has_sheets=False, has_boxes=True),
    UnitProfile("DEVICES", ("piece",), "piece", has_sheets=False, has_boxes=False),
)
_FORMS_BY_GROUP: dict[str, tuple[str, ...]] = {
    "LIQUIDS": ("SYRUP", "DROPS", "SUSPENSION"),
    "SOLIDS": ("TABLETS", "CAPSULES"),
    "SACHETS": ("SACHET",),
    "DEVICES": ("INHALER", "NEBULIZER"),
}
DEFAULT_UNIT_PROFILE = UnitProfile("DEFAULT", ("piece",), "piece", has_sheets=False, has_boxes=False)

# checked in order; first keyword found in the product name decides the form
_NAME_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("SYRUP", "LIQUID", "ML"), "SYRUP"),
    (("TABLET", "TAB"), "TABLETS"),
    (("CAPSULE", "CAP"), "CAPSULES"),
    (("DROPS", "DROP"), "DROPS"),
    (("INHALER",), "INHALER"),
    (("SACHET",), "SACHET"),
)


def detect_unit_profile(dosage_form: str | None, product_name: str = "") -> UnitProfile:
    """
    Packaging profile for a product: liquids by bottle, solids by piece/sheet/box, etc.

    Falls back to keywords in `product_name` when the dosage form is missing.
    """
    form = (dosage_form or "").strip().upper()
    if not form:
        name = product_name.upper()
        for keywords, hinted in _NAME_HINTS:
            if any(k in name for k in keywords):
                form = hinted
                break

    for profile in _UNIT_RULES:
        if form in _FORMS_BY_GROUP[profile.group]:
            return profile
    return DEFAULT_UNIT_PROFILE


## -- field specs

@lru_cache(maxsize=8)
def product_normalizer(settings: ImportSettings) -> RowNormalizer:
    """Field rules for product rows under `settings` (cached per settings)."""
    return RowNormalizer(
        fields=[
            FieldSpec("generic_name", parse_optional_text, default=""),
            FieldSpec("brand_name", parse_optional_text),
            FieldSpec("product_name", parse_optional_text),
            FieldSpec("category_name", parse_optional_text, default=settings.default_category),
            FieldSpec("description", parse_optional_text),
            FieldSpec("dosage_strength", parse_optional_text),
            FieldSpec("dosage_form", parse_optional_text),
            FieldSpec("drug_classification", parse_optional_text, default=settings.default_classification),
            FieldSpec("supplier_name", parse_optional_text),
            FieldSpec("batch_number", parse_optional_text),

            FieldSpec("price_per_piece", lambda v: parse_decimal(v, field="price_per_piece"),
                      default=settings.default_price, minimum=Decimal("0.01")),
            FieldSpec("cost_price", lambda v: parse_decimal(v, field="cost_price"), minimum=Decimal("0.00")),
            FieldSpec("base_price", lambda v: parse_decimal(v, field="base_price"), minimum=Decimal("0.00")),

            FieldSpec("pieces_per_sheet", lambda v: parse_int(v, field="pieces_per_sheet"), default=1, minimum=1),
            FieldSpec("sheets_per_box", lambda v: parse_int(v, field="sheets_per_box"), default=1, minimum=1),
            FieldSpec("stock_in_pieces", lambda v: parse_int(v, field="stock_in_pieces"), default=0, minimum=0),
            FieldSpec("reorder_level", lambda v: parse_int(v, field="reorder_level"),
                      default=settings.default_reorder_level, minimum=1),

            FieldSpec("expiry_date", lambda v: parse_flexible_date(v, field="expiry_date")),
        ],
    )


## -- derived fields

def describe_product(generic_name: str, dosage_strength: str | None, dosage_form: str | None) -> str:
    """`"Paracetamol - 500mg TABLETS"`, omitting whatever is missing."""
    tail = " ".join(p for p in (dosage_strength, dosage_form) if p)
    if generic_name and tail:
        return collapse_whitespace(f"{generic_name} - {tail}")
    return collapse_whitespace(generic_name or tail)


def compute_margin(price: Decimal, cost: Decimal | None) -> Decimal | None:
    """Markup over cost in percent, 2dp. `None` unless cost is known and positive."""
    if cost is None or cost <= 0:
        return None
    return ((price - cost) / cost * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def generate_batch_number(row_index: int, *, today: date, prefix: str = "BT") -> str:
    """`BT{MMDDYY}-{n}` where `n` is the 1-based position of the row in the import."""
    return f"{prefix}{today:%m%d%y}-{row_index + 1}"


def normalize_product_row(
    row: RawRow,
    row_index: int,
    *,
    settings: ImportSettings | None = None,
    today: date | None = None,
) -> ImportRecord:
    """
    Turn a raw CSV row into a typed `ImportRecord`. Never raises.

    Missing or unparseable cells fall back to documented defaults; explicit bad input
    is kept in `ImportRecord.explicit` for the validator to report.
    """
    settings = settings or ImportSettings()
    today = today or date.today()

    values, explicit = product_normalizer(settings).normalize(row.values, row_number=row.row_number)

    if "expiry_date" in explicit and values["expiry_date"] is None:
        logger.warning("row %d: unparseable expiry_date %r left empty", row.row_number, explicit["expiry_date"])

    generic = values["generic_name"]
    brand = values["brand_name"] or generic
    product_name = values["product_name"] or generic or brand or ""

    # a defaulted price is not a known price, so no margin is derived from it
    margin = None
    if "price_per_piece" in explicit:
        margin = compute_margin(values["price_per_piece"], values["cost_price"])

    return ImportRecord(
        row_number=row.row_number,
        row_index=row_index,
        generic_name=generic,
        brand_name=brand,
        product_name=product_name,
        category_name=values["category_name"],
        description=values["description"] or describe_product(generic, values["dosage_strength"], values["dosage_form"]),
        dosage_strength=values["dosage_strength"],
        dosage_form=values["dosage_form"],
        drug_classification=values["drug_classification"],
        price_per_piece=values["price_per_piece"],
        cost_price=values["cost_price"],
        base_price=values["base_price"],
        margin_percentage=margin,
        pieces_per_sheet=values["pieces_per_sheet"],
        sheets_per_box=values["sheets_per_box"],
        stock_in_pieces=values["stock_in_pieces"],
        reorder_level=values["reorder_level"],
        expiry_date=values["expiry_date"],
        batch_number=values["batch_number"] or generate_batch_number(row_index, today=today, prefix=settings.batch_prefix),
        supplier_name=values["supplier_name"],
        unit_profile=detect_unit_profile(values["dosage_form"], product_name),
        explicit=explicit,
    )
