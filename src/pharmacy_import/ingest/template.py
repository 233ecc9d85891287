from __future__ import annotations

import csv
import io
from pathlib import Path

TEMPLATE_FILENAME = "pharmacy_import_template.csv"

TEMPLATE_HEADERS: tuple[str, ...] = (
    "generic_name",
    "brand_name",
    "category_name",
    "supplier_name",
    "description",
    "dosage_strength",
    "dosage_form",
    "drug_classification",
    "price_per_piece",
    "pieces_per_sheet",
    "sheets_per_box",
    "stock_in_pieces",
    "reorder_level",
    "cost_price",
    "base_price",
    "expiry_date",
    "batch_number",
)

TEMPLATE_ROWS: tuple[tuple[str, ...], ...] = (
    ("Paracetamol", "Biogesic", "Pain Relief", "MediSupply Corp",
     "Analgesic and antipyretic for pain and fever relief", "500mg", "TABLETS", "Over-the-Counter (OTC)",
     "2.50", "10", "10", "1000", "100", "2.00", "2.25", "2025-12-31", "BT100425-1"),
    ("Amoxicillin", "Amoxil", "Antibiotics", "PharmaCorp Distributors",
     "Broad-spectrum antibiotic for bacterial infections", "500mg", "CAPSULES", "Prescription (Rx)",
     "5.75", "10", "10", "500", "50", "4.60", "5.18", "2025-10-15", "BT100425-2"),
    ("Cough Syrup", "Robitussin", "Cough & Cold", "VitaCorp International",
     "Cough suppressant and expectorant syrup", "120ml", "SYRUP", "Over-the-Counter (OTC)",
     "85.00", "", "", "50", "10", "70.00", "77.50", "2025-06-30", "BT100425-3"),
    ("Oral Rehydration Salt", "ORS Plus", "Electrolytes", "HealthCorp Ltd",
     "Oral rehydration therapy for dehydration", "21g", "SACHET", "Over-the-Counter (OTC)",
     "12.50", "", "20", "400", "40", "10.00", "11.25", "2025-08-15", "BT100425-4"),
    ("Salbutamol", "Ventolin", "Respiratory", "Asthma Solutions Inc",
     "Bronchodilator inhaler for asthma relief", "100mcg", "INHALER", "Prescription (Rx)",
     "450.00", "", "", "25", "5", "380.00", "415.00", "2025-11-20", "BT100425-5"),
)


def render_template() -> str:
    """The sample import file: every recognized column, five example products."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(TEMPLATE_HEADERS)
    writer.writerows(TEMPLATE_ROWS)
    return buf.getvalue()


def write_template(path: Path) -> Path:
    path.write_text(render_template(), encoding="utf-8")
    return path
