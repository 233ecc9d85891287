from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from pharmacy_import.config import ImportSettings
from pharmacy_import.matching.similarity import similarity
from pharmacy_import.parsing.primitives import collapse_whitespace, title_case
from pharmacy_import.parsing.types import ImportRecord
from pharmacy_import.pipeline.stores import CategoryRef

logger = logging.getLogger(__name__)


# lower-cased alias -> canonical category
CATEGORY_SYNONYMS: dict[str, str] = {
    # pain & fever
    "pain relief": "Pain Relief",
    "pain reliever": "Pain Relief",
    "pain relief & fever": "Pain Relief",
    "pain & fever": "Pain Relief",
    "analgesics": "Pain Relief",
    "analgesic": "Pain Relief",
    "anti-inflammatory": "Pain Relief",
    # antibiotics
    "antibiotics": "Antibiotics",
    "antibiotic": "Antibiotics",
    "antimicrobial": "Antibiotics",
    "antimicrobials": "Antibiotics",
    # allergies
    "antihistamines": "Antihistamines",
    "antihistamine": "Antihistamines",
    "anti-histamine": "Antihistamines",
    "allergy": "Antihistamines",
    "allergies": "Antihistamines",
    # antifungal
    "antifungal": "Antifungal",
    "anti-fungal": "Antifungal",
    "fungal": "Antifungal",
    # heart
    "cardiovascular": "Cardiovascular",
    "cardio": "Cardiovascular",
    "heart": "Cardiovascular",
    "blood pressure": "Cardiovascular",
    "hypertension": "Cardiovascular",
    # digestive
    "digestive": "Gastrointestinal",
    "digestive health": "Gastrointestinal",
    "stomach": "Gastrointestinal",
    "gastrointestinal": "Gastrointestinal",
    "antacid": "Gastrointestinal",
    "anti-diarrheal": "Gastrointestinal",
    # respiratory
    "respiratory": "Respiratory",
    "breathing": "Respiratory",
    "cough": "Respiratory",
    "cold": "Respiratory",
    "cough & cold": "Respiratory",
    "flu": "Respiratory",
    "asthma": "Respiratory",
    # vitamins
    "vitamins": "Vitamins & Supplements",
    "vitamin": "Vitamins & Supplements",
    "supplements": "Vitamins & Supplements",
    "vitamins & supplements": "Vitamins & Supplements",
    "multivitamin": "Vitamins & Supplements",
    "minerals": "Vitamins & Supplements",
    # diabetes
    "diabetes": "Antidiabetic",
    "diabetic": "Antidiabetic",
    "antidiabetic": "Antidiabetic",
    "blood sugar": "Antidiabetic",
    "insulin": "Antidiabetic",
    # skin
    "skin": "Dermatology",
    "dermatology": "Dermatology",
    "topical": "Dermatology",
    # eyes
    "eye": "Eye Care",
    "eyes": "Eye Care",
    "eye care": "Eye Care",
    "ophthalmology": "Eye Care",
    "vision": "Eye Care",
}

_COLORS: tuple[tuple[str, str], ...] = (
    ("pain", "#EF4444"),
    ("heart", "#EC4899"),
    ("cardio", "#EC4899"),
    ("vitamin", "#10B981"),
    ("digestive", "#F59E0B"),
    ("gastro", "#F59E0B"),
    ("respiratory", "#3B82F6"),
    ("antibiotic", "#8B5CF6"),
    ("diabet", "#6366F1"),
    ("skin", "#F97316"),
    ("derma", "#F97316"),
    ("eye", "#06B6D4"),
)
_ICONS: tuple[tuple[str, str], ...] = (
    ("pain", "Zap"),
    ("heart", "Heart"),
    ("cardio", "Heart"),
    ("vitamin", "Shield"),
    ("digestive", "Apple"),
    ("gastro", "Apple"),
    ("respiratory", "Wind"),
    ("antibiotic", "Cross"),
    ("diabet", "Activity"),
    ("skin", "Sun"),
    ("derma", "Sun"),
    ("eye", "Eye"),
)
DEFAULT_COLOR = "#6B7280"
DEFAULT_ICON = "Package"


def category_color(name: str) -> str:
    """Display color for a new category, by keyword."""
    lowered = name.casefold()
    return next((c for k, c in _COLORS if k in lowered), DEFAULT_COLOR)


def category_icon(name: str) -> str:
    """Display icon for a new category, by keyword."""
    lowered = name.casefold()
    return next((i for k, i in _ICONS if k in lowered), DEFAULT_ICON)


def normalize_category_name(name: str | None, *, default: str = "General") -> str:
    """
    Canonical spelling of a category name.

    Exact synonym hits map to their canonical category (`"analgesics"` -> `"Pain Relief"`);
    anything else is title-cased (`"cardiovascular drugs"` -> `"Cardiovascular Drugs"`).
    """
    cleaned = collapse_whitespace(name or "")
    if not cleaned:
        return default
    synonym = CATEGORY_SYNONYMS.get(cleaned.lower())
    if synonym is not None:
        return synonym
    return title_case(cleaned)


def order_categories(existing: Iterable[CategoryRef]) -> list[CategoryRef]:
    """Deterministic match order: alphabetical (case-insensitive), then id."""
    return sorted(existing, key=lambda c: (c.name.casefold(), c.id))


def best_match(
    name: str,
    ordered: Sequence[CategoryRef],
    *,
    min_length: int = 0,
) -> tuple[CategoryRef | None, float]:
    """
    Highest-scoring category in `ordered` for `name`; ties go to the earlier one.

    Pairs where both names are shorter than `min_length` are not scored.
    """
    best: CategoryRef | None = None
    best_score = 0.0
    for ref in ordered:
        if len(name.strip()) < min_length and len(ref.name.strip()) < min_length:
            continue
        score = similarity(name, ref.name)
        if score > best_score:
            best, best_score = ref, score
    return best, best_score


@dataclass(frozen=True)
class CategoryCandidate:
    """A category name in the import with no existing counterpart, awaiting approval."""
    proposed_name: str                      # as first written in the file
    normalized_name: str
    similar_to: CategoryRef | None = None   # closest existing category, as a hint for the approver
    similarity_score: float | None = None   # only set together with `similar_to`
    member_row_count: int = 0
    row_numbers: tuple[int, ...] = ()

    @property
    def key(self) -> str:
        """Decision key: the case-folded normalized name."""
        return self.normalized_name.casefold()


@dataclass(frozen=True)
class Reconciliation:
    """Matcher output."""
    matched: dict[int, CategoryRef] = field(default_factory=dict)       # row_index -> category
    pending: dict[int, str] = field(default_factory=dict)               # row_index -> candidate key
    candidates: tuple[CategoryCandidate, ...] = ()


def reconcile(
    records: Sequence[ImportRecord],
    existing: Iterable[CategoryRef],
    *,
    settings: ImportSettings | None = None,
) -> Reconciliation:
    """
    Bind every record's category name to an existing category, or propose a new one.

    Per distinct name: exact (case-insensitive) match on the raw or normalized name,
    then the best fuzzy match at or above `settings.similarity_threshold`. Names with
    no such match become one `CategoryCandidate` each, however many rows use them.
    """
    settings = settings or ImportSettings()
    ordered = order_categories(existing)
    by_name: dict[str, CategoryRef] = {}
    for ref in ordered:
        by_name.setdefault(ref.name.strip().casefold(), ref)

    matched: dict[int, CategoryRef] = {}
    pending: dict[int, str] = {}
    drafts: dict[str, CategoryCandidate] = {}
    decided: dict[str, CategoryRef | None] = {}     # cache per raw name

    for record in records:
        raw_key = record.category_name.strip().casefold()
        normalized = normalize_category_name(record.category_name, default=settings.default_category)

        if raw_key not in decided:
            ref = by_name.get(raw_key) or by_name.get(normalized.casefold())
            if ref is None:
                candidate_ref, score = best_match(normalized, ordered, min_length=settings.min_fuzzy_length)
                if candidate_ref is not None and score >= settings.similarity_threshold:
                    logger.info("category %r fuzzy-matched to %r (%.2f)", record.category_name, candidate_ref.name, score)
                    ref = candidate_ref
            decided[raw_key] = ref

        ref = decided[raw_key]
        if ref is not None:
            matched[record.row_index] = ref
            continue

        key = normalized.casefold()
        pending[record.row_index] = key
        draft = drafts.get(key)
        if draft is None:
            hint, score = best_match(normalized, ordered)
            draft = CategoryCandidate(
                proposed_name=record.category_name,
                normalized_name=normalized,
                similar_to=hint if score >= settings.suggestion_threshold else None,
                similarity_score=score if score >= settings.suggestion_threshold else None,
            )
        drafts[key] = CategoryCandidate(
            proposed_name=draft.proposed_name,
            normalized_name=draft.normalized_name,
            similar_to=draft.similar_to,
            similarity_score=draft.similarity_score,
            member_row_count=draft.member_row_count + 1,
            row_numbers=(*draft.row_numbers, record.row_number),
        )

    candidates = tuple(drafts.values())
    if candidates:
        logger.info("%d new categories need approval: %s", len(candidates), [c.normalized_name for c in candidates])
    return Reconciliation(matched=matched, pending=pending, candidates=candidates)
