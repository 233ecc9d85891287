from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping


@dataclass(frozen=True)
class ImportSettings:
    """Tunable knobs for a single import run."""
    similarity_threshold: float = 0.70      # fuzzy score at/above which a category is reused
    min_fuzzy_length: int = 4               # names shorter than this only ever match exactly
    suggestion_threshold: float = 0.50      # below-threshold matches still offered to the approver as a hint
    default_category: str = "General"
    default_classification: str = "Over-the-Counter (OTC)"
    default_price: Decimal = Decimal("1.00")
    default_reorder_level: int = 10
    batch_prefix: str = "BT"


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name}: expected a number, got {raw!r}")
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name}: must be between 0 and 1, got {raw!r}")
    return value


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name}: expected an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name}: must not be negative, got {raw!r}")
    return value


def _env_text(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def load_settings(env: Mapping[str, str] | None = None) -> ImportSettings:
    """
    Build `ImportSettings` from `PHARMA_IMPORT_*` environment variables.

    Unset or blank variables keep their defaults. Raises `ValueError` naming the
    offending variable on bad input.
    """
    env = os.environ if env is None else env
    return ImportSettings(
        similarity_threshold=_env_float(env, "PHARMA_IMPORT_SIMILARITY_THRESHOLD", 0.70),
        min_fuzzy_length=_env_int(env, "PHARMA_IMPORT_MIN_FUZZY_LENGTH", 4),
        suggestion_threshold=_env_float(env, "PHARMA_IMPORT_SUGGESTION_THRESHOLD", 0.50),
        default_category=_env_text(env, "PHARMA_IMPORT_DEFAULT_CATEGORY", "General"),
        batch_prefix=_env_text(env, "PHARMA_IMPORT_BATCH_PREFIX", "BT"),
    )
