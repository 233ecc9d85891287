from __future__ import annotations

import re
from typing import Mapping, Sequence

_SEPARATORS = re.compile(r"[\s\-]+")


def header_key(header: str) -> str:
    """
    Case-fold and trim a header, treating runs of spaces/hyphens as `_`.

    `" Category Name "` and `"category-name"` both become `"category_name"`.
    """
    return _SEPARATORS.sub("_", str(header).strip().casefold())


def build_alias_index(field_aliases: Mapping[str, Sequence[str]]) -> dict[str, str]:
    """
    Flatten `{canonical: [variant, ...]}` into a lookup of `header_key(variant) -> canonical`.

    The canonical name is always an accepted variant of itself.
    """
    index: dict[str, str] = {}
    for canon, variants in field_aliases.items():
        for v in (canon, *variants):
            index[header_key(v)] = canon
    return index


def map_headers(headers: Sequence[str], aliases: Mapping[str, str]) -> list[str | None]:
    """
    Resolve each header to its canonical field name, or `None` when unrecognized.

    When two columns resolve to the same field, the first one wins and later ones
    are treated as unrecognized.
    """
    seen: set[str] = set()
    out: list[str | None] = []
    for h in headers:
        canon = aliases.get(header_key(h))
        if canon is None or canon in seen:
            out.append(None)
            continue
        seen.add(canon)
        out.append(canon)
    return out
