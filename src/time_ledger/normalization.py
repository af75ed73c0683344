"""Utilities to normalize the descriptive fields copied onto time records."""

from __future__ import annotations

import re
from typing import Optional

from .models import EntityMeta

DEFAULT_CATEGORY = "Unknown"
DEFAULT_COLOR = "#888888"

_HEX_COLOR_PATTERN = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def normalize_label(value: Optional[str], fallback: str) -> str:
    """Collapse whitespace; fall back when nothing printable is left."""
    if not value:
        return fallback
    normalized = re.sub(r"\s{2,}", " ", value).strip()
    return normalized or fallback


def normalize_color(value: Optional[str]) -> str:
    """Return a lowercase ``#rrggbb`` color, or the default grey."""
    if not value:
        return DEFAULT_COLOR
    match = _HEX_COLOR_PATTERN.match(value.strip())
    if not match:
        return DEFAULT_COLOR
    digits = match.group(1).lower()
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return f"#{digits}"


def build_meta(
    entity_id: str,
    label: Optional[str] = None,
    category_label: Optional[str] = None,
    category_color: Optional[str] = None,
    activity_type: Optional[str] = None,
) -> EntityMeta:
    return EntityMeta(
        entity_id=entity_id,
        label=normalize_label(label, entity_id),
        category_label=normalize_label(category_label, DEFAULT_CATEGORY),
        category_color=normalize_color(category_color),
        activity_type=normalize_label(activity_type, ""),
    )
