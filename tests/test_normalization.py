"""Tests for record metadata normalization."""
from __future__ import annotations

import pytest

from time_ledger.normalization import build_meta, normalize_color, normalize_label


@pytest.mark.parametrize(
    "value, expected",
    [
        ("#ABCDEF", "#abcdef"),
        ("abc", "#aabbcc"),
        ("  #123456 ", "#123456"),
        ("red", "#888888"),
        (None, "#888888"),
        ("#12345", "#888888"),
    ],
)
def test_normalize_color(value, expected):
    assert normalize_color(value) == expected


def test_normalize_label_collapses_whitespace():
    assert normalize_label("  Read   chapter  4 ", "x") == "Read chapter 4"
    assert normalize_label("   ", "fallback") == "fallback"
    assert normalize_label(None, "fallback") == "fallback"


def test_build_meta_defaults():
    meta = build_meta("task-9")
    assert meta.label == "task-9"
    assert meta.category_label == "Unknown"
    assert meta.category_color == "#888888"
    assert meta.activity_type == ""
