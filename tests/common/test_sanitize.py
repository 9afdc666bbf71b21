from __future__ import annotations

import pytest

from swachh_netra.common.sanitize import MISSING, assert_sanitized, drop_missing, normalize_optional
from swachh_netra.core.exceptions import SanitizationError


def test_missing_is_falsy_singleton():
    assert not MISSING
    assert repr(MISSING) == "MISSING"


def test_normalize_optional_replaces_unset_values_recursively():
    doc = {"notes": MISSING, "location": {"accuracy": MISSING, "latitude": 1.0}, "photos": [MISSING, "p1"]}

    out = normalize_optional(doc, fields=("photo_ref",))

    assert out == {
        "notes": None,
        "location": {"accuracy": None, "latitude": 1.0},
        "photos": [None, "p1"],
        "photo_ref": None,
    }
    assert doc["notes"] is MISSING


def test_drop_missing_keeps_empty_string_and_none():
    patch = drop_missing({"status": MISSING, "notes": "", "timestamp": None})
    assert patch == {"notes": "", "timestamp": None}


def test_assert_sanitized_reports_path():
    with pytest.raises(SanitizationError, match=r"tripSessions/t1\.location\.accuracy"):
        assert_sanitized({"location": {"accuracy": MISSING}}, path="tripSessions/t1")

    with pytest.raises(SanitizationError, match=r"\[1\]"):
        assert_sanitized({"photo_refs": ["a", MISSING]})

    assert_sanitized({"notes": None, "photo_refs": []})
