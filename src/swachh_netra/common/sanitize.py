"""Optional-field normalization at the persistence boundary.

`MISSING` marks "no value supplied" inside the core (e.g. a patch field that
is not being updated). It must never be written: the store rejects any
payload that still contains it, so every write path runs its document through
`normalize_optional` first, which maps `MISSING` to an explicit `None`.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..core.exceptions import SanitizationError


class _Missing:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Missing, ())


MISSING: Any = _Missing()


def is_missing(value: Any) -> bool:
    return value is MISSING


def normalize_value(value: Any) -> Any:
    if value is MISSING:
        return None
    if isinstance(value, Mapping):
        return normalize_optional(value)
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    return value


def normalize_optional(document: Mapping[str, Any], *, fields: Iterable[str] = ()) -> dict:
    """Return a copy of `document` with every unset value replaced by None.

    `fields` lists optional keys that must be present in the output even when
    the caller omitted them entirely.
    """
    out = {key: normalize_value(value) for key, value in document.items()}
    for key in fields:
        out.setdefault(key, None)
    return out


def drop_missing(patch: Mapping[str, Any]) -> dict:
    """Keep only the patch entries that were actually supplied."""
    return {key: value for key, value in patch.items() if value is not MISSING}


def assert_sanitized(document: Any, *, path: str = "") -> None:
    if document is MISSING:
        raise SanitizationError(f"Unset value at {path or '<root>'} reached the document store")
    if isinstance(document, Mapping):
        for key, value in document.items():
            assert_sanitized(value, path=f"{path}.{key}" if path else str(key))
    elif isinstance(document, (list, tuple)):
        for i, value in enumerate(document):
            assert_sanitized(value, path=f"{path}[{i}]")
