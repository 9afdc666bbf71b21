"""Small helpers shared by the Flask controllers."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from flask import request

from ..core.exceptions import ValidationError
from .geo import Location
from .validators import require_date

DEFAULT_REPORT_DAYS = 30


def json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def location_field(body: dict, key: str) -> Optional[Location]:
    raw = body.get(key)
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError(f"{key} must be an object with latitude and longitude")
    loc = Location.from_document(raw)
    if loc is None:
        raise ValidationError(f"{key} must include latitude and longitude")
    return loc


def optional_date_arg(name: str) -> Optional[date]:
    value = request.args.get(name)
    return require_date(value, name) if value else None


def date_range_args() -> tuple[date, date]:
    """`start`/`end` query args; defaults to the last 30 days ending today."""
    end = optional_date_arg("end") or date.today()
    start = optional_date_arg("start") or end - timedelta(days=DEFAULT_REPORT_DAYS - 1)
    if start > end:
        raise ValidationError("Start date must not be after end date")
    return start, end
