from __future__ import annotations

from ...attendance.model import AttendanceRecord
from ...common.datetime_utils import parse_iso_date, week_key
from ...core.enums import GroupingMode
from .base import GroupingStrategy
from .day_strategy import record_day


class WeekStrategy(GroupingStrategy):
    """ISO weeks, keyed `YYYY-Www`."""

    mode = GroupingMode.WEEK
    chronological = True

    def key_for(self, record: AttendanceRecord) -> str:
        return week_key(parse_iso_date(record_day(record)))
