from __future__ import annotations

from ...attendance.model import AttendanceRecord
from ...common.datetime_utils import month_key, parse_iso_date
from ...core.enums import GroupingMode
from .base import GroupingStrategy
from .day_strategy import record_day


class MonthStrategy(GroupingStrategy):
    mode = GroupingMode.MONTH
    chronological = True

    def key_for(self, record: AttendanceRecord) -> str:
        return month_key(parse_iso_date(record_day(record)))
