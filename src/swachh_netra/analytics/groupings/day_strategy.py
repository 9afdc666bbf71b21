from __future__ import annotations

from ...attendance.model import AttendanceRecord
from ...common.datetime_utils import day_key
from ...core.enums import GroupingMode
from .base import GroupingStrategy


def record_day(record: AttendanceRecord) -> str:
    return record.work_date or day_key(record.timestamp.date())


class DayStrategy(GroupingStrategy):
    mode = GroupingMode.DAY
    chronological = True

    def key_for(self, record: AttendanceRecord) -> str:
        return record_day(record)
