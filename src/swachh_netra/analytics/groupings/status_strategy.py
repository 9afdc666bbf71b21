from __future__ import annotations

from ...attendance.model import AttendanceRecord
from ...core.enums import GroupingMode
from .base import GroupingStrategy


class StatusStrategy(GroupingStrategy):
    mode = GroupingMode.STATUS

    def key_for(self, record: AttendanceRecord) -> str:
        return record.status.value
