from __future__ import annotations

from typing import Optional

from ...attendance.model import AttendanceRecord
from ...core.enums import GroupingMode
from .base import GroupingStrategy


class DriverStrategy(GroupingStrategy):
    mode = GroupingMode.DRIVER

    def key_for(self, record: AttendanceRecord) -> Optional[str]:
        return record.driver_id or None

    def label_for(self, key: str, record: AttendanceRecord) -> str:
        return record.driver_name or key
