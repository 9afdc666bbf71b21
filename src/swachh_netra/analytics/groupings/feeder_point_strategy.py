from __future__ import annotations

from typing import Optional

from ...attendance.model import AttendanceRecord
from ...core.enums import GroupingMode
from .base import GroupingStrategy


class FeederPointStrategy(GroupingStrategy):
    """Trip-scoped records only; driver-direct records carry no feeder point."""

    mode = GroupingMode.FEEDER_POINT

    def key_for(self, record: AttendanceRecord) -> Optional[str]:
        return record.feeder_point_id or None

    def label_for(self, key: str, record: AttendanceRecord) -> str:
        return record.feeder_point_name or key
