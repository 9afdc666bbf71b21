from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ...attendance.model import AttendanceRecord
from ...core.enums import GroupingMode


class GroupingStrategy(ABC):
    """Strategy Pattern: how attendance records are bucketed for a report."""

    mode: GroupingMode
    # Calendar groupings are reported in key order, the rest in first-seen order.
    chronological: bool = False

    @abstractmethod
    def key_for(self, record: AttendanceRecord) -> Optional[str]:
        raise NotImplementedError

    def label_for(self, key: str, record: AttendanceRecord) -> str:
        return key
