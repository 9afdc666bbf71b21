from __future__ import annotations

from ...attendance.model import AttendanceRecord
from ...core.enums import GroupingMode
from .base import GroupingStrategy


class WorkerStrategy(GroupingStrategy):
    mode = GroupingMode.WORKER

    def key_for(self, record: AttendanceRecord) -> str:
        return record.worker_id

    def label_for(self, key: str, record: AttendanceRecord) -> str:
        return record.worker_name or key
