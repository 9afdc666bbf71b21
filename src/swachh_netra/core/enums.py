from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Roles used for permission checks."""

    ADMIN = "admin"
    HR = "swachh_hr"
    CONTRACTOR = "contractor"
    DRIVER = "driver"


class TripStatus(str, Enum):
    """Lifecycle of a trip session as stored in the document store."""

    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (TripStatus.STARTED, TripStatus.IN_PROGRESS)


ACTIVE_TRIP_STATUSES = (TripStatus.STARTED, TripStatus.IN_PROGRESS)


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"


class GroupingMode(str, Enum):
    """Ways attendance records can be bucketed for reporting."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    WORKER = "worker"
    DRIVER = "driver"
    FEEDER_POINT = "feeder_point"
    STATUS = "status"
