from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..common.datetime_utils import from_iso, to_iso
from ..common.geo import Location
from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError


def parse_status(value: Any) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    if isinstance(value, bool):
        return AttendanceStatus.PRESENT if value else AttendanceStatus.ABSENT
    try:
        return AttendanceStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid attendance status: {value!r}")


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one presence/absence assertion for a worker.

    `trip_id` is None for the driver-direct flow, which keeps a single
    record per (worker, driver, work_date).
    """

    record_id: str
    worker_id: str
    worker_name: str
    driver_id: str
    status: AttendanceStatus
    timestamp: datetime
    work_date: str
    driver_name: str = ""
    trip_id: Optional[str] = None
    feeder_point_id: Optional[str] = None
    feeder_point_name: Optional[str] = None
    vehicle_id: Optional[str] = None
    check_in_time: Optional[datetime] = None
    location: Optional[Location] = None
    photo_ref: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_present(self) -> bool:
        return self.status == AttendanceStatus.PRESENT

    @property
    def effective_check_in(self) -> Optional[datetime]:
        """Check-in used by reports; only present records have one."""
        if not self.is_present:
            return None
        return self.check_in_time or self.timestamp

    def to_document(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "worker_name": self.worker_name,
            "driver_id": self.driver_id,
            "driver_name": self.driver_name,
            "trip_id": self.trip_id,
            "feeder_point_id": self.feeder_point_id,
            "feeder_point_name": self.feeder_point_name,
            "vehicle_id": self.vehicle_id,
            "status": self.status.value,
            "timestamp": to_iso(self.timestamp),
            "work_date": self.work_date,
            "check_in_time": to_iso(self.check_in_time),
            "location": self.location.to_document() if self.location else None,
            "photo_ref": self.photo_ref,
            "notes": self.notes,
        }

    def to_dict(self) -> dict:
        out = {"id": self.record_id, **self.to_document()}
        out["created_at"] = to_iso(self.created_at)
        out["updated_at"] = to_iso(self.updated_at)
        return out

    @classmethod
    def from_document(cls, doc: dict) -> "AttendanceRecord":
        return cls(
            record_id=str(doc["id"]),
            worker_id=doc["worker_id"],
            worker_name=doc.get("worker_name") or "",
            driver_id=doc.get("driver_id") or "",
            driver_name=doc.get("driver_name") or "",
            status=parse_status(doc.get("status")),
            timestamp=from_iso(doc["timestamp"]),
            work_date=doc.get("work_date") or "",
            trip_id=doc.get("trip_id"),
            feeder_point_id=doc.get("feeder_point_id"),
            feeder_point_name=doc.get("feeder_point_name"),
            vehicle_id=doc.get("vehicle_id"),
            check_in_time=from_iso(doc.get("check_in_time")),
            location=Location.from_document(doc.get("location")),
            photo_ref=doc.get("photo_ref"),
            notes=doc.get("notes"),
            created_at=from_iso(doc.get("created_at")),
            updated_at=from_iso(doc.get("updated_at")),
        )


@dataclass(frozen=True)
class AttendanceEntry:
    """One line of a bulk driver-direct submission."""

    worker_id: str
    worker_name: str
    is_present: bool
    check_in_time: Optional[datetime] = None
    photo_ref: Any = None
    location: Any = None
    notes: Any = None


@dataclass(frozen=True)
class RosterEntry:
    worker_id: str
    worker_name: str
    status: str
    record_id: Optional[str] = None
    check_in_time: Optional[datetime] = None


@dataclass(frozen=True)
class DriverRoster:
    driver_id: str
    work_date: str
    entries: tuple[RosterEntry, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return len(self.entries)

    def count(self, status: str) -> int:
        return sum(1 for e in self.entries if e.status == status)

    def to_dict(self) -> dict:
        return {
            "driver_id": self.driver_id,
            "work_date": self.work_date,
            "total_workers": self.total,
            "present": self.count(AttendanceStatus.PRESENT.value),
            "absent": self.count(AttendanceStatus.ABSENT.value),
            "pending": self.count("pending"),
            "workers": [
                {
                    "worker_id": e.worker_id,
                    "worker_name": e.worker_name,
                    "status": e.status,
                    "record_id": e.record_id,
                    "check_in_time": to_iso(e.check_in_time),
                }
                for e in self.entries
            ],
        }
