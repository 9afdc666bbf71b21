from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..common.datetime_utils import from_iso, to_iso
from ..common.geo import Location
from ..core.enums import TripStatus


@dataclass(frozen=True)
class TripSession:
    """Domain entity: one drive-and-collect cycle at a feeder point."""

    trip_id: str
    driver_id: str
    vehicle_id: str
    feeder_point_id: str
    trip_number: int
    status: TripStatus
    start_time: datetime
    work_date: str
    start_location: Optional[Location] = None
    end_location: Optional[Location] = None
    end_time: Optional[datetime] = None
    driver_name: str = ""
    vehicle_number: str = ""
    contractor_id: Optional[str] = None
    feeder_point_name: str = ""
    area_name: str = ""
    ward_number: str = ""
    worker_ids: tuple[str, ...] = field(default_factory=tuple)
    total_workers: int = 0
    present_workers: int = 0
    absent_workers: int = 0
    attendance_record_ids: tuple[str, ...] = field(default_factory=tuple)
    waste_weight_kg: Optional[float] = None
    photo_refs: tuple[str, ...] = field(default_factory=tuple)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def duration_minutes(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() / 60.0

    def to_document(self) -> dict:
        """Stored shape; the id lives outside the body."""
        return {
            "driver_id": self.driver_id,
            "driver_name": self.driver_name,
            "vehicle_id": self.vehicle_id,
            "vehicle_number": self.vehicle_number,
            "contractor_id": self.contractor_id,
            "feeder_point_id": self.feeder_point_id,
            "feeder_point_name": self.feeder_point_name,
            "area_name": self.area_name,
            "ward_number": self.ward_number,
            "trip_number": int(self.trip_number),
            "status": self.status.value,
            "start_location": self.start_location.to_document() if self.start_location else None,
            "end_location": self.end_location.to_document() if self.end_location else None,
            "start_time": to_iso(self.start_time),
            "end_time": to_iso(self.end_time),
            "work_date": self.work_date,
            "worker_ids": list(self.worker_ids),
            "total_workers": int(self.total_workers),
            "present_workers": int(self.present_workers),
            "absent_workers": int(self.absent_workers),
            "attendance_record_ids": list(self.attendance_record_ids),
            "waste_weight_kg": self.waste_weight_kg,
            "photo_refs": list(self.photo_refs),
            "notes": self.notes,
        }

    def to_dict(self) -> dict:
        """API view, including the derived duration."""
        out = {"id": self.trip_id, **self.to_document()}
        out["duration_minutes"] = self.duration_minutes
        out["created_at"] = to_iso(self.created_at)
        out["updated_at"] = to_iso(self.updated_at)
        return out

    @classmethod
    def from_document(cls, doc: dict) -> "TripSession":
        return cls(
            trip_id=str(doc["id"]),
            driver_id=doc["driver_id"],
            vehicle_id=doc.get("vehicle_id") or "",
            feeder_point_id=doc["feeder_point_id"],
            trip_number=int(doc.get("trip_number") or 0),
            status=TripStatus(doc.get("status", TripStatus.STARTED.value)),
            start_time=from_iso(doc["start_time"]),
            work_date=doc.get("work_date") or "",
            start_location=Location.from_document(doc.get("start_location")),
            end_location=Location.from_document(doc.get("end_location")),
            end_time=from_iso(doc.get("end_time")),
            driver_name=doc.get("driver_name") or "",
            vehicle_number=doc.get("vehicle_number") or "",
            contractor_id=doc.get("contractor_id"),
            feeder_point_name=doc.get("feeder_point_name") or "",
            area_name=doc.get("area_name") or "",
            ward_number=str(doc.get("ward_number") or ""),
            worker_ids=tuple(doc.get("worker_ids") or ()),
            total_workers=int(doc.get("total_workers") or 0),
            present_workers=int(doc.get("present_workers") or 0),
            absent_workers=int(doc.get("absent_workers") or 0),
            attendance_record_ids=tuple(doc.get("attendance_record_ids") or ()),
            waste_weight_kg=None if doc.get("waste_weight_kg") is None else float(doc["waste_weight_kg"]),
            photo_refs=tuple(doc.get("photo_refs") or ()),
            notes=doc.get("notes"),
            created_at=from_iso(doc.get("created_at")),
            updated_at=from_iso(doc.get("updated_at")),
        )


@dataclass(frozen=True)
class TripStatistics:
    """Read-model for the driver's trip summary screen."""

    total_trips: int
    completed_trips: int
    pending_trips: int
    cancelled_trips: int
    total_waste_collected_kg: float
    average_trip_duration_minutes: float
    trips_per_feeder_point: dict

    def to_dict(self) -> dict:
        return {
            "total_trips": self.total_trips,
            "completed_trips": self.completed_trips,
            "pending_trips": self.pending_trips,
            "cancelled_trips": self.cancelled_trips,
            "total_waste_collected_kg": self.total_waste_collected_kg,
            "average_trip_duration_minutes": self.average_trip_duration_minutes,
            "trips_per_feeder_point": dict(self.trips_per_feeder_point),
        }
