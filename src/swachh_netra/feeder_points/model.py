from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..common.geo import Location


@dataclass(frozen=True)
class FeederPoint:
    """Domain entity: a registered waste-collection location."""

    feeder_point_id: str
    name: str
    area_name: str = ""
    ward_number: str = ""
    coordinates: Optional[Location] = None
    is_active: bool = True
    assigned_worker_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_coordinates(self) -> bool:
        return self.coordinates is not None

    def snapshot(self) -> dict:
        """Plain view returned alongside proximity decisions."""
        return {
            "id": self.feeder_point_id,
            "name": self.name,
            "area_name": self.area_name,
            "ward_number": self.ward_number,
            "coordinates": self.coordinates.to_document() if self.coordinates else None,
            "is_active": self.is_active,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "FeederPoint":
        coords = doc.get("coordinates") or doc.get("gps_coordinates")
        return cls(
            feeder_point_id=str(doc["id"]),
            name=doc.get("feeder_point_name") or doc.get("name") or "Unknown Point",
            area_name=doc.get("area_name") or "",
            ward_number=str(doc.get("ward_number") or ""),
            coordinates=Location.from_document(coords),
            is_active=bool(doc.get("is_active", True)),
            assigned_worker_ids=tuple(doc.get("assigned_worker_ids") or ()),
        )
