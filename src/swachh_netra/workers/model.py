from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Worker:
    """Reference data for a field worker; owned by the assignment screens."""

    worker_id: str
    full_name: str
    role: str = "worker"
    phone_number: str = ""
    assigned_feeder_point_ids: tuple[str, ...] = field(default_factory=tuple)
    assigned_driver_id: Optional[str] = None
    contractor_id: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_document(cls, doc: dict) -> "Worker":
        return cls(
            worker_id=str(doc["id"]),
            full_name=doc.get("full_name") or doc.get("name") or "Unknown Worker",
            role=doc.get("role") or doc.get("worker_type") or "worker",
            phone_number=doc.get("phone_number") or "",
            assigned_feeder_point_ids=tuple(doc.get("assigned_feeder_point_ids") or ()),
            assigned_driver_id=doc.get("assigned_driver_id"),
            contractor_id=doc.get("contractor_id"),
            is_active=bool(doc.get("is_active", True)),
        )
