from __future__ import annotations

from collections import Counter
from typing import Iterable

from ..core.enums import TripStatus
from .model import TripSession, TripStatistics


def summarize_trips(sessions: Iterable[TripSession]) -> TripStatistics:
    """Totals over a set of sessions; waste, duration and per-point counts use completed trips only."""
    sessions = list(sessions)
    completed = [s for s in sessions if s.status == TripStatus.COMPLETED]
    pending = [s for s in sessions if s.is_active]
    cancelled = [s for s in sessions if s.status == TripStatus.CANCELLED]

    durations = [s.duration_minutes for s in completed if s.duration_minutes is not None]
    average = sum(durations) / len(durations) if durations else 0.0

    per_point = Counter(s.feeder_point_id for s in completed)

    return TripStatistics(
        total_trips=len(sessions),
        completed_trips=len(completed),
        pending_trips=len(pending),
        cancelled_trips=len(cancelled),
        total_waste_collected_kg=round(sum(s.waste_weight_kg or 0.0 for s in completed), 3),
        average_trip_duration_minutes=round(average, 2),
        trips_per_feeder_point=dict(per_point),
    )
