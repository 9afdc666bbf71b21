from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional


def rate(present: int, total: int) -> float:
    """present / total, 0.0 for an empty set."""
    if total <= 0:
        return 0.0
    return present / total


@dataclass(frozen=True)
class AttendanceSummary:
    total: int
    present: int
    absent: int

    @property
    def rate(self) -> float:
        return rate(self.present, self.total)

    def to_dict(self) -> dict:
        return {**asdict(self), "rate": round(self.rate, 4)}


@dataclass(frozen=True)
class GroupSummary:
    key: str
    label: str
    total: int
    present: int
    absent: int

    @property
    def rate(self) -> float:
        return rate(self.present, self.total)

    def to_dict(self) -> dict:
        return {**asdict(self), "rate": round(self.rate, 4)}


@dataclass(frozen=True)
class WorkerRate:
    worker_id: str
    worker_name: str
    total: int
    present: int
    absent: int

    @property
    def rate(self) -> float:
        return rate(self.present, self.total)

    def to_dict(self) -> dict:
        return {**asdict(self), "rate": round(self.rate, 4)}


@dataclass(frozen=True)
class CheckInStats:
    average_check_in_time: Optional[str]
    checked_in: int
    late_arrivals: int

    @property
    def late_arrival_rate(self) -> float:
        return rate(self.late_arrivals, self.checked_in)

    def to_dict(self) -> dict:
        return {**asdict(self), "late_arrival_rate": round(self.late_arrival_rate, 4)}


@dataclass(frozen=True)
class AttendanceAnalytics:
    """Overview, trends, insights and recommendations for one date range."""

    start_date: str
    end_date: str
    total_workers: int
    summary: AttendanceSummary
    top_performers: tuple[WorkerRate, ...]
    low_performers: tuple[WorkerRate, ...]
    daily: tuple[GroupSummary, ...]
    weekly: tuple[GroupSummary, ...]
    monthly: tuple[GroupSummary, ...]
    peak_days: tuple[str, ...]
    low_days: tuple[str, ...]
    check_in: CheckInStats
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date,
            "end_date": self.end_date,
            "overview": {
                "total_workers": self.total_workers,
                "total_records": self.summary.total,
                "present": self.summary.present,
                "absent": self.summary.absent,
                "attendance_rate": round(self.summary.rate, 4),
                "top_performers": [w.to_dict() for w in self.top_performers],
                "low_performers": [w.to_dict() for w in self.low_performers],
            },
            "trends": {
                "daily": [g.to_dict() for g in self.daily],
                "weekly": [g.to_dict() for g in self.weekly],
                "monthly": [g.to_dict() for g in self.monthly],
            },
            "insights": {
                "peak_attendance_days": list(self.peak_days),
                "low_attendance_days": list(self.low_days),
                **self.check_in.to_dict(),
            },
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class WorkerProfile:
    worker_id: str
    worker_name: str
    total_days: int
    present_days: int
    absent_days: int
    check_in: CheckInStats
    weekly: tuple[GroupSummary, ...]
    monthly: tuple[GroupSummary, ...]

    @property
    def attendance_rate(self) -> float:
        return rate(self.present_days, self.total_days)

    def to_dict(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "worker_name": self.worker_name,
            "total_days": self.total_days,
            "present_days": self.present_days,
            "absent_days": self.absent_days,
            "attendance_rate": round(self.attendance_rate, 4),
            **self.check_in.to_dict(),
            "weekly": [g.to_dict() for g in self.weekly],
            "monthly": [g.to_dict() for g in self.monthly],
        }
