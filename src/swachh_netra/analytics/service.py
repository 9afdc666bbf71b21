from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional, Sequence

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import day_key, minutes_to_hhmm, parse_hhmm
from ..core.constants import (
    DEFAULT_LATE_ARRIVAL_CUTOFF,
    DEFAULT_TOP_N,
    HIGH_LATE_ARRIVAL_RATE,
    LOW_ATTENDANCE_RATE,
    MAX_LOW_PERFORMERS_BEFORE_ALERT,
)
from ..core.enums import AttendanceStatus, GroupingMode
from ..core.exceptions import ValidationError
from .factory import GroupingStrategyFactory
from .groupings.day_strategy import record_day
from .model import AttendanceAnalytics, AttendanceSummary, CheckInStats, GroupSummary, WorkerProfile, WorkerRate

logger = logging.getLogger(__name__)


class AttendanceAggregator:
    """Read-side reporting over attendance records.

    Every method recomputes from the records it is given; the aggregator only
    keeps configuration (late cutoff, list sizes).
    """

    def __init__(
        self,
        records: AttendanceRepository | None = None,
        *,
        late_cutoff: str = DEFAULT_LATE_ARRIVAL_CUTOFF,
        top_n: int = DEFAULT_TOP_N,
        strategy_factory: GroupingStrategyFactory | None = None,
    ):
        self._records = records
        cutoff = parse_hhmm(late_cutoff)
        self._late_cutoff_minutes = cutoff.hour * 60 + cutoff.minute
        self._top_n = int(top_n)
        self._factory = strategy_factory or GroupingStrategyFactory()

    # ----- summaries -----

    def summarize(self, records: Iterable[AttendanceRecord]) -> AttendanceSummary:
        records = list(records)
        present = sum(1 for r in records if r.status == AttendanceStatus.PRESENT)
        return AttendanceSummary(total=len(records), present=present, absent=len(records) - present)

    def group(self, records: Iterable[AttendanceRecord], mode) -> list[GroupSummary]:
        strategy = self._factory.for_mode(mode)
        buckets: dict[str, list] = {}
        labels: dict[str, str] = {}
        for r in records:
            key = strategy.key_for(r)
            if key is None:
                continue
            if key not in buckets:
                buckets[key] = [0, 0]
                labels[key] = strategy.label_for(key, r)
            buckets[key][0 if r.status == AttendanceStatus.PRESENT else 1] += 1

        keys = sorted(buckets) if strategy.chronological else list(buckets)
        return [
            GroupSummary(
                key=k,
                label=labels[k],
                total=buckets[k][0] + buckets[k][1],
                present=buckets[k][0],
                absent=buckets[k][1],
            )
            for k in keys
        ]

    def daily_series(self, records: Iterable[AttendanceRecord]) -> list[GroupSummary]:
        return self.group(records, GroupingMode.DAY)

    def weekly_series(self, records: Iterable[AttendanceRecord]) -> list[GroupSummary]:
        return self.group(records, GroupingMode.WEEK)

    def monthly_series(self, records: Iterable[AttendanceRecord]) -> list[GroupSummary]:
        return self.group(records, GroupingMode.MONTH)

    def peak_days(self, records: Iterable[AttendanceRecord], n: Optional[int] = None) -> list[str]:
        daily = self.daily_series(records)
        return [g.key for g in sorted(daily, key=lambda g: g.rate, reverse=True)[: self._n(n)]]

    def low_days(self, records: Iterable[AttendanceRecord], n: Optional[int] = None) -> list[str]:
        daily = self.daily_series(records)
        return [g.key for g in sorted(daily, key=lambda g: g.rate)[: self._n(n)]]

    # ----- workers -----

    def worker_rates(self, records: Iterable[AttendanceRecord]) -> list[WorkerRate]:
        return [
            WorkerRate(worker_id=g.key, worker_name=g.label, total=g.total, present=g.present, absent=g.absent)
            for g in self.group(records, GroupingMode.WORKER)
        ]

    def top_performers(self, records: Iterable[AttendanceRecord], n: Optional[int] = None) -> list[WorkerRate]:
        # sorted() is stable, so ties keep first-seen order.
        return sorted(self.worker_rates(records), key=lambda w: w.rate, reverse=True)[: self._n(n)]

    def low_performers(
        self, records: Iterable[AttendanceRecord], n: Optional[int] = None, *, below: Optional[float] = None
    ) -> list[WorkerRate]:
        rates = self.worker_rates(records)
        if below is not None:
            rates = [w for w in rates if w.rate < below]
        return sorted(rates, key=lambda w: w.rate)[: self._n(n)]

    # ----- check-in times -----

    def check_in_stats(self, records: Iterable[AttendanceRecord]) -> CheckInStats:
        minutes = []
        for r in records:
            when = r.effective_check_in
            if when is None:
                continue
            minutes.append(when.hour * 60 + when.minute)

        if not minutes:
            return CheckInStats(average_check_in_time=None, checked_in=0, late_arrivals=0)

        average = int(round(sum(minutes) / len(minutes)))
        late = sum(1 for m in minutes if m > self._late_cutoff_minutes)
        return CheckInStats(
            average_check_in_time=minutes_to_hhmm(average),
            checked_in=len(minutes),
            late_arrivals=late,
        )

    # ----- bundles -----

    def build_analytics(
        self, records: Iterable[AttendanceRecord], *, start_date: date, end_date: date
    ) -> AttendanceAnalytics:
        records = list(records)
        summary = self.summarize(records)
        check_in = self.check_in_stats(records)
        low = self.low_performers(records, below=LOW_ATTENDANCE_RATE)
        below_threshold = sum(1 for w in self.worker_rates(records) if w.rate < LOW_ATTENDANCE_RATE)

        recommendations = []
        if summary.total and summary.rate < LOW_ATTENDANCE_RATE:
            recommendations.append(
                "Overall attendance is below 80%. Consider implementing attendance incentives."
            )
        if check_in.late_arrival_rate > HIGH_LATE_ARRIVAL_RATE:
            recommendations.append(
                "High late arrival rate detected. Review work start times and transportation."
            )
        if below_threshold > MAX_LOW_PERFORMERS_BEFORE_ALERT:
            recommendations.append(
                "Multiple workers need attention. Consider individual coaching sessions."
            )

        return AttendanceAnalytics(
            start_date=day_key(start_date),
            end_date=day_key(end_date),
            total_workers=len({r.worker_id for r in records}),
            summary=summary,
            top_performers=tuple(self.top_performers(records)),
            low_performers=tuple(low),
            daily=tuple(self.daily_series(records)),
            weekly=tuple(self.weekly_series(records)),
            monthly=tuple(self.monthly_series(records)),
            peak_days=tuple(self.peak_days(records)),
            low_days=tuple(self.low_days(records)),
            check_in=check_in,
            recommendations=tuple(recommendations),
        )

    def build_worker_profile(self, records: Iterable[AttendanceRecord], worker_id: str) -> WorkerProfile:
        """Day-level view for one worker: a day counts as present if any record that day is present."""
        own = [r for r in records if r.worker_id == worker_id]
        days: dict[str, bool] = {}
        for r in own:
            day = record_day(r)
            days[day] = days.get(day, False) or r.status == AttendanceStatus.PRESENT
        present_days = sum(1 for v in days.values() if v)
        name = next((r.worker_name for r in own if r.worker_name), worker_id)

        return WorkerProfile(
            worker_id=worker_id,
            worker_name=name,
            total_days=len(days),
            present_days=present_days,
            absent_days=len(days) - present_days,
            check_in=self.check_in_stats(own),
            weekly=tuple(self.weekly_series(own)),
            monthly=tuple(self.monthly_series(own)),
        )

    async def build_report(
        self,
        start_date: date,
        end_date: date,
        *,
        worker_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        feeder_point_id: Optional[str] = None,
    ) -> AttendanceAnalytics:
        records = await self._load(
            start_date, end_date, worker_id=worker_id, driver_id=driver_id, feeder_point_id=feeder_point_id
        )
        logger.debug("Analytics over %s record(s) from %s to %s", len(records), start_date, end_date)
        return self.build_analytics(records, start_date=start_date, end_date=end_date)

    async def worker_profile(self, worker_id: str, start_date: date, end_date: date) -> WorkerProfile:
        records = await self._load(start_date, end_date, worker_id=worker_id)
        return self.build_worker_profile(records, worker_id)

    async def grouped_report(self, start_date: date, end_date: date, mode, **filters) -> list[GroupSummary]:
        records = await self._load(start_date, end_date, **filters)
        return self.group(records, mode)

    async def _load(self, start_date: date, end_date: date, **filters) -> Sequence[AttendanceRecord]:
        if self._records is None:
            raise RuntimeError("AttendanceAggregator was built without a repository")
        if start_date > end_date:
            raise ValidationError("Start date must not be after end date")
        return await self._records.list_between(
            start_date=day_key(start_date), end_date=day_key(end_date), **filters
        )

    def _n(self, n: Optional[int]) -> int:
        return self._top_n if n is None else max(0, int(n))
