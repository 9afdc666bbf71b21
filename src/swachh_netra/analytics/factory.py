from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import GroupingMode
from ..core.exceptions import ValidationError
from .groupings.base import GroupingStrategy
from .groupings.day_strategy import DayStrategy
from .groupings.driver_strategy import DriverStrategy
from .groupings.feeder_point_strategy import FeederPointStrategy
from .groupings.month_strategy import MonthStrategy
from .groupings.status_strategy import StatusStrategy
from .groupings.week_strategy import WeekStrategy
from .groupings.worker_strategy import WorkerStrategy

_STRATEGIES = {
    GroupingMode.DAY: DayStrategy,
    GroupingMode.WEEK: WeekStrategy,
    GroupingMode.MONTH: MonthStrategy,
    GroupingMode.WORKER: WorkerStrategy,
    GroupingMode.DRIVER: DriverStrategy,
    GroupingMode.FEEDER_POINT: FeederPointStrategy,
    GroupingMode.STATUS: StatusStrategy,
}


@dataclass
class GroupingStrategyFactory:
    """Factory Pattern: pick the grouping strategy for a report mode."""

    def for_mode(self, mode) -> GroupingStrategy:
        try:
            mode = GroupingMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown grouping mode: {mode!r}")
        return _STRATEGIES[mode]()
