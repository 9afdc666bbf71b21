from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..feeder_points.model import FeederPoint
from .model import Worker


class WorkerRepository(Protocol):
    async def list_for_feeder_point(self, feeder_point: FeederPoint) -> Sequence[Worker]:
        """Active workers assigned to the feeder point, without duplicates."""

        raise NotImplementedError

    async def list_for_driver(self, driver_id: str) -> Sequence[Worker]:
        """Workers riding with a driver; falls back to the driver's contractor crew."""

        raise NotImplementedError

    async def get_contractor_id(self, driver_id: str) -> Optional[str]:
        raise NotImplementedError
