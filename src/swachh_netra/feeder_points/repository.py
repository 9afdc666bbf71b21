from __future__ import annotations

from typing import Optional, Protocol

from .model import FeederPoint


class FeederPointRepository(Protocol):
    """Read-only access; feeder points are maintained by HR/admin screens."""

    async def get_by_id(self, feeder_point_id: str) -> Optional[FeederPoint]:
        raise NotImplementedError
