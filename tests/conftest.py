from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from swachh_netra.common.geo import Location
from swachh_netra.container import build_container
from swachh_netra.core.constants import FEEDER_POINTS, USERS, WORKERS
from swachh_netra.database.document_store import WriteOp
from swachh_netra.database.memory_document_store import InMemoryDocumentStore

# Connaught Place, New Delhi
FP1_LAT = 28.6315
FP1_LON = 77.2167
METERS_PER_DEGREE_LAT = 6_371_000 * 3.141592653589793 / 180


def north_of(lat: float, lon: float, meters: float) -> Location:
    return Location(latitude=lat + meters / METERS_PER_DEGREE_LAT, longitude=lon)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


REFERENCE_DATA = {
    FEEDER_POINTS: {
        "fp-1": {
            "feeder_point_name": "Connaught Place Bin",
            "area_name": "Central",
            "ward_number": "4",
            "coordinates": {"latitude": FP1_LAT, "longitude": FP1_LON},
            "assigned_worker_ids": ["w-1", "w-2"],
            "is_active": True,
        },
        "fp-2": {
            "feeder_point_name": "Old Market",
            "area_name": "North",
            "ward_number": "9",
            "coordinates": None,
            "assigned_worker_ids": [],
            "is_active": True,
        },
        "fp-3": {
            "feeder_point_name": "Ring Road Depot",
            "area_name": "South",
            "ward_number": "11",
            "coordinates": {"latitude": 28.5500, "longitude": 77.2500},
            "assigned_worker_ids": [],
            "is_active": True,
        },
    },
    WORKERS: {
        # w-1, w-2 listed on the feeder point; w-3, w-4 list the feeder point themselves.
        "w-1": {"full_name": "Asha", "assigned_feeder_point_ids": [], "assigned_driver_id": "d-1", "contractor_id": "c-1", "is_active": True},
        "w-2": {"full_name": "Bala", "assigned_feeder_point_ids": ["fp-1"], "assigned_driver_id": "d-1", "contractor_id": "c-1", "is_active": True},
        "w-3": {"full_name": "Chandu", "assigned_feeder_point_ids": ["fp-1"], "assigned_driver_id": "d-1", "contractor_id": "c-1", "is_active": True},
        "w-4": {"full_name": "Deepa", "assigned_feeder_point_ids": ["fp-1"], "assigned_driver_id": "d-1", "contractor_id": "c-1", "is_active": True},
        "w-5": {"full_name": "Esha", "assigned_feeder_point_ids": ["fp-1"], "contractor_id": "c-2", "is_active": False},
        "w-6": {"full_name": "Farid", "assigned_feeder_point_ids": [], "contractor_id": "c-2", "is_active": True},
    },
    USERS: {
        "d-1": {"full_name": "Driver One", "role": "driver", "contractor_id": "c-1"},
        "d-2": {"full_name": "Driver Two", "role": "driver", "contractor_id": "c-2"},
        "d-3": {"full_name": "Driver Three", "role": "driver", "contractor_id": "c-9"},
    },
}


async def seed(store) -> None:
    ops = [
        WriteOp(collection, doc_id, body, create=True)
        for collection, docs in REFERENCE_DATA.items()
        for doc_id, body in docs.items()
    ]
    await store.batch_write(ops)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 8, 30, 0)


@pytest.fixture
def clock(fixed_now) -> FakeClock:
    return FakeClock(fixed_now)


@pytest.fixture
def store(clock) -> InMemoryDocumentStore:
    return InMemoryDocumentStore(clock=clock)


@pytest.fixture
def seeded_store(store) -> InMemoryDocumentStore:
    asyncio.run(seed(store))
    return store


@pytest.fixture
def container(seeded_store, clock):
    return build_container(store=seeded_store, clock=clock)


@pytest.fixture
def at_fp1():
    return north_of(FP1_LAT, FP1_LON, 20)


@pytest.fixture
def offset_from_fp1():
    def _offset(meters: float) -> Location:
        return north_of(FP1_LAT, FP1_LON, meters)

    return _offset
