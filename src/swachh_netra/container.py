from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .analytics.factory import GroupingStrategyFactory
from .analytics.service import AttendanceAggregator
from .attendance.service import AttendanceRecorder
from .attendance.store_attendance_repository import StoreAttendanceRepository
from .common.datetime_utils import Clock, now_local
from .core import constants
from .database.connection import DatabaseConnection
from .database.document_store import DocumentStore
from .database.memory_document_store import InMemoryDocumentStore
from .database.mysql_document_store import MySQLDocumentStore
from .feeder_points.store_feeder_point_repository import StoreFeederPointRepository
from .trips.proximity import ProximityGate
from .trips.service import TripSessionManager
from .trips.store_trip_repository import StoreTripRepository
from .trips.validator import TripConstraintValidator
from .workers.store_worker_repository import StoreWorkerRepository


@dataclass(frozen=True)
class Container:
    store: DocumentStore

    feeder_points_repo: StoreFeederPointRepository
    workers_repo: StoreWorkerRepository
    trips_repo: StoreTripRepository
    attendance_repo: StoreAttendanceRepository

    proximity_gate: ProximityGate
    trip_manager: TripSessionManager
    attendance_recorder: AttendanceRecorder
    aggregator: AttendanceAggregator


def build_store(*, backend: str, db_config: Optional[dict] = None, timeout_seconds: float, clock: Clock) -> DocumentStore:
    if backend == "memory":
        return InMemoryDocumentStore(clock=clock)
    if backend == "mysql":
        if not db_config:
            raise ValueError("DB_CONFIG is required for the mysql store backend")
        return MySQLDocumentStore(DatabaseConnection.from_dict(db_config), timeout_seconds=timeout_seconds, clock=clock)
    raise ValueError(f"Unknown STORE_BACKEND: {backend!r}")


def build_container(
    *,
    settings: Any = None,
    store: Optional[DocumentStore] = None,
    clock: Clock = now_local,
) -> Container:
    """Wire repositories and services.

    `settings` is a settings module (or any object with the same attributes);
    missing attributes fall back to the defaults in `core.constants`.
    """

    def setting(name: str, default):
        return getattr(settings, name, default)

    if store is None:
        store = build_store(
            backend=setting("STORE_BACKEND", "memory"),
            db_config=setting("DB_CONFIG", None),
            timeout_seconds=float(setting("STORE_TIMEOUT_SECONDS", constants.DEFAULT_STORE_TIMEOUT_SECONDS)),
            clock=clock,
        )

    feeder_points_repo = StoreFeederPointRepository(store)
    workers_repo = StoreWorkerRepository(store)
    trips_repo = StoreTripRepository(store)
    attendance_repo = StoreAttendanceRepository(store)

    proximity_gate = ProximityGate(
        feeder_points_repo,
        threshold_meters=float(setting("PROXIMITY_THRESHOLD_METERS", constants.DEFAULT_PROXIMITY_THRESHOLD_METERS)),
        fail_open=bool(setting("ALLOW_UNREGISTERED_FEEDER_POINTS", constants.DEFAULT_ALLOW_UNREGISTERED_FEEDER_POINTS)),
    )
    trip_manager = TripSessionManager(
        store,
        trips_repo,
        feeder_points_repo,
        workers_repo,
        validator=TripConstraintValidator(
            max_trips_per_day=int(setting("MAX_TRIPS_PER_DAY", constants.DEFAULT_MAX_TRIPS_PER_DAY))
        ),
        min_end_photos=int(setting("MIN_END_TRIP_PHOTOS", constants.DEFAULT_MIN_END_TRIP_PHOTOS)),
        clock=clock,
    )
    attendance_recorder = AttendanceRecorder(store, attendance_repo, trips_repo, workers_repo, clock=clock)
    aggregator = AttendanceAggregator(
        attendance_repo,
        late_cutoff=str(setting("LATE_ARRIVAL_CUTOFF", constants.DEFAULT_LATE_ARRIVAL_CUTOFF)),
        strategy_factory=GroupingStrategyFactory(),
    )

    return Container(
        store=store,
        feeder_points_repo=feeder_points_repo,
        workers_repo=workers_repo,
        trips_repo=trips_repo,
        attendance_repo=attendance_repo,
        proximity_gate=proximity_gate,
        trip_manager=trip_manager,
        attendance_recorder=attendance_recorder,
        aggregator=aggregator,
    )
