"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

EARTH_RADIUS_METERS = 6_371_000

DEFAULT_PROXIMITY_THRESHOLD_METERS = 100.0
DEFAULT_ALLOW_UNREGISTERED_FEEDER_POINTS = True
DEFAULT_MAX_TRIPS_PER_DAY = 3
DEFAULT_MIN_END_TRIP_PHOTOS = 1
DEFAULT_LATE_ARRIVAL_CUTOFF = "09:00"
DEFAULT_STORE_TIMEOUT_SECONDS = 10.0
DEFAULT_TOP_N = 5

# Thresholds used to phrase analytics recommendations.
LOW_ATTENDANCE_RATE = 0.80
HIGH_LATE_ARRIVAL_RATE = 0.20
MAX_LOW_PERFORMERS_BEFORE_ALERT = 3

# Collection names in the document store.
FEEDER_POINTS = "feederPoints"
WORKERS = "workers"
USERS = "users"
TRIP_SESSIONS = "tripSessions"
WORKER_ATTENDANCE = "workerAttendance"
