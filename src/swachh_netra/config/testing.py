import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "swachh_netra_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

STORE_BACKEND = os.getenv("STORE_BACKEND", "memory")
STORE_TIMEOUT_SECONDS = 5.0

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

PROXIMITY_THRESHOLD_METERS = 100.0
ALLOW_UNREGISTERED_FEEDER_POINTS = True
MAX_TRIPS_PER_DAY = 3
MIN_END_TRIP_PHOTOS = 1
LATE_ARRIVAL_CUTOFF = "09:00"
