import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "swachh_netra"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

STORE_BACKEND = "mysql"
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))

PROXIMITY_THRESHOLD_METERS = float(os.getenv("PROXIMITY_THRESHOLD_METERS", "100"))
ALLOW_UNREGISTERED_FEEDER_POINTS = bool(int(os.getenv("ALLOW_UNREGISTERED_FEEDER_POINTS", "1")))
MAX_TRIPS_PER_DAY = int(os.getenv("MAX_TRIPS_PER_DAY", "3"))
MIN_END_TRIP_PHOTOS = int(os.getenv("MIN_END_TRIP_PHOTOS", "1"))
LATE_ARRIVAL_CUTOFF = os.getenv("LATE_ARRIVAL_CUTOFF", "09:00")
