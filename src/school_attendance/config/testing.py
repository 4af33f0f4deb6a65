import os

SECRET_KEY = "test-secret-key"
JWT_SECRET = "test-jwt-secret"
JWT_EXPIRE_MINUTES = 30

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "school_attendance_test"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

ATTENDANCE_MAX_PAST_DAYS = ""
ATTENDANCE_MAX_FUTURE_DAYS = ""
ALLOW_DEFAULT_SESSIONS = False
ATTENDANCE_STRICT_ONCE = False
MAX_BATCH_SIZE = 500

AUTO_INIT_DB = False
AUTO_SEED_DB = False
