import os

SECRET_KEY = os.getenv("SECRET_KEY", "")
JWT_SECRET = os.getenv("JWT_SECRET", SECRET_KEY)
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "school_attendance_db"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

ATTENDANCE_MAX_PAST_DAYS = os.getenv("ATTENDANCE_MAX_PAST_DAYS", "30")
ATTENDANCE_MAX_FUTURE_DAYS = os.getenv("ATTENDANCE_MAX_FUTURE_DAYS", "0")
ALLOW_DEFAULT_SESSIONS = bool(int(os.getenv("ALLOW_DEFAULT_SESSIONS", "0")))
ATTENDANCE_STRICT_ONCE = bool(int(os.getenv("ATTENDANCE_STRICT_ONCE", "0")))
MAX_BATCH_SIZE = int(os.getenv("MAX_BATCH_SIZE", "500"))

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = False
