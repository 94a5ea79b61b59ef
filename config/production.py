import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "class_attendance"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

DEFAULT_LATE_MINUTES = int(os.getenv("DEFAULT_LATE_MINUTES", "10"))
RECOMPUTE_RETRY_BACKOFF_SECONDS = float(os.getenv("RECOMPUTE_RETRY_BACKOFF_SECONDS", "0.5"))
