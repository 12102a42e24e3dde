import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "scholar_track"),
}

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

SESSION_EDIT_POLICY = os.getenv("SESSION_EDIT_POLICY", "same_day")

LOOKBACK_DAYS = int(os.getenv("LOOKBACK_DAYS", "30"))
ATTENTION_THRESHOLD = float(os.getenv("ATTENTION_THRESHOLD", "75"))
