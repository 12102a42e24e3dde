import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "scholar_track"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# same_day: yesterday's attendance becomes read-only at date rollover.
# until_finalized: sessions stay editable until a teacher finalizes them.
SESSION_EDIT_POLICY = os.getenv("SESSION_EDIT_POLICY", "same_day")

LOOKBACK_DAYS = int(os.getenv("LOOKBACK_DAYS", "30"))
ATTENTION_THRESHOLD = float(os.getenv("ATTENTION_THRESHOLD", "75"))
