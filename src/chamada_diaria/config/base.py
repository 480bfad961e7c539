import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
DEBUG = bool(int(os.getenv("DEBUG", "0")))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Hosted backend
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")

# Push notifications
ONESIGNAL_APP_ID = os.getenv("ONESIGNAL_APP_ID", "")
ONESIGNAL_REST_API_KEY = os.getenv("ONESIGNAL_REST_API_KEY", "")

# Local durable store (SQLite file). ":memory:" keeps everything in RAM.
LOCAL_STORE_PATH = os.getenv("LOCAL_STORE_PATH", "chamada_offline.sqlite3")

# Sync engine
SYNC_BACKOFF_BASE_SECONDS = float(os.getenv("SYNC_BACKOFF_BASE_SECONDS", "2"))
SYNC_BACKOFF_CEILING_SECONDS = float(os.getenv("SYNC_BACKOFF_CEILING_SECONDS", "300"))
SYNC_MAX_ATTEMPTS_WARNING = int(os.getenv("SYNC_MAX_ATTEMPTS_WARNING", "5"))
SYNC_INTERVAL_SECONDS = float(os.getenv("SYNC_INTERVAL_SECONDS", "60"))
CONNECTIVITY_POLL_SECONDS = float(os.getenv("CONNECTIVITY_POLL_SECONDS", "10"))

REFERENCE_CACHE_TTL_HOURS = float(os.getenv("REFERENCE_CACHE_TTL_HOURS", "24"))
FUTURE_GRACE_DAYS = int(os.getenv("FUTURE_GRACE_DAYS", "0"))
