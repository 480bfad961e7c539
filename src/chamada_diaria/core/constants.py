"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# Local persistence keys (one device outbox)
PENDING_KEY = "chamadas_pendentes"
SESSION_KEY = "chamada_session"
REFERENCE_CACHE_KEY = "cache_dados_escola"
DEAD_LETTER_KEY = "chamadas_dead_letter"
SYNC_CURSOR_KEY = "sync_cursor"

DEFAULT_FUTURE_GRACE_DAYS = 0
DEFAULT_REFERENCE_CACHE_TTL_HOURS = 24

DEFAULT_BACKOFF_BASE_SECONDS = 2.0
DEFAULT_BACKOFF_CEILING_SECONDS = 300.0
DEFAULT_MAX_ATTEMPTS_WARNING = 5
DEFAULT_SYNC_INTERVAL_SECONDS = 60.0
DEFAULT_CONNECTIVITY_POLL_SECONDS = 10.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 3.0

# Reports
MIN_FALTAS = 5
REPORT_PAGE_SIZE = 10
ALERT_MIN_CLASSES = 5
ALERT_ABSENCE_RATE = 80

# Presence
PRESENCE_TTL_SECONDS = 120
GLOBAL_PRESENCE_ROOM = "global"

ONESIGNAL_URL = "https://onesignal.com/api/v1/notifications"
ONESIGNAL_DEFAULT_SEGMENT = "Subscribed Users"
