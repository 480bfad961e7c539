from .base import *  # noqa: F401,F403

SECRET_KEY = "test-secret-key"
DEBUG = False
LOG_LEVEL = "WARNING"

SUPABASE_URL = ""
SUPABASE_KEY = ""
LOCAL_STORE_PATH = ":memory:"
