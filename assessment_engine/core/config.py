import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Override with ASSESSMENT_ENGINE_DATABASE_URL outside local dev.
DATABASE_URL = os.environ.get(
    "ASSESSMENT_ENGINE_DATABASE_URL",
    f"sqlite:///{BASE_DIR}/assessment_engine.db",
)

# Used to build links inside notification payloads
APP_BASE_URL = os.environ.get("ASSESSMENT_ENGINE_BASE_URL", "http://localhost:8000").rstrip("/")

# Reminder policy
REMINDER_LOOKAHEAD_MINUTES = 15  # remind students of supervised sessions starting within 15 mins

# Timing policy
SAVE_GRACE_PERIOD_SECONDS = 30  # auto-save requests may land slightly after the personal deadline

# security_violation value written by the expiry enforcer
TIME_EXPIRED_VIOLATION = "time_expired"
