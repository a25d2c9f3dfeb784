# config.py
# Role: Environment-driven settings for the wallet ledger service.
#       Values are read once at import (after loading an optional .env file)
#       and exposed as module constants.

"""
Application configuration.

Every setting is an environment variable with a sensible default, so the app
runs out of the box against a local SQLite file.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_truthy(name: str, default: str = "0") -> bool:
    v = os.getenv(name, default)
    return str(v).strip().lower() in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Base directory of the project (where this module lives)
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Folder for the default SQLite DB
DB_DIR = os.path.join(BASE_DIR, "database")

# Full SQLAlchemy URL; defaults to <project_root>/database/finance.db
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(DB_DIR, 'finance.db')}",
)

# Debug mode: error details in responses, console-friendly logs
APP_DEBUG = _env_truthy("APP_DEBUG")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Browser origin allowed to call the API (and open the event stream)
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "*")

# Pending update events kept per user (oldest evicted first)
NOTIFIER_QUEUE_SIZE = _env_int("NOTIFIER_QUEUE_SIZE", 10)

# Users whose newest event is older than this many seconds lose their queue
NOTIFIER_RETENTION_SECONDS = _env_int("NOTIFIER_RETENTION_SECONDS", 3600)

# Seconds the event stream waits for an event before checking for a disconnect
SSE_DISCONNECT_CHECK_SECONDS = float(os.getenv("SSE_DISCONNECT_CHECK_SECONDS", "15"))

# When on, /events and /polling-updates also require X-User-Id == userId
STREAMS_REQUIRE_AUTH = _env_truthy("STREAMS_REQUIRE_AUTH")

TRANSACTIONS_DEFAULT_LIMIT = _env_int("TRANSACTIONS_DEFAULT_LIMIT", 100)
