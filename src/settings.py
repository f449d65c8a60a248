"""Static configuration for chanvault.

Engine tuning, webhook and logging settings live in a single JSON file for
quick edits without touching Python. Secrets (the bot token) come from the
environment or a .env file.
"""

import json
import os

from dotenv import load_dotenv

from core.config import MAX_MEDIA_BYTES

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json; every key is optional and has a default."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _ms(value, default_ms: int) -> float:
    """Convert a millisecond setting to seconds."""

    return int(value if value is not None else default_ms) / 1000.0


load_dotenv()

_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# The bot credential is never stored in config.json.
BOT_TOKEN = os.getenv("BOT_TOKEN", "").strip()

# Where to store the SQLite key-value database.
_storage = _CONFIG.get("storage", {})
DB_PATH = _storage.get("db_path") or os.path.join(PROJECT_ROOT, "chanvault.db")
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(PROJECT_ROOT, DB_PATH)

# Posts with any attachment above this size are not backed up.
_backup = _CONFIG.get("backup", {})
MAX_MEDIA_BYTES = int(_backup.get("max_media_bytes", MAX_MEDIA_BYTES))
NOTIFY_OWNERS = bool(_backup.get("notify_owners", True))

# History scan on /addchannel. The upper bound is a guess at the newest
# message id; the scan stops after failure_cutoff consecutive misses.
_discovery = _CONFIG.get("discovery", {})
DISCOVERY_UPPER_BOUND = int(_discovery.get("upper_bound", 10000))
DISCOVERY_FAILURE_CUTOFF = int(_discovery.get("failure_cutoff", 50))
DISCOVERY_PROBE_DELAY = _ms(_discovery.get("probe_delay_ms"), 300)
DISCOVERY_PROGRESS_EVERY = int(_discovery.get("progress_every", 10))
DISCOVERY_PROGRESS_INTERVAL = float(_discovery.get("progress_interval_seconds", 5))

# Restore pacing and progress cadence.
_restore = _CONFIG.get("restore", {})
RESTORE_SEND_DELAY = _ms(_restore.get("send_delay_ms"), 100)
RESTORE_PROGRESS_EVERY = int(_restore.get("progress_every", 10))
RESTORE_PROGRESS_INTERVAL = float(_restore.get("progress_interval_seconds", 5))
RESTORE_SESSION_TTL = int(_restore.get("session_ttl_seconds", 600))

# Periodic catch-up scan.
_reconcile = _CONFIG.get("reconcile", {})
RECONCILE_ENABLED = bool(_reconcile.get("enabled", True))
RECONCILE_WINDOW = int(_reconcile.get("window", 100))
RECONCILE_PROBE_DELAY = _ms(_reconcile.get("probe_delay_ms"), 300)
RECONCILE_CHANNEL_DELAY = _ms(_reconcile.get("channel_delay_ms"), 1000)
RECONCILE_INTERVAL_HOURS = float(_reconcile.get("interval_hours", 24))

# Webhook server. public_url is only needed for the set-webhook command.
_webhook = _CONFIG.get("webhook", {})
WEBHOOK_HOST = _webhook.get("host", "0.0.0.0")
WEBHOOK_PORT = int(_webhook.get("port", 8080))
WEBHOOK_PATH = _webhook.get("path", "/webhook")
WEBHOOK_PUBLIC_URL = _webhook.get("public_url") or os.getenv("WEBHOOK_PUBLIC_URL", "")

# Bot API request timeout in seconds.
API_TIMEOUT = float(_CONFIG.get("api_timeout_seconds", 30))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
