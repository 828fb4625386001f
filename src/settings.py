"""Static configuration for contestwatch.

All user-editable settings (contest source, schedule, window, dedup,
notifications, logging) live in a single JSON file for quick edits without
touching Python. Secrets stay in the environment (.env).
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.environ.get("CONTESTWATCH_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _project_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database (preferences + notified contests).
_storage = _CONFIG.get("storage", {})
DB_PATH = _project_path(_storage.get("db_path", "contestwatch.db"))
# The running watcher writes its pid here so `prefs` can signal it.
PID_PATH = _project_path(_storage.get("pid_path", "contestwatch.pid"))

# Contest feed. The public API needs no credentials.
_contests = _CONFIG.get("contests", {})
CONTEST_API_URL = _contests.get("api_url", "https://codeforces.com/api/contest.list")
FETCH_TIMEOUT_SECONDS = float(_contests.get("timeout_seconds", 10))
CONTESTS_PAGE_URL = _contests.get("destination_url", "https://codeforces.com/contests")

# Trigger periods.
_schedule = _CONFIG.get("schedule", {})
POLL_INTERVAL_MINUTES = float(_schedule.get("poll_minutes", 5))
CLEANUP_INTERVAL_HOURS = float(_schedule.get("cleanup_hours", 24))

# Pre-start window: a contest is due when min < (start - now) <= max.
_window = _CONFIG.get("window", {})
WINDOW_MIN_LEAD_MINUTES = float(_window.get("min_lead_minutes", 25))
WINDOW_MAX_LEAD_MINUTES = float(_window.get("max_lead_minutes", 35))

# Size of the notified-contest log before the oldest ids are dropped.
DEDUP_CAPACITY = int(_CONFIG.get("dedup", {}).get("capacity", 100))

# Notification method switches presenters without changing core logic.
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("notification_method", "saved_messages")
# Bot chat id is only required when notification_method=bot.
BOT_CHAT_ID = _notifications.get("bot_chat_id")
# In bot mode only these Telegram user ids may send /notifications on|off.
COMMAND_SENDER_IDS = {int(sender_id) for sender_id in _notifications.get("command_sender_ids", [])}

# Seeded on first start; the watcher only reads them afterwards.
_preferences = _CONFIG.get("preferences", {})
DEFAULT_NOTIFICATIONS_ENABLED = bool(_preferences.get("notifications_enabled", True))
DEFAULT_HANDLE = _preferences.get("handle", "")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
