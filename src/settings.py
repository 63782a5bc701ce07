"""Process configuration for mentionwatch.

Bot behaviour (clients, thresholds, rate limits) is set at runtime through
``POST /bot/start``. This module only holds what the process needs before
any request arrives: where to listen, the API secret, loop timing and the
logging setup. Values come from an optional config.json next to the project
root, with environment variables (and .env via python-dotenv) on top.
"""

import json
import os

from dotenv import load_dotenv

from core.selection import EMPTY_SELECTION_POLICIES

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.getenv("MENTIONWATCH_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json if present; every key has a default."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# HTTP control surface.
_server = _CONFIG.get("server", {})
HOST = os.getenv("HOST", _server.get("host", "0.0.0.0"))
PORT = int(os.getenv("PORT", _server.get("port", 3000)))
# Bearer secret for every endpoint except /health.
API_KEY = os.getenv("API_KEY", _server.get("api_key", "change-me"))
CORS_ORIGINS = _server.get("cors_origins", ["*"])

# Pipeline timing and bounds.
_bot = _CONFIG.get("bot", {})
TICK_INTERVAL = max(0.05, float(_bot.get("tick_interval", 0.25)))
LOG_CAPACITY = int(_bot.get("log_capacity", 500))
# What an empty group selection means: "all" groups or "none".
EMPTY_SELECTION = str(os.getenv("EMPTY_SELECTION", _bot.get("empty_selection", "all"))).lower()
if EMPTY_SELECTION not in EMPTY_SELECTION_POLICIES:
    raise ValueError(f"bot.empty_selection must be one of {EMPTY_SELECTION_POLICIES}")
OCR_LANGUAGES = _bot.get("ocr_languages", "ara+eng")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {"enabled": True})
