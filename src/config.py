"""
NIP Editor - Configuration
All tunable constants in one place.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# ─────────────────────────────────────────────
# Version
# ─────────────────────────────────────────────
APP_VERSION = os.environ.get("NIP_EDITOR_VERSION", "dev")

# ─────────────────────────────────────────────
# Local data
# ─────────────────────────────────────────────
DATA_DIR = Path(os.environ.get(
    "NIP_EDITOR_DATA_DIR",
    Path(os.path.expanduser("~")) / ".nip-editor",
))

# Browser-localStorage replacement: one JSON object, one key per entry
STATE_FILE = DATA_DIR / "editor_state.json"

# ─────────────────────────────────────────────
# Rule-file backend
# ─────────────────────────────────────────────
PICKIT_BACKEND_URL = os.environ.get("PICKIT_BACKEND_URL", "http://127.0.0.1:8087")
PICKIT_DEFAULT_FOLDER = os.environ.get("PICKIT_DEFAULT_FOLDER", "")
PICKIT_HTTP_TIMEOUT = 15  # seconds
PICKIT_USER_AGENT = "NIP-Editor/1.0"

# File extension the backend accepts for new rule files
PICKIT_FILE_EXTENSION = ".nip"

# ─────────────────────────────────────────────
# Editor API server
# ─────────────────────────────────────────────
EDITOR_PORT = int(os.environ.get("PICKIT_EDITOR_PORT", "8460"))
EDITOR_HOST = os.environ.get("PICKIT_EDITOR_HOST", "127.0.0.1")

# ─────────────────────────────────────────────
# Recency / favorites / ordering
# ─────────────────────────────────────────────
RECENT_RULES_LIMIT = 200      # entries kept in the recency store
RECENT_FACET_LIMIT = 50       # rules shown under the "Recent" facet

RECENT_STORAGE_KEY = "pickitRecentRules"
FAVORITES_STORAGE_KEY = "nipFavorites"
QUALITY_ORDER_KEY = "pickitQualityOrder"
TYPE_ORDER_KEY_PREFIX = "pickitTypeOrder:"
PICKIT_PATH_KEY = "pickitPath"

# User-visible notices kept for the API snapshot
NOTICE_BUFFER_SIZE = 50

# ─────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────
LOG_LEVEL = "INFO"
LOG_FILE = DATA_DIR / "editor.log"
