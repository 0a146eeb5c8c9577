"""
EditorConfig — the injectable settings of one editor session.

Defaults come from config.py; main.py overrides them from the command line
and tests build their own with a temp data dir.
"""

from dataclasses import dataclass
from pathlib import Path

import config


@dataclass
class EditorConfig:
    """Everything PickitEditor and the API server read at startup."""

    # ── Backend ─────────────────────────────────────────────
    backend_url: str = config.PICKIT_BACKEND_URL
    http_timeout: float = config.PICKIT_HTTP_TIMEOUT
    default_folder: str = config.PICKIT_DEFAULT_FOLDER

    # ── Local state ─────────────────────────────────────────
    state_file: Path = config.STATE_FILE

    # ── Limits ──────────────────────────────────────────────
    recent_limit: int = config.RECENT_RULES_LIMIT
    recent_facet_limit: int = config.RECENT_FACET_LIMIT
    notice_buffer_size: int = config.NOTICE_BUFFER_SIZE

    # ── API server ──────────────────────────────────────────
    host: str = config.EDITOR_HOST
    port: int = config.EDITOR_PORT
