"""Application context: the single source of truth for runtime paths and config.

Every service and router receives what it needs from this object instead of
reading globals. It is a plain object (not a singleton), so tests and
embedders can build as many as they like.
"""

from __future__ import annotations

import json
import logging
import os
import threading


class AppContext:
    """Holds runtime directories and reads config.json."""

    def __init__(self, *, cwd: str, data_dir: str, config_path: str) -> None:
        self._lock = threading.Lock()
        self._cwd = cwd
        self._data_dir = data_dir
        self._config_path = config_path
        self._logger = logging.getLogger("meetinglog.context")

    # ── data_dir ───────────────────────────────────────────────────────

    @property
    def data_dir(self) -> str:
        with self._lock:
            return self._data_dir

    @property
    def config_path(self) -> str:
        return self._config_path

    @property
    def default_database_path(self) -> str:
        return os.path.join(self.data_dir, "meetinglog.sqlite3")

    # ── Logs (stay in cwd, not in data_dir) ────────────────────────────

    @property
    def logs_dir(self) -> str:
        return os.path.join(self._cwd, "logs")

    # ── Config ─────────────────────────────────────────────────────────

    def read_config(self) -> dict:
        """Read config.json, returning an empty dict if it does not exist."""
        if not os.path.exists(self._config_path):
            return {}
        with open(self._config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            self._logger.warning("Ignoring config.json: top level is %s", type(data).__name__)
            return {}
        return data

    @property
    def database_url(self) -> str:
        url = self.read_config().get("database_url")
        if url:
            return url
        return f"sqlite:///{self.default_database_path}"

    @property
    def orphan_policy(self) -> str:
        return self.read_config().get("action_items", {}).get("orphan_policy", "attach")

    # ── Helpers ────────────────────────────────────────────────────────

    def ensure_dirs(self) -> None:
        """Create all required directories if they don't exist."""
        for d in (self.data_dir, self.logs_dir):
            os.makedirs(d, exist_ok=True)

    @classmethod
    def from_environment(cls, cwd: str | None = None) -> "AppContext":
        """Build a context from MEETINGLOG_DATA_DIR, defaulting to <cwd>/data."""
        cwd = cwd or os.getcwd()
        data_dir = os.environ.get("MEETINGLOG_DATA_DIR") or os.path.join(cwd, "data")
        return cls(cwd=cwd, data_dir=data_dir, config_path=os.path.join(data_dir, "config.json"))
