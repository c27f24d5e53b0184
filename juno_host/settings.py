"""Host settings and data-directory resolution."""
from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

SETTINGS_FILE = "settings.json"
DATA_DIR_ENV_VAR = "JUNO_DATA_DIR"
DEFAULT_HOTKEY = "<ctrl>+<shift>+n"
LOG_RETENTION_DEFAULT = 5
LOG_RETENTION_MAX = 20
REMINDER_POLL_DEFAULT = 60
REMINDER_POLL_MIN = 5

_LOGGER = logging.getLogger("Juno.Host.Settings")


def resolve_data_dir(explicit: Optional[str] = None, app_name: str = "Juno") -> Path:
    """Pick the data directory: CLI flag, then env var, then the platform default."""
    if explicit:
        return Path(explicit).expanduser()
    env_value = os.environ.get(DATA_DIR_ENV_VAR)
    if env_value:
        return Path(env_value).expanduser()
    if sys.platform == "win32" and os.environ.get("APPDATA"):
        return Path(os.environ["APPDATA"]) / app_name
    data_home = os.environ.get("XDG_DATA_HOME")
    base = Path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / app_name


@dataclass
class HostSettings:
    """JSON-backed settings for the host process."""

    data_dir: Path
    hotkey: str = DEFAULT_HOTKEY
    log_retention: int = LOG_RETENTION_DEFAULT
    reminder_poll_seconds: int = REMINDER_POLL_DEFAULT
    launch_ui: bool = True
    ui_command: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self._path = self.data_dir / SETTINGS_FILE
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    # Persistence ---------------------------------------------------------

    def _load(self) -> None:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Ignoring unreadable settings file %s: %s", self._path, exc)
            return
        if not isinstance(data, dict):
            _LOGGER.warning("Ignoring settings file %s: expected an object", self._path)
            return

        hotkey = data.get("hotkey", DEFAULT_HOTKEY)
        self.hotkey = hotkey.strip() if isinstance(hotkey, str) and hotkey.strip() else DEFAULT_HOTKEY
        try:
            retention = int(data.get("log_retention", LOG_RETENTION_DEFAULT))
        except (TypeError, ValueError):
            retention = LOG_RETENTION_DEFAULT
        self.log_retention = max(1, min(retention, LOG_RETENTION_MAX))
        try:
            poll = int(data.get("reminder_poll_seconds", REMINDER_POLL_DEFAULT))
        except (TypeError, ValueError):
            poll = REMINDER_POLL_DEFAULT
        self.reminder_poll_seconds = max(REMINDER_POLL_MIN, poll)
        self.launch_ui = bool(data.get("launch_ui", True))
        command = data.get("ui_command", [])
        if isinstance(command, list) and all(isinstance(part, str) for part in command):
            self.ui_command = list(command)
        else:
            self.ui_command = []

    def save(self) -> None:
        payload: Dict[str, Any] = {
            "hotkey": str(self.hotkey or DEFAULT_HOTKEY),
            "log_retention": int(self.log_retention),
            "reminder_poll_seconds": int(self.reminder_poll_seconds),
            "launch_ui": bool(self.launch_ui),
            "ui_command": list(self.ui_command),
        }
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
