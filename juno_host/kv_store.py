"""JSON-backed key-value store for window position and theme."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from juno_host.geometry import Point

STORE_FILE = "store.json"
WINDOW_X_KEY = "windowX"
WINDOW_Y_KEY = "windowY"
THEME_KEY = "theme"
DEFAULT_THEME = "dark"
FLUSH_DEBOUNCE_MS = 250

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]

_LOGGER = logging.getLogger("Juno.Host.Store")
_MISSING = object()


class KeyValueStore:
    """Process-wide settings store.

    Values are visible to ``get`` as soon as ``set`` returns. When a scheduler is
    supplied, disk writes are debounced so a drag does not rewrite the file on
    every pointer move; ``flush`` forces the pending write.
    """

    def __init__(
        self,
        path: Path,
        *,
        after: Optional[AfterFn] = None,
        after_cancel: Optional[AfterCancelFn] = None,
        debounce_ms: int = FLUSH_DEBOUNCE_MS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._path = Path(path)
        self._after = after
        self._after_cancel = after_cancel
        self._debounce_ms = max(0, int(debounce_ms))
        self._logger = logger or _LOGGER
        self._data: Dict[str, Any] = {}
        self._dirty = False
        self._flush_handle: object | None = None
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError as exc:
            self._logger.warning("Unable to read %s: %s", self._path, exc)
            return
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            self._logger.warning("Ignoring corrupt store %s: %s", self._path, exc)
            return
        if isinstance(data, dict):
            self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if self._data.get(key, _MISSING) == value:
            return
        self._data[key] = value
        self._dirty = True
        self._schedule_flush()

    def flush(self) -> bool:
        self._cancel_pending()
        if not self._dirty:
            return True
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            self._logger.warning("Failed to write %s: %s", self._path, exc)
            return False
        self._dirty = False
        return True

    def _schedule_flush(self) -> None:
        if self._after is None:
            self.flush()
            return
        if self._flush_handle is not None:
            return
        self._flush_handle = self._after(self._debounce_ms, self._run_scheduled_flush)

    def _run_scheduled_flush(self) -> None:
        self._flush_handle = None
        self.flush()

    def _cancel_pending(self) -> None:
        handle = self._flush_handle
        self._flush_handle = None
        if handle is not None and self._after_cancel is not None:
            self._after_cancel(handle)

    # Typed helpers --------------------------------------------------------

    def load_position(self, default: Point) -> Point:
        x = self.get(WINDOW_X_KEY, default.x)
        y = self.get(WINDOW_Y_KEY, default.y)
        try:
            return Point(int(round(float(x))), int(round(float(y))))
        except (TypeError, ValueError, OverflowError):
            self._logger.debug("Stored position (%r, %r) unusable; using default %s", x, y, default)
            return default

    def save_position(self, point: Point) -> None:
        self.set(WINDOW_X_KEY, int(point.x))
        self.set(WINDOW_Y_KEY, int(point.y))

    def load_theme(self) -> str:
        value = self.get(THEME_KEY, DEFAULT_THEME)
        return value if isinstance(value, str) and value else DEFAULT_THEME

    def save_theme(self, theme: str) -> str:
        self.set(THEME_KEY, theme)
        return theme

