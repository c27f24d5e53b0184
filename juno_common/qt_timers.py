"""QTimer-backed ``after``/``after_cancel`` pair used by both processes."""
from __future__ import annotations

from typing import Callable, Optional, Set

from PyQt6.QtCore import QObject, QTimer


class QtScheduler:
    """``after``/``after_cancel`` pair backed by single-shot QTimers."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        self._parent = parent
        self._timers: Set[QTimer] = set()

    def after(self, ms: int, callback: Callable[[], None]) -> QTimer:
        timer = QTimer(self._parent)
        timer.setSingleShot(True)

        def _fire() -> None:
            self._timers.discard(timer)
            timer.deleteLater()
            callback()

        timer.timeout.connect(_fire)
        self._timers.add(timer)
        timer.start(max(0, int(ms)))
        return timer

    def after_cancel(self, handle: object) -> None:
        if isinstance(handle, QTimer) and handle in self._timers:
            handle.stop()
            self._timers.discard(handle)
            handle.deleteLater()

    def cancel_all(self) -> None:
        for timer in list(self._timers):
            self.after_cancel(timer)
