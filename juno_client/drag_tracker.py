"""Pointer-driven drag tracking for the ball and the panel header.

The tracker never moves a window itself. It turns pointer deltas into
``set-window-position`` notifications and closes the drag with a
``finalize-drag`` call; the host owns every clamp and transition.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]

DRAG_GRACE_MS = 100
CLICK_SUPPRESS_MS = 100

_LOGGER = logging.getLogger("Juno.Client.Drag")


class HostChannel(Protocol):
    def call(self, command: str, args: Optional[Mapping[str, Any]] = None, timeout: Optional[float] = None) -> Any: ...
    def notify(self, command: str, args: Optional[Mapping[str, Any]] = None) -> bool: ...


@dataclass
class DragSession:
    session_id: int
    tracked_x: float
    tracked_y: float


class DragTracker:
    """Tracks one drag at a time and decides whether a release was a click."""

    def __init__(
        self,
        host: HostChannel,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._host = host
        self._after = after
        self._after_cancel = after_cancel
        self._logger = logger or _LOGGER
        self._session: Optional[DragSession] = None
        self._last_session_id = 0
        self._is_dragging = False
        self._has_moved = False
        self._drag_clear_handle: object | None = None
        self._moved_clear_handle: object | None = None

    @property
    def is_dragging(self) -> bool:
        return self._is_dragging

    @property
    def has_moved(self) -> bool:
        return self._has_moved

    @property
    def session(self) -> Optional[DragSession]:
        return self._session

    def pointer_down(self) -> bool:
        """Start tracking from the host's current window position."""
        self._cancel(self._moved_clear_handle)
        self._moved_clear_handle = None
        self._has_moved = False
        # HostCallError and HostUnavailableError both derive from RuntimeError.
        try:
            position = self._host.call("get-window-position")
        except RuntimeError as exc:
            self._logger.warning("Drag not started; window position unavailable: %s", exc)
            self._session = None
            return False
        try:
            x = float(position["x"])
            y = float(position["y"])
        except (TypeError, KeyError, ValueError):
            self._logger.warning("Drag not started; unexpected position payload %r", position)
            self._session = None
            return False
        self._last_session_id += 1
        self._session = DragSession(self._last_session_id, x, y)
        return True

    def pointer_move(self, dx: float, dy: float) -> None:
        session = self._session
        if session is None:
            return
        if dx == 0 and dy == 0:
            return
        self._cancel(self._drag_clear_handle)
        self._drag_clear_handle = None
        self._is_dragging = True
        self._has_moved = True
        session.tracked_x += dx
        session.tracked_y += dy
        self._host.notify(
            "set-window-position",
            {"x": session.tracked_x, "y": session.tracked_y, "session": session.session_id},
        )

    def pointer_up(self) -> None:
        session = self._session
        if session is None:
            return
        self._session = None
        try:
            self._host.call("finalize-drag", {"session": session.session_id})
        except RuntimeError as exc:
            self._logger.warning("finalize-drag failed: %s", exc)
        self._cancel(self._drag_clear_handle)
        self._drag_clear_handle = self._after(DRAG_GRACE_MS, self._clear_dragging)

    def should_block_click(self) -> bool:
        """True when the pointer moved since the last press; the click must be ignored."""
        if not self._has_moved:
            return False
        self._cancel(self._moved_clear_handle)
        self._moved_clear_handle = self._after(CLICK_SUPPRESS_MS, self._clear_moved)
        return True

    # Internal helpers -----------------------------------------------------

    def _clear_dragging(self) -> None:
        self._drag_clear_handle = None
        self._is_dragging = False

    def _clear_moved(self) -> None:
        self._moved_clear_handle = None
        self._has_moved = False

    def _cancel(self, handle: object | None) -> None:
        if handle is not None:
            self._after_cancel(handle)
