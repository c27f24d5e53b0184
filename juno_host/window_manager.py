"""Ownership of the single widget window handle.

The host only ever drives one window. ``WindowManager`` makes its lifecycle
explicit: commands ask the manager for the handle and treat ``None`` as
"absent" instead of checking a module-level global.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, Tuple

from juno_host.geometry import Point, Size

_LOGGER = logging.getLogger("Juno.Host.Window")


class WindowHandle(Protocol):
    """Thin adapter over the real window; implemented by the Qt shell."""

    def position(self) -> Tuple[int, int]: ...
    def size(self) -> Tuple[int, int]: ...
    def set_position(self, x: int, y: int) -> None: ...
    def set_size(self, width: int, height: int) -> None: ...
    def set_bounds(self, x: int, y: int, width: int, height: int) -> None: ...
    def set_resizable(self, resizable: bool) -> None: ...
    # Records whether native moves are allowed; frameless shells have no
    # native move path, so drags always go through set_position.
    def set_movable(self, movable: bool) -> None: ...
    def set_minimum_size(self, width: int, height: int) -> None: ...
    def set_maximum_size(self, width: int, height: int) -> None: ...
    def is_visible(self) -> bool: ...
    def show(self) -> None: ...
    def hide(self) -> None: ...
    def close(self) -> None: ...


class WindowManager:
    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._handle: Optional[WindowHandle] = None
        self._logger = logger or _LOGGER

    @property
    def handle(self) -> Optional[WindowHandle]:
        return self._handle

    @property
    def present(self) -> bool:
        return self._handle is not None

    def create(self, factory: Callable[[], WindowHandle]) -> WindowHandle:
        if self._handle is not None:
            return self._handle
        self._handle = factory()
        self._logger.debug("Widget window created")
        return self._handle

    def attach(self, handle: WindowHandle) -> None:
        if self._handle is not None and self._handle is not handle:
            self._logger.warning("Replacing existing widget window handle")
        self._handle = handle

    def destroy(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is None:
            return
        try:
            handle.close()
        except RuntimeError as exc:
            # Qt raises RuntimeError once the underlying C++ object is gone.
            self._logger.debug("Window close ignored: %s", exc)
        self._logger.debug("Widget window destroyed")

    def position(self) -> Optional[Point]:
        if self._handle is None:
            return None
        x, y = self._handle.position()
        return Point(int(x), int(y))

    def size(self) -> Optional[Size]:
        if self._handle is None:
            return None
        width, height = self._handle.size()
        return Size(int(width), int(height))

    def toggle_visibility(self) -> Optional[bool]:
        """Show a hidden window or hide a visible one; returns the new visibility."""
        if self._handle is None:
            return None
        if self._handle.is_visible():
            self._handle.hide()
            return False
        self._handle.show()
        return True

    def show(self) -> None:
        if self._handle is not None:
            self._handle.show()

    def hide(self) -> None:
        if self._handle is not None:
            self._handle.hide()
