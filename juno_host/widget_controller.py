"""Authority for the widget window geometry (collapsed ball vs expanded panel).

This module stays free of Qt types; the host injects the window manager, a
work-area provider, the key-value store and an ``after``/``after_cancel`` timer
pair. All methods run on the host event loop.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from juno_host.geometry import (
    COLLAPSED,
    COLLAPSED_SIZE,
    EXPANDED_DEFAULT,
    EXPANDED_MAX_SIZE,
    EXPANDED_MIN_SIZE,
    SNAP_PADDING,
    Point,
    WidgetState,
    WorkArea,
    clamp_drag_position,
    clamp_expand_position,
    clamp_moved_position,
    default_collapsed_position,
    is_finite_number,
)
from juno_host.kv_store import KeyValueStore
from juno_host.snap import nearest_snap_target
from juno_host.window_manager import WindowManager

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]

COLLAPSE_SETTLE_MS = 100

_LOGGER = logging.getLogger("Juno.Host.Geometry")


class WidgetController:
    """Clamp, transition and snap commands for the single widget window."""

    def __init__(
        self,
        windows: WindowManager,
        *,
        work_area_fn: Callable[[], WorkArea],
        store: KeyValueStore,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        settle_delay_ms: int = COLLAPSE_SETTLE_MS,
        padding: int = SNAP_PADDING,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._windows = windows
        self._work_area = work_area_fn
        self._store = store
        self._after = after
        self._after_cancel = after_cancel
        self._settle_delay_ms = settle_delay_ms
        self._padding = padding
        self._logger = logger or _LOGGER
        self._expanded = False
        self._pending_snap: object | None = None
        self._latest_session = 0
        self._closed_session = 0
        self._applying = 0

    @property
    def expanded(self) -> bool:
        return self._expanded

    def state(self) -> Optional[WidgetState]:
        position = self._windows.position()
        size = self._windows.size()
        if position is None or size is None:
            return None
        return WidgetState(expanded=self._expanded, position=position, size=size)

    # Queries --------------------------------------------------------------

    def get_window_position(self) -> Dict[str, int]:
        position = self._windows.position()
        if position is None:
            return {"x": 0, "y": 0}
        return position.as_dict()

    def start_drag(self) -> bool:
        return True

    # Drag session tagging -------------------------------------------------

    def reset_drag_sessions(self) -> None:
        """Forget session ids; called when a new UI connection starts counting from scratch."""
        self._latest_session = 0
        self._closed_session = 0

    def _accept_session(self, session: Any) -> bool:
        if session is None:
            return True
        if isinstance(session, bool) or not isinstance(session, int):
            self._logger.debug("Ignoring position update with malformed session %r", session)
            return False
        if session <= self._closed_session:
            self._logger.debug(
                "Ignoring stale position update from session %d (closed through %d)",
                session,
                self._closed_session,
            )
            return False
        if session > self._latest_session:
            self._latest_session = session
        return True

    def _close_session(self, session: Any) -> None:
        if isinstance(session, int) and not isinstance(session, bool):
            self._latest_session = max(self._latest_session, session)
            self._closed_session = max(self._closed_session, session)
        else:
            self._closed_session = self._latest_session

    # Commands -------------------------------------------------------------

    def set_position(self, x: Any, y: Any, session: Any = None) -> bool:
        if not is_finite_number(x) or not is_finite_number(y):
            self._logger.debug("Rejected non-numeric position (%r, %r)", x, y)
            return False
        handle = self._windows.handle
        size = self._windows.size()
        if handle is None or size is None:
            return False
        if not self._accept_session(session):
            return False
        target = clamp_drag_position(x, y, size, self._work_area())
        with self._applying_geometry():
            if self._expanded:
                handle.set_position(target.x, target.y)
            else:
                # Position and size in one call so no mis-sized frame is ever shown.
                handle.set_bounds(target.x, target.y, COLLAPSED_SIZE, COLLAPSED_SIZE)
        self._store.save_position(target)
        return True

    def toggle_expand(self, expanded: Any) -> Dict[str, bool]:
        expanded = bool(expanded)
        self._expanded = expanded
        self._close_session(None)
        self._cancel_pending_snap()
        handle = self._windows.handle
        if handle is None:
            return {"expanded": expanded}

        if expanded:
            handle.set_resizable(True)
            handle.set_movable(True)
            with self._applying_geometry():
                handle.set_minimum_size(*EXPANDED_MIN_SIZE)
                handle.set_maximum_size(*EXPANDED_MAX_SIZE)
                handle.set_size(EXPANDED_DEFAULT.width, EXPANDED_DEFAULT.height)
                current = self._windows.position()
                if current is not None:
                    target = clamp_expand_position(current.x, current.y, self._work_area())
                    handle.set_position(target.x, target.y)
            self._logger.debug("Expanded widget to %dx%d", EXPANDED_DEFAULT.width, EXPANDED_DEFAULT.height)
        else:
            handle.set_resizable(False)
            handle.set_movable(False)
            with self._applying_geometry():
                handle.set_minimum_size(COLLAPSED.width, COLLAPSED.height)
                handle.set_maximum_size(COLLAPSED.width, COLLAPSED.height)
                handle.set_size(COLLAPSED.width, COLLAPSED.height)
            self._pending_snap = self._after(self._settle_delay_ms, self._run_deferred_snap)
            self._logger.debug("Collapsed widget; snap scheduled in %dms", self._settle_delay_ms)

        self._persist_current_position()
        return {"expanded": expanded}

    def finalize_drag(self, session: Any = None) -> bool:
        self._close_session(session)
        handle = self._windows.handle
        if handle is None or self._expanded:
            return False
        with self._applying_geometry():
            handle.set_size(COLLAPSED.width, COLLAPSED.height)
        handle.set_resizable(False)
        handle.set_movable(False)
        return True

    def snap_to_edge(self) -> Optional[Dict[str, Any]]:
        handle = self._windows.handle
        position = self._windows.position()
        size = self._windows.size()
        if handle is None or position is None or size is None or self._expanded:
            return None
        target = nearest_snap_target(position, size, self._work_area(), self._padding)
        point = target.rounded()
        with self._applying_geometry():
            handle.set_position(point.x, point.y)
        self._store.save_position(point)
        self._logger.debug("Snapped widget to %s at (%d, %d)", target.name, point.x, point.y)
        return {"x": point.x, "y": point.y, "edge": target.name}

    def handle_moved(self) -> None:
        """React to the shell having moved.

        Moves this controller applies itself were already clamped with their
        own policy and are only persisted; the moved-window correction is for
        native moves.
        """
        handle = self._windows.handle
        position = self._windows.position()
        size = self._windows.size()
        if handle is None or position is None or size is None:
            return
        if self._expanded and not self._applying:
            corrected, needs_correction = clamp_moved_position(position.x, position.y, size, self._work_area())
            if needs_correction:
                with self._applying_geometry():
                    handle.set_position(corrected.x, corrected.y)
                position = corrected
        self._store.save_position(position)

    def restore_position(self) -> Optional[Point]:
        """Place the collapsed ball at its persisted spot (bottom-right by default)."""
        handle = self._windows.handle
        if handle is None:
            return None
        area = self._work_area()
        saved = self._store.load_position(default_collapsed_position(area))
        target = clamp_drag_position(saved.x, saved.y, COLLAPSED, area)
        with self._applying_geometry():
            handle.set_bounds(target.x, target.y, COLLAPSED_SIZE, COLLAPSED_SIZE)
        handle.set_resizable(False)
        handle.set_movable(False)
        self._store.save_position(target)
        return target

    # Internal helpers -----------------------------------------------------

    @contextmanager
    def _applying_geometry(self) -> Iterator[None]:
        self._applying += 1
        try:
            yield
        finally:
            self._applying -= 1

    def _run_deferred_snap(self) -> None:
        self._pending_snap = None
        if self._expanded or not self._windows.present:
            self._logger.debug("Deferred snap skipped (expanded=%s)", self._expanded)
            return
        self.snap_to_edge()

    def _cancel_pending_snap(self) -> None:
        handle = self._pending_snap
        self._pending_snap = None
        if handle is not None:
            self._after_cancel(handle)

    def _persist_current_position(self) -> None:
        position = self._windows.position()
        if position is not None:
            self._store.save_position(position)
