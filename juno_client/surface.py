"""Top-level UI surface handed to the host for embedding."""
from __future__ import annotations

import logging
import sys
import traceback
from types import TracebackType
from typing import Optional, Type

from PyQt6.QtCore import Qt, pyqtSlot
from PyQt6.QtGui import QKeySequence, QShortcut
from PyQt6.QtWidgets import QStackedWidget, QVBoxLayout, QWidget

from juno_client.drag_tracker import DragTracker, HostChannel
from juno_client.views import BallView, FallbackView, PanelView, safe_call
from juno_client.widget_state import WidgetStateMirror

_LOGGER = logging.getLogger("Juno.Client.Surface")


class UiSurface(QWidget):
    """Stacks the ball and the panel and shows whichever the mirror asks for."""

    def __init__(
        self,
        host: HostChannel,
        tracker: DragTracker,
        state: WidgetStateMirror,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self._host = host
        self._state = state
        self.setWindowTitle("Juno")
        self.setWindowFlags(Qt.WindowType.FramelessWindowHint)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.ball = BallView(tracker, state, host)
        self.panel = PanelView(tracker, state, host)
        self.fallback = FallbackView()
        self._stack = QStackedWidget()
        self._stack.addWidget(self.ball)
        self._stack.addWidget(self.panel)
        self._stack.addWidget(self.fallback)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._stack)

        escape = QShortcut(QKeySequence(Qt.Key.Key_Escape), self)
        escape.setContext(Qt.ShortcutContext.WidgetWithChildrenShortcut)
        escape.activated.connect(self.collapse)

        state.add_listener(self.show_expanded)
        state.add_focus_listener(self.panel.focus_item)
        self.show_expanded(state.expanded)

    @property
    def current_view(self) -> QWidget:
        return self._stack.currentWidget()

    def show_expanded(self, expanded: bool) -> None:
        if self._stack.currentWidget() is self.fallback:
            return
        self._stack.setCurrentWidget(self.panel if expanded else self.ball)

    def collapse(self) -> None:
        if self._state.expanded:
            self._state.set_expanded(False)

    @pyqtSlot(str, dict)
    def handle_host_event(self, name: str, data: dict) -> None:
        """Runs on the Qt thread, where blocking host calls are safe."""
        self._state.handle_event(name, data)

    def attach(self) -> bool:
        """Ask the host to embed this surface into its shell window."""
        attached = safe_call(self._host, "attach-surface", {"win_id": int(self.winId())}, default=False)
        if not attached:
            _LOGGER.warning("Host did not embed the UI surface; showing it standalone")
        self.show()
        return bool(attached)

    @pyqtSlot(bool)
    def on_connection_changed(self, connected: bool) -> None:
        if connected:
            self.attach()
            # An expanded panel is re-applied after a host restart; a collapsed
            # ball keeps its restored position, so only the flag is read back.
            if self._state.expanded:
                self._state.set_expanded(True)
            else:
                self._state.sync_from_host()
            self.panel.load()

    def show_fallback(self, message: str) -> None:
        self.fallback.set_error(message)
        self._stack.setCurrentWidget(self.fallback)


def install_excepthook(surface: UiSurface) -> None:
    """Log unhandled errors from Qt callbacks and swap in the fallback view."""
    previous = sys.excepthook

    def _hook(exc_type: Type[BaseException], exc: BaseException, tb: Optional[TracebackType]) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            previous(exc_type, exc, tb)
            return
        _LOGGER.error("Unhandled UI error:\n%s", "".join(traceback.format_exception(exc_type, exc, tb)))
        surface.show_fallback(f"{exc_type.__name__}: {exc}")

    sys.excepthook = _hook
