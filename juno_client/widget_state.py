"""UI-side mirror of the widget's expanded flag."""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional

from juno_client.drag_tracker import HostChannel

TOGGLE_EVENT = "toggle-from-tray"
NOTIFICATION_CLICKED_EVENT = "notification-clicked"

_LOGGER = logging.getLogger("Juno.Client.State")


class WidgetStateMirror:
    """Holds ``expanded`` for rendering; the host stays the authority on geometry.

    The mirror flips first so the view swaps immediately, then the host is
    asked to resize the window.
    """

    def __init__(self, host: HostChannel, logger: Optional[logging.Logger] = None) -> None:
        self._host = host
        self._logger = logger or _LOGGER
        self._expanded = False
        self._listeners: List[Callable[[bool], None]] = []
        self._focus_listeners: List[Callable[[str, int], None]] = []

    @property
    def expanded(self) -> bool:
        return self._expanded

    def add_listener(self, callback: Callable[[bool], None]) -> None:
        self._listeners.append(callback)

    def add_focus_listener(self, callback: Callable[[str, int], None]) -> None:
        self._focus_listeners.append(callback)

    def set_expanded(self, expanded: bool) -> None:
        expanded = bool(expanded)
        self._expanded = expanded
        for callback in list(self._listeners):
            callback(expanded)
        try:
            self._host.call("toggle-expand", {"expanded": expanded})
        except RuntimeError as exc:
            self._logger.warning("toggle-expand(%s) failed: %s", expanded, exc)

    def sync_from_host(self) -> None:
        """Adopt the host's expanded flag without asking it to change geometry."""
        try:
            result = self._host.call("get-widget-state")
        except RuntimeError as exc:
            self._logger.warning("get-widget-state failed: %s", exc)
            return
        if not isinstance(result, Mapping):
            return
        expanded = bool(result.get("expanded", False))
        if expanded == self._expanded:
            return
        self._expanded = expanded
        for callback in list(self._listeners):
            callback(expanded)

    def toggle(self) -> None:
        self.set_expanded(not self._expanded)

    def handle_event(self, name: str, data: Mapping[str, Any]) -> None:
        if name == TOGGLE_EVENT:
            self.toggle()
            return
        if name == NOTIFICATION_CLICKED_EVENT:
            if not self._expanded:
                self.set_expanded(True)
            kind = data.get("kind")
            record_id = data.get("id")
            if isinstance(kind, str) and isinstance(record_id, int):
                for callback in list(self._focus_listeners):
                    callback(kind, record_id)
            return
        self._logger.debug("Ignoring host event %s", name)
