"""System tray icon, reminder notifications and the global hotkey."""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Tuple

from PyQt6.QtCore import QObject, Qt, pyqtSignal, pyqtSlot
from PyQt6.QtGui import QBrush, QColor, QIcon, QPainter, QPixmap, QRadialGradient
from PyQt6.QtWidgets import QMenu, QSystemTrayIcon

from juno_common.protocol import Event
from juno_host.window_manager import WindowManager

TOGGLE_EVENT = "toggle-from-tray"
NOTIFICATION_CLICKED_EVENT = "notification-clicked"

PublishFn = Callable[[Event], bool]

_LOGGER = logging.getLogger("Juno.Host.Tray")


def build_tray_icon(size: int = 64) -> QIcon:
    pixmap = QPixmap(size, size)
    pixmap.fill(Qt.GlobalColor.transparent)
    gradient = QRadialGradient(size * 0.35, size * 0.35, size * 0.7)
    gradient.setColorAt(0.0, QColor("#38bdf8"))
    gradient.setColorAt(1.0, QColor("#0369a1"))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
    painter.setPen(Qt.PenStyle.NoPen)
    painter.setBrush(QBrush(gradient))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


class HostTray(QObject):
    """Tray menu (Show/Hide, Toggle Expand, Quit) plus reminder balloons."""

    def __init__(
        self,
        windows: WindowManager,
        publish: PublishFn,
        quit_fn: Callable[[], None],
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._windows = windows
        self._publish = publish
        self._quit = quit_fn
        self._last_notification: Optional[Tuple[str, int]] = None
        self._tray = QSystemTrayIcon(build_tray_icon(), self)
        self._tray.setToolTip("Juno")
        self._menu = QMenu()
        self._menu.addAction("Show/Hide", self.toggle_visibility)
        self._menu.addAction("Toggle Expand", self.request_toggle)
        self._menu.addSeparator()
        self._menu.addAction("Quit", self._quit)
        self._tray.setContextMenu(self._menu)
        self._tray.activated.connect(self._on_activated)
        self._tray.messageClicked.connect(self._on_message_clicked)

    def show(self) -> None:
        if not QSystemTrayIcon.isSystemTrayAvailable():
            _LOGGER.warning("System tray unavailable; tray menu disabled")
            return
        self._tray.show()

    def hide(self) -> None:
        self._tray.hide()

    def toggle_visibility(self) -> None:
        self._windows.toggle_visibility()

    def request_toggle(self) -> None:
        handle = self._windows.handle
        if handle is None or not handle.is_visible():
            return
        self._publish(Event(TOGGLE_EVENT))

    @pyqtSlot()
    def hotkey_toggle(self) -> None:
        """Hotkey variant: brings a hidden widget back before toggling it."""
        handle = self._windows.handle
        if handle is None:
            return
        if not handle.is_visible():
            self._windows.show()
        self._publish(Event(TOGGLE_EVENT))

    def notify(self, kind: str, record_id: int, title: str, body: str) -> None:
        self._last_notification = (kind, record_id)
        self._tray.showMessage(title, body, QSystemTrayIcon.MessageIcon.Information, 10000)

    def _on_activated(self, reason: QSystemTrayIcon.ActivationReason) -> None:
        if reason == QSystemTrayIcon.ActivationReason.DoubleClick:
            self.toggle_visibility()

    def _on_message_clicked(self) -> None:
        self._windows.show()
        if self._last_notification is None:
            return
        kind, record_id = self._last_notification
        self._publish(Event(NOTIFICATION_CLICKED_EVENT, {"kind": kind, "id": record_id}))


class GlobalHotkey(QObject):
    """pynput global hotkey; the callback is delivered on the Qt thread."""

    triggered = pyqtSignal()

    def __init__(self, combination: str, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._combination = combination
        self._listener: Optional[Any] = None

    @property
    def combination(self) -> str:
        return self._combination

    def start(self) -> bool:
        if self._listener is not None:
            return True
        try:
            # pynput picks its platform backend at import time and fails without a display.
            from pynput import keyboard
        except ImportError as exc:
            _LOGGER.warning("Global hotkey unavailable: %s", exc)
            return False
        try:
            self._listener = keyboard.GlobalHotKeys({self._combination: self._fire})
            self._listener.start()
        except (ValueError, OSError, RuntimeError) as exc:
            _LOGGER.warning("Hotkey %s registration failed: %s", self._combination, exc)
            self._listener = None
            return False
        _LOGGER.info("Registered global hotkey %s", self._combination)
        return True

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None

    def _fire(self) -> None:
        # pynput invokes this on its listener thread; the signal queues onto Qt.
        self.triggered.emit()
