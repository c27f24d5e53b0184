"""Qt side of the host: the frameless shell window and its adapters."""
from __future__ import annotations

import concurrent.futures
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from PyQt6.QtCore import QObject, Qt, QUrl, pyqtSignal
from PyQt6.QtGui import QCursor, QDesktopServices, QGuiApplication, QWindow
from PyQt6.QtWidgets import QApplication, QFileDialog, QMenu, QSizeGrip, QVBoxLayout, QWidget

from juno_host.geometry import COLLAPSED_SIZE, WorkArea
from juno_host.window_manager import WindowManager

_LOGGER = logging.getLogger("Juno.Host.Window")


def primary_work_area() -> WorkArea:
    """Available geometry of the primary screen, read fresh every time."""
    screen = QGuiApplication.primaryScreen()
    if screen is None:
        return WorkArea(0, 0)
    rect = screen.availableGeometry()
    return WorkArea(rect.width(), rect.height())


class QtInvoker(QObject):
    """Runs callables on the Qt thread in submission order."""

    _invoke = pyqtSignal(object, object)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._invoke.connect(self._run, Qt.ConnectionType.QueuedConnection)

    def submit(self, fn: Callable[[], Any]) -> "concurrent.futures.Future[Any]":
        future: "concurrent.futures.Future[Any]" = concurrent.futures.Future()
        self._invoke.emit(fn, future)
        return future

    def _run(self, fn: Callable[[], Any], future: "concurrent.futures.Future[Any]") -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn())
        except Exception as exc:  # handed back to the command server
            future.set_exception(exc)


class WidgetShell(QWidget):
    """Frameless always-on-top top-level that hosts the UI surface."""

    def __init__(self, on_moved: Optional[Callable[[], None]] = None) -> None:
        super().__init__(None)
        self._on_moved = on_moved
        self._movable = False
        self._container: Optional[QWidget] = None
        self._embedded_window: Optional[QWindow] = None
        self.setWindowTitle("Juno")
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint | Qt.WindowType.WindowStaysOnTopHint | Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self._layout = QVBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self._layout.setSpacing(0)
        self._grip = QSizeGrip(self)
        self._grip.setVisible(False)
        self.resize(COLLAPSED_SIZE, COLLAPSED_SIZE)

    @property
    def movable(self) -> bool:
        """Whether native moves are permitted. Informational only: the shell is
        frameless and every move arrives through ``move``/``setGeometry``."""
        return self._movable

    def set_on_moved(self, callback: Optional[Callable[[], None]]) -> None:
        self._on_moved = callback

    def set_resizable(self, resizable: bool) -> None:
        self._grip.setVisible(resizable)
        if resizable:
            self._place_grip()

    def set_movable(self, movable: bool) -> None:
        self._movable = movable

    def embed(self, win_id: int) -> bool:
        """Reparent the UI process's native window into this shell."""
        foreign = QWindow.fromWinId(win_id)
        if foreign is None:
            _LOGGER.warning("Unable to wrap UI surface %s", win_id)
            return False
        if self._container is not None:
            self._layout.removeWidget(self._container)
            self._container.deleteLater()
        self._embedded_window = foreign
        self._container = QWidget.createWindowContainer(foreign, self)
        self._container.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self._layout.addWidget(self._container)
        self._grip.raise_()
        _LOGGER.info("Embedded UI surface %s", win_id)
        return True

    def moveEvent(self, event) -> None:  # noqa: N802 - Qt override
        super().moveEvent(event)
        if self._on_moved is not None:
            self._on_moved()

    def resizeEvent(self, event) -> None:  # noqa: N802 - Qt override
        super().resizeEvent(event)
        self._place_grip()

    def _place_grip(self) -> None:
        hint = self._grip.sizeHint()
        self._grip.move(self.width() - hint.width(), self.height() - hint.height())
        self._grip.raise_()


class QtWindowHandle:
    """``WindowHandle`` implementation over a ``WidgetShell``."""

    def __init__(self, shell: WidgetShell) -> None:
        self._shell = shell

    @property
    def shell(self) -> WidgetShell:
        return self._shell

    def position(self) -> Tuple[int, int]:
        pos = self._shell.pos()
        return pos.x(), pos.y()

    def size(self) -> Tuple[int, int]:
        size = self._shell.size()
        return size.width(), size.height()

    def set_position(self, x: int, y: int) -> None:
        self._shell.move(int(x), int(y))

    def set_size(self, width: int, height: int) -> None:
        self._shell.resize(int(width), int(height))

    def set_bounds(self, x: int, y: int, width: int, height: int) -> None:
        self._shell.setGeometry(int(x), int(y), int(width), int(height))

    def set_resizable(self, resizable: bool) -> None:
        self._shell.set_resizable(resizable)

    def set_movable(self, movable: bool) -> None:
        self._shell.set_movable(movable)

    def set_minimum_size(self, width: int, height: int) -> None:
        self._shell.setMinimumSize(int(width), int(height))

    def set_maximum_size(self, width: int, height: int) -> None:
        self._shell.setMaximumSize(int(width), int(height))

    def is_visible(self) -> bool:
        return self._shell.isVisible()

    def show(self) -> None:
        self._shell.show()
        self._shell.raise_()
        self._shell.activateWindow()

    def hide(self) -> None:
        self._shell.hide()

    def close(self) -> None:
        self._shell.close()
        self._shell.deleteLater()


class QtDesktop:
    """Desktop integrations backing the file, surface and menu commands."""

    def __init__(self, windows: WindowManager, shell: WidgetShell) -> None:
        self._windows = windows
        self._shell = shell

    def select_files(self) -> List[str]:
        paths, _filter = QFileDialog.getOpenFileNames(self._shell, "Add files")
        return list(paths)

    def open_path(self, path: str) -> bool:
        return QDesktopServices.openUrl(QUrl.fromLocalFile(path))

    def reveal_path(self, path: str) -> bool:
        return QDesktopServices.openUrl(QUrl.fromLocalFile(str(Path(path).parent)))

    def attach_surface(self, win_id: int) -> bool:
        return self._shell.embed(win_id)

    def show_context_menu(self) -> None:
        menu = QMenu(self._shell)
        menu.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose, True)
        menu.addAction("Hide", self._windows.hide)
        menu.addSeparator()
        menu.addAction("Quit", self.quit)
        menu.popup(QCursor.pos())

    def quit(self) -> None:
        app = QApplication.instance()
        if app is not None:
            app.quit()
