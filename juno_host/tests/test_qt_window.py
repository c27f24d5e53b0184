from __future__ import annotations

import os

import pytest

pytestmark = pytest.mark.pyqt_required


@pytest.fixture(scope="module")
def qt_app():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


def test_window_handle_applies_bounds_and_limits(qt_app) -> None:
    from juno_host.qt_window import QtWindowHandle, WidgetShell

    shell = WidgetShell()
    handle = QtWindowHandle(shell)
    handle.set_bounds(40, 50, 80, 80)
    handle.set_minimum_size(80, 80)
    handle.set_maximum_size(80, 80)

    assert handle.size() == (80, 80)
    assert shell.minimumSize().width() == 80
    handle.set_resizable(True)
    handle.set_movable(True)
    assert shell.movable is True
    handle.close()


def test_movable_flag_does_not_gate_applied_moves(qt_app) -> None:
    from juno_host.qt_window import QtWindowHandle, WidgetShell

    shell = WidgetShell()
    handle = QtWindowHandle(shell)
    handle.set_movable(False)
    handle.set_position(210, 220)

    assert shell.movable is False
    assert handle.position() == (210, 220)
    handle.close()


def test_shell_reports_moves(qt_app) -> None:
    from juno_host.qt_window import WidgetShell

    moves = []
    shell = WidgetShell(on_moved=lambda: moves.append(True))
    shell.show()
    shell.move(120, 130)
    qt_app.processEvents()

    assert moves
    shell.close()


def test_scheduler_fires_and_cancels(qt_app) -> None:
    from PyQt6.QtCore import QEventLoop, QTimer

    from juno_common.qt_timers import QtScheduler

    scheduler = QtScheduler()
    fired = []
    scheduler.after(0, lambda: fired.append("kept"))
    cancelled = scheduler.after(0, lambda: fired.append("cancelled"))
    scheduler.after_cancel(cancelled)

    loop = QEventLoop()
    QTimer.singleShot(50, loop.quit)
    loop.exec()

    assert fired == ["kept"]


def test_invoker_resolves_future_on_qt_thread(qt_app) -> None:
    from juno_host.qt_window import QtInvoker

    invoker = QtInvoker()
    future = invoker.submit(lambda: 41 + 1)
    qt_app.processEvents()

    assert future.result(timeout=1.0) == 42
