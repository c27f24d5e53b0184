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


@pytest.fixture
def surface(qt_app, host, harness):
    from juno_client.drag_tracker import DragTracker
    from juno_client.surface import UiSurface
    from juno_client.widget_state import WidgetStateMirror

    host.results.update({"get-notes": [], "get-tasks": [], "get-folders": [], "get-files": [], "get-theme": "nebula"})
    state = WidgetStateMirror(host)
    tracker = DragTracker(host, after=harness.after, after_cancel=harness.cancel)
    widget = UiSurface(host, tracker, state)
    widget.resize(80, 80)
    widget.show()
    yield widget, state
    widget.close()


def test_surface_follows_the_mirror(surface) -> None:
    widget, state = surface

    assert widget.current_view is widget.ball
    state.set_expanded(True)
    assert widget.current_view is widget.panel
    state.set_expanded(False)
    assert widget.current_view is widget.ball


def test_ball_click_expands(surface, host, qt_app) -> None:
    from PyQt6.QtCore import Qt
    from PyQt6.QtTest import QTest

    widget, state = surface
    QTest.mouseClick(widget.ball, Qt.MouseButton.LeftButton)

    assert state.expanded is True
    assert host.commands()[:3] == ["get-window-position", "finalize-drag", "toggle-expand"]


def test_connect_attaches_and_loads_theme(surface, host) -> None:
    widget, _state = surface
    host.results["attach-surface"] = True

    widget.on_connection_changed(True)

    assert ("call", "attach-surface", {"win_id": int(widget.winId())}) in host.log
    assert widget.panel.theme.name == "nebula"


def test_collapsed_reconnect_leaves_host_geometry_alone(surface, host) -> None:
    widget, state = surface
    host.results["get-widget-state"] = {"expanded": False}

    widget.on_connection_changed(True)

    assert "get-widget-state" in host.commands()
    assert "toggle-expand" not in host.commands()
    assert state.expanded is False


def test_expanded_reconnect_reapplies_panel(surface, host) -> None:
    widget, state = surface
    state.set_expanded(True)
    host.log.clear()

    widget.on_connection_changed(True)

    assert ("call", "toggle-expand", {"expanded": True}) in host.log
    assert widget.current_view is widget.panel


def test_fallback_view_sticks_after_ui_error(surface) -> None:
    widget, state = surface

    widget.show_fallback("RuntimeError: boom")
    state.set_expanded(True)

    assert widget.current_view is widget.fallback
