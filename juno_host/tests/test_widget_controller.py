from __future__ import annotations

import math

from juno_host.geometry import Point, WorkArea
from juno_host.kv_store import WINDOW_X_KEY, WINDOW_Y_KEY, KeyValueStore
from juno_host.widget_controller import WidgetController
from juno_host.window_manager import WindowManager


def _controller(manager, harness, tmp_path, area=WorkArea(1920, 1080)) -> WidgetController:
    store = KeyValueStore(tmp_path / "store.json")
    return WidgetController(
        manager,
        work_area_fn=lambda: area,
        store=store,
        after=harness.after,
        after_cancel=harness.cancel,
    )


def _stored(controller: WidgetController) -> tuple:
    store = controller._store  # type: ignore[attr-defined]
    return store.get(WINDOW_X_KEY), store.get(WINDOW_Y_KEY)


def test_expand_from_bottom_right_corner_clamps_panel(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(1820, 980)
    controller = _controller(manager, harness, tmp_path)

    assert controller.toggle_expand(True) == {"expanded": True}

    assert (handle.width, handle.height) == (400, 600)
    assert (handle.x, handle.y) == (1720, 780)
    assert handle.resizable is True
    assert handle.movable is True
    assert handle.minimum == (300, 400)
    assert handle.maximum == (800, 1000)
    assert _stored(controller) == (1720, 780)
    assert controller.state().size_is_legal()


def test_collapsed_drag_applies_position_and_size_together(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(500, 500)
    controller = _controller(manager, harness, tmp_path)

    assert controller.set_position(100.4, 200.6) is True

    assert handle.calls == [("set_bounds", 100, 201, 80, 80)]
    assert _stored(controller) == (100, 201)


def test_expanded_drag_moves_without_resizing(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(100, 100)
    controller = _controller(manager, harness, tmp_path)
    controller.toggle_expand(True)
    handle.calls.clear()

    controller.set_position(-1000, 50)

    assert handle.calls == [("set_position", -200, 50)]
    assert (handle.width, handle.height) == (400, 600)


def test_invalid_coordinates_are_ignored(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(10, 10)
    controller = _controller(manager, harness, tmp_path)

    for x, y in ((math.nan, 1), (1, math.inf), (True, 5), ("10", 10), (None, None)):
        assert controller.set_position(x, y) is False

    assert handle.calls == []
    assert (handle.x, handle.y) == (10, 10)


def test_collapse_schedules_snap_after_settle_delay(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(1820, 980)
    controller = _controller(manager, harness, tmp_path)
    controller.toggle_expand(True)

    controller.toggle_expand(False)

    assert (handle.width, handle.height) == (80, 80)
    assert handle.minimum == (80, 80) and handle.maximum == (80, 80)
    assert handle.resizable is False and handle.movable is False
    snap_handle, delay, _cb = harness.last()
    assert delay == 100
    assert (handle.x, handle.y) == (1720, 780)

    harness.run(snap_handle)

    assert (handle.x, handle.y) == (1820, 980)
    assert _stored(controller) == (1820, 980)


def test_re_expanding_cancels_and_skips_pending_snap(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(600, 400)
    controller = _controller(manager, harness, tmp_path)
    controller.toggle_expand(True)
    controller.toggle_expand(False)
    snap_handle, _delay, _cb = harness.last()

    controller.toggle_expand(True)
    position_before = (handle.x, handle.y)
    harness.run(snap_handle)

    assert snap_handle in harness.cancelled
    assert (handle.x, handle.y) == position_before
    assert (handle.width, handle.height) == (400, 600)


def test_deferred_snap_skipped_once_window_is_destroyed(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(600, 400)
    controller = _controller(manager, harness, tmp_path)
    controller.toggle_expand(False)
    snap_handle, _delay, _cb = harness.last()

    manager.destroy()
    harness.run(snap_handle)

    assert not any(call[0] == "set_position" for call in handle.calls)


def test_snap_to_edge_reports_anchor(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(30, 25)
    controller = _controller(manager, harness, tmp_path)

    assert controller.snap_to_edge() == {"x": 20, "y": 20, "edge": "top-left"}
    assert (handle.x, handle.y) == (20, 20)
    assert _stored(controller) == (20, 20)


def test_snap_to_edge_is_noop_while_expanded(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(30, 25)
    controller = _controller(manager, harness, tmp_path)
    controller.toggle_expand(True)
    handle.calls.clear()

    assert controller.snap_to_edge() is None
    assert handle.calls == []


def test_finalize_drag_locks_collapsed_ball(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(10, 10)
    controller = _controller(manager, harness, tmp_path)

    assert controller.finalize_drag() is True
    assert (handle.width, handle.height) == (80, 80)
    assert handle.resizable is False and handle.movable is False

    controller.toggle_expand(True)
    assert controller.finalize_drag() is False


def test_stale_session_updates_are_ignored(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(0, 0)
    controller = _controller(manager, harness, tmp_path)

    assert controller.set_position(100, 100, session=1) is True
    controller.finalize_drag(session=1)
    assert controller.set_position(500, 500, session=1) is False
    assert (handle.x, handle.y) == (100, 100)

    assert controller.set_position(300, 300, session=2) is True
    assert (handle.x, handle.y) == (300, 300)


def test_transition_closes_every_open_session(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(0, 0)
    controller = _controller(manager, harness, tmp_path)
    controller.set_position(100, 100, session=3)

    controller.toggle_expand(True)

    assert controller.set_position(900, 900, session=3) is False
    assert controller.set_position(50, 60) is True
    assert (handle.x, handle.y) == (50, 60)


def test_session_tracking_resets_for_new_connection(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(0, 0)
    controller = _controller(manager, harness, tmp_path)
    controller.set_position(100, 100, session=5)
    controller.finalize_drag(session=5)

    controller.reset_drag_sessions()

    assert controller.set_position(200, 200, session=1) is True
    assert (handle.x, handle.y) == (200, 200)


def test_native_move_of_expanded_panel_is_corrected(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(100, 100)
    controller = _controller(manager, harness, tmp_path)
    controller.toggle_expand(True)
    handle.x, handle.y = 100, -50

    controller.handle_moved()

    assert (handle.x, handle.y) == (100, 0)
    assert _stored(controller) == (100, 0)


def test_native_move_of_collapsed_ball_is_only_persisted(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(0, 0)
    controller = _controller(manager, harness, tmp_path)
    handle.x, handle.y = -30, -30

    controller.handle_moved()

    assert not any(call[0] == "set_position" for call in handle.calls)
    assert _stored(controller) == (-30, -30)


def test_restore_position_defaults_to_bottom_right(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(0, 0)
    controller = _controller(manager, harness, tmp_path)

    assert controller.restore_position() == Point(1820, 980)
    assert handle.calls[0] == ("set_bounds", 1820, 980, 80, 80)


def test_position_survives_restart(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(0, 0)
    controller = _controller(manager, harness, tmp_path)
    controller.set_position(640, 320)

    restarted_manager, restarted_handle = make_window(0, 0)
    restarted = _controller(restarted_manager, harness, tmp_path)

    assert restarted.restore_position() == Point(640, 320)
    assert (restarted_handle.x, restarted_handle.y) == (640, 320)


def test_commands_without_a_window_are_noops(harness, tmp_path) -> None:
    controller = _controller(WindowManager(), harness, tmp_path)

    assert controller.get_window_position() == {"x": 0, "y": 0}
    assert controller.set_position(10, 10) is False
    assert controller.toggle_expand(True) == {"expanded": True}
    assert controller.finalize_drag() is False
    assert controller.snap_to_edge() is None
    assert controller.restore_position() is None
    assert controller.state() is None
    controller.handle_moved()


def test_start_drag_only_acknowledges(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(10, 10)
    controller = _controller(manager, harness, tmp_path)

    assert controller.start_drag() is True
    assert handle.calls == []
    assert controller.get_window_position() == {"x": 10, "y": 10}


def _wire_move_reports(handle, controller: WidgetController) -> None:
    """Make the fake report every position change, like the shell's moveEvent."""
    set_position = handle.set_position
    set_bounds = handle.set_bounds

    def _set_position(x, y):
        set_position(x, y)
        controller.handle_moved()

    def _set_bounds(x, y, width, height):
        set_bounds(x, y, width, height)
        controller.handle_moved()

    handle.set_position = _set_position
    handle.set_bounds = _set_bounds


def test_expanded_drag_above_top_edge_is_not_pulled_back(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(600, 100)
    controller = _controller(manager, harness, tmp_path)
    _wire_move_reports(handle, controller)
    controller.toggle_expand(True)

    controller.set_position(600, -250)

    assert (handle.x, handle.y) == (600, -250)
    assert _stored(controller) == (600, -250)


def test_reported_native_move_is_still_corrected(make_window, harness, tmp_path) -> None:
    manager, handle = make_window(600, 100)
    controller = _controller(manager, harness, tmp_path)
    _wire_move_reports(handle, controller)
    controller.toggle_expand(True)
    handle.x, handle.y = 600, -120

    controller.handle_moved()

    assert (handle.x, handle.y) == (600, 0)
    assert _stored(controller) == (600, 0)
