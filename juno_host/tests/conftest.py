from __future__ import annotations

import os
from typing import Callable, List, Optional, Tuple

import pytest

from juno_host.geometry import WorkArea
from juno_host.window_manager import WindowManager


def pytest_runtest_setup(item):
    if item.get_closest_marker("pyqt_required"):
        if not os.getenv("PYQT_TESTS"):
            pytest.skip("PYQT_TESTS not set; skipping PyQt-dependent test")


class AfterHarness:
    def __init__(self) -> None:
        self.scheduled: List[Tuple[str, int, Callable[[], None]]] = []
        self.cancelled: List[object] = []

    def after(self, ms: int, cb) -> str:
        handle = f"h{len(self.scheduled) + 1}"
        self.scheduled.append((handle, ms, cb))
        return handle

    def cancel(self, handle: object) -> None:
        self.cancelled.append(handle)

    def run(self, handle: str) -> None:
        for h, _ms, cb in list(self.scheduled):
            if h == handle:
                cb()
                return
        raise AssertionError(f"Handle {handle} not found")

    def last(self) -> Tuple[str, int, Callable[[], None]]:
        return self.scheduled[-1]


class FakeWindowHandle:
    """Records every geometry call; position/size reflect the last applied values."""

    def __init__(self, x: int = 0, y: int = 0, width: int = 80, height: int = 80) -> None:
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        self.resizable = False
        self.movable = False
        self.minimum: Optional[Tuple[int, int]] = None
        self.maximum: Optional[Tuple[int, int]] = None
        self.visible = True
        self.closed = False
        self.calls: List[tuple] = []

    def position(self) -> Tuple[int, int]:
        return self.x, self.y

    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def set_position(self, x: int, y: int) -> None:
        self.calls.append(("set_position", x, y))
        self.x, self.y = x, y

    def set_size(self, width: int, height: int) -> None:
        self.calls.append(("set_size", width, height))
        self.width, self.height = width, height

    def set_bounds(self, x: int, y: int, width: int, height: int) -> None:
        self.calls.append(("set_bounds", x, y, width, height))
        self.x, self.y, self.width, self.height = x, y, width, height

    def set_resizable(self, resizable: bool) -> None:
        self.calls.append(("set_resizable", resizable))
        self.resizable = resizable

    def set_movable(self, movable: bool) -> None:
        self.calls.append(("set_movable", movable))
        self.movable = movable

    def set_minimum_size(self, width: int, height: int) -> None:
        self.calls.append(("set_minimum_size", width, height))
        self.minimum = (width, height)

    def set_maximum_size(self, width: int, height: int) -> None:
        self.calls.append(("set_maximum_size", width, height))
        self.maximum = (width, height)

    def is_visible(self) -> bool:
        return self.visible

    def show(self) -> None:
        self.calls.append(("show",))
        self.visible = True

    def hide(self) -> None:
        self.calls.append(("hide",))
        self.visible = False

    def close(self) -> None:
        self.calls.append(("close",))
        self.closed = True


@pytest.fixture
def harness() -> AfterHarness:
    return AfterHarness()


@pytest.fixture
def work_area() -> WorkArea:
    return WorkArea(1920, 1080)


@pytest.fixture
def make_window():
    def _make(x: int = 0, y: int = 0, width: int = 80, height: int = 80) -> Tuple[WindowManager, FakeWindowHandle]:
        handle = FakeWindowHandle(x, y, width, height)
        manager = WindowManager()
        manager.attach(handle)
        return manager, handle

    return _make
