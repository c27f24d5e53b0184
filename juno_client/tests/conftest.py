from __future__ import annotations

import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest


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


class FakeHost:
    """Records calls and notifications in the order they were issued."""

    def __init__(self, position: Optional[Dict[str, Any]] = None) -> None:
        self.log: List[Tuple[str, str, Dict[str, Any]]] = []
        self.results: Dict[str, Any] = {"get-window-position": position or {"x": 100, "y": 200}}
        self.failures: Dict[str, Exception] = {}

    def call(self, command: str, args=None, timeout=None) -> Any:
        self.log.append(("call", command, dict(args or {})))
        if command in self.failures:
            raise self.failures[command]
        return self.results.get(command)

    def notify(self, command: str, args=None) -> bool:
        self.log.append(("notify", command, dict(args or {})))
        return True

    def commands(self) -> List[str]:
        return [command for _kind, command, _args in self.log]


@pytest.fixture
def harness() -> AfterHarness:
    return AfterHarness()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()
