from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from PyQt6.QtWidgets import QApplication

from juno_client.host_client import HostCallError, HostClient, HostUnavailableError
from juno_common.protocol import Call, Event, Notify, Response, decode, encode
from juno_host.command_server import CommandServer


@pytest.fixture(scope="module")
def qt_app():
    # Force Qt to run headless for CI/CLI test runs.
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


class EagerLoop:
    def call_soon_threadsafe(self, fn, *args):
        return fn(*args)


class AnsweringQueue:
    """Stands in for the outgoing queue and answers calls immediately."""

    def __init__(self, client: HostClient, answer) -> None:
        self.client = client
        self.answer = answer
        self.sent = []

    def put_nowait(self, data):
        message = decode(data)
        self.sent.append(message)
        if isinstance(message, Call):
            self.client._handle_line(encode(self.answer(message)))  # type: ignore[attr-defined]


def _wired(client: HostClient, answer) -> AnsweringQueue:
    queue_ref = AnsweringQueue(client, answer)
    client._loop = EagerLoop()  # type: ignore[attr-defined]
    client._outgoing = queue_ref  # type: ignore[attr-defined]
    client._connected.set()  # type: ignore[attr-defined]
    return queue_ref


def test_notify_queues_when_loop_absent(qt_app) -> None:
    client = HostClient(Path("dummy_port.json"))

    assert client.notify("set-window-position", {"x": 1, "y": 2}) is True
    assert client._pending.qsize() == 1  # type: ignore[attr-defined]


def test_notify_overflow_returns_false(qt_app) -> None:
    client = HostClient(Path("dummy_port.json"))
    for _ in range(client._pending.maxsize):  # type: ignore[attr-defined]
        assert client.notify("set-window-position", {"x": 1, "y": 1})

    assert client.notify("set-window-position", {"x": 2, "y": 2}) is False


def test_call_while_disconnected_raises_immediately(qt_app) -> None:
    client = HostClient(Path("dummy_port.json"))

    with pytest.raises(HostUnavailableError):
        client.call("get-window-position")
    assert client._pending.qsize() == 0  # type: ignore[attr-defined]


def test_call_returns_correlated_result(qt_app) -> None:
    client = HostClient(Path("dummy_port.json"))
    sent = _wired(client, lambda call: Response(id=call.id, ok=True, result={"x": 10, "y": 20}))

    assert client.call("get-window-position") == {"x": 10, "y": 20}
    assert sent.sent[0].command == "get-window-position"


def test_error_response_raises_host_call_error(qt_app) -> None:
    client = HostClient(Path("dummy_port.json"))
    _wired(client, lambda call: Response(id=call.id, ok=False, error="Unknown command: nope"))

    with pytest.raises(HostCallError) as excinfo:
        client.call("nope")

    assert excinfo.value.command == "nope"
    assert excinfo.value.message == "Unknown command: nope"


def test_calls_and_notifications_share_one_fifo(qt_app) -> None:
    client = HostClient(Path("dummy_port.json"))
    sent = _wired(client, lambda call: Response(id=call.id, ok=True, result=True))

    client.notify("set-window-position", {"x": 1, "y": 1, "session": 1})
    client.call("finalize-drag", {"session": 1})

    assert [type(message) for message in sent.sent] == [Notify, Call]


def test_events_are_emitted_as_signals(qt_app) -> None:
    client = HostClient(Path("dummy_port.json"))
    received = []
    client.event_received.connect(lambda name, data: received.append((name, data)))

    client._handle_line(encode(Event("notification-clicked", {"kind": "note", "id": 4})))  # type: ignore[attr-defined]

    assert received == [("notification-clicked", {"kind": "note", "id": 4})]


def test_invalid_and_late_lines_are_dropped(qt_app) -> None:
    client = HostClient(Path("dummy_port.json"))
    received = []
    client.event_received.connect(lambda name, data: received.append(name))

    client._handle_line(b"not json\n")  # type: ignore[attr-defined]
    client._handle_line(encode(Response(id=99, ok=True, result=None)))  # type: ignore[attr-defined]

    assert received == []


def test_read_port_validates_contents(tmp_path, qt_app) -> None:
    port_file = tmp_path / "port.json"
    client = HostClient(port_file)

    assert client._read_port() is None  # type: ignore[attr-defined]
    port_file.write_text("{broken", encoding="utf-8")
    assert client._read_port() is None  # type: ignore[attr-defined]
    port_file.write_text(json.dumps({"port": True}), encoding="utf-8")
    assert client._read_port() is None  # type: ignore[attr-defined]
    port_file.write_text(json.dumps({"port": 5123, "pid": 1}), encoding="utf-8")
    assert client._read_port() == 5123  # type: ignore[attr-defined]


def test_round_trip_against_command_server(tmp_path, qt_app) -> None:
    seen = []

    def dispatch(message):
        seen.append(message)
        if isinstance(message, Call):
            return Response(id=message.id, ok=True, result={"x": 5, "y": 6})
        return None

    server = CommandServer(dispatch=dispatch)
    server.start()
    port_file = server.write_port_file(tmp_path)
    client = HostClient(port_file, loop_sleep=0.05)
    client.start()
    try:
        assert client.wait_connected(5.0) is True
        client.notify("set-window-position", {"x": 5, "y": 6, "session": 1})
        assert client.call("get-window-position") == {"x": 5, "y": 6}
    finally:
        client.stop()
        server.stop()

    assert [type(message) for message in seen] == [Notify, Call]
    assert client.connected is False
