from __future__ import annotations

import json
import socket
import threading
from typing import List

import pytest

from juno_common.protocol import Call, Event, Notify, Response
from juno_host.command_server import PORT_FILE, CommandServer


class Recorder:
    def __init__(self) -> None:
        self.messages: List[object] = []

    def __call__(self, message):
        self.messages.append(message)
        if isinstance(message, Call):
            if message.command == "boom":
                raise RuntimeError("exploded")
            return Response(id=message.id, ok=True, result={"echo": message.command})
        return None


@pytest.fixture
def running_server():
    recorder = Recorder()
    connected = threading.Event()
    server = CommandServer(dispatch=recorder, on_connect=connected.set)
    server.start()
    yield server, recorder, connected
    server.stop()


def _connect(server: CommandServer):
    sock = socket.create_connection((server.host, server.port), timeout=5.0)
    return sock, sock.makefile("rb")


def _send(sock: socket.socket, payload: dict) -> None:
    sock.sendall(json.dumps(payload).encode("utf-8") + b"\n")


def test_call_gets_exactly_one_correlated_result(running_server) -> None:
    server, _recorder, _connected = running_server
    sock, reader = _connect(server)
    try:
        _send(sock, {"kind": "call", "id": 1, "command": "get-window-position", "args": {}})
        line = json.loads(reader.readline())
    finally:
        sock.close()

    assert line == {"kind": "result", "id": 1, "result": {"echo": "get-window-position"}}


def test_notifications_dispatch_in_send_order(running_server) -> None:
    server, recorder, _connected = running_server
    sock, reader = _connect(server)
    try:
        for x in range(5):
            _send(sock, {"kind": "notify", "command": "set-window-position", "args": {"x": x, "y": 0}})
        _send(sock, {"kind": "call", "id": 9, "command": "finalize-drag", "args": {}})
        reply = json.loads(reader.readline())
    finally:
        sock.close()

    assert reply["id"] == 9
    xs = [m.args["x"] for m in recorder.messages if isinstance(m, Notify)]
    assert xs == [0, 1, 2, 3, 4]
    assert isinstance(recorder.messages[-1], Call)


def test_malformed_lines_are_skipped(running_server) -> None:
    server, recorder, _connected = running_server
    sock, reader = _connect(server)
    try:
        sock.sendall(b"not json\n")
        _send(sock, {"kind": "call", "id": "x", "command": "get-theme"})
        _send(sock, {"kind": "call", "id": 2, "command": "get-theme", "args": {}})
        reply = json.loads(reader.readline())
    finally:
        sock.close()

    assert reply["id"] == 2
    assert len(recorder.messages) == 1


def test_handler_exception_becomes_error_response(running_server) -> None:
    server, _recorder, _connected = running_server
    sock, reader = _connect(server)
    try:
        _send(sock, {"kind": "call", "id": 3, "command": "boom", "args": {}})
        reply = json.loads(reader.readline())
    finally:
        sock.close()

    assert reply["kind"] == "error"
    assert reply["id"] == 3
    assert "exploded" in reply["error"]


def test_published_events_reach_connected_ui(running_server) -> None:
    server, _recorder, connected = running_server
    sock, reader = _connect(server)
    try:
        assert connected.wait(timeout=5.0)
        assert server.publish(Event("toggle-from-tray")) is True
        line = json.loads(reader.readline())
    finally:
        sock.close()

    assert line == {"kind": "event", "event": "toggle-from-tray", "data": {}}


def test_publish_before_start_is_dropped() -> None:
    server = CommandServer(dispatch=lambda message: None)

    assert server.publish(Event("toggle-from-tray")) is False


def test_port_file_round_trip(running_server, tmp_path) -> None:
    server, _recorder, _connected = running_server

    target = server.write_port_file(tmp_path)

    assert target.name == PORT_FILE
    assert json.loads(target.read_text(encoding="utf-8"))["port"] == server.port
    CommandServer.delete_port_file(tmp_path)
    assert not target.exists()
    CommandServer.delete_port_file(tmp_path)
