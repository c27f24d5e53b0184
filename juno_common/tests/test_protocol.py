from __future__ import annotations

import json

import pytest

from juno_common import protocol
from juno_common.protocol import Call, Event, Notify, ProtocolError, Response


def test_call_line_carries_id_and_args() -> None:
    line = protocol.encode(Call(id=3, command="toggle-expand", args={"expanded": True}))

    assert line.endswith(b"\n")
    assert json.loads(line) == {
        "kind": "call",
        "id": 3,
        "command": "toggle-expand",
        "args": {"expanded": True},
    }


def test_notify_decodes_without_id() -> None:
    message = protocol.decode(b'{"kind": "notify", "command": "set-window-position", "args": {"x": 1, "y": 2}}\n')

    assert message == Notify(command="set-window-position", args={"x": 1, "y": 2})


def test_error_response_decodes_to_failed_response() -> None:
    message = protocol.decode('{"kind": "error", "id": 9, "error": "database is locked"}')

    assert message == Response(id=9, ok=False, error="database is locked")


def test_event_defaults_to_empty_data() -> None:
    assert protocol.decode('{"kind": "event", "event": "toggle-from-tray"}') == Event(event="toggle-from-tray")


@pytest.mark.parametrize(
    "line",
    [
        b"not json",
        b"[1, 2]",
        b'{"kind": "shout", "command": "x"}',
        b'{"kind": "call", "command": "x"}',
        b'{"kind": "call", "id": true, "command": "x"}',
        b'{"kind": "notify", "command": ""}',
        b'{"kind": "notify", "command": "x", "args": [1]}',
        b'{"kind": "event"}',
        b"\xff\xfe",
    ],
)
def test_malformed_lines_raise_protocol_error(line: bytes) -> None:
    with pytest.raises(ProtocolError):
        protocol.decode(line)
