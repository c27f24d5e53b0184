"""JSON-lines wire protocol shared by the host command server and the UI client.

Every line is one JSON object with a ``kind`` field:

- ``call``: ``{"kind": "call", "id": 7, "command": "toggle-expand", "args": {...}}``;
  the receiver answers with exactly one ``result`` or ``error`` carrying the same id.
- ``notify``: ``{"kind": "notify", "command": "set-window-position", "args": {...}}``;
  fire-and-forget, never answered.
- ``result`` / ``error``: responses to a call.
- ``event``: host-initiated push (``toggle-from-tray``, ``notification-clicked``).
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


class MessageKind(str, Enum):
    CALL = "call"
    NOTIFY = "notify"
    RESULT = "result"
    ERROR = "error"
    EVENT = "event"


class ProtocolError(ValueError):
    """Raised when a line cannot be decoded into a protocol message."""


@dataclass(frozen=True)
class Call:
    id: int
    command: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Notify:
    command: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Response:
    id: int
    ok: bool
    result: Any = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Event:
    event: str
    data: Dict[str, Any] = field(default_factory=dict)


Message = Union[Call, Notify, Response, Event]


def encode(message: Message) -> bytes:
    """Serialise a message into a newline-terminated utf-8 line."""
    if isinstance(message, Call):
        payload: Dict[str, Any] = {
            "kind": MessageKind.CALL.value,
            "id": message.id,
            "command": message.command,
            "args": dict(message.args),
        }
    elif isinstance(message, Notify):
        payload = {"kind": MessageKind.NOTIFY.value, "command": message.command, "args": dict(message.args)}
    elif isinstance(message, Response):
        if message.ok:
            payload = {"kind": MessageKind.RESULT.value, "id": message.id, "result": message.result}
        else:
            payload = {"kind": MessageKind.ERROR.value, "id": message.id, "error": message.error or "error"}
    elif isinstance(message, Event):
        payload = {"kind": MessageKind.EVENT.value, "event": message.event, "data": dict(message.data)}
    else:  # pragma: no cover - guarded by the type hints
        raise TypeError(f"Unsupported message type {type(message)!r}")
    return json.dumps(payload, ensure_ascii=False).encode("utf-8") + b"\n"


def decode(line: Union[bytes, str]) -> Message:
    """Parse one line into a message, raising ProtocolError on anything malformed."""
    try:
        text = line.decode("utf-8") if isinstance(line, bytes) else line
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"Invalid message line: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ProtocolError("Message must be a JSON object")
    return from_payload(payload)


def from_payload(payload: Mapping[str, Any]) -> Message:
    raw_kind = payload.get("kind")
    try:
        kind = MessageKind(raw_kind)
    except ValueError as exc:
        raise ProtocolError(f"Unknown message kind {raw_kind!r}") from exc

    if kind in (MessageKind.CALL, MessageKind.NOTIFY):
        command = payload.get("command")
        if not isinstance(command, str) or not command:
            raise ProtocolError("Message is missing a command name")
        args = payload.get("args") or {}
        if not isinstance(args, Mapping):
            raise ProtocolError(f"Arguments for {command} must be an object")
        if kind is MessageKind.NOTIFY:
            return Notify(command=command, args=dict(args))
        return Call(id=_message_id(payload), command=command, args=dict(args))

    if kind is MessageKind.RESULT:
        return Response(id=_message_id(payload), ok=True, result=payload.get("result"))
    if kind is MessageKind.ERROR:
        return Response(id=_message_id(payload), ok=False, error=str(payload.get("error") or "error"))

    event = payload.get("event")
    if not isinstance(event, str) or not event:
        raise ProtocolError("Event is missing a name")
    data = payload.get("data") or {}
    if not isinstance(data, Mapping):
        raise ProtocolError(f"Data for event {event} must be an object")
    return Event(event=event, data=dict(data))


def _message_id(payload: Mapping[str, Any]) -> int:
    value = payload.get("id")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError(f"Message id must be an integer, got {value!r}")
    return value
