"""Async TCP client for the host command surface, bridged to the Qt thread."""
from __future__ import annotations

import asyncio
import concurrent.futures
import itertools
import json
import logging
import queue
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from juno_common.protocol import Call, Event, Notify, ProtocolError, Response, decode, encode

DEFAULT_CALL_TIMEOUT = 2.0

_LOGGER = logging.getLogger("Juno.Client.HostClient")


class HostCallError(RuntimeError):
    """The host answered a call with an error response."""

    def __init__(self, command: str, message: str) -> None:
        super().__init__(f"{command}: {message}")
        self.command = command
        self.message = message


class HostUnavailableError(RuntimeError):
    """The host could not be reached or did not answer in time."""


class HostClient(QObject):
    """Single ordered channel to the host.

    Calls and notifications share one outgoing FIFO, so the host sees them in
    the order they were issued. ``notify`` never blocks; ``call`` blocks the
    caller until the correlated response arrives or the timeout expires.
    """

    event_received = pyqtSignal(str, dict)
    connection_changed = pyqtSignal(bool)
    status_changed = pyqtSignal(str)

    def __init__(self, port_file: Path, loop_sleep: float = 1.0, call_timeout: float = DEFAULT_CALL_TIMEOUT) -> None:
        super().__init__()
        self._port_file = port_file
        self._loop_sleep = loop_sleep
        self._call_timeout = call_timeout
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event = threading.Event()
        self._connected = threading.Event()
        self._outgoing: Optional[asyncio.Queue[Optional[bytes]]] = None
        self._pending: "queue.Queue[bytes]" = queue.Queue(maxsize=32)
        self._ids = itertools.count(1)
        self._waiters: Dict[int, "concurrent.futures.Future[Response]"] = {}
        self._waiters_lock = threading.Lock()
        self._main_task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def wait_connected(self, timeout: float) -> bool:
        return self._connected.wait(timeout)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._thread_main, name="Juno-HostClient", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        loop = self._loop
        outgoing = self._outgoing
        if loop is not None and loop.is_running():
            if outgoing is not None:
                loop.call_soon_threadsafe(outgoing.put_nowait, None)
            main_task = self._main_task
            if main_task is not None:
                loop.call_soon_threadsafe(main_task.cancel)
        if self._thread:
            self._thread.join(timeout=5.0)
        self._loop = None
        self._thread = None
        self._outgoing = None
        self._fail_waiters("client stopped")

    # Outgoing -------------------------------------------------------------

    def notify(self, command: str, args: Optional[Mapping[str, Any]] = None) -> bool:
        """Fire-and-forget; returns False only when the message had to be dropped."""
        return self._enqueue(encode(Notify(command, dict(args or {}))))

    def call(
        self,
        command: str,
        args: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        if not self._connected.is_set():
            raise HostUnavailableError(f"{command}: not connected to host")
        call_id = next(self._ids)
        future: "concurrent.futures.Future[Response]" = concurrent.futures.Future()
        with self._waiters_lock:
            self._waiters[call_id] = future
        if not self._enqueue(encode(Call(call_id, command, dict(args or {}))), allow_pending=False):
            self._forget(call_id)
            raise HostUnavailableError(f"{command}: channel closed")
        wait = self._call_timeout if timeout is None else timeout
        try:
            response = future.result(timeout=wait)
        except concurrent.futures.TimeoutError as exc:
            self._forget(call_id)
            raise HostUnavailableError(f"{command}: no response within {wait:.1f}s") from exc
        except HostUnavailableError:
            self._forget(call_id)
            raise
        if not response.ok:
            raise HostCallError(command, response.error or "error")
        return response.result

    def _enqueue(self, data: bytes, *, allow_pending: bool = True) -> bool:
        loop = self._loop
        queue_ref = self._outgoing
        if loop is not None and queue_ref is not None:
            try:
                loop.call_soon_threadsafe(queue_ref.put_nowait, data)
                return True
            except RuntimeError as exc:
                _LOGGER.warning("Failed to enqueue message on running loop: %s", exc)
        if not allow_pending:
            return False
        try:
            self._pending.put_nowait(data)
        except queue.Full:
            _LOGGER.debug("Pending queue full; dropping message")
            return False
        return True

    def _forget(self, call_id: int) -> None:
        with self._waiters_lock:
            self._waiters.pop(call_id, None)

    def _fail_waiters(self, reason: str) -> None:
        with self._waiters_lock:
            waiters = list(self._waiters.values())
            self._waiters.clear()
        for future in waiters:
            if not future.done():
                future.set_exception(HostUnavailableError(reason))

    # Incoming -------------------------------------------------------------

    def _handle_line(self, line: bytes) -> None:
        try:
            message = decode(line)
        except ProtocolError as exc:
            _LOGGER.debug("Dropped invalid message from host: %s", exc)
            return
        if isinstance(message, Response):
            with self._waiters_lock:
                future = self._waiters.pop(message.id, None)
            if future is None:
                _LOGGER.debug("Response %s arrived after its caller gave up", message.id)
                return
            if not future.done():
                future.set_result(message)
            return
        if isinstance(message, Event):
            self.event_received.emit(message.event, dict(message.data))
            return
        _LOGGER.warning("Ignoring unexpected %s from host", type(message).__name__)

    # Background thread ----------------------------------------------------

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        self._main_task = loop.create_task(self._run())
        try:
            loop.run_until_complete(self._main_task)
        except asyncio.CancelledError:
            _LOGGER.debug("Host client loop cancelled")
        finally:
            self._main_task = None
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _run(self) -> None:
        backoff = 1.0
        while not self._stop_event.is_set():
            port = self._read_port()
            if port is None:
                self.status_changed.emit("Waiting for port.json")
                await asyncio.sleep(self._loop_sleep)
                continue
            try:
                reader, writer = await asyncio.open_connection("127.0.0.1", port)
            except (OSError, asyncio.TimeoutError) as exc:
                self.status_changed.emit(f"Connect failed: {exc}")
                _LOGGER.warning("Connect failed to 127.0.0.1:%s: %s", port, exc)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 1.5, 10.0)
                continue

            _LOGGER.info("Connected to host on 127.0.0.1:%s", port)
            self.status_changed.emit(f"Connected to 127.0.0.1:{port}")
            backoff = 1.0
            outgoing_queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
            self._outgoing = outgoing_queue
            while not self._pending.empty():
                try:
                    outgoing_queue.put_nowait(self._pending.get_nowait())
                except queue.Empty:
                    break
            sender_task = asyncio.create_task(self._flush_outgoing(writer, outgoing_queue))
            self._connected.set()
            self.connection_changed.emit(True)
            try:
                while not self._stop_event.is_set():
                    line = await reader.readline()
                    if not line:
                        raise ConnectionError("Host closed the connection")
                    self._handle_line(line)
            except (ConnectionError, asyncio.IncompleteReadError, OSError) as exc:
                self.status_changed.emit(f"Disconnected: {exc}")
                _LOGGER.warning("Disconnected from host: %s", exc)
            finally:
                self._connected.clear()
                self._outgoing = None
                self._fail_waiters("connection lost")
                self.connection_changed.emit(False)
                outgoing_queue.put_nowait(None)
                await sender_task
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError as exc:
                    _LOGGER.debug("Error closing writer: %s", exc)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 1.5, 10.0)

    async def _flush_outgoing(self, writer: asyncio.StreamWriter, queue_ref: "asyncio.Queue[Optional[bytes]]") -> None:
        while True:
            data = await queue_ref.get()
            if data is None:
                break
            try:
                writer.write(data)
                await writer.drain()
            except (ConnectionError, OSError) as exc:
                _LOGGER.warning("Failed to write to host: %s", exc)
                break

    def _read_port(self) -> Optional[int]:
        try:
            data = json.loads(self._port_file.read_text(encoding="utf-8"))
        except (FileNotFoundError, json.JSONDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        port = data.get("port")
        if isinstance(port, int) and not isinstance(port, bool) and port > 0:
            return port
        return None
