"""Threaded JSON-lines TCP server carrying UI commands to the host."""
from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from juno_common.protocol import Call, Event, Notify, ProtocolError, Response, decode, encode
from juno_common.version import __version__

Dispatch = Callable[[Union[Call, Notify]], Optional[Response]]
Submit = Callable[[Callable[[], Any]], "concurrent.futures.Future[Any]"]

PORT_FILE = "port.json"

_LOGGER = logging.getLogger("Juno.Host.Server")


def run_inline(fn: Callable[[], Any]) -> "concurrent.futures.Future[Any]":
    """Default submitter: run on the calling (server) thread."""
    future: "concurrent.futures.Future[Any]" = concurrent.futures.Future()
    try:
        future.set_result(fn())
    except Exception as exc:  # handed to the future, surfaced by _deliver
        future.set_exception(exc)
    return future


@dataclass
class CommandServer:
    """Accepts UI connections and feeds each decoded message to ``dispatch``.

    Messages are handed to ``submit`` in arrival order; the host passes a
    submitter that queues onto the Qt thread, so geometry state is only ever
    touched there. Responses and pushed events go through one writer task per
    client, which keeps per-connection output ordered.
    """

    dispatch: Dispatch
    host: str = "127.0.0.1"
    port: int = 0
    submit: Submit = run_inline
    on_connect: Optional[Callable[[], None]] = None
    logger: logging.Logger = field(default=_LOGGER)
    _loop: Optional[asyncio.AbstractEventLoop] = field(default=None, init=False)
    _thread: Optional[threading.Thread] = field(default=None, init=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, init=False)
    _ready_event: threading.Event = field(default_factory=threading.Event, init=False)
    _shutdown: Optional[asyncio.Event] = field(default=None, init=False)
    _clients: Dict[asyncio.StreamWriter, "asyncio.Queue[Optional[bytes]]"] = field(default_factory=dict, init=False)

    def start(self) -> None:
        """Start the server on a background thread."""
        if self._thread and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._ready_event.clear()
        self._thread = threading.Thread(target=self._run, name="Juno-CommandServer", daemon=True)
        self._thread.start()
        if not self._ready_event.wait(timeout=5.0):
            raise RuntimeError("Command server failed to start in time")

    def stop(self) -> None:
        """Stop the server and release resources."""
        self._stop_event.set()
        loop = self._loop
        if loop is not None and loop.is_running() and self._shutdown is not None:
            loop.call_soon_threadsafe(self._shutdown.set)
        if self._thread:
            self._thread.join(timeout=5.0)
        self._loop = None
        self._thread = None
        self._clients.clear()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def publish(self, event: Event) -> bool:
        """Push an event to every connected UI; safe to call from any thread."""
        loop = self._loop
        if self._stop_event.is_set() or loop is None:
            return False
        try:
            payload = encode(event)
        except (TypeError, ValueError) as exc:
            self.logger.warning("Failed to encode event %s: %s", event.event, exc)
            return False
        try:
            loop.call_soon_threadsafe(self._broadcast, payload)
        except RuntimeError as exc:
            self.logger.debug("Event %s dropped; server loop closed: %s", event.event, exc)
            return False
        return True

    def write_port_file(self, directory: Path) -> Path:
        target = Path(directory) / PORT_FILE
        target.parent.mkdir(parents=True, exist_ok=True)
        data = {"port": self.port, "pid": os.getpid(), "version": __version__}
        target.write_text(json.dumps(data, indent=2), encoding="utf-8")
        self.logger.info("Wrote %s with port %d", target, self.port)
        return target

    @staticmethod
    def delete_port_file(directory: Path) -> None:
        try:
            (Path(directory) / PORT_FILE).unlink()
        except FileNotFoundError:
            pass

    # Internal helpers -----------------------------------------------------

    def _run(self) -> None:
        if self._loop is not None:
            return

        loop = asyncio.new_event_loop()
        self._loop = loop
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._server_main())
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _server_main(self) -> None:
        self._shutdown = asyncio.Event()
        server = await asyncio.start_server(self._handle_client, self.host, self.port)
        sockets = server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        self.logger.info("Command server listening on %s:%d", self.host, self.port)
        self._ready_event.set()

        async with server:
            if not self._stop_event.is_set():
                await self._shutdown.wait()
            # Connected clients must be closed before the server can finish closing.
            for writer, outgoing in list(self._clients.items()):
                outgoing.put_nowait(None)
                writer.close()
        self._clients.clear()

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        outgoing: "asyncio.Queue[Optional[bytes]]" = asyncio.Queue()
        self._clients[writer] = outgoing
        self.logger.info("UI connected (%d active) %s", len(self._clients), peer)
        if self.on_connect is not None:
            self._watch(self.submit(self.on_connect), None, outgoing)
        writer_task = asyncio.create_task(self._flush_outgoing(writer, outgoing))
        try:
            while not self._stop_event.is_set():
                line = await reader.readline()
                if not line:
                    break
                if not line.strip():
                    continue
                self._handle_line(line, outgoing)
        except (ConnectionError, asyncio.IncompleteReadError) as exc:
            self.logger.debug("UI connection %s dropped: %s", peer, exc)
        finally:
            self._clients.pop(writer, None)
            outgoing.put_nowait(None)
            await writer_task
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass
        self.logger.info("UI disconnected (%d active) %s", len(self._clients), peer)

    def _handle_line(self, line: bytes, outgoing: "asyncio.Queue[Optional[bytes]]") -> None:
        try:
            message = decode(line)
        except ProtocolError as exc:
            self.logger.warning("Discarding malformed message: %s", exc)
            return
        if not isinstance(message, (Call, Notify)):
            self.logger.warning("Discarding unexpected %s from UI", type(message).__name__)
            return
        future = self.submit(lambda: self.dispatch(message))
        self._watch(future, message, outgoing)

    def _watch(
        self,
        future: "concurrent.futures.Future[Any]",
        message: Optional[Union[Call, Notify]],
        outgoing: "asyncio.Queue[Optional[bytes]]",
    ) -> None:
        loop = self._loop
        if loop is None:
            return

        def _done(done: "concurrent.futures.Future[Any]") -> None:
            try:
                loop.call_soon_threadsafe(self._deliver, done, message, outgoing)
            except RuntimeError:
                self.logger.debug("Response dropped; server loop closed")

        future.add_done_callback(_done)

    def _deliver(
        self,
        future: "concurrent.futures.Future[Any]",
        message: Optional[Union[Call, Notify]],
        outgoing: "asyncio.Queue[Optional[bytes]]",
    ) -> None:
        exc = future.exception()
        name = message.command if message is not None else "on_connect"
        if exc is not None:
            self.logger.error("Command %s failed: %s", name, exc, exc_info=exc)
            if isinstance(message, Call):
                outgoing.put_nowait(encode(Response(id=message.id, ok=False, error=f"Internal error: {exc}")))
            return
        if not isinstance(message, Call):
            return
        response = future.result()
        if response is None:
            response = Response(id=message.id, ok=True, result=None)
        try:
            outgoing.put_nowait(encode(response))
        except (TypeError, ValueError) as encode_exc:
            self.logger.error("Result of %s is not serialisable: %s", name, encode_exc)
            outgoing.put_nowait(encode(Response(id=message.id, ok=False, error="Result is not serialisable")))

    def _broadcast(self, payload: bytes) -> None:
        for outgoing in list(self._clients.values()):
            outgoing.put_nowait(payload)

    async def _flush_outgoing(self, writer: asyncio.StreamWriter, outgoing: "asyncio.Queue[Optional[bytes]]") -> None:
        while True:
            payload = await outgoing.get()
            if payload is None:
                break
            try:
                writer.write(payload)
                await writer.drain()
            except (ConnectionError, OSError) as exc:
                self.logger.debug("Failed to write to UI: %s", exc)
                break
