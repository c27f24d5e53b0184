from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtWidgets import QApplication

from juno_client.drag_tracker import DragTracker
from juno_client.host_client import HostClient
from juno_client.surface import UiSurface, install_excepthook
from juno_client.widget_state import WidgetStateMirror
from juno_common.logging_utils import configure_process_logger, resolve_logs_dir
from juno_common.qt_timers import QtScheduler
from juno_common.version import __version__, is_dev_build

CLIENT_LOGGER_NAME = "Juno.Client"
PORT_FILE_ENV_VAR = "JUNO_PORT_FILE"


def resolve_port_file(args_port: Optional[str]) -> Path:
    if args_port:
        return Path(args_port).expanduser().resolve()
    env_override = os.getenv(PORT_FILE_ENV_VAR)
    if env_override:
        return Path(env_override).expanduser().resolve()
    return (Path.cwd() / "port.json").resolve()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Juno floating widget UI")
    parser.add_argument("--port-file", help="Path to port.json written by the host")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args(argv)

    logger = configure_process_logger(
        CLIENT_LOGGER_NAME,
        debug_enabled=args.debug or is_dev_build(),
        log_dir=resolve_logs_dir(),
        filename="juno-client.log",
    )
    port_file = resolve_port_file(args.port_file)
    logger.info("Starting Juno UI %s (pid=%s)", __version__, os.getpid())
    logger.debug("Resolved port file path to %s", port_file)

    app = QApplication(sys.argv if argv is None else [sys.argv[0], *argv])
    scheduler = QtScheduler(app)
    host = HostClient(port_file)
    state = WidgetStateMirror(host)
    tracker = DragTracker(host, after=scheduler.after, after_cancel=scheduler.after_cancel)
    surface = UiSurface(host, tracker, state)
    install_excepthook(surface)

    host.event_received.connect(surface.handle_host_event)
    host.connection_changed.connect(surface.on_connection_changed)
    host.status_changed.connect(lambda status: logger.debug("Host link: %s", status))
    host.start()

    exit_code = app.exec()
    host.stop()
    scheduler.cancel_all()
    logger.info("Juno UI exiting with code %s", exit_code)
    return int(exit_code)
