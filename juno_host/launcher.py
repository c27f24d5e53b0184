from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtWidgets import QApplication

from juno_common.logging_utils import configure_process_logger, resolve_logs_dir
from juno_common.qt_timers import QtScheduler
from juno_common.version import __version__, is_dev_build
from juno_host.command_server import CommandServer
from juno_host.command_surface import CommandSurface, register_app_commands, register_geometry_commands
from juno_host.kv_store import STORE_FILE, KeyValueStore
from juno_host.qt_window import QtDesktop, QtInvoker, QtWindowHandle, WidgetShell, primary_work_area
from juno_host.reminders import ReminderScheduler
from juno_host.settings import HostSettings, resolve_data_dir
from juno_host.storage import DATABASE_FILE, Storage
from juno_host.tray import GlobalHotkey, HostTray
from juno_host.ui_supervisor import UiSupervisor, default_ui_command
from juno_host.widget_controller import WidgetController
from juno_host.window_manager import WindowManager

HOST_LOGGER_NAME = "Juno.Host"

_LOGGER = logging.getLogger(HOST_LOGGER_NAME)


class JunoHost:
    """Wires the host components together on the Qt thread."""

    def __init__(self, app: QApplication, settings: HostSettings, *, debug: bool = False) -> None:
        self._app = app
        self._settings = settings
        self._debug = debug
        data_dir = settings.data_dir
        data_dir.mkdir(parents=True, exist_ok=True)

        self.scheduler = QtScheduler(app)
        self.invoker = QtInvoker(app)
        self.store = KeyValueStore(
            data_dir / STORE_FILE,
            after=self.scheduler.after,
            after_cancel=self.scheduler.after_cancel,
        )
        self.storage = Storage(data_dir / DATABASE_FILE)
        self.windows = WindowManager()
        self.controller = WidgetController(
            self.windows,
            work_area_fn=primary_work_area,
            store=self.store,
            after=self.scheduler.after,
            after_cancel=self.scheduler.after_cancel,
        )
        self.shell = WidgetShell()
        self.windows.create(lambda: QtWindowHandle(self.shell))
        self.server = CommandServer(
            dispatch=self._dispatch,
            submit=self.invoker.submit,
            on_connect=self.controller.reset_drag_sessions,
        )
        self.tray = HostTray(self.windows, self.server.publish, self.quit, parent=app)
        self.reminders = ReminderScheduler(
            self.storage,
            self.tray.notify,
            after=self.scheduler.after,
            after_cancel=self.scheduler.after_cancel,
            poll_seconds=settings.reminder_poll_seconds,
        )
        self.surface = CommandSurface()
        register_geometry_commands(self.surface, self.controller)
        register_app_commands(
            self.surface,
            windows=self.windows,
            store=self.store,
            storage=self.storage,
            reminders=self.reminders,
            desktop=QtDesktop(self.windows, self.shell),
        )
        self.hotkey = GlobalHotkey(settings.hotkey, parent=app)
        self.hotkey.triggered.connect(self.tray.hotkey_toggle)
        self.supervisor: Optional[UiSupervisor] = None

    def _dispatch(self, message):
        return self.surface.dispatch(message)

    def start(self) -> None:
        self.controller.restore_position()
        self.shell.set_on_moved(self.controller.handle_moved)
        self.windows.show()
        self.server.start()
        port_file = self.server.write_port_file(self._settings.data_dir)
        self.tray.show()
        self.hotkey.start()
        self.reminders.start()
        if self._settings.launch_ui:
            command = self._settings.ui_command or default_ui_command(port_file, debug=self._debug)
            env = dict(os.environ)
            env["JUNO_PORT_FILE"] = str(port_file)
            self.supervisor = UiSupervisor(command, Path.cwd(), env=env)
            self.supervisor.start()
        _LOGGER.info("Juno host %s started (data dir %s)", __version__, self._settings.data_dir)

    def quit(self) -> None:
        self._app.quit()

    def shutdown(self) -> None:
        if self.supervisor is not None:
            self.supervisor.stop()
        self.hotkey.stop()
        self.reminders.stop()
        self.server.stop()
        CommandServer.delete_port_file(self._settings.data_dir)
        self.tray.hide()
        self.shell.set_on_moved(None)
        self.windows.destroy()
        self.store.flush()
        self.scheduler.cancel_all()
        self.storage.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Juno floating widget host")
    parser.add_argument("--data-dir", help="Directory for settings, store.json and the database")
    parser.add_argument("--no-ui", action="store_true", help="Do not launch the UI process")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args(argv)

    data_dir = resolve_data_dir(args.data_dir)
    settings = HostSettings(data_dir)
    if args.no_ui:
        settings.launch_ui = False
    debug = args.debug or is_dev_build()
    logger = configure_process_logger(
        HOST_LOGGER_NAME,
        debug_enabled=debug,
        log_dir=resolve_logs_dir(),
        filename="juno-host.log",
        retention=settings.log_retention,
    )
    logger.info("Starting Juno host (pid=%s)", os.getpid())

    app = QApplication(sys.argv if argv is None else [sys.argv[0], *argv])
    app.setQuitOnLastWindowClosed(False)
    host = JunoHost(app, settings, debug=debug)
    host.start()
    exit_code = app.exec()
    host.shutdown()
    logger.info("Juno host exiting with code %s", exit_code)
    return int(exit_code)
