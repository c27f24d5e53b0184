"""Named host commands exposed to the UI process.

Each command is registered with the message kind it must arrive as. A call
always produces exactly one ``Response``; a notification never does.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from juno_common.protocol import Call, Notify, Response
from juno_host.kv_store import KeyValueStore
from juno_host.reminders import ReminderScheduler
from juno_host.storage import Storage, StorageError
from juno_host.widget_controller import WidgetController
from juno_host.window_manager import WindowManager

Handler = Callable[[Dict[str, Any]], Any]

_LOGGER = logging.getLogger("Juno.Host.Commands")


class CommandKind(str, Enum):
    CALL = "call"
    NOTIFY = "notify"


@dataclass(frozen=True)
class Command:
    name: str
    kind: CommandKind
    handler: Handler


class Desktop(Protocol):
    """Shell integrations that need the Qt side of the host."""

    def select_files(self) -> List[str]: ...
    def open_path(self, path: str) -> bool: ...
    def reveal_path(self, path: str) -> bool: ...
    def attach_surface(self, win_id: int) -> bool: ...
    def show_context_menu(self) -> None: ...
    def quit(self) -> None: ...


class CommandSurface:
    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._commands: Dict[str, Command] = {}
        self._logger = logger or _LOGGER

    def register(self, name: str, kind: CommandKind, handler: Handler) -> None:
        if name in self._commands:
            raise ValueError(f"Command {name!r} already registered")
        self._commands[name] = Command(name, kind, handler)

    def names(self) -> List[str]:
        return sorted(self._commands)

    def kind_of(self, name: str) -> Optional[CommandKind]:
        command = self._commands.get(name)
        return command.kind if command else None

    def dispatch(self, message: Union[Call, Notify]) -> Optional[Response]:
        if isinstance(message, Call):
            return self._dispatch_call(message)
        self._dispatch_notify(message)
        return None

    def _dispatch_call(self, message: Call) -> Response:
        command = self._commands.get(message.command)
        if command is None:
            self._logger.warning("Rejected call to unknown command %s", message.command)
            return Response(id=message.id, ok=False, error=f"Unknown command: {message.command}")
        if command.kind is not CommandKind.CALL:
            self._logger.warning("Rejected %s: expected a notification, got a call", message.command)
            return Response(id=message.id, ok=False, error=f"{message.command} must be sent as a notification")
        try:
            result = command.handler(dict(message.args))
        except StorageError as exc:
            self._logger.error("Storage error in %s: %s", message.command, exc)
            return Response(id=message.id, ok=False, error=f"Storage error: {exc}")
        except (TypeError, ValueError, KeyError) as exc:
            self._logger.warning("Invalid arguments for %s: %s", message.command, exc)
            return Response(id=message.id, ok=False, error=f"Invalid arguments: {exc}")
        return Response(id=message.id, ok=True, result=result)

    def _dispatch_notify(self, message: Notify) -> None:
        command = self._commands.get(message.command)
        if command is None:
            self._logger.warning("Dropped notification for unknown command %s", message.command)
            return
        if command.kind is not CommandKind.NOTIFY:
            self._logger.warning("Dropped %s: expected a call, got a notification", message.command)
            return
        try:
            command.handler(dict(message.args))
        except StorageError as exc:
            self._logger.error("Storage error in %s: %s", message.command, exc)
        except (TypeError, ValueError, KeyError) as exc:
            self._logger.warning("Invalid arguments for %s: %s", message.command, exc)


def _required_id(args: Mapping[str, Any], key: str = "id") -> int:
    value = args[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{key} must be an integer, got {value!r}")
    return value


def _optional_id(args: Mapping[str, Any], key: str) -> Optional[int]:
    if args.get(key) is None:
        return None
    return _required_id(args, key)


def _mapping(args: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = args.get(key) or {}
    if not isinstance(value, Mapping):
        raise TypeError(f"{key} must be an object")
    return dict(value)


def _path_for(storage: Storage, args: Mapping[str, Any]) -> str:
    if isinstance(args.get("path"), str) and args["path"]:
        return args["path"]
    record = storage.get_file(_required_id(args))
    if record is None:
        raise KeyError(f"no file with id {args.get('id')!r}")
    return record["stored_path"] or record["original_path"]


def register_geometry_commands(surface: CommandSurface, controller: WidgetController) -> None:
    surface.register("get-window-position", CommandKind.CALL, lambda args: controller.get_window_position())
    surface.register(
        "set-window-position",
        CommandKind.NOTIFY,
        lambda args: controller.set_position(args.get("x"), args.get("y"), args.get("session")),
    )
    surface.register(
        "toggle-expand", CommandKind.CALL, lambda args: controller.toggle_expand(bool(args.get("expanded", False)))
    )
    surface.register("finalize-drag", CommandKind.CALL, lambda args: controller.finalize_drag(args.get("session")))
    surface.register("snap-to-edge", CommandKind.CALL, lambda args: controller.snap_to_edge())
    surface.register("start-drag", CommandKind.CALL, lambda args: controller.start_drag())
    surface.register("get-widget-state", CommandKind.CALL, lambda args: {"expanded": controller.expanded})


def register_app_commands(
    surface: CommandSurface,
    *,
    windows: WindowManager,
    store: KeyValueStore,
    storage: Storage,
    reminders: ReminderScheduler,
    desktop: Desktop,
) -> None:
    def set_theme(args: Dict[str, Any]) -> str:
        theme = args.get("theme")
        if not isinstance(theme, str) or not theme:
            raise TypeError("theme must be a non-empty string")
        return store.save_theme(theme)

    def add_note(args: Dict[str, Any]) -> Dict[str, Any]:
        note = storage.add_note(_mapping(args, "note"))
        reminders.schedule("note", note)
        return note

    def update_note(args: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        note = storage.update_note(_required_id(args), _mapping(args, "updates"))
        reminders.schedule("note", note)
        return note

    def add_task(args: Dict[str, Any]) -> Dict[str, Any]:
        task = storage.add_task(_mapping(args, "task"))
        reminders.schedule("task", task)
        return task

    def update_task(args: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        task = storage.update_task(_required_id(args), _mapping(args, "updates"))
        reminders.schedule("task", task)
        return task

    def add_file(args: Dict[str, Any]) -> Dict[str, Any]:
        path = args.get("path")
        if not isinstance(path, str) or not path:
            raise TypeError("path must be a non-empty string")
        return storage.add_file_from_path(path, _optional_id(args, "folder_id"))

    def attach_surface(args: Dict[str, Any]) -> bool:
        return desktop.attach_surface(_required_id(args, "win_id"))

    register = surface.register
    register("get-theme", CommandKind.CALL, lambda args: store.load_theme())
    register("set-theme", CommandKind.CALL, set_theme)

    register("get-notes", CommandKind.CALL, lambda args: storage.list_notes())
    register("add-note", CommandKind.CALL, add_note)
    register("update-note", CommandKind.CALL, update_note)
    register("delete-note", CommandKind.CALL, lambda args: storage.delete_note(_required_id(args)))

    register("get-tasks", CommandKind.CALL, lambda args: storage.list_tasks())
    register("add-task", CommandKind.CALL, add_task)
    register("update-task", CommandKind.CALL, update_task)
    register("delete-task", CommandKind.CALL, lambda args: storage.delete_task(_required_id(args)))

    register("get-folders", CommandKind.CALL, lambda args: storage.list_folders(_optional_id(args, "parent_id")))
    register(
        "create-folder",
        CommandKind.CALL,
        lambda args: storage.create_folder(args.get("name"), _optional_id(args, "parent_id")),
    )
    register(
        "rename-folder", CommandKind.CALL, lambda args: storage.rename_folder(_required_id(args), args.get("name"))
    )
    register("delete-folder", CommandKind.CALL, lambda args: storage.delete_folder(_required_id(args)))

    register("get-files", CommandKind.CALL, lambda args: storage.list_files(_optional_id(args, "folder_id")))
    register("add-file", CommandKind.CALL, add_file)
    register("rename-file", CommandKind.CALL, lambda args: storage.rename_file(_required_id(args), args.get("name")))
    register(
        "move-file",
        CommandKind.CALL,
        lambda args: storage.move_file(_required_id(args), _optional_id(args, "folder_id")),
    )
    register("delete-file", CommandKind.CALL, lambda args: storage.delete_file(_required_id(args)))
    register("select-file", CommandKind.CALL, lambda args: desktop.select_files())
    register("open-file", CommandKind.CALL, lambda args: desktop.open_path(_path_for(storage, args)))
    register("reveal-file", CommandKind.CALL, lambda args: desktop.reveal_path(_path_for(storage, args)))

    register("attach-surface", CommandKind.CALL, attach_surface)
    register("show-context-menu", CommandKind.CALL, lambda args: desktop.show_context_menu())
    register("hide-window", CommandKind.NOTIFY, lambda args: windows.hide())
    register("quit-app", CommandKind.NOTIFY, lambda args: desktop.quit())
