"""SQLite storage for notes, tasks and the file shelf.

Records are returned as plain dicts ready to be sent over the command channel.
Timestamps are epoch milliseconds.
"""
from __future__ import annotations

import logging
import mimetypes
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

DATABASE_FILE = "juno.db"
DEFAULT_NOTE_COLOR = "#0ea5e9"
TASK_PRIORITIES = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"

_LOGGER = logging.getLogger("Juno.Host.Storage")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS notes (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      content TEXT NOT NULL,
      color TEXT DEFAULT '#0ea5e9',
      pinned INTEGER DEFAULT 0,
      reminder_at INTEGER,
      created_at INTEGER NOT NULL,
      updated_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      title TEXT NOT NULL,
      description TEXT,
      priority TEXT DEFAULT 'medium',
      due_date INTEGER,
      completed INTEGER DEFAULT 0,
      reminder_at INTEGER,
      created_at INTEGER,
      updated_at INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS folders (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      name TEXT NOT NULL,
      parent_id INTEGER,
      created_at INTEGER,
      updated_at INTEGER,
      FOREIGN KEY(parent_id) REFERENCES folders(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS files (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      name TEXT NOT NULL,
      original_path TEXT NOT NULL,
      stored_path TEXT,
      file_type TEXT,
      size INTEGER,
      folder_id INTEGER,
      created_at INTEGER,
      updated_at INTEGER,
      FOREIGN KEY(folder_id) REFERENCES folders(id) ON DELETE CASCADE
    )
    """,
)

# Updatable columns per table: wire field -> (column, converter).
_NOTE_FIELDS: Dict[str, Tuple[str, Callable[[Any], Any]]] = {
    "content": ("content", str),
    "color": ("color", str),
    "pinned": ("pinned", lambda value: 1 if value else 0),
    "reminder_at": ("reminder_at", lambda value: None if value is None else int(value)),
}
_TASK_FIELDS: Dict[str, Tuple[str, Callable[[Any], Any]]] = {
    "title": ("title", str),
    "description": ("description", str),
    "priority": ("priority", lambda value: _coerce_priority(value)),
    "due_date": ("due_date", lambda value: None if value is None else int(value)),
    "completed": ("completed", lambda value: 1 if value else 0),
    "reminder_at": ("reminder_at", lambda value: None if value is None else int(value)),
}


class StorageError(RuntimeError):
    """Raised when the database rejects an operation."""


def now_ms() -> int:
    return int(time.time() * 1000)


def _coerce_priority(value: Any) -> str:
    token = str(value or DEFAULT_PRIORITY).strip().lower()
    if token not in TASK_PRIORITIES:
        raise ValueError(f"Unknown task priority: {value!r}")
    return token


def _note_record(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "content": row["content"],
        "color": row["color"],
        "pinned": bool(row["pinned"]),
        "reminder_at": row["reminder_at"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def _task_record(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "title": row["title"],
        "description": row["description"] or "",
        "priority": row["priority"],
        "due_date": row["due_date"],
        "completed": bool(row["completed"]),
        "reminder_at": row["reminder_at"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def _folder_record(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "parent_id": row["parent_id"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def _file_record(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "original_path": row["original_path"],
        "stored_path": row["stored_path"],
        "file_type": row["file_type"],
        "size": row["size"],
        "folder_id": row["folder_id"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


class Storage:
    """Thread-safe wrapper around one SQLite connection."""

    def __init__(
        self,
        path: Path | str,
        *,
        time_source: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._path = str(path)
        self._now = time_source
        self._logger = logger or _LOGGER
        self._lock = threading.Lock()
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            # Must run outside a transaction or SQLite ignores it.
            self._conn.execute("PRAGMA foreign_keys = ON")
            with self._conn:
                for statement in _SCHEMA:
                    self._conn.execute(statement)
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"Unable to open database {self._path}: {exc}") from exc
        self._logger.debug("Database initialised at %s", self._path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # Internal helpers -----------------------------------------------------

    def _query(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, tuple(params)).fetchall()
            except sqlite3.Error as exc:
                raise StorageError(str(exc)) from exc

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                with self._conn:
                    return self._conn.execute(sql, tuple(params))
            except sqlite3.Error as exc:
                raise StorageError(str(exc)) from exc

    def _update(
        self,
        table: str,
        record_id: int,
        updates: Mapping[str, Any],
        fields: Mapping[str, Tuple[str, Callable[[Any], Any]]],
    ) -> None:
        assignments: List[str] = []
        values: List[Any] = []
        for key, (column, convert) in fields.items():
            if key in updates:
                assignments.append(f"{column} = ?")
                values.append(convert(updates[key]))
        assignments.append("updated_at = ?")
        values.append(self._now())
        values.append(int(record_id))
        self._execute(f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?", values)

    # Notes ----------------------------------------------------------------

    def list_notes(self) -> List[Dict[str, Any]]:
        rows = self._query("SELECT * FROM notes ORDER BY pinned DESC, created_at DESC, id DESC")
        return [_note_record(row) for row in rows]

    def get_note(self, note_id: int) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM notes WHERE id = ?", (int(note_id),))
        return _note_record(rows[0]) if rows else None

    def add_note(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ValueError("Note content must be a non-empty string")
        now = self._now()
        reminder = data.get("reminder_at")
        cursor = self._execute(
            "INSERT INTO notes (content, color, pinned, reminder_at, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?)",
            (
                content,
                data.get("color") or DEFAULT_NOTE_COLOR,
                1 if data.get("pinned") else 0,
                None if reminder is None else int(reminder),
                now,
                now,
            ),
        )
        return self.get_note(cursor.lastrowid)  # type: ignore[return-value]

    def update_note(self, note_id: int, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        self._update("notes", note_id, updates, _NOTE_FIELDS)
        return self.get_note(note_id)

    def delete_note(self, note_id: int) -> Dict[str, bool]:
        self._execute("DELETE FROM notes WHERE id = ?", (int(note_id),))
        return {"success": True}

    def due_notes(self, timestamp: int) -> List[Dict[str, Any]]:
        rows = self._query(
            "SELECT * FROM notes WHERE reminder_at IS NOT NULL AND reminder_at <= ? ORDER BY reminder_at",
            (int(timestamp),),
        )
        return [_note_record(row) for row in rows]

    def clear_note_reminder(self, note_id: int) -> None:
        self._execute("UPDATE notes SET reminder_at = NULL WHERE id = ?", (int(note_id),))

    # Tasks ----------------------------------------------------------------

    def list_tasks(self) -> List[Dict[str, Any]]:
        rows = self._query(
            """
            SELECT * FROM tasks ORDER BY
              completed ASC,
              due_date IS NULL ASC,
              due_date ASC,
              CASE priority WHEN 'high' THEN 0 WHEN 'medium' THEN 1 ELSE 2 END ASC,
              id ASC
            """
        )
        return [_task_record(row) for row in rows]

    def get_task(self, task_id: int) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
        return _task_record(rows[0]) if rows else None

    def add_task(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValueError("Task title must be a non-empty string")
        now = self._now()
        due_date = data.get("due_date")
        reminder = data.get("reminder_at")
        cursor = self._execute(
            """
            INSERT INTO tasks (title, description, priority, due_date, completed, reminder_at, created_at, updated_at)
            VALUES (?, ?, ?, ?, 0, ?, ?, ?)
            """,
            (
                title,
                str(data.get("description") or ""),
                _coerce_priority(data.get("priority")),
                None if due_date is None else int(due_date),
                None if reminder is None else int(reminder),
                now,
                now,
            ),
        )
        return self.get_task(cursor.lastrowid)  # type: ignore[return-value]

    def update_task(self, task_id: int, updates: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        self._update("tasks", task_id, updates, _TASK_FIELDS)
        return self.get_task(task_id)

    def delete_task(self, task_id: int) -> Dict[str, bool]:
        self._execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
        return {"success": True}

    def due_tasks(self, timestamp: int) -> List[Dict[str, Any]]:
        rows = self._query(
            """
            SELECT * FROM tasks
            WHERE reminder_at IS NOT NULL AND reminder_at <= ? AND completed = 0
            ORDER BY reminder_at
            """,
            (int(timestamp),),
        )
        return [_task_record(row) for row in rows]

    def clear_task_reminder(self, task_id: int) -> None:
        self._execute("UPDATE tasks SET reminder_at = NULL WHERE id = ?", (int(task_id),))

    # Folders --------------------------------------------------------------

    def list_folders(self, parent_id: Optional[int] = None) -> List[Dict[str, Any]]:
        if parent_id is None:
            rows = self._query("SELECT * FROM folders WHERE parent_id IS NULL ORDER BY name COLLATE NOCASE")
        else:
            rows = self._query(
                "SELECT * FROM folders WHERE parent_id = ? ORDER BY name COLLATE NOCASE", (int(parent_id),)
            )
        return [_folder_record(row) for row in rows]

    def create_folder(self, name: str, parent_id: Optional[int] = None) -> Dict[str, Any]:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Folder name must be a non-empty string")
        now = self._now()
        cursor = self._execute(
            "INSERT INTO folders (name, parent_id, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (name.strip(), None if parent_id is None else int(parent_id), now, now),
        )
        rows = self._query("SELECT * FROM folders WHERE id = ?", (cursor.lastrowid,))
        return _folder_record(rows[0])

    def rename_folder(self, folder_id: int, name: str) -> Dict[str, bool]:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Folder name must be a non-empty string")
        self._execute(
            "UPDATE folders SET name = ?, updated_at = ? WHERE id = ?", (name.strip(), self._now(), int(folder_id))
        )
        return {"success": True}

    def delete_folder(self, folder_id: int) -> Dict[str, bool]:
        self._execute("DELETE FROM folders WHERE id = ?", (int(folder_id),))
        return {"success": True}

    # Files ----------------------------------------------------------------

    def list_files(self, folder_id: Optional[int] = None) -> List[Dict[str, Any]]:
        if folder_id is None:
            rows = self._query("SELECT * FROM files WHERE folder_id IS NULL ORDER BY name COLLATE NOCASE")
        else:
            rows = self._query("SELECT * FROM files WHERE folder_id = ? ORDER BY name COLLATE NOCASE", (int(folder_id),))
        return [_file_record(row) for row in rows]

    def get_file(self, file_id: int) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM files WHERE id = ?", (int(file_id),))
        return _file_record(rows[0]) if rows else None

    def add_file(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        name = data.get("name")
        original_path = data.get("original_path")
        if not isinstance(name, str) or not name:
            raise ValueError("File name must be a non-empty string")
        if not isinstance(original_path, str) or not original_path:
            raise ValueError("File original_path must be a non-empty string")
        now = self._now()
        folder_id = data.get("folder_id")
        size = data.get("size")
        cursor = self._execute(
            """
            INSERT INTO files (name, original_path, stored_path, file_type, size, folder_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                name,
                original_path,
                data.get("stored_path"),
                data.get("file_type"),
                None if size is None else int(size),
                None if folder_id is None else int(folder_id),
                now,
                now,
            ),
        )
        return self.get_file(cursor.lastrowid)  # type: ignore[return-value]

    def add_file_from_path(self, path: Path | str, folder_id: Optional[int] = None) -> Dict[str, Any]:
        """Record a file on disk by reference; name, size and type come from the file itself."""
        source = Path(path)
        try:
            size = source.stat().st_size
        except OSError as exc:
            raise StorageError(f"Unable to read {source}: {exc}") from exc
        file_type, _encoding = mimetypes.guess_type(source.name)
        return self.add_file(
            {
                "name": source.name,
                "original_path": str(source),
                "file_type": file_type or source.suffix.lstrip(".").lower() or None,
                "size": size,
                "folder_id": folder_id,
            }
        )

    def rename_file(self, file_id: int, name: str) -> Dict[str, bool]:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("File name must be a non-empty string")
        self._execute("UPDATE files SET name = ?, updated_at = ? WHERE id = ?", (name.strip(), self._now(), int(file_id)))
        return {"success": True}

    def move_file(self, file_id: int, folder_id: Optional[int]) -> Dict[str, bool]:
        self._execute(
            "UPDATE files SET folder_id = ?, updated_at = ? WHERE id = ?",
            (None if folder_id is None else int(folder_id), self._now(), int(file_id)),
        )
        return {"success": True}

    def delete_file(self, file_id: int) -> Dict[str, bool]:
        self._execute("DELETE FROM files WHERE id = ?", (int(file_id),))
        return {"success": True}
