"""Qt widgets for the collapsed ball and the expanded panel."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from PyQt6.QtCore import QDateTime, QPointF, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QLinearGradient, QMouseEvent, QPainter, QPaintEvent, QRadialGradient
from PyQt6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDateTimeEdit,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QPushButton,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from juno_client.drag_tracker import DragTracker, HostChannel
from juno_client.theme import BALL_GRADIENT, THEMES, Theme, resolve_theme, stylesheet
from juno_client.widget_state import WidgetStateMirror

# select-file waits on a native dialog in the host.
FILE_DIALOG_TIMEOUT = 300.0

_LOGGER = logging.getLogger("Juno.Client.Views")

_ID_ROLE = Qt.ItemDataRole.UserRole.value
_KIND_ROLE = _ID_ROLE + 1
_FOLDER_ROLE = _ID_ROLE + 2


def safe_call(host: HostChannel, command: str, args: Optional[Mapping[str, Any]] = None, default: Any = None, **kwargs: Any) -> Any:
    try:
        return host.call(command, args, **kwargs)
    except RuntimeError as exc:
        _LOGGER.warning("%s failed: %s", command, exc)
        return default


class DragHandle(QWidget):
    """Widget whose left-button drags move the host window."""

    clicked = pyqtSignal()

    def __init__(self, tracker: DragTracker, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._tracker = tracker
        self._last_global: Optional[QPointF] = None

    def mousePressEvent(self, event: QMouseEvent) -> None:  # noqa: N802 - Qt signature
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return
        if self._tracker.pointer_down():
            self._last_global = event.globalPosition()
            self.grabMouse()
        event.accept()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:  # noqa: N802 - Qt signature
        last = self._last_global
        if last is None:
            super().mouseMoveEvent(event)
            return
        current = event.globalPosition()
        self._tracker.pointer_move(current.x() - last.x(), current.y() - last.y())
        self._last_global = current
        event.accept()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:  # noqa: N802 - Qt signature
        if event.button() != Qt.MouseButton.LeftButton:
            super().mouseReleaseEvent(event)
            return
        if self._last_global is not None:
            self._last_global = None
            self.releaseMouse()
            self._tracker.pointer_up()
        if not self._tracker.should_block_click():
            self.clicked.emit()
        event.accept()


class BallView(DragHandle):
    """The collapsed 80x80 gradient ball."""

    def __init__(
        self,
        tracker: DragTracker,
        state: WidgetStateMirror,
        host: HostChannel,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(tracker, parent)
        self._host = host
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground, True)
        self.setCursor(Qt.CursorShape.OpenHandCursor)
        self.setToolTip("Juno")
        self.clicked.connect(lambda: state.set_expanded(True))

    def mousePressEvent(self, event: QMouseEvent) -> None:  # noqa: N802 - Qt signature
        if event.button() == Qt.MouseButton.RightButton:
            safe_call(self._host, "show-context-menu")
            event.accept()
            return
        super().mousePressEvent(event)

    def paintEvent(self, event: QPaintEvent) -> None:  # noqa: N802 - Qt signature
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        side = min(self.width(), self.height()) - 8
        rect = QRectF((self.width() - side) / 2, (self.height() - side) / 2, side, side)
        gradient = QLinearGradient(rect.topLeft(), rect.bottomRight())
        gradient.setColorAt(0.0, QColor(BALL_GRADIENT[0]))
        gradient.setColorAt(1.0, QColor(BALL_GRADIENT[1]))
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(gradient))
        painter.drawEllipse(rect)
        glow = QRadialGradient(rect.center(), side / 4)
        glow.setColorAt(0.0, QColor(255, 255, 255, 200))
        glow.setColorAt(1.0, QColor(255, 255, 255, 0))
        painter.setBrush(QBrush(glow))
        painter.drawEllipse(rect.center(), side / 4, side / 4)
        painter.end()


class NotesTab(QWidget):
    def __init__(self, host: HostChannel, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._host = host
        self._input = QLineEdit()
        self._input.setPlaceholderText("Write a note...")
        self._input.returnPressed.connect(self.add_note)
        self._reminder_enabled = QCheckBox("Remind")
        self._reminder = QDateTimeEdit(QDateTime.currentDateTime().addSecs(3600))
        self._reminder.setCalendarPopup(True)
        self._reminder.setEnabled(False)
        self._reminder_enabled.toggled.connect(self._reminder.setEnabled)
        self._list = QListWidget()
        pin_button = QPushButton("Pin")
        pin_button.clicked.connect(self.toggle_pin)
        delete_button = QPushButton("Delete")
        delete_button.clicked.connect(self.delete_selected)

        reminder_row = QHBoxLayout()
        reminder_row.addWidget(self._reminder_enabled)
        reminder_row.addWidget(self._reminder, 1)
        actions = QHBoxLayout()
        actions.addStretch(1)
        actions.addWidget(pin_button)
        actions.addWidget(delete_button)
        layout = QVBoxLayout(self)
        layout.addWidget(self._input)
        layout.addLayout(reminder_row)
        layout.addWidget(self._list, 1)
        layout.addLayout(actions)
        self._notes: Dict[int, Dict[str, Any]] = {}

    def refresh(self) -> None:
        notes = safe_call(self._host, "get-notes", default=None)
        if not isinstance(notes, list):
            return
        self._notes = {note["id"]: note for note in notes}
        self._list.clear()
        for note in notes:
            prefix = "* " if note.get("pinned") else ""
            item = QListWidgetItem(prefix + str(note.get("content", "")))
            item.setData(_ID_ROLE, note["id"])
            self._list.addItem(item)

    def add_note(self) -> None:
        content = self._input.text().strip()
        if not content:
            return
        note: Dict[str, Any] = {"content": content}
        if self._reminder_enabled.isChecked():
            note["reminder_at"] = self._reminder.dateTime().toMSecsSinceEpoch()
        if safe_call(self._host, "add-note", {"note": note}) is not None:
            self._input.clear()
            self._reminder_enabled.setChecked(False)
        self.refresh()

    def toggle_pin(self) -> None:
        note_id = self._selected_id()
        if note_id is None:
            return
        pinned = bool(self._notes.get(note_id, {}).get("pinned"))
        safe_call(self._host, "update-note", {"id": note_id, "updates": {"pinned": not pinned}})
        self.refresh()

    def delete_selected(self) -> None:
        note_id = self._selected_id()
        if note_id is None:
            return
        safe_call(self._host, "delete-note", {"id": note_id})
        self.refresh()

    def select(self, note_id: int) -> None:
        _select_by_id(self._list, note_id)

    def _selected_id(self) -> Optional[int]:
        item = self._list.currentItem()
        return None if item is None else item.data(_ID_ROLE)


class TasksTab(QWidget):
    def __init__(self, host: HostChannel, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._host = host
        self._title = QLineEdit()
        self._title.setPlaceholderText("Add a task...")
        self._title.returnPressed.connect(self.add_task)
        self._priority = QComboBox()
        self._priority.addItems(["low", "medium", "high"])
        self._priority.setCurrentText("medium")
        self._due_enabled = QCheckBox("Due")
        self._due = QDateTimeEdit(QDateTime.currentDateTime().addDays(1))
        self._due.setCalendarPopup(True)
        self._due.setEnabled(False)
        self._due_enabled.toggled.connect(self._due.setEnabled)
        self._list = QListWidget()
        self._list.itemChanged.connect(self._on_item_changed)
        delete_button = QPushButton("Delete")
        delete_button.clicked.connect(self.delete_selected)

        entry_row = QHBoxLayout()
        entry_row.addWidget(self._title, 1)
        entry_row.addWidget(self._priority)
        due_row = QHBoxLayout()
        due_row.addWidget(self._due_enabled)
        due_row.addWidget(self._due, 1)
        actions = QHBoxLayout()
        actions.addStretch(1)
        actions.addWidget(delete_button)
        layout = QVBoxLayout(self)
        layout.addLayout(entry_row)
        layout.addLayout(due_row)
        layout.addWidget(self._list, 1)
        layout.addLayout(actions)
        self._populating = False

    def refresh(self) -> None:
        tasks = safe_call(self._host, "get-tasks", default=None)
        if not isinstance(tasks, list):
            return
        self._populating = True
        try:
            self._list.clear()
            for task in tasks:
                label = f"[{task.get('priority', 'medium')}] {task.get('title', '')}"
                due = task.get("due_date")
                if isinstance(due, int):
                    label += "  (due " + QDateTime.fromMSecsSinceEpoch(due).toString("MMM d, hh:mm") + ")"
                item = QListWidgetItem(label)
                item.setFlags(item.flags() | Qt.ItemFlag.ItemIsUserCheckable)
                item.setCheckState(Qt.CheckState.Checked if task.get("completed") else Qt.CheckState.Unchecked)
                item.setData(_ID_ROLE, task["id"])
                self._list.addItem(item)
        finally:
            self._populating = False

    def add_task(self) -> None:
        title = self._title.text().strip()
        if not title:
            return
        task: Dict[str, Any] = {"title": title, "priority": self._priority.currentText()}
        if self._due_enabled.isChecked():
            due = self._due.dateTime().toMSecsSinceEpoch()
            task["due_date"] = due
            task["reminder_at"] = due
        if safe_call(self._host, "add-task", {"task": task}) is not None:
            self._title.clear()
            self._due_enabled.setChecked(False)
        self.refresh()

    def delete_selected(self) -> None:
        item = self._list.currentItem()
        if item is None:
            return
        safe_call(self._host, "delete-task", {"id": item.data(_ID_ROLE)})
        self.refresh()

    def select(self, task_id: int) -> None:
        _select_by_id(self._list, task_id)

    def _on_item_changed(self, item: QListWidgetItem) -> None:
        if self._populating:
            return
        completed = item.checkState() == Qt.CheckState.Checked
        safe_call(self._host, "update-task", {"id": item.data(_ID_ROLE), "updates": {"completed": completed}})
        self.refresh()


class FilesTab(QWidget):
    """Folder tree browser over the file shelf."""

    def __init__(self, host: HostChannel, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._host = host
        self._folder_stack: List[Dict[str, Any]] = []
        self._location = QLabel("/")
        self._location.setObjectName("JunoMuted")
        up_button = QPushButton("Up")
        up_button.clicked.connect(self.go_up)
        self._list = QListWidget()
        self._list.itemDoubleClicked.connect(self._on_double_click)
        add_button = QPushButton("Add files")
        add_button.clicked.connect(self.add_files)
        folder_button = QPushButton("New folder")
        folder_button.clicked.connect(self.create_folder)
        reveal_button = QPushButton("Reveal")
        reveal_button.clicked.connect(self.reveal_selected)
        delete_button = QPushButton("Delete")
        delete_button.clicked.connect(self.delete_selected)

        location_row = QHBoxLayout()
        location_row.addWidget(up_button)
        location_row.addWidget(self._location, 1)
        actions = QHBoxLayout()
        actions.addWidget(add_button)
        actions.addWidget(folder_button)
        actions.addStretch(1)
        actions.addWidget(reveal_button)
        actions.addWidget(delete_button)
        layout = QVBoxLayout(self)
        layout.addLayout(location_row)
        layout.addWidget(self._list, 1)
        layout.addLayout(actions)

    @property
    def current_folder_id(self) -> Optional[int]:
        return self._folder_stack[-1]["id"] if self._folder_stack else None

    def refresh(self) -> None:
        folder_id = self.current_folder_id
        folders = safe_call(self._host, "get-folders", {"parent_id": folder_id}, default=[])
        files = safe_call(self._host, "get-files", {"folder_id": folder_id}, default=[])
        self._location.setText("/" + "/".join(folder["name"] for folder in self._folder_stack))
        self._list.clear()
        for folder in folders or []:
            item = QListWidgetItem(folder["name"] + "/")
            item.setData(_ID_ROLE, folder["id"])
            item.setData(_KIND_ROLE, "folder")
            item.setData(_FOLDER_ROLE, folder)
            self._list.addItem(item)
        for record in files or []:
            item = QListWidgetItem(f"{record['name']}  ({_format_size(record.get('size'))})")
            item.setData(_ID_ROLE, record["id"])
            item.setData(_KIND_ROLE, "file")
            self._list.addItem(item)

    def add_files(self) -> None:
        paths = safe_call(self._host, "select-file", default=[], timeout=FILE_DIALOG_TIMEOUT)
        for path in paths or []:
            safe_call(self._host, "add-file", {"path": path, "folder_id": self.current_folder_id})
        self.refresh()

    def create_folder(self) -> None:
        name, ok = QInputDialog.getText(self, "New folder", "Folder name:")
        if ok and name.strip():
            safe_call(self._host, "create-folder", {"name": name.strip(), "parent_id": self.current_folder_id})
            self.refresh()

    def go_up(self) -> None:
        if self._folder_stack:
            self._folder_stack.pop()
            self.refresh()

    def reveal_selected(self) -> None:
        item = self._list.currentItem()
        if item is not None and item.data(_KIND_ROLE) == "file":
            safe_call(self._host, "reveal-file", {"id": item.data(_ID_ROLE)})

    def delete_selected(self) -> None:
        item = self._list.currentItem()
        if item is None:
            return
        command = "delete-folder" if item.data(_KIND_ROLE) == "folder" else "delete-file"
        safe_call(self._host, command, {"id": item.data(_ID_ROLE)})
        self.refresh()

    def _on_double_click(self, item: QListWidgetItem) -> None:
        if item.data(_KIND_ROLE) == "folder":
            self._folder_stack.append(item.data(_FOLDER_ROLE))
            self.refresh()
            return
        safe_call(self._host, "open-file", {"id": item.data(_ID_ROLE)})


class PanelView(QWidget):
    """Expanded panel: draggable header plus notes, tasks and files tabs."""

    def __init__(
        self,
        tracker: DragTracker,
        state: WidgetStateMirror,
        host: HostChannel,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.setObjectName("JunoPanel")
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        self._host = host
        self._state = state

        header = DragHandle(tracker)
        header.setObjectName("JunoHeader")
        header.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        header.setCursor(Qt.CursorShape.OpenHandCursor)
        title = QLabel("Juno")
        title.setObjectName("JunoTitle")
        self._theme_box = QComboBox()
        for theme in THEMES.values():
            self._theme_box.addItem(theme.label, theme.name)
        self._theme_box.activated.connect(self._on_theme_chosen)
        collapse_button = QPushButton("-")
        collapse_button.setToolTip("Minimize")
        collapse_button.clicked.connect(lambda: state.set_expanded(False))
        header_layout = QHBoxLayout(header)
        header_layout.setContentsMargins(12, 8, 8, 8)
        header_layout.addWidget(title)
        header_layout.addStretch(1)
        header_layout.addWidget(self._theme_box)
        header_layout.addWidget(collapse_button)

        self.notes = NotesTab(host)
        self.tasks = TasksTab(host)
        self.files = FilesTab(host)
        self._tabs = QTabWidget()
        self._tabs.addTab(self.notes, "Notes")
        self._tabs.addTab(self.tasks, "Tasks")
        self._tabs.addTab(self.files, "Files")

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(header)
        layout.addWidget(self._tabs, 1)
        self.theme: Theme = resolve_theme(None)
        self.apply_theme(self.theme)

    def load(self) -> None:
        self.apply_theme(resolve_theme(safe_call(self._host, "get-theme")))
        self.refresh()

    def refresh(self) -> None:
        self.notes.refresh()
        self.tasks.refresh()
        self.files.refresh()

    def apply_theme(self, theme: Theme) -> None:
        self.theme = theme
        self.setStyleSheet(stylesheet(theme))
        index = self._theme_box.findData(theme.name)
        if index >= 0:
            self._theme_box.setCurrentIndex(index)

    def focus_item(self, kind: str, record_id: int) -> None:
        if kind == "note":
            self.notes.refresh()
            self._tabs.setCurrentWidget(self.notes)
            self.notes.select(record_id)
        elif kind == "task":
            self.tasks.refresh()
            self._tabs.setCurrentWidget(self.tasks)
            self.tasks.select(record_id)

    def _on_theme_chosen(self, index: int) -> None:
        name = self._theme_box.itemData(index)
        saved = safe_call(self._host, "set-theme", {"theme": name})
        if saved is not None:
            self.apply_theme(resolve_theme(saved))


class FallbackView(QWidget):
    """Shown after an unhandled UI error instead of a blank surface."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setObjectName("JunoPanel")
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        self._message = QLabel("Something went wrong.")
        self._message.setWordWrap(True)
        self._message.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout = QVBoxLayout(self)
        layout.addWidget(self._message)
        self.setStyleSheet(stylesheet(resolve_theme(None)))

    def set_error(self, message: str) -> None:
        self._message.setText(f"Something went wrong.\n\n{message}")


def _select_by_id(widget: QListWidget, record_id: int) -> None:
    for row in range(widget.count()):
        item = widget.item(row)
        if item is not None and item.data(_ID_ROLE) == record_id:
            widget.setCurrentItem(item)
            widget.scrollToItem(item)
            return


def _format_size(size: Any) -> str:
    if not isinstance(size, (int, float)) or size < 0:
        return "?"
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
