"""Reminder polling for notes and tasks."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from juno_host.storage import Storage, StorageError, now_ms

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]
NotifyFn = Callable[[str, int, str, str], None]

NOTIFICATION_TITLE = "Reminder"

_LOGGER = logging.getLogger("Juno.Host.Reminders")


class ReminderScheduler:
    """Fires one notification per due reminder, then clears it.

    ``notify(kind, record_id, title, body)`` is called for each due note
    (``kind="note"``) or incomplete task (``kind="task"``).
    """

    def __init__(
        self,
        storage: Storage,
        notify: NotifyFn,
        *,
        after: AfterFn,
        after_cancel: AfterCancelFn,
        poll_seconds: int = 60,
        time_source: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._storage = storage
        self._notify = notify
        self._after = after
        self._after_cancel = after_cancel
        self._poll_ms = max(1, int(poll_seconds)) * 1000
        self._now = time_source
        self._logger = logger or _LOGGER
        self._poll_handle: object | None = None
        self._one_shots: Dict[Tuple[str, int], object] = {}
        self._running = False

    @property
    def poll_interval_ms(self) -> int:
        return self._poll_ms

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self.check_due()
        self._schedule_poll()

    def stop(self) -> None:
        self._running = False
        if self._poll_handle is not None:
            self._after_cancel(self._poll_handle)
            self._poll_handle = None
        for handle in self._one_shots.values():
            self._after_cancel(handle)
        self._one_shots.clear()

    def check_due(self) -> int:
        """Notify every due reminder once; returns how many fired."""
        timestamp = self._now()
        fired = 0
        try:
            for note in self._storage.due_notes(timestamp):
                self._fire("note", note["id"], note["content"])
                self._storage.clear_note_reminder(note["id"])
                fired += 1
            for task in self._storage.due_tasks(timestamp):
                self._fire("task", task["id"], task["title"])
                self._storage.clear_task_reminder(task["id"])
                fired += 1
        except StorageError as exc:
            self._logger.warning("Reminder check failed: %s", exc)
        if fired:
            self._logger.debug("Fired %d reminder(s)", fired)
        return fired

    def schedule(self, kind: str, record: Optional[Mapping[str, Any]]) -> None:
        """Arm a one-shot timer for a freshly added or updated record.

        Reminders further away than one poll interval are left to the poll.
        """
        if not record:
            return
        key = (kind, int(record["id"]))
        previous = self._one_shots.pop(key, None)
        if previous is not None:
            self._after_cancel(previous)
        reminder_at = record.get("reminder_at")
        if reminder_at is None:
            return
        delay = int(reminder_at) - self._now()
        if delay <= 0:
            self.check_due()
            return
        if delay >= self._poll_ms:
            return
        self._one_shots[key] = self._after(delay, lambda: self._run_one_shot(key))

    # Internal helpers -----------------------------------------------------

    def _fire(self, kind: str, record_id: int, body: str) -> None:
        try:
            self._notify(kind, record_id, NOTIFICATION_TITLE, body or "")
        except RuntimeError as exc:
            self._logger.warning("Unable to show reminder for %s %s: %s", kind, record_id, exc)

    def _run_one_shot(self, key: Tuple[str, int]) -> None:
        self._one_shots.pop(key, None)
        self.check_due()

    def _schedule_poll(self) -> None:
        if not self._running:
            return
        self._poll_handle = self._after(self._poll_ms, self._run_poll)

    def _run_poll(self) -> None:
        self._poll_handle = None
        if not self._running:
            return
        self.check_due()
        self._schedule_poll()
