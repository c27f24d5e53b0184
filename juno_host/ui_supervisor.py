"""Launches the sandboxed UI process and restarts it if it crashes."""
from __future__ import annotations

import logging
import shlex
import subprocess
import sys
import threading
import time
from collections import deque
from pathlib import Path
from typing import Callable, Deque, List, Mapping, Optional, Sequence

_LOGGER = logging.getLogger("Juno.Host.Supervisor")


def default_ui_command(port_file: Path, *, debug: bool = False) -> List[str]:
    command = [sys.executable, "-m", "juno_client", "--port-file", str(port_file)]
    if debug:
        command.append("--debug")
    return command


class UiSupervisor:
    """Keeps one UI process alive, giving up after too many restarts in a short window."""

    def __init__(
        self,
        command: Sequence[str],
        working_dir: Path,
        *,
        capture_output: bool = False,
        max_restarts: int = 3,
        restart_window: float = 60.0,
        env: Optional[Mapping[str, str]] = None,
        popen: Callable[..., "subprocess.Popen[str]"] = subprocess.Popen,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._command = list(command)
        self._working_dir = working_dir
        self._capture_output = capture_output
        self._max_restarts = max_restarts
        self._restart_window = restart_window
        self._env = dict(env) if env is not None else None
        self._popen = popen
        self._logger = logger or _LOGGER

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._process: Optional[subprocess.Popen[str]] = None
        self._restart_times: Deque[float] = deque(maxlen=max_restarts)
        self._output_thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._logger.debug("UI supervisor starting; command=%s cwd=%s", self._format_command(), self._working_dir)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="Juno-UiSupervisor", daemon=True)
        self._thread.start()

    def stop(self) -> bool:
        self._stop_event.set()
        process_terminated = self._terminate_process()
        thread_joined = True
        if self._thread:
            self._thread.join(timeout=5.0)
            thread_joined = not self._thread.is_alive()
        self._thread = None
        success = process_terminated and thread_joined
        if success:
            self._logger.info("UI supervisor stopped")
        else:
            self._logger.warning("UI supervisor stop incomplete")
        return success

    # Internal helpers -----------------------------------------------------

    def _run(self) -> None:
        while not self._stop_event.is_set():
            if not self._process or self._process.poll() is not None:
                if not self._can_restart():
                    self._logger.warning("UI restart limit reached; supervisor giving up")
                    return
                self._spawn()
            self._wait_for_exit(interval=1.0)

    def _can_restart(self) -> bool:
        now = time.monotonic()
        self._restart_times.append(now)
        if len(self._restart_times) < self._max_restarts:
            return True
        window = now - self._restart_times[0]
        if window <= self._restart_window:
            self._logger.debug("UI restart throttled: %d attempts within %.1fs", len(self._restart_times), window)
        return window > self._restart_window

    def _spawn(self) -> None:
        self._logger.debug("Launching UI process: %s", self._format_command())
        popen_kwargs = {
            "cwd": str(self._working_dir),
            "stdout": subprocess.PIPE if self._capture_output else subprocess.DEVNULL,
            "stderr": subprocess.STDOUT if self._capture_output else subprocess.DEVNULL,
            "creationflags": getattr(subprocess, "CREATE_NO_WINDOW", 0),
            "env": self._env,
        }
        if self._capture_output:
            popen_kwargs.update(text=True, encoding="utf-8", errors="replace")
        try:
            proc = self._popen(self._command, **popen_kwargs)
        except FileNotFoundError:
            self._logger.error("UI executable not found; supervisor disabled")
            self._stop_event.set()
            return
        except OSError as exc:
            self._logger.error("Failed to launch UI: %s", exc)
            self._stop_event.wait(5.0)
            return
        self._process = proc
        self._logger.info("UI process started (pid=%s)", proc.pid)
        self._start_output_reader(proc)

    def _wait_for_exit(self, interval: float) -> None:
        proc = self._process
        if not proc:
            self._stop_event.wait(interval)
            return
        try:
            proc.wait(timeout=interval)
        except subprocess.TimeoutExpired:
            return
        self._logger.info("UI process exited (pid=%s, returncode=%s)", proc.pid, proc.returncode)
        self._process = None

    def _terminate_process(self) -> bool:
        proc = self._process
        if not proc:
            return True
        terminated = True
        try:
            if proc.poll() is None:
                self._logger.debug("Terminating UI process (pid=%s)", proc.pid)
                proc.terminate()
                try:
                    proc.wait(timeout=5.0)
                except subprocess.TimeoutExpired:
                    self._logger.debug("Killing unresponsive UI process (pid=%s)", proc.pid)
                    proc.kill()
                    proc.wait(timeout=5.0)
            terminated = proc.poll() is not None
        except (OSError, subprocess.SubprocessError) as exc:
            self._logger.warning("Failed to terminate UI process: %s", exc)
            terminated = False
        finally:
            self._process = None
        return terminated

    def _format_command(self) -> str:
        return shlex.join(self._command)

    def _start_output_reader(self, proc: "subprocess.Popen[str]") -> None:
        if not self._capture_output or proc.stdout is None:
            return
        self._output_thread = threading.Thread(
            target=self._drain_stream,
            args=(proc.stdout,),
            name="Juno-UiOutput",
            daemon=True,
        )
        self._output_thread.start()

    def _drain_stream(self, stream) -> None:
        try:
            for line in iter(stream.readline, ""):
                stripped = line.strip()
                if stripped:
                    self._logger.debug("UI output >> %s", stripped)
        except (OSError, ValueError):
            pass
        finally:
            stream.close()
