from __future__ import annotations

import logging
import os
import sys
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 512 * 1024


def resolve_logs_dir(log_dir_name: str = "Juno") -> Path:
    """
    Resolve the directory to store Juno logs.

    Strategy:
    - Use JUNO_LOG_DIR if set.
    - Fall back to XDG state/cache locations (LOCALAPPDATA on Windows), then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    candidates = []

    env_override = os.environ.get("JUNO_LOG_DIR")
    if env_override:
        candidates.append(Path(env_override).expanduser())

    if sys.platform == "win32" and os.environ.get("LOCALAPPDATA"):
        candidates.append(Path(os.environ["LOCALAPPDATA"]) / log_dir_name / "logs")
    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    candidates.append(state_home / log_dir_name / "logs")
    candidates.append(cache_home / log_dir_name / "logs")
    candidates.append(Path.cwd() / "logs" / log_dir_name)

    for target in candidates:
        try:
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def log_formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)


def open_log_file(log_path: Path, *, retention: int = 5, max_bytes: int = LOG_MAX_BYTES) -> RotatingFileHandler:
    """Open ``log_path`` for appending; ``retention`` counts the live file plus its backups."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=max(retention, 1) - 1, encoding="utf-8")
    handler.setFormatter(log_formatter())
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    return logging.DEBUG if debug_enabled else logging.INFO


def configure_process_logger(
    name: str,
    *,
    debug_enabled: bool,
    log_dir: Optional[Path],
    filename: str,
    retention: int = 5,
    console: bool = True,
) -> logging.Logger:
    """Attach file/console handlers to the named process logger exactly once."""
    logger = logging.getLogger(name)
    logger.setLevel(resolve_log_level(debug_enabled))
    logger.propagate = False
    if any(getattr(handler, "_juno_handler", False) for handler in logger.handlers):
        return logger
    handlers: list[logging.Handler] = []
    if log_dir is not None:
        try:
            handlers.append(open_log_file(log_dir / filename, retention=retention))
        except OSError as exc:
            sys.stderr.write(f"Unable to open log file in {log_dir}: {exc}\n")
    if console:
        stream = logging.StreamHandler()
        stream.setFormatter(log_formatter())
        handlers.append(stream)
    for handler in handlers:
        handler._juno_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
