"""
Logging helpers.

Library modules only create module loggers; the CLI calls `setup_logging()`
once to route records to a per-user log file (and optionally stderr), so
solver failures and degenerate-input warnings are never silent.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Optional

ENV_LOG_LEVEL = "MESHLSCM_LOG_LEVEL"
ENV_LOG_DIR = "MESHLSCM_LOG_DIR"

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_seen_keys: set[str] = set()
_seen_lock = threading.Lock()


def default_log_dir() -> Path:
    """MESHLSCM_LOG_DIR, 없으면 OS별 사용자 상태 디렉토리"""
    override = os.environ.get(ENV_LOG_DIR)
    if override:
        return Path(override)

    if os.name == "nt":
        appdata = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
        return Path(appdata or Path.home()) / "MeshLSCM" / "logs"

    state_home = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(state_home) / "meshlscm" / "logs"


def _resolve_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    name = str(level).strip().upper()
    resolved = logging.getLevelName(name) if name else logging.INFO
    return resolved if isinstance(resolved, int) else logging.INFO


def _attached_log_file(root: logging.Logger) -> Optional[Path]:
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    return None


def setup_logging(
    *,
    log_level: str | int = "INFO",
    log_dir: Optional[str | Path] = None,
    filename: str = "meshlscm.log",
    console: bool = False,
) -> Optional[Path]:
    """
    Configure root logging to a UTF-8 file, plus stderr when `console` is set.

    Idempotent: an already attached FileHandler is reused and its path
    returned. Returns None when the log file cannot be opened.
    """
    root = logging.getLogger()
    level = _resolve_level(os.environ.get(ENV_LOG_LEVEL) or log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    if console and not any(type(h) is logging.StreamHandler for h in root.handlers):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(max(level, logging.WARNING))
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    existing = _attached_log_file(root)
    if existing is not None:
        return existing

    target_dir = Path(log_dir) if log_dir is not None else default_log_dir()
    log_path = target_dir / filename
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
    except OSError:
        return None

    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root.setLevel(level)
    root.addHandler(file_handler)
    logging.captureWarnings(True)
    root.info("Logging to %s (level=%s)", log_path, logging.getLevelName(level))
    return log_path


def log_once(
    logger: logging.Logger,
    key: str,
    level: int,
    msg: str,
    *args,
    exc_info: bool | BaseException | None = None,
) -> bool:
    """
    Emit `msg` only the first time `key` is seen in this process.

    Used for per-triangle or per-vertex warnings that would otherwise repeat
    thousands of times on a large mesh. Returns True when the record was logged.
    """
    with _seen_lock:
        first = str(key) not in _seen_keys
        _seen_keys.add(str(key))
    if first:
        logger.log(level, msg, *args, exc_info=exc_info)
    return first
