from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_LOG_PATH = "/var/log/arch-tui-installer.log"
FALLBACK_LOG_NAME = "archtui-installer.log"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Set once per process; the installer runs a single pass.
_active_log_path: Optional[str] = None


def _open_log_file(log_path: str) -> Tuple[logging.FileHandler, str]:
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, mode="a"), log_path
    except OSError:
        # No writable /var/log on some live media.
        fallback = str(Path.cwd() / FALLBACK_LOG_NAME)
        return logging.FileHandler(fallback, mode="a"), fallback


def configure_logging(log_path: str = DEFAULT_LOG_PATH, console_level: int = logging.INFO) -> str:
    """Attach the run log (DEBUG, append) and a console handler to the root logger.

    Every command's stdout/stderr is logged at DEBUG, so the file is the full
    record of the run while the console only shows ``console_level`` and up.
    Returns the log file actually in use.
    """

    global _active_log_path
    if _active_log_path is not None:
        return _active_log_path

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler, chosen = _open_log_file(log_path)
    file_handler.setLevel(logging.DEBUG)

    console = logging.StreamHandler()
    console.setLevel(console_level)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in (file_handler, console):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _active_log_path = chosen
    logging.getLogger(__name__).info("Logging to %s (requested %s)", chosen, log_path)
    return chosen
