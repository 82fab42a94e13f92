"""Central logging configuration for the CLI.

This module configures Python logging with sane defaults and is intended to be
invoked from `labops.cli.main` before any sub-command runs.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def default_log_path(command: str, log_dir: Optional[str] = None, now: Optional[datetime] = None) -> Path:
    """Return `<log_dir>/<command>-YYYYmmdd-HHMMSS.log`.

    `log_dir` falls back to `LABOPS_LOG_DIR`, then the system temp directory.
    """
    directory = log_dir or os.getenv("LABOPS_LOG_DIR") or tempfile.gettempdir()
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return Path(directory) / f"{command}-{stamp}.log"


def setup_logging(level: Optional[str] = None, log_file: Optional[Path] = None) -> None:
    """Initialize application logging.

    - Level is taken from the `LOG_LEVEL` environment variable if not provided.
    - Uses a concise, structured-ish format with timestamps.
    - When `log_file` is given, output is mirrored into that file as well.
    """

    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()

    # Configure handlers once to avoid duplicates when invoked repeatedly (tests)
    if not root_logger.handlers:
        logging.basicConfig(level=log_level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger.setLevel(log_level)

    if log_file is not None:
        log_file = Path(log_file)
        already_attached = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == os.path.abspath(log_file)
            for h in root_logger.handlers
        )
        if not already_attached:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_file, encoding="utf-8")
            handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(handler)
        logging.getLogger(__name__).info("log_file | path=%s", log_file)

    # asyncio is chatty at DEBUG about subprocess transports
    asyncio_level = logging.DEBUG if root_logger.level == logging.DEBUG else logging.WARNING
    logging.getLogger("asyncio").setLevel(asyncio_level)
