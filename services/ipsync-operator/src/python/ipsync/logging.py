"""Logging helpers for the operator CLI."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def init_logging(log_file: Optional[Path] = None, level: str = "INFO") -> None:
    """Configure loguru for console + optional file logging.

    The shared libraries log through the standard ``logging`` module, which is
    sent to stderr with the same level.
    """

    logger.remove()
    logger.add(
        lambda msg: print(msg, end="", file=sys.stderr),
        colorize=True,
        level=level.upper(),
        enqueue=True,
    )

    target = log_file or _default_log_path()
    if target is not None:
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.add(target, level=level.upper(), rotation="10 MB", retention="7 days")

    logging.basicConfig(
        level=level.upper(),
        format='%(asctime)s %(levelname)s: [%(name)s] %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%SZ',
        handlers=[logging.StreamHandler()],
        force=True
    )


def _default_log_path() -> Optional[Path]:
    log_dir = os.environ.get("IPSYNC_LOG_DIR")
    if not log_dir:
        return None
    return Path(log_dir).expanduser().resolve() / "ipsync.log"
