"""Logging setup for applications embedding kestrel_swarm."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from kestrel_swarm.core.settings import get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for kestrel_swarm.

    Args:
        level: Log level name; defaults to Settings.log_level.
    """
    log_level = (level or get_settings().log_level).upper()

    logging.basicConfig(
        level=log_level, format=LOG_FORMAT, datefmt=DATE_FORMAT, stream=sys.stderr, force=True
    )
    logging.getLogger("kestrel_swarm").setLevel(log_level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(logging.WARNING, logging.getLevelName(log_level)))
