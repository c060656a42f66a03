"""Logging setup shared by the CLI and long-running watchers."""
from __future__ import annotations

import logging
import os
import sys

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level_name: str | None = None) -> None:
    """Install a single stdout handler on the root logger (idempotent)."""
    name = (level_name or os.environ.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    if root.handlers:
        return

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    root.addHandler(console)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
