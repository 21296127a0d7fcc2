"""Logging setup for the analysis worker."""

import logging
import sys

from catalog_worker.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger with a single stdout handler.

    Existing handlers are removed so repeated calls don't duplicate output.
    """
    root = logging.getLogger()
    root.setLevel((level or LOG_LEVEL).upper())
    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
