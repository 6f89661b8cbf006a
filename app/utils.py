"""
Shared helpers.

Usage:
    from app.utils import get_logger
    log = get_logger(__name__)
"""
import logging
import sys

from app.core import config


_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("app")
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the application's "app" namespace."""
    _configure_root()
    if not name.startswith("app"):
        name = f"app.{name}"
    return logging.getLogger(name)
