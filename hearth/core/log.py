"""
Process-wide logging setup. Called once by the entry point.
"""

import logging
from typing import Optional

from .config import Settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(settings: Settings, log_file: Optional[str] = None) -> None:
    """basicConfig from LOG_LEVEL. With log_file, records go there instead of stderr."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    kwargs = {"level": level, "format": LOG_FORMAT, "force": True}
    if log_file:
        kwargs["filename"] = log_file
        kwargs["encoding"] = "utf-8"
    logging.basicConfig(**kwargs)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
