"""
Logging setup shared by the data service and the client core.
"""

import logging
from typing import Optional

from alumni_connect.core.config import settings

LOG_FORMAT = "[ALUMNI CONNECT] %(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stream handler to the package logger once and set its level."""
    logger = logging.getLogger("alumni_connect")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
