from __future__ import annotations

import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "{thread.name} | <cyan>{name}</cyan> - <level>{message}</level>"
)

# id 0 is the stderr handler loguru installs on import
_stderr_handler: Optional[int] = 0


def setup_logging(level: str = "INFO") -> None:
    """Replace the stderr sink, leaving any other sink in place."""
    global _stderr_handler
    if _stderr_handler is not None:
        try:
            logger.remove(_stderr_handler)
        except ValueError:
            logger.debug("stderr handler {id} was already removed", id=_stderr_handler)
    _stderr_handler = logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)
