import logging
import os
from typing import Optional

_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure logging defaults for the application.

    ``LOG_LEVEL`` sets the root level unless ``level`` is given; ``LOG_FORMAT``
    overrides the line format. Library warnings are routed into the log.
    """
    resolved = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=resolved,
        format=os.getenv("LOG_FORMAT", _DEFAULT_FORMAT),
    )
    logging.captureWarnings(True)
