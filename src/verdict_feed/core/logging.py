"""Process-wide logging setup."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a root handler at ``level`` unless one is already configured."""
    logging.basicConfig(format=LOG_FORMAT, level=level.upper())
    logging.getLogger("verdict_feed").setLevel(level.upper())
