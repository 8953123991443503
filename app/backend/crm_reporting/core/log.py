"""Logging setup."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install the process-wide log format at the configured level."""

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
