"""
Logger configuration.

Dependencies: logging (stdlib)
System role: Centralized logging configuration for the app and scripts
"""

import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with ISO timestamps and a single stdout handler."""
    # Remove any existing handlers to avoid duplicates (Streamlit reruns)
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    root_logger.setLevel(level.upper())
    root_logger.addHandler(handler)

    # Reduce noise from verbose third-party libraries
    for noisy in ("urllib3", "botocore", "sentence_transformers"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get configured logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        logging.Logger: Configured logger instance
    """
    return logging.getLogger(name)
