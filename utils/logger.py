import logging
import os
from typing import Optional

LOG_FILE = os.path.join("data", "instagram_api.log")
LOGGER_NAME = "instagram_cli"

_logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = LOG_FILE) -> logging.Logger:
    """Console + optional file logging for the CLI.

    The SDK's own module loggers (``instagram_api.*``) propagate to the root
    logger, so they land in the same file at DEBUG.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(file_handler)

    return _logger


def log_info(message: str) -> None:
    _logger.info(message)


def log_success(message: str) -> None:
    _logger.info(f"✅ {message}")


def log_warning(message: str) -> None:
    _logger.warning(f"⚠️ {message}")


def log_error(message: str) -> None:
    _logger.error(f"❌ {message}")
