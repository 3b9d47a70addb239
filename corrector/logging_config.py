"""Logging setup shared by the CLI and embedding applications."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from .config.settings import settings

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str | None = None, log_format: str | None = None) -> logging.Logger:
    """Configure the root logger.

    Args:
        level: Log level name, defaults to ``settings.log_level``
        log_format: ``rich`` for a RichHandler on stderr, ``plain`` for a
            timestamped single-line format

    Returns:
        The package logger
    """
    level_name = (level or settings.log_level).upper()
    log_format = (log_format or settings.log_format).lower()

    if log_format == "rich":
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("corrector")
