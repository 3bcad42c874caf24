import logging
import os

from rich.console import Console
from rich.logging import RichHandler


__all__ = ["configure_logging"]


def configure_logging(logger_name: str = "vbgrowth") -> logging.Logger:
    """Configure a Rich logging handler for the named logger.

    The log level is read from the ``LOG_LEVEL`` environment variable and
    defaults to ``INFO``. Calling this repeatedly for the same name does not
    attach duplicate handlers.

    Args:
        logger_name: name passed to :func:`logging.getLogger`

    Returns:
        logging.Logger: the configured logger
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)

    if any(isinstance(h, RichHandler) for h in logger.handlers):
        return logger

    console = Console(stderr=True)
    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_path=False,
        omit_repeated_times=False,
    )
    rich_handler.setFormatter(logging.Formatter("%(name)s %(message)s"))
    logger.addHandler(rich_handler)
    logger.propagate = False

    for noisy in ("jax", "absl"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
