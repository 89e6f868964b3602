"""Logging setup for scripts that drive the renderer.

Library modules only create module loggers with ``logging.getLogger(__name__)``;
attaching handlers is left to the application. Scripts call
``setup_logging`` once at startup.
"""

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    name: str = "src.stormlight",
    level: str = "INFO",
    log_file: Path | None = None,
) -> logging.Logger:
    """Attach console (and optionally file) handlers to a logger.

    Args:
        name: Logger name. The default covers every module of the package.
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a log file to write as well.

    Returns:
        The configured logger.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
