import logging
from typing import Optional

ROOT_LOGGER_NAME = "fitcache"

def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up the fitcache logger with a console handler and optionally a file handler.

    Args:
        level: Logging level (e.g., logging.INFO, logging.DEBUG).
        log_file: Optional path to a file for logging output.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Host processes may call this more than once per session
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
    return logger

def get_logger(name: str) -> logging.Logger:
    """
    Retrieve a logger nested under the fitcache logger.

    Args:
        name: Module name, usually ``__name__``.

    Returns:
        The ``fitcache.<name>`` logger.
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
