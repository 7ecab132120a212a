"""Logging configuration."""

import logging
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "openframe"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance."""
    logger = logging.getLogger(name or __name__)

    # Only configure if no handlers exist
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(LOG_FORMAT)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        # Spinners own the terminal; keep stderr quiet unless asked otherwise
        logger.setLevel(logging.WARNING)

    return logger


def set_log_level(verbose: bool = False, silent: bool = False) -> None:
    """Adjust every openframe logger for --verbose / --silent."""
    if verbose:
        level = logging.DEBUG
    elif silent:
        level = logging.ERROR
    else:
        level = logging.WARNING

    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith(ROOT_LOGGER):
            logger.setLevel(level)
    logging.getLogger(ROOT_LOGGER).setLevel(level)


def add_file_handler(log_dir: Path, filename: str = "openframe.log") -> Path:
    """Mirror openframe log records into a file under ``log_dir``."""
    log_path = log_dir / filename
    root = logging.getLogger(ROOT_LOGGER)

    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_path:
            return log_path

    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(logging.DEBUG)
    root.addHandler(handler)
    return log_path
