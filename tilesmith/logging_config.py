"""
Logging configuration for tilesmith.

The console entry point calls setup_logging once; worker processes are
started with the 'spawn' method and inherit nothing, so the process pool
runs setup_worker_logging in each of them with the parent's level.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
WORKER_LOG_FORMAT = '%(asctime)s - %(processName)s - %(name)s - %(levelname)s - %(message)s'


def level_for(verbose: bool = False, debug: bool = False) -> int:
    """WARNING by default, INFO with verbose, DEBUG with debug."""
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def _configure(level: int, fmt: str) -> logging.Logger:
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True
    )
    logger = logging.getLogger('tilesmith')
    logger.setLevel(level)
    return logger


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """
    Configure logging for a tilesmith run.

    Args:
        verbose: If True, show INFO level messages
        debug: If True, show DEBUG level messages (implies verbose)

    Returns:
        The 'tilesmith' logger
    """
    return _configure(level_for(verbose, debug), LOG_FORMAT)


def setup_worker_logging(level: int) -> None:
    """
    Process pool initializer: log at the parent's level, tagging each
    record with the worker's process name.
    """
    _configure(level, WORKER_LOG_FORMAT)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Optional module name (defaults to 'tilesmith')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f'tilesmith.{name}')
    return logging.getLogger('tilesmith')
