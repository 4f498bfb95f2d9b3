"""
Logging Configuration
Sets up the package logger used by the command line driver.
"""
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "elasticityfem"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    capture_warnings: bool = True,
) -> logging.Logger:
    """
    Configures the 'elasticityfem' logger with a stdout handler and an optional file.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to save logs to a file.
        capture_warnings: Route ``warnings.warn`` output (numba, scipy) through the
            same handlers.

    Returns:
        The configured package logger.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S')

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    targets = [logging.getLogger(PACKAGE_LOGGER)]
    if capture_warnings:
        logging.captureWarnings(True)
        targets.append(logging.getLogger("py.warnings"))

    for logger in targets:
        logger.setLevel(level)
        # main() may run several times in one process
        for old in logger.handlers[:]:
            logger.removeHandler(old)
            old.close()
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False

    package_logger = targets[0]
    package_logger.debug(f"Logging initialized at level {logging.getLevelName(level)}.")
    return package_logger
