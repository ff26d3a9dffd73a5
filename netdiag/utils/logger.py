"""
Logging Configuration
"""

import os
import sys
from pathlib import Path
from loguru import logger


def setup_logger(log_dir: Path = None, level: str = None):
    """Setup application logger.

    Console level comes from the argument, then NETDIAG_LOG_LEVEL, then INFO.
    The file sink always records DEBUG.
    """
    logger.remove()

    if log_dir is None:
        log_dir = Path("data/logs")
    log_dir.mkdir(parents=True, exist_ok=True)

    if level is None:
        level = os.environ.get("NETDIAG_LOG_LEVEL", "INFO").upper()

    # Console (if available)
    if sys.stderr is not None:
        logger.add(
            sys.stderr,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
            level=level,
            colorize=True
        )

    # File
    logger.add(
        log_dir / "netdiag_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        level="DEBUG",
        rotation="5 MB",
        retention="7 days"
    )

    return logger
