"""
Logging Configuration
Console logging shared by the API, the render queue and the encoder driver
"""

import logging
import sys
from typing import Union


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(module)s | %(message)s"


def setup_logger(name: str = "storyreel", level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Set up and configure the application logger"""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(console_handler)

    return logger


def get_logger(name: str = "storyreel") -> logging.Logger:
    """Get the configured logger instance"""
    return logging.getLogger(name)
