#!/usr/bin/env python3
"""
Logger setup shared by every audit component
Component loggers are children of one 'GTMAuditor' logger that owns the handlers
"""

import logging
import os
from typing import Optional

ROOT_LOGGER = 'GTMAuditor'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name: str, debug_mode: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """
    Return the logger for a component

    Args:
        name: Component name, e.g. 'BatchAuditor'
        debug_mode: DEBUG level when True, INFO otherwise
        log_file: Also write to this file (added once per path)
    """
    root = logging.getLogger(ROOT_LOGGER)
    formatter = logging.Formatter(LOG_FORMAT)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if log_file:
        path = os.path.abspath(log_file)
        if not any(getattr(h, 'baseFilename', None) == path for h in root.handlers):
            file_handler = logging.FileHandler(path, encoding='utf-8')
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    logger = root if name == ROOT_LOGGER else root.getChild(name)
    logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)
    return logger
