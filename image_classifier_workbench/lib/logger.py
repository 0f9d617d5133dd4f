import logging
import os
from typing import Optional, Union

LOG_LEVEL_ENV_VAR = "WORKBENCH_LOG_LEVEL"


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV_VAR, logging.INFO)
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        # getLevelName returns "Level X" for unknown names
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logger(
    name: str, level: Optional[Union[int, str]] = None
) -> logging.Logger:
    """
    Set up a logger with the specified name and logging level.

    When no level is given, the WORKBENCH_LOG_LEVEL environment variable is
    consulted before falling back to INFO.
    """
    resolved_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)

    # Create console handler and set level
    ch = logging.StreamHandler()
    ch.setLevel(resolved_level)

    # Create formatter
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    ch.setFormatter(formatter)

    # Add the handler to the logger
    if not logger.hasHandlers():
        logger.addHandler(ch)

    return logger
