"""Logging infrastructure setup.

Outcome lines follow a ``KEY [item] field=value`` shape (``OUTCOME``,
``PUBLISH``, ``SKIP``) so drops can be grepped by ``reason=``.

Environment:
    PIPELINE_LOG_FILE   log file path (default ``output/pipeline.log``)
    PIPELINE_LOG_LEVEL  level name (default ``INFO``; unknown names fall back to INFO)
"""

import logging
import os
from pathlib import Path

_DEFAULT_LOG_FILE = "output/pipeline.log"
_DEFAULT_LEVEL = logging.INFO
_FORMAT = "%(asctime)s | %(levelname)-8s | %(module)s.%(funcName)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(name: str = None) -> int:
    """Map a level name such as ``"debug"`` to its numeric level, INFO if unknown."""
    level = logging.getLevelName((name or "").strip().upper())
    return level if isinstance(level, int) else _DEFAULT_LEVEL


def setup_logger(name: str = "pipeline", log_file: str = None, level: str = None) -> logging.Logger:
    """
    Configure and return the pipeline logger, writing to a file and the console.

    Args:
        name (str): The name of the logger.
        log_file (str): Log file path. Defaults to ``$PIPELINE_LOG_FILE``.
        level (str): Level name. Defaults to ``$PIPELINE_LOG_LEVEL``.

    Returns:
        logging.Logger: The configured logger instance.
    """
    log_path = Path(log_file or os.getenv("PIPELINE_LOG_FILE", _DEFAULT_LOG_FILE))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(resolve_level(level or os.getenv("PIPELINE_LOG_LEVEL")))

    # Handlers are attached once per process
    if logger.hasHandlers():
        return logger

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    for handler in (logging.FileHandler(log_path, encoding="utf-8"), logging.StreamHandler()):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


logger = setup_logger()
