import logging
import os
from typing import List, Optional, Union


NAMESPACE = "routesheet"

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level_from_env(value: Optional[Union[str, int]]) -> int:
    if isinstance(value, int):
        return value
    if not isinstance(value, str) or not value.strip():
        return logging.INFO
    name = value.strip().upper()
    if name == "WARN":
        name = "WARNING"
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _build_handlers(level: int) -> List[logging.Handler]:
    """Console handler, plus an appending file handler when LOG_FILE is set."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError:
            logging.getLogger(NAMESPACE).warning("LOG_FILE %s could not be opened; logging to console only", log_file)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def get_logger(name: str) -> logging.Logger:
    """Return the ``routesheet.<name>`` logger, configured on first use.

    LOG_LEVEL (default INFO) applies to the validator, the store, the API and
    the CLI alike; LOG_FILE adds a file next to the console output.
    """
    logger = logging.getLogger(f"{NAMESPACE}.{name}")
    if logger.handlers:
        return logger

    level = _level_from_env(os.environ.get("LOG_LEVEL"))
    logger.setLevel(level)
    for handler in _build_handlers(level):
        logger.addHandler(handler)
    # Handlers sit on each named logger, not on the namespace root
    logger.propagate = False
    return logger
