import logging
from typing import Optional, Union

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s"
_ROOT_LOGGER_NAME = "logviewer"


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Configure root logging with project defaults and return the service logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    return logging.getLogger(_ROOT_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the service namespace, ensuring logging is configured."""
    if not logging.getLogger().handlers:
        configure_logging()
    if not name:
        return logging.getLogger(_ROOT_LOGGER_NAME)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
