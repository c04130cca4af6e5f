"""Logging configuration for the forward proxy."""

import logging
import sys


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (default: INFO)
    """
    if isinstance(level, str):
        level = level.upper()

    format_string = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Every request already ends with an outcome line from the proxy itself.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the request's correlation id."""

    def process(self, msg, kwargs):
        return f"[{self.extra['request_id']}] {msg}", kwargs


def get_request_logger(logger: logging.Logger, request_id: str) -> RequestLoggerAdapter:
    """
    Wrap a module logger so each line carries ``[<request_id>]``.

    Args:
        logger: Module logger from get_logger()
        request_id: Correlation id of the current request

    Returns:
        Adapter bound to the request
    """
    return RequestLoggerAdapter(logger, {"request_id": request_id})
