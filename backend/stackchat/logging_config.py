"""
Logging configuration for the stackchat application.
This module configures logging with colored output and manages log levels for different loggers.
"""
import os
import sys
import logging


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors and process ID"""
    grey = "\x1b[38;20m"
    green = "\x1b[32;20m"
    yellow = "\x1b[33;20m"
    red = "\x1b[31;20m"
    bold_red = "\x1b[31;1m"
    reset = "\x1b[0m"
    format_str = "%(asctime)s - %(name)s[%(process)d] - %(levelname)s - %(message)s"

    FORMATS = {
        logging.DEBUG: grey + format_str + reset,
        logging.INFO: green + format_str + reset,
        logging.WARNING: yellow + format_str + reset,
        logging.ERROR: red + format_str + reset,
        logging.CRITICAL: bold_red + format_str + reset
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def configure_logging():
    """
    Configure logging for the application with colored output and appropriate log levels.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter())

    # Remove existing handlers to avoid duplicated logs
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[console_handler]
    )

    # Route Uvicorn logs through the same handler
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [console_handler]
        uvicorn_logger.propagate = False

    # Azure SDK HTTP logging is very verbose at INFO
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)

    logging.getLogger("fastapi").handlers = [console_handler]

    return logging.getLogger("stackchat")
