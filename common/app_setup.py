"""
Reusable logging and print setup for all parts of the project.

Functions:
    setup_logging      - Configure and return the root logger.
    parse_log_level    - Map a GW1H_LOG_LEVEL name to a logging level.
    record_attrs       - Key/value attributes a record carries through extra=.
    KeyValueFormatter  - Text formatter appending key=value attributes.
    JSONFormatter      - One JSON object per record.
    set_print_logger   - Set the logger for print_and_log.
    print_and_log      - Print and log an info message.
"""

import json
import logging
import os
import sys
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler

# Module-level variable to hold the logger for print_and_log
_print_logger: Optional[logging.Logger] = None

_console = Console(soft_wrap=True)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

LOG_FORMATS = ("text", "json")

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_FIELDS = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime", "taskName"}


def parse_log_level(name: Optional[str]) -> int:
    """Return the logging level for ``name``; unknown or missing names mean INFO."""
    if not name:
        return logging.INFO
    return _LEVELS.get(name.strip().lower(), logging.INFO)


def record_attrs(record: logging.LogRecord) -> dict[str, Any]:
    """Key/value attributes attached to ``record`` through ``extra=``."""
    return {key: value for key, value in record.__dict__.items()
            if key not in _RECORD_FIELDS and not key.startswith("_")}


class KeyValueFormatter(logging.Formatter):
    """Plain formatter that appends the record's attributes as key=value pairs."""

    def format(self, record):
        text = super().format(record)
        attrs = record_attrs(record)
        if attrs:
            text += " " + " ".join(f"{key}={value}" for key, value in attrs.items())
        return text


class JSONFormatter(logging.Formatter):
    """One JSON object per record: time, level, msg, optional source, then the attributes."""

    def __init__(self, add_source: bool = False):
        super().__init__()
        self.add_source = add_source

    def format(self, record):
        payload: dict[str, Any] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "msg": record.getMessage(),
        }
        if self.add_source:
            payload["source"] = f"{record.pathname}:{record.lineno}"
        payload.update(record_attrs(record))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(app_name: str = "gw1h", loglevel: int = logging.INFO, logfile: Optional[str] = None,
                  add_source: bool = False, log_format: str = "text") -> logging.Logger:
    """
    Set up logging for the application.
    - log_format="text" logs to stderr through rich, attributes as key=value.
    - log_format="json" writes one JSON object per record to stderr.
    - If logfile is given, also appends records to that file in the same format.
    - add_source adds the emitting file and line to every record.
    Returns the configured logger.
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"unknown log format {log_format!r}, expected one of {LOG_FORMATS}")
    logger = logging.getLogger()
    logger.setLevel(loglevel)

    # Remove any existing handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)

    if log_format == "json":
        console: logging.Handler = logging.StreamHandler(sys.stderr)
        console.setFormatter(JSONFormatter(add_source=add_source))
    else:
        console = RichHandler(console=Console(stderr=True), show_path=add_source, rich_tracebacks=False)
        console.setFormatter(KeyValueFormatter(f'[{app_name}] %(message)s'))
    logger.addHandler(console)

    if logfile is not None:
        fmt = '%(asctime)s %(levelname)s %(process)d %(message)s'
        if add_source:
            fmt = '%(asctime)s %(levelname)s %(process)d %(pathname)s:%(lineno)d %(message)s'
        log_dir = os.path.dirname(os.path.abspath(logfile))
        os.makedirs(log_dir, exist_ok=True)
        handler = logging.FileHandler(logfile)
        if log_format == "json":
            handler.setFormatter(JSONFormatter(add_source=add_source))
        else:
            handler.setFormatter(KeyValueFormatter(fmt))
        logger.addHandler(handler)

    set_print_logger(logger)
    logger.debug(f"Logger initialized for {app_name}",
                 extra={"loglevel": logging.getLevelName(loglevel), "log_format": log_format})
    return logger


def set_print_logger(logger: logging.Logger):
    """
    Set the logger to be used by print_and_log.
    Call this after setting up logging in your app.
    """
    global _print_logger
    _print_logger = logger


def print_and_log(message: str, **kwargs):
    """
    Print to stdout (via rich, never wrapped) and log as info.
    """
    _console.print(message, **kwargs)
    if _print_logger is not None:
        _print_logger.info(message)
