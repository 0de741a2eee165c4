"""
Core logging functionality for bleperiph.

Three log files live under ``$XDG_DATA_HOME/bleperiph/logs``: general
events, debug chatter and central connect/disconnect events.  Module loggers
from :func:`get_logger` land in the general file; :func:`print_and_log`
routes a line to the file of its log type.
"""

import logging
from typing import Dict, Optional

from . import config

LOG__GENERAL = config.LOG__GENERAL
LOG__DEBUG = config.LOG__DEBUG
LOG__CONNECTION = config.LOG__CONNECTION

_LOG_PATHS = {
    LOG__GENERAL: config.LOG_DIR / "general.log",
    LOG__DEBUG: config.LOG_DIR / "debug.log",
    LOG__CONNECTION: config.LOG_DIR / "connection.log",
}

_LEVELS = {
    LOG__GENERAL: logging.INFO,
    LOG__DEBUG: logging.DEBUG,
    LOG__CONNECTION: logging.INFO,
}


def _make_handler(path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8", delay=True)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    return handler


_handlers: Dict[str, logging.Handler] = {
    log_type: _make_handler(path) for log_type, path in _LOG_PATHS.items()
}

_logger = logging.getLogger("bleperiph")
_logger.setLevel(logging.INFO)
_logger.addHandler(_handlers[LOG__GENERAL])


def _emit(line: str, log_type: str) -> None:
    # Typed lines bypass logger levels; they always reach their file.
    handler = _handlers.get(log_type, _handlers[LOG__GENERAL])
    handler.handle(
        logging.makeLogRecord(
            {
                "name": f"bleperiph.{log_type.lower()}",
                "levelno": _LEVELS.get(log_type, logging.INFO),
                "levelname": logging.getLevelName(_LEVELS.get(log_type, logging.INFO)),
                "msg": line.rstrip("\n"),
            }
        )
    )


def logging__debug_log(msg: str) -> None:
    _emit(msg, LOG__DEBUG)


def logging__general_log(msg: str) -> None:
    _emit(msg, LOG__GENERAL)


def logging__connection_log(msg: str) -> None:
    _emit(msg, LOG__CONNECTION)


def logging__log_event(log_type: str, string_to_log: str) -> None:
    """Write *string_to_log* to the file for *log_type* (general if unknown)."""
    _emit(string_to_log, log_type if log_type in _handlers else LOG__GENERAL)


def print_and_log(output_string: str, log_type: str = LOG__GENERAL) -> None:
    """Echo to stdout (except debug lines) and write to the typed log file."""
    if log_type != LOG__DEBUG:
        print(output_string)
    logging__log_event(log_type, output_string)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger or a child of it.

    ``bleperiph.x.y`` and ``x.y`` name the same logger.
    """
    if not name or name == "bleperiph":
        return _logger
    if name.startswith("bleperiph."):
        name = name[len("bleperiph."):]
    return _logger.getChild(name)
