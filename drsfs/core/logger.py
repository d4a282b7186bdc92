from datetime import datetime
import os
import re
import sys
import json
import logging
import traceback

from drsfs.core.logging_context import ContextFilter


SUCCESS_LEVEL = 25
LOG_SEVERITY = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "SUCCESS",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL"
}

LOG_COLORS = {
    "DEBUG": "\033[36m",      # Cyan
    "INFO": "\033[37m",       # White
    "SUCCESS": "\033[32m",    # Green
    "WARNING": "\033[33m",    # Yellow
    "ERROR": "\033[31m",      # Red
    "CRITICAL": "\033[35m"    # Magenta
}
RESET_COLOR = "\033[0m"

_RESERVED_ATTRS = [
    "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "process", "processName", "scope", "name", "taskName"
]

logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


class CustomLogger(logging.Logger):
    def success(self, message, *args, **kwargs):
        if self.isEnabledFor(SUCCESS_LEVEL):
            self.log(SUCCESS_LEVEL, message, *args, **kwargs, stacklevel=2)


def stringify_extra(value):
    if isinstance(value, (list, dict)):
        return str(value)
    else:
        return value


class CustomFormatter(logging.Formatter):

    def __init__(self, fmt="%(message)s", include_location=False, with_color=False):
        super().__init__(fmt)
        self.include_location = include_location
        self.with_color = with_color

    def format(self, record):
        level_name = LOG_SEVERITY.get(record.levelname, record.levelname)
        scope_highlight = getattr(record, "scope", "")
        location = ""
        if self.include_location and hasattr(record, "module") and hasattr(record, "funcName") and hasattr(record, "lineno"):
            location = f"({record.module}:{record.funcName}:{record.lineno})"

        if self.with_color:
            level_color = LOG_COLORS.get(record.levelname, "")
            if scope_highlight:
                scope_highlight = f"\033[32m{scope_highlight}\033[0m"
            if location:
                location = f"\033[1;33m{location}\033[0m"
            metadata_line = f"{level_color}[{level_name}]{RESET_COLOR} {scope_highlight} {location}".strip()
        else:
            # path:line keeps log lines clickable in editors
            location = f"{record.pathname}:{record.lineno}\n{location}"
            metadata_line = f"{datetime.now().isoformat()} [{level_name}] {scope_highlight} {location}".strip()

        message = record.getMessage()
        message_split = message.splitlines()
        if len(message_split) > 1:
            message_line = f"     Message: {message_split[0]}"
            for line in message_split[1:]:
                message_line += f"\n             {line}"
        else:
            message_line = f"     Message: {message}"

        extra_items = [
            f"{key}: {stringify_extra(value)}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        ]
        extra_info = ""
        if extra_items:
            extra_info = f"\n     {' '.join(extra_items)}"
        formatted_log = f"{metadata_line}\n{message_line}{extra_info}"
        if record.exc_info:
            format_exception = traceback.format_exception(*record.exc_info)
            for i in range(len(format_exception)):
                format_exception[i] = re.sub(r'File "([^"]+)", line (\d+),', r'File "\1:\2"', format_exception[i])
            formatted_log += "\n" + "".join(format_exception)
        return formatted_log


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_dict = {
            "level": record.levelname,
            "message": record.getMessage(),
            "time": self.formatTime(record, self.datefmt),
            "logger": record.name,
        }
        if hasattr(record, "scope"):
            log_dict["scope"] = record.scope
        if hasattr(record, "drs_path"):
            log_dict["drs_path"] = record.drs_path
        if hasattr(record, "module") and hasattr(record, "funcName") and hasattr(record, "lineno"):
            log_dict["location"] = {
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
            }
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict, ensure_ascii=False)


def setup_logger(name: str, include_location=False, use_json=None):
    """
    Return a module logger writing to stdout.

    DRSFS_LOG_FORMAT=json switches every logger to JSONFormatter and
    DRSFS_LOG_LEVEL overrides the default DEBUG level.
    """
    if use_json is None:
        use_json = os.environ.get("DRSFS_LOG_FORMAT", "").lower() == "json"
    level = os.environ.get("DRSFS_LOG_LEVEL", "DEBUG").upper()

    logging.setLoggerClass(CustomLogger)
    logger = logging.getLogger(name)
    if not any(isinstance(f, ContextFilter) for f in logger.filters):
        logger.addFilter(ContextFilter())

    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setLevel(logging.DEBUG)
        if use_json:
            stream_handler.setFormatter(JSONFormatter())
        else:
            stream_handler.setFormatter(CustomFormatter(include_location=include_location))
        logger.addHandler(stream_handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
