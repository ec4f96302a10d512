from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Console logging for the loader: one ``LABEL message`` line per record.

Labels are INFO, WARN, ERROR and SUMMARY (plus DEBUG under ``--debug``). All
loader modules log through ``logging.getLogger(__name__)`` and propagate into
the ``customs_loader`` logger configured here. Rejected rows also go to the
JSON Lines file of customs_loader.logging.error_log; this module only covers
the console.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "enable_debug",
    "get_logger",
    "log_summary",
    "reset_logging",
]

LOGGER_NAME = "customs_loader"

# sits between INFO and WARNING so a quiet console still shows it
SUMMARY_LEVEL = 25
SUMMARY_PREFIX = "SUMMARY "

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
    SUMMARY_LEVEL: "SUMMARY",
}

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``LABEL message``; continuation lines are indented under the label.

    PostgreSQL errors carry ``DETAIL:``/``HINT:`` on extra lines, so a row
    failure stays one visual block. Tracebacks are appended for ERROR and up.
    """

    indent = "  "

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        first, *rest = record.getMessage().splitlines() or [""]
        lines = [f"{label} {first}"]
        lines.extend(self.indent + line for line in rest if line.strip())
        if record.exc_info and record.levelno >= logging.ERROR:
            lines.append(self.formatException(record.exc_info))
        return "\n".join(lines)


def setup_logging(debug: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Attach the stdout handler to the loader logger once and return it.

    Stdout is shared with the CLI's JSON payloads so the SUMMARY line lands
    after them in the same stream. Later calls reuse the handler and can only
    turn debug on.
    """
    global _logger

    if _logger is None:
        logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
        logger = logging.getLogger(LOGGER_NAME)
        _detach_handlers(logger)
        handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
        handler.setFormatter(LabeledFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        # the root logger would print every line twice
        logger.propagate = False
        _logger = logger

    if debug:
        enable_debug(_logger)
    return _logger


def enable_debug(logger: logging.Logger | None = None) -> None:
    logger = logger or get_logger()
    if logger.level == logging.DEBUG:
        return
    logger.setLevel(logging.DEBUG)
    logger.debug("debug mode enabled")


def get_logger() -> logging.Logger:
    return _logger if _logger is not None else setup_logging()


def log_summary(line: str) -> None:
    """Emit a rendered summary line; a leading ``SUMMARY `` is not repeated."""
    if line.startswith(SUMMARY_PREFIX):
        line = line[len(SUMMARY_PREFIX):]
    get_logger().log(SUMMARY_LEVEL, line)


def reset_logging() -> None:
    """Detach the console handler and hand the logger back to propagation."""
    global _logger
    logger = logging.getLogger(LOGGER_NAME)
    _detach_handlers(logger)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    _logger = None


def _detach_handlers(logger: logging.Logger) -> None:
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
