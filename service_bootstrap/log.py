"""Line-oriented structured logging for startup diagnostics.

Records may carry a ``context`` mapping (passed through ``extra``). The
formatter renders three shapes:

    message only            ->  the message line
    message and context     ->  the message line, then pretty JSON with each
                                line prefixed by ``| ``
    context only            ->  pretty JSON without a message line
"""
import json
import logging
import sys
from typing import Any, Mapping, Optional, TextIO, Union

ROOT_LOGGER_NAME = "service_bootstrap"

_handler: Optional[logging.Handler] = None


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


class ContextFormatter(logging.Formatter):
    """Formatter that appends a record's structured context as pretty JSON."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        context = getattr(record, "context", None)

        if context is None:
            text = message
        elif not message:
            text = _dump(context)
        else:
            text = f"{message}\n| " + _dump(context).replace("\n", "\n| ")

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            text = f"{text}\n{record.exc_text}"
        return text


def log_context(
    logger: logging.Logger,
    level: int,
    message: Optional[str] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> None:
    """
    Emit one record with an optional message and an optional context mapping.

    Args:
        logger: Logger to emit on
        level: Standard logging level
        message: Message line, omitted from output when None or empty
        context: Structured data rendered as pretty JSON
    """
    extra = {"context": dict(context)} if context is not None else None
    logger.log(level, message or "", extra=extra)


def configure_logging(level: Union[int, str] = logging.DEBUG, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Install a single stderr handler using ContextFormatter on the package logger.

    Calling this again replaces the previously installed handler.
    """
    global _handler

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if _handler is not None:
        logger.removeHandler(_handler)

    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")

    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(ContextFormatter())
    logger.addHandler(_handler)
    logger.setLevel(level)
    return logger
