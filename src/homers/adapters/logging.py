"""Python logging setup for the exporter.

Provider failures are logged with structured context passed through
``extra=``. KeyValueFormatter appends those fields to the message as
key=value pairs, so a failed collection renders as::

    WARNING homers.core.aggregator collection failed service=sonarr instance=main error_kind=unreachable
"""

import logging
import sys

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def extra_fields(record: logging.LogRecord) -> dict[str, str | int | float | bool]:
    """Return the scalar attributes passed to the logging call via extra=."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_LOGRECORD_ATTRS
        and not key.startswith("_")
        and isinstance(value, (str, int, float, bool))
    }


def _quote(value: str | int | float | bool) -> str:
    text = str(value)
    if not text or any(char.isspace() or char in '"=' for char in text):
        return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return text


class KeyValueFormatter(logging.Formatter):
    """Formatter appending extra record attributes as key=value pairs.

    Example:
        ```python
        handler = logging.StreamHandler()
        handler.setFormatter(KeyValueFormatter())
        logging.getLogger().addHandler(handler)
        logger.warning("collection failed", extra={"service": "plex"})
        ```
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the record, then append its extra fields in key order."""
        line = super().format(record)
        fields = extra_fields(record)
        if not fields:
            return line
        pairs = " ".join(f"{key}={_quote(value)}" for key, value in sorted(fields.items()))
        head, newline, tail = line.partition("\n")
        return f"{head} {pairs}{newline}{tail}"


def configure_logging(level: int = logging.INFO, stream=None) -> logging.Handler:
    """Install a KeyValueFormatter handler on the root logger.

    Replaces handlers installed by a previous call, so configuring twice does
    not duplicate output.

    Args:
        level: Root logger level.
        stream: Output stream. Defaults to stderr.

    Returns:
        The installed handler.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, KeyValueFormatter):
            root.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(KeyValueFormatter(DEFAULT_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    return handler
