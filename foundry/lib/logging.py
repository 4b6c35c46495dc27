"""Logging setup for publish runs.

Publish code attaches module context through ``extra=``::

    logger.info("Module %s successfully uploaded", name,
                extra={"registry_module": name, "key": key, "download_url": url})

Both formatters here know these context fields. The text formatter appends
the module identity to the line. The JSON formatter promotes the context to
top-level fields so log aggregation can filter on them.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from foundry.lib.errors import RegistryError

__all__ = [
    "CONTEXT_FIELDS",
    "JSONFormatter",
    "TextFormatter",
    "setup_logging",
]

# extra= attribute -> top-level JSON field. LogRecord reserves "module",
# so the identity travels as "registry_module".
CONTEXT_FIELDS = {
    "registry_module": "module",
    "key": "key",
    "download_url": "download_url",
    "spec_path": "spec_path",
    "outcome": "outcome",
}

_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

_SDK_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3", "google")


def _error_payload(record: logging.LogRecord) -> Optional[Dict[str, Any]]:
    error = getattr(record, "error", None)
    if isinstance(error, dict):
        return error
    if record.exc_info and isinstance(record.exc_info[1], RegistryError):
        return record.exc_info[1].to_dict()
    return None


class TextFormatter(logging.Formatter):
    """Console formatter that suffixes the module identity when present.

    Example output:
        2025-01-15 10:30:00 [INFO] foundry.lib.publish: Module uploaded (acme/vpc/aws@1.0.0)
    """

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        module = getattr(record, "registry_module", None)
        if module and module not in record.getMessage():
            line = f"{line} ({module})"
        return line


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record.

    Module context (``module``, ``key``, ``download_url``, ``spec_path``,
    ``outcome``) and the ``error`` payload of a RegistryError are top-level
    fields; any other ``extra=`` attribute is nested under ``extra``.

    Example output:
        {"timestamp": "2025-01-15T10:30:00.123Z", "level": "INFO",
         "logger": "foundry.lib.publish", "message": "Module ... uploaded",
         "module": "acme/vpc/aws@1.0.0", "key": "namespace=acme/...",
         "download_url": "s3::https://..."}
    """

    def __init__(self, exclude_fields: Optional[Iterable[str]] = None):
        super().__init__()
        self.exclude_fields = frozenset(exclude_fields or ())

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr, name in CONTEXT_FIELDS.items():
            value = getattr(record, attr, None)
            if value is not None and name not in self.exclude_fields:
                log_data[name] = value

        error = _error_payload(record)
        if error is not None and "error" not in self.exclude_fields:
            log_data["error"] = error

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _RECORD_ATTRS
            and k not in CONTEXT_FIELDS
            and k != "error"
            and k not in self.exclude_fields
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


def setup_logging(
    verbose: bool = False,
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Route all logging to stderr (and optionally a file).

    stdout is left to the CLI's summary and listing output. Any handlers
    already on the root logger are replaced, so calling this twice does not
    duplicate lines. SDK loggers stay at WARNING even in verbose mode.
    """
    level = logging.DEBUG if verbose else logging.INFO
    formatter: logging.Formatter = JSONFormatter() if json_format else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name in _SDK_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
