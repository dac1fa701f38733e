"""Logging setup for PestHub.

``PH_LOG_FORMAT`` selects ``text`` (default) or ``json`` output and
``PH_LOG_LEVEL`` the root level. Both are re-read from the environment on
every call so a test can flip them without reloading settings.

Request and audit context travels as ``extra=`` keys on the record
(request_id, action, actor, target, reason, ...); the JSON formatter
emits them as top-level fields.
"""

from __future__ import annotations

import logging
import os
import traceback

from pythonjsonlogger.json import JsonFormatter

from pesthub.config import settings

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class StructuredJsonFormatter(JsonFormatter):
    """One JSON object per line; exceptions become a ``traceback`` list."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def add_fields(self, log_data, record, message_dict) -> None:
        super().add_fields(log_data, record, message_dict)
        log_data.pop("exc_info", None)
        if record.exc_info and record.exc_info[1] is not None:
            log_data["traceback"] = traceback.format_exception(*record.exc_info)


def _level() -> int:
    name = os.environ.get("PH_LOG_LEVEL", settings.log_level).upper()
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def setup_logging() -> None:
    """Install a single stream handler on the root logger."""
    json_mode = os.environ.get("PH_LOG_FORMAT", settings.log_format).lower() == "json"
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter() if json_mode else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(_level())


def log_startup_info() -> None:
    import pesthub

    logging.getLogger("pesthub").info(
        "PestHub started",
        extra={
            "version": pesthub.__version__,
            "storage_backend": os.environ.get("PH_STORAGE", settings.storage),
            "auth_provider": os.environ.get("PH_AUTH_PROVIDER", settings.auth_provider),
            "rate_limit_config": os.environ.get("PH_RATE_LIMIT", settings.rate_limit),
        },
    )
