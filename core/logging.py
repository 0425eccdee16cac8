"""
Logging helpers for request-scoped correlation.

Overview
--------
- `request_id_var` holds the current request id for the lifetime of a request
  (set by `core.middleware.RequestIDLogMiddleware`).
- `RequestIDFilter` stamps `request_id` onto every `LogRecord`, plus blank values
  for the structured request fields, so the `structured` formatter in settings
  works for log lines emitted by management commands or domain code as well.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Fields referenced by the structured formatter; only the middleware sets them.
_REQUEST_FIELDS = ("method", "path", "status", "user_id", "duration_ms")


class RequestIDFilter(logging.Filter):
    """Attach `request_id` (and placeholders for request fields) to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        for name in _REQUEST_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return True
