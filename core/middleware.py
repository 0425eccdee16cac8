"""
Core middleware for request safety and observability.

Components
----------
- `RequestSizeLimitMiddleware`: answers POST/PUT/PATCH bodies larger than
  `MAX_REQUEST_BYTES` (by `Content-Length`) with a 413 JSON error before any
  view parses them.
- `RequestIDLogMiddleware`: reads `X-Request-ID` (or generates one), reflects it
  on the response, binds it to `core.logging.request_id_var` and logs one
  structured line per request to the `asset_tracker.request` logger.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Callable, Optional

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse

from .logging import request_id_var

logger = logging.getLogger("asset_tracker.request")

# Client-supplied ids must be short, header-safe tokens.
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._\-]{1,200}$")


def _coerce_request_id(raw: Optional[str]) -> str:
    """Return the client's id when it is a safe token, else a fresh uuid4 hex."""
    if raw and _SAFE_REQUEST_ID.match(raw):
        return raw
    return uuid.uuid4().hex


class RequestSizeLimitMiddleware:
    """
    Reject overly large request bodies with 413.

    A missing or unparsable `Content-Length` is let through; the limit only
    applies to methods that carry a body.
    """

    BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    @property
    def max_bytes(self) -> int:
        return int(getattr(settings, "MAX_REQUEST_BYTES", 2_000_000))

    def _content_length(self, request: HttpRequest) -> Optional[int]:
        raw = request.META.get("CONTENT_LENGTH")
        if not raw:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if request.method.upper() in self.BODY_METHODS and self.max_bytes > 0:
            length = self._content_length(request)
            if length is not None and length > self.max_bytes:
                logger.warning(
                    "request body rejected",
                    extra={"method": request.method, "path": request.path, "status": 413},
                )
                return JsonResponse(
                    {
                        "detail": f"Request entity too large. Max {self.max_bytes} bytes.",
                        "code": "request_too_large",
                        "max_bytes": self.max_bytes,
                    },
                    status=413,
                )
        return self.get_response(request)


class RequestIDLogMiddleware:
    """Correlate each request with an id and emit one access-log line for it."""

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        rid = _coerce_request_id(request.headers.get("X-Request-ID"))
        request.request_id = rid
        token = request_id_var.set(rid)

        start = time.perf_counter()
        try:
            response = self.get_response(request)
            duration_ms = int((time.perf_counter() - start) * 1000)
            response.headers["X-Request-ID"] = rid

            user = getattr(request, "user", None)
            user_id = user.pk if getattr(user, "is_authenticated", False) else None

            logger.info(
                "request",
                extra={
                    "request_id": rid,
                    "method": request.method,
                    "path": request.path,
                    "status": getattr(response, "status_code", 0),
                    "user_id": user_id,
                    "duration_ms": duration_ms,
                },
            )
            return response
        finally:
            request_id_var.reset(token)
