"""
Domain exceptions and the project-wide DRF exception handler.

Error kinds
-----------
- `NotFoundError` (404): missing row, or no open assignment to return.
- `BusinessRuleError` (400): input that is well-formed but breaks a rule
  (inactive employee, quantity larger than held, ...).
- `ConflictError` (409): delete blocked by dependents, duplicate unique values,
  resource already assigned, no capacity left.

Every error body has the shape `{"detail": str, "code": str, ...extra}`.

`api_exception_handler` is registered as `REST_FRAMEWORK["EXCEPTION_HANDLER"]`.
On top of DRF's default handler it:
- renders `DomainError.extra` keys next to `detail`/`code`;
- turns serializer uniqueness failures (validator code `unique`) into 409;
- maps Django `ProtectedError`/`RestrictedError` and `IntegrityError` to 409.

DRF's handler marks the request transaction for rollback, so a failed request
never commits partial writes under `ATOMIC_REQUESTS`.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Optional

from django.db import IntegrityError
from django.db.models import ProtectedError, RestrictedError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(APIException):
    """Base for errors raised by handlers; `extra` keys are merged into the body."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The request could not be processed."
    default_code = "error"

    def __init__(self, detail: Optional[str] = None, code: Optional[str] = None, **extra: Any) -> None:
        super().__init__(detail=detail, code=code)
        self.extra = extra

    @property
    def code(self) -> str:
        return getattr(self.detail, "code", self.default_code)


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class BusinessRuleError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request."
    default_code = "invalid"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state of the resource."
    default_code = "conflict"


def _codes_contain(codes: Any, wanted: str) -> bool:
    if isinstance(codes, dict):
        return any(_codes_contain(v, wanted) for v in codes.values())
    if isinstance(codes, (list, tuple)):
        return any(_codes_contain(v, wanted) for v in codes)
    return codes == wanted


def _protected_counts(exc: ProtectedError | RestrictedError) -> dict[str, int]:
    objs = getattr(exc, "protected_objects", None) or getattr(exc, "restricted_objects", None) or ()
    counts = Counter(str(obj._meta.verbose_name_plural) for obj in objs)
    return dict(sorted(counts.items()))


def _translate(exc: Exception) -> Exception:
    """Map database-level failures onto domain errors."""
    if isinstance(exc, (ProtectedError, RestrictedError)):
        return ConflictError(
            "Record is referenced by other records and cannot be deleted.",
            code="has_dependents",
            dependents=_protected_counts(exc),
        )
    if isinstance(exc, IntegrityError):
        return ConflictError("Record conflicts with existing data.", code="duplicate")
    return exc


def api_exception_handler(exc: Exception, context: dict) -> Optional[Response]:
    exc = _translate(exc)

    if isinstance(exc, ValidationError) and _codes_contain(exc.get_codes(), "unique"):
        response = exception_handler(exc, context)
        if response is not None:
            response.status_code = status.HTTP_409_CONFLICT
            response.data = {
                "detail": "A record with the same unique values already exists.",
                "code": "duplicate",
                "errors": response.data,
            }
        return response

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, DomainError):
        response.data = {"detail": str(exc.detail), "code": exc.code, **exc.extra}
        view = context.get("view")
        logger.info(
            "%s rejected: %s (%s)",
            view.__class__.__name__ if view is not None else "request",
            exc.code,
            exc.detail,
        )
    return response
