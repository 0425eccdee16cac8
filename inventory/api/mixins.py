"""
Mixins and helpers shared by API viewsets.

Contents
--------
- `ETagConcurrencyMixin`
    * GET (retrieve): attaches a weak `ETag` computed by
      `core.utils.concurrency.compute_etag`.
    * PUT/PATCH/DELETE: validates `If-Match` via `require_if_match`
      (412 stale, 428 missing when `ENFORCE_IF_MATCH` is on).
    List endpoints do not carry ETags.

- `AuditTrailMixin`
    `_audit_write()` appends an `AuditLog` row with request metadata; the
    `snapshot`/`diff` helpers keep the `changes` payload JSON-safe.
"""

from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any, Optional

from rest_framework.response import Response

from core.models import actor_name
from core.utils.concurrency import compute_etag, require_if_match
from inventory.models import AuditLog


def _jsonable(value: Any) -> Any:
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    return value


def snapshot(instance) -> dict:
    """Concrete field values (FKs via `attname`) as JSON-safe data."""
    return {f.attname: _jsonable(getattr(instance, f.attname)) for f in instance._meta.concrete_fields}


def diff(before: Optional[dict], after: Optional[dict]) -> dict:
    """
    Shallow diff `{field: [old, new]}`; creates are `{"_after": ...}` and deletes
    `{"_before": ...}`. Bookkeeping columns are ignored.
    """
    if before is None and after is not None:
        return {"_after": after}
    if after is None and before is not None:
        return {"_before": before}
    before = before or {}
    after = after or {}
    ignored = {"updated_at", "updated_by"}
    return {
        k: [before.get(k), after.get(k)]
        for k in sorted(set(before) | set(after))
        if k not in ignored and before.get(k) != after.get(k)
    }


def request_meta(request) -> tuple[str, Optional[str], str]:
    """(request_id, ip, user_agent) for audit rows."""
    rid = getattr(request, "request_id", None) or request.headers.get("X-Request-ID") or uuid.uuid4().hex
    return rid, request.META.get("REMOTE_ADDR"), request.META.get("HTTP_USER_AGENT", "")


class AuditTrailMixin:
    """Adds `_audit_write()` to a view with access to `self.request`."""

    def _audit_write(self, instance, action: str, changes: dict) -> AuditLog:
        rid, ip, ua = request_meta(self.request)
        return AuditLog.objects.create(
            table_name=instance._meta.db_table,
            record_id=str(instance.pk),
            action=action,
            changes=changes,
            actor=actor_name(self.request.user),
            request_id=rid[:64],
            ip=ip,
            user_agent=ua,
        )


class ETagConcurrencyMixin:
    """Weak-ETag optimistic concurrency for `ModelViewSet` detail routes."""

    def retrieve(self, request, *args, **kwargs) -> Response:
        instance = self.get_object()
        response = Response(self.get_serializer(instance).data)
        etag = compute_etag(instance)
        if etag:
            response["ETag"] = etag
        return response

    def update(self, request, *args, **kwargs) -> Response:
        require_if_match(request, self.get_object())
        response = super().update(request, *args, **kwargs)
        instance = self.get_object()
        etag = compute_etag(instance)
        if etag:
            response["ETag"] = etag
        return response

    def destroy(self, request, *args, **kwargs) -> Response:
        require_if_match(request, self.get_object())
        return super().destroy(request, *args, **kwargs)
