from __future__ import annotations

"""
Optimistic concurrency via HTTP preconditions.

- `compute_etag(instance)` derives a weak ETag from the row's primary key and
  `updated_at` (full precision, so two saves within one second still differ).
- `require_if_match(request, instance)` enforces `If-Match` on writes:
  * header present and stale → 412 `PreconditionFailed`;
  * header missing while `settings.ENFORCE_IF_MATCH` is on → 428
    `PreconditionRequired`;
  * `If-Match: *` always passes.
"""

import hashlib
from typing import Optional

from django.conf import settings
from rest_framework.request import Request

from core.exceptions import DomainError


class PreconditionFailed(DomainError):
    status_code = 412
    default_detail = "Precondition failed (If-Match does not match current resource state)."
    default_code = "precondition_failed"


class PreconditionRequired(DomainError):
    status_code = 428
    default_detail = "Precondition required. Send If-Match with the current ETag."
    default_code = "if_match_required"


def compute_etag(instance) -> Optional[str]:
    """Return `W/"<digest>"` for a saved row, or None when it has no timestamp."""
    updated_at = getattr(instance, "updated_at", None)
    if updated_at is None:
        return None
    label = instance._meta.label_lower
    raw = f"{label}:{instance.pk}:{updated_at.isoformat()}".encode("utf-8")
    return f'W/"{hashlib.sha256(raw).hexdigest()[:32]}"'


def _parse_if_match(header: Optional[str]) -> set[str]:
    if not header:
        return set()
    return {part.strip() for part in header.split(",") if part.strip()}


def require_if_match(request: Request, instance) -> None:
    """Raise when the client's `If-Match` precondition does not hold for `instance`."""
    tags = _parse_if_match(request.headers.get("If-Match"))
    current = compute_etag(instance)

    if not tags:
        if getattr(settings, "ENFORCE_IF_MATCH", False):
            raise PreconditionRequired(expected_etag=current)
        return
    if "*" in tags:
        return
    if current is None or current not in tags:
        raise PreconditionFailed(expected_etag=current)
