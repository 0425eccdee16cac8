"""
drf-spectacular helpers shared across the inventory API.

Centralizes reusable OpenAPI components:
- the optimistic-concurrency `If-Match` header;
- the error envelopes produced by `core.exceptions.api_exception_handler`
  (generic error, validation error, conflict with dependents).

Imported at startup by `inventory.apps.InventoryConfig.ready()`; keep it free of
side effects beyond constant definitions.
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, OpenApiResponse, inline_serializer
from rest_framework import serializers

IF_MATCH_HEADER = OpenApiParameter(
    name="If-Match",
    type=OpenApiTypes.STR,
    location=OpenApiParameter.HEADER,
    required=False,
    description=(
        "ETag of the resource obtained from the last GET. "
        "Required for PUT/PATCH/DELETE when concurrency enforcement is enabled."
    ),
)

INCLUDE_INACTIVE_PARAM = OpenApiParameter(
    name="include_inactive",
    type=OpenApiTypes.BOOL,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Include inactive rows (default false).",
)

ERROR_RESPONSE = OpenApiResponse(
    response=inline_serializer(
        name="Error",
        fields={
            "detail": serializers.CharField(),
            "code": serializers.CharField(required=False),
        },
    ),
    description="Error response",
)

NOT_FOUND_RESPONSE = OpenApiResponse(
    response=inline_serializer(
        name="NotFoundError",
        fields={
            "detail": serializers.CharField(),
            "code": serializers.CharField(),
        },
    ),
    description="Resource, employee or open assignment not found",
)

VALIDATION_ERROR_RESPONSE = OpenApiResponse(
    response=inline_serializer(
        name="ValidationError",
        fields={
            "detail": serializers.CharField(required=False),
            "code": serializers.CharField(required=False),
            "errors": serializers.DictField(
                child=serializers.ListField(child=serializers.CharField()),
                required=False,
            ),
        },
    ),
    description="Validation error",
)

CONFLICT_RESPONSE = OpenApiResponse(
    response=inline_serializer(
        name="ConflictError",
        fields={
            "detail": serializers.CharField(),
            "code": serializers.ChoiceField(
                choices=["has_dependents", "duplicate", "already_assigned", "not_available", "no_capacity"]
            ),
            "dependents": serializers.DictField(child=serializers.IntegerField(), required=False),
        },
    ),
    description="Conflict: dependents exist, duplicate value, or resource unavailable",
)

DELETE_BLOCKED_EXAMPLE = OpenApiExample(
    name="Delete blocked",
    value={
        "detail": "Cannot delete company 'Acme': referenced by 2 projects.",
        "code": "has_dependents",
        "dependents": {"projects": 2},
    },
    response_only=True,
    status_codes=["409"],
)
