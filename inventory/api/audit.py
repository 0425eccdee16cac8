from __future__ import annotations

from datetime import datetime

from django.db.models import Count
from django.utils.dateparse import parse_date, parse_datetime
from django.utils.timezone import is_naive, make_aware
from rest_framework import permissions, serializers, viewsets
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
    inline_serializer,
)

from core.exceptions import BusinessRuleError
from inventory.models import AuditAction, AuditLog
from inventory.schema import ERROR_RESPONSE
from inventory.serializers import AuditLogSerializer

STATS_TOP = 10

AUDIT_FILTERS = [
    OpenApiParameter(name="table_name", type=OpenApiTypes.STR, required=False, description='e.g. "inventory_asset"'),
    OpenApiParameter(name="record_id", type=OpenApiTypes.STR, required=False),
    OpenApiParameter(name="action", type=OpenApiTypes.STR, required=False,
                     description="create|update|delete|assign|unassign"),
    OpenApiParameter(name="actor", type=OpenApiTypes.STR, required=False, description="Username"),
    OpenApiParameter(name="date_from", type=OpenApiTypes.DATETIME, required=False,
                     description="ISO date or datetime (inclusive)"),
    OpenApiParameter(name="date_to", type=OpenApiTypes.DATETIME, required=False,
                     description="ISO date or datetime (inclusive; a bare date covers the whole day)"),
]


@extend_schema_view(
    list=extend_schema(
        tags=["Audit"],
        parameters=AUDIT_FILTERS,
        responses={200: AuditLogSerializer(many=True), 400: ERROR_RESPONSE},
        description="Read-only audit trail of API writes and assignment changes, newest first.",
    ),
    retrieve=extend_schema(tags=["Audit"], responses={200: AuditLogSerializer, 404: OpenApiResponse(description="Not found")}),
)
class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only audit log.

    Filters (query params):
      - table_name: exact db table, e.g. "inventory_employee"
      - record_id: primary key of the audited row
      - action: create|update|delete|assign|unassign (unknown value → empty page)
      - actor: username
      - date_from, date_to: ISO dates or datetimes (inclusive)

    Extra routes: `stats/` (counts per action and table, honours the filters
    above) and `record/{table_name}/{record_id}/` (one record's history).
    """

    queryset = AuditLog.objects.all()
    serializer_class = AuditLogSerializer
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "audit-read"
    # Filtering is explicit below; generic backends do not apply.
    filter_backends: list = []
    lookup_value_regex = r"\d+"

    def _parse_bound(self, name: str, *, end: bool) -> datetime | None:
        s = (self.request.query_params.get(name) or "").strip()
        if not s:
            return None
        # Date-only values first: fromisoformat would read them as midnight.
        try:
            day = parse_date(s)
            value = parse_datetime(s) if day is None else None
        except ValueError:
            value = day = None
        if value is None:
            if day is None:
                raise BusinessRuleError(
                    f"Invalid {name} '{s}'; expected an ISO date or datetime.", code="invalid_date", param=name
                )
            value = datetime.combine(day, datetime.max.time() if end else datetime.min.time())
        if is_naive(value):
            value = make_aware(value)
        return value

    def filter_queryset(self, queryset):
        params = self.request.query_params

        table_name = (params.get("table_name") or "").strip()
        if table_name:
            queryset = queryset.filter(table_name=table_name)

        record_id = (params.get("record_id") or "").strip()
        if record_id:
            queryset = queryset.filter(record_id=record_id)

        action = (params.get("action") or "").strip().lower()
        if action:
            if action not in {a.value for a in AuditAction}:
                return queryset.none()
            queryset = queryset.filter(action=action)

        actor = (params.get("actor") or "").strip()
        if actor:
            queryset = queryset.filter(actor=actor)

        date_from = self._parse_bound("date_from", end=False)
        date_to = self._parse_bound("date_to", end=True)
        if date_from:
            queryset = queryset.filter(created_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(created_at__lte=date_to)
        return queryset

    @extend_schema(
        tags=["Audit"],
        parameters=AUDIT_FILTERS,
        responses={
            200: inline_serializer(
                name="AuditStats",
                fields={
                    "total_logs": serializers.IntegerField(),
                    "by_action": serializers.DictField(child=serializers.IntegerField()),
                    "by_table": serializers.ListField(child=serializers.DictField()),
                    "recent_activity": AuditLogSerializer(many=True),
                },
            ),
            400: ERROR_RESPONSE,
        },
        description="Counts per action and for the ten busiest tables, plus the ten latest rows.",
    )
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request: Request) -> Response:
        qs = self.filter_queryset(self.get_queryset())
        per_action = dict(qs.order_by().values_list("action").annotate(n=Count("id")))
        by_table = qs.order_by().values("table_name").annotate(count=Count("id")).order_by("-count", "table_name")
        return Response(
            {
                "total_logs": qs.count(),
                "by_action": {a.value: per_action.get(a.value, 0) for a in AuditAction},
                "by_table": list(by_table[:STATS_TOP]),
                "recent_activity": AuditLogSerializer(qs[:STATS_TOP], many=True).data,
            }
        )

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditLogSerializer(many=True)},
        description="Full history of one record, newest first.",
    )
    @action(
        detail=False,
        methods=["get"],
        url_path=r"record/(?P<table_name>[^/.]+)/(?P<record_id>[^/]+)",
        url_name="record",
    )
    def record(self, request: Request, table_name: str, record_id: str) -> Response:
        rows = self.get_queryset().filter(table_name=table_name, record_id=record_id)
        return Response(AuditLogSerializer(rows, many=True).data)
