"""
Dropdown lookups: `[{id, name}]` lists for form pickers.

- `GET /api/lookups/` lists supported types.
- `GET /api/lookups/{type}/` returns active rows ordered by name;
  `?include_inactive=true` includes inactive rows. `subdepartments` also
  accepts `?department=<id>`.

Unknown types are a 404 (`not_found`). Results are not paginated; reference
tables stay small.
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from rest_framework import permissions, serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer

from core.exceptions import BusinessRuleError, NotFoundError
from inventory.models import (
    Accessory,
    Company,
    CostCenter,
    Department,
    EmployeeCategory,
    EmployeePosition,
    Item,
    ItemCategory,
    Nationality,
    Project,
    SimCardPlan,
    SimProvider,
    SimType,
    SubDepartment,
    Supplier,
)
from inventory.schema import INCLUDE_INACTIVE_PARAM, NOT_FOUND_RESPONSE

LOOKUP_MODELS = {
    "companies": Company,
    "departments": Department,
    "subdepartments": SubDepartment,
    "projects": Project,
    "costcenters": CostCenter,
    "nationalities": Nationality,
    "employeecategories": EmployeeCategory,
    "employeepositions": EmployeePosition,
    "itemcategories": ItemCategory,
    "items": Item,
    "suppliers": Supplier,
    "simproviders": SimProvider,
    "simtypes": SimType,
    "simcardplans": SimCardPlan,
    "accessories": Accessory,
}

class LookupItemSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    name = serializers.CharField()


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@extend_schema(
    tags=["Lookups"],
    responses={200: inline_serializer(name="LookupTypes", fields={"types": serializers.ListField(child=serializers.CharField())})},
    description="Supported lookup types.",
)
class LookupTypesView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request: Request) -> Response:
        return Response({"types": sorted(LOOKUP_MODELS)})


@extend_schema(
    tags=["Lookups"],
    parameters=[
        INCLUDE_INACTIVE_PARAM,
        OpenApiParameter(
            name="department",
            type=OpenApiTypes.UUID,
            required=False,
            description="subdepartments only: restrict to one department",
        ),
    ],
    responses={200: LookupItemSerializer(many=True), 404: NOT_FOUND_RESPONSE},
    description="`[{id, name}]` for one reference table, ordered by name.",
)
class LookupView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request: Request, lookup_type: str) -> Response:
        model = LOOKUP_MODELS.get(lookup_type.lower())
        if model is None:
            raise NotFoundError(f"Unknown lookup type '{lookup_type}'.")

        qs = model.objects.all()
        if not _truthy(request.query_params.get("include_inactive")):
            qs = qs.active()

        department = request.query_params.get("department")
        if model is SubDepartment and department:
            try:
                qs = qs.filter(department_id=department)
            except ValidationError as exc:
                raise BusinessRuleError(f"Invalid department id '{department}'.", code="invalid_department") from exc

        rows = qs.order_by("name").values("id", "name")
        return Response([{"id": str(r["id"]), "name": r["name"]} for r in rows])
