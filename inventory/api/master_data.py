"""
Master data bulk creation and statistics.

- `POST /api/master-data/bulk-create/`: creates lists of master data rows in one
  transaction. Keys are processed in dependency order, so an item may reference
  an item category created earlier by id. Any invalid row rolls back the
  whole batch.
- `GET /api/master-data/statistics/`: headline totals for the admin screens.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from django.db import transaction
from rest_framework import permissions, serializers, status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import OpenApiResponse, extend_schema, inline_serializer

from core.models import actor_name
from inventory.models import (
    Asset,
    AuditAction,
    Company,
    Department,
    Employee,
    Project,
    SimCard,
    SoftwareLicense,
    Status,
)
from inventory.schema import VALIDATION_ERROR_RESPONSE
from inventory.serializers import (
    CompanySerializer,
    CostCenterSerializer,
    DepartmentSerializer,
    EmployeeCategorySerializer,
    EmployeePositionSerializer,
    ItemCategorySerializer,
    ItemSerializer,
    NationalitySerializer,
    ProjectSerializer,
    SimCardPlanSerializer,
    SimProviderSerializer,
    SimTypeSerializer,
    SubDepartmentSerializer,
    SupplierSerializer,
)

from .mixins import AuditTrailMixin, diff, snapshot

logger = logging.getLogger(__name__)

# Dependency order: referenced types come before the types that point at them.
BULK_TYPES = (
    ("companies", CompanySerializer),
    ("cost_centers", CostCenterSerializer),
    ("nationalities", NationalitySerializer),
    ("projects", ProjectSerializer),
    ("departments", DepartmentSerializer),
    ("sub_departments", SubDepartmentSerializer),
    ("employee_categories", EmployeeCategorySerializer),
    ("employee_positions", EmployeePositionSerializer),
    ("item_categories", ItemCategorySerializer),
    ("items", ItemSerializer),
    ("suppliers", SupplierSerializer),
    ("sim_providers", SimProviderSerializer),
    ("sim_types", SimTypeSerializer),
    ("sim_card_plans", SimCardPlanSerializer),
)


class MasterDataBulkCreateView(AuditTrailMixin, APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "imports"

    @extend_schema(
        tags=["Master data"],
        request=inline_serializer(
            name="MasterDataBulkCreateRequest",
            fields={key: serializers.ListField(child=serializers.DictField(), required=False) for key, _ in BULK_TYPES},
        ),
        responses={
            201: inline_serializer(
                name="MasterDataBulkCreateResult",
                fields={
                    "created": serializers.DictField(child=serializers.IntegerField()),
                    "total_created": serializers.IntegerField(),
                },
            ),
            400: VALIDATION_ERROR_RESPONSE,
        },
        description="Create master data rows of several types at once. All or nothing.",
    )
    def post(self, request: Request) -> Response:
        data = request.data if isinstance(request.data, dict) else None
        if data is None:
            return Response(
                {"detail": "Expected a JSON object.", "code": "invalid"}, status=status.HTTP_400_BAD_REQUEST
            )
        known = {key for key, _ in BULK_TYPES}
        unknown = sorted(set(data) - known)
        if unknown:
            return Response(
                {"detail": f"Unknown master data types: {', '.join(unknown)}.", "code": "invalid", "unknown": unknown},
                status=status.HTTP_400_BAD_REQUEST,
            )

        actor = actor_name(request.user)
        created: Dict[str, int] = {}
        errors: Dict[str, Dict[str, Any]] = {}
        with transaction.atomic():
            for key, serializer_cls in BULK_TYPES:
                rows = data.get(key) or []
                if not isinstance(rows, list):
                    errors[key] = {"non_field_errors": ["Expected a list."]}
                    continue
                count = 0
                for index, row in enumerate(rows):
                    ser = serializer_cls(data=row)
                    if not ser.is_valid():
                        errors.setdefault(key, {})[str(index)] = ser.errors
                        continue
                    obj = ser.save(created_by=actor, updated_by=actor)
                    self._audit_write(obj, AuditAction.CREATE, diff(None, snapshot(obj)))
                    count += 1
                created[key] = count
            if errors:
                transaction.set_rollback(True)

        if errors:
            return Response(
                {"detail": "Some rows are invalid; nothing was created.", "code": "invalid", "errors": errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        logger.info("master data bulk create: %s rows", sum(created.values()))
        return Response(
            {"created": created, "total_created": sum(created.values())}, status=status.HTTP_201_CREATED
        )


class MasterDataStatisticsView(APIView):
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "reports-read"

    @extend_schema(
        tags=["Master data"],
        responses=OpenApiResponse(
            response=inline_serializer(
                name="MasterDataStatistics",
                fields={
                    name: serializers.IntegerField()
                    for name in (
                        "total_companies",
                        "total_departments",
                        "total_projects",
                        "total_employees",
                        "total_assets",
                        "total_sim_cards",
                        "total_software_licenses",
                    )
                },
            ),
            description="Row counts; `total_employees` counts active employees only.",
        ),
    )
    def get(self, request: Request) -> Response:
        return Response(
            {
                "total_companies": Company.objects.count(),
                "total_departments": Department.objects.count(),
                "total_projects": Project.objects.count(),
                "total_employees": Employee.objects.filter(status=Status.ACTIVE).count(),
                "total_assets": Asset.objects.count(),
                "total_sim_cards": SimCard.objects.count(),
                "total_software_licenses": SoftwareLicense.objects.count(),
            }
        )
