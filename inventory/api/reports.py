"""
Dashboard and report endpoints for Asset Tracker.

Overview
--------
- Auth: `IsAuthenticated` (via `BaseReportView`).
- Throttling: `reports-read` scope (see DRF settings); these are aggregate reads
  over whole tables.
- Shapes:
    * `/api/dashboard/stats/`: headline totals, assets by status and open
      assignment counts per resource kind.
    * `/api/reports/asset-summary/`: asset counts by status and by item
      category, with an overall total. `?project=` narrows both groupings.
    * `/api/reports/employee-assets/`: open holdings per employee
      (`?department=`, `?project=`).
    * `/api/reports/asset-utilization/`: assigned share of assets, overall and
      per project.
    * `/api/reports/asset-maintenance/`: assets in MAINTENANCE or in Poor/Fair
      condition.
    * `/api/reports/expiring-warranty/`: warranties ending within `?days_ahead=`.
    * `/api/inventory/summary/`: purchased vs allocated units per item.
    * `build_employee_report()`: used by `EmployeeViewSet.report`; profile plus
      everything the employee currently holds.

Every status value is present in the `by_status` maps, even when its count is 0,
so dashboards can render fixed columns.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

from django.core.exceptions import ValidationError
from django.db.models import Count, Prefetch, Q, QuerySet, Sum
from django.utils import timezone
from rest_framework import permissions, serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema, inline_serializer

from core.exceptions import BusinessRuleError
from inventory.models import (
    Asset,
    AssetStatus,
    AssignmentStatus,
    Department,
    Employee,
    EmployeeAccessory,
    EmployeeAsset,
    EmployeeSimCard,
    EmployeeSoftwareLicense,
    Project,
    PurchaseOrderItem,
    SimCard,
)
from inventory.serializers import (
    EmployeeAccessorySerializer,
    EmployeeAssetSerializer,
    EmployeeSerializer,
    EmployeeSimCardSerializer,
    EmployeeSoftwareLicenseSerializer,
)

OPEN = AssignmentStatus.ASSIGNED


def _by_status(qs: QuerySet) -> Dict[str, int]:
    """Asset counts keyed by every `AssetStatus` value."""
    counts = {row["status"]: row["n"] for row in qs.order_by().values("status").annotate(n=Count("id"))}
    return {choice.value: counts.get(choice.value, 0) for choice in AssetStatus}


def open_assignment_counts() -> Dict[str, int]:
    accessories = EmployeeAccessory.objects.filter(status=OPEN).aggregate(n=Sum("quantity"))["n"]
    return {
        "assets": EmployeeAsset.objects.filter(status=OPEN).count(),
        "sim_cards": EmployeeSimCard.objects.filter(status=OPEN).count(),
        "software_licenses": EmployeeSoftwareLicense.objects.filter(status=OPEN).count(),
        "accessories": int(accessories or 0),
    }


PROJECT_PARAM = OpenApiParameter(
    name="project", type=OpenApiTypes.UUID, required=False, description="Filter by project id"
)
DEPARTMENT_PARAM = OpenApiParameter(
    name="department", type=OpenApiTypes.UUID, required=False, description="Filter by department id"
)

MAINTENANCE_CONDITIONS = ("Poor", "Fair")
LOW_STOCK_THRESHOLD = 2


def _percent(part: int, whole: int) -> float:
    return round(part * 100 / whole, 2) if whole else 0.0


def _lookup(request: Request, param: str, model):
    """Row named by `?<param>=<id>`, None when absent; unknown ids are 400 `invalid_<param>`."""
    value = request.query_params.get(param)
    if not value:
        return None
    try:
        return model.objects.only("pk").get(pk=value)
    except (model.DoesNotExist, ValidationError, ValueError) as exc:
        raise BusinessRuleError(f"Unknown {param} '{value}'.", code=f"invalid_{param}") from exc


def _filter_by(qs: QuerySet, request: Request, param: str, model, field: str) -> QuerySet:
    target = _lookup(request, param, model)
    return qs if target is None else qs.filter(**{field: target})


def _holder_name(asset: Asset) -> str | None:
    """Current holder from `_with_open_assignments`."""
    rows = asset.open_assignments
    return rows[0].employee.full_name if rows else None


def _with_open_assignments(qs: QuerySet) -> QuerySet:
    open_rows = EmployeeAsset.objects.filter(status=OPEN).select_related("employee")
    return qs.prefetch_related(Prefetch("employee_assets", queryset=open_rows, to_attr="open_assignments"))


class EmployeeReportSerializer(serializers.Serializer):
    """Schema-only shape of the employee holdings report."""
    employee = EmployeeSerializer()
    assets = EmployeeAssetSerializer(many=True)
    sim_cards = EmployeeSimCardSerializer(many=True)
    software_licenses = EmployeeSoftwareLicenseSerializer(many=True)
    accessories = EmployeeAccessorySerializer(many=True)
    totals = serializers.DictField(child=serializers.IntegerField())


def build_employee_report(employee: Employee) -> Dict[str, Any]:
    """
    Profile plus currently held resources (open assignment rows only).

    Returned rows are the regular assignment shapes, so clients can reuse the
    same renderers as the history endpoints.
    """
    assets = employee.asset_assignments.filter(status=OPEN).select_related("asset")
    sims = employee.sim_card_assignments.filter(status=OPEN).select_related("sim_card")
    licenses = employee.software_license_assignments.filter(status=OPEN).select_related("software_license")
    accessories = employee.accessory_assignments.filter(status=OPEN).select_related("accessory")

    accessory_data = EmployeeAccessorySerializer(accessories, many=True).data
    return {
        "employee": EmployeeSerializer(employee).data,
        "assets": EmployeeAssetSerializer(assets, many=True).data,
        "sim_cards": EmployeeSimCardSerializer(sims, many=True).data,
        "software_licenses": EmployeeSoftwareLicenseSerializer(licenses, many=True).data,
        "accessories": accessory_data,
        "totals": {
            "assets": len(assets),
            "sim_cards": len(sims),
            "software_licenses": len(licenses),
            "accessories": sum(row["quantity"] for row in accessory_data),
        },
    }


class BaseReportView(APIView):
    """Common config for report endpoints: authenticated, `reports-read` throttle scope."""
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "reports-read"


@extend_schema(
    tags=["Reports"],
    responses={
        200: inline_serializer(
            name="DashboardStats",
            fields={
                "totals": serializers.DictField(child=serializers.IntegerField()),
                "assets_by_status": serializers.DictField(child=serializers.IntegerField()),
                "open_assignments": serializers.DictField(child=serializers.IntegerField()),
            },
        )
    },
    description="Headline counts for the dashboard.",
)
class DashboardStatsView(BaseReportView):
    def get(self, request: Request) -> Response:
        return Response(
            {
                "totals": {
                    "assets": Asset.objects.count(),
                    "employees": Employee.objects.count(),
                    "projects": Project.objects.count(),
                    "sim_cards": SimCard.objects.count(),
                },
                "assets_by_status": _by_status(Asset.objects.all()),
                "open_assignments": open_assignment_counts(),
            }
        )


@extend_schema(
    tags=["Reports"],
    parameters=[
        OpenApiParameter(name="project", type=OpenApiTypes.UUID, required=False, description="Filter by project id"),
    ],
    responses={200: OpenApiResponse(description="Asset counts by status and item category")},
    description="Asset summary grouped by status and by item category, with an overall total.",
)
class AssetSummaryReportView(BaseReportView):
    def get(self, request: Request) -> Response:
        qs = _filter_by(Asset.objects.all(), request, "project", Project, "project")

        rows = (
            qs.values("item__item_category_id", "item__item_category__name")
            .annotate(n=Count("id"))
            .order_by("item__item_category__name")
        )
        by_category = [
            {
                "item_category": str(r["item__item_category_id"]) if r["item__item_category_id"] else None,
                "item_category_name": r["item__item_category__name"] or "Uncategorized",
                "count": r["n"],
            }
            for r in rows
        ]
        return Response(
            {
                "total": qs.count(),
                "by_status": _by_status(qs),
                "by_item_category": by_category,
            }
        )


# -----------------------------------------------------------------------------
# Employee holdings, utilisation, maintenance and warranty reports
# -----------------------------------------------------------------------------

@extend_schema(
    tags=["Reports"],
    parameters=[DEPARTMENT_PARAM, PROJECT_PARAM],
    responses={200: OpenApiResponse(description="Per-employee holding counts with headline totals")},
    description=(
        "Open asset, SIM card and software license counts per employee. "
        "`average_assets_per_employee` averages over employees holding at least one asset."
    ),
)
class EmployeeAssetsReportView(BaseReportView):
    def get(self, request: Request) -> Response:
        qs = Employee.objects.select_related("department", "project")
        qs = _filter_by(qs, request, "department", Department, "department")
        qs = _filter_by(qs, request, "project", Project, "project")
        qs = qs.annotate(
            asset_count=Count("asset_assignments", filter=Q(asset_assignments__status=OPEN), distinct=True),
            sim_card_count=Count("sim_card_assignments", filter=Q(sim_card_assignments__status=OPEN), distinct=True),
            software_license_count=Count(
                "software_license_assignments", filter=Q(software_license_assignments__status=OPEN), distinct=True
            ),
        ).order_by("employee_code")

        summaries = [
            {
                "employee": str(e.pk),
                "employee_code": e.employee_code,
                "employee_name": e.full_name,
                "department_name": e.department.name if e.department else "",
                "project_name": e.project.name if e.project else "",
                "asset_count": e.asset_count,
                "sim_card_count": e.sim_card_count,
                "software_license_count": e.software_license_count,
            }
            for e in qs
        ]
        holders = [s for s in summaries if s["asset_count"]]
        held = sum(s["asset_count"] for s in holders)
        return Response(
            {
                "total_employees": len(summaries),
                "employees_with_assets": len(holders),
                "employees_without_assets": len(summaries) - len(holders),
                "average_assets_per_employee": round(held / len(holders), 2) if holders else 0.0,
                "employees": summaries,
            }
        )


@extend_schema(
    tags=["Reports"],
    responses={200: OpenApiResponse(description="Assigned share of all assets, overall and per project")},
    description="Utilisation rate (assigned / total, percent) overall and for each project holding assets.",
)
class AssetUtilizationReportView(BaseReportView):
    def get(self, request: Request) -> Response:
        counts = _by_status(Asset.objects.all())
        total = sum(counts.values())
        assigned = counts[AssetStatus.ASSIGNED]

        rows = (
            Asset.objects.filter(project__isnull=False)
            .values("project_id", "project__name")
            .annotate(total=Count("id"), assigned=Count("id", filter=Q(status=AssetStatus.ASSIGNED)))
            .order_by("project__name")
        )
        return Response(
            {
                "total_assets": total,
                "assigned_assets": assigned,
                "available_assets": counts[AssetStatus.AVAILABLE],
                "utilization_rate": _percent(assigned, total),
                "utilization_by_project": [
                    {
                        "project": str(r["project_id"]),
                        "project_name": r["project__name"],
                        "total_assets": r["total"],
                        "assigned_assets": r["assigned"],
                        "utilization_rate": _percent(r["assigned"], r["total"]),
                    }
                    for r in rows
                ],
            }
        )


@extend_schema(
    tags=["Reports"],
    responses={200: OpenApiResponse(description="Assets in maintenance or in poor/fair condition")},
    description=(
        "Assets whose status is MAINTENANCE or whose condition is Poor or Fair, "
        "with the current holder when assigned."
    ),
)
class AssetMaintenanceReportView(BaseReportView):
    def get(self, request: Request) -> Response:
        worn = Q()
        for condition in MAINTENANCE_CONDITIONS:
            worn |= Q(condition__iexact=condition)
        qs = _with_open_assignments(Asset.objects.filter(worn | Q(status=AssetStatus.MAINTENANCE)))

        items = []
        needing = in_maintenance = 0
        for asset in qs.order_by("asset_tag"):
            if asset.condition.lower() in {c.lower() for c in MAINTENANCE_CONDITIONS}:
                needing += 1
            if asset.status == AssetStatus.MAINTENANCE:
                in_maintenance += 1
            items.append(
                {
                    "asset": str(asset.pk),
                    "asset_tag": asset.asset_tag,
                    "name": asset.name,
                    "condition": asset.condition or "Unknown",
                    "assigned_employee_name": _holder_name(asset),
                    "maintenance_status": (
                        "In Maintenance" if asset.status == AssetStatus.MAINTENANCE else "Needs Maintenance"
                    ),
                }
            )
        return Response(
            {"assets_needing_maintenance": needing, "assets_in_maintenance": in_maintenance, "items": items}
        )


@extend_schema(
    tags=["Reports"],
    parameters=[
        OpenApiParameter(
            name="days_ahead",
            type=OpenApiTypes.INT,
            required=False,
            description="Window in days from today (default 30, max 3650).",
        ),
    ],
    responses={200: OpenApiResponse(description="Assets whose warranty ends within the window")},
    description="Assets with `warranty_expiry` between today and today + `days_ahead`, soonest first.",
)
class ExpiringWarrantyReportView(BaseReportView):
    def get(self, request: Request) -> Response:
        raw = request.query_params.get("days_ahead") or "30"
        try:
            days = int(raw)
        except ValueError:
            days = -1
        if not 0 <= days <= 3650:
            raise BusinessRuleError(
                f"Invalid days_ahead '{raw}'; expected an integer between 0 and 3650.", code="invalid_days_ahead"
            )

        today = timezone.localdate()
        qs = _with_open_assignments(
            Asset.objects.filter(warranty_expiry__gte=today, warranty_expiry__lte=today + timedelta(days=days))
        ).order_by("warranty_expiry", "asset_tag")
        return Response(
            {
                "days_ahead": days,
                "count": len(qs),
                "items": [
                    {
                        "asset": str(a.pk),
                        "asset_tag": a.asset_tag,
                        "name": a.name,
                        "warranty_expiry": a.warranty_expiry.isoformat(),
                        "days_remaining": (a.warranty_expiry - today).days,
                        "assigned_employee_name": _holder_name(a),
                    }
                    for a in qs
                ],
            }
        )


# -----------------------------------------------------------------------------
# Stock derived from purchase orders
# -----------------------------------------------------------------------------

class InventoryStatus:
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


def _stock_status(available: int) -> str:
    if available <= 0:
        return InventoryStatus.OUT_OF_STOCK
    if available <= LOW_STOCK_THRESHOLD:
        return InventoryStatus.LOW_STOCK
    return InventoryStatus.IN_STOCK


def build_inventory_summary(project=None) -> list[dict]:
    """
    One row per purchased item: units bought on any purchase order (every
    status) against assets already registered for that item. `project`
    narrows orders by their project and assets by theirs.
    """
    lines = PurchaseOrderItem.objects.select_related(
        "item__item_category", "purchase_order__supplier"
    ).order_by("purchase_order__po_date", "created_at")
    assets = Asset.objects.filter(item__isnull=False).select_related("project")
    if project is not None:
        lines = lines.filter(purchase_order__project=project)
        assets = assets.filter(project=project)

    rows: dict = {}
    for line in lines:
        item = line.item
        order = line.purchase_order
        row = rows.get(item.pk)
        if row is None:
            brand, _, model = item.name.partition(" ")
            row = rows[item.pk] = {
                "item": str(item.pk),
                "item_name": item.name,
                "category": item.item_category.name if item.item_category_id else "Other",
                "brand": brand or "Unknown",
                "model": model or "Unknown",
                "total_purchased": 0,
                "total_allocated": 0,
                "project_name": "",
            }
        row["total_purchased"] += line.quantity
        # Lines arrive in order-date order, so the last one seen is the latest purchase.
        row["last_purchase_date"] = order.po_date.isoformat()
        row["vendor"] = order.supplier.name

    for asset in assets:
        row = rows.get(asset.item_id)
        if row is None:
            continue
        row["total_allocated"] += 1
        if not row["project_name"] and asset.project is not None:
            row["project_name"] = asset.project.name

    result = sorted(rows.values(), key=lambda r: r["item_name"].lower())
    for row in result:
        row["available_count"] = row["total_purchased"] - row["total_allocated"]
        row["status"] = _stock_status(row["available_count"])
    return result


@extend_schema(
    tags=["Inventory"],
    parameters=[PROJECT_PARAM],
    responses={200: OpenApiResponse(description="Purchased, allocated and available units per item, with totals")},
    description=(
        "Stock per purchased item: `available_count = total_purchased - total_allocated`; "
        f"`OUT_OF_STOCK` at 0 or below, `LOW_STOCK` up to {LOW_STOCK_THRESHOLD}, else `IN_STOCK`."
    ),
)
class InventorySummaryView(BaseReportView):
    def get(self, request: Request) -> Response:
        items = build_inventory_summary(_lookup(request, "project", Project))
        statuses = [row["status"] for row in items]
        return Response(
            {
                "total_items": sum(row["available_count"] for row in items),
                "total_categories": len({row["category"] for row in items}),
                "in_stock_items": statuses.count(InventoryStatus.IN_STOCK),
                "low_stock_items": statuses.count(InventoryStatus.LOW_STOCK),
                "out_of_stock_items": statuses.count(InventoryStatus.OUT_OF_STOCK),
                "total_purchased": sum(row["total_purchased"] for row in items),
                "total_allocated": sum(row["total_allocated"] for row in items),
                "items": items,
                "calculated_at": timezone.now(),
            }
        )
