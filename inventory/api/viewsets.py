from __future__ import annotations

"""
ViewSets for inventory resources with optimistic concurrency, dependency-checked
deletes and API audit writes.

Highlights
----------
- `AuditedModelViewSet`:
  * stamps `created_by`/`updated_by` with the acting username;
  * ETag on retrieve, `If-Match` on PUT/PATCH/DELETE (`ETagConcurrencyMixin`);
  * refuses to delete rows that other rows reference (409 `has_dependents`);
  * writes an `AuditLog` row for every create/update/delete.
- Resource viewsets expose filter/search/ordering for list screens; assets, SIM
  cards, software licenses and accessories also mix in their assignment actions
  (see `assignment_ops`).
- Assignment record viewsets are read-only; rows change only through the
  assign/unassign actions.
"""

from django.db.models import Prefetch
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.utils import extend_schema, extend_schema_view

from core.models import actor_name
from core.utils.dependents import ensure_deletable
from inventory.models import (
    Accessory,
    Asset,
    AssignmentStatus,
    AuditAction,
    Company,
    CostCenter,
    Department,
    Employee,
    EmployeeAccessory,
    EmployeeAsset,
    EmployeeCategory,
    EmployeePosition,
    EmployeeSimCard,
    EmployeeSoftwareLicense,
    Item,
    ItemCategory,
    Nationality,
    Project,
    PurchaseOrder,
    SimCard,
    SimCardPlan,
    SimProvider,
    SimType,
    SoftwareLicense,
    SubDepartment,
    Supplier,
)
from inventory.schema import (
    CONFLICT_RESPONSE,
    DELETE_BLOCKED_EXAMPLE,
    IF_MATCH_HEADER,
    NOT_FOUND_RESPONSE,
)
from inventory.serializers import (
    AccessorySerializer,
    AssetSerializer,
    CompanySerializer,
    CostCenterSerializer,
    DepartmentSerializer,
    EmployeeAccessorySerializer,
    EmployeeAssetSerializer,
    EmployeeCategorySerializer,
    EmployeePositionSerializer,
    EmployeeSerializer,
    EmployeeSimCardSerializer,
    EmployeeSoftwareLicenseSerializer,
    ItemCategorySerializer,
    ItemSerializer,
    NationalitySerializer,
    ProjectSerializer,
    PurchaseOrderSerializer,
    SimCardPlanSerializer,
    SimCardSerializer,
    SimProviderSerializer,
    SimTypeSerializer,
    SoftwareLicenseSerializer,
    SubDepartmentSerializer,
    SupplierSerializer,
)

from .assignment_ops import AccessoryOpsMixin, AssetOpsMixin, SimCardOpsMixin, SoftwareLicenseOpsMixin
from .mixins import AuditTrailMixin, ETagConcurrencyMixin, diff, snapshot
from .reports import build_employee_report, EmployeeReportSerializer

UUID_LOOKUP = r"[0-9a-fA-F-]{36}"


def crud_schema(tag: str, noun: str):
    """`extend_schema_view` for the six CRUD routes of one resource."""
    return extend_schema_view(
        list=extend_schema(tags=[tag], description=f"List {noun}s (paginated, filterable)."),
        retrieve=extend_schema(tags=[tag], description=f"Retrieve a {noun}; carries an ETag."),
        create=extend_schema(tags=[tag], description=f"Create a {noun}. Duplicate unique values return 409."),
        update=extend_schema(tags=[tag], parameters=[IF_MATCH_HEADER], description=f"Replace a {noun}."),
        partial_update=extend_schema(tags=[tag], parameters=[IF_MATCH_HEADER], description=f"Partially update a {noun}."),
        destroy=extend_schema(
            tags=[tag],
            parameters=[IF_MATCH_HEADER],
            description=f"Delete a {noun}. Refused with 409 while other records reference it.",
            responses={204: None, 404: NOT_FOUND_RESPONSE, 409: CONFLICT_RESPONSE},
            examples=[DELETE_BLOCKED_EXAMPLE],
        ),
    )


class AuditedModelViewSet(AuditTrailMixin, ETagConcurrencyMixin, viewsets.ModelViewSet):
    """
    Base ViewSet for every inventory entity.

    NOTE:
        `perform_destroy` checks dependents before deleting; the FK `PROTECT`
        rules back this up inside the same transaction.
    """
    lookup_value_regex = UUID_LOOKUP

    def perform_create(self, serializer):
        name = actor_name(self.request.user)
        instance = serializer.save(created_by=name, updated_by=name)
        self._audit_write(instance, AuditAction.CREATE, diff(None, snapshot(instance)))

    def perform_update(self, serializer):
        """Audit only effective changes (serializers may rewrite identical values)."""
        model = serializer.Meta.model
        before = snapshot(model._default_manager.get(pk=serializer.instance.pk))
        instance = serializer.save(updated_by=actor_name(self.request.user))
        changes = diff(before, snapshot(instance))
        if changes:
            self._audit_write(instance, AuditAction.UPDATE, changes)

    def perform_destroy(self, instance):
        ensure_deletable(instance)
        self._audit_write(instance, AuditAction.DELETE, diff(snapshot(instance), None))
        instance.delete()


# -----------------------------------------------------------------------------
# Organisation master data
# -----------------------------------------------------------------------------

@crud_schema("Companies", "company")
class CompanyViewSet(AuditedModelViewSet):
    queryset = Company.objects.all()
    serializer_class = CompanySerializer
    filterset_fields = ["status"]
    search_fields = ["name", "description"]
    ordering_fields = ["name", "status", "created_at", "updated_at"]
    ordering = ["name"]


@crud_schema("Cost centers", "cost center")
class CostCenterViewSet(AuditedModelViewSet):
    queryset = CostCenter.objects.all()
    serializer_class = CostCenterSerializer
    filterset_fields = ["status"]
    search_fields = ["code", "name", "description"]
    ordering_fields = ["code", "name", "status", "created_at"]
    ordering = ["code"]


@crud_schema("Nationalities", "nationality")
class NationalityViewSet(AuditedModelViewSet):
    queryset = Nationality.objects.all()
    serializer_class = NationalitySerializer
    filterset_fields = ["status"]
    search_fields = ["name"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


@crud_schema("Projects", "project")
class ProjectViewSet(AuditedModelViewSet):
    """Projects belong to a company and optionally carry a cost center and nationality."""
    queryset = Project.objects.select_related("company", "cost_center", "nationality").all()
    serializer_class = ProjectSerializer
    filterset_fields = ["status", "company", "cost_center", "nationality"]
    search_fields = ["code", "name", "description", "company__name"]
    ordering_fields = ["code", "name", "status", "created_at", "updated_at"]
    ordering = ["name"]


@crud_schema("Departments", "department")
class DepartmentViewSet(AuditedModelViewSet):
    queryset = Department.objects.all()
    serializer_class = DepartmentSerializer
    filterset_fields = ["status"]
    search_fields = ["name", "description"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


@crud_schema("Sub-departments", "sub-department")
class SubDepartmentViewSet(AuditedModelViewSet):
    queryset = SubDepartment.objects.select_related("department").all()
    serializer_class = SubDepartmentSerializer
    filterset_fields = ["status", "department"]
    search_fields = ["name", "department__name"]
    ordering_fields = ["name", "created_at"]
    ordering = ["department__name", "name"]


@crud_schema("Employee categories", "employee category")
class EmployeeCategoryViewSet(AuditedModelViewSet):
    queryset = EmployeeCategory.objects.all()
    serializer_class = EmployeeCategorySerializer
    filterset_fields = ["status"]
    search_fields = ["name"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


@crud_schema("Employee positions", "employee position")
class EmployeePositionViewSet(AuditedModelViewSet):
    queryset = EmployeePosition.objects.all()
    serializer_class = EmployeePositionSerializer
    filterset_fields = ["status"]
    search_fields = ["name"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


@crud_schema("Item categories", "item category")
class ItemCategoryViewSet(AuditedModelViewSet):
    queryset = ItemCategory.objects.all()
    serializer_class = ItemCategorySerializer
    filterset_fields = ["status"]
    search_fields = ["name"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


@crud_schema("Items", "item")
class ItemViewSet(AuditedModelViewSet):
    queryset = Item.objects.select_related("item_category").all()
    serializer_class = ItemSerializer
    filterset_fields = ["status", "item_category"]
    search_fields = ["name", "description", "item_category__name"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


@crud_schema("Suppliers", "supplier")
class SupplierViewSet(AuditedModelViewSet):
    queryset = Supplier.objects.all()
    serializer_class = SupplierSerializer
    filterset_fields = ["status"]
    search_fields = ["name", "contact_person", "email", "phone"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


# -----------------------------------------------------------------------------
# Employees
# -----------------------------------------------------------------------------

@crud_schema("Employees", "employee")
class EmployeeViewSet(AuditedModelViewSet):
    """Employee CRUD plus a holdings report (`/employees/{id}/report/`)."""
    queryset = Employee.objects.select_related(
        "nationality",
        "category",
        "position",
        "department",
        "sub_department",
        "project",
        "company",
        "cost_center",
    ).all()
    serializer_class = EmployeeSerializer
    filterset_fields = [
        "status",
        "department",
        "sub_department",
        "project",
        "company",
        "cost_center",
        "category",
        "position",
        "nationality",
    ]
    search_fields = ["employee_code", "first_name", "last_name", "email", "phone"]
    ordering_fields = ["employee_code", "first_name", "last_name", "created_at", "updated_at"]
    ordering = ["last_name", "first_name"]

    @extend_schema(
        tags=["Employees"],
        responses={200: EmployeeReportSerializer, 404: NOT_FOUND_RESPONSE},
        description="Employee profile with everything currently assigned to them.",
    )
    @action(detail=True, methods=["get"], url_path="report")
    def report(self, request: Request, pk: str | None = None) -> Response:
        return Response(build_employee_report(self.get_object()))


# -----------------------------------------------------------------------------
# Trackable resources
# -----------------------------------------------------------------------------

@crud_schema("Assets", "asset")
class AssetViewSet(AssetOpsMixin, AuditedModelViewSet):
    """Asset CRUD plus assign/unassign/transfer (see `AssetOpsMixin`)."""
    queryset = Asset.objects.select_related("item", "project").all()
    serializer_class = AssetSerializer
    filterset_fields = ["status", "item", "item__item_category", "project", "condition", "location"]
    search_fields = ["asset_tag", "name", "serial_number", "po_number", "location", "item__name"]
    ordering_fields = ["asset_tag", "name", "status", "created_at", "updated_at"]
    ordering = ["asset_tag"]

    def get_queryset(self):
        open_rows = EmployeeAsset.objects.filter(status=AssignmentStatus.ASSIGNED).select_related("employee")
        return super().get_queryset().prefetch_related(
            Prefetch("employee_assets", queryset=open_rows, to_attr="open_assignments")
        )


@crud_schema("SIM providers", "SIM provider")
class SimProviderViewSet(AuditedModelViewSet):
    queryset = SimProvider.objects.all()
    serializer_class = SimProviderSerializer
    filterset_fields = ["is_active"]
    search_fields = ["name", "contact_info"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


@crud_schema("SIM types", "SIM type")
class SimTypeViewSet(AuditedModelViewSet):
    queryset = SimType.objects.all()
    serializer_class = SimTypeSerializer
    filterset_fields = ["is_active"]
    search_fields = ["name"]
    ordering_fields = ["name", "created_at"]
    ordering = ["name"]


@crud_schema("SIM card plans", "SIM card plan")
class SimCardPlanViewSet(AuditedModelViewSet):
    queryset = SimCardPlan.objects.select_related("provider").all()
    serializer_class = SimCardPlanSerializer
    filterset_fields = ["is_active", "provider"]
    search_fields = ["name", "provider__name"]
    ordering_fields = ["name", "monthly_fee", "created_at"]
    ordering = ["name"]


@crud_schema("SIM cards", "SIM card")
class SimCardViewSet(SimCardOpsMixin, AuditedModelViewSet):
    """SIM card CRUD plus assign/unassign (see `SimCardOpsMixin`)."""
    queryset = SimCard.objects.select_related(
        "sim_type", "sim_card_plan", "sim_provider", "project", "assigned_to"
    ).all()
    serializer_class = SimCardSerializer
    filterset_fields = ["sim_status", "sim_type", "sim_card_plan", "sim_provider", "project", "assigned_to"]
    search_fields = ["sim_account_no", "sim_service_no", "sim_serial_no"]
    ordering_fields = ["sim_service_no", "sim_start_date", "created_at"]
    ordering = ["sim_service_no"]


@crud_schema("Software licenses", "software license")
class SoftwareLicenseViewSet(SoftwareLicenseOpsMixin, AuditedModelViewSet):
    """Software license CRUD plus seat assignment (see `SoftwareLicenseOpsMixin`)."""
    queryset = SoftwareLicense.objects.select_related("project").all()
    serializer_class = SoftwareLicenseSerializer
    filterset_fields = ["status", "project", "vendor", "license_type"]
    search_fields = ["software_name", "vendor", "license_type", "po_number"]
    ordering_fields = ["software_name", "expiry_date", "purchase_date", "created_at"]
    ordering = ["software_name"]


@crud_schema("Accessories", "accessory")
class AccessoryViewSet(AccessoryOpsMixin, AuditedModelViewSet):
    """Accessory CRUD plus quantity-based hand-out/return (see `AccessoryOpsMixin`)."""
    queryset = Accessory.objects.all()
    serializer_class = AccessorySerializer
    filterset_fields = ["status"]
    search_fields = ["name", "description"]
    ordering_fields = ["name", "quantity_available", "created_at"]
    ordering = ["name"]


# -----------------------------------------------------------------------------
# Purchasing
# -----------------------------------------------------------------------------

@crud_schema("Purchase orders", "purchase order")
class PurchaseOrderViewSet(AuditedModelViewSet):
    """Purchase orders with nested lines; deleting an order removes its lines."""
    queryset = PurchaseOrder.objects.select_related("supplier", "project", "requested_by").prefetch_related(
        "items__item"
    )
    serializer_class = PurchaseOrderSerializer
    filterset_fields = ["status", "supplier", "project", "requested_by"]
    search_fields = ["po_number", "notes", "supplier__name", "project__name"]
    ordering_fields = ["po_date", "po_number", "status", "created_at"]
    ordering = ["-po_date", "po_number"]


# -----------------------------------------------------------------------------
# Assignment records (read-only)
# -----------------------------------------------------------------------------

class AssignmentViewSet(viewsets.ReadOnlyModelViewSet):
    lookup_value_regex = UUID_LOOKUP
    filterset_fields = ["status", "employee"]
    ordering_fields = ["assigned_date", "returned_date"]
    ordering = ["-assigned_date"]


@extend_schema_view(
    list=extend_schema(tags=["Assignments"], description="Asset assignment rows (open and returned)."),
    retrieve=extend_schema(tags=["Assignments"]),
)
class AssetAssignmentViewSet(AssignmentViewSet):
    queryset = EmployeeAsset.objects.select_related("employee", "asset").all()
    serializer_class = EmployeeAssetSerializer
    filterset_fields = AssignmentViewSet.filterset_fields + ["asset"]


@extend_schema_view(
    list=extend_schema(tags=["Assignments"], description="SIM card assignment rows."),
    retrieve=extend_schema(tags=["Assignments"]),
)
class SimCardAssignmentViewSet(AssignmentViewSet):
    queryset = EmployeeSimCard.objects.select_related("employee", "sim_card").all()
    serializer_class = EmployeeSimCardSerializer
    filterset_fields = AssignmentViewSet.filterset_fields + ["sim_card"]


@extend_schema_view(
    list=extend_schema(tags=["Assignments"], description="Software license seat rows."),
    retrieve=extend_schema(tags=["Assignments"]),
)
class SoftwareLicenseAssignmentViewSet(AssignmentViewSet):
    queryset = EmployeeSoftwareLicense.objects.select_related("employee", "software_license").all()
    serializer_class = EmployeeSoftwareLicenseSerializer
    filterset_fields = AssignmentViewSet.filterset_fields + ["software_license"]


@extend_schema_view(
    list=extend_schema(tags=["Assignments"], description="Accessory hand-out rows."),
    retrieve=extend_schema(tags=["Assignments"]),
)
class AccessoryAssignmentViewSet(AssignmentViewSet):
    queryset = EmployeeAccessory.objects.select_related("employee", "accessory").all()
    serializer_class = EmployeeAccessorySerializer
    filterset_fields = AssignmentViewSet.filterset_fields + ["accessory"]
