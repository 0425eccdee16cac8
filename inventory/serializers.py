"""
DRF serializers for inventory entities, assignment records and the audit log.

Goals
-----
- Thin, explicit serializers over `inventory.models`; audit columns
  (`id`, `created_*`, `updated_*`) are always read-only and set by the views.
- Related rows are written by id and echoed back with a `<relation>_display`
  string for UIs.
- Uniqueness failures carry the DRF code `unique`, which the project exception
  handler renders as 409. Optional unique columns (employee email, asset serial
  number) are checked here because blank values may repeat.
- Cross-field rules live in the model's `clean()`; the base serializer runs it
  against the row as it would look after the write, so partial updates are
  checked against stored values.

Assignment state
----------------
Assets cannot enter or leave `ASSIGNED` and SIM cards cannot change holder
through plain create/update; those transitions belong to the assign/unassign
endpoints (`inventory.assignments`).
"""

from __future__ import annotations

import copy

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from .models import (
    Accessory,
    Asset,
    AssetStatus,
    AuditLog,
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
    PurchaseOrderItem,
    SimCard,
    SimCardPlan,
    SimProvider,
    SimType,
    SoftwareLicense,
    SubDepartment,
    Supplier,
)

AUDIT_FIELDS = ["id", "created_at", "updated_at", "created_by", "updated_by"]


class AuditedModelSerializer(serializers.ModelSerializer):
    """Base: audit columns are read-only; the model's `clean()` rules apply to every write."""

    class Meta:
        read_only_fields = AUDIT_FIELDS

    def validate(self, attrs):
        attrs = super().validate(attrs)
        model = self.Meta.model
        candidate = copy.copy(self.instance) if self.instance is not None else model()
        concrete = {f.name for f in model._meta.concrete_fields}
        for name, value in attrs.items():
            if name in concrete:
                setattr(candidate, name, value)
        try:
            candidate.clean()
        except DjangoValidationError as exc:
            raise serializers.ValidationError(serializers.as_serializer_error(exc))
        return attrs

    def _current(self, attrs: dict, name: str):
        """Value of `name` after this write (incoming value, else the stored one)."""
        if name in attrs:
            return attrs[name]
        return getattr(self.instance, name, None) if self.instance is not None else None

    def _ensure_unique_when_set(self, field: str, value, *, iexact: bool = False):
        if not value:
            return value
        model = self.Meta.model
        lookup = f"{field}__iexact" if iexact else field
        qs = model._default_manager.filter(**{lookup: value})
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError(
                f"{model._meta.verbose_name} with this {field.replace('_', ' ')} already exists.",
                code="unique",
            )
        return value


# ----------------------------
# Master data
# ----------------------------

NAMED_FIELDS = ["id", "name", "description", "status", "created_at", "updated_at", "created_by", "updated_by"]


class CompanySerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = Company
        fields = NAMED_FIELDS


class CostCenterSerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = CostCenter
        fields = ["id", "code", "name", "description", "status"] + AUDIT_FIELDS[1:]


class NationalitySerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = Nationality
        fields = NAMED_FIELDS


class ProjectSerializer(AuditedModelSerializer):
    company_display = serializers.StringRelatedField(source="company", read_only=True)
    cost_center_display = serializers.StringRelatedField(source="cost_center", read_only=True)
    nationality_display = serializers.StringRelatedField(source="nationality", read_only=True)

    class Meta(AuditedModelSerializer.Meta):
        model = Project
        fields = [
            "id",
            "code",
            "name",
            "description",
            "status",
            "company",
            "company_display",
            "cost_center",
            "cost_center_display",
            "nationality",
            "nationality_display",
        ] + AUDIT_FIELDS[1:]


class DepartmentSerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = Department
        fields = NAMED_FIELDS


class SubDepartmentSerializer(AuditedModelSerializer):
    department_display = serializers.StringRelatedField(source="department", read_only=True)

    class Meta(AuditedModelSerializer.Meta):
        model = SubDepartment
        fields = ["id", "department", "department_display", "name", "description", "status"] + AUDIT_FIELDS[1:]


class EmployeeCategorySerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = EmployeeCategory
        fields = NAMED_FIELDS


class EmployeePositionSerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = EmployeePosition
        fields = NAMED_FIELDS


class ItemCategorySerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = ItemCategory
        fields = NAMED_FIELDS


class ItemSerializer(AuditedModelSerializer):
    item_category_display = serializers.StringRelatedField(source="item_category", read_only=True)

    class Meta(AuditedModelSerializer.Meta):
        model = Item
        fields = ["id", "item_category", "item_category_display", "name", "description", "status"] + AUDIT_FIELDS[1:]


class SupplierSerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = Supplier
        fields = [
            "id",
            "name",
            "contact_person",
            "email",
            "phone",
            "address",
            "status",
        ] + AUDIT_FIELDS[1:]


# ----------------------------
# Employees
# ----------------------------

class EmployeeSerializer(AuditedModelSerializer):
    full_name = serializers.CharField(read_only=True)
    nationality_display = serializers.StringRelatedField(source="nationality", read_only=True)
    category_display = serializers.StringRelatedField(source="category", read_only=True)
    position_display = serializers.StringRelatedField(source="position", read_only=True)
    department_display = serializers.StringRelatedField(source="department", read_only=True)
    sub_department_display = serializers.StringRelatedField(source="sub_department", read_only=True)
    project_display = serializers.StringRelatedField(source="project", read_only=True)
    company_display = serializers.StringRelatedField(source="company", read_only=True)
    cost_center_display = serializers.StringRelatedField(source="cost_center", read_only=True)

    class Meta(AuditedModelSerializer.Meta):
        model = Employee
        fields = [
            "id",
            "employee_code",
            "first_name",
            "last_name",
            "full_name",
            "email",
            "phone",
            "status",
            "nationality",
            "nationality_display",
            "category",
            "category_display",
            "position",
            "position_display",
            "department",
            "department_display",
            "sub_department",
            "sub_department_display",
            "project",
            "project_display",
            "company",
            "company_display",
            "cost_center",
            "cost_center_display",
        ] + AUDIT_FIELDS[1:]

    def validate_email(self, value: str) -> str:
        return self._ensure_unique_when_set("email", value, iexact=True)


# ----------------------------
# Assets
# ----------------------------

class AssetSerializer(AuditedModelSerializer):
    """
    Physical asset. `status` accepts AVAILABLE/MAINTENANCE/RETIRED directly;
    `assigned_to` shows the current holder (read-only).
    """
    item_display = serializers.StringRelatedField(source="item", read_only=True)
    project_display = serializers.StringRelatedField(source="project", read_only=True)
    assigned_to = serializers.SerializerMethodField()

    class Meta(AuditedModelSerializer.Meta):
        model = Asset
        fields = [
            "id",
            "asset_tag",
            "name",
            "description",
            "serial_number",
            "status",
            "condition",
            "po_number",
            "location",
            "notes",
            "warranty_expiry",
            "item",
            "item_display",
            "project",
            "project_display",
            "assigned_to",
        ] + AUDIT_FIELDS[1:]

    def get_assigned_to(self, obj: Asset):
        if hasattr(obj, "open_assignments"):
            row = obj.open_assignments[0] if obj.open_assignments else None
        else:
            row = obj.open_assignment()
        if row is None:
            return None
        return {"assignment": str(row.pk), "employee": str(row.employee_id), "employee_display": str(row.employee)}

    def validate_serial_number(self, value: str) -> str:
        return self._ensure_unique_when_set("serial_number", value)

    def validate_status(self, value: str) -> str:
        current = getattr(self.instance, "status", None)
        if value == AssetStatus.ASSIGNED and current != AssetStatus.ASSIGNED:
            raise serializers.ValidationError("Use the assign endpoint to assign an asset.")
        if current == AssetStatus.ASSIGNED and value != AssetStatus.ASSIGNED:
            raise serializers.ValidationError("Use the unassign endpoint to return an assigned asset.")
        return value


# ----------------------------
# SIM cards
# ----------------------------

class SimProviderSerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = SimProvider
        fields = ["id", "name", "description", "contact_info", "is_active"] + AUDIT_FIELDS[1:]


class SimTypeSerializer(AuditedModelSerializer):
    class Meta(AuditedModelSerializer.Meta):
        model = SimType
        fields = ["id", "name", "description", "is_active"] + AUDIT_FIELDS[1:]


class SimCardPlanSerializer(AuditedModelSerializer):
    provider_display = serializers.StringRelatedField(source="provider", read_only=True)

    class Meta(AuditedModelSerializer.Meta):
        model = SimCardPlan
        fields = [
            "id",
            "provider",
            "provider_display",
            "name",
            "description",
            "data_limit",
            "monthly_fee",
            "is_active",
        ] + AUDIT_FIELDS[1:]


class SimCardSerializer(AuditedModelSerializer):
    sim_type_display = serializers.StringRelatedField(source="sim_type", read_only=True)
    sim_card_plan_display = serializers.StringRelatedField(source="sim_card_plan", read_only=True)
    sim_provider_display = serializers.StringRelatedField(source="sim_provider", read_only=True)
    project_display = serializers.StringRelatedField(source="project", read_only=True)
    assigned_to_display = serializers.StringRelatedField(source="assigned_to", read_only=True)

    class Meta(AuditedModelSerializer.Meta):
        model = SimCard
        fields = [
            "id",
            "sim_account_no",
            "sim_service_no",
            "sim_serial_no",
            "sim_start_date",
            "sim_status",
            "sim_type",
            "sim_type_display",
            "sim_card_plan",
            "sim_card_plan_display",
            "sim_provider",
            "sim_provider_display",
            "project",
            "project_display",
            "assigned_to",
            "assigned_to_display",
        ] + AUDIT_FIELDS[1:]
        read_only_fields = AUDIT_FIELDS + ["assigned_to"]

    def validate(self, attrs):
        attrs = super().validate(attrs)
        plan = self._current(attrs, "sim_card_plan")
        provider = self._current(attrs, "sim_provider")
        if plan is not None and provider is not None and plan.provider_id != provider.pk:
            raise serializers.ValidationError({"sim_card_plan": "Plan belongs to a different provider."})

        # `assigned_to` is read-only; echoing the current holder back is fine, changing it is not.
        initial = getattr(self, "initial_data", None) or {}
        if "assigned_to" in initial:
            incoming = initial.get("assigned_to") or None
            held = getattr(self.instance, "assigned_to_id", None)
            if (str(incoming) if incoming else None) != (str(held) if held else None):
                raise serializers.ValidationError(
                    {"assigned_to": "Use the assign/unassign endpoints to change the SIM card holder."}
                )
        return attrs


# ----------------------------
# Software licenses
# ----------------------------

class SoftwareLicenseSerializer(AuditedModelSerializer):
    project_display = serializers.StringRelatedField(source="project", read_only=True)
    seats_in_use = serializers.SerializerMethodField()
    seats_free = serializers.SerializerMethodField()

    class Meta(AuditedModelSerializer.Meta):
        model = SoftwareLicense
        fields = [
            "id",
            "software_name",
            "license_key",
            "license_type",
            "seats",
            "seats_in_use",
            "seats_free",
            "vendor",
            "purchase_date",
            "expiry_date",
            "cost",
            "status",
            "notes",
            "po_number",
            "project",
            "project_display",
        ] + AUDIT_FIELDS[1:]

    def get_seats_in_use(self, obj: SoftwareLicense) -> int:
        return obj.seats_in_use()

    def get_seats_free(self, obj: SoftwareLicense):
        return obj.seats_free()

    def validate_seats(self, value):
        if value is not None and self.instance is not None:
            in_use = self.instance.seats_in_use()
            if value < in_use:
                raise serializers.ValidationError(f"{in_use} seats are currently assigned; cannot reduce below that.")
        return value


# ----------------------------
# Accessories
# ----------------------------

class AccessorySerializer(AuditedModelSerializer):
    quantity_assigned = serializers.SerializerMethodField()

    class Meta(AuditedModelSerializer.Meta):
        model = Accessory
        fields = [
            "id",
            "name",
            "description",
            "status",
            "quantity_available",
            "quantity_assigned",
        ] + AUDIT_FIELDS[1:]

    def get_quantity_assigned(self, obj: Accessory) -> int:
        return obj.quantity_assigned()


# ----------------------------
# Purchasing
# ----------------------------

class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    item_display = serializers.StringRelatedField(source="item", read_only=True)
    total_price = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = ["id", "item", "item_display", "quantity", "unit_price", "total_price", "notes"]
        read_only_fields = ["id"]


class PurchaseOrderSerializer(AuditedModelSerializer):
    """
    Purchase order with its lines. `items` is written as a whole: when present
    on create or update it replaces every existing line.
    """
    supplier_display = serializers.StringRelatedField(source="supplier", read_only=True)
    project_display = serializers.StringRelatedField(source="project", read_only=True)
    requested_by_display = serializers.StringRelatedField(source="requested_by", read_only=True)
    items = PurchaseOrderItemSerializer(many=True, required=False)
    item_count = serializers.SerializerMethodField()
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta(AuditedModelSerializer.Meta):
        model = PurchaseOrder
        fields = [
            "id",
            "po_number",
            "po_date",
            "expected_delivery_date",
            "actual_delivery_date",
            "status",
            "notes",
            "supplier",
            "supplier_display",
            "project",
            "project_display",
            "requested_by",
            "requested_by_display",
            "items",
            "item_count",
            "total_amount",
        ] + AUDIT_FIELDS[1:]

    def get_item_count(self, obj: PurchaseOrder) -> int:
        return len(obj.items.all())

    def create(self, validated_data):
        lines = validated_data.pop("items", [])
        order = super().create(validated_data)
        self._write_lines(order, lines)
        return order

    def update(self, instance, validated_data):
        lines = validated_data.pop("items", None)
        order = super().update(instance, validated_data)
        if lines is not None:
            order.items.all().delete()
            self._write_lines(order, lines)
        return order

    def _write_lines(self, order: PurchaseOrder, lines: list[dict]) -> None:
        for line in lines:
            PurchaseOrderItem.objects.create(
                purchase_order=order, created_by=order.updated_by, updated_by=order.updated_by, **line
            )
        # Drop the prefetch cache so the response shows the new lines.
        if hasattr(order, "_prefetched_objects_cache"):
            order._prefetched_objects_cache.pop("items", None)


# ----------------------------
# Assignment records (read-only shapes)
# ----------------------------

ASSIGNMENT_FIELDS = ["id", "employee", "employee_display", "status", "assigned_date", "returned_date", "notes"]


class AssignmentSerializer(serializers.ModelSerializer):
    employee_display = serializers.StringRelatedField(source="employee", read_only=True)

    class Meta:
        read_only_fields = ASSIGNMENT_FIELDS


class EmployeeAssetSerializer(AssignmentSerializer):
    asset_display = serializers.StringRelatedField(source="asset", read_only=True)

    class Meta(AssignmentSerializer.Meta):
        model = EmployeeAsset
        fields = ASSIGNMENT_FIELDS + ["asset", "asset_display"]
        read_only_fields = fields


class EmployeeSimCardSerializer(AssignmentSerializer):
    sim_card_display = serializers.StringRelatedField(source="sim_card", read_only=True)

    class Meta(AssignmentSerializer.Meta):
        model = EmployeeSimCard
        fields = ASSIGNMENT_FIELDS + ["sim_card", "sim_card_display"]
        read_only_fields = fields


class EmployeeSoftwareLicenseSerializer(AssignmentSerializer):
    software_license_display = serializers.StringRelatedField(source="software_license", read_only=True)

    class Meta(AssignmentSerializer.Meta):
        model = EmployeeSoftwareLicense
        fields = ASSIGNMENT_FIELDS + ["software_license", "software_license_display"]
        read_only_fields = fields


class EmployeeAccessorySerializer(AssignmentSerializer):
    accessory_display = serializers.StringRelatedField(source="accessory", read_only=True)

    class Meta(AssignmentSerializer.Meta):
        model = EmployeeAccessory
        fields = ASSIGNMENT_FIELDS + ["accessory", "accessory_display", "quantity"]
        read_only_fields = fields


# ----------------------------
# Audit
# ----------------------------

class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            "id",
            "table_name",
            "record_id",
            "action",
            "changes",
            "actor",
            "request_id",
            "ip",
            "user_agent",
            "created_at",
        ]
        read_only_fields = fields
