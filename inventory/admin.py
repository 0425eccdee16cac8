"""
Django admin registrations for inventory models.

Scope & intent
--------------
- Back-office only: staff browse and correct reference data here.
- Assignment rows and the audit log are read-only in admin; assignment state
  changes go through the API so stock counts, holders and audit rows stay
  consistent.
"""

from __future__ import annotations

from django.contrib import admin

from .models import (
    Accessory,
    Asset,
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

AUDIT_READONLY = ("created_at", "updated_at", "created_by", "updated_by")


class AuditedAdmin(admin.ModelAdmin):
    readonly_fields = AUDIT_READONLY


@admin.register(Company, Nationality, Department, EmployeeCategory, EmployeePosition, ItemCategory)
class NamedMasterDataAdmin(AuditedAdmin):
    list_display = ("name", "status", "updated_at")
    list_filter = ("status",)
    search_fields = ("name",)


@admin.register(CostCenter)
class CostCenterAdmin(AuditedAdmin):
    list_display = ("code", "name", "status")
    list_filter = ("status",)
    search_fields = ("code", "name")


@admin.register(Project)
class ProjectAdmin(AuditedAdmin):
    list_display = ("code", "name", "company", "cost_center", "status")
    list_filter = ("status", "company")
    search_fields = ("code", "name", "company__name")


@admin.register(SubDepartment)
class SubDepartmentAdmin(AuditedAdmin):
    list_display = ("name", "department", "status")
    list_filter = ("status", "department")
    search_fields = ("name", "department__name")


@admin.register(Item)
class ItemAdmin(AuditedAdmin):
    list_display = ("name", "item_category", "status")
    list_filter = ("status", "item_category")
    search_fields = ("name",)


@admin.register(Supplier)
class SupplierAdmin(AuditedAdmin):
    list_display = ("name", "contact_person", "email", "phone", "status")
    list_filter = ("status",)
    search_fields = ("name", "contact_person", "email")


@admin.register(Employee)
class EmployeeAdmin(AuditedAdmin):
    """Employees with their organisational placement."""
    list_display = ("employee_code", "first_name", "last_name", "department", "project", "status")
    list_filter = ("status", "department", "company")
    search_fields = ("employee_code", "first_name", "last_name", "email")


@admin.register(Asset)
class AssetAdmin(AuditedAdmin):
    list_display = ("asset_tag", "name", "item", "status", "location", "warranty_expiry")
    list_filter = ("status", "condition")
    search_fields = ("asset_tag", "name", "serial_number")

    def get_readonly_fields(self, request, obj=None):
        # `status` follows the assignment rows once an asset exists.
        return AUDIT_READONLY + (("status",) if obj is not None else ())


@admin.register(SimProvider, SimType)
class SimReferenceAdmin(AuditedAdmin):
    list_display = ("name", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name",)


@admin.register(SimCardPlan)
class SimCardPlanAdmin(AuditedAdmin):
    list_display = ("name", "provider", "data_limit", "monthly_fee", "is_active")
    list_filter = ("is_active", "provider")
    search_fields = ("name",)


@admin.register(SimCard)
class SimCardAdmin(AuditedAdmin):
    list_display = ("sim_service_no", "sim_account_no", "sim_status", "sim_provider", "assigned_to")
    list_filter = ("sim_status", "sim_provider")
    search_fields = ("sim_service_no", "sim_account_no", "sim_serial_no")
    readonly_fields = AUDIT_READONLY + ("assigned_to",)


@admin.register(SoftwareLicense)
class SoftwareLicenseAdmin(AuditedAdmin):
    list_display = ("software_name", "vendor", "seats", "expiry_date", "status")
    list_filter = ("status", "vendor")
    search_fields = ("software_name", "vendor", "license_key")


@admin.register(Accessory)
class AccessoryAdmin(AuditedAdmin):
    list_display = ("name", "quantity_available", "status")
    list_filter = ("status",)
    search_fields = ("name",)


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    fields = ("item", "quantity", "unit_price", "notes")
    extra = 0


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(AuditedAdmin):
    list_display = ("po_number", "po_date", "supplier", "project", "status")
    list_filter = ("status", "supplier")
    search_fields = ("po_number", "supplier__name", "project__name")
    date_hierarchy = "po_date"
    inlines = [PurchaseOrderItemInline]


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(EmployeeAsset, EmployeeSimCard, EmployeeSoftwareLicense)
class AssignmentAdmin(ReadOnlyAdmin):
    list_display = ("__str__", "employee", "status", "assigned_date", "returned_date")
    list_filter = ("status",)
    search_fields = ("employee__employee_code", "employee__last_name")
    date_hierarchy = "assigned_date"


@admin.register(EmployeeAccessory)
class AccessoryAssignmentAdmin(ReadOnlyAdmin):
    list_display = ("accessory", "employee", "quantity", "status", "assigned_date", "returned_date")
    list_filter = ("status", "accessory")
    search_fields = ("employee__employee_code", "employee__last_name", "accessory__name")


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdmin):
    list_display = ("created_at", "action", "table_name", "record_id", "actor", "request_id")
    list_filter = ("action", "table_name")
    search_fields = ("record_id", "actor", "request_id")
    date_hierarchy = "created_at"
