"""
Inventory domain models: organisation master data, employees, the trackable
resources (assets, SIM cards, software licenses, accessories) and the
assignment records linking an employee to a resource.

Every entity inherits `core.models.AuditedModel` (UUID id + audit columns).
Foreign keys use `PROTECT`: rows are only deleted when nothing references them
(see `core.utils.dependents`). Purchase order lines are the one owned
relation: they `CASCADE` with their order.

Assignment invariant
--------------------
A single-holder resource (asset, SIM card) in the assigned state has exactly
one open assignment row (status ASSIGNED, no `returned_date`). The rows are
created and closed only by `inventory.assignments`; the open-row uniqueness
is also backed by partial unique constraints.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from core.models import AuditedModel


class Status(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"


class AssetStatus(models.TextChoices):
    AVAILABLE = "AVAILABLE", "Available"
    ASSIGNED = "ASSIGNED", "Assigned"
    MAINTENANCE = "MAINTENANCE", "Maintenance"
    RETIRED = "RETIRED", "Retired"


class AssignmentStatus(models.TextChoices):
    ASSIGNED = "ASSIGNED", "Assigned"
    RETURNED = "RETURNED", "Returned"


class SimCardStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"
    SUSPENDED = "SUSPENDED", "Suspended"
    EXPIRED = "EXPIRED", "Expired"


class SoftwareLicenseStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"
    EXPIRED = "EXPIRED", "Expired"


class PurchaseOrderStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    PENDING = "PENDING", "Pending"
    APPROVED = "APPROVED", "Approved"
    ORDERED = "ORDERED", "Ordered"
    RECEIVED = "RECEIVED", "Received"
    CANCELLED = "CANCELLED", "Cancelled"


# -----------------------------------------------------------------------------
# Master data
# -----------------------------------------------------------------------------

class NamedMasterData(AuditedModel):
    """Abstract name/description/status row (categories, positions, ...)."""
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=500, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)

    class Meta(AuditedModel.Meta):
        abstract = True
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Company(NamedMasterData):
    class Meta(NamedMasterData.Meta):
        verbose_name_plural = "companies"


class CostCenter(AuditedModel):
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)

    class Meta:
        ordering = ["code"]

    def __str__(self) -> str:
        return f"{self.code} {self.name}"


class Nationality(NamedMasterData):
    class Meta(NamedMasterData.Meta):
        verbose_name_plural = "nationalities"


class Project(AuditedModel):
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    description = models.CharField(max_length=1000, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    company = models.ForeignKey(
        Company, on_delete=models.PROTECT, null=True, blank=True, related_name="projects"
    )
    cost_center = models.ForeignKey(
        CostCenter, on_delete=models.PROTECT, null=True, blank=True, related_name="projects"
    )
    nationality = models.ForeignKey(
        Nationality, on_delete=models.PROTECT, null=True, blank=True, related_name="projects"
    )

    class Meta:
        ordering = ["name"]
        indexes = [models.Index(fields=["company", "status"])]

    def __str__(self) -> str:
        return f"{self.code} {self.name}"


class Department(NamedMasterData):
    pass


class SubDepartment(AuditedModel):
    department = models.ForeignKey(Department, on_delete=models.PROTECT, related_name="sub_departments")
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)

    class Meta:
        ordering = ["department__name", "name"]
        constraints = [
            models.UniqueConstraint(fields=["department", "name"], name="uniq_subdepartment_name_per_department"),
        ]

    def __str__(self) -> str:
        return self.name


class EmployeeCategory(NamedMasterData):
    class Meta(NamedMasterData.Meta):
        verbose_name_plural = "employee categories"


class EmployeePosition(NamedMasterData):
    pass


class ItemCategory(NamedMasterData):
    class Meta(NamedMasterData.Meta):
        verbose_name_plural = "item categories"


class Item(AuditedModel):
    item_category = models.ForeignKey(ItemCategory, on_delete=models.PROTECT, related_name="items")
    name = models.CharField(max_length=200)
    description = models.CharField(max_length=1000, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Supplier(AuditedModel):
    name = models.CharField(max_length=200, unique=True)
    contact_person = models.CharField(max_length=100, blank=True, default="")
    email = models.EmailField(max_length=100, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    address = models.CharField(max_length=500, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


# -----------------------------------------------------------------------------
# Employees
# -----------------------------------------------------------------------------

class Employee(AuditedModel):
    employee_code = models.CharField(max_length=50, unique=True, help_text="Company-issued employee number.")
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    email = models.EmailField(max_length=100, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)

    nationality = models.ForeignKey(Nationality, on_delete=models.PROTECT, null=True, blank=True, related_name="employees")
    category = models.ForeignKey(EmployeeCategory, on_delete=models.PROTECT, null=True, blank=True, related_name="employees")
    position = models.ForeignKey(EmployeePosition, on_delete=models.PROTECT, null=True, blank=True, related_name="employees")
    department = models.ForeignKey(Department, on_delete=models.PROTECT, null=True, blank=True, related_name="employees")
    sub_department = models.ForeignKey(SubDepartment, on_delete=models.PROTECT, null=True, blank=True, related_name="employees")
    project = models.ForeignKey(Project, on_delete=models.PROTECT, null=True, blank=True, related_name="employees")
    company = models.ForeignKey(Company, on_delete=models.PROTECT, null=True, blank=True, related_name="employees")
    cost_center = models.ForeignKey(CostCenter, on_delete=models.PROTECT, null=True, blank=True, related_name="employees")

    class Meta:
        ordering = ["last_name", "first_name"]
        indexes = [
            models.Index(fields=["status"]),
            models.Index(fields=["department"]),
            models.Index(fields=["project"]),
        ]

    def __str__(self) -> str:
        return f"{self.full_name} ({self.employee_code})"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == Status.ACTIVE

    def clean(self):
        super().clean()
        if self.sub_department_id and self.department_id and self.sub_department.department_id != self.department_id:
            raise ValidationError({"sub_department": "Sub-department does not belong to the selected department."})


# -----------------------------------------------------------------------------
# Trackable resources
# -----------------------------------------------------------------------------

class Asset(AuditedModel):
    asset_tag = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    description = models.CharField(max_length=1000, blank=True, default="")
    serial_number = models.CharField(max_length=100, blank=True, default="")
    status = models.CharField(max_length=16, choices=AssetStatus.choices, default=AssetStatus.AVAILABLE)
    condition = models.CharField(max_length=50, blank=True, default="")
    po_number = models.CharField(max_length=50, blank=True, default="")
    location = models.CharField(max_length=200, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    warranty_expiry = models.DateField(null=True, blank=True)
    item = models.ForeignKey(Item, on_delete=models.PROTECT, null=True, blank=True, related_name="assets")
    project = models.ForeignKey(Project, on_delete=models.PROTECT, null=True, blank=True, related_name="assets")

    class Meta:
        ordering = ["asset_tag"]
        indexes = [models.Index(fields=["status"])]

    def __str__(self) -> str:
        return f"{self.asset_tag} {self.name}"

    def open_assignment(self):
        return self.employee_assets.filter(status=AssignmentStatus.ASSIGNED).select_related("employee").first()


class SimProvider(AuditedModel):
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=500, blank=True, default="")
    contact_info = models.CharField(max_length=200, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class SimType(AuditedModel):
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=500, blank=True, default="")
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class SimCardPlan(AuditedModel):
    provider = models.ForeignKey(SimProvider, on_delete=models.PROTECT, related_name="plans")
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    data_limit = models.CharField(max_length=50, blank=True, default="", help_text="e.g. '10GB' or 'Unlimited'.")
    monthly_fee = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(Decimal("0"))]
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class SimCard(AuditedModel):
    sim_account_no = models.CharField(max_length=50)
    sim_service_no = models.CharField(max_length=50)
    sim_serial_no = models.CharField(max_length=50, blank=True, default="")
    sim_start_date = models.DateField(null=True, blank=True)
    sim_status = models.CharField(max_length=16, choices=SimCardStatus.choices, default=SimCardStatus.ACTIVE)
    sim_type = models.ForeignKey(SimType, on_delete=models.PROTECT, null=True, blank=True, related_name="sim_cards")
    sim_card_plan = models.ForeignKey(SimCardPlan, on_delete=models.PROTECT, null=True, blank=True, related_name="sim_cards")
    sim_provider = models.ForeignKey(SimProvider, on_delete=models.PROTECT, null=True, blank=True, related_name="sim_cards")
    project = models.ForeignKey(Project, on_delete=models.PROTECT, null=True, blank=True, related_name="sim_cards")
    # Current holder; mirrors the open EmployeeSimCard row.
    assigned_to = models.ForeignKey(
        "Employee", on_delete=models.PROTECT, null=True, blank=True, related_name="held_sim_cards"
    )

    class Meta:
        ordering = ["sim_service_no"]
        constraints = [
            models.UniqueConstraint(fields=["sim_account_no", "sim_service_no"], name="uniq_sim_account_service"),
        ]

    def __str__(self) -> str:
        return self.sim_service_no


class SoftwareLicense(AuditedModel):
    software_name = models.CharField(max_length=200)
    license_key = models.CharField(max_length=500, blank=True, default="")
    license_type = models.CharField(max_length=100, blank=True, default="")
    seats = models.PositiveIntegerField(
        null=True, blank=True, validators=[MinValueValidator(1)], help_text="Empty means unlimited."
    )
    vendor = models.CharField(max_length=200, blank=True, default="")
    purchase_date = models.DateField(null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    cost = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(Decimal("0"))]
    )
    status = models.CharField(
        max_length=16, choices=SoftwareLicenseStatus.choices, default=SoftwareLicenseStatus.ACTIVE
    )
    notes = models.TextField(blank=True, default="")
    po_number = models.CharField(max_length=50, blank=True, default="")
    project = models.ForeignKey(Project, on_delete=models.PROTECT, null=True, blank=True, related_name="software_licenses")

    class Meta:
        ordering = ["software_name"]

    def __str__(self) -> str:
        return self.software_name

    def clean(self):
        super().clean()
        if self.purchase_date and self.expiry_date and self.expiry_date < self.purchase_date:
            raise ValidationError({"expiry_date": "Expiry date cannot be before the purchase date."})

    def seats_in_use(self) -> int:
        return self.employee_licenses.filter(status=AssignmentStatus.ASSIGNED).count()

    def seats_free(self):
        """Remaining seats, or None when the license is unlimited."""
        if self.seats is None:
            return None
        return max(self.seats - self.seats_in_use(), 0)


class Accessory(AuditedModel):
    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=500, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    quantity_available = models.PositiveIntegerField(default=0, help_text="Units in stock, not handed out.")

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "accessories"

    def __str__(self) -> str:
        return self.name

    def quantity_assigned(self) -> int:
        agg = self.employee_accessories.filter(status=AssignmentStatus.ASSIGNED).aggregate(n=Sum("quantity"))
        return int(agg["n"] or 0)


# -----------------------------------------------------------------------------
# Purchasing
# -----------------------------------------------------------------------------

class PurchaseOrder(AuditedModel):
    po_number = models.CharField(max_length=100, unique=True)
    po_date = models.DateField()
    expected_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=PurchaseOrderStatus.choices, default=PurchaseOrderStatus.DRAFT)
    notes = models.CharField(max_length=1000, blank=True, default="")
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name="purchase_orders")
    project = models.ForeignKey(Project, on_delete=models.PROTECT, related_name="purchase_orders")
    requested_by = models.ForeignKey(
        Employee, on_delete=models.PROTECT, null=True, blank=True, related_name="purchase_orders"
    )

    class Meta:
        ordering = ["-po_date", "po_number"]
        indexes = [models.Index(fields=["status"]), models.Index(fields=["supplier", "po_date"])]

    def __str__(self) -> str:
        return self.po_number

    def clean(self):
        super().clean()
        errors = {}
        for name in ("expected_delivery_date", "actual_delivery_date"):
            value = getattr(self, name)
            if self.po_date and value and value < self.po_date:
                errors[name] = "Delivery date cannot be before the order date."
        if errors:
            raise ValidationError(errors)

    def total_amount(self) -> Decimal:
        return sum((line.total_price for line in self.items.all()), Decimal("0"))


class PurchaseOrderItem(AuditedModel):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name="items")
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="purchase_order_items")
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    notes = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        ordering = ["created_at"]
        verbose_name = "purchase order line"

    def __str__(self) -> str:
        return f"{self.quantity} × {self.item}"

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


# -----------------------------------------------------------------------------
# Assignment records
# -----------------------------------------------------------------------------

class Assignment(AuditedModel):
    """Abstract employee ↔ resource link with a two-state lifecycle."""
    status = models.CharField(max_length=16, choices=AssignmentStatus.choices, default=AssignmentStatus.ASSIGNED)
    assigned_date = models.DateTimeField(default=timezone.now)
    returned_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        abstract = True
        ordering = ["-assigned_date"]

    @property
    def is_open(self) -> bool:
        return self.status == AssignmentStatus.ASSIGNED

    def close(self, notes: str | None = None) -> None:
        """Mark returned now; caller saves."""
        self.status = AssignmentStatus.RETURNED
        self.returned_date = timezone.now()
        if notes:
            self.notes = notes


class EmployeeAsset(Assignment):
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="asset_assignments")
    asset = models.ForeignKey(Asset, on_delete=models.PROTECT, related_name="employee_assets")

    class Meta(Assignment.Meta):
        verbose_name = "asset assignment"
        constraints = [
            models.UniqueConstraint(
                fields=["asset"],
                condition=Q(status=AssignmentStatus.ASSIGNED),
                name="uniq_open_assignment_per_asset",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.asset} → {self.employee}"


class EmployeeSimCard(Assignment):
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="sim_card_assignments")
    sim_card = models.ForeignKey(SimCard, on_delete=models.PROTECT, related_name="employee_sim_cards")

    class Meta(Assignment.Meta):
        verbose_name = "SIM card assignment"
        constraints = [
            models.UniqueConstraint(
                fields=["sim_card"],
                condition=Q(status=AssignmentStatus.ASSIGNED),
                name="uniq_open_assignment_per_sim_card",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.sim_card} → {self.employee}"


class EmployeeSoftwareLicense(Assignment):
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="software_license_assignments")
    software_license = models.ForeignKey(SoftwareLicense, on_delete=models.PROTECT, related_name="employee_licenses")

    class Meta(Assignment.Meta):
        verbose_name = "software license assignment"
        constraints = [
            models.UniqueConstraint(
                fields=["software_license", "employee"],
                condition=Q(status=AssignmentStatus.ASSIGNED),
                name="uniq_open_license_seat_per_employee",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.software_license} → {self.employee}"


class EmployeeAccessory(Assignment):
    employee = models.ForeignKey(Employee, on_delete=models.PROTECT, related_name="accessory_assignments")
    accessory = models.ForeignKey(Accessory, on_delete=models.PROTECT, related_name="employee_accessories")
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta(Assignment.Meta):
        verbose_name = "accessory assignment"
        constraints = [
            models.UniqueConstraint(
                fields=["accessory", "employee"],
                condition=Q(status=AssignmentStatus.ASSIGNED),
                name="uniq_open_accessory_row_per_employee",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} × {self.accessory} → {self.employee}"


# -----------------------------------------------------------------------------
# Audit trail
# -----------------------------------------------------------------------------

class AuditAction(models.TextChoices):
    CREATE = "create", "Create"
    UPDATE = "update", "Update"
    DELETE = "delete", "Delete"
    ASSIGN = "assign", "Assign"
    UNASSIGN = "unassign", "Unassign"


class AuditLog(models.Model):
    """
    Append-only trail of API writes and assignment transitions.

    - `table_name` + `record_id` identify the mutated row (`record_id` is the
      UUID as text so rows outlive the record).
    - `changes`: `{field: [old, new]}` for updates, `{"_after": {...}}` for
      creates, `{"_before": {...}}` for deletes, and a small payload
      (employee, assignment id, quantity) for assign/unassign.
    - `actor` is the username, blank for system writes.
    """
    table_name = models.CharField(max_length=100)
    record_id = models.CharField(max_length=64)
    action = models.CharField(max_length=12, choices=AuditAction.choices)
    changes = models.JSONField(default=dict, blank=True)
    actor = models.CharField(max_length=150, blank=True, default="")

    request_id = models.CharField(max_length=64, blank=True, default="")
    ip = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["table_name", "record_id"]),
            models.Index(fields=["action"]),
            models.Index(fields=["-created_at"]),
        ]
        ordering = ("-created_at", "-id")

    def __str__(self) -> str:  # pragma: no cover
        return f"AuditLog<{self.action} {self.table_name}:{self.record_id}>"
