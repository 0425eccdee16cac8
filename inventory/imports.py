from __future__ import annotations

"""
CSV import helpers for assets, employees and SIM cards.

Scope
-----
- Streaming readers and normalizers shared by the three importers.
- Size/row caps enforced via settings:
    * MAX_IMPORT_BYTES (default 5,000,000): checked against upload.size.
    * IMPORT_MAX_ROWS (default 50,000): data rows, header excluded.
- Rows are upserts keyed by the natural key of the resource: `asset_tag`,
  `employee_code`, or (`sim_account_no`, `sim_service_no`). Field rules are
  delegated to the resource serializers.

Master data by name
-------------------
Columns such as `department`, `item_category` or `sim_card_plan` carry names,
not ids. Names match existing rows case-insensitively; missing rows are created
on the fly (see `_MasterData`).

Holders
-------
`assigned_to` holds an employee code. When set, the importer makes that
employee the current holder through `inventory.assignments`, so the assignment
invariant and its audit rows are the same as for the assign endpoints.

Transactions & dry runs
-----------------------
- Each import runs in one transaction and each row in a savepoint, so a failing
  row leaves nothing behind.
- When `dry_run=True` every row is processed, then `transaction.set_rollback(True)`
  discards all writes; reported ids are cleared.

Error reporting contract
------------------------
`ImportResult.errors` holds one dict per failed row with keys row, field
(optional), code and error (text or a serializer error structure). Rows are
numbered as in the file: the header is row 1.
"""

import csv
from dataclasses import dataclass, field
from io import TextIOWrapper
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.conf import settings
from django.core.files.uploadedfile import UploadedFile
from django.db import IntegrityError, models, transaction

from core.exceptions import DomainError
from core.models import actor_name
from inventory import assignments as lifecycle
from inventory.api.mixins import diff, snapshot
from inventory.models import (
    Asset,
    AuditAction,
    Company,
    CostCenter,
    Department,
    Employee,
    EmployeeCategory,
    EmployeePosition,
    Item,
    ItemCategory,
    Nationality,
    Project,
    SimCard,
    SimCardPlan,
    SimCardStatus,
    SimProvider,
    SimType,
    Status,
    SubDepartment,
)
from inventory.serializers import AssetSerializer, EmployeeSerializer, SimCardSerializer

# Spreadsheet placeholders that mean "no value".
PLACEHOLDERS = {"-", "--", "n/a", "na", "none", "null"}
DEFAULT_ITEM_CATEGORY = "Other"

AuditHook = Callable[[models.Model, str, dict], Any]


@dataclass
class ImportResult:
    """Result envelope returned by import runners.

    Attributes:
        rows_ok: Rows created or updated.
        rows_failed: Rows rejected; see `errors`.
        errors: Per-row error objects.
        created_ids: Ids of new rows (empty for dry runs).
        updated_ids: Ids of existing rows that were updated (empty for dry runs).
    """
    rows_ok: int = 0
    rows_failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    created_ids: List[str] = field(default_factory=list)
    updated_ids: List[str] = field(default_factory=list)

    def fail(self, idx: int, code: str, error: Any, field_name: Optional[str] = None) -> None:
        self.rows_failed += 1
        entry: Dict[str, Any] = {"row": idx, "code": code, "error": error}
        if field_name:
            entry["field"] = field_name
        self.errors.append(entry)


class RowError(Exception):
    """A row-level failure carrying the column at fault."""

    def __init__(self, field_name: str, code: str, error: Any) -> None:
        super().__init__(error)
        self.field_name = field_name
        self.code = code
        self.error = error


# ---------------------------------------------------------------------------
# Size & CSV access
# ---------------------------------------------------------------------------

def _ensure_size(upload: UploadedFile) -> None:
    """
    Raises:
        ValueError: when the stated file size exceeds MAX_IMPORT_BYTES.
    """
    max_bytes = int(getattr(settings, "MAX_IMPORT_BYTES", 5_000_000))
    size = upload.size or 0
    if size > max_bytes:
        raise ValueError(f"File too large (>{max_bytes} bytes).")


def open_csv(upload: UploadedFile) -> Iterable[Dict[str, str]]:
    """
    Yield one dict per data row of an uploaded CSV (UTF-8, BOM tolerated).

    Raises:
        ValueError: when the file is too large or has no header row.
    """
    _ensure_size(upload)
    text = TextIOWrapper(upload.file, encoding="utf-8-sig", newline="")
    reader = csv.DictReader(text)
    if not reader.fieldnames:
        raise ValueError("Missing header row.")
    for row in reader:
        # Header names are matched case-insensitively.
        yield {(k or "").strip().lower(): v for k, v in row.items()}


def _row_cap_exceeded(idx: int) -> bool:
    """True once the data row at file line `idx` is past IMPORT_MAX_ROWS."""
    max_rows = int(getattr(settings, "IMPORT_MAX_ROWS", 50_000))
    if max_rows <= 0:
        return False
    return (idx - 1) > max_rows


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------

def _normalize_str(v: Any) -> str:
    if v is None:
        return ""
    return str(v).strip()


def _optional(v: Any) -> str:
    """Trimmed value with spreadsheet placeholders ("-", "n/a") mapped to blank."""
    s = _normalize_str(v)
    return "" if s.lower() in PLACEHOLDERS else s


def _normalize_choice(choice_cls, value: Any) -> str:
    """
    Accept the canonical value or the label, case-insensitively.

    Raises:
        ValueError: when the value matches neither.
    """
    s = _normalize_str(value)
    lookup = {}
    for val, label in choice_cls.choices:
        lookup[val.lower()] = val
        lookup[label.lower()] = val
    key = s.lower().replace("-", " ").replace("_", " ")
    if s.lower() in lookup:
        return lookup[s.lower()]
    if key in lookup:
        return lookup[key]
    raise ValueError(f"Invalid choice '{s}'. Allowed: {', '.join(v for v, _ in choice_cls.choices)}")


def _require_fields(row: Dict[str, Any], required: Iterable[str]) -> List[str]:
    """Required columns absent from the header."""
    return [col for col in required if col not in row]


def _require_values(row: Dict[str, Any], required: Iterable[str]) -> None:
    for col in required:
        if not _normalize_str(row.get(col)):
            raise RowError(col, "required", "This field is required.")


class _MasterData:
    """
    Case-insensitive name lookups for master data, creating missing rows.

    Lookups are cached for the run. Rows are created outside the per-row
    savepoint, so a rejected row keeps the master data it introduced.
    """

    def __init__(self, actor: str) -> None:
        self.actor = actor
        self._cache: Dict[tuple, models.Model] = {}

    def _stamped(self, model, column: str, **values):
        try:
            with transaction.atomic():
                return model.objects.create(created_by=self.actor, updated_by=self.actor, **values)
        except IntegrityError as exc:
            name = values["name"]
            raise RowError(column, "invalid", f"Cannot create {model._meta.verbose_name} '{name}'.") from exc

    def named(self, model, column: str, value: Any, **scope):
        name = _optional(value)
        if not name:
            return None
        max_length = model._meta.get_field("name").max_length
        if len(name) > max_length:
            raise RowError(column, "invalid", f"Ensure this value has at most {max_length} characters.")
        key = (model, name.lower(), tuple(sorted((k, v.pk) for k, v in scope.items())))
        if key not in self._cache:
            obj = model.objects.filter(name__iexact=name, **scope).first()
            self._cache[key] = obj or self._stamped(model, column, name=name, **scope)
        return self._cache[key]

    def coded(self, model, column: str, value: Any):
        """Projects and cost centers: match on code or name; new rows use the name as code."""
        name = _optional(value)
        if not name:
            return None
        code_length = model._meta.get_field("code").max_length
        name_length = model._meta.get_field("name").max_length
        if len(name) > name_length:
            raise RowError(column, "invalid", f"Ensure this value has at most {name_length} characters.")
        key = (model, name.lower())
        if key not in self._cache:
            obj = (
                model.objects.filter(code__iexact=name).first()
                or model.objects.filter(name__iexact=name).first()
            )
            self._cache[key] = obj or self._stamped(model, column, code=name[:code_length], name=name)
        return self._cache[key]


def _employee_by_code(column: str, value: Any) -> Optional[Employee]:
    code = _optional(value)
    if not code:
        return None
    employee = Employee.objects.filter(employee_code__iexact=code).first()
    if employee is None:
        raise RowError(column, "invalid_fk", f"No employee with code '{code}'.")
    return employee


def _pk(obj) -> Optional[str]:
    return str(obj.pk) if obj is not None else None


# ---------------------------------------------------------------------------
# Shared upsert loop
# ---------------------------------------------------------------------------

def _upsert(
    serializer_cls,
    instance,
    payload: Dict[str, Any],
    actor: str,
    audit: Optional[AuditHook],
):
    """Validate `payload` through the resource serializer and save; returns (obj, created)."""
    ser = serializer_cls(instance, data=payload, partial=instance is not None)
    if not ser.is_valid():
        raise RowError("", "invalid", ser.errors)
    if instance is None:
        obj = ser.save(created_by=actor, updated_by=actor)
        if audit:
            audit(obj, AuditAction.CREATE, diff(None, snapshot(obj)))
        return obj, True
    before = snapshot(instance)
    obj = ser.save(updated_by=actor)
    changes = diff(before, snapshot(obj))
    if audit and changes:
        audit(obj, AuditAction.UPDATE, changes)
    return obj, False


def _run(rows, required, dry_run: bool, prepare_row) -> ImportResult:
    """
    Drive the rows through one transaction.

    `prepare_row(idx, row)` resolves lookups and master data and returns a
    `write()` callable; `write() -> (obj, created)` runs in a savepoint of its own.
    """
    result = ImportResult()
    with transaction.atomic():
        for idx, row in enumerate(rows, start=2):
            if _row_cap_exceeded(idx):
                break
            missing = _require_fields(row, required)
            if missing:
                result.fail(idx, "missing_columns", missing, "header")
                continue
            try:
                write = prepare_row(idx, row)
                with transaction.atomic():
                    obj, created = write()
            except RowError as exc:
                result.fail(idx, exc.code, exc.error, exc.field_name or None)
                continue
            except DomainError as exc:
                result.fail(idx, exc.code, str(exc.detail), "assigned_to")
                continue
            result.rows_ok += 1
            (result.created_ids if created else result.updated_ids).append(str(obj.pk))
        if dry_run:
            transaction.set_rollback(True)
            result.created_ids = []
            result.updated_ids = []
    return result


# ---------------------------------------------------------------------------
# Import runners
# ---------------------------------------------------------------------------

ASSET_COLUMNS = ("asset_tag", "asset_name")


def import_assets(
    user,
    rows: Iterable[Dict[str, str]],
    *,
    project: Optional[Project] = None,
    dry_run: bool = False,
    audit: Optional[AuditHook] = None,
) -> ImportResult:
    """
    Create or update assets keyed by `asset_tag`.

    Columns: asset_tag, asset_name (required); item_category, item, serial_no,
    condition, location, po_number, description, warranty_expiry, assigned_to.
    Blank optional cells leave existing values untouched. A tag repeated within
    the file is rejected on its second occurrence. `project`, when given, is
    set on every imported asset.
    """
    actor = actor_name(user)
    master = _MasterData(actor)
    seen: Dict[str, int] = {}

    def prepare_row(idx: int, row: Dict[str, str]):
        _require_values(row, ASSET_COLUMNS)
        tag = _normalize_str(row["asset_tag"])
        if tag.lower() in seen:
            raise RowError(
                "asset_tag", "duplicate_in_file", f"Asset tag '{tag}' already appears on row {seen[tag.lower()]}."
            )
        seen[tag.lower()] = idx

        holder = _employee_by_code("assigned_to", row.get("assigned_to"))
        item = None
        if _optional(row.get("item")):
            category = master.named(
                ItemCategory, "item_category", _optional(row.get("item_category")) or DEFAULT_ITEM_CATEGORY
            )
            item = master.named(Item, "item", row.get("item"), item_category=category)

        payload: Dict[str, Any] = {"asset_tag": tag, "name": _normalize_str(row["asset_name"])}
        optional = {
            "serial_number": _optional(row.get("serial_no")),
            "condition": _optional(row.get("condition")),
            "location": _optional(row.get("location")),
            "po_number": _optional(row.get("po_number")),
            "description": _optional(row.get("description")),
            "warranty_expiry": _optional(row.get("warranty_expiry")),
        }
        payload.update({k: v for k, v in optional.items() if v})
        if item is not None:
            payload["item"] = _pk(item)
        if project is not None:
            payload["project"] = _pk(project)
        instance = Asset.objects.filter(asset_tag__iexact=tag).first()
        if instance is not None:
            payload.pop("asset_tag")

        def write():
            asset, created = _upsert(AssetSerializer, instance, payload, actor, audit)
            if holder is not None:
                _hold_asset(asset, holder, user, audit)
            return asset, created

        return write

    return _run(rows, ASSET_COLUMNS, dry_run, prepare_row)


def _hold_asset(asset: Asset, holder: Employee, user, audit: Optional[AuditHook]) -> None:
    current = asset.open_assignment()
    if current is not None and current.employee_id == holder.pk:
        return
    if current is None:
        opened = lifecycle.assign_asset(asset.pk, holder.pk, notes="CSV import", user=user)
    else:
        closed, opened = lifecycle.transfer_asset(asset.pk, holder.pk, notes="CSV import", user=user)
        if audit:
            audit(asset, AuditAction.UNASSIGN, {"assignment": str(closed.pk), "employee": str(closed.employee_id)})
    if audit:
        audit(asset, AuditAction.ASSIGN, {"assignment": str(opened.pk), "employee": str(opened.employee_id)})


EMPLOYEE_COLUMNS = ("employee_code", "first_name", "last_name")


def import_employees(
    user,
    rows: Iterable[Dict[str, str]],
    *,
    dry_run: bool = False,
    audit: Optional[AuditHook] = None,
) -> ImportResult:
    """
    Create or update employees keyed by `employee_code`.

    Columns: employee_code, first_name, last_name (required); email, phone,
    status, and by name: department, sub_department, company, project,
    nationality, category, position, cost_center.
    """
    actor = actor_name(user)
    master = _MasterData(actor)

    def prepare_row(idx: int, row: Dict[str, str]):
        _require_values(row, EMPLOYEE_COLUMNS)
        code = _normalize_str(row["employee_code"])

        payload: Dict[str, Any] = {
            "employee_code": code,
            "first_name": _normalize_str(row["first_name"]),
            "last_name": _normalize_str(row["last_name"]),
        }
        for name in ("email", "phone"):
            value = _optional(row.get(name))
            if value:
                payload[name] = value
        if _optional(row.get("status")):
            try:
                payload["status"] = _normalize_choice(Status, row["status"])
            except ValueError as exc:
                raise RowError("status", "invalid_choice", str(exc)) from exc

        department = master.named(Department, "department", row.get("department"))
        sub_department = None
        if _optional(row.get("sub_department")):
            if department is None:
                raise RowError("sub_department", "invalid", "A sub-department needs a department.")
            sub_department = master.named(
                SubDepartment, "sub_department", row.get("sub_department"), department=department
            )
        refs = {
            "department": department,
            "sub_department": sub_department,
            "company": master.named(Company, "company", row.get("company")),
            "project": master.coded(Project, "project", row.get("project")),
            "nationality": master.named(Nationality, "nationality", row.get("nationality")),
            "category": master.named(EmployeeCategory, "category", row.get("category")),
            "position": master.named(EmployeePosition, "position", row.get("position")),
            "cost_center": master.coded(CostCenter, "cost_center", row.get("cost_center")),
        }
        payload.update({k: _pk(v) for k, v in refs.items() if v is not None})
        instance = Employee.objects.filter(employee_code__iexact=code).first()
        if instance is not None:
            payload.pop("employee_code")

        return lambda: _upsert(EmployeeSerializer, instance, payload, actor, audit)

    return _run(rows, EMPLOYEE_COLUMNS, dry_run, prepare_row)


SIM_COLUMNS = ("sim_account_no", "sim_service_no")


def import_sim_cards(
    user,
    rows: Iterable[Dict[str, str]],
    *,
    project: Optional[Project] = None,
    dry_run: bool = False,
    audit: Optional[AuditHook] = None,
) -> ImportResult:
    """
    Create or update SIM cards keyed by (`sim_account_no`, `sim_service_no`).

    Columns: sim_account_no, sim_service_no (required); sim_serial_no,
    sim_start_date (ISO date), sim_status, assigned_to, and by name: sim_type,
    sim_provider, sim_card_plan. A plan needs a provider.
    """
    actor = actor_name(user)
    master = _MasterData(actor)

    def prepare_row(idx: int, row: Dict[str, str]):
        _require_values(row, SIM_COLUMNS)
        account = _normalize_str(row["sim_account_no"])
        service = _normalize_str(row["sim_service_no"])
        holder = _employee_by_code("assigned_to", row.get("assigned_to"))

        payload: Dict[str, Any] = {"sim_account_no": account, "sim_service_no": service}
        for name in ("sim_serial_no", "sim_start_date"):
            value = _optional(row.get(name))
            if value:
                payload[name] = value
        if _optional(row.get("sim_status")):
            try:
                payload["sim_status"] = _normalize_choice(SimCardStatus, row["sim_status"])
            except ValueError as exc:
                raise RowError("sim_status", "invalid_choice", str(exc)) from exc

        provider = master.named(SimProvider, "sim_provider", row.get("sim_provider"))
        plan = None
        if _optional(row.get("sim_card_plan")):
            if provider is None:
                raise RowError("sim_card_plan", "invalid", "A SIM card plan needs a provider.")
            plan = master.named(SimCardPlan, "sim_card_plan", row.get("sim_card_plan"), provider=provider)
        refs = {
            "sim_type": master.named(SimType, "sim_type", row.get("sim_type")),
            "sim_provider": provider,
            "sim_card_plan": plan,
            "project": project,
        }
        payload.update({k: _pk(v) for k, v in refs.items() if v is not None})
        instance = SimCard.objects.filter(sim_account_no=account, sim_service_no=service).first()

        def write():
            card, created = _upsert(SimCardSerializer, instance, payload, actor, audit)
            if holder is not None and card.assigned_to_id != holder.pk:
                if card.assigned_to_id is not None:
                    closed = lifecycle.unassign_sim_card(card.pk, notes="CSV import", user=user)
                    if audit:
                        audit(card, AuditAction.UNASSIGN, {"assignment": str(closed.pk), "employee": str(closed.employee_id)})
                opened = lifecycle.assign_sim_card(card.pk, holder.pk, notes="CSV import", user=user)
                if audit:
                    audit(card, AuditAction.ASSIGN, {"assignment": str(opened.pk), "employee": str(opened.employee_id)})
            return card, created

        return write

    return _run(rows, SIM_COLUMNS, dry_run, prepare_row)
