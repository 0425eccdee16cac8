"""
Assignment lifecycle: hand resources to employees and take them back.

Each operation is one locked load-check-mutate-save cycle:

1. open `transaction.atomic()` and lock the resource row (`select_for_update`);
2. load the employee and check the business rules;
3. create or close the assignment row (`ASSIGNED` → `RETURNED`);
4. move the resource flag (asset status, SIM `assigned_to`, accessory stock).

Rules shared by every resource
------------------------------
- Unknown resource, employee or assignment → `NotFoundError` (404).
- Inactive employee (or inactive license / SIM / accessory) → `BusinessRuleError` (400).
- A single-holder resource (asset, SIM card) that already has an open row, or an
  employee who already holds a seat of the same license → `ConflictError`
  code `already_assigned` (409).
- License seats or accessory stock exhausted → `ConflictError` code `no_capacity`.
- Returning without an open row → `NotFoundError`.

Callers pass the acting `user` so rows carry `created_by`/`updated_by`; the HTTP
layer writes the matching audit entries.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple, Type

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models, transaction

from core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from inventory.models import (
    Accessory,
    Asset,
    AssetStatus,
    AssignmentStatus,
    Employee,
    EmployeeAccessory,
    EmployeeAsset,
    EmployeeSimCard,
    EmployeeSoftwareLicense,
    SimCard,
    SimCardStatus,
    SoftwareLicense,
    SoftwareLicenseStatus,
    Status,
)

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Loading helpers
# -----------------------------------------------------------------------------

def _get(model: Type[models.Model], pk, label: str, *, lock: bool = False):
    qs = model._default_manager.all()
    if lock:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=pk)
    except (model.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"{label} not found.", resource=label.lower().replace(" ", "_"), id=str(pk))


def _active_employee(employee_id) -> Employee:
    employee = _get(Employee, employee_id, "Employee")
    if employee.status != Status.ACTIVE:
        raise BusinessRuleError(
            f"Employee '{employee.employee_code}' is inactive and cannot receive assignments.",
            code="employee_inactive",
        )
    return employee


def _append_note(existing: str, new: str) -> str:
    new = (new or "").strip()
    if not new:
        return existing
    return f"{existing}\n{new}" if existing else new


# -----------------------------------------------------------------------------
# Assets
# -----------------------------------------------------------------------------

def assign_asset(asset_id, employee_id, *, notes: str = "", user=None) -> EmployeeAsset:
    """Give an AVAILABLE asset to an active employee; the asset becomes ASSIGNED."""
    with transaction.atomic():
        asset: Asset = _get(Asset, asset_id, "Asset", lock=True)
        employee = _active_employee(employee_id)

        if asset.status == AssetStatus.ASSIGNED or asset.employee_assets.filter(
            status=AssignmentStatus.ASSIGNED
        ).exists():
            raise ConflictError(f"Asset '{asset.asset_tag}' is already assigned.", code="already_assigned")
        if asset.status != AssetStatus.AVAILABLE:
            raise ConflictError(
                f"Asset '{asset.asset_tag}' is not available (status {asset.status}).",
                code="not_available",
                status=asset.status,
            )

        row = EmployeeAsset(employee=employee, asset=asset, notes=notes or "")
        row.stamp(user)
        row.save()

        asset.status = AssetStatus.ASSIGNED
        asset.stamp(user)
        asset.save(update_fields=["status", "updated_by", "updated_at"])

    logger.info("asset %s assigned to employee %s", asset.asset_tag, employee.employee_code)
    return row


def unassign_asset(asset_id, *, notes: str = "", user=None) -> EmployeeAsset:
    """Close the asset's open assignment; the asset goes back to AVAILABLE."""
    with transaction.atomic():
        asset: Asset = _get(Asset, asset_id, "Asset", lock=True)
        row = (
            asset.employee_assets.select_for_update()
            .filter(status=AssignmentStatus.ASSIGNED)
            .select_related("employee")
            .first()
        )
        if row is None:
            raise NotFoundError(f"No active assignment found for asset '{asset.asset_tag}'.")

        row.close(notes)
        row.stamp(user)
        row.save()

        asset.status = AssetStatus.AVAILABLE
        asset.stamp(user)
        asset.save(update_fields=["status", "updated_by", "updated_at"])

    logger.info("asset %s returned by employee %s", asset.asset_tag, row.employee.employee_code)
    return row


def transfer_asset(asset_id, employee_id, *, notes: str = "", user=None) -> Tuple[EmployeeAsset, EmployeeAsset]:
    """Move an assigned asset to another employee: close the open row, open a new one."""
    with transaction.atomic():
        asset: Asset = _get(Asset, asset_id, "Asset", lock=True)
        current = asset.employee_assets.filter(status=AssignmentStatus.ASSIGNED).first()
        if current is None:
            raise NotFoundError(f"No active assignment found for asset '{asset.asset_tag}'.")
        target = _active_employee(employee_id)
        if current.employee_id == target.pk:
            raise ConflictError(
                f"Asset '{asset.asset_tag}' is already assigned to this employee.", code="already_assigned"
            )

        closed = unassign_asset(asset.pk, notes=notes or f"Transferred to {target.employee_code}", user=user)
        opened = assign_asset(asset.pk, target.pk, notes=notes, user=user)
    return closed, opened


# -----------------------------------------------------------------------------
# SIM cards
# -----------------------------------------------------------------------------

def assign_sim_card(sim_card_id, employee_id, *, notes: str = "", user=None) -> EmployeeSimCard:
    """Give an unheld, ACTIVE SIM card to an active employee."""
    with transaction.atomic():
        card: SimCard = _get(SimCard, sim_card_id, "SIM card", lock=True)
        employee = _active_employee(employee_id)

        if card.assigned_to_id is not None or card.employee_sim_cards.filter(
            status=AssignmentStatus.ASSIGNED
        ).exists():
            raise ConflictError(f"SIM card '{card.sim_service_no}' is already assigned.", code="already_assigned")
        if card.sim_status != SimCardStatus.ACTIVE:
            raise BusinessRuleError(
                f"SIM card '{card.sim_service_no}' is {card.sim_status.lower()} and cannot be assigned.",
                code="sim_card_inactive",
            )

        row = EmployeeSimCard(employee=employee, sim_card=card, notes=notes or "")
        row.stamp(user)
        row.save()

        card.assigned_to = employee
        card.stamp(user)
        card.save(update_fields=["assigned_to", "updated_by", "updated_at"])

    logger.info("sim card %s assigned to employee %s", card.sim_service_no, employee.employee_code)
    return row


def unassign_sim_card(sim_card_id, *, notes: str = "", user=None) -> EmployeeSimCard:
    with transaction.atomic():
        card: SimCard = _get(SimCard, sim_card_id, "SIM card", lock=True)
        row = (
            card.employee_sim_cards.select_for_update()
            .filter(status=AssignmentStatus.ASSIGNED)
            .select_related("employee")
            .first()
        )
        if row is None:
            raise NotFoundError(f"No active assignment found for SIM card '{card.sim_service_no}'.")

        row.close(notes)
        row.stamp(user)
        row.save()

        card.assigned_to = None
        card.stamp(user)
        card.save(update_fields=["assigned_to", "updated_by", "updated_at"])

    logger.info("sim card %s returned by employee %s", card.sim_service_no, row.employee.employee_code)
    return row


# -----------------------------------------------------------------------------
# Software licenses (multi-seat)
# -----------------------------------------------------------------------------

def assign_software_license(license_id, employee_id, *, notes: str = "", user=None) -> EmployeeSoftwareLicense:
    """Take one seat of an ACTIVE license for an employee who does not hold one yet."""
    with transaction.atomic():
        lic: SoftwareLicense = _get(SoftwareLicense, license_id, "Software license", lock=True)
        if lic.status != SoftwareLicenseStatus.ACTIVE:
            raise BusinessRuleError(
                f"Software license '{lic.software_name}' is not active.", code="license_inactive"
            )
        employee = _active_employee(employee_id)

        if lic.employee_licenses.filter(employee=employee, status=AssignmentStatus.ASSIGNED).exists():
            raise ConflictError(
                f"Employee '{employee.employee_code}' already holds a seat of '{lic.software_name}'.",
                code="already_assigned",
            )
        in_use = lic.seats_in_use()
        if lic.seats is not None and in_use >= lic.seats:
            raise ConflictError(
                f"No available seats for '{lic.software_name}' ({in_use}/{lic.seats} in use).",
                code="no_capacity",
                seats=lic.seats,
                in_use=in_use,
            )

        row = EmployeeSoftwareLicense(employee=employee, software_license=lic, notes=notes or "")
        row.stamp(user)
        row.save()

    logger.info("license %s seat assigned to employee %s", lic.software_name, employee.employee_code)
    return row


def _close_license_row(row: EmployeeSoftwareLicense, notes: str, user) -> EmployeeSoftwareLicense:
    row.close(notes)
    row.stamp(user)
    row.save()
    logger.info(
        "license %s seat returned by employee %s", row.software_license.software_name, row.employee.employee_code
    )
    return row


def unassign_license_assignment(assignment_id, *, notes: str = "", user=None) -> EmployeeSoftwareLicense:
    """Return the seat held by one assignment row (addressed by the row id)."""
    with transaction.atomic():
        try:
            row = (
                EmployeeSoftwareLicense.objects.select_for_update()
                .select_related("employee", "software_license")
                .filter(pk=assignment_id, status=AssignmentStatus.ASSIGNED)
                .first()
            )
        except DjangoValidationError:
            row = None
        if row is None:
            raise NotFoundError("Active software license assignment not found.")
        return _close_license_row(row, notes, user)


def unassign_software_license(license_id, employee_id, *, notes: str = "", user=None) -> EmployeeSoftwareLicense:
    """Return the seat `employee_id` holds on `license_id`."""
    with transaction.atomic():
        lic: SoftwareLicense = _get(SoftwareLicense, license_id, "Software license", lock=True)
        row = (
            lic.employee_licenses.select_for_update()
            .select_related("employee", "software_license")
            .filter(employee_id=employee_id, status=AssignmentStatus.ASSIGNED)
            .first()
        )
        if row is None:
            raise NotFoundError(f"Employee holds no active seat of '{lic.software_name}'.")
        return _close_license_row(row, notes, user)


# -----------------------------------------------------------------------------
# Accessories (stocked, quantity based)
# -----------------------------------------------------------------------------

def assign_accessory(accessory_id, employee_id, *, quantity: int = 1, notes: str = "", user=None) -> EmployeeAccessory:
    """
    Hand `quantity` units to an employee, taking them out of stock.

    An employee holds at most one open row per accessory; a second hand-out adds
    to that row's quantity.
    """
    if quantity < 1:
        raise BusinessRuleError("Quantity must be at least 1.", code="invalid_quantity")

    with transaction.atomic():
        acc: Accessory = _get(Accessory, accessory_id, "Accessory", lock=True)
        if acc.status != Status.ACTIVE:
            raise BusinessRuleError(f"Accessory '{acc.name}' is inactive.", code="accessory_inactive")
        employee = _active_employee(employee_id)

        if quantity > acc.quantity_available:
            raise ConflictError(
                f"Only {acc.quantity_available} unit(s) of '{acc.name}' in stock.",
                code="no_capacity",
                available=acc.quantity_available,
                requested=quantity,
            )

        row = (
            acc.employee_accessories.select_for_update()
            .filter(employee=employee, status=AssignmentStatus.ASSIGNED)
            .first()
        )
        if row is None:
            row = EmployeeAccessory(employee=employee, accessory=acc, quantity=quantity, notes=notes or "")
        else:
            row.quantity += quantity
            row.notes = _append_note(row.notes, notes)
        row.stamp(user)
        row.save()

        acc.quantity_available -= quantity
        acc.stamp(user)
        acc.save(update_fields=["quantity_available", "updated_by", "updated_at"])

    logger.info("accessory %s x%d assigned to employee %s", acc.name, quantity, employee.employee_code)
    return row


def unassign_accessory(
    accessory_id, employee_id, *, quantity: Optional[int] = None, notes: str = "", user=None
) -> Tuple[EmployeeAccessory, int]:
    """
    Take back `quantity` units (all held units when omitted) and restock them.

    A partial return lowers the row's quantity; returning everything closes it.
    Returns the row and the number of units returned.
    """
    with transaction.atomic():
        acc: Accessory = _get(Accessory, accessory_id, "Accessory", lock=True)
        row = (
            acc.employee_accessories.select_for_update()
            .select_related("employee")
            .filter(employee_id=employee_id, status=AssignmentStatus.ASSIGNED)
            .first()
        )
        if row is None:
            raise NotFoundError(f"No active assignment of '{acc.name}' found for this employee.")

        returned = row.quantity if quantity is None else quantity
        if returned < 1:
            raise BusinessRuleError("Quantity must be at least 1.", code="invalid_quantity")
        if returned > row.quantity:
            raise BusinessRuleError(
                f"Cannot return {returned} unit(s); employee holds {row.quantity}.",
                code="invalid_quantity",
                held=row.quantity,
            )

        if returned == row.quantity:
            row.close()
            row.notes = _append_note(row.notes, notes)
        else:
            row.quantity -= returned
            row.notes = _append_note(row.notes, notes or f"Returned {returned} unit(s)")
        row.stamp(user)
        row.save()

        acc.quantity_available += returned
        acc.stamp(user)
        acc.save(update_fields=["quantity_available", "updated_by", "updated_at"])

    logger.info("accessory %s x%d returned by employee %s", acc.name, returned, row.employee.employee_code)
    return row, returned
