"""
CSV import API tests: assets, employees and SIM cards.

What these tests verify
-----------------------
- **Assets import**: rows are upserted by `asset_tag` (case-insensitive);
  item categories and items named in the file are created when missing;
  `assigned_to` makes that employee the holder, transferring from a previous
  holder. Blank optional cells leave stored values alone.
- Row-level failures are reported with the file row number, column and code:
  a tag repeated in the file, an unknown employee code, a serializer error.
- A header without a required column fails every row with `missing_columns`.
- `?dry_run=1` reports the same counts but writes nothing, master data included.
- Transport errors: a missing `file` part is 400, an oversized upload is 413,
  an unknown `?project=` is 400.
- **Employees import**: master data by name, choice labels, and the
  sub-department/department pairing.
- **SIM cards import**: provider/plan by name and holder changes.

Notes
-----
- The throttle cache is cleared in `setUp()` so the `imports` scope never
  trips across tests.
"""

from __future__ import annotations

import csv
import io

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from inventory import assignments as lifecycle
from inventory.models import (
    Asset,
    AssetStatus,
    AssignmentStatus,
    AuditAction,
    AuditLog,
    Department,
    Employee,
    EmployeeAsset,
    Item,
    ItemCategory,
    Project,
    SimCard,
    SimCardPlan,
    SimProvider,
    Status,
    SubDepartment,
)


def _csv_bytes(rows, name="import.csv"):
    """
    Build an uploadable CSV (BytesIO) from a list of dict rows.

    The keys of the first row are the header. The buffer carries a `name` so
    the test client sends it as a file part.
    """
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=list(rows[0].keys()))
    writer.writeheader()
    for r in rows:
        writer.writerow(r)
    f = io.BytesIO(output.getvalue().encode("utf-8"))
    f.name = name
    return f


def _asset_row(**values):
    row = dict.fromkeys(
        ("asset_tag", "asset_name", "item_category", "item", "serial_no", "condition", "location", "warranty_expiry", "assigned_to"),
        "",
    )
    row.update(values)
    return row


class ImportTestCase(TestCase):
    def setUp(self):
        cache.clear()
        User = get_user_model()
        self.user = User.objects.create_user(username="importer", password="pw")
        self.client = APIClient()
        self.client.login(username="importer", password="pw")
        self.ada = Employee.objects.create(employee_code="E-1", first_name="Ada", last_name="Lovelace")
        self.alan = Employee.objects.create(employee_code="E-2", first_name="Alan", last_name="Turing")

    def _upload(self, url: str, rows, **params):
        query = "&".join(f"{k}={v}" for k, v in params.items())
        target = f"{url}?{query}" if query else url
        return self.client.post(target, {"file": _csv_bytes(rows)}, format="multipart")


class AssetImportTests(ImportTestCase):
    url = "/api/imports/assets/"

    def test_creates_assets_items_and_holders(self):
        rows = [
            _asset_row(asset_tag="A-100", asset_name="Laptop", item_category="Laptops", item="Laptop 14in",
                       serial_no="SN-1", assigned_to="e-1"),
            _asset_row(asset_tag="A-101", asset_name="Monitor", condition="Good", warranty_expiry="2027-01-31"),
        ]
        r = self._upload(self.url, rows)
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["rows_ok"], 2)
        self.assertEqual(r.data["rows_failed"], 0)
        self.assertEqual(len(r.data["created_ids"]), 2)
        self.assertEqual(r.data["updated_ids"], [])

        laptop = Asset.objects.get(asset_tag="A-100")
        self.assertEqual(laptop.item.name, "Laptop 14in")
        self.assertEqual(laptop.item.item_category.name, "Laptops")
        self.assertEqual(laptop.status, AssetStatus.ASSIGNED)
        self.assertEqual(laptop.open_assignment().employee, self.ada)
        self.assertEqual(laptop.created_by, "importer")

        monitor = Asset.objects.get(asset_tag="A-101")
        self.assertIsNone(monitor.item)
        self.assertEqual(monitor.condition, "Good")
        self.assertEqual(monitor.warranty_expiry.isoformat(), "2027-01-31")

        actions = set(AuditLog.objects.filter(record_id=str(laptop.pk)).values_list("action", flat=True))
        self.assertEqual(actions, {AuditAction.CREATE, AuditAction.ASSIGN})

    def test_existing_tag_is_updated(self):
        asset = Asset.objects.create(asset_tag="A-1", name="Old name", location="HQ")
        r = self._upload(self.url, [_asset_row(asset_tag="a-1", asset_name="New name")])
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["updated_ids"], [str(asset.pk)])

        asset.refresh_from_db()
        self.assertEqual(asset.asset_tag, "A-1")
        self.assertEqual(asset.name, "New name")
        self.assertEqual(asset.location, "HQ")
        self.assertEqual(AuditLog.objects.get(record_id=str(asset.pk)).changes, {"name": ["Old name", "New name"]})

    def test_new_holder_transfers_asset(self):
        asset = Asset.objects.create(asset_tag="A-1", name="Laptop")
        lifecycle.assign_asset(asset.pk, self.ada.pk)

        r = self._upload(self.url, [_asset_row(asset_tag="A-1", asset_name="Laptop", assigned_to="E-2")])
        self.assertEqual(r.data["rows_ok"], 1, r.content)
        self.assertEqual(asset.open_assignment().employee, self.alan)
        self.assertEqual(EmployeeAsset.objects.filter(asset=asset, status=AssignmentStatus.RETURNED).count(), 1)

    def test_row_failures_are_reported(self):
        rows = [
            _asset_row(asset_tag="A-1", asset_name="Laptop"),
            _asset_row(asset_tag="a-1", asset_name="Laptop again"),
            _asset_row(asset_tag="A-2", asset_name="Phone", assigned_to="E-404"),
            _asset_row(asset_tag="A-3", asset_name="Tablet", warranty_expiry="soon"),
            _asset_row(asset_tag="", asset_name="No tag"),
        ]
        r = self._upload(self.url, rows)
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["rows_ok"], 1)
        self.assertEqual(r.data["rows_failed"], 4)

        errors = {e["row"]: e for e in r.data["errors"]}
        self.assertEqual(errors[3]["code"], "duplicate_in_file")
        self.assertEqual(errors[3]["field"], "asset_tag")
        self.assertEqual(errors[4]["code"], "invalid_fk")
        self.assertEqual(errors[4]["field"], "assigned_to")
        self.assertEqual(errors[5]["code"], "invalid")
        self.assertIn("warranty_expiry", errors[5]["error"])
        self.assertEqual(errors[6]["code"], "required")
        self.assertEqual(list(Asset.objects.values_list("asset_tag", flat=True)), ["A-1"])

    def test_inactive_holder_fails_row_and_keeps_nothing(self):
        self.alan.status = Status.INACTIVE
        self.alan.save()
        r = self._upload(self.url, [_asset_row(asset_tag="A-9", asset_name="Laptop", assigned_to="E-2")])
        self.assertEqual(r.data["rows_failed"], 1, r.content)
        self.assertEqual(r.data["errors"][0]["code"], "employee_inactive")
        self.assertFalse(Asset.objects.filter(asset_tag="A-9").exists())

    def test_missing_required_column(self):
        r = self._upload(self.url, [{"asset_tag": "A-1", "location": "HQ"}])
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["rows_failed"], 1)
        self.assertEqual(r.data["errors"][0]["code"], "missing_columns")
        self.assertEqual(r.data["errors"][0]["field"], "header")
        self.assertEqual(r.data["errors"][0]["error"], ["asset_name"])

    def test_dry_run_writes_nothing(self):
        rows = [_asset_row(asset_tag="A-100", asset_name="Laptop", item_category="Laptops", item="Laptop 14in")]
        r = self._upload(self.url, rows, dry_run="1")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["rows_ok"], 1)
        self.assertEqual(r.data["created_ids"], [])
        self.assertFalse(Asset.objects.exists())
        self.assertFalse(ItemCategory.objects.exists())
        self.assertFalse(Item.objects.exists())
        self.assertFalse(AuditLog.objects.exists())

    def test_project_applies_to_every_row(self):
        project = Project.objects.create(code="P-1", name="Rollout")
        r = self._upload(self.url, [_asset_row(asset_tag="A-1", asset_name="Laptop")], project=str(project.pk))
        self.assertEqual(r.data["rows_ok"], 1, r.content)
        self.assertEqual(Asset.objects.get(asset_tag="A-1").project, project)

        r = self._upload(self.url, [_asset_row(asset_tag="A-2", asset_name="Laptop")], project="nope")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("project", r.data)

    def test_missing_file(self):
        r = self.client.post(self.url, {}, format="multipart")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertEqual(r.data, {"file": ["This field is required."]})

    @override_settings(MAX_IMPORT_BYTES=10)
    def test_oversized_upload_is_413(self):
        r = self._upload(self.url, [_asset_row(asset_tag="A-1", asset_name="Laptop")])
        self.assertEqual(r.status_code, 413, r.content)
        self.assertIn("File too large", r.data["file"][0])
        self.assertFalse(Asset.objects.exists())

    def test_requires_auth(self):
        r = APIClient().post(self.url, {"file": _csv_bytes([_asset_row(asset_tag="A-1")])}, format="multipart")
        self.assertEqual(r.status_code, 403, r.content)


class EmployeeImportTests(ImportTestCase):
    url = "/api/imports/employees/"

    def _row(self, **values):
        row = dict.fromkeys(
            ("employee_code", "first_name", "last_name", "email", "status", "department", "sub_department", "project"),
            "",
        )
        row.update(values)
        return row

    def test_creates_employees_with_master_data(self):
        rows = [
            self._row(employee_code="E-10", first_name="Grace", last_name="Hopper", email="grace@example.com",
                      department="IT", sub_department="Support", project="Rollout"),
            self._row(employee_code="E-11", first_name="Edsger", last_name="Dijkstra", status="inactive",
                      department="it"),
        ]
        r = self._upload(self.url, rows)
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["rows_ok"], 2, r.data["errors"])

        grace = Employee.objects.get(employee_code="E-10")
        self.assertEqual(grace.department.name, "IT")
        self.assertEqual(grace.sub_department.department, grace.department)
        self.assertEqual(grace.project.code, "Rollout")
        self.assertEqual(Department.objects.count(), 1)
        self.assertEqual(Employee.objects.get(employee_code="E-11").status, Status.INACTIVE)

    def test_updates_existing_code(self):
        r = self._upload(self.url, [self._row(employee_code="e-1", first_name="Augusta", last_name="Lovelace")])
        self.assertEqual(r.data["updated_ids"], [str(self.ada.pk)], r.content)
        self.ada.refresh_from_db()
        self.assertEqual(self.ada.first_name, "Augusta")

    def test_invalid_rows(self):
        rows = [
            self._row(employee_code="E-20", first_name="A", last_name="B", status="retired"),
            self._row(employee_code="E-21", first_name="C", last_name="D", sub_department="Support"),
            self._row(employee_code="E-22", first_name="E", last_name="F", email="not-an-email"),
        ]
        r = self._upload(self.url, rows)
        self.assertEqual(r.data["rows_failed"], 3, r.content)
        self.assertEqual([e["code"] for e in r.data["errors"]], ["invalid_choice", "invalid", "invalid"])
        self.assertEqual(r.data["errors"][1]["field"], "sub_department")
        self.assertFalse(SubDepartment.objects.exists())
        self.assertFalse(Employee.objects.filter(employee_code__startswith="E-2").exclude(pk=self.alan.pk).exists())


class SimCardImportTests(ImportTestCase):
    url = "/api/imports/sim-cards/"

    def _row(self, **values):
        row = dict.fromkeys(
            ("sim_account_no", "sim_service_no", "sim_status", "sim_provider", "sim_card_plan", "assigned_to"), ""
        )
        row.update(values)
        return row

    def test_creates_cards_with_provider_plan_and_holder(self):
        rows = [
            self._row(sim_account_no="ACC-1", sim_service_no="0700", sim_provider="Telco", sim_card_plan="10GB",
                      sim_status="Suspended", assigned_to="E-1"),
        ]
        r = self._upload(self.url, rows)
        self.assertEqual(r.data["rows_ok"], 1, r.content)

        card = SimCard.objects.get(sim_service_no="0700")
        self.assertEqual(card.sim_status, "SUSPENDED")
        self.assertEqual(card.sim_provider.name, "Telco")
        self.assertEqual(card.sim_card_plan.provider, card.sim_provider)
        self.assertEqual(card.assigned_to, self.ada)
        self.assertTrue(card.employee_sim_cards.filter(employee=self.ada, status=AssignmentStatus.ASSIGNED).exists())

    def test_reimport_moves_holder(self):
        card = SimCard.objects.create(sim_account_no="ACC-1", sim_service_no="0700")
        lifecycle.assign_sim_card(card.pk, self.ada.pk)

        r = self._upload(self.url, [self._row(sim_account_no="ACC-1", sim_service_no="0700", assigned_to="E-2")])
        self.assertEqual(r.data["updated_ids"], [str(card.pk)], r.content)
        card.refresh_from_db()
        self.assertEqual(card.assigned_to, self.alan)
        self.assertEqual(card.employee_sim_cards.filter(status=AssignmentStatus.ASSIGNED).count(), 1)

    def test_plan_needs_provider(self):
        r = self._upload(self.url, [self._row(sim_account_no="ACC-1", sim_service_no="0700", sim_card_plan="10GB")])
        self.assertEqual(r.data["rows_failed"], 1, r.content)
        self.assertEqual(r.data["errors"][0]["field"], "sim_card_plan")
        self.assertFalse(SimCardPlan.objects.exists())
        self.assertFalse(SimProvider.objects.exists())
