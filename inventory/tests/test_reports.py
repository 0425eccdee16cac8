"""
Dashboard and report endpoint tests.

What these tests verify
-----------------------
- `/api/dashboard/stats/` totals, assets by status (every status present) and
  open assignment counts (accessories counted in units).
- `/api/reports/asset-summary/` groups by status and item category, and
  narrows to one project with `?project=`.
- `/api/employees/{id}/report/` returns the profile and only currently held
  resources.
- Holdings per employee, utilisation overall and per project, assets due for
  maintenance and warranties ending within `?days_ahead=`.
- `/api/inventory/summary/` nets units bought on purchase orders against
  registered assets per item, with the latest vendor and a stock status.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from inventory import assignments as lifecycle
from inventory.models import (
    Accessory,
    Asset,
    AssetStatus,
    Employee,
    Item,
    ItemCategory,
    Project,
    PurchaseOrder,
    PurchaseOrderItem,
    SimCard,
    SoftwareLicense,
    Supplier,
)


class ReportsApiTests(TestCase):
    def setUp(self):
        """
        Seed:
        - employees ada, alan; project P-1
        - laptops category with 2 assets (one assigned to ada), one uncategorised
          asset in maintenance
        - one SIM card and one license held by ada; two docks handed to ada
        """
        cache.clear()
        User = get_user_model()
        self.user = User.objects.create_user(username="u1", password="pw")
        self.client = APIClient()
        self.client.login(username="u1", password="pw")

        self.ada = Employee.objects.create(employee_code="E-1", first_name="Ada", last_name="Lovelace")
        self.alan = Employee.objects.create(employee_code="E-2", first_name="Alan", last_name="Turing")
        self.project = Project.objects.create(code="P-1", name="Rollout")

        laptops = ItemCategory.objects.create(name="Laptops")
        self.laptop = Item.objects.create(item_category=laptops, name="Laptop 14in")
        self.a1 = Asset.objects.create(asset_tag="A-1", name="Laptop", item=self.laptop, project=self.project)
        self.a2 = Asset.objects.create(asset_tag="A-2", name="Laptop", item=self.laptop)
        self.a3 = Asset.objects.create(asset_tag="A-3", name="Printer", status=AssetStatus.MAINTENANCE)

        self.sim = SimCard.objects.create(sim_account_no="ACC", sim_service_no="0700")
        self.lic = SoftwareLicense.objects.create(software_name="CAD", seats=5)
        self.dock = Accessory.objects.create(name="Dock", quantity_available=10)

        lifecycle.assign_asset(self.a1.pk, self.ada.pk)
        lifecycle.assign_sim_card(self.sim.pk, self.ada.pk)
        lifecycle.assign_software_license(self.lic.pk, self.ada.pk)
        lifecycle.assign_accessory(self.dock.pk, self.ada.pk, quantity=2)

    def test_dashboard_stats(self):
        r = self.client.get("/api/dashboard/stats/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["totals"], {"assets": 3, "employees": 2, "projects": 1, "sim_cards": 1})
        self.assertEqual(
            r.data["assets_by_status"],
            {"AVAILABLE": 1, "ASSIGNED": 1, "MAINTENANCE": 1, "RETIRED": 0},
        )
        self.assertEqual(
            r.data["open_assignments"],
            {"assets": 1, "sim_cards": 1, "software_licenses": 1, "accessories": 2},
        )

    def test_asset_summary(self):
        r = self.client.get("/api/reports/asset-summary/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["total"], 3)
        self.assertEqual(r.data["by_status"]["ASSIGNED"], 1)
        by_category = {row["item_category_name"]: row["count"] for row in r.data["by_item_category"]}
        self.assertEqual(by_category, {"Laptops": 2, "Uncategorized": 1})

    def test_asset_summary_for_project(self):
        r = self.client.get("/api/reports/asset-summary/", {"project": str(self.project.pk)})
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["total"], 1)
        self.assertEqual(r.data["by_status"]["ASSIGNED"], 1)

    def test_asset_summary_unknown_project(self):
        r = self.client.get("/api/reports/asset-summary/", {"project": "nope"})
        self.assertEqual(r.status_code, 400, r.content)

    def test_employee_report(self):
        lifecycle.unassign_sim_card(self.sim.pk)

        r = self.client.get(f"/api/employees/{self.ada.pk}/report/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["employee"]["employee_code"], "E-1")
        self.assertEqual([row["asset_display"] for row in r.data["assets"]], [str(self.a1)])
        self.assertEqual(r.data["sim_cards"], [])
        self.assertEqual(len(r.data["software_licenses"]), 1)
        self.assertEqual(r.data["totals"], {"assets": 1, "sim_cards": 0, "software_licenses": 1, "accessories": 2})

    def test_employee_report_empty(self):
        r = self.client.get(f"/api/employees/{self.alan.pk}/report/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["totals"], {"assets": 0, "sim_cards": 0, "software_licenses": 0, "accessories": 0})

    def test_reports_require_auth(self):
        r = APIClient().get("/api/dashboard/stats/")
        self.assertEqual(r.status_code, 403, r.content)

    def test_employee_assets(self):
        r = self.client.get("/api/reports/employee-assets/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["total_employees"], 2)
        self.assertEqual(r.data["employees_with_assets"], 1)
        self.assertEqual(r.data["employees_without_assets"], 1)
        self.assertEqual(r.data["average_assets_per_employee"], 1.0)

        ada = r.data["employees"][0]
        self.assertEqual(ada["employee_name"], "Ada Lovelace")
        self.assertEqual((ada["asset_count"], ada["sim_card_count"], ada["software_license_count"]), (1, 1, 1))

        r = self.client.get("/api/reports/employee-assets/", {"department": "nope"})
        self.assertEqual(r.status_code, 400, r.content)
        self.assertEqual(r.data["code"], "invalid_department")

    def test_asset_utilization(self):
        r = self.client.get("/api/reports/asset-utilization/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual((r.data["total_assets"], r.data["assigned_assets"], r.data["available_assets"]), (3, 1, 1))
        self.assertEqual(r.data["utilization_rate"], 33.33)
        self.assertEqual(
            [(p["project_name"], p["total_assets"], p["utilization_rate"]) for p in r.data["utilization_by_project"]],
            [("Rollout", 1, 100.0)],
        )

    def test_asset_maintenance(self):
        Asset.objects.filter(pk=self.a1.pk).update(condition="Fair")
        Asset.objects.filter(pk=self.a2.pk).update(condition="poor")

        r = self.client.get("/api/reports/asset-maintenance/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["assets_needing_maintenance"], 2)
        self.assertEqual(r.data["assets_in_maintenance"], 1)
        rows = {row["asset_tag"]: row for row in r.data["items"]}
        self.assertEqual(rows["A-1"]["assigned_employee_name"], "Ada Lovelace")
        self.assertEqual(rows["A-1"]["maintenance_status"], "Needs Maintenance")
        self.assertEqual(rows["A-3"]["condition"], "Unknown")
        self.assertEqual(rows["A-3"]["maintenance_status"], "In Maintenance")

    def test_expiring_warranty(self):
        today = timezone.localdate()
        Asset.objects.filter(pk=self.a1.pk).update(warranty_expiry=today + timedelta(days=10))
        Asset.objects.filter(pk=self.a2.pk).update(warranty_expiry=today + timedelta(days=40))
        Asset.objects.filter(pk=self.a3.pk).update(warranty_expiry=today - timedelta(days=1))

        r = self.client.get("/api/reports/expiring-warranty/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["days_ahead"], 30)
        self.assertEqual(r.data["count"], 1)
        self.assertEqual(r.data["items"][0]["days_remaining"], 10)
        self.assertEqual(r.data["items"][0]["assigned_employee_name"], "Ada Lovelace")

        r = self.client.get("/api/reports/expiring-warranty/", {"days_ahead": "60"})
        self.assertEqual([row["asset_tag"] for row in r.data["items"]], ["A-1", "A-2"])

        for bad in ("soon", "-1", "5000"):
            r = self.client.get("/api/reports/expiring-warranty/", {"days_ahead": bad})
            self.assertEqual(r.status_code, 400, r.content)
            self.assertEqual(r.data["code"], "invalid_days_ahead")

    def test_inventory_summary(self):
        other = Project.objects.create(code="P-2", name="Depot")
        audio = ItemCategory.objects.create(name="Audio")
        headset = Item.objects.create(item_category=audio, name="Headset")
        first = PurchaseOrder.objects.create(
            po_number="PO-1", po_date=date(2024, 1, 10), supplier=Supplier.objects.create(name="Contoso"),
            project=self.project,
        )
        second = PurchaseOrder.objects.create(
            po_number="PO-2", po_date=date(2024, 2, 10), supplier=Supplier.objects.create(name="Northwind"),
            project=other,
        )
        PurchaseOrderItem.objects.create(purchase_order=first, item=self.laptop, quantity=3, unit_price=Decimal("900"))
        PurchaseOrderItem.objects.create(purchase_order=first, item=headset, quantity=10, unit_price=Decimal("20"))
        PurchaseOrderItem.objects.create(purchase_order=second, item=self.laptop, quantity=1, unit_price=Decimal("950"))

        r = self.client.get("/api/inventory/summary/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual([row["item_name"] for row in r.data["items"]], ["Headset", "Laptop 14in"])
        head, lap = r.data["items"]
        self.assertEqual((head["available_count"], head["status"], head["model"]), (10, "IN_STOCK", "Unknown"))
        self.assertEqual(
            (lap["total_purchased"], lap["total_allocated"], lap["available_count"], lap["status"]),
            (4, 2, 2, "LOW_STOCK"),
        )
        self.assertEqual((lap["vendor"], lap["last_purchase_date"]), ("Northwind", "2024-02-10"))
        self.assertEqual((lap["brand"], lap["model"], lap["category"]), ("Laptop", "14in", "Laptops"))
        self.assertEqual(
            (r.data["total_items"], r.data["total_categories"], r.data["in_stock_items"], r.data["low_stock_items"]),
            (12, 2, 1, 1),
        )
        self.assertIn("calculated_at", r.data)

        r = self.client.get("/api/inventory/summary/", {"project": str(self.project.pk)})
        lap = {row["item_name"]: row for row in r.data["items"]}["Laptop 14in"]
        self.assertEqual((lap["total_purchased"], lap["total_allocated"], lap["vendor"]), (3, 1, "Contoso"))
