"""
Audit trail tests.

What these tests verify
-----------------------
- API create/update/delete write `AuditLog` rows with the table name, record
  id, actor and a JSON `changes` payload (`_after`, `{field: [old, new]}`,
  `_before`).
- An update that changes nothing writes no row.
- Assign/unassign actions write `assign`/`unassign` rows against the resource.
- `/api/audit-logs/` is read-only and filters by table, record, action and
  date window; an unknown action yields an empty page. Impossible or
  unparseable date bounds are 400 `invalid_date`.
- `stats/` counts rows per action and table under the same filters;
  `record/{table}/{id}/` lists one record's history, newest first.
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from inventory.models import Asset, AuditAction, AuditLog, Employee


class AuditTrailTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="auditor", password="pw")
        self.client = APIClient()
        self.client.login(username="auditor", password="pw")

    def test_create_update_delete_are_logged(self):
        r = self.client.post("/api/companies/", {"name": "Acme"}, format="json")
        self.assertEqual(r.status_code, 201, r.content)
        cid = str(r.data["id"])

        self.client.patch(f"/api/companies/{cid}/", {"name": "Acme Ltd"}, format="json")
        self.client.delete(f"/api/companies/{cid}/")

        rows = list(AuditLog.objects.filter(record_id=cid).order_by("id"))
        self.assertEqual([row.action for row in rows], [AuditAction.CREATE, AuditAction.UPDATE, AuditAction.DELETE])
        self.assertTrue(all(row.table_name == "inventory_company" for row in rows))
        self.assertTrue(all(row.actor == "auditor" for row in rows))

        self.assertEqual(rows[0].changes["_after"]["name"], "Acme")
        self.assertEqual(rows[1].changes, {"name": ["Acme", "Acme Ltd"]})
        self.assertEqual(rows[2].changes["_before"]["name"], "Acme Ltd")

    def test_noop_update_is_not_logged(self):
        r = self.client.post("/api/companies/", {"name": "Acme"}, format="json")
        cid = str(r.data["id"])
        self.client.patch(f"/api/companies/{cid}/", {"name": "Acme"}, format="json")
        self.assertEqual(AuditLog.objects.filter(record_id=cid, action=AuditAction.UPDATE).count(), 0)

    def test_lifecycle_actions_are_logged(self):
        employee = Employee.objects.create(employee_code="E-1", first_name="Ada", last_name="Lovelace")
        asset = Asset.objects.create(asset_tag="A-1", name="Laptop")

        self.client.post(f"/api/assets/{asset.pk}/assign/", {"employee": str(employee.pk)}, format="json")
        self.client.post(f"/api/assets/{asset.pk}/unassign/", {}, format="json")

        rows = list(AuditLog.objects.filter(record_id=str(asset.pk)).order_by("id"))
        self.assertEqual([row.action for row in rows], [AuditAction.ASSIGN, AuditAction.UNASSIGN])
        self.assertEqual(rows[0].table_name, "inventory_asset")
        self.assertEqual(rows[0].changes["employee"], str(employee.pk))

    def test_rejected_request_leaves_no_audit_row(self):
        employee = Employee.objects.create(employee_code="E-1", first_name="Ada", last_name="Lovelace")
        asset = Asset.objects.create(asset_tag="A-1", name="Laptop")
        self.client.post(f"/api/assets/{asset.pk}/assign/", {"employee": str(employee.pk)}, format="json")

        r = self.client.post(f"/api/assets/{asset.pk}/assign/", {"employee": str(employee.pk)}, format="json")
        self.assertEqual(r.status_code, 409, r.content)
        self.assertEqual(AuditLog.objects.filter(action=AuditAction.ASSIGN).count(), 1)


class AuditLogApiTests(TestCase):
    def setUp(self):
        cache.clear()
        User = get_user_model()
        self.user = User.objects.create_user(username="u1", password="pw")
        self.client = APIClient()
        self.client.login(username="u1", password="pw")

        self.client.post("/api/companies/", {"name": "Acme"}, format="json")
        self.client.post("/api/departments/", {"name": "IT"}, format="json")

    def test_list_and_filters(self):
        r = self.client.get("/api/audit-logs/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["count"], 2)
        self.assertEqual(r.data["results"][0]["table_name"], "inventory_department")

        r = self.client.get("/api/audit-logs/", {"table_name": "inventory_company"})
        self.assertEqual(r.data["count"], 1)

        r = self.client.get("/api/audit-logs/", {"action": "create"})
        self.assertEqual(r.data["count"], 2)

        r = self.client.get("/api/audit-logs/", {"action": "explode"})
        self.assertEqual(r.data["count"], 0)

    def test_date_window(self):
        today = timezone.localdate()
        r = self.client.get("/api/audit-logs/", {"date_from": today.isoformat(), "date_to": today.isoformat()})
        self.assertEqual(r.data["count"], 2)

        tomorrow = today + timedelta(days=1)
        r = self.client.get("/api/audit-logs/", {"date_from": tomorrow.isoformat()})
        self.assertEqual(r.data["count"], 0)

    def test_read_only(self):
        r = self.client.post("/api/audit-logs/", {"action": "create"}, format="json")
        self.assertEqual(r.status_code, 405, r.content)

    def test_invalid_date_bounds_are_400(self):
        r = self.client.get("/api/audit-logs/", {"date_from": "2024-02-30"})
        self.assertEqual(r.status_code, 400, r.content)
        self.assertEqual(r.data["code"], "invalid_date")
        self.assertEqual(r.data["param"], "date_from")

        r = self.client.get("/api/audit-logs/", {"date_to": "yesterday"})
        self.assertEqual(r.status_code, 400, r.content)
        self.assertEqual(r.data["param"], "date_to")

    def test_stats(self):
        r = self.client.get("/api/audit-logs/stats/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["total_logs"], 2)
        self.assertEqual(r.data["by_action"], {"create": 2, "update": 0, "delete": 0, "assign": 0, "unassign": 0})
        self.assertEqual(
            sorted((row["table_name"], row["count"]) for row in r.data["by_table"]),
            [("inventory_company", 1), ("inventory_department", 1)],
        )
        self.assertEqual(len(r.data["recent_activity"]), 2)

        r = self.client.get("/api/audit-logs/stats/", {"table_name": "inventory_company"})
        self.assertEqual(r.data["total_logs"], 1)

    def test_record_history(self):
        cid = str(AuditLog.objects.get(table_name="inventory_company").record_id)
        self.client.patch(f"/api/companies/{cid}/", {"name": "Acme Ltd"}, format="json")

        r = self.client.get(f"/api/audit-logs/record/inventory_company/{cid}/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual([row["action"] for row in r.data], ["update", "create"])

        r = self.client.get("/api/audit-logs/record/inventory_company/unknown-id/")
        self.assertEqual(r.data, [])
