"""
CRUD API tests for inventory resources.

What these tests verify
-----------------------
- Anonymous requests are rejected (session auth, 403).
- Create/retrieve/update/delete round trips for master data and employees, with
  `created_by`/`updated_by` stamped from the logged-in user.
- List endpoints are paginated (`count/next/previous/results`) and honour
  filter, search and ordering query params.
- Validation failures return 400 (bad email, sub-department from another
  department, expiry before purchase, zero seats, negative fee, bad enum).
  Partial updates are checked against the stored values of the other side.
- Assets cannot be moved into `ASSIGNED` through plain create/update.
"""

from __future__ import annotations

from datetime import date

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from inventory.models import (
    AssetStatus,
    Company,
    Department,
    Employee,
    SimProvider,
    SoftwareLicense,
    Status,
    SubDepartment,
)


class AuthRequiredTests(TestCase):
    def test_anonymous_is_rejected(self):
        r = APIClient().get("/api/companies/")
        self.assertEqual(r.status_code, 403, r.content)


class MasterDataCrudTests(TestCase):
    """Company and department endpoints through their full lifecycle."""

    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="u1", password="pw")
        self.client = APIClient()
        self.client.login(username="u1", password="pw")

    def test_company_crud_roundtrip(self):
        r = self.client.post("/api/companies/", {"name": "Acme", "description": "HQ"}, format="json")
        self.assertEqual(r.status_code, 201, r.content)
        cid = r.data["id"]
        self.assertEqual(r.data["status"], Status.ACTIVE)
        self.assertEqual(r.data["created_by"], "u1")
        self.assertEqual(r.data["updated_by"], "u1")

        r = self.client.get(f"/api/companies/{cid}/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["name"], "Acme")

        r = self.client.put(f"/api/companies/{cid}/", {"name": "Acme Ltd", "status": "INACTIVE"}, format="json")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["name"], "Acme Ltd")
        self.assertEqual(r.data["status"], "INACTIVE")

        r = self.client.patch(f"/api/companies/{cid}/", {"description": "Moved"}, format="json")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["description"], "Moved")
        self.assertEqual(r.data["name"], "Acme Ltd")

        r = self.client.delete(f"/api/companies/{cid}/")
        self.assertEqual(r.status_code, 204, r.content)
        self.assertFalse(Company.objects.filter(pk=cid).exists())

    def test_audit_columns_are_read_only(self):
        r = self.client.post(
            "/api/departments/", {"name": "IT", "created_by": "mallory", "id": "not-used"}, format="json"
        )
        self.assertEqual(r.status_code, 201, r.content)
        self.assertEqual(r.data["created_by"], "u1")

    def test_missing_required_field(self):
        r = self.client.post("/api/companies/", {"description": "no name"}, format="json")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("name", r.data)

    def test_invalid_status_value(self):
        r = self.client.post("/api/companies/", {"name": "Acme", "status": "DELETED"}, format="json")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("status", r.data)

    def test_unknown_id_is_404(self):
        r = self.client.get("/api/companies/00000000-0000-0000-0000-000000000000/")
        self.assertEqual(r.status_code, 404, r.content)

    def test_list_is_paginated_filterable_and_searchable(self):
        Company.objects.create(name="Alpha")
        Company.objects.create(name="Beta", status=Status.INACTIVE)
        Company.objects.create(name="Gamma")

        r = self.client.get("/api/companies/")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["count"], 3)
        self.assertEqual([c["name"] for c in r.data["results"]], ["Alpha", "Beta", "Gamma"])
        for key in ("next", "previous"):
            self.assertIn(key, r.data)

        r = self.client.get("/api/companies/", {"status": "INACTIVE"})
        self.assertEqual([c["name"] for c in r.data["results"]], ["Beta"])

        r = self.client.get("/api/companies/", {"search": "amm"})
        self.assertEqual([c["name"] for c in r.data["results"]], ["Gamma"])

        r = self.client.get("/api/companies/", {"ordering": "-name"})
        self.assertEqual(r.data["results"][0]["name"], "Gamma")

        r = self.client.get("/api/companies/", {"page_size": 2})
        self.assertEqual(len(r.data["results"]), 2)
        self.assertIsNotNone(r.data["next"])

    def test_project_shows_related_names(self):
        company = Company.objects.create(name="Acme")
        r = self.client.post(
            "/api/projects/", {"code": "P-1", "name": "Rollout", "company": str(company.pk)}, format="json"
        )
        self.assertEqual(r.status_code, 201, r.content)
        self.assertEqual(r.data["company_display"], "Acme")


class EmployeeApiTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="u1", password="pw")
        self.client = APIClient()
        self.client.login(username="u1", password="pw")
        self.it = Department.objects.create(name="IT")
        self.hr = Department.objects.create(name="HR")
        self.support = SubDepartment.objects.create(department=self.it, name="Support")

    def _payload(self, **overrides):
        data = {
            "employee_code": "E-001",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
            "department": str(self.it.pk),
            "sub_department": str(self.support.pk),
        }
        data.update(overrides)
        return data

    def test_create_and_display_fields(self):
        r = self.client.post("/api/employees/", self._payload(), format="json")
        self.assertEqual(r.status_code, 201, r.content)
        self.assertEqual(r.data["full_name"], "Ada Lovelace")
        self.assertEqual(r.data["department_display"], "IT")
        self.assertEqual(r.data["sub_department_display"], "Support")

    def test_sub_department_must_belong_to_department(self):
        r = self.client.post("/api/employees/", self._payload(department=str(self.hr.pk)), format="json")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("sub_department", r.data)

    def test_partial_update_checks_stored_sub_department(self):
        r = self.client.post("/api/employees/", self._payload(), format="json")
        self.assertEqual(r.status_code, 201, r.content)

        r = self.client.patch(f"/api/employees/{r.data['id']}/", {"department": str(self.hr.pk)}, format="json")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("sub_department", r.data)

    def test_invalid_email(self):
        r = self.client.post("/api/employees/", self._payload(email="not-an-email"), format="json")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("email", r.data)

    def test_filter_by_department(self):
        Employee.objects.create(employee_code="E-1", first_name="A", last_name="One", department=self.it)
        Employee.objects.create(employee_code="E-2", first_name="B", last_name="Two", department=self.hr)
        r = self.client.get("/api/employees/", {"department": str(self.hr.pk)})
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual([e["employee_code"] for e in r.data["results"]], ["E-2"])


class ResourceValidationTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="u1", password="pw")
        self.client = APIClient()
        self.client.login(username="u1", password="pw")

    def test_license_expiry_before_purchase(self):
        r = self.client.post(
            "/api/software-licenses/",
            {"software_name": "CAD", "purchase_date": "2024-06-01", "expiry_date": "2024-01-01"},
            format="json",
        )
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("expiry_date", r.data)

    def test_license_expiry_patch_checks_stored_purchase_date(self):
        lic = SoftwareLicense.objects.create(software_name="CAD", purchase_date=date(2024, 6, 1))
        r = self.client.patch(f"/api/software-licenses/{lic.pk}/", {"expiry_date": "2024-01-01"}, format="json")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("expiry_date", r.data)

    def test_license_seats_must_be_positive(self):
        r = self.client.post("/api/software-licenses/", {"software_name": "CAD", "seats": 0}, format="json")
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("seats", r.data)

    def test_license_without_seats_is_unlimited(self):
        r = self.client.post("/api/software-licenses/", {"software_name": "Editor"}, format="json")
        self.assertEqual(r.status_code, 201, r.content)
        self.assertIsNone(r.data["seats"])
        self.assertIsNone(r.data["seats_free"])
        self.assertEqual(r.data["seats_in_use"], 0)

    def test_plan_monthly_fee_not_negative(self):
        provider = SimProvider.objects.create(name="Telco")
        r = self.client.post(
            "/api/sim-card-plans/",
            {"provider": str(provider.pk), "name": "Basic", "monthly_fee": "-1.00"},
            format="json",
        )
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("monthly_fee", r.data)

    def test_asset_cannot_be_created_as_assigned(self):
        r = self.client.post(
            "/api/assets/", {"asset_tag": "A-1", "name": "Laptop", "status": AssetStatus.ASSIGNED}, format="json"
        )
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("status", r.data)

    def test_asset_status_can_move_to_maintenance(self):
        r = self.client.post("/api/assets/", {"asset_tag": "A-1", "name": "Laptop"}, format="json")
        self.assertEqual(r.status_code, 201, r.content)
        self.assertEqual(r.data["status"], AssetStatus.AVAILABLE)
        self.assertIsNone(r.data["assigned_to"])

        r = self.client.patch(f"/api/assets/{r.data['id']}/", {"status": AssetStatus.MAINTENANCE}, format="json")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["status"], AssetStatus.MAINTENANCE)
