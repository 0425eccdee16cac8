"""
Purchase order API tests.

What these tests verify
-----------------------
- Creating an order with nested lines returns the lines, `item_count` and the
  order `total_amount` (sum of quantity x unit price).
- Sending `items` on update replaces every line; omitting it keeps them.
- Delivery dates before the order date are rejected on the field at fault,
  including on PATCH against the stored `po_date`.
- A repeated `po_number` is 409 `duplicate`.
- Deleting an order removes its lines; an item referenced by order lines
  cannot be deleted (409 `has_dependents`).
"""

from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from inventory.models import Item, ItemCategory, Project, PurchaseOrder, PurchaseOrderItem, Supplier


class PurchaseOrderApiTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="buyer", password="pw")
        self.client = APIClient()
        self.client.login(username="buyer", password="pw")

        self.supplier = Supplier.objects.create(name="Northwind")
        self.project = Project.objects.create(code="P-1", name="Rollout")
        laptops = ItemCategory.objects.create(name="Laptops")
        self.laptop = Item.objects.create(item_category=laptops, name="Laptop 14in")
        self.dock = Item.objects.create(item_category=laptops, name="Dock")

    def _payload(self, **overrides):
        data = {
            "po_number": "PO-1001",
            "po_date": "2024-03-01",
            "supplier": str(self.supplier.pk),
            "project": str(self.project.pk),
            "items": [
                {"item": str(self.laptop.pk), "quantity": 2, "unit_price": "10.50"},
                {"item": str(self.dock.pk), "quantity": 1, "unit_price": "99.00"},
            ],
        }
        data.update(overrides)
        return data

    def test_create_with_lines(self):
        r = self.client.post("/api/purchase-orders/", self._payload(), format="json")
        self.assertEqual(r.status_code, 201, r.content)
        self.assertEqual(r.data["status"], "DRAFT")
        self.assertEqual(r.data["item_count"], 2)
        self.assertEqual(Decimal(r.data["total_amount"]), Decimal("120.00"))
        self.assertEqual(r.data["supplier_display"], "Northwind")

        order = PurchaseOrder.objects.get(pk=r.data["id"])
        self.assertEqual(order.created_by, "buyer")
        self.assertEqual(sorted(line.item.name for line in order.items.all()), ["Dock", "Laptop 14in"])
        self.assertTrue(all(line.created_by == "buyer" for line in order.items.all()))

    def test_update_replaces_lines_only_when_sent(self):
        r = self.client.post("/api/purchase-orders/", self._payload(), format="json")
        url = f"/api/purchase-orders/{r.data['id']}/"

        r = self.client.patch(url, {"status": "ORDERED"}, format="json")
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["item_count"], 2)

        r = self.client.patch(
            url, {"items": [{"item": str(self.dock.pk), "quantity": 3, "unit_price": "5.00"}]}, format="json"
        )
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["item_count"], 1)
        self.assertEqual(Decimal(r.data["total_amount"]), Decimal("15.00"))
        self.assertEqual(PurchaseOrderItem.objects.count(), 1)

    def test_invalid_line_rejected(self):
        r = self.client.post(
            "/api/purchase-orders/",
            self._payload(items=[{"item": str(self.dock.pk), "quantity": 0, "unit_price": "5.00"}]),
            format="json",
        )
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("items", r.data)
        self.assertFalse(PurchaseOrder.objects.exists())

    def test_delivery_before_order_date(self):
        r = self.client.post(
            "/api/purchase-orders/", self._payload(expected_delivery_date="2024-02-01"), format="json"
        )
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("expected_delivery_date", r.data)

        r = self.client.post("/api/purchase-orders/", self._payload(), format="json")
        r = self.client.patch(
            f"/api/purchase-orders/{r.data['id']}/", {"actual_delivery_date": "2024-01-15"}, format="json"
        )
        self.assertEqual(r.status_code, 400, r.content)
        self.assertIn("actual_delivery_date", r.data)

    def test_duplicate_po_number(self):
        self.client.post("/api/purchase-orders/", self._payload(), format="json")
        r = self.client.post("/api/purchase-orders/", self._payload(items=[]), format="json")
        self.assertEqual(r.status_code, 409, r.content)
        self.assertEqual(r.data["code"], "duplicate")

    def test_filter_by_status(self):
        self.client.post("/api/purchase-orders/", self._payload(), format="json")
        self.client.post("/api/purchase-orders/", self._payload(po_number="PO-1002", status="RECEIVED"), format="json")

        r = self.client.get("/api/purchase-orders/", {"status": "RECEIVED"})
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual([row["po_number"] for row in r.data["results"]], ["PO-1002"])

    def test_delete_cascades_to_lines(self):
        r = self.client.post("/api/purchase-orders/", self._payload(), format="json")
        r = self.client.delete(f"/api/purchase-orders/{r.data['id']}/")
        self.assertEqual(r.status_code, 204, r.content)
        self.assertFalse(PurchaseOrderItem.objects.exists())

    def test_item_on_order_lines_cannot_be_deleted(self):
        self.client.post("/api/purchase-orders/", self._payload(), format="json")
        r = self.client.delete(f"/api/items/{self.dock.pk}/")
        self.assertEqual(r.status_code, 409, r.content)
        self.assertEqual(r.data["code"], "has_dependents")
        self.assertEqual(r.data["dependents"], {"purchase order lines": 1})
