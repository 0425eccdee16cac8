"""
Request middleware tests (request id header, access log line, body size guard).

What these tests verify
-----------------------
- Every response carries an `X-Request-ID` header:
  * a safe client-provided id is echoed back unchanged;
  * an unsafe one is replaced by a fresh uuid4 hex.
- One INFO line per request goes to the `asset_tracker.request` logger.
- Bodies larger than `MAX_REQUEST_BYTES` are answered with 413 and the
  `request_too_large` code before reaching the view.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.test import override_settings
from rest_framework.test import APIClient, APITestCase

from inventory.models import Company


class RequestIDMiddlewareTests(APITestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="alice", password="pass12345")
        self.client = APIClient()
        self.client.login(username="alice", password="pass12345")

    def test_response_includes_request_id_and_logs_once(self):
        with self.assertLogs("asset_tracker.request", level="INFO") as cap:
            r = self.client.get("/api/companies/")
        self.assertEqual(r.status_code, 200, r.content)

        rid = r.headers.get("X-Request-ID")
        self.assertIsNotNone(rid)
        self.assertRegex(rid, r"^[A-Za-z0-9._\-]{1,200}$")
        self.assertEqual(len([line for line in cap.output if ":request" in line]), 1)

    def test_client_provided_request_id_is_respected(self):
        r = self.client.get("/api/companies/", HTTP_X_REQUEST_ID="trace-42_ok")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.headers.get("X-Request-ID"), "trace-42_ok")

    def test_bad_client_request_id_is_replaced(self):
        r = self.client.get("/api/companies/", HTTP_X_REQUEST_ID="BAD ID")
        self.assertEqual(r.status_code, 200)
        self.assertRegex(r.headers.get("X-Request-ID") or "", r"^[a-f0-9]{32}$")

    def test_request_id_is_stored_on_audit_rows(self):
        r = self.client.post("/api/companies/", {"name": "Acme"}, format="json", HTTP_X_REQUEST_ID="rid-create-1")
        self.assertEqual(r.status_code, 201, r.content)
        r = self.client.get("/api/audit-logs/", {"record_id": r.data["id"]})
        self.assertEqual(r.status_code, 200, r.content)
        self.assertEqual(r.data["results"][0]["request_id"], "rid-create-1")


class RequestSizeLimitTests(APITestCase):
    def setUp(self):
        User = get_user_model()
        self.user = User.objects.create_user(username="u1", password="pw")
        self.client = APIClient()
        self.client.login(username="u1", password="pw")

    @override_settings(MAX_REQUEST_BYTES=100)
    def test_oversized_body_is_rejected_with_413(self):
        r = self.client.post("/api/companies/", {"name": "A" * 90, "description": "B" * 90}, format="json")
        self.assertEqual(r.status_code, 413, r.content)
        body = r.json()
        self.assertEqual(body["code"], "request_too_large")
        self.assertEqual(body["max_bytes"], 100)
        self.assertFalse(Company.objects.exists())

    @override_settings(MAX_REQUEST_BYTES=100)
    def test_small_body_passes(self):
        r = self.client.post("/api/companies/", {"name": "Acme"}, format="json")
        self.assertEqual(r.status_code, 201, r.content)
