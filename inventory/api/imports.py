from __future__ import annotations

"""
CSV import endpoints for assets, employees and SIM cards.

Overview
--------
- Auth: `IsAuthenticated`.
- Throttle: `imports` scope guards upload frequency.
- Transport: `multipart/form-data` with a single `file` part (CSV).
- Dry-run: `?dry_run=true|1|yes|on` validates and reports without persisting.
- Size limits: `open_csv()` raises `ValueError("File too large ...")`; we map
  those to HTTP 413 with a JSON error body.
- Every created or updated row is written to the audit log like a regular
  API write.

CSV contracts
-------------
- Assets: `asset_tag,asset_name[,item_category,item,serial_no,condition,location,
  po_number,description,warranty_expiry,assigned_to]`; `?project=<id>` tags
  every row with that project.
- Employees: `employee_code,first_name,last_name[,email,phone,status,department,
  sub_department,company,project,nationality,category,position,cost_center]`
- SIM cards: `sim_account_no,sim_service_no[,sim_serial_no,sim_start_date,
  sim_status,sim_type,sim_provider,sim_card_plan,assigned_to]`; `?project=<id>`
  as for assets.

Note:
    Parsing, lookups and upserts live in `inventory.imports`.
"""

from typing import Any, Dict

from django.core.exceptions import ValidationError
from rest_framework import permissions, status
from rest_framework.parsers import MultiPartParser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema

from inventory.imports import import_assets, import_employees, import_sim_cards, open_csv
from inventory.models import Project
from inventory.schema import ERROR_RESPONSE, VALIDATION_ERROR_RESPONSE

from .mixins import AuditTrailMixin

CSV_UPLOAD = {
    "multipart/form-data": {
        "type": "object",
        "properties": {"file": {"type": "string", "format": "binary"}},
        "required": ["file"],
    }
}
DRY_RUN_PARAM = OpenApiParameter(name="dry_run", type=OpenApiTypes.BOOL, location=OpenApiParameter.QUERY, required=False)
PROJECT_PARAM = OpenApiParameter(
    name="project",
    type=OpenApiTypes.UUID,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Project applied to every imported row.",
)
IMPORT_RESPONSES = {
    200: OpenApiResponse(description="Import summary JSON"),
    400: VALIDATION_ERROR_RESPONSE,
    413: ERROR_RESPONSE,
}


def _summary_payload(result) -> Dict[str, Any]:
    """Normalize importer result object into the API response contract."""
    return {
        "rows_ok": result.rows_ok,
        "rows_failed": result.rows_failed,
        "errors": result.errors,
        "created_ids": result.created_ids,
        "updated_ids": result.updated_ids,
    }


class BaseImportView(AuditTrailMixin, APIView):
    """
    Base for CSV import endpoints.

    Subclasses implement `run(request, rows, dry_run)` and return an
    `ImportResult`.
    """
    permission_classes = [permissions.IsAuthenticated]
    throttle_scope = "imports"
    parser_classes = [MultiPartParser]

    def _dry_run(self, request: Request) -> bool:
        v = request.query_params.get("dry_run", "")
        return v.lower() in ("1", "true", "yes", "on")

    def _project(self, request: Request):
        """(project, None) or (None, 400 Response) for an unknown `?project=`."""
        value = request.query_params.get("project")
        if not value:
            return None, None
        try:
            return Project.objects.get(pk=value), None
        except (Project.DoesNotExist, ValidationError, ValueError):
            return None, Response({"project": [f"Unknown project '{value}'."]}, status=status.HTTP_400_BAD_REQUEST)

    def run(self, request: Request, rows, dry_run: bool):
        raise NotImplementedError

    def post(self, request: Request) -> Response:
        upload = request.FILES.get("file")
        if not upload:
            return Response({"file": ["This field is required."]}, status=status.HTTP_400_BAD_REQUEST)
        try:
            rows = list(open_csv(upload))
        except (ValueError, UnicodeDecodeError) as e:
            # NOTE: `open_csv` encodes size problems in the exception message.
            msg = str(e) if isinstance(e, ValueError) else "File is not UTF-8 encoded text."
            status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE if "File too large" in msg else status.HTTP_400_BAD_REQUEST
            return Response({"file": [msg]}, status=status_code)
        result = self.run(request, rows, self._dry_run(request))
        if isinstance(result, Response):
            return result
        return Response(_summary_payload(result))


class AssetImportView(BaseImportView):
    @extend_schema(
        tags=["Imports"],
        request=CSV_UPLOAD,
        parameters=[DRY_RUN_PARAM, PROJECT_PARAM],
        responses=IMPORT_RESPONSES,
        description=(
            "Create or update assets by `asset_tag`. Items and item categories are matched by name and "
            "created when missing; `assigned_to` (employee code) makes that employee the holder."
        ),
    )
    def post(self, request: Request) -> Response:
        return super().post(request)

    def run(self, request: Request, rows, dry_run: bool):
        project, err = self._project(request)
        if err:
            return err
        return import_assets(request.user, rows, project=project, dry_run=dry_run, audit=self._audit_write)


class EmployeeImportView(BaseImportView):
    @extend_schema(
        tags=["Imports"],
        request=CSV_UPLOAD,
        parameters=[DRY_RUN_PARAM],
        responses=IMPORT_RESPONSES,
        description=(
            "Create or update employees by `employee_code`. Departments, projects and other master data "
            "are matched by name and created when missing."
        ),
    )
    def post(self, request: Request) -> Response:
        return super().post(request)

    def run(self, request: Request, rows, dry_run: bool):
        return import_employees(request.user, rows, dry_run=dry_run, audit=self._audit_write)


class SimCardImportView(BaseImportView):
    @extend_schema(
        tags=["Imports"],
        request=CSV_UPLOAD,
        parameters=[DRY_RUN_PARAM, PROJECT_PARAM],
        responses=IMPORT_RESPONSES,
        description=(
            "Create or update SIM cards by account and service number. Types, providers and plans are "
            "matched by name and created when missing."
        ),
    )
    def post(self, request: Request) -> Response:
        return super().post(request)

    def run(self, request: Request, rows, dry_run: bool):
        project, err = self._project(request)
        if err:
            return err
        return import_sim_cards(request.user, rows, project=project, dry_run=dry_run, audit=self._audit_write)
