from __future__ import annotations

"""
Assignment actions mixed into the resource viewsets.

Actions
-------
Assets (`AssetOpsMixin`):
- `POST /api/assets/{id}/assign/`      {employee, notes?}            → 201 assignment row
- `POST /api/assets/{id}/unassign/`    {notes?}                      → 200 closed row
- `POST /api/assets/{id}/transfer/`    {employee, notes?}            → 200 {returned, assigned}
- `GET  /api/assets/{id}/assignments/` assignment history

SIM cards (`SimCardOpsMixin`): `assign`, `unassign`, `assignments` as for assets.

Software licenses (`SoftwareLicenseOpsMixin`):
- `POST /api/software-licenses/{id}/assign/`    {employee, notes?}
- `POST /api/software-licenses/{id}/unassign/`  {employee, notes?}
- `POST /api/software-licenses/assignments/{assignment_id}/unassign/` {notes?}
- `GET  /api/software-licenses/{id}/assignments/` (open seats; `?include_returned=true` for history)

Accessories (`AccessoryOpsMixin`):
- `POST /api/accessories/{id}/assign/`    {employee, quantity=1, notes?}
- `POST /api/accessories/{id}/unassign/`  {employee, quantity?, notes?}
- `GET  /api/accessories/{id}/assignments/`

The business rules live in `inventory.assignments`; these actions parse the
request, honour `If-Match` on the resource, call the service and write the
audit entry.
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import QuerySet
from rest_framework import serializers, status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer

from core.utils.concurrency import require_if_match
from inventory import assignments as lifecycle
from inventory.models import AssignmentStatus, AuditAction, EmployeeSoftwareLicense
from inventory.schema import (
    CONFLICT_RESPONSE,
    IF_MATCH_HEADER,
    NOT_FOUND_RESPONSE,
    VALIDATION_ERROR_RESPONSE,
)
from inventory.serializers import (
    EmployeeAccessorySerializer,
    EmployeeAssetSerializer,
    EmployeeSimCardSerializer,
    EmployeeSoftwareLicenseSerializer,
)

INCLUDE_RETURNED_PARAM = OpenApiParameter(
    name="include_returned",
    type=OpenApiTypes.BOOL,
    location=OpenApiParameter.QUERY,
    required=False,
    description="Include returned rows (default: true for history endpoints of assets, SIM cards "
                "and accessories; false for software license seats).",
)

ASSIGN_ERRORS = {
    400: VALIDATION_ERROR_RESPONSE,
    404: NOT_FOUND_RESPONSE,
    409: CONFLICT_RESPONSE,
}


# -----------------------------------------------------------------------------
# Request bodies
# -----------------------------------------------------------------------------

class AssignRequestSerializer(serializers.Serializer):
    """Body for single-holder assign/transfer."""
    employee = serializers.UUIDField(help_text="Employee id receiving the resource.")
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000, default="")


class ReturnRequestSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000, default="")


class EmployeeReturnRequestSerializer(ReturnRequestSerializer):
    employee = serializers.UUIDField(help_text="Employee returning the resource.")


class AccessoryAssignRequestSerializer(AssignRequestSerializer):
    quantity = serializers.IntegerField(min_value=1, default=1)


class AccessoryReturnRequestSerializer(EmployeeReturnRequestSerializer):
    quantity = serializers.IntegerField(
        min_value=1, required=False, allow_null=True, help_text="Units to return; all held units when omitted."
    )


def _flag(request: Request, name: str, default: bool) -> bool:
    raw = request.query_params.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _rows(qs: QuerySet, request: Request, *, include_returned_default: bool) -> QuerySet:
    if not _flag(request, "include_returned", include_returned_default):
        qs = qs.filter(status=AssignmentStatus.ASSIGNED)
    return qs.select_related("employee").order_by("-assigned_date")


def _open_license_seat(assignment_id) -> EmployeeSoftwareLicense | None:
    try:
        return (
            EmployeeSoftwareLicense.objects.select_related("software_license")
            .filter(pk=assignment_id, status=AssignmentStatus.ASSIGNED)
            .first()
        )
    except DjangoValidationError:
        return None


# -----------------------------------------------------------------------------
# Assets
# -----------------------------------------------------------------------------

class AssetOpsMixin:
    """Assign/unassign/transfer for single-holder assets."""

    @extend_schema(
        tags=["Assets: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=AssignRequestSerializer,
        responses={201: EmployeeAssetSerializer, **ASSIGN_ERRORS},
        description="Assign an AVAILABLE asset to an active employee; the asset becomes ASSIGNED.",
    )
    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk: str | None = None) -> Response:
        asset = self.get_object()
        require_if_match(request, asset)
        body = AssignRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        row = lifecycle.assign_asset(
            asset.pk, body.validated_data["employee"], notes=body.validated_data["notes"], user=request.user
        )
        self._audit_write(asset, AuditAction.ASSIGN, {"assignment": str(row.pk), "employee": str(row.employee_id)})
        return Response(EmployeeAssetSerializer(row).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Assets: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=ReturnRequestSerializer,
        responses={200: EmployeeAssetSerializer, 404: NOT_FOUND_RESPONSE},
        description="Return the asset from its current holder; the asset becomes AVAILABLE.",
    )
    @action(detail=True, methods=["post"], url_path="unassign")
    def unassign(self, request: Request, pk: str | None = None) -> Response:
        asset = self.get_object()
        require_if_match(request, asset)
        body = ReturnRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        row = lifecycle.unassign_asset(asset.pk, notes=body.validated_data["notes"], user=request.user)
        self._audit_write(asset, AuditAction.UNASSIGN, {"assignment": str(row.pk), "employee": str(row.employee_id)})
        return Response(EmployeeAssetSerializer(row).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Assets: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=AssignRequestSerializer,
        responses={
            200: inline_serializer(
                name="AssetTransferResponse",
                fields={"returned": EmployeeAssetSerializer(), "assigned": EmployeeAssetSerializer()},
            ),
            **ASSIGN_ERRORS,
        },
        description="Move an assigned asset to another employee in one step.",
    )
    @action(detail=True, methods=["post"], url_path="transfer")
    def transfer(self, request: Request, pk: str | None = None) -> Response:
        asset = self.get_object()
        require_if_match(request, asset)
        body = AssignRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        closed, opened = lifecycle.transfer_asset(
            asset.pk, body.validated_data["employee"], notes=body.validated_data["notes"], user=request.user
        )
        self._audit_write(asset, AuditAction.UNASSIGN, {"assignment": str(closed.pk), "employee": str(closed.employee_id)})
        self._audit_write(asset, AuditAction.ASSIGN, {"assignment": str(opened.pk), "employee": str(opened.employee_id)})
        return Response(
            {"returned": EmployeeAssetSerializer(closed).data, "assigned": EmployeeAssetSerializer(opened).data},
            status=status.HTTP_200_OK,
        )

    @extend_schema(
        tags=["Assets: Assignment"],
        parameters=[INCLUDE_RETURNED_PARAM],
        responses={200: EmployeeAssetSerializer(many=True)},
        description="Assignment history of this asset, newest first.",
    )
    @action(detail=True, methods=["get"], url_path="assignments")
    def assignments(self, request: Request, pk: str | None = None) -> Response:
        asset = self.get_object()
        rows = _rows(asset.employee_assets.all(), request, include_returned_default=True)
        return Response(EmployeeAssetSerializer(rows, many=True).data)


# -----------------------------------------------------------------------------
# SIM cards
# -----------------------------------------------------------------------------

class SimCardOpsMixin:
    """Assign/unassign for SIM cards (single holder, tracked in `assigned_to`)."""

    @extend_schema(
        tags=["SIM cards: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=AssignRequestSerializer,
        responses={201: EmployeeSimCardSerializer, **ASSIGN_ERRORS},
        description="Assign an ACTIVE, unheld SIM card to an active employee.",
    )
    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk: str | None = None) -> Response:
        card = self.get_object()
        require_if_match(request, card)
        body = AssignRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        row = lifecycle.assign_sim_card(
            card.pk, body.validated_data["employee"], notes=body.validated_data["notes"], user=request.user
        )
        self._audit_write(card, AuditAction.ASSIGN, {"assignment": str(row.pk), "employee": str(row.employee_id)})
        return Response(EmployeeSimCardSerializer(row).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["SIM cards: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=ReturnRequestSerializer,
        responses={200: EmployeeSimCardSerializer, 404: NOT_FOUND_RESPONSE},
        description="Return the SIM card from its current holder.",
    )
    @action(detail=True, methods=["post"], url_path="unassign")
    def unassign(self, request: Request, pk: str | None = None) -> Response:
        card = self.get_object()
        require_if_match(request, card)
        body = ReturnRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        row = lifecycle.unassign_sim_card(card.pk, notes=body.validated_data["notes"], user=request.user)
        self._audit_write(card, AuditAction.UNASSIGN, {"assignment": str(row.pk), "employee": str(row.employee_id)})
        return Response(EmployeeSimCardSerializer(row).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["SIM cards: Assignment"],
        parameters=[INCLUDE_RETURNED_PARAM],
        responses={200: EmployeeSimCardSerializer(many=True)},
    )
    @action(detail=True, methods=["get"], url_path="assignments")
    def assignments(self, request: Request, pk: str | None = None) -> Response:
        card = self.get_object()
        rows = _rows(card.employee_sim_cards.all(), request, include_returned_default=True)
        return Response(EmployeeSimCardSerializer(rows, many=True).data)


# -----------------------------------------------------------------------------
# Software licenses
# -----------------------------------------------------------------------------

class SoftwareLicenseOpsMixin:
    """Seat assignment for software licenses (one seat per employee, `seats` cap)."""

    @extend_schema(
        tags=["Software licenses: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=AssignRequestSerializer,
        responses={201: EmployeeSoftwareLicenseSerializer, **ASSIGN_ERRORS},
        description="Give an employee one seat of an ACTIVE license; 409 when seats are exhausted.",
    )
    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk: str | None = None) -> Response:
        lic = self.get_object()
        require_if_match(request, lic)
        body = AssignRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        row = lifecycle.assign_software_license(
            lic.pk, body.validated_data["employee"], notes=body.validated_data["notes"], user=request.user
        )
        self._audit_write(lic, AuditAction.ASSIGN, {"assignment": str(row.pk), "employee": str(row.employee_id)})
        return Response(EmployeeSoftwareLicenseSerializer(row).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Software licenses: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=EmployeeReturnRequestSerializer,
        responses={200: EmployeeSoftwareLicenseSerializer, 404: NOT_FOUND_RESPONSE},
        description="Return the seat held by the given employee.",
    )
    @action(detail=True, methods=["post"], url_path="unassign")
    def unassign(self, request: Request, pk: str | None = None) -> Response:
        lic = self.get_object()
        require_if_match(request, lic)
        body = EmployeeReturnRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        row = lifecycle.unassign_software_license(
            lic.pk, body.validated_data["employee"], notes=body.validated_data["notes"], user=request.user
        )
        self._audit_write(lic, AuditAction.UNASSIGN, {"assignment": str(row.pk), "employee": str(row.employee_id)})
        return Response(EmployeeSoftwareLicenseSerializer(row).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Software licenses: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=ReturnRequestSerializer,
        responses={200: EmployeeSoftwareLicenseSerializer, 404: NOT_FOUND_RESPONSE},
        description="Return a seat addressed by its assignment id.",
    )
    @action(
        detail=False,
        methods=["post"],
        url_path=r"assignments/(?P<assignment_id>[0-9a-fA-F-]{36})/unassign",
        url_name="assignment-unassign",
    )
    def unassign_assignment(self, request: Request, assignment_id: str | None = None) -> Response:
        seat = _open_license_seat(assignment_id)
        if seat is not None:
            require_if_match(request, seat.software_license)
        body = ReturnRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)

        row = lifecycle.unassign_license_assignment(
            assignment_id, notes=body.validated_data["notes"], user=request.user
        )
        self._audit_write(
            row.software_license,
            AuditAction.UNASSIGN,
            {"assignment": str(row.pk), "employee": str(row.employee_id)},
        )
        return Response(EmployeeSoftwareLicenseSerializer(row).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Software licenses: Assignment"],
        parameters=[INCLUDE_RETURNED_PARAM],
        responses={200: EmployeeSoftwareLicenseSerializer(many=True)},
        description="Seats of this license; open seats only unless `include_returned=true`.",
    )
    @action(detail=True, methods=["get"], url_path="assignments")
    def assignments(self, request: Request, pk: str | None = None) -> Response:
        lic = self.get_object()
        rows = _rows(lic.employee_licenses.all(), request, include_returned_default=False)
        return Response(EmployeeSoftwareLicenseSerializer(rows, many=True).data)


# -----------------------------------------------------------------------------
# Accessories
# -----------------------------------------------------------------------------

class AccessoryOpsMixin:
    """Quantity-based hand-out and return for stocked accessories."""

    class _AccessoryMovementResponse(serializers.Serializer):
        assignment = EmployeeAccessorySerializer()
        quantity = serializers.IntegerField()
        quantity_available = serializers.IntegerField()

        class Meta:
            ref_name = "AccessoryMovementResponse"

    def _movement(self, row, quantity: int) -> dict:
        row.accessory.refresh_from_db(fields=["quantity_available"])
        return {
            "assignment": EmployeeAccessorySerializer(row).data,
            "quantity": quantity,
            "quantity_available": row.accessory.quantity_available,
        }

    @extend_schema(
        tags=["Accessories: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=AccessoryAssignRequestSerializer,
        responses={201: _AccessoryMovementResponse, **ASSIGN_ERRORS},
        description=(
            "Hand `quantity` units to an employee. Stock (`quantity_available`) drops by "
            "`quantity`; an existing open row for the employee is topped up."
        ),
    )
    @action(detail=True, methods=["post"], url_path="assign")
    def assign(self, request: Request, pk: str | None = None) -> Response:
        acc = self.get_object()
        require_if_match(request, acc)
        body = AccessoryAssignRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        row = lifecycle.assign_accessory(
            acc.pk, data["employee"], quantity=data["quantity"], notes=data["notes"], user=request.user
        )
        self._audit_write(
            acc,
            AuditAction.ASSIGN,
            {"assignment": str(row.pk), "employee": str(row.employee_id), "quantity": data["quantity"]},
        )
        return Response(self._movement(row, data["quantity"]), status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Accessories: Assignment"],
        parameters=[IF_MATCH_HEADER],
        request=AccessoryReturnRequestSerializer,
        responses={200: _AccessoryMovementResponse, 400: VALIDATION_ERROR_RESPONSE, 404: NOT_FOUND_RESPONSE},
        description="Take back units from an employee (all held units when `quantity` is omitted).",
    )
    @action(detail=True, methods=["post"], url_path="unassign")
    def unassign(self, request: Request, pk: str | None = None) -> Response:
        acc = self.get_object()
        require_if_match(request, acc)
        body = AccessoryReturnRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        data = body.validated_data

        row, returned = lifecycle.unassign_accessory(
            acc.pk, data["employee"], quantity=data.get("quantity"), notes=data["notes"], user=request.user
        )
        self._audit_write(
            acc,
            AuditAction.UNASSIGN,
            {"assignment": str(row.pk), "employee": str(row.employee_id), "quantity": returned},
        )
        return Response(self._movement(row, returned), status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Accessories: Assignment"],
        parameters=[INCLUDE_RETURNED_PARAM],
        responses={200: EmployeeAccessorySerializer(many=True)},
    )
    @action(detail=True, methods=["get"], url_path="assignments")
    def assignments(self, request: Request, pk: str | None = None) -> Response:
        acc = self.get_object()
        rows = _rows(acc.employee_accessories.all(), request, include_returned_default=True)
        return Response(EmployeeAccessorySerializer(rows, many=True).data)
