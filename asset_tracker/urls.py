"""
Project URL configuration.

Surfaces
--------
- `/admin/`: Django admin (back-office only).
- `/health/`: unauthenticated readiness check.
- `/api/`: router-driven ViewSets plus standalone lookup, report, import and
  master-data views.
- `/api/schema`, `/api/docs`, `/api/redoc`: OpenAPI schema and UIs.
"""

from __future__ import annotations

from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularSwaggerView,
    SpectacularRedocView,
)

from core.views import health

# ViewSets (router-driven)
from inventory.api import (
    AccessoryAssignmentViewSet,
    AccessoryViewSet,
    AssetAssignmentViewSet,
    AssetViewSet,
    AuditLogViewSet,
    CompanyViewSet,
    CostCenterViewSet,
    DepartmentViewSet,
    EmployeeCategoryViewSet,
    EmployeePositionViewSet,
    EmployeeViewSet,
    ItemCategoryViewSet,
    ItemViewSet,
    NationalityViewSet,
    ProjectViewSet,
    PurchaseOrderViewSet,
    SimCardAssignmentViewSet,
    SimCardPlanViewSet,
    SimCardViewSet,
    SimProviderViewSet,
    SimTypeViewSet,
    SoftwareLicenseAssignmentViewSet,
    SoftwareLicenseViewSet,
    SubDepartmentViewSet,
    SupplierViewSet,
)

# Standalone APIViews
from inventory.api.imports import AssetImportView, EmployeeImportView, SimCardImportView
from inventory.api.lookups import LookupTypesView, LookupView
from inventory.api.master_data import MasterDataBulkCreateView, MasterDataStatisticsView
from inventory.api.reports import (
    AssetMaintenanceReportView,
    AssetSummaryReportView,
    AssetUtilizationReportView,
    DashboardStatsView,
    EmployeeAssetsReportView,
    ExpiringWarrantyReportView,
    InventorySummaryView,
)

# ---------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------
router = DefaultRouter()

# Organisation master data
router.register(r"companies", CompanyViewSet, basename="company")
router.register(r"cost-centers", CostCenterViewSet, basename="costcenter")
router.register(r"nationalities", NationalityViewSet, basename="nationality")
router.register(r"projects", ProjectViewSet, basename="project")
router.register(r"departments", DepartmentViewSet, basename="department")
router.register(r"sub-departments", SubDepartmentViewSet, basename="subdepartment")
router.register(r"employee-categories", EmployeeCategoryViewSet, basename="employeecategory")
router.register(r"employee-positions", EmployeePositionViewSet, basename="employeeposition")
router.register(r"item-categories", ItemCategoryViewSet, basename="itemcategory")
router.register(r"items", ItemViewSet, basename="item")
router.register(r"suppliers", SupplierViewSet, basename="supplier")

# People and trackable resources
router.register(r"employees", EmployeeViewSet, basename="employee")
router.register(r"assets", AssetViewSet, basename="asset")
router.register(r"sim-providers", SimProviderViewSet, basename="simprovider")
router.register(r"sim-types", SimTypeViewSet, basename="simtype")
router.register(r"sim-card-plans", SimCardPlanViewSet, basename="simcardplan")
router.register(r"sim-cards", SimCardViewSet, basename="simcard")
router.register(r"software-licenses", SoftwareLicenseViewSet, basename="softwarelicense")
router.register(r"accessories", AccessoryViewSet, basename="accessory")
router.register(r"purchase-orders", PurchaseOrderViewSet, basename="purchaseorder")

# Assignment records (read-only) and audit
router.register(r"assignments/assets", AssetAssignmentViewSet, basename="asset-assignment")
router.register(r"assignments/sim-cards", SimCardAssignmentViewSet, basename="simcard-assignment")
router.register(r"assignments/software-licenses", SoftwareLicenseAssignmentViewSet, basename="license-assignment")
router.register(r"assignments/accessories", AccessoryAssignmentViewSet, basename="accessory-assignment")
router.register(r"audit-logs", AuditLogViewSet, basename="auditlog")

# ---------------------------------------------------------------------
# URL patterns
# ---------------------------------------------------------------------
urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health, name="health"),

    # OpenAPI / Docs
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),

    # Lookups
    path("api/lookups/", LookupTypesView.as_view(), name="lookup-types"),
    path("api/lookups/<str:lookup_type>/", LookupView.as_view(), name="lookup"),

    # Dashboard and reports
    path("api/dashboard/stats/", DashboardStatsView.as_view(), name="dashboard-stats"),
    path("api/reports/asset-summary/", AssetSummaryReportView.as_view(), name="report-asset-summary"),
    path("api/reports/employee-assets/", EmployeeAssetsReportView.as_view(), name="report-employee-assets"),
    path("api/reports/asset-utilization/", AssetUtilizationReportView.as_view(), name="report-asset-utilization"),
    path("api/reports/asset-maintenance/", AssetMaintenanceReportView.as_view(), name="report-asset-maintenance"),
    path("api/reports/expiring-warranty/", ExpiringWarrantyReportView.as_view(), name="report-expiring-warranty"),
    path("api/inventory/summary/", InventorySummaryView.as_view(), name="inventory-summary"),

    # CSV imports and master data
    path("api/imports/assets/", AssetImportView.as_view(), name="import-assets"),
    path("api/imports/employees/", EmployeeImportView.as_view(), name="import-employees"),
    path("api/imports/sim-cards/", SimCardImportView.as_view(), name="import-sim-cards"),
    path("api/master-data/bulk-create/", MasterDataBulkCreateView.as_view(), name="master-data-bulk-create"),
    path("api/master-data/statistics/", MasterDataStatisticsView.as_view(), name="master-data-statistics"),

    # Router-driven API
    path("api/", include(router.urls)),
]
