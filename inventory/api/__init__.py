# Explicit re-exports for router imports like:
#   from inventory.api import AssetViewSet, ...

from .viewsets import (
    CompanyViewSet,
    CostCenterViewSet,
    NationalityViewSet,
    ProjectViewSet,
    DepartmentViewSet,
    SubDepartmentViewSet,
    EmployeeCategoryViewSet,
    EmployeePositionViewSet,
    ItemCategoryViewSet,
    ItemViewSet,
    SupplierViewSet,
    EmployeeViewSet,
    AssetViewSet,  # includes AssetOpsMixin
    SimProviderViewSet,
    SimTypeViewSet,
    SimCardPlanViewSet,
    SimCardViewSet,  # includes SimCardOpsMixin
    SoftwareLicenseViewSet,  # includes SoftwareLicenseOpsMixin
    AccessoryViewSet,  # includes AccessoryOpsMixin
    PurchaseOrderViewSet,
    AssetAssignmentViewSet,
    SimCardAssignmentViewSet,
    SoftwareLicenseAssignmentViewSet,
    AccessoryAssignmentViewSet,
)
from .audit import AuditLogViewSet

__all__ = [
    "CompanyViewSet",
    "CostCenterViewSet",
    "NationalityViewSet",
    "ProjectViewSet",
    "DepartmentViewSet",
    "SubDepartmentViewSet",
    "EmployeeCategoryViewSet",
    "EmployeePositionViewSet",
    "ItemCategoryViewSet",
    "ItemViewSet",
    "SupplierViewSet",
    "EmployeeViewSet",
    "AssetViewSet",
    "SimProviderViewSet",
    "SimTypeViewSet",
    "SimCardPlanViewSet",
    "SimCardViewSet",
    "SoftwareLicenseViewSet",
    "AccessoryViewSet",
    "PurchaseOrderViewSet",
    "AssetAssignmentViewSet",
    "SimCardAssignmentViewSet",
    "SoftwareLicenseAssignmentViewSet",
    "AccessoryAssignmentViewSet",
    "AuditLogViewSet",
]
