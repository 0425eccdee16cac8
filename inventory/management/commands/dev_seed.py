from __future__ import annotations

"""
Seed development data for Asset Tracker.

Goals
-----
- Fast local onboarding with deterministic sample data.
- Re-runnable: reference data uses `get_or_create`, and assignments go through
  `inventory.assignments`, which refuses to hand out a resource twice.

What it creates
---------------
- A staff user ("admin") with a known password for local testing.
- Companies, cost centers, projects, departments with sub-departments,
  employee categories/positions and nationalities.
- Employees, item categories/items, assets, SIM reference data and cards,
  software licenses and accessories.
- A handful of open assignments of each kind.
- Size profiles (SMALL|MEDIUM|LARGE) scale employee and resource counts.

Safety
------
- `--reset` hard-deletes all inventory data (assignments first, then
  resources, then master data) before seeding.
- `handle` runs in a single transaction.

Usage
-----
    python manage.py dev_seed --size MEDIUM
    python manage.py dev_seed --reset --size SMALL
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandParser
from django.db import transaction

from core.models import actor_name
from core.exceptions import DomainError
from inventory import assignments as lifecycle
from inventory.models import (
    Accessory,
    Asset,
    AssignmentStatus,
    AuditLog,
    Company,
    CostCenter,
    Department,
    Employee,
    EmployeeAccessory,
    EmployeeAsset,
    EmployeeCategory,
    EmployeePosition,
    EmployeeSimCard,
    EmployeeSoftwareLicense,
    Item,
    ItemCategory,
    Nationality,
    Project,
    PurchaseOrder,
    PurchaseOrderItem,
    SimCard,
    SimCardPlan,
    SimProvider,
    SimType,
    SoftwareLicense,
    SubDepartment,
    Supplier,
)

User = get_user_model()


@dataclass(frozen=True)
class SizeProfile:
    """Scale factors for generated data."""
    employees_per_department: int
    assets_per_item: int
    sim_cards: int
    assigned_share: int  # every Nth employee receives resources


SIZES = {
    "SMALL": SizeProfile(employees_per_department=3, assets_per_item=2, sim_cards=4, assigned_share=2),
    "MEDIUM": SizeProfile(employees_per_department=8, assets_per_item=5, sim_cards=12, assigned_share=2),
    "LARGE": SizeProfile(employees_per_department=20, assets_per_item=12, sim_cards=40, assigned_share=3),
}

FIRST_NAMES = ["Amira", "Ben", "Carla", "Dev", "Elif", "Femi", "Grace", "Hugo", "Ines", "Jon"]
LAST_NAMES = ["Khan", "Larsen", "Moreau", "Nakamura", "Okafor", "Petrov", "Quinn", "Rossi", "Silva", "Tanaka"]

DEPARTMENTS = {
    "Engineering": ["Platform", "Field Services"],
    "Finance": ["Accounts Payable"],
    "Operations": ["Logistics", "Facilities"],
}

ITEMS = {
    "Laptops": ["Laptop 14in", "Laptop 16in"],
    "Phones": ["Smartphone"],
    "Monitors": ["Monitor 27in"],
}


class Command(BaseCommand):
    """
    Seed deterministic development data.

    Options:
        --reset  : delete existing inventory data before seeding
        --size   : SMALL (default), MEDIUM, LARGE
    """
    help = "Seed development data (re-runnable). Use --reset to clear existing inventory data first."

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--reset",
            action="store_true",
            default=False,
            help="Delete all inventory data before seeding.",
        )
        parser.add_argument(
            "--size",
            type=str,
            choices=("SMALL", "MEDIUM", "LARGE"),
            default="SMALL",
            help="How much data to create.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        profile: SizeProfile = SIZES[options["size"].upper()]

        if options["reset"]:
            self._reset()

        user = self._ensure_user()
        self.stdout.write(self.style.SUCCESS(f"User ready: {user.username}"))

        org = self._seed_master_data(user)
        employees = self._seed_employees(user, org, profile)
        resources = self._seed_resources(user, org, profile)
        assigned = self._seed_assignments(user, employees, resources, profile)

        self.stdout.write(
            self.style.SUCCESS(
                f"Seeding complete: {len(employees)} employees, {len(resources['assets'])} assets, "
                f"{len(resources['sim_cards'])} SIM cards, {assigned} new assignments."
            )
        )

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    def _reset(self) -> None:
        """Delete inventory data in dependency order (FKs are PROTECT)."""
        for model in (
            AuditLog,
            PurchaseOrderItem,
            PurchaseOrder,
            EmployeeAsset,
            EmployeeSimCard,
            EmployeeSoftwareLicense,
            EmployeeAccessory,
            Asset,
            SimCard,
            SoftwareLicense,
            Accessory,
            SimCardPlan,
            SimProvider,
            SimType,
            Employee,
            Item,
            ItemCategory,
            Supplier,
            SubDepartment,
            Department,
            Project,
            Company,
            CostCenter,
            Nationality,
            EmployeeCategory,
            EmployeePosition,
        ):
            model.objects.all().delete()
        self.stdout.write(self.style.WARNING("Existing inventory data deleted."))

    def _ensure_user(self):
        user, _ = User.objects.get_or_create(username="admin", defaults={"is_staff": True, "is_superuser": True})
        user.set_password("pass12345")
        user.is_staff = True
        user.save(update_fields=["password", "is_staff"])
        return user

    def _stamped(self, model, user, lookup: dict, defaults: dict | None = None):
        name = actor_name(user)
        obj, _ = model.objects.get_or_create(
            **lookup, defaults={**(defaults or {}), "created_by": name, "updated_by": name}
        )
        return obj

    def _seed_master_data(self, user) -> dict:
        companies = [self._stamped(Company, user, {"name": n}) for n in ("Northwind Ltd", "Contoso Group")]
        cost_centers = [
            self._stamped(CostCenter, user, {"code": code}, {"name": name})
            for code, name in (("CC-100", "Head Office"), ("CC-200", "Field Operations"))
        ]
        nationalities = [self._stamped(Nationality, user, {"name": n}) for n in ("British", "Indian", "Brazilian")]
        projects = [
            self._stamped(
                Project,
                user,
                {"code": f"PRJ-{i + 1:03d}"},
                {"name": name, "company": companies[i % 2], "cost_center": cost_centers[i % 2]},
            )
            for i, name in enumerate(("Fleet Rollout", "Data Centre Move", "Branch Refresh"))
        ]
        departments = []
        for dept_name, subs in DEPARTMENTS.items():
            dept = self._stamped(Department, user, {"name": dept_name})
            for sub in subs:
                self._stamped(SubDepartment, user, {"department": dept, "name": sub})
            departments.append(dept)
        categories = [self._stamped(EmployeeCategory, user, {"name": n}) for n in ("Permanent", "Contractor")]
        positions = [self._stamped(EmployeePosition, user, {"name": n}) for n in ("Engineer", "Analyst", "Manager")]
        self._stamped(Supplier, user, {"name": "TechSource Supplies"}, {"contact_person": "Sam Reed"})
        return {
            "companies": companies,
            "cost_centers": cost_centers,
            "nationalities": nationalities,
            "projects": projects,
            "departments": departments,
            "categories": categories,
            "positions": positions,
        }

    def _seed_employees(self, user, org: dict, profile: SizeProfile) -> list[Employee]:
        employees = []
        n = 0
        for d_index, dept in enumerate(org["departments"]):
            subs = list(dept.sub_departments.all())
            for i in range(profile.employees_per_department):
                n += 1
                first = FIRST_NAMES[n % len(FIRST_NAMES)]
                last = LAST_NAMES[(n * 3) % len(LAST_NAMES)]
                employees.append(
                    self._stamped(
                        Employee,
                        user,
                        {"employee_code": f"EMP-{n:04d}"},
                        {
                            "first_name": first,
                            "last_name": last,
                            "email": f"{first}.{last}.{n}@example.com".lower(),
                            "department": dept,
                            "sub_department": subs[i % len(subs)] if subs else None,
                            "project": org["projects"][n % len(org["projects"])],
                            "company": org["companies"][d_index % len(org["companies"])],
                            "cost_center": org["cost_centers"][n % len(org["cost_centers"])],
                            "nationality": org["nationalities"][n % len(org["nationalities"])],
                            "category": org["categories"][n % len(org["categories"])],
                            "position": org["positions"][n % len(org["positions"])],
                        },
                    )
                )
        return employees

    def _seed_resources(self, user, org: dict, profile: SizeProfile) -> dict:
        assets = []
        tag = 0
        for cat_name, item_names in ITEMS.items():
            category = self._stamped(ItemCategory, user, {"name": cat_name})
            for item_name in item_names:
                item = self._stamped(Item, user, {"name": item_name}, {"item_category": category})
                for _ in range(profile.assets_per_item):
                    tag += 1
                    assets.append(
                        self._stamped(
                            Asset,
                            user,
                            {"asset_tag": f"AT-{tag:05d}"},
                            {
                                "name": item_name,
                                "serial_number": f"SN{tag:08d}",
                                "item": item,
                                "project": org["projects"][tag % len(org["projects"])],
                                "location": "HQ Store",
                                "condition": "Good",
                            },
                        )
                    )

        provider = self._stamped(SimProvider, user, {"name": "Telco One"}, {"contact_info": "support@telco.example"})
        sim_type = self._stamped(SimType, user, {"name": "eSIM"})
        plan = self._stamped(
            SimCardPlan,
            user,
            {"provider": provider, "name": "Business 20GB"},
            {"data_limit": "20GB", "monthly_fee": Decimal("25.00")},
        )
        sim_cards = [
            self._stamped(
                SimCard,
                user,
                {"sim_account_no": "ACC-9000", "sim_service_no": f"0700{i:06d}"},
                {
                    "sim_serial_no": f"8944{i:012d}",
                    "sim_type": sim_type,
                    "sim_card_plan": plan,
                    "sim_provider": provider,
                    "sim_start_date": date.today() - timedelta(days=30 * (i % 12)),
                },
            )
            for i in range(1, profile.sim_cards + 1)
        ]

        licenses = [
            self._stamped(
                SoftwareLicense,
                user,
                {"software_name": name},
                {
                    "vendor": vendor,
                    "license_type": "Subscription",
                    "seats": seats,
                    "purchase_date": date.today() - timedelta(days=90),
                    "expiry_date": date.today() + timedelta(days=275),
                },
            )
            for name, vendor, seats in (("Office Suite", "Microsoft", 50), ("CAD Pro", "Autodesk", 5))
        ]
        accessories = [
            self._stamped(Accessory, user, {"name": name}, {"quantity_available": qty})
            for name, qty in (("USB-C Dock", 30), ("Headset", 40), ("Laptop Bag", 25))
        ]
        return {"assets": assets, "sim_cards": sim_cards, "licenses": licenses, "accessories": accessories}

    def _seed_assignments(self, user, employees: list[Employee], resources: dict, profile: SizeProfile) -> int:
        """
        Hand out resources to every Nth employee through the lifecycle services.

        Already-held resources raise domain errors on re-runs; those are skipped.
        """
        created = 0
        holders = employees[:: profile.assigned_share]
        for i, employee in enumerate(holders):
            steps = []
            if i < len(resources["assets"]):
                steps.append(lambda e=employee, a=resources["assets"][i]: lifecycle.assign_asset(a.pk, e.pk, user=user))
            if i < len(resources["sim_cards"]):
                steps.append(
                    lambda e=employee, s=resources["sim_cards"][i]: lifecycle.assign_sim_card(s.pk, e.pk, user=user)
                )
            lic = resources["licenses"][i % len(resources["licenses"])]
            steps.append(lambda e=employee, lc=lic: lifecycle.assign_software_license(lc.pk, e.pk, user=user))
            acc = resources["accessories"][i % len(resources["accessories"])]
            # accessory hand-outs merge into the open row, so only seed the first one
            if not acc.employee_accessories.filter(employee=employee, status=AssignmentStatus.ASSIGNED).exists():
                steps.append(lambda e=employee, ac=acc: lifecycle.assign_accessory(ac.pk, e.pk, quantity=1, user=user))

            for step in steps:
                try:
                    with transaction.atomic():
                        step()
                    created += 1
                except DomainError as exc:
                    self.stdout.write(f"skipped for {employee.employee_code}: {exc.detail}")
        return created
