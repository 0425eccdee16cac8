from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from inventory.models import (
    Asset,
    AssetStatus,
    AssignmentStatus,
    Employee,
    EmployeeAsset,
    EmployeeSimCard,
    SimCard,
)


class DevSeedTests(TestCase):
    def _seed(self, *args):
        out = StringIO()
        call_command("dev_seed", *args, stdout=out)
        return out.getvalue()

    def test_small_profile(self):
        out = self._seed("--size", "SMALL")
        self.assertIn("Seeding complete", out)
        self.assertEqual(Employee.objects.count(), 9)
        self.assertEqual(Asset.objects.count(), 8)
        self.assertEqual(SimCard.objects.count(), 4)

        open_assets = EmployeeAsset.objects.filter(status=AssignmentStatus.ASSIGNED)
        self.assertEqual(open_assets.count(), 5)
        self.assertEqual(Asset.objects.filter(status=AssetStatus.ASSIGNED).count(), 5)
        for sim in SimCard.objects.filter(assigned_to__isnull=False):
            self.assertTrue(sim.employee_sim_cards.filter(status=AssignmentStatus.ASSIGNED).exists())

    def test_rerun_is_idempotent(self):
        self._seed()
        self._seed()
        self.assertEqual(Employee.objects.count(), 9)
        self.assertEqual(EmployeeAsset.objects.count(), 5)
        self.assertEqual(EmployeeSimCard.objects.count(), 4)

    def test_reset(self):
        self._seed()
        out = self._seed("--reset")
        self.assertIn("Existing inventory data deleted.", out)
        self.assertEqual(EmployeeAsset.objects.count(), 5)
