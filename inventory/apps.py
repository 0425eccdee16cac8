"""
AppConfig for the `inventory` domain app.

Startup responsibilities
------------------------
- Import **schema** (optional): shared drf-spectacular components. In DEBUG we
  still surface import errors to catch schema issues early.
"""

from __future__ import annotations

import logging
from importlib import import_module

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class InventoryConfig(AppConfig):
    """Companies, employees, trackable resources and their assignments."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "inventory"

    def ready(self) -> None:  # pragma: no cover
        self._import_startup_module("inventory.schema", required=False)

    @staticmethod
    def _import_startup_module(dotted_path: str, *, required: bool) -> None:
        """
        Import a module at startup.

        - `required` and import fails: log and re-raise.
        - Optional: re-raise in DEBUG, otherwise log a warning and continue.
        """
        try:
            import_module(dotted_path)
        except Exception:
            if required or settings.DEBUG:
                logger.exception("Failed to import startup module: %s", dotted_path)
                raise
            logger.warning("Optional startup module failed to import and was skipped: %s", dotted_path)
