"""AppConfig for the `core` app.

Holds shared infrastructure used by the domain apps: the audited abstract base
model, request-id logging and middleware, domain exceptions with the DRF
exception handler, pagination, the health view and small utilities
(optimistic concurrency, dependency checks before delete).
"""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
