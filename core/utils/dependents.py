"""
Dependency checks run before a hard delete.

`count_dependents(instance)` walks every reverse foreign key pointing at the
row and counts referencing rows per related table. Relations declared with
`on_delete=CASCADE` are owned by the row and go with it, so they are skipped.
`ensure_deletable(instance)` raises `ConflictError` (409, code `has_dependents`)
listing those counts when any exist.

The check runs inside the request transaction; foreign keys are declared with
`on_delete=PROTECT`, so a reference inserted after the check still aborts the
delete (surfaced as the same 409 by the exception handler).
"""

from __future__ import annotations

from django.db import models

from core.exceptions import ConflictError


def count_dependents(instance: models.Model) -> dict[str, int]:
    """Return `{<related verbose_name_plural>: count}` for non-empty reverse relations."""
    counts: dict[str, int] = {}
    for rel in instance._meta.related_objects:
        if not (rel.one_to_many or rel.one_to_one):
            continue
        if rel.on_delete is models.CASCADE:
            continue
        manager = rel.related_model._default_manager
        n = manager.filter(**{rel.field.name: instance}).count()
        if n:
            label = str(rel.related_model._meta.verbose_name_plural)
            counts[label] = counts.get(label, 0) + n
    return dict(sorted(counts.items()))


def ensure_deletable(instance: models.Model) -> None:
    dependents = count_dependents(instance)
    if dependents:
        summary = ", ".join(f"{n} {label}" for label, n in dependents.items())
        raise ConflictError(
            f"Cannot delete {instance._meta.verbose_name} '{instance}': referenced by {summary}.",
            code="has_dependents",
            dependents=dependents,
        )
