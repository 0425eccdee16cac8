from __future__ import annotations

"""
Core data models shared across the project.

`AuditedModel` is the abstract base for every entity: a generated UUID primary
key, UTC `created_at`/`updated_at` timestamps and the username of the actor
that created and last changed the row (`created_by`/`updated_by`).

Actors are stored as plain usernames rather than foreign keys so that audit
columns survive user removal and entity tables carry no dependency on the
auth schema.
"""

import uuid

from django.db import models


def actor_name(user) -> str:
    """Username for audit columns; blank for anonymous or system writes."""
    if user is None or not getattr(user, "is_authenticated", False):
        return ""
    return user.get_username()


ACTIVE = "ACTIVE"


class AuditedQuerySet(models.QuerySet):
    """Query helpers shared by all entity tables."""

    def active(self):
        """
        Rows flagged active: `status == "ACTIVE"` for master data with a status
        column, `is_active` for SIM reference tables. Unflagged models pass through.
        """
        names = {f.name for f in self.model._meta.concrete_fields}
        if "status" in names:
            return self.filter(status=ACTIVE)
        if "is_active" in names:
            return self.filter(is_active=True)
        return self


class AuditedModel(models.Model):
    """
    Abstract base with identifier and audit fields.

    Invariants:
        - `id` is assigned on instantiation and never changes.
        - `created_at` is set once on insert; `updated_at` moves on every save.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.CharField(max_length=150, blank=True, default="")
    updated_by = models.CharField(max_length=150, blank=True, default="")

    objects = AuditedQuerySet.as_manager()

    class Meta:
        abstract = True
        ordering = ("-created_at",)

    def stamp(self, user) -> None:
        """Record `user` as the latest actor (and the creator on first save)."""
        name = actor_name(user)
        if self._state.adding and not self.created_by:
            self.created_by = name
        self.updated_by = name

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.pk}>"
