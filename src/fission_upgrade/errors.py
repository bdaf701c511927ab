"""Error taxonomy for the upgrade pipeline.

Engine errors (`DeserializationError`, `UnresolvedReferenceError`) are
invariant violations: they abort the run before anything is created and are
never retried. `NotFoundError` is raised by the authoritative function fetch
and is fatal for a dump. `ConflictError` and `ValidationError` come from the
v2 creation calls and carry enough context (entity kind, old name, new name)
for an operator to remediate by hand and re-run.
"""
from __future__ import annotations

from typing import Optional

__all__ = [
    "UpgradeError",
    "DeserializationError",
    "UnresolvedReferenceError",
    "NotFoundError",
    "EntityCreateError",
    "ConflictError",
    "ValidationError",
]


class UpgradeError(Exception):
    """Base class for every error raised by fission_upgrade."""


class DeserializationError(UpgradeError):
    """A snapshot or server payload does not have the expected shape."""


class UnresolvedReferenceError(UpgradeError):
    """An entity references a name that discovery never recorded."""

    def __init__(self, kind: str, entity_name: str, reference: str, field: str):
        self.kind = kind
        self.entity_name = entity_name
        self.reference = reference
        self.field = field
        super().__init__(
            f"{kind} {entity_name!r}: {field} reference {reference!r} has no resolved name"
        )


class NotFoundError(UpgradeError):
    """The v1 server has no function matching the requested identity."""

    def __init__(self, name: str, uid: Optional[str] = None):
        self.name = name
        self.uid = uid
        target = f"{name} (uid={uid})" if uid else name
        super().__init__(f"function {target} not found on v1 server")


class EntityCreateError(UpgradeError):
    """Creating a rewritten entity on the v2 server failed.

    `status_code` is None when no response arrived (timeout, dropped
    connection); the entity may or may not exist on the server.
    """

    def __init__(
        self,
        kind: str,
        old_name: str,
        new_name: str,
        status_code: Optional[int],
        detail: str = "",
    ):
        self.kind = kind
        self.old_name = old_name
        self.new_name = new_name
        self.status_code = status_code
        self.detail = detail
        outcome = f"status={status_code}" if status_code is not None else "no response"
        super().__init__(
            f"create {kind} {new_name!r} (was {old_name!r}) failed {outcome}: {detail}"
        )


class ConflictError(EntityCreateError):
    """The v2 server already has an entity with this name."""


class ValidationError(EntityCreateError):
    """The v2 server rejected the entity as invalid."""
