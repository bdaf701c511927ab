"""Uniform view over the six v1 entity collections.

Discovery and rewrite never loop over collections by hand; they iterate the
flat list returned by `collect_entity_refs`, which is driven by the
`ENTITY_KINDS` table. A new v1 entity kind only needs a row in that table to
be covered by discovery.

Table order is the discovery order and is part of the determinism contract:
environments, functions, HTTP triggers, message-queue triggers, time
triggers, watches.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..models.v1 import Metadata, V1State

__all__ = [
    "EntityKind",
    "EntityRef",
    "ENTITY_KINDS",
    "ENVIRONMENT",
    "FUNCTION",
    "HTTP_TRIGGER",
    "MQ_TRIGGER",
    "TIME_TRIGGER",
    "WATCH",
    "collect_entity_refs",
]


@dataclass(frozen=True)
class EntityKind:
    name: str
    collection: str
    function_field: Optional[str] = None
    environment_field: Optional[str] = None
    is_function: bool = False


ENVIRONMENT = EntityKind("environment", "environments")
FUNCTION = EntityKind("function", "functions", environment_field="environment", is_function=True)
HTTP_TRIGGER = EntityKind("http trigger", "httptriggers", function_field="function")
MQ_TRIGGER = EntityKind("message queue trigger", "mqtriggers", function_field="function")
TIME_TRIGGER = EntityKind("time trigger", "timetriggers", function_field="function")
WATCH = EntityKind("kubernetes watch trigger", "watches", function_field="function")

ENTITY_KINDS: Tuple[EntityKind, ...] = (
    ENVIRONMENT,
    FUNCTION,
    HTTP_TRIGGER,
    MQ_TRIGGER,
    TIME_TRIGGER,
    WATCH,
)


@dataclass(frozen=True)
class EntityRef:
    """One v1 entity with its own identity and outgoing references."""

    kind: EntityKind
    entity: Any
    own: Metadata
    function_ref: Optional[Metadata] = None
    environment_ref: Optional[Metadata] = None

    def referenced_names(self) -> List[Tuple[str, str]]:
        """Return (field, name) for every name this entity depends on."""
        names = [("metadata", self.own.name)]
        if self.function_ref is not None:
            names.append(("function", self.function_ref.name))
        if self.environment_ref is not None:
            names.append(("environment", self.environment_ref.name))
        return names


def _ref_for(kind: EntityKind, entity: Any) -> EntityRef:
    return EntityRef(
        kind=kind,
        entity=entity,
        own=entity.metadata,
        function_ref=getattr(entity, kind.function_field) if kind.function_field else None,
        environment_ref=getattr(entity, kind.environment_field) if kind.environment_field else None,
    )


def collect_entity_refs(state: V1State) -> List[EntityRef]:
    """Flatten every collection of `state` into EntityRefs, in table order."""
    return [
        _ref_for(kind, entity)
        for kind in ENTITY_KINDS
        for entity in getattr(state, kind.collection)
    ]
