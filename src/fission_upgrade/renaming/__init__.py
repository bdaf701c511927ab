"""Identifier remapping and referential-integrity engine.

Everything in this package is pure and in-memory: no network I/O, no file
access. Identical input always produces identical output.

Modules:
    naming: Kubernetes name constraint and deterministic package names
    name_remapper: Unique, valid name allocation (NameRemapper)
    entity_refs: Uniform view over the six v1 entity collections
    resolver: Discovery, function dedup and rewrite (ReferentialResolver)
"""
from __future__ import annotations

from .name_remapper import NameRemapper
from .resolver import FunctionPlan, PlannedEntity, ReferentialResolver, UpgradePlan

__all__ = [
    "NameRemapper",
    "ReferentialResolver",
    "UpgradePlan",
    "PlannedEntity",
    "FunctionPlan",
]
