"""Referential resolver: discovery, function dedup and rewrite.

The resolver keeps the v2 object graph isomorphic to the v1 graph. It runs
in three passes over `collect_entity_refs(state)`:

1. Discovery (`discover`): every own name, function reference and
   environment reference goes through the NameRemapper; every listed
   function and every trigger's function reference lands in the logical
   function set, keyed by name.
2. Fetch/dedup (`fetch_functions`): one authoritative fetch per logical
   function name; historical versions referenced by different triggers
   collapse into one record.
3. Rewrite (`rewrite`): builds the full UpgradePlan from the persisted
   name-change table alone. Any reference without a table entry raises
   UnresolvedReferenceError and no plan is returned.

Design Note:
    Rewrite reads only `state.namechanges`, so a snapshot written by `dump`
    can be restored by a separate process.
"""
from __future__ import annotations

import base64
import binascii
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from ..errors import DeserializationError, UnresolvedReferenceError
from ..models import v1, v2
from .entity_refs import (
    ENVIRONMENT,
    FUNCTION,
    HTTP_TRIGGER,
    MQ_TRIGGER,
    TIME_TRIGGER,
    WATCH,
    EntityKind,
    EntityRef,
    collect_entity_refs,
)
from .name_remapper import NameRemapper
from .naming import package_name

logger = logging.getLogger(__name__)

FunctionFetcher = Callable[[str, Optional[str]], v1.Function]

__all__ = [
    "FunctionFetcher",
    "PlannedEntity",
    "FunctionPlan",
    "UpgradePlan",
    "ReferentialResolver",
]


@dataclass
class PlannedEntity:
    """A rewritten v2 resource and the v1 name it came from."""

    kind: EntityKind
    old_name: str
    resource: BaseModel


@dataclass
class FunctionPlan:
    """A rewritten function with its package and decoded source archive."""

    old_name: str
    package: v2.Package
    function: v2.Function
    code: bytes

    @property
    def new_name(self) -> str:
        return self.function.metadata.name


@dataclass
class UpgradePlan:
    environments: List[PlannedEntity] = field(default_factory=list)
    functions: List[FunctionPlan] = field(default_factory=list)
    triggers: List[PlannedEntity] = field(default_factory=list)


class ReferentialResolver:
    """Builds the name-change table for one run and rewrites entities with it."""

    def __init__(
        self,
        remapper: Optional[NameRemapper] = None,
        *,
        namespace: str = v2.DEFAULT_NAMESPACE,
    ):
        self._remapper = remapper or NameRemapper()
        self._namespace = namespace
        self._logical_functions: Dict[str, v1.Metadata] = {}

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------
    def discover(self, state: v1.V1State) -> None:
        """Feed every name in `state` to the remapper and collect functions."""
        refs = collect_entity_refs(state)
        for ref in refs:
            for _field, name in ref.referenced_names():
                self._remapper.remap(name)
            if ref.kind.is_function:
                self._add_logical_function(ref.own)
            elif ref.function_ref is not None:
                self._add_logical_function(ref.function_ref)
        logger.info(
            "Discovered %d entities, %d names, %d logical functions",
            len(refs),
            len(self._remapper),
            len(self._logical_functions),
        )

    def _add_logical_function(self, meta: v1.Metadata) -> None:
        # Keep a uid-qualified identity once one has been seen for the name.
        existing = self._logical_functions.get(meta.name)
        if existing is None or meta.uid is not None:
            self._logical_functions[meta.name] = meta

    @property
    def logical_functions(self) -> List[v1.Metadata]:
        return list(self._logical_functions.values())

    @property
    def name_changes(self) -> Dict[str, str]:
        return self._remapper.name_changes

    # ------------------------------------------------------------------
    # Fetch / dedup
    # ------------------------------------------------------------------
    def fetch_functions(self, fetch: FunctionFetcher) -> List[v1.Function]:
        """Fetch one authoritative record per logical function name.

        Args:
            fetch: Called as `fetch(name, uid)`; raises NotFoundError when the
                function does not exist.

        Returns:
            Deduplicated functions, one per name, in discovery order.

        Raises:
            DeserializationError: The server answered with a function of a
                different name than the one requested.
        """
        functions: Dict[str, v1.Function] = {}
        for name, meta in self._logical_functions.items():
            fn = fetch(meta.name, meta.uid)
            if fn.metadata.name != name:
                raise DeserializationError(
                    f"requested function {name!r} but the server returned {fn.metadata.name!r}"
                )
            functions[name] = fn
            # Fetched bodies may name environments no list mentioned.
            self._remapper.remap(fn.environment.name)
        return list(functions.values())

    # ------------------------------------------------------------------
    # Rewrite
    # ------------------------------------------------------------------
    def rewrite(self, state: v1.V1State) -> UpgradePlan:
        """Rebuild every entity of `state` as a v2 resource.

        Raises:
            UnresolvedReferenceError: A name or function reference has no
                counterpart in the name-change table / function collection.
            DeserializationError: The table is not injective or a function's
                code is not valid base64.
        """
        table = state.namechanges
        _check_injective(table)

        plan = UpgradePlan()
        function_names: set[str] = set()
        for ref in collect_entity_refs(state):
            if ref.kind is ENVIRONMENT:
                plan.environments.append(self._rewrite_environment(ref, table))
            elif ref.kind is FUNCTION:
                if ref.own.name in function_names:
                    logger.warning(
                        "Snapshot lists function %r more than once; keeping the first",
                        ref.own.name,
                    )
                    continue
                function_names.add(ref.own.name)
                plan.functions.append(self._rewrite_function(ref, table))
            else:
                if ref.function_ref is not None and ref.function_ref.name not in function_names:
                    raise UnresolvedReferenceError(
                        ref.kind.name, ref.own.name, ref.function_ref.name, "function"
                    )
                plan.triggers.append(self._rewrite_trigger(ref, table))

        logger.info(
            "Rewrote %d environments, %d functions, %d triggers",
            len(plan.environments),
            len(plan.functions),
            len(plan.triggers),
        )
        return plan

    def _meta(self, name: str) -> v2.ObjectMeta:
        return v2.ObjectMeta(name=name, namespace=self._namespace)

    def _rewrite_environment(self, ref: EntityRef, table: Dict[str, str]) -> PlannedEntity:
        env: v1.Environment = ref.entity
        resource = v2.Environment(
            metadata=self._meta(_lookup(table, ref, "metadata", ref.own.name)),
            spec=v2.EnvironmentSpec(runtime=v2.Runtime(image=env.runContainerImageUrl)),
        )
        return PlannedEntity(kind=ref.kind, old_name=ref.own.name, resource=resource)

    def _rewrite_function(self, ref: EntityRef, table: Dict[str, str]) -> FunctionPlan:
        fn: v1.Function = ref.entity
        new_name = _lookup(table, ref, "metadata", ref.own.name)
        env_name = _lookup(table, ref, "environment", fn.environment.name)
        try:
            code = base64.b64decode(fn.code, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DeserializationError(
                f"function {ref.own.name!r}: code is not valid base64: {e}"
            ) from e

        pkg_name = package_name(new_name, ref.own.name, ref.own.uid)
        env_ref = v2.EnvironmentReference(name=env_name, namespace=self._namespace)
        package = v2.Package(
            metadata=self._meta(pkg_name),
            spec=v2.PackageSpec(environment=env_ref),
        )
        function = v2.Function(
            metadata=self._meta(new_name),
            spec=v2.FunctionSpec(
                environment=env_ref,
                package=v2.FunctionPackageRef(
                    packageref=v2.PackageRef(name=pkg_name, namespace=self._namespace)
                ),
            ),
        )
        return FunctionPlan(old_name=ref.own.name, package=package, function=function, code=code)

    def _rewrite_trigger(self, ref: EntityRef, table: Dict[str, str]) -> PlannedEntity:
        meta = self._meta(_lookup(table, ref, "metadata", ref.own.name))
        if ref.function_ref is None:
            raise UnresolvedReferenceError(ref.kind.name, ref.own.name, "", "function")
        fn_ref = v2.FunctionReference(name=_lookup(table, ref, "function", ref.function_ref.name))
        t = ref.entity
        resource: BaseModel
        if ref.kind is HTTP_TRIGGER:
            resource = v2.HTTPTrigger(
                metadata=meta,
                spec=v2.HTTPTriggerSpec(relativeurl=t.urlpattern, method=t.method, functionref=fn_ref),
            )
        elif ref.kind is MQ_TRIGGER:
            resource = v2.MessageQueueTrigger(
                metadata=meta,
                spec=v2.MessageQueueTriggerSpec(
                    functionref=fn_ref, topic=t.topic, respTopic=t.respTopic
                ),
            )
        elif ref.kind is TIME_TRIGGER:
            resource = v2.TimeTrigger(
                metadata=meta,
                spec=v2.TimeTriggerSpec(cron=t.cron, functionref=fn_ref),
            )
        elif ref.kind is WATCH:
            resource = v2.KubernetesWatchTrigger(
                metadata=meta,
                spec=v2.KubernetesWatchTriggerSpec(
                    namespace=t.namespace, type=t.objtype, functionref=fn_ref
                ),
            )
        else:  # pragma: no cover - every trigger kind is handled above
            raise ValueError(f"no rewrite for entity kind {ref.kind.name!r}")
        return PlannedEntity(kind=ref.kind, old_name=ref.own.name, resource=resource)


def _lookup(table: Dict[str, str], ref: EntityRef, field_name: str, old: str) -> str:
    try:
        return table[old]
    except KeyError:
        raise UnresolvedReferenceError(ref.kind.name, ref.own.name, old, field_name) from None


def _check_injective(table: Dict[str, str]) -> None:
    dupes = [name for name, n in Counter(table.values()).items() if n > 1]
    if dupes:
        raise DeserializationError(
            f"name-change table maps several old names to {sorted(dupes)}"
        )
