"""Dump and restore orchestration.

`dump_state` is the extract half of the upgrade: it captures every v1
collection, runs discovery, fetches one authoritative body per logical
function and stores the snapshot with its completed name-change table.

`restore_state` is the load half: it rewrites the whole snapshot into v2
resources first (so an integrity error aborts before anything is created),
then creates them in dependency order:

1. environments
2. packages, each followed by its function
3. HTTP triggers, message-queue triggers, time triggers, watches

Creation is not transactional. On the first failure the error is logged with
the entity's kind, old and new name and the number of resources already
created, then re-raised; nothing is rolled back.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Protocol, Tuple

from .errors import EntityCreateError
from .models import v1, v2
from .renaming import ReferentialResolver, UpgradePlan
from .renaming.entity_refs import (
    ENVIRONMENT,
    FUNCTION,
    HTTP_TRIGGER,
    MQ_TRIGGER,
    TIME_TRIGGER,
    WATCH,
    EntityKind,
)
from .snapshot import store_snapshot

logger = logging.getLogger(__name__)

__all__ = [
    "StateSource",
    "ResourceSink",
    "RestoreResult",
    "dump_state",
    "restore_state",
    "plan_documents",
]


class StateSource(Protocol):
    def fetch_state(self) -> v1.V1State: ...

    def fetch_function(self, name: str, uid: Optional[str] = None) -> v1.Function: ...


class ResourceSink(Protocol):
    def create_environment(self, env: v2.Environment, old_name: str) -> v2.ObjectMeta: ...

    def create_package(self, pkg: v2.Package, old_name: str) -> v2.ObjectMeta: ...

    def create_function(self, fn: v2.Function, old_name: str) -> v2.ObjectMeta: ...

    def create_http_trigger(self, t: v2.HTTPTrigger, old_name: str) -> v2.ObjectMeta: ...

    def create_mq_trigger(self, t: v2.MessageQueueTrigger, old_name: str) -> v2.ObjectMeta: ...

    def create_time_trigger(self, t: v2.TimeTrigger, old_name: str) -> v2.ObjectMeta: ...

    def create_watch(self, t: v2.KubernetesWatchTrigger, old_name: str) -> v2.ObjectMeta: ...

    def upload_archive(self, code: bytes, *, package_name: str, old_name: str) -> v2.Archive: ...


@dataclass
class RestoreResult:
    plan: UpgradePlan
    created: int
    dry_run: bool


def dump_state(source: StateSource, path: Optional[str] = None) -> v1.V1State:
    """Capture v1 state, build the name-change table and optionally store it.

    Args:
        source: v1 reader (normally a V1Client).
        path: Snapshot file to write; nothing is written when None.

    Returns:
        The completed snapshot: deduplicated functions plus `namechanges`.

    Raises:
        NotFoundError: A referenced function could not be fetched.
    """
    state = source.fetch_state()
    resolver = ReferentialResolver()
    resolver.discover(state)

    logger.info("Getting functions")
    functions = resolver.fetch_functions(source.fetch_function)
    state = state.model_copy(
        update={"functions": functions, "namechanges": resolver.name_changes}
    )
    renamed = sum(1 for old, new in state.namechanges.items() if old != new)
    logger.info("%d of %d names changed", renamed, len(state.namechanges))

    if path:
        store_snapshot(path, state)
        logger.info("Saved snapshot to %s", path)
    return state


def _trigger_creators(sink: ResourceSink) -> Dict[EntityKind, Callable[[Any, str], v2.ObjectMeta]]:
    return {
        HTTP_TRIGGER: sink.create_http_trigger,
        MQ_TRIGGER: sink.create_mq_trigger,
        TIME_TRIGGER: sink.create_time_trigger,
        WATCH: sink.create_watch,
    }


def restore_state(
    state: v1.V1State,
    sink: Optional[ResourceSink],
    *,
    namespace: str = v2.DEFAULT_NAMESPACE,
    dry_run: bool = False,
) -> RestoreResult:
    """Rewrite `state` into v2 resources and create them on the target.

    Args:
        state: Snapshot produced by `dump_state` (or loaded from file).
        sink: v2 writer (normally a V2Client); may be None for a dry run.
        namespace: Namespace for every created resource.
        dry_run: Only rewrite; create nothing.

    Raises:
        UnresolvedReferenceError: The snapshot's name-change table is
            incomplete; raised before anything is created.
        ConflictError, ValidationError: The target rejected a resource.
    """
    plan = ReferentialResolver(namespace=namespace).rewrite(state)
    if dry_run:
        return RestoreResult(plan=plan, created=0, dry_run=True)
    if sink is None:
        raise ValueError("a resource sink is required unless dry_run is set")

    created = 0
    current: Tuple[str, str] = ("", "")
    try:
        for env in plan.environments:
            current = (ENVIRONMENT.name, env.old_name)
            sink.create_environment(env.resource, env.old_name)  # type: ignore[arg-type]
            created += 1

        for fp in plan.functions:
            current = (FUNCTION.name, fp.old_name)
            fp.package.spec.deployment = sink.upload_archive(
                fp.code, package_name=fp.package.metadata.name, old_name=fp.old_name
            )
            pkg_meta = sink.create_package(fp.package, fp.old_name)
            created += 1
            fp.function.spec.package.packageref = v2.PackageRef(
                name=pkg_meta.name,
                namespace=pkg_meta.namespace,
                resourceversion=pkg_meta.resourceVersion,
            )
            sink.create_function(fp.function, fp.old_name)
            created += 1

        creators = _trigger_creators(sink)
        for t in plan.triggers:
            current = (t.kind.name, t.old_name)
            creators[t.kind](t.resource, t.old_name)
            created += 1
    except EntityCreateError as e:
        logger.error(
            "Creating %s %r failed after %d resources were created (not rolled back): %s",
            current[0],
            current[1],
            created,
            e,
        )
        raise

    logger.info("Created %d resources", created)
    return RestoreResult(plan=plan, created=created, dry_run=False)


def plan_documents(plan: UpgradePlan) -> Iterator[Tuple[str, str, Dict[str, Any]]]:
    """Yield (kind, old name, resource JSON) in creation order, for display."""
    for env in plan.environments:
        yield env.kind.name, env.old_name, env.resource.model_dump(mode="json", exclude_none=True)
    for fp in plan.functions:
        yield "package", fp.old_name, fp.package.model_dump(mode="json", exclude_none=True)
        yield FUNCTION.name, fp.old_name, fp.function.model_dump(mode="json", exclude_none=True)
    for t in plan.triggers:
        yield t.kind.name, t.old_name, t.resource.model_dump(mode="json", exclude_none=True)
