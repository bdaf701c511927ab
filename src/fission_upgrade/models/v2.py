"""Pydantic models for v2 Fission resources produced by the rewrite.

Each resource is `{metadata, spec}` in the JSON shape accepted by the v2
controller API. Only the fields the upgrade fills in are modelled; the
server defaults the rest.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_NAMESPACE = "default"

FUNCTION_REFERENCE_TYPE_NAME = "name"
MESSAGE_QUEUE_TYPE_NATS = "nats"
ARCHIVE_TYPE_LITERAL = "literal"
ARCHIVE_TYPE_URL = "url"


class ObjectMeta(BaseModel):
    name: str
    namespace: str = DEFAULT_NAMESPACE
    resourceVersion: Optional[str] = None


class FunctionReference(BaseModel):
    type: str = FUNCTION_REFERENCE_TYPE_NAME
    name: str


class EnvironmentReference(BaseModel):
    name: str
    namespace: str = DEFAULT_NAMESPACE


class Checksum(BaseModel):
    type: str = "sha256"
    sum: str


class Archive(BaseModel):
    """Deployment archive: inline base64 literal or a storage-service URL."""

    type: str = ARCHIVE_TYPE_LITERAL
    literal: Optional[str] = None
    url: Optional[str] = None
    checksum: Optional[Checksum] = None


class Runtime(BaseModel):
    image: str


class EnvironmentSpec(BaseModel):
    version: int = 1
    runtime: Runtime


class Environment(BaseModel):
    metadata: ObjectMeta
    spec: EnvironmentSpec


class PackageSpec(BaseModel):
    environment: EnvironmentReference
    deployment: Archive = Field(default_factory=Archive)


class Package(BaseModel):
    metadata: ObjectMeta
    spec: PackageSpec


class PackageRef(BaseModel):
    name: str
    namespace: str = DEFAULT_NAMESPACE
    resourceversion: Optional[str] = None


class FunctionPackageRef(BaseModel):
    packageref: PackageRef


class FunctionSpec(BaseModel):
    environment: EnvironmentReference
    package: FunctionPackageRef


class Function(BaseModel):
    metadata: ObjectMeta
    spec: FunctionSpec


class HTTPTriggerSpec(BaseModel):
    relativeurl: str
    method: str
    functionref: FunctionReference


class HTTPTrigger(BaseModel):
    metadata: ObjectMeta
    spec: HTTPTriggerSpec


class MessageQueueTriggerSpec(BaseModel):
    functionref: FunctionReference
    # v1 servers only ever supported NATS.
    messageQueueType: str = MESSAGE_QUEUE_TYPE_NATS
    topic: str
    respTopic: Optional[str] = None


class MessageQueueTrigger(BaseModel):
    metadata: ObjectMeta
    spec: MessageQueueTriggerSpec


class TimeTriggerSpec(BaseModel):
    cron: str
    functionref: FunctionReference


class TimeTrigger(BaseModel):
    metadata: ObjectMeta
    spec: TimeTriggerSpec


class KubernetesWatchTriggerSpec(BaseModel):
    namespace: str
    type: str
    functionref: FunctionReference


class KubernetesWatchTrigger(BaseModel):
    metadata: ObjectMeta
    spec: KubernetesWatchTriggerSpec
