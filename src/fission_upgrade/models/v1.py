"""Pydantic models for legacy (v1) Fission state.

These models mirror the JSON documents served by the v1 controller API
(`/v1/functions`, `/v1/triggers/http`, ...). Field names follow the wire
format exactly so payloads validate without aliases. `V1State` is the
snapshot aggregate written by `dump` and read by `restore`; it carries no
behaviour beyond field access.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Metadata(BaseModel):
    """Identity of a v1 entity.

    `uid` distinguishes historical versions sharing one `name`. The v1 server
    sends an empty string when there is no uid; it is normalized to None.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    uid: Optional[str] = None

    @field_validator("uid", mode="before")
    @classmethod
    def blank_uid_to_none(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Function(BaseModel):
    """A v1 function: identity, environment reference and base64 source."""

    metadata: Metadata
    environment: Metadata
    code: str = ""


class Environment(BaseModel):
    metadata: Metadata
    runContainerImageUrl: str = ""


class HTTPTrigger(BaseModel):
    metadata: Metadata
    urlpattern: str = ""
    method: str = ""
    function: Metadata


class MessageQueueTrigger(BaseModel):
    metadata: Metadata
    function: Metadata
    messageQueueType: str = ""
    topic: str = ""
    respTopic: Optional[str] = None


class TimeTrigger(BaseModel):
    metadata: Metadata
    cron: str = ""
    function: Metadata


class Watch(BaseModel):
    """A v1 Kubernetes watch that invokes a function on object events."""

    metadata: Metadata
    namespace: str = ""
    objtype: str = ""
    labelselector: str = ""
    fieldselector: str = ""
    function: Metadata
    target: str = ""


class V1State(BaseModel):
    """Snapshot of a v1 server plus the name-change table built for it.

    Field names are a stable file format: `functions`, `environments`,
    `httptriggers`, `mqtriggers`, `timetriggers`, `watches`, `namechanges`.
    """

    functions: List[Function] = Field(default_factory=list)
    environments: List[Environment] = Field(default_factory=list)
    httptriggers: List[HTTPTrigger] = Field(default_factory=list)
    mqtriggers: List[MessageQueueTrigger] = Field(default_factory=list)
    timetriggers: List[TimeTrigger] = Field(default_factory=list)
    watches: List[Watch] = Field(default_factory=list)
    namechanges: Dict[str, str] = Field(default_factory=dict)

    # Go's encoder writes null for empty slices/maps in older dumps.
    @field_validator(
        "functions",
        "environments",
        "httptriggers",
        "mqtriggers",
        "timetriggers",
        "watches",
        mode="before",
    )
    @classmethod
    def null_list_to_empty(cls, v: Optional[list]) -> list:
        return [] if v is None else v

    @field_validator("namechanges", mode="before")
    @classmethod
    def null_map_to_empty(cls, v: Optional[dict]) -> dict:
        return {} if v is None else v
