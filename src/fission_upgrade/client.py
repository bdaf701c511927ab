"""HTTP clients for the v1 (source) and v2 (target) Fission controllers.

`V1Client` is the extract side: it lists the six v1 collections and fetches
authoritative function bodies. GET requests are retried with exponential
backoff on transient transport errors.

`V2Client` is the load side: it uploads package archives and creates
resources. Creation is never retried; a request that reached the server may
already have created the entity, and a blind retry would turn that into a
conflict. Server rejections are mapped onto ConflictError / ValidationError,
and a request that got no response onto EntityCreateError with no status;
each carries the entity's old and new names.
"""
from __future__ import annotations

import base64
import hashlib
import logging
from typing import Any, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import (
    ConflictError,
    DeserializationError,
    EntityCreateError,
    NotFoundError,
    UpgradeError,
    ValidationError,
)
from .models import v1, v2

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_ATTEMPTS = 5
ARCHIVE_LITERAL_SIZE_LIMIT = 256 * 1024
STORAGE_ARCHIVE_PATH = "/proxy/storage/v1/archive"

__all__ = [
    "normalize_server_url",
    "v1_url",
    "V1Client",
    "V2Client",
]


def normalize_server_url(server_url: str) -> str:
    """Add `http://` when no scheme is given and drop a trailing slash.

    Raises:
        UpgradeError: `server_url` is empty.
    """
    server_url = (server_url or "").strip()
    if not server_url:
        raise UpgradeError("Need --server or FISSION_URL set to your fission server.")
    if not (server_url.startswith("http://") or server_url.startswith("https://")):
        server_url = "http://" + server_url
    return server_url.rstrip("/")


def v1_url(server_url: str) -> str:
    return normalize_server_url(server_url) + "/v1"


class V1Client:
    """Reads legacy state from a pre-0.2 Fission controller."""

    def __init__(
        self,
        server_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = v1_url(server_url)
        self._max_attempts = max(1, max_attempts)
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def __enter__(self) -> "V1Client":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: Optional[dict[str, str]] = None) -> httpx.Response:
        try:
            for attempt in Retrying(
                reraise=True,
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
                retry=retry_if_exception_type(httpx.TransportError),
            ):
                with attempt:
                    return self._client.get(path, params=params)
        except httpx.TransportError as e:
            logger.error(
                "GET %s%s failed after %d attempts: %s", self.base_url, path, self._max_attempts, e
            )
            raise UpgradeError(
                f"Cannot reach fission server at {self.base_url}{path}: {type(e).__name__}: {e}"
            ) from e
        raise AssertionError("unreachable")  # pragma: no cover

    def _get_json(self, path: str, what: str) -> Any:
        resp = self._get(path)
        if resp.status_code != 200:
            raise UpgradeError(
                f"Failed to fetch fission v0.1 {what}: status={resp.status_code} body={resp.text[:500]}"
            )
        try:
            return resp.json()
        except ValueError as e:
            raise DeserializationError(f"{what}: server response is not JSON: {e}") from e

    def _list(self, path: str, model: Type[T], what: str) -> List[T]:
        logger.info("Getting %s", what)
        data = self._get_json(path, what)
        try:
            return TypeAdapter(List[model]).validate_python(data or [])  # type: ignore[valid-type]
        except PydanticValidationError as e:
            raise DeserializationError(f"{what}: unexpected response shape: {e}") from e

    def is_v1_server(self) -> bool:
        """Return False when the server has no v1 API (404 on /environments)."""
        resp = self._get("/environments")
        return resp.status_code != httpx.codes.NOT_FOUND

    def list_environments(self) -> List[v1.Environment]:
        return self._list("/environments", v1.Environment, "environments")

    def list_watches(self) -> List[v1.Watch]:
        return self._list("/watches", v1.Watch, "watches")

    def list_http_triggers(self) -> List[v1.HTTPTrigger]:
        return self._list("/triggers/http", v1.HTTPTrigger, "routes")

    def list_mq_triggers(self) -> List[v1.MessageQueueTrigger]:
        return self._list("/triggers/messagequeue", v1.MessageQueueTrigger, "message queue triggers")

    def list_time_triggers(self) -> List[v1.TimeTrigger]:
        return self._list("/triggers/time", v1.TimeTrigger, "time triggers")

    def list_functions(self) -> List[v1.Function]:
        return self._list("/functions", v1.Function, "function list")

    def fetch_state(self) -> v1.V1State:
        """Retrieve all six collections; the name-change table is left empty."""
        return v1.V1State(
            environments=self.list_environments(),
            watches=self.list_watches(),
            httptriggers=self.list_http_triggers(),
            mqtriggers=self.list_mq_triggers(),
            timetriggers=self.list_time_triggers(),
            functions=self.list_functions(),
        )

    def fetch_function(self, name: str, uid: Optional[str] = None) -> v1.Function:
        """Fetch the authoritative body of one function version.

        Raises:
            NotFoundError: The server has no such function (404).
        """
        params = {"uid": uid} if uid else None
        resp = self._get(f"/functions/{quote(name, safe='')}", params=params)
        if resp.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(name, uid)
        if resp.status_code != 200:
            raise UpgradeError(
                f"Failed to fetch function {name}: status={resp.status_code} body={resp.text[:500]}"
            )
        try:
            return v1.Function.model_validate_json(resp.content)
        except PydanticValidationError as e:
            raise DeserializationError(f"function {name}: unexpected response shape: {e}") from e


class V2Client:
    """Creates v2 resources on a Fission controller."""

    def __init__(
        self,
        server_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        archive_literal_size_limit: int = ARCHIVE_LITERAL_SIZE_LIMIT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = normalize_server_url(server_url)
        self._literal_limit = archive_literal_size_limit
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def __enter__(self) -> "V2Client":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, kind: str, old_name: str, new_name: str, **kwargs: Any) -> httpx.Response:
        # No response means the entity may or may not have been created.
        try:
            resp = self._client.post(path, **kwargs)
        except httpx.TransportError as e:
            raise EntityCreateError(
                kind, old_name, new_name, None, f"{type(e).__name__}: {e}"
            ) from e
        _raise_for_create(resp, kind, old_name, new_name)
        return resp

    def _create(self, path: str, kind: str, old_name: str, resource: BaseModel) -> v2.ObjectMeta:
        new_name = resource.metadata.name  # type: ignore[attr-defined]
        resp = self._post(
            path, kind, old_name, new_name,
            json=resource.model_dump(mode="json", exclude_none=True),
        )
        try:
            meta = v2.ObjectMeta.model_validate(resp.json())
        except ValueError:
            logger.debug("No metadata in create response for %s %s", kind, new_name)
            meta = resource.metadata  # type: ignore[attr-defined]
        logger.info("Created %s %s (was %s)", kind, meta.name, old_name)
        return meta

    def create_environment(self, env: v2.Environment, old_name: str) -> v2.ObjectMeta:
        return self._create("/v2/environments", "environment", old_name, env)

    def create_package(self, pkg: v2.Package, old_name: str) -> v2.ObjectMeta:
        return self._create("/v2/packages", "package", old_name, pkg)

    def create_function(self, fn: v2.Function, old_name: str) -> v2.ObjectMeta:
        return self._create("/v2/functions", "function", old_name, fn)

    def create_http_trigger(self, t: v2.HTTPTrigger, old_name: str) -> v2.ObjectMeta:
        return self._create("/v2/triggers/http", "http trigger", old_name, t)

    def create_mq_trigger(self, t: v2.MessageQueueTrigger, old_name: str) -> v2.ObjectMeta:
        return self._create("/v2/triggers/messagequeue", "message queue trigger", old_name, t)

    def create_time_trigger(self, t: v2.TimeTrigger, old_name: str) -> v2.ObjectMeta:
        return self._create("/v2/triggers/time", "time trigger", old_name, t)

    def create_watch(self, t: v2.KubernetesWatchTrigger, old_name: str) -> v2.ObjectMeta:
        return self._create("/v2/watches", "kubernetes watch trigger", old_name, t)

    def upload_archive(self, code: bytes, *, package_name: str, old_name: str) -> v2.Archive:
        """Turn function code into a deployment archive.

        Code under the literal size limit is embedded in the package; larger
        code is uploaded to the storage service and referenced by URL.
        """
        if len(code) < self._literal_limit:
            return v2.Archive(
                type=v2.ARCHIVE_TYPE_LITERAL,
                literal=base64.b64encode(code).decode("ascii"),
            )
        resp = self._post(
            STORAGE_ARCHIVE_PATH, "archive", old_name, package_name,
            files={"uploadfile": (package_name, code, "application/octet-stream")},
        )
        try:
            archive_id = resp.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise DeserializationError(f"archive upload for {package_name}: bad response: {e}") from e
        logger.info("Uploaded %d byte archive for package %s", len(code), package_name)
        return v2.Archive(
            type=v2.ARCHIVE_TYPE_URL,
            url=f"{self.base_url}{STORAGE_ARCHIVE_PATH}?id={quote(str(archive_id), safe='')}",
            checksum=v2.Checksum(sum=hashlib.sha256(code).hexdigest()),
        )


def _raise_for_create(resp: httpx.Response, kind: str, old_name: str, new_name: str) -> None:
    status = resp.status_code
    if status < 400:
        return
    detail = resp.text[:500]
    if status == httpx.codes.CONFLICT:
        raise ConflictError(kind, old_name, new_name, status, detail)
    if status in (httpx.codes.BAD_REQUEST, httpx.codes.UNPROCESSABLE_ENTITY):
        raise ValidationError(kind, old_name, new_name, status, detail)
    raise EntityCreateError(kind, old_name, new_name, status, detail)
