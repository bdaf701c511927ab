"""Snapshot persistence for v1 state and its name-change table.

`dump` writes the captured v1 state to a JSON file that `restore` reads
back, possibly in another process or on another machine. The file is also
the audit record of every rename.

`store_snapshot` writes to a temporary file and renames it over the target,
so an interrupted dump never leaves a truncated snapshot behind.
"""
from __future__ import annotations

import os

from pydantic import ValidationError as PydanticValidationError

from .errors import DeserializationError
from .models.v1 import V1State

DEFAULT_SNAPSHOT_FILE = "fission-v01-state.json"

__all__ = [
    "DEFAULT_SNAPSHOT_FILE",
    "parse_snapshot",
    "serialize_snapshot",
    "load_snapshot",
    "store_snapshot",
]


def parse_snapshot(payload: bytes | str) -> V1State:
    """Build a V1State from a JSON payload.

    Raises:
        DeserializationError: The payload is not JSON or does not have the
            snapshot shape.
    """
    try:
        return V1State.model_validate_json(payload)
    except PydanticValidationError as e:
        raise DeserializationError(f"invalid snapshot: {e}") from e


def serialize_snapshot(state: V1State) -> bytes:
    """Serialize `state` as a 4-space indented JSON document."""
    return state.model_dump_json(indent=4, exclude_none=True).encode("utf-8")


def load_snapshot(path: str) -> V1State:
    """Read and parse the snapshot stored at `path`.

    Raises:
        FileNotFoundError: No snapshot at `path`.
        DeserializationError: The file content is not a valid snapshot.
    """
    with open(path, "rb") as f:
        return parse_snapshot(f.read())


def store_snapshot(path: str, state: V1State) -> None:
    """Atomically write `state` to `path`.

    Args:
        path: Destination file; parent directories are created.
        state: Snapshot including its completed name-change table.
    """
    tmp_path = f"{path}.tmp"
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(tmp_path, "wb") as f:
        f.write(serialize_snapshot(state))
    os.replace(tmp_path, path)
