"""Pydantic models for legacy (v1) snapshots and v2 resources."""
from __future__ import annotations

from . import v1 as v1  # noqa: F401
from . import v2 as v2  # noqa: F401

__all__ = ["v1", "v2"]
