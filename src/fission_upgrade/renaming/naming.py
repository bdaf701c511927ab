"""Kubernetes object-name constraint and deterministic package naming.

Constants:
    NAME_PATTERN: Every v2 object name must match this regex
        (`^[a-z0-9]([-a-z0-9]*[a-z0-9])?$`).
    MAX_NAME_LEN: Names must be strictly shorter than this.
    SUFFIX_RESERVE: Characters held back when truncating a derived name so a
        numeric disambiguation suffix still fits.
    PACKAGE_NAMESPACE: UUIDv5 namespace for package-name suffixes. This value
        MUST NOT change or re-running a restore would produce different
        package names for the same snapshot.

Package Name Format:
    f"{function_new_name}-{uuid5(PACKAGE_NAMESPACE, 'name:uid').hex[:6]}"
"""
from __future__ import annotations

import re
from typing import Optional
from uuid import NAMESPACE_DNS, uuid5

NAME_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
MAX_NAME_LEN = 63
SUFFIX_RESERVE = 4
PACKAGE_SUFFIX_LEN = 6

PACKAGE_NAMESPACE = uuid5(NAMESPACE_DNS, "fission-upgrade-package")

__all__ = [
    "NAME_PATTERN",
    "MAX_NAME_LEN",
    "SUFFIX_RESERVE",
    "PACKAGE_NAMESPACE",
    "is_valid_name",
    "package_name",
]


def is_valid_name(name: str) -> bool:
    """Return True if `name` is usable as-is for a v2 object."""
    return bool(NAME_PATTERN.match(name)) and len(name) < MAX_NAME_LEN


def package_name(function_name: str, old_name: str, old_uid: Optional[str] = None) -> str:
    """Derive the package name for a rewritten function.

    The suffix is a digest of the legacy identity so the same snapshot always
    yields the same package names. The function part is shortened when needed
    so the result stays under MAX_NAME_LEN.

    Args:
        function_name: New (remapped) function name.
        old_name: Legacy function name.
        old_uid: Legacy function uid, if any.

    Returns:
        Package name of the form `<function_name>-<6 hex chars>`.
    """
    digest = uuid5(PACKAGE_NAMESPACE, f"{old_name}:{old_uid or ''}").hex[:PACKAGE_SUFFIX_LEN]
    base = function_name[: MAX_NAME_LEN - PACKAGE_SUFFIX_LEN - 2].rstrip("-")
    return f"{base}-{digest}"
