"""Derivation of valid, unique v2 names from arbitrary v1 names.

A `NameRemapper` owns the name-change table for one upgrade run. Every call
to `remap` either returns the name already recorded for that input or
allocates a new one:

1. Input already valid and not yet used: kept unchanged.
2. Otherwise a candidate is derived: lower-cased, characters outside
   `[-a-z0-9]` replaced by `-`, leading non-letters stripped, trailing
   non-alphanumerics stripped, truncated to MAX_NAME_LEN - SUFFIX_RESERVE.
3. If the candidate is taken, `-1`, `-2`, ... is appended until it is not.

The validity check only ever looks at the original input. Derived
candidates, including empty ones, go straight to step 3, so an all-symbol
input becomes `""`, then `"-1"`, `"-2"` and so on. The numeric suffix is not
capped.

Allocation is strictly sequential; a remapper must not be shared between
threads or between runs.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Set

from .naming import MAX_NAME_LEN, SUFFIX_RESERVE, is_valid_name

logger = logging.getLogger(__name__)

_DISALLOWED = re.compile(r"[^-a-z0-9]")
_LEADING_NON_ALPHA = re.compile(r"^[^a-z]+")
_TRAILING_NON_ALNUM = re.compile(r"[^a-z0-9]+$")

__all__ = ["NameRemapper", "derive_candidate"]


def derive_candidate(old: str) -> str:
    """Sanitize `old` into a base candidate (before uniqueness resolution)."""
    name = old.lower()
    name = _DISALLOWED.sub("-", name)
    name = _LEADING_NON_ALPHA.sub("", name)
    name = _TRAILING_NON_ALNUM.sub("", name)
    return name[: MAX_NAME_LEN - SUFFIX_RESERVE]


class NameRemapper:
    """Maps old names to unique, constraint-valid new names.

    Idempotent per input: a repeated `remap(old)` returns the recorded name
    without consuming another slot. No two inputs ever share an output.
    """

    def __init__(self) -> None:
        self._old_to_new: Dict[str, str] = {}
        self._used: Set[str] = set()

    def remap(self, old: str) -> str:
        """Return the new name for `old`, allocating one on first sight."""
        if old in self._old_to_new:
            return self._old_to_new[old]

        if is_valid_name(old) and old not in self._used:
            new = old
        else:
            new = self._unique(derive_candidate(old))
            logger.debug("Renamed %r -> %r", old, new)

        self._old_to_new[old] = new
        self._used.add(new)
        return new

    def _unique(self, base: str) -> str:
        candidate = base
        i = 0
        while candidate in self._used:
            i += 1
            candidate = f"{base}-{i}"
        if i:
            logger.debug("Name %r taken; using suffix -%d", base, i)
        return candidate

    @property
    def name_changes(self) -> Dict[str, str]:
        """Copy of the old → new table, in allocation order."""
        return dict(self._old_to_new)

    @property
    def used_names(self) -> Set[str]:
        return set(self._used)

    def __contains__(self, old: object) -> bool:
        return old in self._old_to_new

    def __len__(self) -> int:
        return len(self._old_to_new)
