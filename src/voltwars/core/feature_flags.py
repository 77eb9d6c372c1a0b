"""Environment-driven feature switches.

``VOLTWARS_FEATURES`` holds a comma-separated list of enabled flags (names are
case-insensitive).  Tests flip flags for a block of code with
:func:`override`::

    from voltwars.core import feature_flags

    with feature_flags.override(enable={feature_flags.COMMENTARY_REMOTE}):
        ...
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Final

ENV_VAR: Final = "VOLTWARS_FEATURES"

# Ask the remote text service for instructions instead of the static table.
COMMENTARY_REMOTE: Final = "commentary.remote"
# Show live voltages during play (normally concealed until the round ends).
REVEAL_VOLTAGE: Final = "view.reveal_voltage"


def _normalise(flag: str) -> str:
    return flag.strip().lower()


def _from_env() -> set[str]:
    raw = os.getenv(ENV_VAR)
    if not raw:
        return set()
    return {_normalise(entry) for entry in raw.split(",") if entry.strip()}


_OVERRIDES: list[tuple[frozenset[str], frozenset[str]]] = []


def is_enabled(flag: str) -> bool:
    key = _normalise(flag)
    # Innermost override wins.
    for enabled, disabled in reversed(_OVERRIDES):
        if key in disabled:
            return False
        if key in enabled:
            return True
    return key in _from_env()


def enabled_flags() -> set[str]:
    active = _from_env()
    for enabled, disabled in _OVERRIDES:
        active |= enabled
        active -= disabled
    return active


@contextmanager
def override(*, enable: Iterable[str] | None = None, disable: Iterable[str] | None = None) -> Iterator[None]:
    entry = (
        frozenset(_normalise(flag) for flag in (enable or ())),
        frozenset(_normalise(flag) for flag in (disable or ())),
    )
    _OVERRIDES.append(entry)
    try:
        yield
    finally:
        _OVERRIDES.pop()


def set_env_flags(flags: Iterable[str]) -> None:
    os.environ[ENV_VAR] = ",".join(sorted({_normalise(flag) for flag in flags}))
