from __future__ import annotations

import itertools
import string
import uuid
from typing import Callable, Iterator


IdFactory = Callable[[], str]


def random_id() -> str:
    return uuid.uuid4().hex[:12]


def _suffixes() -> Iterator[str]:
    """A..Z, then AA..ZZ."""
    yield from string.ascii_uppercase
    for a, b in itertools.product(string.ascii_uppercase, repeat=2):
        yield a + b


def allocate_unique_id(existing: set[str], proposed: str) -> str:
    """Return proposed, or the first free "<proposed>-<suffix>" when it is taken."""
    if proposed not in existing:
        return proposed
    for suf in _suffixes():
        candidate = f"{proposed}-{suf}"
        if candidate not in existing:
            return candidate
    raise RuntimeError(f"Unable to allocate unique id for {proposed}")
