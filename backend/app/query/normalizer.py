"""Result normalization: every payload shape becomes an ordered list of records."""

from typing import Any


def normalize(raw: Any) -> list[Any]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [raw]
