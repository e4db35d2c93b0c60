from __future__ import annotations

from typing import Any


TRUE_VALUES = {"true", "t", "yes", "y", "1", "on"}
FALSE_VALUES = {"false", "f", "no", "n", "0", "off", ""}


def to_bool(value: Any, *, name: str) -> bool:
    """Read a flag from config or JSON; ``None`` is False, unknown strings raise ``ValueError``."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for '{name}': {value!r}")
