"""Key-case conversion between Python dataclasses and stored JSON."""

from __future__ import annotations

import re
from typing import Any

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def convert_keys(obj: Any, direction: str) -> Any:
    """
    Recursively rename dict keys.

    direction is "snake_to_camel" or "camel_to_snake". Lists are walked,
    other values are returned unchanged.
    """
    if direction == "snake_to_camel":
        rename = snake_to_camel
    elif direction == "camel_to_snake":
        rename = camel_to_snake
    else:
        raise ValueError(f"Unknown key conversion: {direction}")

    def walk(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                (rename(k) if isinstance(k, str) else k): walk(v)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [walk(v) for v in value]
        return value

    return walk(obj)
