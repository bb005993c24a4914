from __future__ import annotations

import re
from typing import Any, Mapping

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def resolve(value: Any, data: Mapping[str, Any]) -> Any:
    """Replace every ``{{ key }}`` token in ``value`` with ``data[key]``.

    Missing keys and ``None`` values become the empty string. Anything that is
    not a string is returned unchanged, and malformed tokens stay verbatim.
    """
    if not isinstance(value, str):
        return value
    return PLACEHOLDER_PATTERN.sub(lambda match: _to_text(data.get(match.group(1))), value)


def find_placeholders(value: Any) -> list[str]:
    if not isinstance(value, str):
        return []
    return PLACEHOLDER_PATTERN.findall(value)
