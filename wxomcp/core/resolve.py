"""List envelope normalization and name lookup."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

DEFAULT_NAME_FIELDS = ("name", "display_name")


def extract_items(payload: Any, *keys: str) -> list[dict[str, Any]]:
    """Return the item list from a bare list or the first matching envelope key."""
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
    return []


def find_by_name(
    items: Iterable[dict[str, Any]],
    name: str,
    fields: Sequence[str] = DEFAULT_NAME_FIELDS,
) -> dict[str, Any] | None:
    """Find an item by name, case-insensitively.

    An exact match on any of ``fields`` wins over a substring match, so
    ``"Weather"`` resolves to ``Weather`` even when ``Weather v2`` is listed
    first.
    """
    needle = name.strip().lower()
    if not needle:
        return None
    candidates = list(items)

    for item in candidates:
        if any(str(item.get(field) or "").lower() == needle for field in fields):
            return item
    for item in candidates:
        if any(needle in str(item.get(field) or "").lower() for field in fields):
            return item
    return None


def tool_ids_from_agent(agent: Any) -> list[str]:
    """Tool ids assigned to an agent, from ``tools``, ``skill_ids`` or ``skills``."""
    if not isinstance(agent, dict):
        return []
    raw: Any = None
    for key in ("tools", "skill_ids", "skills"):
        if agent.get(key) is not None:
            raw = agent[key]
            break
    if not isinstance(raw, list):
        return []

    ids: list[str] = []
    for entry in raw:
        tool_id = entry if isinstance(entry, str) else entry.get("id") if isinstance(entry, dict) else None
        if isinstance(tool_id, str) and tool_id:
            ids.append(tool_id)
    return ids
