"""
Navigation helpers for the BMS key/value tree.

The tree produced by the XML adapter has three node shapes:
    str              -- leaf text (possibly "")
    dict[str, Any]   -- element with children and/or attributes
                        (attributes under "@name", mixed text under "#text")
    list[Any]        -- the same child tag repeated
"""

from __future__ import annotations

from typing import Any

TEXT_KEY = "#text"


def as_list(node: Any) -> list[Any]:
    """A repeated element as a list; a single element as a one-item list."""
    if node is None:
        return []
    if isinstance(node, list):
        return node
    return [node]


def dig(node: Any, *path: str) -> Any:
    """Follow ``path`` through nested dicts; the first item of a list is used."""
    current = node
    for key in path:
        if isinstance(current, list):
            current = current[0] if current else None
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def text_of(node: Any) -> str:
    if node is None:
        return ""
    if isinstance(node, list):
        return text_of(node[0]) if node else ""
    if isinstance(node, dict):
        return str(node.get(TEXT_KEY, "")).strip()
    return str(node).strip()


def dig_text(node: Any, *path: str) -> str:
    return text_of(dig(node, *path))


def is_present(node: Any) -> bool:
    """An element counts as present when it exists and is not empty."""
    if node is None:
        return False
    if isinstance(node, (dict, list)):
        return bool(node)
    return str(node).strip() != ""
