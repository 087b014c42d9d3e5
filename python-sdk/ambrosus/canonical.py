"""Canonical form of JSON-like trees."""

from __future__ import annotations

import json
from typing import Any

from .errors import CanonicalizationError


def canonicalize(tree: Any) -> Any:
    """Return a copy of ``tree`` with every dict's keys in ascending order.

    Lists and tuples keep their element order (tuples come back as lists) and
    their elements are canonicalized one by one. Leaves are returned as-is.
    """
    if isinstance(tree, dict):
        for key in tree:
            if not isinstance(key, str):
                raise CanonicalizationError(f"canonicalize: object key must be a string, got {type(key).__name__}")
        return {key: canonicalize(tree[key]) for key in sorted(tree)}
    if isinstance(tree, (list, tuple)):
        return [canonicalize(item) for item in tree]
    return tree


def canonical_json(tree: Any) -> str:
    try:
        return json.dumps(canonicalize(tree), separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as err:
        raise CanonicalizationError(f"canonical_json: {err}") from err


def element_with_path(tree: Any, path: str, separator: str = "|", default: Any = None) -> Any:
    """Look up a nested value by a ``separator``-joined key path.

    ``element_with_path(body, "content|idData|timestamp")`` returns
    ``body["content"]["idData"]["timestamp"]``, or ``default`` as soon as a
    level is missing or is not an object.
    """
    current = tree
    for key in path.split(separator):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current
