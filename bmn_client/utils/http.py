"""HTTP utilities for encoding request parameters the way WordPress parses them."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, List, Tuple
from urllib.parse import urlencode

QueryPairs = List[Tuple[str, str]]


def format_scalar(value: Any) -> str:
    """Render a scalar the way PHP's query parser expects it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_parameter(key: str, value: Any) -> QueryPairs:
    """
    Flatten one parameter into bracketed key paths.

    ``{"a": 1}`` at ``k`` becomes ``k[a]=1``, a list of mappings becomes
    ``k[0][a]=1`` and a list of scalars becomes repeated ``k[]=v``.
    """
    if value is None:
        return []
    if isinstance(value, Mapping):
        pairs: QueryPairs = []
        for sub_key, sub_value in value.items():
            pairs.extend(flatten_parameter(f"{key}[{sub_key}]", sub_value))
        return pairs
    if isinstance(value, (list, tuple)):
        if value and all(isinstance(item, Mapping) for item in value):
            pairs = []
            for index, item in enumerate(value):
                for sub_key, sub_value in item.items():
                    pairs.extend(
                        flatten_parameter(f"{key}[{index}][{sub_key}]", sub_value)
                    )
            return pairs
        return [(f"{key}[]", format_scalar(item)) for item in value if item is not None]
    return [(key, format_scalar(value))]


def flatten_parameters(parameters: Mapping[str, Any] | None) -> QueryPairs:
    """Flatten a whole parameter mapping, preserving insertion order."""
    pairs: QueryPairs = []
    for key, value in (parameters or {}).items():
        pairs.extend(flatten_parameter(key, value))
    return pairs


def encode_query_string(parameters: Mapping[str, Any] | None) -> str:
    """Encode parameters as a query string, keeping brackets literal."""
    return urlencode(flatten_parameters(parameters), safe="[]")


__all__ = [
    "QueryPairs",
    "encode_query_string",
    "flatten_parameter",
    "flatten_parameters",
    "format_scalar",
]
