"""Shape validation for stage results.

Each decoder takes the first value a query produced and either returns it in
the canonical shape its attribute needs, or raises ShapeError. Nothing is
coerced silently except the one documented case: a bare string in a
multi-valued mapping becomes a one-element list.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from jqproxy.pipeline.errors import Attribute

Decoder = Callable[[Attribute, Any], Any]


class ShapeError(ValueError):
    """Value does not have the shape the stage requires."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def decode_string(attribute: Attribute, value: Any) -> str:
    """Accept a string (method, path)."""
    if not isinstance(value, str):
        raise ShapeError(f"{attribute.label} jq result is not a string")
    return value


def decode_integer(attribute: Attribute, value: Any) -> int:
    """Accept an integer (status code).

    Booleans are rejected even though Python treats them as ints, and so are
    floats, including integral ones.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ShapeError(f"{attribute.label} jq result is not an integer")
    return value


def decode_multimap(attribute: Attribute, value: Any) -> dict[str, list[str]]:
    """Accept a mapping of name to string or list of strings.

    Used for query parameters and headers. The whole mapping is checked before
    anything is returned, so a bad entry never leaves a partial result behind.
    """
    if not isinstance(value, dict):
        raise ShapeError(f"{attribute.label} jq result is not a map")

    noun = "query param" if attribute == Attribute.QUERY_PARAMS else "header"
    decoded: dict[str, list[str]] = {}
    for key, item in value.items():
        if isinstance(item, str):
            decoded[key] = [item]
        elif isinstance(item, list):
            if not all(isinstance(v, str) for v in item):
                raise ShapeError(f"{noun} value is not a string")
            decoded[key] = list(item)
        else:
            raise ShapeError(f"{noun} value is not a string or a list of strings")
    return decoded


def decode_json(attribute: Attribute, value: Any) -> Any:
    """Accept any JSON-serializable value (response body)."""
    try:
        json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ShapeError(f"{attribute.label} jq result is not JSON serializable") from e
    return value


def serialize_body(value: Any) -> bytes:
    """Encode a response body value as compact JSON."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


DECODERS: dict[Attribute, Decoder] = {
    Attribute.METHOD: decode_string,
    Attribute.PATH: decode_string,
    Attribute.QUERY_PARAMS: decode_multimap,
    Attribute.REQUEST_HEADERS: decode_multimap,
    Attribute.RESPONSE_HEADERS: decode_multimap,
    Attribute.STATUS_CODE: decode_integer,
    Attribute.RESPONSE_BODY: decode_json,
}
