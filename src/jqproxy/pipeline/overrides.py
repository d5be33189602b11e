"""Override application.

Pushes validated stage values into the live request/response through the
host, and folds them back into the Context so later stages see them.
Multi-valued attributes are always replaced, never merged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from jqproxy.pipeline.validation import serialize_body

if TYPE_CHECKING:
    from jqproxy.pipeline.context import Context
    from jqproxy.pipeline.host import Host

logger = logging.getLogger(__name__)


def apply_method(host: Host, ctx: Context, method: str) -> None:
    host.set_method(method)
    ctx.method = method


def apply_path(host: Host, ctx: Context, path: str) -> None:
    host.set_path(path)
    ctx.path = path


def apply_query_params(host: Host, ctx: Context, query: dict[str, list[str]]) -> None:
    """Replace the whole outbound query string."""
    host.set_query(query)
    ctx.query_params = {k: list(v) for k, v in query.items()}


def clear_request_headers(host: Host) -> None:
    """Remove every outbound request header.

    Names come from the inbound request. Clearing with no headers is a no-op.
    """
    for name in list(host.get_headers()):
        host.clear_header(name)


def apply_request_headers(host: Host, ctx: Context, headers: dict[str, list[str]]) -> None:
    """Write request headers after clear_request_headers().

    A single value is set; several values are added one by one so the header
    is repeated. An empty list writes nothing.
    """
    for name, values in headers.items():
        if len(values) == 1:
            host.set_header(name, values[0])
        else:
            for value in values:
                host.add_header(name, value)
    ctx.headers = {k: list(v) for k, v in headers.items()}


def clear_response_headers(host: Host) -> int:
    """Remove every header from the host's current response.

    Returns:
        Number of header names cleared
    """
    names = list(host.get_response_headers())
    for name in names:
        host.clear_response_header(name)
    return len(names)


def apply_response_headers(ctx: Context, headers: dict[str, list[str]]) -> None:
    """Record response headers; they are sent with the final exit."""
    ctx.response_headers = {k: list(v) for k, v in headers.items()}


def apply_status_code(ctx: Context, status_code: int) -> None:
    ctx.status_code = status_code


def apply_response_body(ctx: Context, value: Any) -> None:
    """Replace the body with the JSON encoding of value."""
    ctx.body = serialize_body(value)
