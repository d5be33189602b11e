"""Host implementation over a mitmproxy HTTP flow.

mitmproxy has a single request object that is both what the client sent and
what goes upstream. Reads must return the inbound request even after the
Access phase rewrote it, so the inbound view is snapshotted into
``flow.metadata`` on first read and reused by the Response phase.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from mitmproxy import http

from jqproxy.pipeline.errors import HostReadError, HostWriteError

logger = logging.getLogger(__name__)

INBOUND_KEY = "jqproxy.inbound"
SHORT_CIRCUIT_KEY = "jqproxy.short_circuited"


def split_path(path: str) -> str:
    """Strip the query string from a request path."""
    return path.split("?", 1)[0]


def captures_for(pattern: re.Pattern[str] | None, path: str) -> tuple[list[str], dict[str, str]]:
    """Extract URI captures from a path.

    Args:
        pattern: Route pattern, matched from the start of the path
        path: Request path without query string

    Returns:
        (positional captures, named captures); empty if nothing matched
    """
    if pattern is None:
        return [], {}
    match = pattern.match(path)
    if match is None:
        return [], {}
    args = [g if g is not None else "" for g in match.groups()]
    kwargs = {k: v for k, v in match.groupdict().items() if v is not None}
    return args, kwargs


def _multimap(pairs: Any, lower: bool = False) -> dict[str, list[str]]:
    result: dict[str, list[str]] = {}
    for key, value in pairs:
        if lower:
            key = key.lower()
        result.setdefault(key, []).append(value)
    return result


class FlowHost:
    """Host bound to one mitmproxy flow."""

    def __init__(self, flow: http.HTTPFlow, route: re.Pattern[str] | None = None) -> None:
        """Initialize the host.

        Args:
            flow: HTTP flow being proxied
            route: Pattern providing URI captures
        """
        self.flow = flow
        self.route = route

    def _inbound(self) -> dict[str, Any]:
        inbound = self.flow.metadata.get(INBOUND_KEY)
        if inbound is None:
            request = self.flow.request
            try:
                path = split_path(request.path)
                inbound = {
                    "method": request.method,
                    "path": path,
                    "captures": captures_for(self.route, path),
                    "query": _multimap(request.query.items(multi=True)),
                    "headers": _multimap(request.headers.items(multi=True), lower=True),
                }
            except (AttributeError, UnicodeDecodeError, ValueError) as e:
                raise HostReadError("failed to read request") from e
            self.flow.metadata[INBOUND_KEY] = inbound
        return inbound

    def _response(self) -> http.Response:
        if self.flow.response is None:
            raise HostReadError("failed to read response")
        return self.flow.response

    @property
    def short_circuited(self) -> bool:
        """Whether exit() was already called for this flow."""
        return bool(self.flow.metadata.get(SHORT_CIRCUIT_KEY))

    # Reads

    def get_method(self) -> str:
        return self._inbound()["method"]

    def get_path(self) -> str:
        return self._inbound()["path"]

    def get_uri_captures(self) -> tuple[list[str], dict[str, str]]:
        args, kwargs = self._inbound()["captures"]
        return list(args), dict(kwargs)

    def get_query(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._inbound()["query"].items()}

    def get_headers(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._inbound()["headers"].items()}

    def get_status(self) -> int:
        return self._response().status_code

    def get_raw_body(self) -> bytes:
        response = self._response()
        if response.raw_content is None:
            raise HostReadError("failed to read response body")
        return response.raw_content

    def get_response_headers(self) -> dict[str, list[str]]:
        try:
            return _multimap(self._response().headers.items(multi=True))
        except HostReadError as e:
            raise HostReadError("failed to get all response headers") from e

    # Writes

    def set_method(self, method: str) -> None:
        try:
            self.flow.request.method = method
        except ValueError as e:
            raise HostWriteError("failed to set method") from e

    def set_path(self, path: str) -> None:
        try:
            self.flow.request.path = path
        except ValueError as e:
            raise HostWriteError("failed to set path") from e

    def set_query(self, query: dict[str, list[str]]) -> None:
        pairs = [(name, value) for name, values in query.items() for value in values]
        try:
            self.flow.request.query = pairs
        except ValueError as e:
            raise HostWriteError("failed to set query params") from e

    def clear_header(self, name: str) -> None:
        headers = self.flow.request.headers
        if name in headers:
            del headers[name]

    def add_header(self, name: str, value: str) -> None:
        try:
            self.flow.request.headers.add(name, value)
        except ValueError as e:
            raise HostWriteError("failed to add header") from e

    def set_header(self, name: str, value: str) -> None:
        try:
            self.flow.request.headers[name] = value
        except ValueError as e:
            raise HostWriteError("failed to set header") from e

    def clear_response_header(self, name: str) -> None:
        headers = self._response().headers
        if name in headers:
            del headers[name]

    def exit(self, status: int, body: bytes, headers: dict[str, list[str]]) -> None:
        """Replace the flow's response.

        Called from the request event, this also prevents mitmproxy from
        contacting the upstream. The body is sent as is, never re-encoded
        for a content-encoding header.
        """
        fields = [(name.encode("utf-8"), value.encode("utf-8")) for name, values in headers.items() for value in values]
        try:
            response = http.Response.make(status, b"", fields)
        except ValueError as e:
            raise HostWriteError("failed to send response") from e
        response.raw_content = body
        if "transfer-encoding" not in response.headers:
            response.headers["content-length"] = str(len(body))
        self.flow.response = response
        self.flow.metadata[SHORT_CIRCUIT_KEY] = True
