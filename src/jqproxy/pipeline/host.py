"""Interface between the pipeline and the proxy owning the connection.

The pipeline never touches HTTP objects directly. Reads raise HostReadError
and writes raise HostWriteError when the host cannot honour them.
"""

from __future__ import annotations

from typing import Protocol

MultiMap = dict[str, list[str]]


class Host(Protocol):
    """Read/write access to one proxied exchange."""

    # Inbound request, as sent by the client

    def get_method(self) -> str: ...

    def get_path(self) -> str: ...

    def get_uri_captures(self) -> tuple[list[str], dict[str, str]]: ...

    def get_query(self) -> MultiMap: ...

    def get_headers(self) -> MultiMap: ...

    # Upstream response

    def get_status(self) -> int: ...

    def get_raw_body(self) -> bytes: ...

    def get_response_headers(self) -> MultiMap: ...

    # Outbound request, sent to the upstream

    def set_method(self, method: str) -> None: ...

    def set_path(self, path: str) -> None: ...

    def set_query(self, query: MultiMap) -> None: ...

    def clear_header(self, name: str) -> None: ...

    def add_header(self, name: str, value: str) -> None: ...

    def set_header(self, name: str, value: str) -> None: ...

    # Response sent to the client

    def clear_response_header(self, name: str) -> None: ...

    def exit(self, status: int, body: bytes, headers: MultiMap) -> None:
        """Terminate the exchange with the given response."""
        ...
