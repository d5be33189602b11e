"""Context dataclass for pipeline execution.

Holds the per-phase view of the exchange that stages query against, and
renders it as the nested document jq sees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from jqproxy.pipeline.host import Host


@dataclass
class Context:
    """Typed context for one phase of one exchange.

    Attributes:
        method: Request method
        path: Request path, without query string
        args: Positional URI captures
        kwargs: Named URI captures
        query_params: Multi-valued query parameters
        headers: Multi-valued request headers (Access phase only)
        response: Whether the response section is rendered
        response_headers: Response header overrides (empty at phase entry)
        body: Raw upstream body
        status_code: Upstream status code
    """

    method: str = ""
    path: str = ""
    args: list[str] = field(default_factory=list)
    kwargs: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, list[str]] = field(default_factory=dict)
    headers: dict[str, list[str]] | None = None
    response: bool = False
    response_headers: dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""
    status_code: int = 0

    @classmethod
    def for_access(cls, host: Host) -> Context:
        """Build the Access phase context.

        Args:
            host: Host owning the exchange

        Returns:
            Context with the request section, headers included

        Raises:
            HostReadError: If the host cannot supply request data
        """
        args, kwargs = host.get_uri_captures()
        return cls(
            method=host.get_method(),
            path=host.get_path(),
            args=list(args),
            kwargs=dict(kwargs),
            query_params=_copy_multimap(host.get_query()),
            headers=_copy_multimap(host.get_headers()),
        )

    @classmethod
    def for_response(cls, host: Host) -> Context:
        """Build the Response phase context.

        Request headers are not part of this document and response headers
        start out empty.

        Raises:
            HostReadError: If the host cannot supply request or response data
        """
        args, kwargs = host.get_uri_captures()
        return cls(
            method=host.get_method(),
            path=host.get_path(),
            args=list(args),
            kwargs=dict(kwargs),
            query_params=_copy_multimap(host.get_query()),
            response=True,
            status_code=host.get_status(),
            body=host.get_raw_body(),
        )

    def to_document(self) -> dict[str, Any]:
        """Render the context as a fresh JSON-compatible document."""
        request: dict[str, Any] = {
            "method": self.method,
            "path": self.path,
            "args": list(self.args),
            "kwargs": dict(self.kwargs),
            "query_params": _copy_multimap(self.query_params),
        }
        if self.headers is not None:
            request["headers"] = _copy_multimap(self.headers)

        document: dict[str, Any] = {"request": request}
        if self.response:
            document["response"] = {
                "headers": _copy_multimap(self.response_headers),
                "body": self.body.decode("utf-8", errors="replace"),
                "status_code": self.status_code,
            }
        return document


def _copy_multimap(values: dict[str, list[str]]) -> dict[str, list[str]]:
    return {k: list(v) for k, v in values.items()}
