"""Shared fixtures for jqproxy tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from jqproxy.config import clear_config_instance
from jqproxy.pipeline.errors import HostReadError


@dataclass
class FakeHost:
    """In-memory Host recording every write."""

    method: str = "GET"
    path: str = "/foo/42"
    args: list[str] = field(default_factory=lambda: ["42"])
    kwargs: dict[str, str] = field(default_factory=lambda: {"id": "42"})
    query: dict[str, list[str]] = field(default_factory=lambda: {"a": ["1", "2"], "b": ["x"]})
    headers: dict[str, list[str]] = field(
        default_factory=lambda: {"accept": ["application/json"], "x-trace": ["t1", "t2"]}
    )
    status: int = 200
    body: bytes = b'{"upstream": true}'
    response_headers: dict[str, list[str]] = field(
        default_factory=lambda: {"content-type": ["application/json"], "server": ["upstream"]}
    )
    fail_reads: set[str] = field(default_factory=set)

    # Outbound state
    out_method: str | None = None
    out_path: str | None = None
    out_query: dict[str, list[str]] | None = None
    out_headers: dict[str, list[str]] = field(default_factory=dict)
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    exits: list[tuple[int, bytes, dict[str, list[str]]]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.out_headers = {k: list(v) for k, v in self.headers.items()}

    def _read(self, name: str) -> None:
        if name in self.fail_reads:
            raise HostReadError(f"failed to read {name}")

    def get_method(self) -> str:
        self._read("method")
        return self.method

    def get_path(self) -> str:
        self._read("path")
        return self.path

    def get_uri_captures(self) -> tuple[list[str], dict[str, str]]:
        self._read("captures")
        return list(self.args), dict(self.kwargs)

    def get_query(self) -> dict[str, list[str]]:
        self._read("query")
        return {k: list(v) for k, v in self.query.items()}

    def get_headers(self) -> dict[str, list[str]]:
        self._read("headers")
        return {k: list(v) for k, v in self.headers.items()}

    def get_status(self) -> int:
        self._read("status")
        return self.status

    def get_raw_body(self) -> bytes:
        self._read("body")
        return self.body

    def get_response_headers(self) -> dict[str, list[str]]:
        self._read("response_headers")
        return {k: list(v) for k, v in self.response_headers.items()}

    def set_method(self, method: str) -> None:
        self.calls.append(("set_method", method))
        self.out_method = method

    def set_path(self, path: str) -> None:
        self.calls.append(("set_path", path))
        self.out_path = path

    def set_query(self, query: dict[str, list[str]]) -> None:
        self.calls.append(("set_query", query))
        self.out_query = {k: list(v) for k, v in query.items()}

    def clear_header(self, name: str) -> None:
        self.calls.append(("clear_header", name))
        self.out_headers.pop(name, None)

    def add_header(self, name: str, value: str) -> None:
        self.calls.append(("add_header", name, value))
        self.out_headers.setdefault(name, []).append(value)

    def set_header(self, name: str, value: str) -> None:
        self.calls.append(("set_header", name, value))
        self.out_headers[name] = [value]

    def clear_response_header(self, name: str) -> None:
        self.calls.append(("clear_response_header", name))
        self.response_headers.pop(name, None)

    def exit(self, status: int, body: bytes, headers: dict[str, list[str]]) -> None:
        self.calls.append(("exit", status))
        self.exits.append((status, body, headers))


@pytest.fixture
def host() -> FakeHost:
    """Create a fake host for GET /foo/42?a=1&a=2&b=x."""
    return FakeHost()


@pytest.fixture(autouse=True)
def cleanup():
    """Clean up the global config between tests."""
    yield
    clear_config_instance()
