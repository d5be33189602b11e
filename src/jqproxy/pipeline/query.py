"""Query evaluator capability backed by jq.

The pipeline only relies on two operations: compiling an expression into a
reusable query, and evaluating a query against a document into a lazy
sequence of results. A result is either a plain JSON value (str, int, float,
bool, None, list, dict) or a QueryError.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any, Protocol

import jq

logger = logging.getLogger(__name__)


class QueryCompileError(ValueError):
    """Expression could not be compiled."""


class QueryError:
    """Evaluation error produced in place of a result."""

    __slots__ = ("message",)

    def __init__(self, message: str) -> None:
        self.message = message

    def __repr__(self) -> str:
        return f"QueryError({self.message!r})"

    def __str__(self) -> str:
        return self.message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryError):
            return NotImplemented
        return self.message == other.message

    def __hash__(self) -> int:
        return hash(self.message)


class QueryEvaluator(Protocol):
    """Compile and evaluate query expressions."""

    def compile(self, expression: str) -> Any: ...

    def evaluate(self, query: Any, document: Any) -> Iterator[Any]: ...


class JqEvaluator:
    """QueryEvaluator implementation using the jq library."""

    def compile(self, expression: str) -> Any:
        """Compile a jq program.

        Args:
            expression: jq source

        Returns:
            Compiled jq program, reusable across documents

        Raises:
            QueryCompileError: If the expression is not valid jq
        """
        try:
            return jq.compile(expression)
        except ValueError as e:
            raise QueryCompileError(str(e)) from e

    def evaluate(self, query: Any, document: Any) -> Iterator[Any]:
        """Lazily evaluate a compiled program.

        jq reports runtime errors by raising while iterating; the error is
        yielded as a QueryError and evaluation stops there.

        Args:
            query: Program returned by compile()
            document: JSON-compatible input value

        Yields:
            Result values, or a QueryError
        """
        try:
            results = iter(query.input_value(document))
        except (ValueError, TypeError) as e:
            yield QueryError(str(e))
            return

        while True:
            try:
                value = next(results)
            except StopIteration:
                return
            except ValueError as e:
                logger.debug("jq evaluation error: %s", e)
                yield QueryError(str(e))
                return
            yield value
