"""Stage specification and runner.

A stage binds one jq expression to one overridable attribute. Running it
evaluates the expression against the current context document, keeps only
the first result, and validates that result's shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar, Union

from jqproxy.pipeline.errors import Attribute, FailureKind, StageError
from jqproxy.pipeline.query import QueryCompileError, QueryError
from jqproxy.pipeline.validation import DECODERS, ShapeError

if TYPE_CHECKING:
    from jqproxy.pipeline.query import QueryEvaluator

T = TypeVar("T")

_NOTHING = object()


@dataclass(frozen=True)
class Skipped:
    """Expression is empty; the stage's skip policy applies."""


@dataclass(frozen=True)
class NoResult:
    """Evaluator produced nothing."""


@dataclass(frozen=True)
class EvaluationError:
    """Evaluator reported an error as its first result."""

    error: str


@dataclass(frozen=True)
class WrongShape:
    """First result does not have the shape the stage requires."""

    message: str


@dataclass(frozen=True)
class Value(Generic[T]):
    """Validated value in its canonical shape."""

    value: T


StageResult = Union[Skipped, NoResult, EvaluationError, WrongShape, Value[Any]]


def unwrap(attribute: Attribute, result: StageResult) -> Any:
    """Return the value of a Value result, or raise the matching StageError.

    Skipped is not a failure and must be handled by the caller first.

    Raises:
        StageError: For NoResult, EvaluationError and WrongShape
    """
    if isinstance(result, Value):
        return result.value
    if isinstance(result, NoResult):
        raise StageError(attribute, FailureKind.RESULT_MISSING)
    if isinstance(result, EvaluationError):
        raise StageError(attribute, FailureKind.EVALUATION_ERROR, result.error)
    if isinstance(result, WrongShape):
        raise StageError(attribute, FailureKind.WRONG_SHAPE, result.message)
    raise TypeError(f"cannot unwrap {result!r}")


@dataclass
class StageSpec:
    """Specification for one pipeline stage.

    Attributes:
        attribute: Attribute this stage overrides
        expression: jq source; empty means skipped
        query: Compiled program, set by compile()
    """

    attribute: Attribute
    expression: str = ""
    query: Any = field(default=None, repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.attribute.value

    @property
    def skipped(self) -> bool:
        return not self.expression

    def compile(self, evaluator: QueryEvaluator) -> StageSpec:
        """Return a copy of this spec holding the compiled query.

        Raises:
            QueryCompileError: If the expression does not compile
        """
        if self.skipped:
            return StageSpec(self.attribute, self.expression)
        return StageSpec(self.attribute, self.expression, evaluator.compile(self.expression))


def run_stage(spec: StageSpec, evaluator: QueryEvaluator, document: dict[str, Any]) -> StageResult:
    """Evaluate a stage against a context document.

    Args:
        spec: Stage to run
        evaluator: Query evaluator
        document: Context document for the current phase

    Returns:
        Tagged stage result
    """
    if spec.skipped:
        return Skipped()

    query = spec.query
    if query is None:
        try:
            query = evaluator.compile(spec.expression)
        except QueryCompileError as e:
            return EvaluationError(str(e))

    # Only the first result is pulled; later ones are never evaluated
    first = next(iter(evaluator.evaluate(query, document)), _NOTHING)

    if first is _NOTHING:
        return NoResult()
    if isinstance(first, QueryError):
        return EvaluationError(first.message)

    try:
        return Value(DECODERS[spec.attribute](spec.attribute, first))
    except ShapeError as e:
        return WrongShape(e.message)
