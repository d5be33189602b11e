"""Error taxonomy and reporting for the rewrite pipeline.

Every failure is surfaced to the client as a plain-text 500 response through
the host's short-circuit primitive. Nothing here is retried.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jqproxy.pipeline.host import Host

logger = logging.getLogger(__name__)


class Attribute(Enum):
    """HTTP attribute a stage overrides."""

    METHOD = "method"
    PATH = "path"
    QUERY_PARAMS = "query_params"
    REQUEST_HEADERS = "request_headers"
    RESPONSE_HEADERS = "response_headers"
    STATUS_CODE = "status_code"
    RESPONSE_BODY = "response_body"

    @property
    def label(self) -> str:
        """Human readable name used in error messages."""
        return self.value.replace("_", " ")


class FailureKind(Enum):
    """Why a stage failed."""

    RESULT_MISSING = "result_missing"
    EVALUATION_ERROR = "evaluation_error"
    WRONG_SHAPE = "wrong_shape"


class RewriteError(Exception):
    """Base class for failures that abort an exchange.

    Attributes:
        message: Plain-text body sent to the client
        status_code: Status of the error response
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class StageError(RewriteError):
    """A stage produced something other than a usable value."""

    def __init__(self, attribute: Attribute, kind: FailureKind, detail: str = "") -> None:
        self.attribute = attribute
        self.kind = kind
        self.detail = detail
        super().__init__(_stage_message(attribute, kind, detail))


class HostReadError(RewriteError):
    """The host could not supply data the pipeline needs."""


class HostWriteError(RewriteError):
    """The host rejected a write to the request or response."""


def _stage_message(attribute: Attribute, kind: FailureKind, detail: str) -> str:
    label = attribute.label
    if kind == FailureKind.RESULT_MISSING:
        return f"{label} jq doesn't return any result"
    if kind == FailureKind.EVALUATION_ERROR:
        if detail:
            return f"{label} jq error: {detail}"
        return f"{label} jq error"
    # Shape failures carry their full message (per-key sub-cases included)
    return detail or f"{label} jq result has the wrong shape"


def report_error(host: Host, error: RewriteError, log: logging.LoggerAdapter | logging.Logger = logger) -> None:
    """Log a failure and short-circuit the exchange with a 500 response.

    Args:
        host: Host owning the exchange
        error: Failure that aborts the exchange
        log: Per-exchange logger
    """
    extra: dict[str, str] = {"event": "jqproxy_error"}
    if isinstance(error, StageError):
        extra["attribute"] = error.attribute.value
        extra["failure"] = error.kind.value

    log.error(error.message, extra=extra)
    host.exit(error.status_code, error.message.encode("utf-8"), {})
