"""Two-phase rewrite pipeline.

Access phase (request event):
    method → path → query_params → clear request headers → request_headers

Response phase (response event):
    clear response headers → response_headers → status_code → response_body → exit

Each stage evaluates one jq expression against the context document, keeps
the first result, validates its shape, and applies it. Later stages see the
overrides of earlier ones. Any failure ends the exchange with a 500.
"""

from jqproxy.pipeline.context import Context
from jqproxy.pipeline.errors import Attribute, FailureKind, HostReadError, HostWriteError, RewriteError, StageError
from jqproxy.pipeline.executor import PipelineExecutor
from jqproxy.pipeline.host import Host
from jqproxy.pipeline.query import JqEvaluator, QueryCompileError, QueryError, QueryEvaluator
from jqproxy.pipeline.stage import StageSpec, run_stage

__all__ = [
    "Attribute",
    "Context",
    "FailureKind",
    "Host",
    "HostReadError",
    "HostWriteError",
    "JqEvaluator",
    "PipelineExecutor",
    "QueryCompileError",
    "QueryError",
    "QueryEvaluator",
    "RewriteError",
    "StageError",
    "StageSpec",
    "run_stage",
]
