"""Pipeline executor for the Access and Response phases.

Stages run in a fixed order. Each stage reads the document left by the
previous ones, and any failure short-circuits the exchange with a 500.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from jqproxy.log import ExchangeLogger, exchange_logger
from jqproxy.pipeline import overrides
from jqproxy.pipeline.context import Context
from jqproxy.pipeline.errors import Attribute, HostReadError, RewriteError, report_error
from jqproxy.pipeline.query import JqEvaluator
from jqproxy.pipeline.stage import Skipped, StageSpec, run_stage, unwrap

if TYPE_CHECKING:
    from jqproxy.pipeline.host import Host
    from jqproxy.pipeline.query import QueryEvaluator

logger = logging.getLogger(__name__)

ACCESS_STAGES = (
    Attribute.METHOD,
    Attribute.PATH,
    Attribute.QUERY_PARAMS,
    Attribute.REQUEST_HEADERS,
)

RESPONSE_STAGES = (
    Attribute.RESPONSE_HEADERS,
    Attribute.STATUS_CODE,
    Attribute.RESPONSE_BODY,
)


class PipelineExecutor:
    """Runs the configured stages against one exchange at a time.

    Holds only the compiled stages, so one instance can serve concurrent
    exchanges.

    Attributes:
        stages: Compiled stage per attribute
        evaluator: Query evaluator
    """

    def __init__(
        self,
        expressions: Mapping[Attribute, str],
        evaluator: QueryEvaluator | None = None,
    ) -> None:
        """Compile the stage expressions.

        Args:
            expressions: jq source per attribute; missing or empty means skipped
            evaluator: Query evaluator (jq by default)

        Raises:
            QueryCompileError: If an expression does not compile
        """
        self.evaluator: QueryEvaluator = evaluator or JqEvaluator()
        self.stages: dict[Attribute, StageSpec] = {
            attribute: StageSpec(attribute, expressions.get(attribute, "")).compile(self.evaluator)
            for attribute in Attribute
        }

        configured = [a.value for a in Attribute if not self.stages[a].skipped]
        logger.info("Pipeline stages configured: %s", ", ".join(configured) or "none")

    @classmethod
    def from_config(cls, config: Any, evaluator: QueryEvaluator | None = None) -> PipelineExecutor:
        """Create an executor from a JqProxyConfig."""
        return cls(config.stage_expressions(), evaluator)

    def _run(self, attribute: Attribute, ctx: Context, log: ExchangeLogger) -> Any:
        """Run one stage; return its value, or Skipped.

        Raises:
            StageError: If the stage produced no usable value
        """
        spec = self.stages[attribute]
        stage_log = log.bind(attribute=spec.name)
        result = run_stage(spec, self.evaluator, ctx.to_document())
        if isinstance(result, Skipped):
            stage_log.debug("Stage '%s' skipped (no expression)", spec.name)
            return result
        value = unwrap(attribute, result)
        stage_log.debug("Stage '%s' produced %r", spec.name, value)
        return value

    def _logger(self, host: Host, phase: str) -> ExchangeLogger:
        try:
            return exchange_logger(logger, phase=phase, method=host.get_method(), path=host.get_path())
        except HostReadError:
            return exchange_logger(logger, phase=phase)

    def access(self, host: Host) -> bool:
        """Run the Access phase: method, path, query params, request headers.

        Args:
            host: Host owning the exchange

        Returns:
            True if the request should be forwarded, False if it was
            short-circuited with an error response
        """
        log = self._logger(host, "access")
        try:
            ctx = Context.for_access(host)

            method = self._run(Attribute.METHOD, ctx, log)
            if not isinstance(method, Skipped):
                overrides.apply_method(host, ctx, method)

            path = self._run(Attribute.PATH, ctx, log)
            if not isinstance(path, Skipped):
                overrides.apply_path(host, ctx, path)

            # Reset on absence: no expression means no query parameters
            query = self._run(Attribute.QUERY_PARAMS, ctx, log)
            overrides.apply_query_params(host, ctx, {} if isinstance(query, Skipped) else query)

            # Cleared even when the stage is skipped
            overrides.clear_request_headers(host)

            headers = self._run(Attribute.REQUEST_HEADERS, ctx, log)
            if isinstance(headers, Skipped):
                ctx.headers = {}
            else:
                overrides.apply_request_headers(host, ctx, headers)

        except RewriteError as e:
            report_error(host, e, log)
            return False

        log.info(
            "Request rewritten: %s %s",
            ctx.method,
            ctx.path,
            extra={"event": "jqproxy_access"},
        )
        return True

    def response(self, host: Host) -> bool:
        """Run the Response phase and finalize the response.

        The phase always ends with a short-circuit, carrying either the
        overrides or the upstream status and body.

        Args:
            host: Host owning the exchange

        Returns:
            True on success, False if an error response was sent instead
        """
        log = self._logger(host, "response")
        try:
            cleared = overrides.clear_response_headers(host)
            log.debug("Cleared %d response headers", cleared)

            ctx = Context.for_response(host)

            headers = self._run(Attribute.RESPONSE_HEADERS, ctx, log)
            if not isinstance(headers, Skipped):
                overrides.apply_response_headers(ctx, headers)

            # Skipped keeps the upstream status
            status_code = self._run(Attribute.STATUS_CODE, ctx, log)
            if not isinstance(status_code, Skipped):
                overrides.apply_status_code(ctx, status_code)

            # Skipped keeps the raw upstream body
            body = self._run(Attribute.RESPONSE_BODY, ctx, log)
            if not isinstance(body, Skipped):
                overrides.apply_response_body(ctx, body)

        except RewriteError as e:
            report_error(host, e, log)
            return False

        log.info(
            "Response rewritten: %d (%d bytes)",
            ctx.status_code,
            len(ctx.body),
            extra={"event": "jqproxy_response"},
        )
        host.exit(ctx.status_code, ctx.body, ctx.response_headers)
        return True
