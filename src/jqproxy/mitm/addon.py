"""Mitmproxy addon running the rewrite pipeline.

The Access phase runs on the request event, before the flow is forwarded.
The Response phase runs on the response event and always finalizes the
response itself.
"""

from __future__ import annotations

import logging

from mitmproxy import http

from jqproxy.config import JqProxyConfig
from jqproxy.mitm.host import FlowHost
from jqproxy.pipeline.executor import PipelineExecutor

logger = logging.getLogger(__name__)


class JqProxyMitmAddon:
    """Mitmproxy addon that rewrites requests and responses with jq."""

    def __init__(self, config: JqProxyConfig, executor: PipelineExecutor | None = None) -> None:
        """Initialize the addon.

        Args:
            config: jqproxy configuration
            executor: Pipeline executor (built from config if omitted)
        """
        self.config = config
        self.executor = executor or PipelineExecutor.from_config(config)
        self.route = config.route_pattern

    def _host(self, flow: http.HTTPFlow) -> FlowHost:
        return FlowHost(flow, self.route)

    def request(self, flow: http.HTTPFlow) -> None:
        """Run the Access phase.

        Args:
            flow: HTTP flow object
        """
        host = self._host(flow)
        if not self.executor.access(host):
            logger.debug("Request short-circuited: %s", flow.id)

    def response(self, flow: http.HTTPFlow) -> None:
        """Run the Response phase.

        Flows the Access phase already answered are left alone.

        Args:
            flow: HTTP flow object
        """
        host = self._host(flow)
        if host.short_circuited:
            logger.debug("Skipping response phase for short-circuited flow: %s", flow.id)
            return
        self.executor.response(host)
