"""Mitmproxy addon script for use with mitmdump -s flag.

This script is loaded by mitmdump and delegates the request and response
events to JqProxyMitmAddon. Configuration is discovered through
JQPROXY_CONFIG_DIR, which `jqproxy start` sets.

Usage:
    mitmdump --mode reverse:http://localhost:8000 -s script.py
"""

from __future__ import annotations

import logging
from typing import Any

from jqproxy.config import get_config
from jqproxy.log import setup_logging
from jqproxy.mitm.addon import JqProxyMitmAddon

logger = logging.getLogger(__name__)


class JqProxyScript:
    """Mitmproxy addon script that wraps JqProxyMitmAddon."""

    def __init__(self) -> None:
        self.addon: JqProxyMitmAddon | None = None

    def load(self, loader: Any) -> None:  # noqa: ANN401
        """Called when addon is loaded by mitmproxy."""
        config = get_config()
        setup_logging(config.debug)
        logger.info("Loading jqproxy mitmproxy addon (config: %s)", config.config_path)

        self.addon = JqProxyMitmAddon(config)
        logger.info(
            "jqproxy addon initialized, listening on %s:%d, upstream %s",
            config.mitm.listen_host,
            config.mitm.port,
            config.mitm.upstream,
        )

    def request(self, flow: Any) -> None:  # noqa: ANN401
        """Handle HTTP request."""
        if self.addon:
            self.addon.request(flow)

    def response(self, flow: Any) -> None:  # noqa: ANN401
        """Handle HTTP response."""
        if self.addon:
            self.addon.response(flow)


addons = [JqProxyScript()]
