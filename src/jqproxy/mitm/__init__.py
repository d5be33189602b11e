"""mitmproxy host for the rewrite pipeline."""

from jqproxy.mitm.addon import JqProxyMitmAddon
from jqproxy.mitm.host import FlowHost

__all__ = ["FlowHost", "JqProxyMitmAddon"]
