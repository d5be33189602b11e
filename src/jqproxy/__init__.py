"""jqproxy - jq-driven request/response rewriting for mitmproxy."""

__version__ = "0.1.0"
