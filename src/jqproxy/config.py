"""Configuration management for jqproxy.

Configuration Discovery Precedence (Highest to Lowest Priority):
===============================================================

1. **JQPROXY_CONFIG_DIR Environment Variable** (Highest Priority)
   - Set by CLI or manually: `export JQPROXY_CONFIG_DIR=/path/to/config`
   - Looks for: `${JQPROXY_CONFIG_DIR}/jqproxy.yaml`
   - Use case: Development, testing, the mitmdump addon script

2. **~/.jqproxy Directory** (Fallback)
   - Looks for: `~/.jqproxy/jqproxy.yaml`

If no `jqproxy.yaml` is found, defaults are used. Every setting can also be
given as a `JQPROXY_*` environment variable (e.g. `JQPROXY_STATUS_CODE`).

Example jqproxy.yaml:
--------
jqproxy:
  route: '^/foo/(?P<id>\\d+)$'
  path: '"/bar/" + .request.kwargs.id'
  query_params: '.request.query_params'
  request_headers: '.request.headers'
  response_body: '{ok: true}'
  mitm:
    port: 8080
    upstream: http://localhost:8000
"""

import logging
import os
import re
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jqproxy.pipeline.errors import Attribute
from jqproxy.pipeline.query import JqEvaluator, QueryCompileError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "jqproxy.yaml"


class MitmConfig(BaseModel):
    """Configuration for the mitmproxy host."""

    port: int = 8080
    """Port for mitmproxy to listen on"""

    listen_host: str = "127.0.0.1"
    """Address for mitmproxy to bind"""

    upstream: str = "http://localhost:8000"
    """Upstream server requests are forwarded to (reverse proxy mode)"""

    stream_large_bodies: str | None = None
    """Stream bodies above this size (e.g. '1m'). Streamed bodies cannot be rewritten."""


class JqProxyConfig(BaseSettings):
    """Main configuration for jqproxy that reads from jqproxy.yaml."""

    model_config = SettingsConfigDict(
        env_prefix="JQPROXY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Access phase expressions
    method: str = ""
    path: str = ""
    query_params: str = ""
    request_headers: str = ""

    # Response phase expressions
    response_headers: str = ""
    status_code: str = ""
    response_body: str = ""

    # Regex matched against the inbound path to produce URI captures
    route: str | None = None

    debug: bool = False

    mitm: MitmConfig = Field(default_factory=MitmConfig)

    # Path to jqproxy config
    config_path: Path = Field(default_factory=lambda: Path("./jqproxy.yaml"))

    @field_validator(
        "method",
        "path",
        "query_params",
        "request_headers",
        "response_headers",
        "status_code",
        "response_body",
    )
    @classmethod
    def _check_expression(cls, value: str) -> str:
        if value:
            try:
                JqEvaluator().compile(value)
            except QueryCompileError as e:
                raise ValueError(f"invalid jq expression {value!r}: {e}") from e
        return value

    @field_validator("route")
    @classmethod
    def _check_route(cls, value: str | None) -> str | None:
        if value:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid route pattern {value!r}: {e}") from e
        return value or None

    def stage_expressions(self) -> dict[Attribute, str]:
        """Get the jq expression for each stage (empty when skipped)."""
        return {attribute: getattr(self, attribute.value) for attribute in Attribute}

    @property
    def route_pattern(self) -> re.Pattern[str] | None:
        """Compiled route pattern, or None if not configured."""
        return re.compile(self.route) if self.route else None

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "JqProxyConfig":
        """Load configuration from jqproxy.yaml file.

        Args:
            yaml_path: Path to the jqproxy.yaml file
            **kwargs: Settings overriding the file

        Returns:
            JqProxyConfig instance

        Raises:
            pydantic.ValidationError: If an expression or the route does not compile
        """
        data: dict[str, Any] = {}
        if yaml_path.exists():
            with yaml_path.open() as f:
                raw = yaml.safe_load(f) or {}
            section = raw.get("jqproxy", {})
            if isinstance(section, dict):
                data = section
            else:
                logger.warning(f"Invalid jqproxy section in {yaml_path}: {type(section)}")

        return cls(**{**data, "config_path": yaml_path, **kwargs})


# Global configuration instance
_config_instance: JqProxyConfig | None = None
_config_lock = threading.Lock()


def get_config() -> JqProxyConfig:
    """Get the configuration instance."""
    global _config_instance

    if _config_instance is None:
        with _config_lock:
            # Double-check locking pattern
            if _config_instance is None:
                env_config_dir = os.environ.get("JQPROXY_CONFIG_DIR")
                if env_config_dir:
                    config_dir = Path(env_config_dir)
                    logger.info(f"Using config directory from environment: {config_dir}")
                else:
                    config_dir = Path.home() / ".jqproxy"

                yaml_path = config_dir / CONFIG_FILENAME
                if yaml_path.exists():
                    logger.info(f"Loading jqproxy config from: {yaml_path}")
                else:
                    logger.info(f"{CONFIG_FILENAME} not found at {yaml_path}, using default config")
                _config_instance = JqProxyConfig.from_yaml(yaml_path)

    return _config_instance


def set_config_instance(config: JqProxyConfig) -> None:
    """Set the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = config


def clear_config_instance() -> None:
    """Clear the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
