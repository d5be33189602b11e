"""Tests for jqproxy configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from jqproxy.config import (
    JqProxyConfig,
    MitmConfig,
    clear_config_instance,
    get_config,
    set_config_instance,
)
from jqproxy.pipeline.errors import Attribute

YAML = """\
jqproxy:
  route: '^/foo/(?P<id>\\d+)$'
  path: '"/bar/" + .request.kwargs.id'
  status_code: '201'
  debug: true
  mitm:
    port: 9090
    upstream: http://backend:5000
"""


class TestJqProxyConfig:
    def test_defaults(self) -> None:
        config = JqProxyConfig()
        assert all(expr == "" for expr in config.stage_expressions().values())
        assert config.route is None
        assert config.route_pattern is None
        assert config.debug is False
        assert config.mitm == MitmConfig()

    def test_stage_expressions(self) -> None:
        config = JqProxyConfig(method='"POST"', response_body="{ok: true}")
        expressions = config.stage_expressions()
        assert set(expressions) == set(Attribute)
        assert expressions[Attribute.METHOD] == '"POST"'
        assert expressions[Attribute.RESPONSE_BODY] == "{ok: true}"
        assert expressions[Attribute.PATH] == ""

    def test_invalid_expression(self) -> None:
        with pytest.raises(ValidationError, match="invalid jq expression"):
            JqProxyConfig(status_code="if . then")

    def test_invalid_route(self) -> None:
        with pytest.raises(ValidationError, match="invalid route pattern"):
            JqProxyConfig(route="^/foo/(")

    def test_empty_route_is_none(self) -> None:
        assert JqProxyConfig(route="").route is None

    def test_route_pattern(self) -> None:
        config = JqProxyConfig(route=r"^/foo/(?P<id>\d+)$")
        assert config.route_pattern is not None
        assert config.route_pattern.match("/foo/42").group("id") == "42"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JQPROXY_METHOD", '"DELETE"')
        monkeypatch.setenv("JQPROXY_MITM__PORT", "7070")
        config = JqProxyConfig()
        assert config.method == '"DELETE"'
        assert config.mitm.port == 7070


class TestFromYaml:
    def test_load(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "jqproxy.yaml"
        yaml_path.write_text(YAML)

        config = JqProxyConfig.from_yaml(yaml_path)

        assert config.path == '"/bar/" + .request.kwargs.id'
        assert config.status_code == "201"
        assert config.debug is True
        assert config.mitm.port == 9090
        assert config.mitm.upstream == "http://backend:5000"
        assert config.config_path == yaml_path
        assert config.route_pattern.match("/foo/7")

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = JqProxyConfig.from_yaml(tmp_path / "jqproxy.yaml")
        assert config.path == ""

    def test_empty_file(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "jqproxy.yaml"
        yaml_path.write_text("")
        assert JqProxyConfig.from_yaml(yaml_path).method == ""

    def test_invalid_section_ignored(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "jqproxy.yaml"
        yaml_path.write_text("jqproxy: [1, 2]\n")
        assert JqProxyConfig.from_yaml(yaml_path).method == ""

    def test_kwargs_override_file(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "jqproxy.yaml"
        yaml_path.write_text(YAML)
        assert JqProxyConfig.from_yaml(yaml_path, status_code="202").status_code == "202"

    def test_invalid_expression_in_file(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "jqproxy.yaml"
        yaml_path.write_text("jqproxy:\n  method: '.['\n")
        with pytest.raises(ValidationError):
            JqProxyConfig.from_yaml(yaml_path)


class TestGetConfig:
    def test_from_env_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "jqproxy.yaml").write_text(YAML)
        monkeypatch.setenv("JQPROXY_CONFIG_DIR", str(tmp_path))

        config = get_config()

        assert config.mitm.port == 9090
        assert get_config() is config

    def test_home_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JQPROXY_CONFIG_DIR", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)

        config = get_config()

        assert config.config_path == tmp_path / ".jqproxy" / "jqproxy.yaml"
        assert config.path == ""

    def test_set_and_clear(self) -> None:
        config = JqProxyConfig(method='"PUT"')
        set_config_instance(config)
        assert get_config() is config
        clear_config_instance()
        set_config_instance(JqProxyConfig())
        assert get_config() is not config
