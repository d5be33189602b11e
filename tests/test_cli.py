"""Tests for the jqproxy CLI."""

import io
import json
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from jqproxy.cli import (
    Check,
    Eval,
    Start,
    Status,
    Stop,
    check_config,
    evaluate_expression,
    load_config,
    main,
    read_document,
)


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    (tmp_path / "jqproxy.yaml").write_text(
        "jqproxy:\n"
        "  route: '^/foo/(?P<id>\\d+)$'\n"
        "  path: '\"/bar/\" + .request.kwargs.id'\n"
        "  response_body: '{ok: true}'\n"
    )
    return tmp_path


class TestLoadConfig:
    def test_valid(self, config_dir: Path) -> None:
        config = load_config(config_dir)
        assert config.response_body == "{ok: true}"

    def test_invalid_exits(self, tmp_path: Path, capsys) -> None:
        (tmp_path / "jqproxy.yaml").write_text("jqproxy:\n  status_code: '.['\n")

        with pytest.raises(SystemExit) as exc_info:
            load_config(tmp_path)

        assert exc_info.value.code == 1
        captured = capsys.readouterr()
        assert "Invalid configuration" in captured.err
        assert "status_code" in captured.err


class TestCheck:
    def test_lists_stages(self, config_dir: Path, capsys, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("COLUMNS", "200")
        check_config(config_dir)

        out = capsys.readouterr().out
        assert "path" in out
        assert "/bar/" in out
        assert "keep upstream status" in out
        assert "All expressions compile" in out

    def test_via_main(self, config_dir: Path, capsys) -> None:
        main(Check(), config_dir=config_dir)
        assert "All expressions compile" in capsys.readouterr().out


class TestEvaluate:
    def test_plain_expression(self, capsys) -> None:
        assert evaluate_expression(".request.kwargs.id", {"request": {"kwargs": {"id": "42"}}}) == 0
        assert json.loads(capsys.readouterr().out) == "42"

    def test_first_result_only(self, capsys) -> None:
        assert evaluate_expression(".[]", [1, 2]) == 0
        assert json.loads(capsys.readouterr().out) == 1

    def test_array_output_not_markup(self, capsys) -> None:
        assert evaluate_expression("[true]", {}) == 0
        assert json.loads(capsys.readouterr().out) == [True]

    def test_compile_error(self, capsys) -> None:
        assert evaluate_expression(".[", {}) == 1
        assert "Compile error" in capsys.readouterr().err

    def test_evaluation_error(self, capsys) -> None:
        assert evaluate_expression('error("bad")', {}) == 1
        assert "Evaluation error" in capsys.readouterr().err

    def test_attribute_shape_applied(self, capsys) -> None:
        assert evaluate_expression('{b: "x"}', {}, "query_params") == 0
        assert json.loads(capsys.readouterr().out) == {"b": ["x"]}

    def test_attribute_wrong_shape(self, capsys) -> None:
        assert evaluate_expression('"200"', {}, "status_code") == 1
        assert "status code jq result is not an integer" in capsys.readouterr().err

    def test_attribute_no_result(self, capsys) -> None:
        assert evaluate_expression("empty", {}, "method") == 1
        assert "No result" in capsys.readouterr().err


class TestReadDocument:
    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.json"
        path.write_text('{"a": 1}')
        assert read_document(path) == {"a": 1}

    def test_from_stdin(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO("[1, 2]"))
        assert read_document(None) == [1, 2]

    def test_invalid_json_exits(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "doc.json"
        path.write_text("{not json")
        with pytest.raises(SystemExit) as exc_info:
            read_document(path)
        assert exc_info.value.code == 1
        assert "Cannot read document" in capsys.readouterr().err

    def test_eval_via_main(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "doc.json"
        path.write_text('{"request": {"method": "GET"}}')

        with pytest.raises(SystemExit) as exc_info:
            main(Eval(".request.method", document=path, attribute="method"), config_dir=tmp_path)

        assert exc_info.value.code == 0
        assert json.loads(capsys.readouterr().out) == "GET"


class TestProcessCommands:
    @patch("jqproxy.mitm.process.start_mitm")
    def test_start(self, mock_start: Mock, config_dir: Path) -> None:
        main(Start(detach=True), config_dir=config_dir)

        mock_start.assert_called_once()
        args, kwargs = mock_start.call_args
        assert args[0] == config_dir
        assert args[1].port == 8080
        assert kwargs == {"detach": True}

    @patch("jqproxy.mitm.process.stop_mitm", return_value=False)
    def test_stop_not_running(self, mock_stop: Mock, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(Stop(), config_dir=tmp_path)
        assert exc_info.value.code == 1

    def test_status_not_running(self, tmp_path: Path, capsys) -> None:
        main(Status(), config_dir=tmp_path)
        assert "not running" in capsys.readouterr().out

    def test_status_json(self, tmp_path: Path, capsys) -> None:
        main(Status(json=True), config_dir=tmp_path)
        assert json.loads(capsys.readouterr().out) == {"running": False, "pid": None}
