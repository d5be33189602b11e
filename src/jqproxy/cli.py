"""jqproxy CLI for running and checking the rewrite proxy - Tyro implementation."""

import json
import sys
from builtins import print as builtin_print
from pathlib import Path
from typing import Annotated, Literal

import attrs
import tyro
from pydantic import ValidationError
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jqproxy.config import CONFIG_FILENAME, JqProxyConfig
from jqproxy.log import setup_logging
from jqproxy.pipeline.errors import Attribute
from jqproxy.pipeline.executor import ACCESS_STAGES
from jqproxy.pipeline.query import JqEvaluator, QueryCompileError, QueryError
from jqproxy.pipeline.stage import EvaluationError, NoResult, Skipped, StageSpec, Value, WrongShape, run_stage

SKIP_POLICIES = {
    Attribute.METHOD: "keep inbound method",
    Attribute.PATH: "keep inbound path",
    Attribute.QUERY_PARAMS: "reset to no query params",
    Attribute.REQUEST_HEADERS: "no request headers",
    Attribute.RESPONSE_HEADERS: "no response headers",
    Attribute.STATUS_CODE: "keep upstream status",
    Attribute.RESPONSE_BODY: "keep upstream body",
}

AttributeName = Literal[
    "method",
    "path",
    "query_params",
    "request_headers",
    "response_headers",
    "status_code",
    "response_body",
]


# Subcommand definitions using attrs
@attrs.define
class Start:
    """Start mitmdump with the jqproxy addon."""

    detach: Annotated[bool, tyro.conf.arg(aliases=["-d"])] = False
    """Run in background and save PID to .mitm.lock."""


@attrs.define
class Stop:
    """Stop the background jqproxy server."""


@attrs.define
class Status:
    """Show whether jqproxy is running."""

    json: bool = False
    """Output status as JSON."""


@attrs.define
class Check:
    """Validate jqproxy.yaml and show the configured stages."""


@attrs.define
class Eval:
    """Evaluate a jq expression against a JSON document and show the first result."""

    expression: Annotated[str, tyro.conf.Positional]
    """jq expression to evaluate."""

    document: Annotated[Path | None, tyro.conf.arg(aliases=["-f"])] = None
    """JSON document to evaluate against (default: stdin)."""

    attribute: AttributeName | None = None
    """Validate the result with the shape rules of this stage."""


Command = (
    Annotated[Start, tyro.conf.subcommand(name="start")]
    | Annotated[Stop, tyro.conf.subcommand(name="stop")]
    | Annotated[Status, tyro.conf.subcommand(name="status")]
    | Annotated[Check, tyro.conf.subcommand(name="check")]
    | Annotated[Eval, tyro.conf.subcommand(name="eval")]
)


def load_config(config_dir: Path) -> JqProxyConfig:
    """Load jqproxy.yaml from the config directory, exiting on invalid config."""
    yaml_path = config_dir / CONFIG_FILENAME
    try:
        return JqProxyConfig.from_yaml(yaml_path)
    except ValidationError as e:
        print(f"[red]Invalid configuration in {yaml_path}:[/red]", file=sys.stderr)
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            print(f"  {location}: {error['msg']}", file=sys.stderr)
        sys.exit(1)


def check_config(config_dir: Path) -> None:
    """Compile every configured expression and print the stage table."""
    config = load_config(config_dir)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Phase", style="cyan")
    table.add_column("Stage", style="green")
    table.add_column("Expression", style="yellow")
    table.add_column("When empty", style="magenta")

    for attribute, expression in config.stage_expressions().items():
        phase = "access" if attribute in ACCESS_STAGES else "response"
        table.add_row(phase, attribute.value, escape(expression) or "-", SKIP_POLICIES[attribute])

    console = Console()
    console.print(f"[bold]Configuration:[/bold] {config.config_path}")
    console.print(f"[bold]Route:[/bold] {escape(config.route or '-')}")
    console.print(table)
    console.print("[green]All expressions compile[/green]")


def read_document(path: Path | None) -> object:
    """Read a JSON document from a file or stdin, exiting on invalid JSON."""
    try:
        text = path.read_text() if path else sys.stdin.read()
        return json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        print(f"[red]Cannot read document:[/red] {e}", file=sys.stderr)
        sys.exit(1)


def evaluate_expression(expression: str, document: object, attribute: AttributeName | None = None) -> int:
    """Evaluate an expression and print its first result.

    Args:
        expression: jq source
        document: Input document
        attribute: Stage whose shape rules apply, if any

    Returns:
        Exit code: 0 when a usable value was produced, 1 otherwise
    """
    evaluator = JqEvaluator()
    try:
        query = evaluator.compile(expression)
    except QueryCompileError as e:
        print(f"[red]Compile error:[/red] {e}", file=sys.stderr)
        return 1

    if attribute is None:
        first = next(iter(evaluator.evaluate(query, document)), None)
        if isinstance(first, QueryError):
            print(f"[red]Evaluation error:[/red] {first}", file=sys.stderr)
            return 1
        builtin_print(json.dumps(first, indent=2, ensure_ascii=False))
        return 0

    spec = StageSpec(Attribute(attribute), expression, query)
    result = run_stage(spec, evaluator, document)  # type: ignore[arg-type]
    if isinstance(result, Value):
        builtin_print(json.dumps(result.value, indent=2, ensure_ascii=False))
        return 0
    if isinstance(result, NoResult):
        print("[red]No result[/red]", file=sys.stderr)
    elif isinstance(result, EvaluationError):
        print(f"[red]Evaluation error:[/red] {result.error}", file=sys.stderr)
    elif isinstance(result, WrongShape):
        print(f"[red]Wrong shape:[/red] {result.message}", file=sys.stderr)
    elif isinstance(result, Skipped):
        print("[yellow]Skipped (empty expression)[/yellow]", file=sys.stderr)
    return 1


def show_status(config_dir: Path, json_output: bool = False) -> None:
    """Print whether the proxy is running."""
    from jqproxy.mitm.process import get_mitm_status

    status = get_mitm_status(config_dir)
    if json_output:
        builtin_print(json.dumps(status))
        return

    if status["running"]:
        print(f"[green]jqproxy is running[/green] (PID {status['pid']})")
        if status.get("log_file"):
            print(f"Log file: {status['log_file']}")
    else:
        print("[yellow]jqproxy is not running[/yellow]")


def main(
    cmd: Annotated[Command, tyro.conf.arg(name="")],
    *,
    config_dir: Annotated[Path | None, tyro.conf.arg(help="Configuration directory")] = None,
) -> None:
    """jqproxy - jq request/response rewriting proxy.

    Rewrites method, path, query params and headers of proxied requests, and
    headers, status and body of responses, with jq expressions.
    """
    if config_dir is None:
        config_dir = Path.home() / ".jqproxy"

    setup_logging()

    if isinstance(cmd, Start):
        from jqproxy.mitm.process import start_mitm

        config = load_config(config_dir)
        start_mitm(config_dir, config.mitm, detach=cmd.detach)

    elif isinstance(cmd, Stop):
        from jqproxy.mitm.process import stop_mitm

        success = stop_mitm(config_dir)
        sys.exit(0 if success else 1)

    elif isinstance(cmd, Status):
        show_status(config_dir, json_output=cmd.json)

    elif isinstance(cmd, Check):
        check_config(config_dir)

    elif isinstance(cmd, Eval):
        document = read_document(cmd.document)
        sys.exit(evaluate_expression(cmd.expression, document, cmd.attribute))


def entry_point() -> None:
    """Entry point for the jqproxy command."""
    tyro.cli(main)


if __name__ == "__main__":
    entry_point()
