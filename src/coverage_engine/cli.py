"""``traceability`` command line interface.

Commands:

* ``analyze``  parse an API spec, scenario catalogues and unit tests, run
  the coverage analysis and print (or export) the result;
* ``history``  show the stored coverage snapshots and the latest trend.

A fatal error prints a single error panel and exits with status 1.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from src.coverage_engine import engine
from src.coverage_engine.catalogue import load_catalogue
from src.coverage_engine.config import load_engine_config
from src.oracles.llm_oracle import create_oracle
from src.oracles.static_oracle import StaticOracle
from src.reporting import display
from src.reporting.history import HistoryStore
from src.shared.config import OracleSettings
from src.shared.constants import APP_NAME, VERSION
from src.shared.errors import ConfigurationError, TraceabilityError
from src.shared.logging import setup_logging
from src.shared.models import SourceKind
from src.shared.protocols import SemanticMatchOracle
from src.spec_parser.openapi_parser import OpenAPIParser
from src.test_parsers.factory import ParserFactory

app = typer.Typer(
    name="traceability",
    help="Scenario-to-test traceability and coverage analysis for REST APIs.",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"{APP_NAME} v{VERSION}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Scenario coverage analysis."""


@app.command("analyze")
def analyze_command(
    spec: Path = typer.Argument(..., help="Swagger/OpenAPI file (.yaml, .yml or .json)."),
    baseline: Path = typer.Option(..., "--baseline", "-b", help="Baseline scenario catalogue (YAML)."),
    tests: Path = typer.Option(..., "--tests", "-t", help="Directory holding the unit tests."),
    ai: Optional[Path] = typer.Option(None, "--ai", help="AI-suggested scenario catalogue (YAML)."),
    language: str = typer.Option("python", "--language", "-l", help="Language of the unit tests."),
    service: str = typer.Option("", "--service", "-s", help="Service name shown in reports and history."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Engine config YAML."),
    oracle_responses: Optional[Path] = typer.Option(
        None, "--oracle-responses", help="Replay recorded oracle answers instead of calling the model."
    ),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table or json."),
    output_file: Optional[Path] = typer.Option(None, "--output-file", help="Write the JSON result here."),
    history_dir: Optional[Path] = typer.Option(None, "--history-dir", help="Where coverage snapshots are kept."),
    no_history: bool = typer.Option(False, "--no-history", help="Do not record a snapshot."),
    max_gaps: int = typer.Option(25, "--max-gaps", help="Number of gaps shown in the table output."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for structured logs."),
) -> None:
    """Run the coverage analysis for one service."""
    if output not in ("table", "json"):
        display.print_error_panel(f"Unknown output format '{output}' (expected table or json)")
        raise typer.Exit(code=1)

    setup_logging(service or APP_NAME, level=log_level)
    try:
        cfg = load_engine_config(config)
        service_name = service or cfg.service or spec.stem
        if not tests.is_dir():
            raise ConfigurationError("Test directory does not exist", source=str(tests))

        endpoints = OpenAPIParser().parse(spec)
        baseline_catalogue = load_catalogue(baseline, SourceKind.BASELINE)
        ai_catalogue = load_catalogue(ai, SourceKind.AI_SUGGESTED) if ai is not None else None

        parser = ParserFactory().create(language, endpoints, root=tests)
        unit_tests = parser.parse_directory(tests)

        oracle: SemanticMatchOracle
        if oracle_responses is not None:
            oracle = StaticOracle.from_json_file(oracle_responses)
        else:
            oracle = create_oracle(OracleSettings())

        result = engine.analyze(
            endpoints, baseline_catalogue, ai_catalogue, unit_tests, oracle, config=cfg
        )
    except TraceabilityError as exc:
        display.print_error_panel(exc)
        raise typer.Exit(code=1)

    if output == "json":
        if output_file is not None:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            output_file.write_text(result.to_json(), encoding="utf-8")
            typer.echo(f"Result written to {output_file}")
        else:
            typer.echo(result.to_json())
    else:
        display.print_result(result, service=service_name, gap_limit=max_gaps)
        for warning in parser.warnings:
            typer.echo(f"warning: {warning}", err=True)

    if not no_history:
        store = HistoryStore(history_dir or Path(cfg.reporting.history_dir), cfg.reporting.max_snapshots)
        store.record(result, service=service_name, total_tests=len(unit_tests))
        trend = store.trend(service_name)
        if output == "table" and trend is not None and trend.direction != "stable":
            typer.echo(f"Coverage {trend.direction}: {trend.coverage_change:+.1f} points since last run")


@app.command("history")
def history_command(
    history_dir: Path = typer.Option(Path(".traceability/history"), "--history-dir", help="Where coverage snapshots are kept."),
    service: Optional[str] = typer.Option(None, "--service", "-s", help="Only show this service."),
) -> None:
    """Show stored coverage snapshots."""
    store = HistoryStore(history_dir)
    snapshots = store.load(service)
    display.print_history([s.model_dump() for s in snapshots])
    trend = store.trend(service)
    if trend is not None and len(snapshots) > 1:
        typer.echo(
            f"Trend: {trend.direction} ({trend.coverage_change:+.1f} coverage, "
            f"{trend.p0_gap_change:+d} P0 gaps, {trend.test_growth:+d} tests)"
        )


if __name__ == "__main__":
    app()
