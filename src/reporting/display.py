"""Rich-based terminal rendering of a :class:`CoverageResult`.

Every function reads the result and prints; nothing here changes it.  All
output goes through the module-level ``_console`` so tests can swap it for
a capturing console.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from src.coverage_engine.orphan_categorizer import orphan_recommendations
from src.shared.models import (
    CompletenessView,
    CoverageResult,
    CoverageSummary,
    EndpointCoverage,
    Gap,
    OrphanKind,
    OrphanTest,
)

# ---------------------------------------------------------------------------
# Module-level Console singleton
# ---------------------------------------------------------------------------

_console = Console()

_PRIORITY_STYLES = {"P0": "bold red", "P1": "red", "P2": "yellow", "P3": "dim"}


# ---------------------------------------------------------------------------
# Display functions
# ---------------------------------------------------------------------------


def print_summary(summary: CoverageSummary, service: str = "") -> None:
    """Print the headline numbers in a panel coloured by coverage level."""
    percent = summary.coverage_percent
    if summary.total_scenarios == 0:
        style = "dim"
    elif percent >= 80:
        style = "green"
    elif percent >= 50:
        style = "yellow"
    else:
        style = "red"

    content = Text()
    if service:
        content.append("Service: ", style="bold")
        content.append(f"{service}\n", style="cyan")
    content.append("Coverage: ", style="bold")
    content.append(f"{percent:.1f}%\n", style=f"bold {style}")
    content.append(f"Endpoints: {summary.total_endpoints}\n")
    content.append(f"Baseline scenarios: {summary.total_scenarios}\n")
    content.append(
        f"Fully covered: {summary.fully_covered}  "
        f"Partial: {summary.partially_covered}  "
        f"Not covered: {summary.not_covered}\n"
    )
    gaps = "  ".join(f"{p}: {n}" for p, n in summary.gaps_by_priority.items())
    content.append(f"Gaps: {gaps}\n")
    content.append(
        f"Orphan APIs: {summary.orphan_api_count}  "
        f"Orphan tests: {summary.business_orphan_count} business / "
        f"{summary.technical_orphan_count} technical"
    )
    if summary.critical_issues:
        content.append(f"\nCritical issues: {summary.critical_issues}", style="bold red")

    _console.print(
        Panel(
            content,
            title="[bold]Scenario Coverage[/bold]",
            border_style=style,
            expand=False,
        )
    )


def print_endpoint_table(per_endpoint: Iterable[EndpointCoverage]) -> None:
    """Print one row per endpoint with its Phase 1 counts."""
    table = Table(title="Endpoint Coverage", show_header=True, header_style="bold magenta")
    table.add_column("Endpoint", style="cyan", min_width=25)
    table.add_column("Route", min_width=20)
    table.add_column("Scenarios", justify="right")
    table.add_column("Full", justify="right")
    table.add_column("Partial", justify="right")
    table.add_column("None", justify="right")
    table.add_column("Coverage", justify="right")

    for cov in per_endpoint:
        if cov.is_orphan:
            status = "[red]ORPHAN[/red]"
        elif cov.baseline_count == 0:
            status = "[dim]—[/dim]"
        elif cov.fully_covered:
            status = f"[green]{cov.coverage_percent:.0f}%[/green]"
        else:
            status = f"[yellow]{cov.coverage_percent:.0f}%[/yellow]"
        table.add_row(
            cov.endpoint.key,
            f"{cov.endpoint.method.value} {cov.endpoint.path_template}",
            str(cov.baseline_count),
            str(cov.full_count),
            str(cov.partial_count),
            str(cov.none_count),
            status,
        )

    _console.print(table)


def print_gaps(gaps: Sequence[Gap], limit: int | None = None) -> None:
    """Print gaps in their priority order, optionally truncated."""
    if not gaps:
        _console.print("[green]No coverage gaps.[/green]")
        return

    table = Table(title="Coverage Gaps", show_header=True, header_style="bold magenta")
    table.add_column("Priority", justify="center")
    table.add_column("Endpoint", style="cyan")
    table.add_column("Gap")
    table.add_column("Recommendation")

    shown = gaps if limit is None else gaps[:limit]
    for gap in shown:
        priority = gap.priority.value
        style = _PRIORITY_STYLES.get(priority, "")
        table.add_row(
            f"[{style}]{priority}[/{style}]" if style else priority,
            gap.endpoint_key,
            gap.scenario_text or gap.reason,
            gap.recommendation,
        )

    _console.print(table)
    if limit is not None and len(gaps) > limit:
        _console.print(f"[dim]... and {len(gaps) - limit} more gaps[/dim]", highlight=False)


def print_orphan_tests(orphans: Sequence[OrphanTest]) -> None:
    """Print business orphans (actionable), technical ones, then the QA action list."""
    if not orphans:
        _console.print("[green]No orphan tests.[/green]")
        return

    table = Table(title="Orphan Tests", show_header=True, header_style="bold magenta")
    table.add_column("Kind", justify="center")
    table.add_column("Subtype")
    table.add_column("Priority", justify="center")
    table.add_column("Test", style="cyan")
    table.add_column("Location")

    for orphan in orphans:
        kind = (
            "[yellow]BUSINESS[/yellow]"
            if orphan.kind == OrphanKind.BUSINESS
            else "[dim]TECHNICAL[/dim]"
        )
        table.add_row(
            kind,
            orphan.subtype,
            orphan.priority.value if orphan.priority else "—",
            orphan.test.declared_name or orphan.test.id,
            f"{orphan.test.file_path}:{orphan.test.line_number}",
        )

    _console.print(table)
    for line in orphan_recommendations(orphans):
        _console.print(f"[dim]- {line}[/dim]", highlight=False)


def print_completeness(phase2: Iterable[CompletenessView]) -> None:
    """Print Phase 2 suggestions.  Endpoints without AI scenarios are skipped."""
    views = [v for v in phase2 if v.ratio is not None]
    if not views:
        _console.print("[dim]No AI-suggested scenarios to compare.[/dim]")
        return

    table = Table(
        title="Baseline Completeness (informational)",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Endpoint", style="cyan")
    table.add_column("Baseline", justify="right")
    table.add_column("AI", justify="right")
    table.add_column("Satisfied", justify="right")
    table.add_column("Suggested scenario")

    for view in views:
        suggestions = "\n".join(
            ("[red]![/red] " if s.high_priority else "- ")
            + s.scenario.text
            + (" [dim](test exists)[/dim]" if s.test_exists else "")
            for s in view.suggestions
        )
        table.add_row(
            view.endpoint_key,
            str(view.baseline_count),
            str(view.ai_count),
            f"{view.satisfied_count}/{view.ai_count}",
            suggestions or "[green]complete[/green]",
        )

    _console.print(table)


def print_result(result: CoverageResult, service: str = "", gap_limit: int | None = 25) -> None:
    """Print the full report: summary, endpoints, gaps, orphans, Phase 2."""
    print_summary(result.summary, service)
    print_endpoint_table(result.per_endpoint.values())
    print_gaps(result.gaps, limit=gap_limit)
    print_orphan_tests(result.orphan_tests)
    if result.shared_attributions:
        _console.print(
            f"[dim]{len(result.shared_attributions)} tests are attributed to "
            f"more than one endpoint.[/dim]",
            highlight=False,
        )
    print_completeness(result.phase2.values())


def print_history(rows: Sequence[dict]) -> None:
    """Print stored snapshots, newest last."""
    if not rows:
        _console.print("[dim]No history recorded yet.[/dim]")
        return

    table = Table(title="Coverage History", show_header=True, header_style="bold magenta")
    table.add_column("Timestamp")
    table.add_column("Service", style="cyan")
    table.add_column("Coverage", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("P0 gaps", justify="right")

    previous: float | None = None
    for row in rows:
        percent = float(row.get("coverage_percent", 0.0))
        if previous is None:
            change = "—"
        else:
            delta = percent - previous
            style = "green" if delta > 0 else "red" if delta < 0 else "dim"
            change = f"[{style}]{delta:+.1f}[/{style}]"
        previous = percent
        table.add_row(
            str(row.get("timestamp", "")),
            str(row.get("service", "")),
            f"{percent:.1f}%",
            change,
            str(row.get("gaps_by_priority", {}).get("P0", 0)),
        )

    _console.print(table)


def print_error_panel(error: str | Exception) -> None:
    """Print an error message in a red Rich panel."""
    _console.print(
        Panel(
            Text(str(error), style="bold white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            expand=False,
        )
    )
