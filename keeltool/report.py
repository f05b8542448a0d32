"""
Presentación con Rich de reportes de scan/fix, topologías y resultados de deploy.
"""

from typing import List, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from keel.core.deploy.state import DeployResult
from keel.core.scanfix.base import Severity
from keel.core.scanfix.report import FixOutcome, StageReport
from keel.core.topology.models import Topology


def _outcome_status(outcome: FixOutcome) -> str:
    if not outcome.problem_exists:
        return "[green]✔ OK[/green]"
    if outcome.fix_applied:
        return "[green]✔ FIXED[/green]"
    if outcome.severity == Severity.CRITICAL:
        return "[red]✖ CRITICAL[/red]"
    if outcome.severity == Severity.WARNING:
        return "[yellow]⚠ WARNING[/yellow]"
    return "[dim]i INFO[/dim]"


def _outcome_message(outcome: FixOutcome) -> str:
    if not outcome.problem_exists:
        return outcome.description
    parts = [outcome.description]
    if outcome.error:
        parts.append(f"[dim]{outcome.error}[/dim]")
    if outcome.manual_fix and not outcome.fix_applied:
        parts.append(f"[cyan]→ {outcome.manual_fix}[/cyan]")
    elif outcome.auto_fixable and outcome.fix_applied is None:
        parts.append("[dim]auto-fix disponible: keel fix[/dim]")
    return "\n".join(parts)


def display_stage_reports(reports: Sequence[StageReport], console: Console) -> None:
    """Un panel por etapa y un resumen final."""
    for report in reports:
        title = report.stage.value.upper()
        if report.skipped:
            console.print(Panel(
                f"[yellow]No alcanzable:[/yellow] {report.reachability.reason}",
                title=f"⏭ {title}",
                border_style="dim",
            ))
            continue

        if report.unresolved_critical:
            border_style, status_icon = "red", "❌"
        elif report.unresolved:
            border_style, status_icon = "yellow", "⚠️"
        else:
            border_style, status_icon = "green", "✅"

        table = Table(show_header=True, header_style="bold", box=box.SIMPLE)
        table.add_column("Check", style="cyan", width=32)
        table.add_column("Estado", width=12)
        table.add_column("Mensaje", style="white")
        for outcome in report.outcomes:
            table.add_row(outcome.fix_id, _outcome_status(outcome), _outcome_message(outcome))

        via = f" via {report.reachability.via.value}" if report.reachability and report.reachability.via else ""
        summary = f"{status_icon} {title}{via}\n"
        summary += (
            f"[dim]Problemas: {len(report.problems)} | Corregidos: {len(report.fixed)} | "
            f"Críticos pendientes: {len(report.unresolved_critical)}[/dim]"
        )
        console.print(Panel(table, title=summary, border_style=border_style))

    _display_summary(reports, console)


def _display_summary(reports: Sequence[StageReport], console: Console) -> None:
    critical = sum(len(r.unresolved_critical) for r in reports)
    pending = sum(len(r.unresolved) for r in reports)
    skipped = [r.stage.value for r in reports if r.skipped]

    if critical:
        border_style, status_icon, status_text = "red", "❌", "[red]NO LISTO[/red]"
    elif pending:
        border_style, status_icon, status_text = "yellow", "⚠️", "[yellow]CON ADVERTENCIAS[/yellow]"
    else:
        border_style, status_icon, status_text = "green", "✅", "[green]LISTO[/green]"

    summary_table = Table(show_header=False, box=None)
    summary_table.add_column("Métrica", style="cyan", width=20)
    summary_table.add_column("Valor", style="white")
    summary_table.add_row("Etapas", str(len(reports)))
    summary_table.add_row("Críticos", f"[red]{critical}[/red]")
    summary_table.add_row("Pendientes", f"[yellow]{pending}[/yellow]")
    if skipped:
        summary_table.add_row("Saltadas", ", ".join(skipped))
    summary_table.add_row("Estado", status_text)

    console.print(Panel(summary_table, title=f"{status_icon} Resumen", border_style=border_style))


def display_topology(topology: Topology, console: Console) -> None:
    table = Table(title="Topología", show_header=True, header_style="bold cyan")
    table.add_column("Servicio", style="cyan")
    table.add_column("Dominio", style="green")
    table.add_column("Puerto", justify="right")
    table.add_column("Target", style="yellow")
    for entry in topology.services:
        table.add_row(entry.key, entry.domain, str(entry.port), entry.target)
    console.print(table)

    for reassignment in topology.reassignments:
        console.print(f"[yellow]⚠️ {reassignment.message}[/yellow]")
    for warning in topology.warnings:
        if warning.kind != "port":
            console.print(f"[yellow]⚠️ {warning.message}[/yellow]")


def display_deploy_result(result: DeployResult, console: Console) -> None:
    rows: List[tuple] = [
        ("Servicio", f"{result.repo}/{result.environment}"),
        ("Fases", " → ".join(p.value for p in result.history)),
    ]
    if result.artifact:
        rows.append(("Imagen", f"{result.artifact.image} ({result.artifact.platform})"))
    if result.skipped_migration:
        rows.append(("Migraciones", "[dim]sin cambios de datos[/dim]"))
    if result.error:
        rows.append(("Error", f"[red]{result.error}[/red]"))
    if result.restored is not None:
        rows.append(("Restore", "[green]OK[/green]" if result.restored else f"[red]{result.restore_error}[/red]"))
    if result.backup:
        rows.append(("Backup", result.backup.path))
    for warning in result.warnings:
        rows.append(("Aviso", f"[yellow]{warning}[/yellow]"))

    table = Table(show_header=False, box=None)
    table.add_column("Campo", style="cyan", width=14)
    table.add_column("Valor", style="white")
    for label, value in rows:
        table.add_row(label, value)

    if result.success:
        title, border_style = "✅ Deploy exitoso", "green"
    elif result.incident:
        title, border_style = f"🚨 Deploy fallido: incidente {result.incident}", "red"
    else:
        title, border_style = "❌ Deploy fallido", "red"
    console.print(Panel(table, title=title, border_style=border_style))
