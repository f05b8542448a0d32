"""
keel - CLI del orquestador de deploys.

Solo compone comandos; la lógica vive en keel.core y en los plugins de keeltool.
Este es el único lugar que lee el estado del proceso (os.environ, .env, plataforma).
"""

import os
import signal
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from keel import __version__
from keel.core.deploy import DeployOrchestrator, HealthMonitor
from keel.core.errors import KeelError
from keel.core.plugins.contracts import PluginCategory
from keel.core.remote.gateway import RemoteGateway
from keel.core.runtime.resolver import find_project_root, state_root
from keel.core.runtime.context import ExecutionContext
from keel.core.scanfix.engine import ScanFixEngine
from keel.core.spec.stages import ALL_STAGES, Stage
from keel.core.spec.store import CONFIG_CANDIDATES, load, load_many
from keel.core.topology.merger import merge

from keeltool.plugins import build_registry
from keeltool.render import render_outputs
from keeltool.report import display_deploy_result, display_stage_reports, display_topology
from keeltool.secrets import store_for


OS_RELEASE = Path("/etc/os-release")

app = typer.Typer(
    name="keel",
    help="keel - Orquestador de deploys multi-repo (scan, fix, deploy)",
    add_completion=False,
    no_args_is_help=True,
)
secrets_app = typer.Typer(
    name="secrets",
    help="Secretos requeridos por el pipeline",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(secrets_app, name="secrets", help="Verifica y sube secretos")

console = Console()


def _load_env(root: Path) -> None:
    env_file = root / ".env"
    if env_file.exists():
        load_dotenv(env_file)


def _project_root(root: Path) -> Path:
    """Sube desde root hasta el directorio con la configuración del repo."""
    return find_project_root(root, CONFIG_CANDIDATES) or root.resolve()


def _context() -> ExecutionContext:
    os_release = OS_RELEASE.read_text() if OS_RELEASE.is_file() else ""
    return ExecutionContext.capture(os.environ, sys.platform, os_release)


def _handle_signals(context: ExecutionContext) -> None:
    """SIGINT/SIGTERM cancelan las esperas en curso (health check) en vez de cortar a mitad de fase."""
    def _stop(signum, frame):
        console.print("[yellow]⚠️ Señal recibida; cancelando al terminar la fase actual[/yellow]")
        context.shutdown.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def _fail(error: KeelError) -> NoReturn:
    console.print(f"[red]✘ {error}[/red]")
    raise typer.Exit(code=1)


def _stages(stage: Optional[str]) -> List[Stage]:
    if stage is None:
        return list(ALL_STAGES)
    try:
        return [Stage.parse(stage)]
    except ValueError as e:
        console.print(f"[red]✘ {e}[/red]")
        raise typer.Exit(code=2)


def _run_scan(root: Path, stage: Optional[str], apply_fixes: bool) -> None:
    root = _project_root(root)
    _load_env(root)
    context = _context()
    stages = _stages(stage)

    try:
        spec = load(root, allow_placeholders=True)
        gateway = RemoteGateway(context)
        engine = ScanFixEngine(build_registry(), gateway, console=console)
        title = "Fix" if apply_fixes else "Scan"
        console.print(Panel.fit(f"[bold cyan]{title} de {spec.name}[/bold cyan]", border_style="cyan"))
        reports = engine.run_stages(stages, spec, root, apply_fixes=apply_fixes)
    except KeelError as e:
        _fail(e)

    console.print()
    display_stage_reports(reports, console)
    if any(not report.ok for report in reports):
        raise typer.Exit(code=1)


@app.command()
def scan(
    stage: Optional[str] = typer.Option(None, "--stage", "-s", help="Etapa: dev, secrets, staging, prod"),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Raíz del repo"),
):
    """
    Revisa la readiness del repo por etapa (sin modificar nada)

    Ejemplos:
        keel scan                 # Todas las etapas
        keel scan --stage prod    # Solo producción
    """
    _run_scan(root, stage, apply_fixes=False)


@app.command()
def fix(
    stage: Optional[str] = typer.Option(None, "--stage", "-s", help="Etapa: dev, secrets, staging, prod"),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Raíz del repo"),
):
    """Revisa y aplica los fixes automáticos disponibles"""
    _run_scan(root, stage, apply_fixes=True)


@app.command()
def deploy(
    environment: str = typer.Argument(..., help="Environment a desplegar (p. ej. staging, prod)"),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Raíz del repo"),
    repos: List[Path] = typer.Option([], "--repo", help="Otros repos que comparten servidor"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Muestra el plan sin ejecutar nada"),
    strict: bool = typer.Option(False, "--strict", help="Puertos en colisión son error"),
    settle: float = typer.Option(10.0, "--settle", help="Segundos antes del primer health check"),
    health_timeout: float = typer.Option(120.0, "--health-timeout", help="Timeout del health check"),
):
    """
    Despliega un environment del repo

    Ejemplos:
        keel deploy staging
        keel deploy prod --repo ../api --repo ../web
    """
    root = _project_root(root)
    _load_env(root)
    context = _context()
    registry = build_registry()

    def topology_source():
        return [load(root)] + load_many(repos)

    try:
        spec = load(root)
        specs = topology_source()
        topology = merge(specs, strict=strict)

        if dry_run:
            _show_plan(registry, spec, environment, context, topology)
            return

        _handle_signals(context)
        orchestrator = DeployOrchestrator(
            registry,
            RemoteGateway(context, console=console),
            render_outputs,
            root_dir=root,
            topology_source=topology_source,
            health=HealthMonitor(settle_delay=settle, timeout=health_timeout),
            console=console,
            strict_ports=strict,
        )
        result = orchestrator.deploy(spec, environment)
    except KeelError as e:
        _fail(e)

    console.print()
    display_deploy_result(result, console)
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def undeploy(
    environment: str = typer.Argument(..., help="Environment a retirar"),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Raíz del repo"),
    repos: List[Path] = typer.Option([], "--repo", help="Otros repos que comparten servidor"),
    strict: bool = typer.Option(False, "--strict", help="Puertos en colisión son error"),
):
    """
    Retira un environment de su servidor (contenedor, compose y ruteo nginx)

    El keel.yml no cambia: un deploy posterior del repo vuelve a incluirlo.
    """
    root = _project_root(root)
    _load_env(root)
    context = _context()

    try:
        spec = load(root)
        orchestrator = DeployOrchestrator(
            build_registry(),
            RemoteGateway(context, console=console),
            render_outputs,
            root_dir=root,
            topology_source=lambda: [spec] + load_many(repos),
            console=console,
            strict_ports=strict,
        )
        remaining = orchestrator.undeploy(spec, environment)
    except KeelError as e:
        _fail(e)

    display_topology(remaining, console)


def _show_plan(registry, spec, environment, context, topology) -> None:
    root = spec.root_dir or Path(".")
    spec.environment(environment)
    server = registry.resolve(PluginCategory.SERVER, root, spec, environment)()
    pipeline = registry.resolve(PluginCategory.PIPELINE, root, spec, environment)
    framework = registry.resolve_optional(PluginCategory.FRAMEWORK, root, spec, environment)
    target = server.target_for(spec, environment, context)
    service = topology.service(spec.name, environment)

    table = Table(show_header=False, box=None)
    table.add_column("Campo", style="cyan", width=14)
    table.add_column("Valor", style="white")
    table.add_row("Servidor", f"{server.name} ({server.arch})")
    table.add_row("Pipeline", pipeline.name)
    table.add_row("Framework", framework.name if framework else "[dim]ninguno[/dim]")
    table.add_row("Target", target.label)
    if service:
        table.add_row("Servicio", f"{service.key} → {service.domain}:{service.port}")
        for path in render_outputs(topology, service.target):
            table.add_row("Escribe", f"~/.keel/{path}")
    console.print(Panel(table, title=f"Plan: {spec.name}/{environment} [dim](dry-run)[/dim]", border_style="cyan"))
    display_topology(topology, console)


@app.command()
def topology(
    repos: List[Path] = typer.Argument(..., help="Repos a mergear (el orden importa)"),
    strict: bool = typer.Option(False, "--strict", help="Puertos en colisión son error"),
):
    """Muestra la topología combinada de varios repos"""
    try:
        result = merge(load_many(repos), strict=strict)
    except KeelError as e:
        _fail(e)
    display_topology(result, console)


@app.command()
def render(
    repos: List[Path] = typer.Argument(..., help="Repos a mergear (el orden importa)"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Target (host); por defecto todos"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Directorio de salida"),
    strict: bool = typer.Option(False, "--strict", help="Puertos en colisión son error"),
):
    """Genera docker-compose.yml y nginx.conf por target"""
    try:
        result = merge(load_many(repos), strict=strict)
    except KeelError as e:
        _fail(e)

    keys = [target] if target else [ref.key for ref in result.targets]
    for key in keys:
        if result.target(key) is None:
            console.print(f"[red]✘ Target desconocido: {key}[/red]")
            raise typer.Exit(code=1)
        for relative, content in render_outputs(result, key).items():
            if output is None:
                console.print(f"[bold cyan]# {key}: {relative}[/bold cyan]")
                console.print(content, markup=False, highlight=False)
                continue
            path = output / key / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
            console.print(f"[green]✔[/green] {path}")


@secrets_app.command("check")
def secrets_check(
    root: Path = typer.Option(Path("."), "--root", "-r", help="Raíz del repo"),
):
    """Lista qué secretos requeridos existen en el store"""
    root = _project_root(root)
    _load_env(root)
    context = _context()
    try:
        spec = load(root, allow_placeholders=True)
        pipeline = build_registry().resolve(PluginCategory.PIPELINE, root, spec)()
        store = store_for(spec, root, context)
        if not store.exists():
            console.print(f"[yellow]⚠️ El secret store '{store.name}' no existe; usa keel fix --stage secrets[/yellow]")
            raise typer.Exit(code=1)
        check = store.check_secrets(pipeline.required_secrets(spec))
    except KeelError as e:
        _fail(e)

    table = Table(title=f"Secretos ({store.name})", show_header=True, header_style="bold cyan")
    table.add_column("Nombre", style="cyan")
    table.add_column("Estado")
    for name in check.present:
        table.add_row(name, "[green]✔ presente[/green]")
    for name in check.missing:
        table.add_row(name, "[yellow]⚠ falta[/yellow]")
    console.print(table)
    if check.missing:
        console.print("[dim]Sube los faltantes con: keel secrets set NOMBRE[/dim]")


@secrets_app.command("set")
def secrets_set(
    name: str = typer.Argument(..., help="Nombre del secreto"),
    value: Optional[str] = typer.Option(None, "--value", help="Valor (si se omite, se pide oculto)"),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Raíz del repo"),
):
    """Sube (o reemplaza) un secreto en el store configurado"""
    root = _project_root(root)
    _load_env(root)
    context = _context()
    if value is None:
        value = typer.prompt(name, hide_input=True)
    try:
        spec = load(root, allow_placeholders=True)
        store = store_for(spec, root, context)
        ok = store.upload_secret(name, value)
    except KeelError as e:
        _fail(e)

    if not ok:
        console.print(f"[red]✘ El store '{store.name}' rechazó {name}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✔[/green] {name} guardado en {store.name}")


@app.command()
def version():
    """Muestra la versión de keel"""
    console.print(Panel.fit(
        "[bold cyan]keel[/bold cyan]\n"
        "[dim]Orquestador de deploys multi-repo[/dim]\n\n"
        f"[bold]Versión:[/bold] {__version__}\n"
        f"[bold]Estado:[/bold] {state_root(os.environ)}",
        border_style="cyan"
    ))


def main():
    app()


if __name__ == "__main__":
    main()
