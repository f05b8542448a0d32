"""
Orquestador de deploy: secuencia build, backup, migración, rollout y health check,
con rollback (restore del backup) cuando falla la migración o el health check.

Las fases son estrictamente secuenciales dentro de un deploy. No hay reintentos
automáticos: reintentar es re-invocar deploy().
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from rich.console import Console

from keel.core.errors import (
    BackupFailed,
    ConfigInvalid,
    DeployError,
    HealthCheckFailed,
    KeelError,
    MigrationFailed,
    RemoteExecError,
)
from keel.core.deploy.health import HealthMonitor
from keel.core.deploy.locks import TargetLocks
from keel.core.deploy.state import (
    ROLLBACK_PHASES,
    DeployPhase,
    DeploymentAttempt,
    DeployResult,
)
from keel.core.plugins.contracts import (
    BuildArtifact,
    FrameworkPlugin,
    PipelinePlugin,
    PluginCategory,
    ServerPlugin,
)
from keel.core.plugins.registry import PluginRegistry
from keel.core.remote.gateway import RemoteGateway
from keel.core.remote.target import RemoteTarget
from keel.core.spec.models import EnvironmentSpec
from keel.core.topology.merger import merge
from keel.core.topology.models import Topology


# renderer(topology, target_key) -> {ruta en el target: contenido}
Renderer = Callable[[Topology, str], Dict[str, str]]
# Devuelve las specs de todos los repos que comparten targets (releídas en cada rollout)
TopologySource = Callable[[], Sequence[EnvironmentSpec]]

# Fases que no se inician si el proceso recibió una señal de apagado
CANCELLABLE_PHASES = frozenset({
    DeployPhase.BUILDING,
    DeployPhase.BACKING_UP,
    DeployPhase.MIGRATING,
    DeployPhase.ROLLING_OUT,
    DeployPhase.HEALTH_CHECKING,
})


@dataclass(frozen=True)
class DeployRequest:
    spec: EnvironmentSpec
    environment: str


@dataclass
class _Run:
    """Colaboradores resueltos y datos parciales de un intento."""
    root_dir: Path
    server: Optional[ServerPlugin] = None
    pipeline: Optional[PipelinePlugin] = None
    framework: Optional[FrameworkPlugin] = None
    target: Optional[RemoteTarget] = None
    artifact: Optional[BuildArtifact] = None
    restored: Optional[bool] = None
    restore_error: Optional[str] = None
    incident: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


class DeployOrchestrator:
    """Máquina de estados de deploy para un par (repo, environment)."""

    def __init__(
        self,
        registry: PluginRegistry,
        gateway: RemoteGateway,
        renderer: Renderer,
        root_dir: Optional[Path] = None,
        topology_source: Optional[TopologySource] = None,
        locks: Optional[TargetLocks] = None,
        health: Optional[HealthMonitor] = None,
        console: Optional[Console] = None,
        strict_ports: bool = False,
    ):
        self.registry = registry
        self.gateway = gateway
        self.context = gateway.context
        self.renderer = renderer
        self.root_dir = Path(root_dir) if root_dir else None
        self.topology_source = topology_source
        self.locks = locks or TargetLocks()
        self.health = health or HealthMonitor()
        self.console = console
        self.strict_ports = strict_ports

    def _print(self, message: str) -> None:
        if self.console:
            self.console.print(message)

    def _phase(self, attempt: DeploymentAttempt, phase: DeployPhase) -> None:
        if phase in CANCELLABLE_PHASES and self.context.cancelled():
            raise DeployError(f"Deploy cancelado por señal de apagado antes de {phase.value}")
        attempt.advance(phase)
        self._print(f"[cyan]▶ {phase.value}[/cyan] [dim]{attempt.repo}/{attempt.environment}[/dim]")

    def deploy(self, spec: EnvironmentSpec, environment: str) -> DeployResult:
        """
        Despliega un environment de un repo.

        Returns:
            DeployResult; nunca lanza por fallos de fase (quedan en result.error)
        """
        attempt = DeploymentAttempt(repo=spec.name, environment=environment)
        run = _Run(root_dir=self.root_dir or spec.root_dir or Path("."))
        self._print(f"[bold cyan]Deploy {spec.name}/{environment}[/bold cyan]")

        try:
            self._execute(attempt, run, spec, environment)
        except Exception as exc:
            error = self._as_deploy_error(exc, attempt)
            attempt.error = error
            self._print(f"[red]✘ {error}[/red]")
            if attempt.phase in ROLLBACK_PHASES:
                self._phase(attempt, DeployPhase.ROLLING_BACK)
                self._rollback(attempt, run)
            self._phase(attempt, DeployPhase.FAILED)
        else:
            if attempt.backup is not None:
                self._discard_backup(attempt, run)

        return DeployResult(
            repo=spec.name,
            environment=environment,
            success=attempt.phase == DeployPhase.SUCCEEDED,
            phase=attempt.phase,
            history=list(attempt.history),
            error=attempt.error,
            backup=attempt.backup if attempt.phase != DeployPhase.SUCCEEDED else None,
            restored=run.restored,
            restore_error=run.restore_error,
            incident=run.incident,
            artifact=run.artifact,
            warnings=run.warnings,
        )

    def _execute(self, attempt: DeploymentAttempt, run: _Run, spec: EnvironmentSpec, environment: str) -> None:
        # Preparing
        spec.environment(environment)
        root = run.root_dir
        run.server = self.registry.resolve(PluginCategory.SERVER, root, spec, environment)()
        run.pipeline = self.registry.resolve(PluginCategory.PIPELINE, root, spec, environment)()
        framework_cls = self.registry.resolve_optional(PluginCategory.FRAMEWORK, root, spec, environment)
        run.framework = framework_cls() if framework_cls else None
        run.target = run.server.target_for(spec, environment, self.context)
        run.server.ensure_ready(self.gateway, run.target, spec)

        self._phase(attempt, DeployPhase.BUILDING)
        run.artifact = run.pipeline.build(self.gateway, run.target, spec, environment, run.server.arch)

        if self._has_pending_changes(run, spec, environment):
            self._phase(attempt, DeployPhase.BACKING_UP)
            try:
                attempt.backup = run.framework.backup(self.gateway, run.target, spec, environment)
            except Exception as e:
                raise BackupFailed(f"No se pudo crear el backup: {e}") from e
            self._print(f"  [green]✔[/green] Backup en {attempt.backup.path}")

            self._phase(attempt, DeployPhase.MIGRATING)
            try:
                run.framework.migrate(self.gateway, run.target, spec, environment)
            except Exception as e:
                raise MigrationFailed(f"La migración falló: {e}") from e
        else:
            self._print("  [dim]Sin migraciones pendientes; se omite backup/migración[/dim]")

        self._phase(attempt, DeployPhase.ROLLING_OUT)
        with self.locks.hold(run.target.name):
            topology = merge(self._specs_for(spec), strict=self.strict_ports)
            service = topology.service(spec.name, environment)
            if service is None:
                raise DeployError("El environment no tiene un dominio ruteable en la topología")
            outputs = self.renderer(topology, service.target)
            run.pipeline.rollout(self.gateway, run.target, spec, service, outputs)

        self._phase(attempt, DeployPhase.HEALTH_CHECKING)
        try:
            state = self.health.wait_healthy(self.gateway, run.target, service.key, self.context.shutdown)
        except RemoteExecError as e:
            raise HealthCheckFailed(str(e)) from e
        self._print(f"  [green]✔[/green] {service.key}: {state.describe()}")

        self._phase(attempt, DeployPhase.SUCCEEDED)

    def _discard_backup(self, attempt: DeploymentAttempt, run: _Run) -> None:
        """Tras el éxito el backup sobra; si no se puede borrar queda como advertencia."""
        try:
            run.framework.discard_backup(self.gateway, run.target, attempt.backup)
            attempt.backup = None
        except Exception as e:
            run.warnings.append(f"No se pudo borrar el backup {attempt.backup.path}: {e}")
            self._print(f"[yellow]⚠️ {run.warnings[-1]}[/yellow]")

    def undeploy(self, spec: EnvironmentSpec, environment: str) -> Topology:
        """
        Retira un environment de su target: detiene el contenedor y re-renderiza el
        compose y el nginx.conf del target sin ese servicio, bajo el lock del target.

        Returns:
            Topology escrita en el target (los demás servicios conservan sus puertos)

        Raises:
            ConfigInvalid: environment inexistente
            PluginNotFound: ningún server/pipeline aplica
            DeployError: el environment no tiene dominio ruteable
            RemoteExecError: fallo al detener el contenedor o recargar el ruteo
        """
        spec.environment(environment)
        root = self.root_dir or spec.root_dir or Path(".")
        server = self.registry.resolve(PluginCategory.SERVER, root, spec, environment)()
        pipeline = self.registry.resolve(PluginCategory.PIPELINE, root, spec, environment)()
        target = server.target_for(spec, environment, self.context)

        with self.locks.hold(target.name):
            topology = merge(self._specs_for(spec), strict=self.strict_ports)
            service = topology.service(spec.name, environment)
            if service is None:
                raise DeployError(
                    "El environment no tiene un dominio ruteable en la topología",
                    repo=spec.name,
                    environment=environment,
                )
            remaining = topology.without(service.key)
            server.undeploy(self.gateway, target, service.key)
            pipeline.reload(self.gateway, target, self.renderer(remaining, service.target))

        self._print(f"[green]✔[/green] {service.key} retirado de {target.label}")
        return remaining

    def _has_pending_changes(self, run: _Run, spec: EnvironmentSpec, environment: str) -> bool:
        framework = run.framework
        if framework is None or not framework.has_data_store(spec, environment, run.root_dir):
            return False
        return framework.pending_migrations(self.gateway, run.target, spec, environment)

    def _specs_for(self, spec: EnvironmentSpec) -> List[EnvironmentSpec]:
        """Specs a mergear en el rollout; el repo que se despliega usa la spec actual."""
        if self.topology_source is None:
            return [spec]
        specs = [spec if s.name == spec.name else s for s in self.topology_source()]
        if not any(s.name == spec.name for s in specs):
            specs.append(spec)
        return specs

    def _rollback(self, attempt: DeploymentAttempt, run: _Run) -> None:
        """Restaura el backup si se tomó. Un restore fallido es un incidente, nunca se oculta."""
        if attempt.backup is None or run.framework is None:
            self._print("  [dim]Sin backup que restaurar[/dim]")
            return
        try:
            run.framework.restore(self.gateway, run.target, attempt.backup)
            run.restored = True
            self._print(f"  [green]✔[/green] Restaurado desde {attempt.backup.path}")
        except Exception as e:
            run.restored = False
            run.restore_error = str(e)
            run.incident = "critical"
            self._print(
                f"[bold red]✘ INCIDENTE: el restore falló ({e}). "
                f"Backup preservado en {attempt.backup.path}; requiere recuperación manual[/bold red]"
            )

    def _as_deploy_error(self, exc: Exception, attempt: DeploymentAttempt) -> DeployError:
        if isinstance(exc, DeployError):
            error = exc
        elif isinstance(exc, KeelError):
            error = DeployError(str(exc))
            error.__cause__ = exc
        else:
            error = DeployError(f"{type(exc).__name__}: {exc}")
            error.__cause__ = exc
        return error.with_context(attempt.repo, attempt.environment, attempt.phase.value)

    def deploy_many(self, requests: Sequence[DeployRequest], max_workers: int = 4) -> List[DeployResult]:
        """
        Deploys de pares (repo, environment) distintos en paralelo. RollingOut sigue
        serializado por target. Resultados en el orden de entrada.

        Raises:
            ConfigInvalid: si un mismo par aparece dos veces
        """
        seen = set()
        for request in requests:
            pair = (request.spec.name, request.environment)
            if pair in seen:
                raise ConfigInvalid(f"Deploy duplicado para {pair[0]}/{pair[1]}")
            seen.add(pair)

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            futures = [pool.submit(self.deploy, r.spec, r.environment) for r in requests]
            return [f.result() for f in futures]
