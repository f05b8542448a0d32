"""
Motor de scan/fix por etapas.

Junta los Fixes de todos los plugins que aplican al repo, filtra por etapa y OS,
corre cada scan y, si se pide, su fix. Un Fix roto nunca aborta el resto de la etapa.
"""

from pathlib import Path
from typing import Iterable, List, Optional, Set

from rich.console import Console

from keel.core.errors import SecretMissing
from keel.core.plugins.contracts import Plugin, PluginCategory, Reachability
from keel.core.plugins.registry import PluginRegistry
from keel.core.remote.gateway import RemoteGateway
from keel.core.scanfix.base import Fix, Severity
from keel.core.scanfix.envvars import env_var_fixes
from keel.core.scanfix.report import FixOutcome, StageReport
from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import DEPLOY_STAGES, Stage, environments_for_stage


class ScanFixEngine:
    """Secuencia los Fixes de una etapa y acumula el reporte."""

    def __init__(
        self,
        registry: PluginRegistry,
        gateway: RemoteGateway,
        console: Optional[Console] = None,
    ):
        self.registry = registry
        self.gateway = gateway
        self.context = gateway.context
        self.console = console

    def resolved_plugins(self, spec: EnvironmentSpec, root_dir: Path) -> List[Plugin]:
        """Instancias de todos los plugins que aplican al repo, por categoría y registro."""
        plugins: List[Plugin] = []
        for category in PluginCategory:
            plugins.extend(cls() for cls in self.registry.resolve_all(category, root_dir, spec))
        return plugins

    def target_os(self, stage: Stage, spec: EnvironmentSpec, root_dir: Path) -> Set[str]:
        """
        OS contra el que se filtran los Fixes con tag 'os'.
        Etapas desplegables: el de los servidores de sus environments; resto: el host local.
        """
        if stage not in DEPLOY_STAGES:
            return {self.context.local_os}
        tags = set()
        for env_name, _ in environments_for_stage(spec, stage):
            server_cls = self.registry.resolve_optional(PluginCategory.SERVER, root_dir, spec, env_name)
            if server_cls is not None:
                tags.add(server_cls.os)
        return tags

    def collect(self, stage: Stage, spec: EnvironmentSpec, root_dir: Path) -> List[Fix]:
        """Fixes aplicables a la etapa, en orden de registro; el primer id gana."""
        os_tags = self.target_os(stage, spec, root_dir)
        fixes: List[Fix] = []
        seen = set()
        for plugin in self.resolved_plugins(spec, root_dir):
            candidates = list(plugin.fixes(self.gateway))
            candidates.extend(env_var_fixes(plugin.id, plugin.required_env_vars))
            for fix in candidates:
                if fix.stage != stage or not fix.matches_os(os_tags) or fix.id in seen:
                    continue
                seen.add(fix.id)
                fixes.append(fix)
        return fixes

    def reachability(self, stage: Stage, spec: EnvironmentSpec, root_dir: Path) -> Optional[Reachability]:
        """Pregunta al pipeline resuelto; None si no hay pipeline para el repo."""
        pipeline_cls = self.registry.resolve_optional(PluginCategory.PIPELINE, root_dir, spec)
        if pipeline_cls is None:
            return None
        return pipeline_cls().can_reach(stage, spec, self.context)

    def _print(self, message: str) -> None:
        if self.console:
            self.console.print(message)

    def run_fix(self, fix: Fix, spec: EnvironmentSpec, root_dir: Path, apply_fixes: bool) -> FixOutcome:
        """Corre scan (y fix si corresponde) de un solo Fix, conteniendo cualquier error."""
        outcome = FixOutcome(
            fix_id=fix.id,
            severity=fix.severity,
            description=fix.description,
            problem_exists=False,
            auto_fixable=fix.is_auto_fixable,
        )
        try:
            outcome.problem_exists = bool(fix.scan(spec, root_dir))
        except SecretMissing as e:
            outcome.problem_exists = True
            outcome.severity = Severity.WARNING
            outcome.fix_applied = False
            outcome.manual_fix = fix.manual_fix or None
            outcome.error = str(e)
            self._print(f"  [yellow]⚠️ {fix.id}: {e}[/yellow]")
            return outcome
        except Exception as e:
            outcome.problem_exists = True
            outcome.fix_applied = False
            outcome.manual_fix = fix.manual_fix or None
            outcome.error = f"scan falló: {e}"
            self._print(f"  [red]✘ {fix.id}: scan falló: {e}[/red]")
            return outcome

        if not outcome.problem_exists:
            self._print(f"  [green]✔[/green] [dim]{fix.id}[/dim]")
            return outcome

        if fix.fix is None:
            outcome.manual_fix = fix.manual_fix or None
            self._print(f"  [yellow]⚠️ {fix.id}: {fix.description}[/yellow]")
            return outcome

        if not apply_fixes:
            self._print(f"  [yellow]⚠️ {fix.id}: {fix.description} [dim](auto-fix disponible)[/dim][/yellow]")
            return outcome

        try:
            outcome.fix_applied = bool(fix.fix(spec, root_dir))
        except Exception as e:
            outcome.fix_applied = False
            outcome.manual_fix = fix.manual_fix or None
            outcome.error = f"fix falló: {e}"
            self._print(f"  [red]✘ {fix.id}: fix falló: {e}[/red]")
            return outcome

        if outcome.fix_applied:
            self._print(f"  [green]✔ {fix.id}: corregido[/green]")
        else:
            outcome.manual_fix = fix.manual_fix or None
            self._print(f"  [red]✘ {fix.id}: no se pudo corregir[/red]")
        return outcome

    def run_stage(
        self,
        stage: Stage,
        spec: EnvironmentSpec,
        root_dir: Path,
        apply_fixes: bool = False,
        check_reachability: bool = True,
    ) -> StageReport:
        """
        Corre todos los Fixes de la etapa.

        Args:
            stage: Etapa a evaluar
            spec: Spec del repo (puede contener placeholders)
            root_dir: Raíz del repo
            apply_fixes: Aplicar fixes automáticos cuando existan
            check_reachability: Saltar la etapa si el pipeline no la alcanza

        Returns:
            StageReport con un outcome por Fix, en orden
        """
        root_dir = Path(root_dir)
        report = StageReport(stage=stage)
        if check_reachability:
            report.reachability = self.reachability(stage, spec, root_dir)
            if report.skipped:
                self._print(
                    f"[yellow]⚠️ Etapa {stage.value} no alcanzable: {report.reachability.reason}[/yellow]"
                )
                return report

        self._print(f"[bold cyan]{stage.value.upper()}[/bold cyan]")
        for fix in self.collect(stage, spec, root_dir):
            report.outcomes.append(self.run_fix(fix, spec, root_dir, apply_fixes))
        return report

    def run_stages(
        self,
        stages: Iterable[Stage],
        spec: EnvironmentSpec,
        root_dir: Path,
        apply_fixes: bool = False,
    ) -> List[StageReport]:
        return [self.run_stage(stage, spec, root_dir, apply_fixes=apply_fixes) for stage in stages]
