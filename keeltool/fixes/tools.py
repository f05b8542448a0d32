"""
Factories de Fixes para herramientas base (docker, git, node...).

Los de servidor aplican solo a environments de la etapa que el plugin maneja y que tienen
dominio real: sin dominio (o con dominio de ejemplo) no hay nada que revisar.
"""

from typing import Iterable, List

from keel.core.plugins.contracts import ServerPlugin
from keel.core.remote.gateway import RemoteGateway
from keel.core.remote.target import RemoteTarget
from keel.core.scanfix.base import Fix, Severity
from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import DEPLOY_STAGES, Stage, environments_for_stage

from .commands import commands_for


def stage_targets(server: ServerPlugin, gateway: RemoteGateway, spec: EnvironmentSpec, stage: Stage) -> List[RemoteTarget]:
    """Targets de la etapa que maneja este server plugin (solo environments ruteables)."""
    targets: List[RemoteTarget] = []
    for name, env in environments_for_stage(spec, stage):
        if not env.routable or not server.applies_to(spec, name):
            continue
        target = server.target_for(spec, name, gateway.context)
        if target not in targets:
            targets.append(target)
    return targets


def tool_installed_fix(
    server: ServerPlugin,
    gateway: RemoteGateway,
    tool: str,
    stage: Stage,
    severity: Severity = Severity.CRITICAL,
) -> Fix:
    cmds = commands_for(server.os, tool)

    def scan(spec, root_dir):
        return any(not gateway.probe(t, cmds.check) for t in stage_targets(server, gateway, spec, stage))

    def fix(spec, root_dir):
        ok = True
        for target in stage_targets(server, gateway, spec, stage):
            ok = gateway.ensure_installed(target, cmds.check, cmds.install, name=tool) and ok
        return ok

    return Fix(
        id=f"{server.id}-{tool}-missing-{stage.value}",
        stage=stage,
        severity=severity,
        description=f"{tool} no está instalado en el servidor de {stage.value}",
        scan=scan,
        fix=fix,
        manual_fix=cmds.manual_fix,
        os=server.os,
    )


def tool_running_fix(server: ServerPlugin, gateway: RemoteGateway, tool: str, stage: Stage) -> Fix:
    """Instalado pero detenido. Si no está instalado, lo reporta el fix de instalación."""
    cmds = commands_for(server.os, tool)

    def _stopped(target):
        return gateway.probe(target, cmds.check) and not gateway.probe(target, cmds.running)

    def scan(spec, root_dir):
        return any(_stopped(t) for t in stage_targets(server, gateway, spec, stage))

    def fix(spec, root_dir):
        ok = True
        for target in stage_targets(server, gateway, spec, stage):
            if _stopped(target):
                gateway.exec(target, cmds.start)
                ok = gateway.probe(target, cmds.running, timeout=30) and ok
        return ok

    return Fix(
        id=f"{server.id}-{tool}-stopped-{stage.value}",
        stage=stage,
        severity=Severity.CRITICAL,
        description=f"{tool} está instalado pero no corre en el servidor de {stage.value}",
        scan=scan,
        fix=fix,
        manual_fix=cmds.start or "",
        os=server.os,
    )


def server_tool_fixes(
    server: ServerPlugin,
    gateway: RemoteGateway,
    tools: Iterable[str] = ("docker", "git"),
    stages: Iterable[Stage] = DEPLOY_STAGES,
) -> List[Fix]:
    fixes: List[Fix] = []
    for stage in stages:
        for tool in tools:
            fixes.append(tool_installed_fix(server, gateway, tool, stage))
            if commands_for(server.os, tool).running:
                fixes.append(tool_running_fix(server, gateway, tool, stage))
    return fixes


def local_tool_fixes(gateway: RemoteGateway, tools: Iterable[str], stage: Stage = Stage.DEV) -> List[Fix]:
    """Herramientas en la máquina local (etapa dev), con comandos del OS local."""
    os = gateway.context.local_os
    local = RemoteTarget.local_host()
    fixes: List[Fix] = []
    for tool in tools:
        cmds = commands_for(os, tool)

        def scan(spec, root_dir, _cmds=cmds):
            return not gateway.probe(local, _cmds.check)

        fixes.append(Fix(
            id=f"{tool}-missing-{stage.value}",
            stage=stage,
            severity=Severity.WARNING,
            description=f"{tool} no está instalado localmente",
            scan=scan,
            manual_fix=cmds.manual_fix,
            os=os,
        ))
    return fixes
