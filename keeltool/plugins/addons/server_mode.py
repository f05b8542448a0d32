"""
Addon "server mode" para hosts macOS: evita que el Mac mini se suspenda.
"""

from pathlib import Path
from typing import List

from keel.core.plugins.contracts import AddonPlugin
from keel.core.remote.gateway import RemoteGateway
from keel.core.scanfix.base import Fix, Severity
from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import DEPLOY_STAGES

from keeltool.fixes import stage_targets
from keeltool.plugins.servers.mac import MacServer


SLEEP_DISABLED = "pmset -g | grep -Eq '^ *sleep +0( |$)'"
DISABLE_SLEEP = "sudo pmset -a sleep 0 disksleep 0"


class ServerModeAddon(AddonPlugin):
    id = "server-mode"
    name = "macOS Server Mode"

    @classmethod
    def should_load(cls, root_dir: Path, spec: EnvironmentSpec) -> bool:
        return MacServer.should_load(root_dir, spec)

    def fixes(self, gateway: RemoteGateway) -> List[Fix]:
        server = MacServer()
        fixes = []
        for stage in DEPLOY_STAGES:
            def scan(spec, root_dir, _stage=stage):
                targets = stage_targets(server, gateway, spec, _stage)
                return any(not gateway.probe(t, SLEEP_DISABLED) for t in targets)

            def fix(spec, root_dir, _stage=stage):
                ok = True
                for target in stage_targets(server, gateway, spec, _stage):
                    gateway.exec(target, DISABLE_SLEEP)
                    ok = gateway.probe(target, SLEEP_DISABLED) and ok
                return ok

            fixes.append(Fix(
                id=f"macos-sleep-enabled-{stage.value}",
                stage=stage,
                severity=Severity.WARNING,
                description="El Mac se suspende y deja de servir tráfico",
                scan=scan,
                fix=fix,
                manual_fix=DISABLE_SLEEP,
                os=server.os,
            ))
        return fixes
