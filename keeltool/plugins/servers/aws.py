"""
Proveedor cloud AWS: instancias EC2 con Amazon Linux (dnf + systemd).
Se detecta por server: aws o por declarar 'region' en el environment.
"""

from typing import List

from keel.core.plugins.contracts import ServerPlugin
from keel.core.remote.gateway import RemoteGateway
from keel.core.remote.target import RemoteTarget
from keel.core.scanfix.base import Fix, Severity
from keel.core.spec.models import EnvironmentConfig
from keel.core.spec.stages import DEPLOY_STAGES, Stage, environments_for_stage, stage_of

from keeltool.fixes import commands_for, server_tool_fixes, tool_table


class AwsServer(ServerPlugin):
    id = "aws"
    name = "AWS EC2"
    os = "amazon-linux"
    package_manager = "dnf"
    service_manager = "systemd"
    arch = "linux/amd64"
    tools = tool_table("amazon-linux")
    baseline_tools = ("git", "docker")

    @classmethod
    def handles(cls, environment: str, env: EnvironmentConfig) -> bool:
        if stage_of(environment) == Stage.DEV:
            return False
        if env.server:
            return env.server.lower() in ("aws", "ec2")
        return env.region is not None

    def _uses_stage(self, spec, stage: Stage) -> bool:
        return any(
            env.routable and self.handles(name, env)
            for name, env in environments_for_stage(spec, stage)
        )

    def fixes(self, gateway: RemoteGateway) -> List[Fix]:
        fixes = server_tool_fixes(self, gateway, tools=("docker", "git", "node"))
        local = RemoteTarget.local_host()
        cli = commands_for(gateway.context.local_os, "aws")

        for stage in DEPLOY_STAGES:
            def cli_scan(spec, root_dir, _stage=stage):
                return self._uses_stage(spec, _stage) and not gateway.probe(local, cli.check)

            def credentials_scan(spec, root_dir, _stage=stage):
                if not self._uses_stage(spec, _stage) or not gateway.probe(local, cli.check):
                    return False
                return not gateway.probe(local, "aws sts get-caller-identity", timeout=15)

            fixes.append(Fix(
                id=f"aws-cli-missing-{stage.value}",
                stage=stage,
                severity=Severity.WARNING,
                description="AWS CLI no instalado localmente",
                scan=cli_scan,
                manual_fix=cli.manual_fix,
            ))
            fixes.append(Fix(
                id=f"aws-credentials-missing-{stage.value}",
                stage=stage,
                severity=Severity.WARNING,
                description="AWS CLI sin credenciales válidas",
                scan=credentials_scan,
                manual_fix="Configura credenciales: aws configure (o AWS_PROFILE)",
            ))
        return fixes
