"""
Pipeline Docker Compose.

Construye la imagen en el target (para su arquitectura), escribe el compose y el
nginx.conf renderizados desde la topología en ~/.keel/ y reemplaza solo el
contenedor del servicio desplegado.
"""

from pathlib import Path
from typing import Dict, List

from keel.core.plugins.contracts import (
    BuildArtifact,
    PipelinePlugin,
    Reachability,
    Via,
    workdir_for,
)
from keel.core.remote.gateway import RemoteGateway, shell_path
from keel.core.remote.target import RemoteTarget
from keel.core.runtime.context import ExecutionContext
from keel.core.runtime.resolver import remote_path
from keel.core.scanfix.base import Fix
from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import DEPLOY_STAGES, Stage, environments_for_stage
from keel.core.topology.models import ServiceEntry

from keeltool.fixes import (
    domain_placeholder_fix,
    find_dockerfile,
    gitignore_env_fix,
    local_tool_fixes,
    missing_dockerfile_fix,
    missing_env_file_fix,
    placeholder_values_fix,
    required_secrets_fix,
    secrets_store_fix,
)
from keeltool.render import COMPOSE_FILE
from keeltool.secrets import GitHubSecretStore, store_for


BUILD_TIMEOUT = 1800
CLOUD_SERVERS = ("aws", "ec2")


class DockerPipeline(PipelinePlugin):
    id = "docker"
    name = "Docker Compose"

    @classmethod
    def should_load(cls, root_dir: Path, spec: EnvironmentSpec) -> bool:
        if spec.pipeline and spec.pipeline != cls.id:
            return False
        return any(env.domain for env in spec.environments.values())

    @classmethod
    def applies_to(cls, spec: EnvironmentSpec, environment: str) -> bool:
        env = spec.environments.get(environment)
        return env is not None and env.pipeline in (None, cls.id)

    def can_reach(self, stage: Stage, spec: EnvironmentSpec, context: ExecutionContext) -> Reachability:
        if stage == Stage.DEV:
            return Reachability.ok(Via.LOCAL)

        if stage == Stage.SECRETS:
            store = store_for(spec, spec.root_dir or Path("."), context)
            if isinstance(store, GitHubSecretStore):
                if not store.exists():
                    return Reachability.unreachable("GITHUB_TOKEN no definido para el store de GitHub")
                return Reachability.ok(Via.API)
            return Reachability.ok(Via.LOCAL)

        envs = [env for _, env in environments_for_stage(spec, stage) if env.routable]
        if not envs:
            return Reachability.unreachable(f"Sin environments de {stage.value} con dominio")

        if all(env.ssh_host in context.on_target_hosts for env in envs):
            return Reachability.ok(Via.LOCAL)
        if context.has_ssh_credentials(stage.value) or all(env.ssh_key for env in envs):
            return Reachability.ok(Via.SSH)
        cloud = any((env.server or "").lower() in CLOUD_SERVERS or env.region for env in envs)
        if cloud and (context.env("AWS_ACCESS_KEY_ID") or context.env("AWS_PROFILE")):
            return Reachability.ok(Via.API)
        if context.ci:
            return Reachability.ok(Via.WORKFLOW)
        return Reachability.unreachable(
            f"Sin credenciales para {stage.value}: ~/.ssh/{stage.value}_deploy o {stage.value.upper()}_SSH"
        )

    def build(
        self,
        gateway: RemoteGateway,
        target: RemoteTarget,
        spec: EnvironmentSpec,
        environment: str,
        arch: str,
    ) -> BuildArtifact:
        root = spec.root_dir or Path(".")
        dockerfile = find_dockerfile(root, spec, environment) or "Dockerfile"
        workdir = shell_path(workdir_for(spec, target))
        image = f"{spec.name}:{environment}"
        gateway.exec(
            target,
            f"docker build --platform {arch} -t {image} -f {workdir}/{dockerfile} {workdir}",
            timeout=BUILD_TIMEOUT,
        )
        return BuildArtifact(image=image, platform=arch, target=target.name)

    def rollout(
        self,
        gateway: RemoteGateway,
        target: RemoteTarget,
        spec: EnvironmentSpec,
        service: ServiceEntry,
        outputs: Dict[str, str],
    ) -> None:
        self._write_outputs(gateway, target, outputs)
        compose = shell_path(remote_path(COMPOSE_FILE))
        gateway.exec(target, f"docker compose -f {compose} up -d --no-deps {service.key}")
        self._reload_routing(gateway, target)

    def reload(self, gateway: RemoteGateway, target: RemoteTarget, outputs: Dict[str, str]) -> None:
        self._write_outputs(gateway, target, outputs)
        self._reload_routing(gateway, target)

    def _write_outputs(self, gateway: RemoteGateway, target: RemoteTarget, outputs: Dict[str, str]) -> None:
        for relative, content in outputs.items():
            gateway.put_file(target, remote_path(relative), content)

    def _reload_routing(self, gateway: RemoteGateway, target: RemoteTarget) -> None:
        compose = shell_path(remote_path(COMPOSE_FILE))
        gateway.exec(target, f"docker compose -f {compose} up -d nginx")
        gateway.exec(target, f"docker compose -f {compose} exec -T nginx nginx -s reload")

    def required_secrets(self, spec: EnvironmentSpec) -> List[str]:
        names: List[str] = []
        for stage in DEPLOY_STAGES:
            if any(env.routable for _, env in environments_for_stage(spec, stage)):
                names.append(f"{stage.value.upper()}_SSH")
        for name in (spec.secrets or {}).get("required", []) or []:
            if name not in names:
                names.append(name)
        return names

    def fixes(self, gateway: RemoteGateway) -> List[Fix]:
        context = gateway.context
        fixes = [
            placeholder_values_fix(),
            missing_dockerfile_fix(),
            gitignore_env_fix(),
            *local_tool_fixes(gateway, ("docker", "git")),
            secrets_store_fix(context),
            required_secrets_fix(context, self.required_secrets),
        ]
        for stage in DEPLOY_STAGES:
            fixes.append(missing_env_file_fix(stage))
            fixes.append(domain_placeholder_fix(stage))
        return fixes
