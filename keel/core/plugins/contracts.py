"""
Contratos que deben implementar los plugins (server, pipeline, framework, addon).

El core solo define interfaces; las implementaciones viven en keeltool/plugins/*.
Cada plugin decide por sí mismo si aplica (should_load) mirando la spec completa y
los archivos del proyecto; el registry no conoce detalles de ninguna categoría.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from keel.core.errors import RemoteExecError
from keel.core.remote.gateway import RemoteGateway
from keel.core.remote.target import RemoteTarget
from keel.core.runtime.context import ExecutionContext
from keel.core.runtime.resolver import remote_path
from keel.core.spec.models import EnvironmentConfig, EnvironmentSpec
from keel.core.spec.stages import Stage, stage_of

if TYPE_CHECKING:
    from keel.core.scanfix.base import Fix
    from keel.core.topology.models import ServiceEntry


class PluginCategory(str, Enum):
    SERVER = "server"
    PIPELINE = "pipeline"
    FRAMEWORK = "framework"
    ADDON = "addon"


class Via(str, Enum):
    """Mecanismo por el cual un pipeline alcanza una etapa."""
    LOCAL = "local"
    SSH = "ssh"
    WORKFLOW = "workflow"
    API = "api"


@dataclass(frozen=True)
class Reachability:
    """Si un pipeline puede actuar sobre una etapa desde el contexto actual."""
    reachable: bool
    via: Optional[Via] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, via: Via) -> "Reachability":
        return cls(reachable=True, via=via)

    @classmethod
    def unreachable(cls, reason: str) -> "Reachability":
        return cls(reachable=False, reason=reason)


@dataclass(frozen=True)
class BuildArtifact:
    """Imagen construida para la arquitectura del target."""
    image: str
    platform: str
    target: str


@dataclass(frozen=True)
class BackupHandle:
    """Backup completo del data store tomado antes de migrar."""
    path: str
    target: str
    created_at: str
    # Identificador del data store respaldado (p. ej. la URL de conexión)
    source: Optional[str] = None


def workdir_for(spec: EnvironmentSpec, target: RemoteTarget) -> str:
    """Checkout del repo en el target: el root local o ~/.keel/repos/<repo>."""
    if target.local and spec.root_dir:
        return str(spec.root_dir)
    return remote_path("repos", spec.name)


class Plugin(ABC):
    """Base de todos los plugins. Metadatos estáticos + predicado de capacidad."""

    id: str = ""
    name: str = ""
    category: PluginCategory
    version: str = "1.0.0"
    # Variables que deben existir en el .env de staging/prod
    required_env_vars: Tuple[str, ...] = ()

    @classmethod
    @abstractmethod
    def should_load(cls, root_dir: Path, spec: EnvironmentSpec) -> bool:
        """Predicado puro: ¿aplica este plugin al repo? Sin efectos secundarios."""
        pass

    @classmethod
    def applies_to(cls, spec: EnvironmentSpec, environment: str) -> bool:
        """¿Aplica a un environment concreto? Por defecto, a todos."""
        return True

    def fixes(self, gateway: RemoteGateway) -> List["Fix"]:
        """Catálogo de Fixes del plugin."""
        return []

    def __repr__(self) -> str:
        return f"<{self.category.value}:{self.id}>"


class ServerPlugin(Plugin):
    """Cómo operar un OS/runtime destino."""

    category = PluginCategory.SERVER
    os: str = ""
    package_manager: str = ""
    service_manager: str = ""
    # Plataforma docker para la que se construye la imagen
    arch: str = "linux/amd64"
    # {tool: (check, install)}
    tools: Dict[str, Tuple[str, str]] = {}
    baseline_tools: Tuple[str, ...] = ("git", "docker")
    # Se antepone al PATH de cada comando remoto (p. ej. /opt/homebrew/bin)
    path_prefix: Tuple[str, ...] = ()

    @classmethod
    @abstractmethod
    def handles(cls, environment: str, env: EnvironmentConfig) -> bool:
        """Heurística propia del plugin para un environment."""
        pass

    @classmethod
    def should_load(cls, root_dir: Path, spec: EnvironmentSpec) -> bool:
        return any(cls.handles(name, env) for name, env in spec.environments.items())

    @classmethod
    def applies_to(cls, spec: EnvironmentSpec, environment: str) -> bool:
        env = spec.environments.get(environment)
        return env is not None and cls.handles(environment, env)

    def target_for(self, spec: EnvironmentSpec, environment: str, context: ExecutionContext) -> RemoteTarget:
        """Target del environment; dev siempre es local."""
        env = spec.environment(environment)
        stage = stage_of(environment)
        if stage == Stage.DEV:
            return RemoteTarget.local_host()
        key = Path(env.ssh_key) if env.ssh_key else context.ssh_key_for(stage.value)
        return RemoteTarget(
            name=env.ssh_host,
            host=env.ssh_host,
            user=env.ssh_user,
            key_path=key,
            path_prefix=self.path_prefix,
        )

    def install_command(self, tool: str) -> str:
        return self.tools[tool][1]

    def exec(self, gateway: RemoteGateway, target: RemoteTarget, command: str) -> str:
        """Despacho local/SSH; el gateway decide según el contexto."""
        return gateway.exec(target, command)

    def ensure_package_manager(self, gateway: RemoteGateway, target: RemoteTarget) -> None:
        """El gestor de paquetes es parte del tooling base; se instala solo si el server sabe cómo."""
        manager = self.package_manager
        if not manager:
            return
        if manager in self.tools:
            available = gateway.ensure_installed(target, *self.tools[manager], name=manager)
        else:
            available = gateway.probe(target, f"command -v {manager}")
        if not available:
            raise RemoteExecError(
                target.label, f"command -v {manager}", 1, f"gestor de paquetes {manager} no disponible"
            )

    def ensure_ready(self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec) -> None:
        """
        Deja el target con el tooling base (check-then-install) y el checkout del repo.

        Raises:
            RemoteExecError: si alguna herramienta no queda disponible
        """
        self.ensure_package_manager(gateway, target)
        for tool in self.baseline_tools:
            if tool not in self.tools:
                continue
            install = self.install_command(tool)
            if not gateway.ensure_installed(target, self.tools[tool][0], install, name=tool):
                raise RemoteExecError(target.label, install, None, f"{tool} no disponible tras instalar")

        gateway.exec(target, f"mkdir -p {remote_path('backups')}")

        if spec.git_repo and not target.local:
            workdir = workdir_for(spec, target)
            gateway.ensure_installed(
                target,
                f"test -d {workdir}/.git",
                f"git clone {spec.git_repo} {workdir}",
                name=f"checkout de {spec.name}",
            )
            gateway.exec(target, f"git -C {workdir} pull --ff-only")

    def undeploy(self, gateway: RemoteGateway, target: RemoteTarget, service_key: str) -> None:
        """Detiene y elimina el contenedor del servicio."""
        compose = remote_path("docker-compose.yml")
        self.exec(gateway, target, f"docker compose -f {compose} rm -s -f {service_key}")


class PipelinePlugin(Plugin):
    """Cómo se alcanza cada etapa y cómo se construye/despliega."""

    category = PluginCategory.PIPELINE

    @abstractmethod
    def can_reach(self, stage: Stage, spec: EnvironmentSpec, context: ExecutionContext) -> Reachability:
        pass

    @abstractmethod
    def build(
        self,
        gateway: RemoteGateway,
        target: RemoteTarget,
        spec: EnvironmentSpec,
        environment: str,
        arch: str,
    ) -> BuildArtifact:
        pass

    @abstractmethod
    def rollout(
        self,
        gateway: RemoteGateway,
        target: RemoteTarget,
        spec: EnvironmentSpec,
        service: "ServiceEntry",
        outputs: Dict[str, str],
    ) -> None:
        """Escribe los outputs renderizados y arranca/reemplaza el contenedor."""
        pass

    def reload(self, gateway: RemoteGateway, target: RemoteTarget, outputs: Dict[str, str]) -> None:
        """Escribe los outputs y recarga el ruteo sin arrancar servicios (undeploy)."""
        raise NotImplementedError(f"{self.id} no soporta undeploy")

    def required_secrets(self, spec: EnvironmentSpec) -> List[str]:
        return []


class FrameworkPlugin(Plugin):
    """Cómo construir/migrar un stack de aplicación concreto."""

    category = PluginCategory.FRAMEWORK

    def has_data_store(self, spec: EnvironmentSpec, environment: str, root_dir: Path) -> bool:
        return False

    def pending_migrations(
        self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec, environment: str
    ) -> bool:
        return False

    def backup(
        self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec, environment: str
    ) -> BackupHandle:
        raise NotImplementedError(f"{self.id} no soporta backups")

    def migrate(
        self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec, environment: str
    ) -> None:
        raise NotImplementedError(f"{self.id} no soporta migraciones")

    def restore(self, gateway: RemoteGateway, target: RemoteTarget, handle: BackupHandle) -> None:
        raise NotImplementedError(f"{self.id} no soporta restore")

    def discard_backup(self, gateway: RemoteGateway, target: RemoteTarget, handle: BackupHandle) -> None:
        gateway.remove_file(target, handle.path)


class AddonPlugin(Plugin):
    """Extensión opcional; solo aporta Fixes."""

    category = PluginCategory.ADDON
