"""
Resultado del merge: servicios, mapas inyectivos de dominio/puerto y targets.

Todo es inmutable; un re-merge produce una Topology nueva.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from keel.core.remote.target import RemoteTarget
from keel.core.spec.stages import Stage


@dataclass(frozen=True)
class TargetRef:
    """Servidor implicado por uno o más environments."""
    key: str
    host: str
    user: str = ""
    server: Optional[str] = None
    ssh_key: Optional[str] = None
    local: bool = False

    def to_remote(self) -> RemoteTarget:
        if self.local:
            return RemoteTarget.local_host(self.key)
        return RemoteTarget(
            name=self.key,
            host=self.host,
            user=self.user,
            key_path=self.ssh_key,
        )


def service_key(repo: str, environment: str) -> str:
    """Nombre del servicio y del contenedor; los environments no llevan '-', así que es único."""
    return f"{repo}-{environment}"


@dataclass(frozen=True)
class ServiceEntry:
    """Un par (repo, environment) materializado para despliegue."""
    key: str
    repo: str
    environment: str
    stage: Stage
    domain: str
    port: int
    health_check: str = "/health"
    depends_on: Tuple[str, ...] = ()
    env_file: Optional[str] = None
    server: Optional[str] = None
    target: str = "local"

    @property
    def health_url(self) -> str:
        return f"http://localhost:{self.port}{self.health_check}"


@dataclass(frozen=True)
class MergeWarning:
    """Degradación no fatal detectada durante el merge."""
    kind: str
    message: str
    service: Optional[str] = None


@dataclass(frozen=True)
class PortReassignment:
    """Puerto explícito en colisión reasignado al siguiente libre."""
    service: str
    requested: int
    assigned: int
    owner: str

    @property
    def message(self) -> str:
        return (
            f"{self.service}: puerto {self.requested} ya lo usa {self.owner}; "
            f"reasignado a {self.assigned}"
        )


@dataclass(frozen=True)
class Topology:
    services: Tuple[ServiceEntry, ...] = ()
    domain_map: Mapping[str, ServiceEntry] = field(default_factory=lambda: MappingProxyType({}))
    port_map: Mapping[int, ServiceEntry] = field(default_factory=lambda: MappingProxyType({}))
    targets: Tuple[TargetRef, ...] = ()
    warnings: Tuple[MergeWarning, ...] = ()
    reassignments: Tuple[PortReassignment, ...] = ()
    ssl_email: Optional[str] = None

    def services_for(self, target_key: str) -> Tuple[ServiceEntry, ...]:
        """Servicios que corren en un target, en orden de merge."""
        return tuple(s for s in self.services if s.target == target_key)

    def service(self, repo: str, environment: str) -> Optional[ServiceEntry]:
        for entry in self.services:
            if entry.repo == repo and entry.environment == environment:
                return entry
        return None

    def target(self, key: str) -> Optional[TargetRef]:
        for ref in self.targets:
            if ref.key == key:
                return ref
        return None

    def without(self, key: str) -> "Topology":
        """Copia sin un servicio; el resto conserva sus puertos asignados."""
        return replace(
            self,
            services=tuple(s for s in self.services if s.key != key),
            domain_map=MappingProxyType({d: s for d, s in self.domain_map.items() if s.key != key}),
            port_map=MappingProxyType({p: s for p, s in self.port_map.items() if s.key != key}),
        )
