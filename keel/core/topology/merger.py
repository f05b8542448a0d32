"""
Merge de N EnvironmentSpecs en una única Topology sin conflictos.

Puertos: explícito si está libre; si no, el menor libre >= base (cursor monotónico).
Dominios: nunca se reasignan; una colisión aborta el merge con DomainConflict.
"""

from types import MappingProxyType
from typing import Dict, Iterable, List, Optional

from rich.console import Console

from keel.core.errors import ConfigInvalid, DomainConflict, PortConflict
from keel.core.spec.models import EnvironmentConfig, EnvironmentSpec
from keel.core.spec.stages import Stage, stage_of
from keel.core.topology.models import (
    MergeWarning,
    PortReassignment,
    ServiceEntry,
    TargetRef,
    Topology,
    service_key,
)


DEFAULT_BASE_PORT = 3001
LOCAL_TARGET = "local"


class _PortAllocator:
    """Cursor monotónico sobre los puertos ya reclamados."""

    def __init__(self, base: int):
        self.base = base
        self._cursor = base

    def next_free(self, claimed: Dict[int, ServiceEntry]) -> int:
        while self._cursor in claimed:
            self._cursor += 1
        return self._cursor


def _target_for(environment: str, env: EnvironmentConfig) -> TargetRef:
    if stage_of(environment) == Stage.DEV:
        return TargetRef(key=LOCAL_TARGET, host="localhost", server=env.server, local=True)
    host = env.ssh_host
    return TargetRef(
        key=host,
        host=host,
        user=env.ssh_user,
        server=env.server,
        ssh_key=env.ssh_key,
    )


def merge(
    specs: Iterable[EnvironmentSpec],
    strict: bool = False,
    base_port: int = DEFAULT_BASE_PORT,
    console: Optional[Console] = None,
) -> Topology:
    """
    Combina las specs en orden de entrada.

    Args:
        specs: Specs a combinar (el orden decide quién gana el puerto bajo)
        strict: Si True, un puerto explícito en colisión es fatal (PortConflict)
        base_port: Primer puerto de auto-asignación
        console: Console de Rich para mostrar advertencias

    Returns:
        Topology nueva; nunca se devuelve una topología parcial

    Raises:
        DomainConflict: dos pares (repo, environment) con el mismo dominio
        PortConflict: solo en modo estricto
        ConfigInvalid: el mismo repo aparece dos veces
    """
    services: List[ServiceEntry] = []
    by_domain: Dict[str, ServiceEntry] = {}
    by_port: Dict[int, ServiceEntry] = {}
    targets: Dict[str, TargetRef] = {}
    warnings: List[MergeWarning] = []
    reassignments: List[PortReassignment] = []
    ssl_email: Optional[str] = None
    ssl_owner: Optional[str] = None
    allocator = _PortAllocator(base_port)
    seen_repos = set()

    for spec in specs:
        if spec.name in seen_repos:
            raise ConfigInvalid(f"El repo '{spec.name}' aparece más de una vez en el merge")
        seen_repos.add(spec.name)

        if spec.ssl_email:
            if ssl_email is None:
                ssl_email, ssl_owner = spec.ssl_email, spec.name
            elif spec.ssl_email != ssl_email:
                warnings.append(MergeWarning(
                    kind="ssl_email",
                    message=f"{spec.name}: ssl_email {spec.ssl_email} ignorado; se usa {ssl_email} de {ssl_owner}",
                ))

        for env_name, env in spec.environments.items():
            label = f"{spec.name}/{env_name}"
            if not env.domain:
                warnings.append(MergeWarning(kind="no_domain", message=f"{label}: sin domain, se omite"))
                continue
            if env.has_placeholder_domain:
                warnings.append(MergeWarning(
                    kind="placeholder",
                    message=f"{label}: domain de ejemplo ({env.domain}), se omite",
                ))
                continue

            owner = by_domain.get(env.domain)
            if owner is not None:
                raise DomainConflict(env.domain, (owner.repo, owner.environment), (spec.name, env_name))

            key = service_key(spec.name, env_name)

            if env.port is not None and env.port not in by_port:
                port = env.port
            elif env.port is not None:
                holder = by_port[env.port]
                if strict:
                    raise PortConflict(env.port, holder.key, key)
                port = allocator.next_free(by_port)
                reassignment = PortReassignment(
                    service=key, requested=env.port, assigned=port, owner=holder.key
                )
                reassignments.append(reassignment)
                warnings.append(MergeWarning(kind="port", message=reassignment.message, service=key))
            else:
                port = allocator.next_free(by_port)

            target = _target_for(env_name, env)
            known = targets.get(target.key)
            if known is None:
                targets[target.key] = target
            elif target.server and known.server and target.server != known.server:
                warnings.append(MergeWarning(
                    kind="target",
                    message=f"{label}: server '{target.server}' difiere de '{known.server}' en {target.key}",
                    service=key,
                ))

            entry = ServiceEntry(
                key=key,
                repo=spec.name,
                environment=env_name,
                stage=stage_of(env_name),
                domain=env.domain,
                port=port,
                health_check=env.health_check,
                depends_on=tuple(env.depends_on),
                env_file=env.env_file,
                server=env.server,
                target=target.key,
            )
            services.append(entry)
            by_domain[entry.domain] = entry
            by_port[entry.port] = entry

    if console:
        for warning in warnings:
            console.print(f"[yellow]⚠️ {warning.message}[/yellow]")

    return Topology(
        services=tuple(services),
        domain_map=MappingProxyType(by_domain),
        port_map=MappingProxyType(by_port),
        targets=tuple(targets.values()),
        warnings=tuple(warnings),
        reassignments=tuple(reassignments),
        ssl_email=ssl_email,
    )
