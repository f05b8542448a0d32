"""
Errores del orquestador.

El core solo define excepciones; las capas (CLI/API) se encargan del formato de salida.
Todo error fatal lleva contexto suficiente (repo, environment, fase) para actuar sin logs.
"""

from typing import Dict, List, Optional, Sequence, Tuple


class KeelError(Exception):
    """Error base de keel."""
    pass


class ConfigError(KeelError):
    """Error de configuración (archivo faltante, formato inválido). Fatal antes de tocar remotos."""
    pass


class ConfigMissing(ConfigError):
    """No existe ningún archivo de configuración de despliegue en el repo."""

    def __init__(self, root_dir, candidates: Sequence[str]):
        self.root_dir = root_dir
        self.candidates = list(candidates)
        super().__init__(
            f"No se encontró configuración en {root_dir} (buscado: {', '.join(self.candidates)})"
        )


class ConfigInvalid(ConfigError):
    """Faltan campos requeridos o el documento no es válido."""
    pass


class ConfigPlaceholder(ConfigError):
    """Valores activos que aún llevan el marcador de ejemplo."""

    def __init__(self, source, paths: Sequence[str]):
        self.source = source
        self.paths = list(paths)
        super().__init__(
            f"{source}: valores de ejemplo sin reemplazar en {', '.join(self.paths)}"
        )


class DomainConflict(KeelError):
    """Dos pares (repo, environment) reclaman el mismo dominio."""

    def __init__(self, domain: str, first: Tuple[str, str], second: Tuple[str, str]):
        self.domain = domain
        self.claimants = (first, second)
        super().__init__(
            f"Conflicto de dominio: {domain} lo usan {first[0]}/{first[1]} y {second[0]}/{second[1]}"
        )


class PortConflict(KeelError):
    """Puerto explícito ya reclamado (solo se lanza en modo estricto)."""

    def __init__(self, port: int, owner: str, requester: str):
        self.port = port
        self.owner = owner
        self.requester = requester
        super().__init__(f"Puerto {port} de {requester} ya está asignado a {owner}")


class PluginNotFound(KeelError):
    """Ningún plugin de la categoría aplica al repo/environment."""

    def __init__(self, category: str, repo: Optional[str] = None, environment: Optional[str] = None):
        self.category = category
        self.repo = repo
        self.environment = environment
        where = repo or "?"
        if environment:
            where = f"{where}/{environment}"
        super().__init__(f"Ningún plugin '{category}' aplica a {where}")


NoPluginMatched = PluginNotFound


class RemoteExecError(KeelError):
    """Fallo al ejecutar un comando contra un target (local o SSH)."""

    def __init__(
        self, target: str, command: str, returncode: Optional[int], stderr: str = "", stdout: str = ""
    ):
        self.target = target
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "sin salida"
        code = "timeout" if returncode is None else f"exit {returncode}"
        super().__init__(f"[{target}] '{command}' falló ({code}): {detail}")


class SecretMissing(KeelError):
    """Secretos requeridos ausentes. No es fatal: degrada el reporte."""

    def __init__(self, names: List[str], store: str = ""):
        self.names = list(names)
        self.store = store
        suffix = f" en {store}" if store else ""
        super().__init__(f"Secretos faltantes{suffix}: {', '.join(self.names)}")


class InvalidTransition(KeelError):
    """Transición de fase no permitida en un DeploymentAttempt."""
    pass


class DeployError(KeelError):
    """Error de despliegue con contexto (repo, environment, fase)."""

    def __init__(
        self,
        message: str,
        repo: Optional[str] = None,
        environment: Optional[str] = None,
        phase: Optional[str] = None,
    ):
        self.message = message
        self.repo = repo
        self.environment = environment
        self.phase = phase
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [p for p in (self.repo, self.environment) if p]
        where = "/".join(parts) if parts else "?"
        phase = f" [{self.phase}]" if self.phase else ""
        return f"{where}{phase}: {self.message}"

    def with_context(self, repo: str, environment: str, phase: str) -> "DeployError":
        """Completa el contexto faltante (no pisa el que ya existe)."""
        self.repo = self.repo or repo
        self.environment = self.environment or environment
        self.phase = self.phase or phase
        self.args = (self._format(),)
        return self

    @property
    def context(self) -> Dict[str, Optional[str]]:
        return {"repo": self.repo, "environment": self.environment, "phase": self.phase}

    def __str__(self) -> str:
        return self._format()


class BackupFailed(DeployError):
    """No se pudo crear el backup; la migración no procede."""
    pass


class MigrationFailed(DeployError):
    """La migración falló; se restaura el backup."""
    pass


class HealthCheckFailed(DeployError):
    """El contenedor no quedó sano tras el rollout."""
    pass
