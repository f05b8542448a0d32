"""
Contexto de ejecución explícito.

Se construye una sola vez al inicio de cada corrida (CLI) y se pasa hacia abajo.
Nada dentro del core lee os.environ ni infiere "estoy en el servidor" por su cuenta.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional


# Variable que marca en qué hosts corre el proceso actual (lista separada por comas)
ON_TARGET_VAR = "KEEL_ON_TARGET"


def detect_local_os(platform: str, os_release: str = "") -> str:
    """
    Traduce sys.platform + /etc/os-release al tag de OS que usan los plugins de servidor.

    Args:
        platform: Valor de sys.platform
        os_release: Contenido de /etc/os-release (vacío si no existe)

    Returns:
        'mac', 'amazon-linux' o 'ubuntu'
    """
    if platform == "darwin":
        return "mac"
    release = os_release.lower()
    if "amzn" in release or "amazon linux" in release:
        return "amazon-linux"
    return "ubuntu"


@dataclass(frozen=True)
class ExecutionContext:
    """Dónde y cómo corre este proceso."""
    local_os: str = "ubuntu"
    on_target_hosts: FrozenSet[str] = frozenset()
    ci: bool = False
    ssh_key_dir: Path = field(default_factory=lambda: Path.home() / ".ssh")
    environ: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    shutdown: threading.Event = field(default_factory=threading.Event, compare=False)

    @classmethod
    def capture(
        cls,
        environ: Mapping[str, str],
        platform: str,
        os_release: str = "",
        home: Optional[Path] = None,
    ) -> "ExecutionContext":
        """
        Único punto que traduce el estado del proceso a un contexto.
        Lo llama la CLI con os.environ; los tests construyen el contexto directamente.
        """
        hosts = frozenset(
            h.strip() for h in environ.get(ON_TARGET_VAR, "").split(",") if h.strip()
        )
        ci = environ.get("CI", "").lower() in ("1", "true", "yes")
        base = home or Path(environ.get("HOME", str(Path.home())))
        return cls(
            local_os=detect_local_os(platform, os_release),
            on_target_hosts=hosts,
            ci=ci,
            ssh_key_dir=base / ".ssh",
            environ=MappingProxyType(dict(environ)),
        )

    def is_local_for(self, target) -> bool:
        """True si el target es este mismo host (ejecución local, sin SSH)."""
        if getattr(target, "local", False):
            return True
        return target.host in self.on_target_hosts or target.name in self.on_target_hosts

    def env(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.environ.get(name, default)

    def ssh_key_for(self, stage: str) -> Optional[Path]:
        """Clave de deploy de la etapa (~/.ssh/<stage>_deploy) si existe."""
        path = self.ssh_key_dir / f"{stage}_deploy"
        return path if path.exists() else None

    def has_ssh_credentials(self, stage: str) -> bool:
        if self.ssh_key_for(stage):
            return True
        return bool(self.env(f"{stage.upper()}_SSH"))

    def cancelled(self) -> bool:
        return self.shutdown.is_set()
