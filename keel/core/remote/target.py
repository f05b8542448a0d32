"""
Descriptor de un target remoto: host, usuario y clave, o marcador de ejecución local.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple


@dataclass(frozen=True)
class RemoteTarget:
    """Host físico o virtual donde corren uno o más servicios."""
    name: str
    host: str
    user: str = "root"
    key_path: Optional[Path] = None
    local: bool = False
    # Directorios antepuestos al PATH; una sesión SSH no interactiva no lee el perfil
    path_prefix: Tuple[str, ...] = ()

    @classmethod
    def local_host(cls, name: str = "local") -> "RemoteTarget":
        return cls(name=name, host="localhost", user="", local=True)

    @property
    def label(self) -> str:
        if self.local:
            return self.name
        return f"{self.user}@{self.host}" if self.user else self.host

    def resolved_key(self) -> Optional[Path]:
        """Clave SSH expandida, solo si existe en disco."""
        if not self.key_path:
            return None
        path = Path(self.key_path).expanduser()
        return path if path.exists() else None
