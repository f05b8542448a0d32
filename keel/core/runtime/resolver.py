"""
Resolución de rutas de estado y proyecto.

- state_root(): directorio de estado local (~/.keel, o KEEL_STATE_ROOT).
- REMOTE_STATE_DIR: directorio en cada target donde viven outputs renderizados y backups.
- find_project_root(): sube desde un directorio hasta encontrar un archivo de configuración.

El core NO escribe en disco; solo expone estas rutas.
"""

from pathlib import Path
from typing import Mapping, Optional, Sequence


# Directorio de estado en los targets (expandido por el shell remoto)
REMOTE_STATE_DIR = "~/.keel"


def state_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directorio raíz del estado local de keel."""
    explicit = (environ or {}).get("KEEL_STATE_ROOT", "").strip()
    if explicit:
        return Path(explicit).expanduser().resolve()
    return Path.home() / ".keel"


def remote_path(*parts: str) -> str:
    """Ruta dentro de REMOTE_STATE_DIR en el target."""
    return "/".join([REMOTE_STATE_DIR, *parts])


def backup_dir() -> str:
    return remote_path("backups")


def find_project_root(start: Path, candidates: Sequence[str]) -> Optional[Path]:
    """
    Directorio más cercano (start o ancestros) que contiene alguno de los candidatos.
    """
    start = start.resolve()
    for d in [start, *start.parents]:
        if any((d / name).exists() for name in candidates):
            return d
    return None
