"""Runtime: contexto de ejecución y resolución de rutas."""

from keel.core.runtime.context import ExecutionContext, detect_local_os
from keel.core.runtime.resolver import state_root, remote_path, backup_dir, find_project_root

__all__ = [
    "ExecutionContext",
    "detect_local_os",
    "state_root",
    "remote_path",
    "backup_dir",
    "find_project_root",
]
