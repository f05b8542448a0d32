"""
Backup y restore de Postgres compartido por los frameworks con migraciones.

La conexión sale de DATABASE_URL en el .env del environment. El dump es completo
(plain SQL) y el restore recrea el schema public antes de cargarlo, de modo que el
data store queda igual que al momento del backup.
"""

import shlex
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values

from keel.core.errors import ConfigInvalid
from keel.core.plugins.contracts import BackupHandle
from keel.core.remote.gateway import RemoteGateway, shell_path
from keel.core.remote.target import RemoteTarget
from keel.core.runtime.resolver import backup_dir
from keel.core.scanfix.envvars import env_file_for
from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import stage_of


DUMP_TIMEOUT = 1800
RESET_SCHEMA = "DROP SCHEMA IF EXISTS public CASCADE; CREATE SCHEMA public;"


def database_url(spec: EnvironmentSpec, environment: str, root_dir: Optional[Path] = None) -> Optional[str]:
    """DATABASE_URL del .env del environment, o None si no hay archivo/variable."""
    root = Path(root_dir or spec.root_dir or ".")
    env = spec.environment(environment)
    path = env_file_for(root, stage_of(environment), env)
    if not path.is_file():
        return None
    return dotenv_values(path).get("DATABASE_URL") or None


class PostgresBackupMixin:
    """Implementa has_data_store/backup/restore de FrameworkPlugin sobre pg_dump/psql."""

    def has_data_store(self, spec: EnvironmentSpec, environment: str, root_dir: Path) -> bool:
        return database_url(spec, environment, root_dir) is not None

    def env_prefix(self, spec: EnvironmentSpec, environment: str) -> str:
        """Carga el .env del environment en el shell antes del comando."""
        env = spec.environment(environment)
        name = env.env_file or f".env.{stage_of(environment).value}"
        return f"set -a && [ -f {shlex.quote(name)} ] && . ./{shlex.quote(name)}; set +a; "

    def backup(
        self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec, environment: str
    ) -> BackupHandle:
        url = database_url(spec, environment)
        if url is None:
            raise ConfigInvalid(f"{spec.name}/{environment}: DATABASE_URL no definido")

        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = f"{backup_dir()}/{spec.name}-{environment}-{stamp}.sql"
        gateway.exec(
            target,
            f"mkdir -p {shell_path(backup_dir())} && "
            f"pg_dump --no-owner {shlex.quote(url)} > {shell_path(path)}",
            timeout=DUMP_TIMEOUT,
        )
        return BackupHandle(path=path, target=target.name, created_at=stamp, source=url)

    def restore(self, gateway: RemoteGateway, target: RemoteTarget, handle: BackupHandle) -> None:
        if not handle.source:
            raise ConfigInvalid(f"Backup {handle.path} sin data store de origen")
        url = shlex.quote(handle.source)
        gateway.exec(
            target,
            f"psql {url} -v ON_ERROR_STOP=1 -q -c {shlex.quote(RESET_SCHEMA)} && "
            f"psql {url} -v ON_ERROR_STOP=1 -q -f {shell_path(handle.path)}",
            timeout=DUMP_TIMEOUT,
        )
