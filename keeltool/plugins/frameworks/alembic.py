"""
Framework Python con migraciones Alembic.
"""

import configparser
import re
from pathlib import Path
from typing import List, Set

from keel.core.plugins.contracts import FrameworkPlugin, workdir_for
from keel.core.remote.gateway import RemoteGateway, shell_path
from keel.core.remote.target import RemoteTarget
from keel.core.scanfix.base import Fix, Severity
from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import Stage

from .postgres import PostgresBackupMixin


ALEMBIC_INI = "alembic.ini"
REVISION_RE = re.compile(r"^([0-9a-f]{4,})\b", re.MULTILINE)


def revisions(output: str) -> Set[str]:
    """Ids de revisión al inicio de cada línea de `alembic current` / `alembic heads`."""
    return set(REVISION_RE.findall(output))


def script_location(root_dir: Path) -> Path:
    # alembic expone %(here)s como el directorio del .ini
    parser = configparser.ConfigParser(defaults={"here": "."})
    parser.read(Path(root_dir) / ALEMBIC_INI)
    location = parser.get("alembic", "script_location", fallback="alembic")
    return Path(root_dir) / location


class AlembicFramework(PostgresBackupMixin, FrameworkPlugin):
    id = "alembic"
    name = "Alembic"
    required_env_vars = ("DATABASE_URL",)

    @classmethod
    def should_load(cls, root_dir: Path, spec: EnvironmentSpec) -> bool:
        return (Path(root_dir) / ALEMBIC_INI).is_file()

    def _alembic(self, spec: EnvironmentSpec, environment: str, target: RemoteTarget, args: str) -> str:
        workdir = shell_path(workdir_for(spec, target))
        return f"cd {workdir} && {self.env_prefix(spec, environment)}alembic {args}"

    def pending_migrations(
        self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec, environment: str
    ) -> bool:
        current = revisions(gateway.exec(target, self._alembic(spec, environment, target, "current"), timeout=120))
        heads = revisions(gateway.exec(target, self._alembic(spec, environment, target, "heads"), timeout=120))
        return bool(heads - current)

    def migrate(
        self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec, environment: str
    ) -> None:
        gateway.exec(target, self._alembic(spec, environment, target, "upgrade head"), timeout=900)

    def fixes(self, gateway: RemoteGateway) -> List[Fix]:
        def versions_scan(spec, root_dir):
            return not (script_location(Path(root_dir)) / "versions").is_dir()

        def versions_fix(spec, root_dir):
            path = script_location(Path(root_dir)) / "versions"
            path.mkdir(parents=True, exist_ok=True)
            return True

        return [
            Fix(
                id="alembic-missing-versions-dir",
                stage=Stage.DEV,
                severity=Severity.WARNING,
                description="El directorio de versiones de Alembic no existe",
                scan=versions_scan,
                fix=versions_fix,
                manual_fix="mkdir -p alembic/versions",
            ),
        ]
