"""
Framework Prisma (+ tRPC) sobre Node.

Detecta el stack por package.json y opera migraciones con el CLI de Prisma.
"""

import json
from pathlib import Path
from typing import List, Optional

from keel.core.errors import RemoteExecError
from keel.core.plugins.contracts import FrameworkPlugin, workdir_for
from keel.core.remote.gateway import RemoteGateway, shell_path
from keel.core.remote.target import RemoteTarget
from keel.core.scanfix.base import Fix, Severity
from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import Stage

from keeltool.fixes import ENV_EXAMPLE

from .postgres import PostgresBackupMixin


SCHEMA_CANDIDATES = ("prisma/schema.prisma", "apps/server/prisma/schema.prisma")
PENDING_MARKERS = ("not yet been applied", "have not yet been applied", "Following migration")
MIGRATE_TIMEOUT = 900
STATUS_PENDING_EXIT = 1


def _dependencies(root_dir: Path) -> dict:
    path = root_dir / "package.json"
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError:
        return {}
    deps = dict(data.get("dependencies") or {})
    deps.update(data.get("devDependencies") or {})
    return deps


def find_schema(root_dir: Path, spec: Optional[EnvironmentSpec] = None) -> Optional[Path]:
    override = (spec.extras.get("prisma_schema") if spec else None)
    candidates = (override,) if override else SCHEMA_CANDIDATES
    for candidate in candidates:
        path = Path(root_dir) / candidate
        if path.is_file():
            return path
    return None


def has_pending(output: str) -> bool:
    """True si la salida de `prisma migrate status` lista migraciones sin aplicar."""
    return any(marker in output for marker in PENDING_MARKERS)


class PrismaFramework(PostgresBackupMixin, FrameworkPlugin):
    id = "prisma"
    name = "Prisma + tRPC"
    required_env_vars = ("DATABASE_URL",)

    @classmethod
    def should_load(cls, root_dir: Path, spec: EnvironmentSpec) -> bool:
        deps = _dependencies(Path(root_dir))
        return any(name in ("prisma", "@prisma/client") or name.startswith("@trpc/") for name in deps)

    def _status(self, gateway: RemoteGateway, target: RemoteTarget, command: str) -> str:
        # migrate status sale con 1 cuando hay pendientes; cualquier otro fallo es real
        try:
            return gateway.exec(target, command, timeout=120)
        except RemoteExecError as e:
            output = f"{e.stdout}\n{e.stderr}"
            if e.returncode == STATUS_PENDING_EXIT and has_pending(output):
                return output
            raise

    def pending_migrations(
        self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec, environment: str
    ) -> bool:
        workdir = shell_path(workdir_for(spec, target))
        prefix = self.env_prefix(spec, environment)
        output = self._status(gateway, target, f"cd {workdir} && {prefix}npx prisma migrate status")
        return has_pending(output)

    def migrate(
        self, gateway: RemoteGateway, target: RemoteTarget, spec: EnvironmentSpec, environment: str
    ) -> None:
        workdir = shell_path(workdir_for(spec, target))
        prefix = self.env_prefix(spec, environment)
        gateway.exec(target, f"cd {workdir} && {prefix}npx prisma migrate deploy", timeout=MIGRATE_TIMEOUT)

    def fixes(self, gateway: RemoteGateway) -> List[Fix]:
        local = RemoteTarget.local_host()

        def schema_scan(spec, root_dir):
            return find_schema(Path(root_dir), spec) is None

        def env_scan(spec, root_dir):
            return not (Path(root_dir) / ".env").is_file()

        def env_fix(spec, root_dir):
            example = Path(root_dir) / ENV_EXAMPLE
            if not example.is_file():
                return False
            (Path(root_dir) / ".env").write_text(example.read_text())
            return True

        def client_scan(spec, root_dir):
            root = Path(root_dir)
            if find_schema(root, spec) is None or not (root / "node_modules").is_dir():
                return False
            return not (root / "node_modules" / ".prisma" / "client" / "index.js").is_file()

        def client_fix(spec, root_dir):
            gateway.exec(local, f"cd {shell_path(str(root_dir))} && npx prisma generate", timeout=300)
            return (Path(root_dir) / "node_modules" / ".prisma" / "client" / "index.js").is_file()

        def pending_scan(spec, root_dir):
            root = Path(root_dir)
            if find_schema(root, spec) is None or not (root / ".env").is_file():
                return False
            return has_pending(self._status(gateway, local, f"cd {shell_path(str(root))} && npx prisma migrate status"))

        def pending_fix(spec, root_dir):
            gateway.exec(local, f"cd {shell_path(str(root_dir))} && npx prisma migrate dev", timeout=MIGRATE_TIMEOUT)
            return True

        return [
            Fix(
                id="missing-prisma-schema",
                stage=Stage.DEV,
                severity=Severity.CRITICAL,
                description="No se encontró schema.prisma",
                scan=schema_scan,
                manual_fix=f"Crea el schema en {' o '.join(SCHEMA_CANDIDATES)} (npx prisma init)",
            ),
            Fix(
                id="missing-env-file",
                stage=Stage.DEV,
                severity=Severity.WARNING,
                description="Falta el archivo .env de desarrollo",
                scan=env_scan,
                fix=env_fix,
                manual_fix=f"Copia {ENV_EXAMPLE} a .env",
            ),
            Fix(
                id="prisma-client-not-generated",
                stage=Stage.DEV,
                severity=Severity.WARNING,
                description="El cliente de Prisma no está generado",
                scan=client_scan,
                fix=client_fix,
                manual_fix="npx prisma generate",
            ),
            Fix(
                id="pending-migrations-dev",
                stage=Stage.DEV,
                severity=Severity.WARNING,
                description="Hay migraciones sin aplicar en la base local",
                scan=pending_scan,
                fix=pending_fix,
                manual_fix="npx prisma migrate dev",
            ),
        ]
