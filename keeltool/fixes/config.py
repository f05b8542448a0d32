"""
Fixes sobre archivos del repo: config, Dockerfile, .gitignore y .env por etapa.
"""

import shutil
from pathlib import Path
from typing import List, Optional

import yaml

from keel.core.scanfix.base import Fix, Severity
from keel.core.scanfix.envvars import env_file_for
from keel.core.spec.models import PLACEHOLDER_MARKER, EnvironmentSpec
from keel.core.spec.stages import Stage, environments_for_stage
from keel.core.spec.store import CANONICAL_CONFIG, find_config, find_placeholders


DOCKERFILE_CANDIDATES = ("Dockerfile", "apps/server/Dockerfile")
ENV_EXAMPLE = ".env.example"
GITIGNORE_LINES = (".env", ".env.*", "!.env.example", ".keel/")


def find_dockerfile(root_dir: Path, spec: EnvironmentSpec, environment: Optional[str] = None) -> Optional[str]:
    """Dockerfile del environment (override) o el primero de los candidatos que exista."""
    if environment:
        override = spec.environments[environment].dockerfile
        if override:
            return override if (root_dir / override).is_file() else None
    for candidate in DOCKERFILE_CANDIDATES:
        if (root_dir / candidate).is_file():
            return candidate
    return None


def placeholder_values_fix() -> Fix:
    def scan(spec, root_dir):
        path = find_config(Path(root_dir))
        if path is None:
            return False
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return bool(find_placeholders(data))

    return Fix(
        id="placeholder-values-in-config",
        stage=Stage.DEV,
        severity=Severity.CRITICAL,
        description=f"La configuración tiene valores {PLACEHOLDER_MARKER} sin reemplazar",
        scan=scan,
        manual_fix=f"Reemplaza los valores que empiezan con {PLACEHOLDER_MARKER} en {CANONICAL_CONFIG}",
    )


def missing_dockerfile_fix() -> Fix:
    def scan(spec, root_dir):
        root = Path(root_dir)
        if not spec.routable_environments():
            return False
        return any(find_dockerfile(root, spec, name) is None for name in spec.routable_environments())

    return Fix(
        id="missing-dockerfile",
        stage=Stage.DEV,
        severity=Severity.CRITICAL,
        description="No hay Dockerfile para construir la imagen",
        scan=scan,
        manual_fix=f"Crea un Dockerfile en {' o '.join(DOCKERFILE_CANDIDATES)} (o define 'dockerfile' por environment)",
    )


def _gitignore_missing(root_dir: Path) -> List[str]:
    path = root_dir / ".gitignore"
    lines = path.read_text().splitlines() if path.is_file() else []
    current = {line.strip() for line in lines}
    return [line for line in GITIGNORE_LINES if line not in current]


def gitignore_env_fix() -> Fix:
    def scan(spec, root_dir):
        return bool(_gitignore_missing(Path(root_dir)))

    def fix(spec, root_dir):
        root = Path(root_dir)
        missing = _gitignore_missing(root)
        if not missing:
            return True
        path = root / ".gitignore"
        existing = path.read_text() if path.is_file() else ""
        prefix = "" if not existing or existing.endswith("\n") else "\n"
        with open(path, "a") as f:
            f.write(prefix + "\n".join(missing) + "\n")
        return True

    return Fix(
        id="gitignore-env-files",
        stage=Stage.DEV,
        severity=Severity.WARNING,
        description=".gitignore no excluye archivos .env ni el estado local",
        scan=scan,
        fix=fix,
        manual_fix=f"Agrega a .gitignore: {', '.join(GITIGNORE_LINES)}",
    )


def _missing_env_files(spec: EnvironmentSpec, root_dir: Path, stage: Stage) -> List[Path]:
    missing: List[Path] = []
    for _, env in environments_for_stage(spec, stage):
        if not env.routable:
            continue
        path = env_file_for(root_dir, stage, env)
        if not path.is_file() and path not in missing:
            missing.append(path)
    return missing


def missing_env_file_fix(stage: Stage) -> Fix:
    def scan(spec, root_dir):
        return bool(_missing_env_files(spec, Path(root_dir), stage))

    def fix(spec, root_dir):
        root = Path(root_dir)
        example = root / ENV_EXAMPLE
        missing = _missing_env_files(spec, root, stage)
        if not missing:
            return True
        if not example.is_file():
            return False
        for path in missing:
            path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(example, path)
        return True

    return Fix(
        id=f"missing-env-file-{stage.value}",
        stage=stage,
        severity=Severity.CRITICAL,
        description=f"Falta el archivo .env de {stage.value}",
        scan=scan,
        fix=fix,
        manual_fix=f"Crea .env.{stage.value} (puedes partir de {ENV_EXAMPLE})",
    )


def domain_placeholder_fix(stage: Stage) -> Fix:
    def scan(spec, root_dir):
        return any(env.has_placeholder_domain for _, env in environments_for_stage(spec, stage))

    return Fix(
        id=f"domain-placeholder-{stage.value}",
        stage=stage,
        severity=Severity.CRITICAL,
        description=f"El dominio de {stage.value} sigue siendo un valor de ejemplo",
        scan=scan,
        manual_fix=f"Define el dominio real de {stage.value} en {CANONICAL_CONFIG}",
    )
