"""
Fixes generados a partir de required_env_vars de cada plugin.

Un Fix por etapa desplegable: reporta variables ausentes en el .env del environment.
Si el .env no existe no hay problema aquí (otro Fix reporta el archivo faltante).
"""

from pathlib import Path
from typing import List, Sequence

from dotenv import dotenv_values

from keel.core.scanfix.base import Fix, Severity
from keel.core.spec.models import EnvironmentConfig, EnvironmentSpec
from keel.core.spec.stages import DEPLOY_STAGES, Stage, environments_for_stage


def env_file_for(root_dir: Path, stage: Stage, env: EnvironmentConfig) -> Path:
    """Archivo .env de un environment: env_file explícito o .env.<stage>."""
    return root_dir / (env.env_file or f".env.{stage.value}")


def missing_env_vars(spec: EnvironmentSpec, root_dir: Path, stage: Stage, names: Sequence[str]) -> List[str]:
    missing: List[str] = []
    for _, env in environments_for_stage(spec, stage):
        path = env_file_for(root_dir, stage, env)
        if not path.is_file():
            continue
        values = dotenv_values(path)
        for name in names:
            if not values.get(name) and name not in missing:
                missing.append(name)
    return missing


def env_var_fixes(plugin_id: str, names: Sequence[str]) -> List[Fix]:
    if not names:
        return []
    fixes = []
    for stage in DEPLOY_STAGES:
        def scan(spec, root_dir, _stage=stage):
            return bool(missing_env_vars(spec, Path(root_dir), _stage, names))

        fixes.append(Fix(
            id=f"{plugin_id}-env-vars-{stage.value}",
            stage=stage,
            severity=Severity.CRITICAL,
            description=f"Variables requeridas por {plugin_id} ausentes en .env.{stage.value}",
            scan=scan,
            manual_fix=f"Agrega {', '.join(names)} al .env de {stage.value}",
        ))
    return fixes
