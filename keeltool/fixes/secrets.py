"""
Fixes de la etapa secrets.

required-secrets-missing depende de que el store exista; en vez de un grafo de
dependencias, su scan re-verifica esa precondición y reporta "sin problema" si falta.
"""

from pathlib import Path
from typing import Callable, List

from keel.core.runtime.context import ExecutionContext
from keel.core.scanfix.base import Fix, Severity
from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import Stage

from keeltool.secrets import store_for


def secrets_store_fix(context: ExecutionContext) -> Fix:
    def scan(spec, root_dir):
        return not store_for(spec, Path(root_dir), context).exists()

    def fix(spec, root_dir):
        return store_for(spec, Path(root_dir), context).initialize()

    return Fix(
        id="secrets-store-missing",
        stage=Stage.SECRETS,
        severity=Severity.CRITICAL,
        description="El secret store no existe o no está configurado",
        scan=scan,
        fix=fix,
        manual_fix="Configura el bloque 'secrets:' (env-file crea .keel/secrets.env; github requiere GITHUB_TOKEN)",
    )


def required_secrets_fix(context: ExecutionContext, names_for: Callable[[EnvironmentSpec], List[str]]) -> Fix:
    def scan(spec, root_dir):
        store = store_for(spec, Path(root_dir), context)
        if not store.exists():
            return False
        names = names_for(spec)
        if not names:
            return False
        # SecretMissing se reporta como advertencia por el engine
        store.require(names)
        return False

    return Fix(
        id="required-secrets-missing",
        stage=Stage.SECRETS,
        severity=Severity.WARNING,
        description="Faltan secretos requeridos para desplegar",
        scan=scan,
        manual_fix="Sube cada secreto con: keel secrets set NOMBRE",
    )
