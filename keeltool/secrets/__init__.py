"""
Secret stores y selección según el bloque `secrets:` de la spec.

    secrets:
      store: env-file          # o github
      path: .keel/secrets.env  # env-file
      repo: owner/name         # github
      required: [API_KEY]
"""

from pathlib import Path

from keel.core.errors import ConfigInvalid
from keel.core.runtime.context import ExecutionContext
from keel.core.spec.models import EnvironmentSpec

from .base import SecretCheck, SecretStore
from .env_file import EnvFileSecretStore
from .github import GitHubSecretStore


DEFAULT_SECRETS_PATH = ".keel/secrets.env"


def store_for(spec: EnvironmentSpec, root_dir: Path, context: ExecutionContext) -> SecretStore:
    """Secret store configurado para el repo (env-file por defecto)."""
    settings = spec.secrets or {}
    kind = settings.get("store", "env-file")
    if kind == "env-file":
        return EnvFileSecretStore(Path(root_dir) / settings.get("path", DEFAULT_SECRETS_PATH))
    if kind == "github":
        repo = settings.get("repo") or spec.git_repo or ""
        return GitHubSecretStore(repo=repo, token=context.env("GITHUB_TOKEN"))
    raise ConfigInvalid(f"{spec.name}: secret store desconocido '{kind}'")


__all__ = [
    "SecretCheck",
    "SecretStore",
    "EnvFileSecretStore",
    "GitHubSecretStore",
    "DEFAULT_SECRETS_PATH",
    "store_for",
]
