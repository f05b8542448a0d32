"""
Secret store en un archivo .env local (fuera del control de versiones).
"""

import re
from pathlib import Path
from typing import Sequence

from dotenv import dotenv_values, set_key

from .base import SecretCheck, SecretStore


_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class EnvFileSecretStore(SecretStore):
    """Secretos como pares KEY=VALUE en un archivo con permisos 600."""

    name = "env-file"

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def initialize(self) -> bool:
        if self.exists():
            return True
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(mode=0o600)
        return True

    def check_secrets(self, names: Sequence[str]) -> SecretCheck:
        values = dotenv_values(self.path) if self.exists() else {}
        present = [n for n in names if values.get(n)]
        missing = [n for n in names if not values.get(n)]
        return SecretCheck(present=present, missing=missing)

    def upload_secret(self, name: str, value: str) -> bool:
        if not _NAME_RE.match(name):
            return False
        self.initialize()
        success, _, _ = set_key(str(self.path), name, value)
        return bool(success)

    def __repr__(self) -> str:
        return f"<EnvFileSecretStore {self.path}>"
