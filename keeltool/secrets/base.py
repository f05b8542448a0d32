"""
Contrato de un secret store. No se asume lectura de valores (algunos stores son write-only).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Sequence

from keel.core.errors import SecretMissing


@dataclass(frozen=True)
class SecretCheck:
    present: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


class SecretStore(ABC):
    """Base de los secret stores."""

    name: str = "base"

    @abstractmethod
    def check_secrets(self, names: Sequence[str]) -> SecretCheck:
        """Qué nombres existen en el store (sin leer valores)."""
        pass

    @abstractmethod
    def upload_secret(self, name: str, value: str) -> bool:
        """Sube (o reemplaza) un secreto. True si el store lo aceptó."""
        pass

    def exists(self) -> bool:
        """¿El store está configurado y accesible?"""
        return True

    def initialize(self) -> bool:
        """Crea el store si se puede crear automáticamente."""
        return self.exists()

    def require(self, names: Sequence[str]) -> None:
        """
        Raises:
            SecretMissing: con los nombres ausentes
        """
        check = self.check_secrets(names)
        if check.missing:
            raise SecretMissing(check.missing, self.name)
