"""
Descriptor de un Fix: problema detectable (scan) y opcionalmente corregible (fix).
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Collection, Optional

from keel.core.spec.models import EnvironmentSpec
from keel.core.spec.stages import Stage


class Severity(str, Enum):
    """Severidad de un problema de readiness"""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


# scan(spec, root_dir) -> problem_exists ; debe ser repetible y sin efectos
ScanFn = Callable[[EnvironmentSpec, Path], bool]
# fix(spec, root_dir) -> applied ; debe ser idempotente
FixFn = Callable[[EnvironmentSpec, Path], bool]


@dataclass(frozen=True)
class Fix:
    """Problema de readiness autocontenido. Stateless; el engine es quien lo secuencia."""
    id: str
    stage: Stage
    severity: Severity
    description: str
    scan: ScanFn
    fix: Optional[FixFn] = None
    manual_fix: str = ""
    os: Optional[str] = None  # None = cualquier OS

    @property
    def is_auto_fixable(self) -> bool:
        return self.fix is not None

    def matches_os(self, os_tags: Collection[str]) -> bool:
        return self.os is None or self.os in os_tags
