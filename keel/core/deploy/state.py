"""
Máquina de estados de un deploy (repo, environment).

Preparing → Building → [BackingUp → Migrating] → RollingOut → HealthChecking → Succeeded
Fallos en Migrating/RollingOut/HealthChecking pasan por RollingBack antes de Failed;
fallos anteriores van directo a Failed. El intento es efímero: nunca se persiste.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from keel.core.errors import DeployError, InvalidTransition
from keel.core.plugins.contracts import BackupHandle, BuildArtifact


class DeployPhase(str, Enum):
    PREPARING = "preparing"
    BUILDING = "building"
    BACKING_UP = "backing_up"
    MIGRATING = "migrating"
    ROLLING_OUT = "rolling_out"
    HEALTH_CHECKING = "health_checking"
    ROLLING_BACK = "rolling_back"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


P = DeployPhase

TRANSITIONS: Dict[DeployPhase, FrozenSet[DeployPhase]] = {
    P.PREPARING: frozenset({P.BUILDING, P.FAILED}),
    # Sin cambios pendientes se salta BackingUp/Migrating
    P.BUILDING: frozenset({P.BACKING_UP, P.ROLLING_OUT, P.FAILED}),
    P.BACKING_UP: frozenset({P.MIGRATING, P.FAILED}),
    P.MIGRATING: frozenset({P.ROLLING_OUT, P.ROLLING_BACK, P.FAILED}),
    P.ROLLING_OUT: frozenset({P.HEALTH_CHECKING, P.ROLLING_BACK, P.FAILED}),
    P.HEALTH_CHECKING: frozenset({P.SUCCEEDED, P.ROLLING_BACK, P.FAILED}),
    P.ROLLING_BACK: frozenset({P.FAILED}),
    P.SUCCEEDED: frozenset(),
    P.FAILED: frozenset(),
}

TERMINAL_PHASES = frozenset({P.SUCCEEDED, P.FAILED})

# Fases cuyo fallo dispara rollback (restore del backup si se tomó)
ROLLBACK_PHASES = frozenset({P.MIGRATING, P.ROLLING_OUT, P.HEALTH_CHECKING})


@dataclass
class DeploymentAttempt:
    """Estado efímero de un deploy."""
    repo: str
    environment: str
    phase: DeployPhase = DeployPhase.PREPARING
    backup: Optional[BackupHandle] = None
    error: Optional[DeployError] = None
    history: List[DeployPhase] = field(default_factory=lambda: [DeployPhase.PREPARING])

    @property
    def terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def can_advance(self, phase: DeployPhase) -> bool:
        return phase in TRANSITIONS[self.phase]

    def advance(self, phase: DeployPhase) -> None:
        """Avanza a la siguiente fase; InvalidTransition si no está permitido."""
        if not self.can_advance(phase):
            raise InvalidTransition(
                f"{self.repo}/{self.environment}: {self.phase.value} → {phase.value} no permitido"
            )
        self.phase = phase
        self.history.append(phase)


@dataclass
class DeployResult:
    """Resultado de deploy(spec, environment)."""
    repo: str
    environment: str
    success: bool
    phase: DeployPhase
    history: List[DeployPhase] = field(default_factory=list)
    error: Optional[DeployError] = None
    backup: Optional[BackupHandle] = None
    restored: Optional[bool] = None
    restore_error: Optional[str] = None
    incident: Optional[str] = None
    artifact: Optional[BuildArtifact] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def skipped_migration(self) -> bool:
        return DeployPhase.BACKING_UP not in self.history
