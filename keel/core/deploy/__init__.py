"""Deploy Orchestrator."""

from keel.core.deploy.state import (
    DeployPhase,
    DeploymentAttempt,
    DeployResult,
    TRANSITIONS,
    TERMINAL_PHASES,
    ROLLBACK_PHASES,
)
from keel.core.deploy.locks import TargetLocks
from keel.core.deploy.health import ContainerState, HealthMonitor, INSPECT_FORMAT
from keel.core.deploy.orchestrator import DeployOrchestrator, DeployRequest, Renderer, TopologySource

__all__ = [
    "DeployPhase",
    "DeploymentAttempt",
    "DeployResult",
    "TRANSITIONS",
    "TERMINAL_PHASES",
    "ROLLBACK_PHASES",
    "TargetLocks",
    "ContainerState",
    "HealthMonitor",
    "INSPECT_FORMAT",
    "DeployOrchestrator",
    "DeployRequest",
    "Renderer",
    "TopologySource",
]
