"""
Reporte de readiness por etapa.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from keel.core.plugins.contracts import Reachability
from keel.core.scanfix.base import Severity
from keel.core.spec.stages import Stage


@dataclass
class FixOutcome:
    """Resultado de un Fix en una corrida"""
    fix_id: str
    severity: Severity
    description: str
    problem_exists: bool
    fix_applied: Optional[bool] = None
    manual_fix: Optional[str] = None
    error: Optional[str] = None
    auto_fixable: bool = False

    @property
    def resolved(self) -> bool:
        return not self.problem_exists or self.fix_applied is True

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL


@dataclass
class StageReport:
    """Lista ordenada de outcomes de una etapa"""
    stage: Stage
    outcomes: List[FixOutcome] = field(default_factory=list)
    reachability: Optional[Reachability] = None

    @property
    def skipped(self) -> bool:
        return self.reachability is not None and not self.reachability.reachable

    @property
    def problems(self) -> List[FixOutcome]:
        return [o for o in self.outcomes if o.problem_exists]

    @property
    def fixed(self) -> List[FixOutcome]:
        return [o for o in self.outcomes if o.fix_applied]

    @property
    def unresolved(self) -> List[FixOutcome]:
        return [o for o in self.outcomes if not o.resolved]

    @property
    def unresolved_critical(self) -> List[FixOutcome]:
        return [o for o in self.unresolved if o.is_critical]

    @property
    def ok(self) -> bool:
        """Sin problemas críticos pendientes."""
        return not self.unresolved_critical
