"""Scan/Fix Engine."""

from keel.core.scanfix.base import Fix, Severity
from keel.core.scanfix.report import FixOutcome, StageReport
from keel.core.scanfix.envvars import env_file_for, env_var_fixes, missing_env_vars
from keel.core.scanfix.engine import ScanFixEngine

__all__ = [
    "Fix",
    "Severity",
    "FixOutcome",
    "StageReport",
    "env_file_for",
    "env_var_fixes",
    "missing_env_vars",
    "ScanFixEngine",
]
