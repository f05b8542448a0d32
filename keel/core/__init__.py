"""
Core: lógica de orquestación pura.

ENFORCEMENT (arquitectura limpia):
- Este paquete NO debe importar keeltool (CLI, plugins concretos, renderers).
- Permitido: typing, pathlib, pydantic, pyyaml, rich (solo vía console inyectada) y keel.core.*.
- Los plugins y la CLI importan desde core; nunca al revés.
"""

from keel.core.errors import (
    KeelError,
    ConfigError,
    ConfigMissing,
    ConfigInvalid,
    ConfigPlaceholder,
    DomainConflict,
    PortConflict,
    PluginNotFound,
    NoPluginMatched,
    RemoteExecError,
    SecretMissing,
    DeployError,
    BackupFailed,
    MigrationFailed,
    HealthCheckFailed,
)

__all__ = [
    "KeelError",
    "ConfigError",
    "ConfigMissing",
    "ConfigInvalid",
    "ConfigPlaceholder",
    "DomainConflict",
    "PortConflict",
    "PluginNotFound",
    "NoPluginMatched",
    "RemoteExecError",
    "SecretMissing",
    "DeployError",
    "BackupFailed",
    "MigrationFailed",
    "HealthCheckFailed",
]
