"""EnvironmentSpec Store: modelos, etapas y loader."""

from keel.core.spec.models import (
    EnvironmentConfig,
    EnvironmentSpec,
    PLACEHOLDER_MARKER,
    is_placeholder,
)
from keel.core.spec.stages import (
    Stage,
    ALL_STAGES,
    DEPLOY_STAGES,
    stage_of,
    environments_for_stage,
)
from keel.core.spec.store import (
    CONFIG_CANDIDATES,
    CANONICAL_CONFIG,
    find_config,
    resolve_config_path,
    find_placeholders,
    parse,
    load,
    load_many,
)

__all__ = [
    "EnvironmentConfig",
    "EnvironmentSpec",
    "PLACEHOLDER_MARKER",
    "is_placeholder",
    "Stage",
    "ALL_STAGES",
    "DEPLOY_STAGES",
    "stage_of",
    "environments_for_stage",
    "CONFIG_CANDIDATES",
    "CANONICAL_CONFIG",
    "find_config",
    "resolve_config_path",
    "find_placeholders",
    "parse",
    "load",
    "load_many",
]
