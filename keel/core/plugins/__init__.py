"""Plugin Registry: contratos por categoría y catálogo."""

from keel.core.plugins.contracts import (
    AddonPlugin,
    BackupHandle,
    BuildArtifact,
    FrameworkPlugin,
    PipelinePlugin,
    Plugin,
    PluginCategory,
    Reachability,
    ServerPlugin,
    Via,
    workdir_for,
)
from keel.core.plugins.registry import PluginRegistry

__all__ = [
    "AddonPlugin",
    "BackupHandle",
    "BuildArtifact",
    "FrameworkPlugin",
    "PipelinePlugin",
    "Plugin",
    "PluginCategory",
    "Reachability",
    "ServerPlugin",
    "Via",
    "workdir_for",
    "PluginRegistry",
]
