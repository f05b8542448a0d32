"""
Plugins incluidos y construcción del registro.

El orden de registro define la prioridad de resolución dentro de cada categoría:
ubuntu va al final porque también aplica a environments sin server explícito.
"""

from keel.core.plugins.registry import PluginRegistry

from .addons import ServerModeAddon
from .frameworks import AlembicFramework, PrismaFramework
from .pipelines import DockerPipeline
from .servers import AwsServer, MacServer, UbuntuServer


ALL_PLUGINS = [
    AwsServer,
    MacServer,
    UbuntuServer,
    DockerPipeline,
    PrismaFramework,
    AlembicFramework,
    ServerModeAddon,
]


def build_registry() -> PluginRegistry:
    """Registro congelado con todos los plugins incluidos."""
    registry = PluginRegistry()
    for plugin_cls in ALL_PLUGINS:
        registry.register(plugin_cls)
    return registry.freeze()


__all__ = [
    "ALL_PLUGINS",
    "build_registry",
    "AwsServer",
    "MacServer",
    "UbuntuServer",
    "DockerPipeline",
    "PrismaFramework",
    "AlembicFramework",
    "ServerModeAddon",
]
