"""
Servidor Ubuntu (apt + systemd). Es el servidor por defecto para environments
desplegables que no indican otro.
"""

from typing import List

from keel.core.plugins.contracts import ServerPlugin
from keel.core.remote.gateway import RemoteGateway
from keel.core.scanfix.base import Fix
from keel.core.spec.models import EnvironmentConfig
from keel.core.spec.stages import Stage, stage_of

from keeltool.fixes import server_tool_fixes, tool_table


class UbuntuServer(ServerPlugin):
    id = "ubuntu"
    name = "Ubuntu Server"
    os = "ubuntu"
    package_manager = "apt"
    service_manager = "systemd"
    arch = "linux/amd64"
    tools = tool_table("ubuntu")
    baseline_tools = ("git", "docker")

    ALIASES = ("ubuntu", "linux", "debian")

    @classmethod
    def handles(cls, environment: str, env: EnvironmentConfig) -> bool:
        if stage_of(environment) == Stage.DEV:
            return False
        if env.server:
            return env.server.lower() in cls.ALIASES
        # Sin server explícito: cualquier host SSH que no sea de un proveedor cloud
        return env.region is None

    def fixes(self, gateway: RemoteGateway) -> List[Fix]:
        return server_tool_fixes(self, gateway, tools=("docker", "git", "node"))
