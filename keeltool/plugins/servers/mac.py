"""
Servidor macOS (Mac mini como host de staging): brew + launchd, imágenes arm64.
"""

from typing import List

from keel.core.plugins.contracts import ServerPlugin
from keel.core.remote.gateway import RemoteGateway
from keel.core.scanfix.base import Fix
from keel.core.spec.models import EnvironmentConfig
from keel.core.spec.stages import Stage, stage_of

from keeltool.fixes import server_tool_fixes, tool_table


class MacServer(ServerPlugin):
    id = "mac"
    name = "macOS Server"
    os = "mac"
    package_manager = "brew"
    service_manager = "launchd"
    arch = "linux/arm64"
    tools = tool_table("mac")
    baseline_tools = ("git", "docker")
    # brew en Apple Silicon y en Intel
    path_prefix = ("/opt/homebrew/bin", "/usr/local/bin")

    ALIASES = ("mac", "mac-mini", "macos")

    @classmethod
    def handles(cls, environment: str, env: EnvironmentConfig) -> bool:
        if stage_of(environment) == Stage.DEV or not env.server:
            return False
        return env.server.lower() in cls.ALIASES

    def fixes(self, gateway: RemoteGateway) -> List[Fix]:
        return server_tool_fixes(self, gateway, tools=("docker", "git", "node"))
