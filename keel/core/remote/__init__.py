"""Remote Execution Gateway."""

from keel.core.remote.target import RemoteTarget
from keel.core.remote.gateway import RemoteGateway, ExecResult, shell_path

__all__ = ["RemoteTarget", "RemoteGateway", "ExecResult", "shell_path"]
