"""Factories de Fixes compartidas entre plugins."""

from .commands import COMMANDS, ToolCommands, commands_for, tool_table
from .tools import (
    local_tool_fixes,
    server_tool_fixes,
    stage_targets,
    tool_installed_fix,
    tool_running_fix,
)
from .config import (
    DOCKERFILE_CANDIDATES,
    ENV_EXAMPLE,
    domain_placeholder_fix,
    find_dockerfile,
    gitignore_env_fix,
    missing_dockerfile_fix,
    missing_env_file_fix,
    placeholder_values_fix,
)
from .secrets import required_secrets_fix, secrets_store_fix

__all__ = [
    "COMMANDS",
    "ToolCommands",
    "commands_for",
    "tool_table",
    "local_tool_fixes",
    "server_tool_fixes",
    "stage_targets",
    "tool_installed_fix",
    "tool_running_fix",
    "DOCKERFILE_CANDIDATES",
    "ENV_EXAMPLE",
    "domain_placeholder_fix",
    "find_dockerfile",
    "gitignore_env_fix",
    "missing_dockerfile_fix",
    "missing_env_file_fix",
    "placeholder_values_fix",
    "required_secrets_fix",
    "secrets_store_fix",
]
