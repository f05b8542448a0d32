"""Addons."""

from .server_mode import ServerModeAddon

__all__ = ["ServerModeAddon"]
