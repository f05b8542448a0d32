"""Plugins de servidor."""

from .aws import AwsServer
from .mac import MacServer
from .ubuntu import UbuntuServer

__all__ = ["AwsServer", "MacServer", "UbuntuServer"]
