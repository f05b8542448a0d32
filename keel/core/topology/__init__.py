"""Topology Merger."""

from keel.core.topology.models import (
    MergeWarning,
    PortReassignment,
    ServiceEntry,
    TargetRef,
    Topology,
    service_key,
)
from keel.core.topology.merger import DEFAULT_BASE_PORT, LOCAL_TARGET, merge

__all__ = [
    "MergeWarning",
    "PortReassignment",
    "ServiceEntry",
    "TargetRef",
    "Topology",
    "service_key",
    "DEFAULT_BASE_PORT",
    "LOCAL_TARGET",
    "merge",
]
