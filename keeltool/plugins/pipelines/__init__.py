"""Plugins de pipeline."""

from .docker import DockerPipeline

__all__ = ["DockerPipeline"]
