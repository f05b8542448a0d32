"""
Renderers de los archivos de runtime por target (compose + nginx).
"""

from typing import Dict

from keel.core.topology.models import Topology

from .compose import COMPOSE_FILE, compose_document, render_compose
from .nginx import NGINX_CONF, render_nginx


def render_outputs(topology: Topology, target_key: str) -> Dict[str, str]:
    """{ruta relativa a ~/.keel: contenido} para un target."""
    return {
        COMPOSE_FILE: render_compose(topology, target_key),
        NGINX_CONF: render_nginx(topology, target_key),
    }


__all__ = [
    "COMPOSE_FILE",
    "NGINX_CONF",
    "compose_document",
    "render_compose",
    "render_nginx",
    "render_outputs",
]
