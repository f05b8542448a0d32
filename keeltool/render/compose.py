"""
docker-compose.yml de un target, generado desde la topología.

La salida es determinista: misma topología, mismos bytes (orden de merge, sin timestamps).
"""

from typing import Any, Dict, List

import yaml

from keel.core.spec.stages import Stage
from keel.core.topology.models import ServiceEntry, Topology, service_key


COMPOSE_FILE = "docker-compose.yml"
HEADER = "# Generado por keel desde la topología. No editar a mano.\n"
NETWORK = "keel"

CERTBOT_RENEW = "trap exit TERM; while :; do certbot renew; sleep 12h & wait $${!}; done;"


def _depends(entry: ServiceEntry, siblings: Dict[str, ServiceEntry]) -> List[str]:
    """depends_on del servicio resuelto a servicios del mismo target."""
    resolved: List[str] = []
    for dep in entry.depends_on:
        for candidate in (dep, service_key(dep, entry.environment)):
            if candidate in siblings and candidate != entry.key and candidate not in resolved:
                resolved.append(candidate)
                break
    return resolved


def _service(entry: ServiceEntry, siblings: Dict[str, ServiceEntry]) -> Dict[str, Any]:
    service: Dict[str, Any] = {
        "image": f"{entry.repo}:{entry.environment}",
        "container_name": entry.key,
        "restart": "unless-stopped",
        "environment": {
            "PORT": str(entry.port),
            "NODE_ENV": "production" if entry.stage == Stage.PROD else entry.stage.value,
        },
        "expose": [str(entry.port)],
        "healthcheck": {
            "test": ["CMD", "curl", "-f", entry.health_url],
            "interval": "30s",
            "timeout": "10s",
            "retries": 3,
        },
    }
    if entry.env_file:
        service["env_file"] = [f"./repos/{entry.repo}/{entry.env_file}"]
    deps = _depends(entry, siblings)
    if deps:
        service["depends_on"] = deps
    return service


def compose_document(topology: Topology, target_key: str) -> Dict[str, Any]:
    entries = topology.services_for(target_key)
    siblings = {e.key: e for e in entries}

    services: Dict[str, Any] = {}
    for entry in entries:
        services[entry.key] = _service(entry, siblings)

    services["nginx"] = {
        "image": "nginx:alpine",
        "container_name": "nginx",
        "restart": "unless-stopped",
        "ports": ["80:80", "443:443"],
        "volumes": [
            "./nginx/nginx.conf:/etc/nginx/nginx.conf:ro",
            "./certbot/conf:/etc/letsencrypt:ro",
            "./certbot/www:/var/www/certbot:ro",
        ],
        "depends_on": [e.key for e in entries],
    }
    if not entries:
        del services["nginx"]["depends_on"]

    services["certbot"] = {
        "image": "certbot/certbot",
        "container_name": "certbot",
        "restart": "unless-stopped",
        "volumes": [
            "./certbot/conf:/etc/letsencrypt",
            "./certbot/www:/var/www/certbot",
        ],
        "entrypoint": f"/bin/sh -c '{CERTBOT_RENEW}'",
    }

    return {
        "services": services,
        "networks": {"default": {"name": NETWORK}},
    }


def render_compose(topology: Topology, target_key: str) -> str:
    document = compose_document(topology, target_key)
    return HEADER + yaml.safe_dump(document, sort_keys=False, default_flow_style=False, allow_unicode=True)
