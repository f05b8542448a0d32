"""
nginx.conf de un target: un server block por dominio, proxy al contenedor del servicio.

Se genera HTTP y el challenge ACME para que certbot (webroot) pueda emitir los
certificados de cada dominio.
"""

from typing import List

from keel.core.topology.models import ServiceEntry, Topology


NGINX_CONF = "nginx/nginx.conf"
HEADER = "# Generado por keel desde la topología. No editar a mano."


def _server_block(entry: ServiceEntry) -> List[str]:
    upstream = f"http://{entry.key}:{entry.port}"
    return [
        "    server {",
        "        listen 80;",
        f"        server_name {entry.domain};",
        "",
        "        location /.well-known/acme-challenge/ {",
        "            root /var/www/certbot;",
        "        }",
        "",
        "        location / {",
        f"            proxy_pass {upstream};",
        "            proxy_http_version 1.1;",
        "            proxy_set_header Host $host;",
        "            proxy_set_header X-Real-IP $remote_addr;",
        "            proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;",
        "            proxy_set_header X-Forwarded-Proto $scheme;",
        "            proxy_set_header Upgrade $http_upgrade;",
        "            proxy_set_header Connection \"upgrade\";",
        "        }",
        "    }",
    ]


def render_nginx(topology: Topology, target_key: str) -> str:
    lines = [
        HEADER,
        "events {",
        "    worker_connections 1024;",
        "}",
        "",
        "http {",
        "    sendfile on;",
        "    client_max_body_size 50m;",
        "    resolver 127.0.0.11 valid=30s;",
    ]
    for entry in topology.services_for(target_key):
        lines.append("")
        lines.append(f"    # {entry.repo}/{entry.environment}")
        lines.extend(_server_block(entry))
    lines.append("}")
    return "\n".join(lines) + "\n"
