"""
Secret store de GitHub Actions (write-only).

- Nombres existentes: API REST de GitHub (requests).
- Subida: CLI `gh secret set`, que se encarga del cifrado del valor.
"""

import subprocess
from typing import Callable, Dict, Optional, Sequence, Set, Tuple

import requests
from rich.console import Console

from keel.core.errors import KeelError

from .base import SecretCheck, SecretStore


GITHUB_API = "https://api.github.com"
PER_PAGE = 100


class GitHubSecretStore(SecretStore):
    """Secretos de un repositorio en GitHub Actions."""

    name = "github"

    def __init__(
        self,
        repo: str,
        token: Optional[str],
        session: Optional[requests.Session] = None,
        runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
        timeout: int = 10,
        console: Optional[Console] = None,
    ):
        """
        Args:
            repo: Repositorio owner/name
            token: Token con permiso de lectura de secrets
            session: Sesión requests (inyectable en tests)
            runner: Ejecutor de subprocess para `gh`
            timeout: Timeout HTTP en segundos
            console: Console de Rich para salida
        """
        self.repo = repo
        self.token = token
        self.session = session or requests.Session()
        self._runner = runner or subprocess.run
        self.timeout = timeout
        self.console = console

    def exists(self) -> bool:
        return bool(self.repo and self.token)

    def _request(self, endpoint: str, params: Optional[Dict] = None) -> Tuple[bool, Optional[Dict], Optional[str]]:
        """
        GET a la API de GitHub.

        Returns:
            Tuple (success, response_data, error_message)
        """
        url = f"{GITHUB_API}/{endpoint.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }
        try:
            response = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            return False, None, "Timeout al conectar con GitHub"
        except requests.exceptions.ConnectionError:
            return False, None, "Error de conexión con GitHub"

        if response.status_code == 200:
            return True, response.json(), None
        return False, None, f"Error {response.status_code}: {response.text[:200]}"

    def list_names(self) -> Set[str]:
        """
        Raises:
            KeelError: si la API no responde o rechaza el token
        """
        names: Set[str] = set()
        page = 1
        while True:
            ok, data, error = self._request(
                f"repos/{self.repo}/actions/secrets",
                params={"per_page": PER_PAGE, "page": page},
            )
            if not ok:
                raise KeelError(f"GitHub ({self.repo}): {error}")
            batch = data.get("secrets", [])
            names.update(s["name"] for s in batch)
            if len(batch) < PER_PAGE:
                return names
            page += 1

    def check_secrets(self, names: Sequence[str]) -> SecretCheck:
        existing = self.list_names()
        return SecretCheck(
            present=[n for n in names if n in existing],
            missing=[n for n in names if n not in existing],
        )

    def upload_secret(self, name: str, value: str) -> bool:
        try:
            result = self._runner(
                ["gh", "secret", "set", name, "--repo", self.repo],
                input=value,
                capture_output=True,
                text=True,
                timeout=30,
                check=False,
            )
        except FileNotFoundError:
            if self.console:
                self.console.print("[red]✘ Comando gh no encontrado. Instala GitHub CLI[/red]")
            return False
        except subprocess.TimeoutExpired:
            if self.console:
                self.console.print(f"[red]✘ Timeout subiendo {name}[/red]")
            return False
        if result.returncode != 0 and self.console:
            self.console.print(f"[red]✘ gh secret set {name}: {result.stderr.strip()}[/red]")
        return result.returncode == 0
