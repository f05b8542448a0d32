"""
Gateway de ejecución remota.

"Ejecuta este comando contra el target X" sin que el llamador sepa si X es este host
(subproceso local) o un host alcanzable por SSH. La decisión la toma el ExecutionContext.
"""

import shlex
import subprocess
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from rich.console import Console

from keel.core.errors import RemoteExecError
from keel.core.remote.target import RemoteTarget
from keel.core.runtime.context import ExecutionContext


# Opciones SSH no interactivas
SSH_OPTIONS = [
    "-o", "StrictHostKeyChecking=no",
    "-o", "UserKnownHostsFile=/dev/null",
    "-o", "ConnectTimeout=10",
    "-o", "BatchMode=yes",
]

DEFAULT_TIMEOUT = 300
PROBE_TIMEOUT = 10
INSTALL_TIMEOUT = 900


def shell_path(path: str) -> str:
    """Quotea una ruta preservando la expansión de ~ en el shell remoto."""
    if path.startswith("~/"):
        return "~/" + shlex.quote(path[2:])
    return shlex.quote(path)


@dataclass
class ExecResult:
    """Resultado de un job en exec_many."""
    target: RemoteTarget
    command: str
    ok: bool
    stdout: str = ""
    error: Optional[RemoteExecError] = None


class RemoteGateway:
    """Ejecuta comandos local o vía SSH según el contexto."""

    def __init__(
        self,
        context: ExecutionContext,
        runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
        console: Optional[Console] = None,
        default_timeout: int = DEFAULT_TIMEOUT,
    ):
        self.context = context
        self.console = console
        self.default_timeout = default_timeout
        self._runner = runner or subprocess.run

    def is_local(self, target: RemoteTarget) -> bool:
        return self.context.is_local_for(target)

    def argv(self, target: RemoteTarget, command: str) -> List[str]:
        """Línea de comando real (bash local o ssh)."""
        if target.path_prefix:
            path = ":".join(target.path_prefix)
            command = f'export PATH="{path}:$PATH" && {command}'
        if self.is_local(target):
            return ["bash", "-lc", command]
        options = list(SSH_OPTIONS)
        key = target.resolved_key()
        if key:
            options.extend(["-i", str(key)])
        destination = f"{target.user}@{target.host}" if target.user else target.host
        return ["ssh", *options, destination, command]

    def exec(
        self,
        target: RemoteTarget,
        command: str,
        timeout: Optional[int] = None,
        input: Optional[str] = None,
    ) -> str:
        """
        Ejecuta un comando contra el target.

        Args:
            target: Target destino
            command: Comando de shell
            timeout: Timeout en segundos (default_timeout si no se indica)
            input: Texto a enviar por stdin

        Returns:
            stdout del comando

        Raises:
            RemoteExecError: exit != 0, timeout o binario (ssh/bash) no encontrado
        """
        argv = self.argv(target, command)
        if self.console:
            self.console.print(f"[dim]→ {target.label}: {command}[/dim]")
        try:
            result = self._runner(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout or self.default_timeout,
                input=input,
                check=False,
            )
        except subprocess.TimeoutExpired:
            raise RemoteExecError(target.label, command, None, "Timeout al ejecutar comando")
        except FileNotFoundError:
            raise RemoteExecError(target.label, command, 127, f"Comando {argv[0]} no encontrado")

        if result.returncode != 0:
            raise RemoteExecError(
                target.label,
                command,
                result.returncode,
                result.stderr or result.stdout or "",
                stdout=result.stdout or "",
            )
        return result.stdout or ""

    def probe(self, target: RemoteTarget, command: str, timeout: int = PROBE_TIMEOUT) -> bool:
        """Comando tipo check: timeout o fallo cuentan como 'no presente', nunca como fatal."""
        try:
            self.exec(target, command, timeout=timeout)
            return True
        except RemoteExecError:
            return False

    def ensure_installed(self, target: RemoteTarget, check: str, install: str, name: str = "") -> bool:
        """
        Check-then-install idempotente: nunca reinstala si el check pasa.

        Returns:
            True si ya estaba o quedó instalado (verificado con un segundo check)
        """
        label = name or check
        if self.probe(target, check):
            if self.console:
                self.console.print(f"  [dim]{label} ya presente en {target.label}[/dim]")
            return True
        if self.console:
            self.console.print(f"  [cyan]Instalando {label} en {target.label}...[/cyan]")
        self.exec(target, install, timeout=INSTALL_TIMEOUT)
        installed = self.probe(target, check)
        if self.console:
            if installed:
                self.console.print(f"  [green]✔[/green] {label} instalado")
            else:
                self.console.print(f"  [red]✘ {label} no quedó disponible tras instalar[/red]")
        return installed

    def put_file(self, target: RemoteTarget, path: str, content: str) -> None:
        """Escribe un archivo en el target (crea el directorio padre)."""
        parent = path.rsplit("/", 1)[0] if "/" in path else "."
        command = f"mkdir -p {shell_path(parent)} && cat > {shell_path(path)}"
        self.exec(target, command, input=content)

    def remove_file(self, target: RemoteTarget, path: str) -> None:
        self.exec(target, f"rm -f {shell_path(path)}")

    def file_exists(self, target: RemoteTarget, path: str) -> bool:
        return self.probe(target, f"test -f {shell_path(path)}")

    def _run_job(self, target: RemoteTarget, command: str) -> ExecResult:
        try:
            out = self.exec(target, command)
            return ExecResult(target=target, command=command, ok=True, stdout=out)
        except RemoteExecError as e:
            return ExecResult(target=target, command=command, ok=False, error=e)

    def exec_many(self, jobs: Sequence[Tuple[RemoteTarget, str]], max_workers: int = 4) -> List[ExecResult]:
        """
        Ejecuta jobs independientes en paralelo, acotado por max_workers para no
        saturar conexiones SSH. Devuelve resultados en el orden de entrada.
        """
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            futures = [pool.submit(self._run_job, target, command) for target, command in jobs]
            return [f.result() for f in futures]
