"""
Health check post-rollout: settle delay acotado + polling del estado del contenedor.

Sano = ni crash-loop ni salida inesperada. El polling se cancela si el proceso recibe
una señal de apagado (ExecutionContext.shutdown); en ese caso el intento falla.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from keel.core.errors import HealthCheckFailed, RemoteExecError
from keel.core.remote.gateway import RemoteGateway
from keel.core.remote.target import RemoteTarget


INSPECT_FORMAT = "{{.State.Status}}|{{.State.Restarting}}|{{.State.ExitCode}}"


@dataclass(frozen=True)
class ContainerState:
    status: str
    restarting: bool = False
    exit_code: int = 0

    @classmethod
    def parse(cls, output: str) -> "ContainerState":
        """Parsea la salida de docker inspect con INSPECT_FORMAT."""
        parts = output.strip().split("|")
        status = parts[0].strip().lower() if parts and parts[0].strip() else "unknown"
        restarting = len(parts) > 1 and parts[1].strip().lower() == "true"
        try:
            exit_code = int(parts[2]) if len(parts) > 2 else 0
        except ValueError:
            exit_code = 0
        return cls(status=status, restarting=restarting, exit_code=exit_code)

    @property
    def crash_loop(self) -> bool:
        return self.restarting or self.status == "restarting"

    @property
    def unexpected_exit(self) -> bool:
        return self.status in ("exited", "dead")

    @property
    def healthy(self) -> bool:
        return self.status == "running" and not self.crash_loop

    def describe(self) -> str:
        if self.crash_loop:
            return "crash-loop (Restarting)"
        if self.unexpected_exit:
            return f"{self.status} (exit {self.exit_code})"
        return self.status


class HealthMonitor:
    """Espera a que un contenedor quede sano."""

    def __init__(
        self,
        settle_delay: float = 10.0,
        poll_interval: float = 3.0,
        timeout: float = 120.0,
        crash_loop_limit: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settle_delay = settle_delay
        self.poll_interval = poll_interval
        self.timeout = timeout
        # muestras seguidas en crash-loop que bastan para fallar sin esperar el timeout
        self.crash_loop_limit = crash_loop_limit
        self._clock = clock

    def inspect(self, gateway: RemoteGateway, target: RemoteTarget, container: str) -> ContainerState:
        out = gateway.exec(target, f"docker inspect -f '{INSPECT_FORMAT}' {container}", timeout=30)
        return ContainerState.parse(out)

    def wait_healthy(
        self,
        gateway: RemoteGateway,
        target: RemoteTarget,
        container: str,
        cancel: threading.Event,
    ) -> ContainerState:
        """
        Raises:
            HealthCheckFailed: salida inesperada, crash-loop sostenido (crash_loop_limit
                muestras seguidas), no sano al vencer el timeout, o cancelación por señal de apagado
        """
        if cancel.wait(self.settle_delay):
            raise HealthCheckFailed(f"{container}: health check cancelado durante el settle delay")

        deadline = self._clock() + self.timeout
        last: Optional[ContainerState] = None
        last_error: Optional[str] = None
        crash_samples = 0
        while True:
            try:
                state = self.inspect(gateway, target, container)
            except RemoteExecError as e:
                state = None
                last_error = str(e)
            if state is not None:
                if state.healthy:
                    return state
                if state.unexpected_exit:
                    raise HealthCheckFailed(f"{container} terminó inesperadamente: {state.describe()}")
                crash_samples = crash_samples + 1 if state.crash_loop else 0
                if self.crash_loop_limit and crash_samples >= self.crash_loop_limit:
                    raise HealthCheckFailed(
                        f"{container} en crash-loop: {state.describe()} ({crash_samples} muestras seguidas)"
                    )
                last = state

            if self._clock() >= deadline:
                seen = last.describe() if last else (last_error or "sin estado")
                raise HealthCheckFailed(
                    f"{container} no quedó sano en {self.timeout:.0f}s (último estado: {seen})"
                )
            if cancel.wait(self.poll_interval):
                raise HealthCheckFailed(f"{container}: health check cancelado por señal de apagado")
