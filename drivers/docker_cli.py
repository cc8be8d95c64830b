"""
drivers/docker_cli.py
─────────────────────
Implementação de ``ContainerRuntime`` sobre o CLI do Docker.

Cada operação é uma chamada bloqueante a ``subprocess.run``. Sem retries:
exit code diferente de zero vira ``RuntimeCommandError`` com a saída
combinada (stdout + stderr) para auditoria.
"""

from __future__ import annotations

import json
import subprocess
from typing import Any, Optional

from core.base_runtime import ContainerRuntime
from core.constants import DOCKER_BIN, DOCKER_TIMEOUT_SECONDS
from core.exceptions import RuntimeCommandError


class DockerCLIRuntime(ContainerRuntime):
    """
    Runtime Docker via linha de comando.

    Exemplo::

        runtime = DockerCLIRuntime()
        if runtime.is_running("web1"):
            data = runtime.inspect("web1")
    """

    def __init__(
        self,
        binary: str = DOCKER_BIN,
        timeout_seconds: int = DOCKER_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__()
        self.binary = binary
        self.timeout_seconds = timeout_seconds

    def run(self, args: list[str]) -> str:
        """Executa ``docker <args>`` e devolve o stdout (sem espaços nas pontas)."""
        command = [self.binary, *args]
        self._logger.debug("Executando: %s", " ".join(command))
        try:
            proc = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise RuntimeCommandError(command, 127, f"binário não encontrado: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise RuntimeCommandError(
                command, -1, f"timeout após {self.timeout_seconds}s"
            ) from exc

        out = (proc.stdout or "").strip()
        err = (proc.stderr or "").strip()
        if proc.returncode != 0:
            output = "\n".join(part for part in (out, err) if part)
            raise RuntimeCommandError(command, proc.returncode, output)
        return out

    # ─── Leitura ──────────────────────────────────────────────────────────────

    def exists(self, name: str) -> bool:
        try:
            self.run(["inspect", "--type", "container", name])
        except RuntimeCommandError:
            return False
        return True

    def is_running(self, name: str) -> bool:
        return self.run(["inspect", "-f", "{{.State.Running}}", name]) == "true"

    def inspect(self, name: str) -> dict[str, Any]:
        raw = self.run(["inspect", name])
        parsed: Optional[Any]
        try:
            parsed = json.loads(raw)
        except ValueError:
            parsed = None
        if not isinstance(parsed, list) or not parsed or not isinstance(parsed[0], dict):
            raise RuntimeCommandError(
                [self.binary, "inspect", name], 0,
                f"inspect não retornou objeto para o container '{name}'",
            )
        return parsed[0]

    # ─── Mutação ──────────────────────────────────────────────────────────────

    def stop(self, name: str) -> None:
        self.run(["stop", name])

    def remove(self, name: str) -> None:
        self.run(["rm", name])

    def create(self, args: list[str]) -> None:
        self.run(["create", *args])

    def start(self, name: str) -> None:
        self.run(["start", name])

    def network_connect(self, network: str, name: str) -> None:
        self.run(["network", "connect", network, name])
