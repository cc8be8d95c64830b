"""
core/base_runtime.py
────────────────────
Define o contrato abstrato do runtime de containers usado pelo executor.

Design Decisions
────────────────
1. ABC (Abstract Base Class):
   ``ContainerRuntime`` não pode ser instanciado diretamente; o executor
   depende apenas desta interface. A implementação concreta (Docker CLI)
   fica em ``drivers/``; os testes usam um runtime falso em memória.

2. Operações mínimas e explícitas:
   exists, is_running, inspect (somente leitura) e stop, remove, create,
   start, network_connect (mutação). Nenhuma operação faz retry: a
   primeira falha propaga como ``RuntimeCommandError``.

3. Logging estruturado na base:
   Um logger nomeado com a classe concreta é criado automaticamente,
   permitindo filtrar os logs por implementação.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any


class ContainerRuntime(ABC):
    """
    Contrato para runtimes de containers.

    Subclasses devem implementar todos os métodos abaixo. Métodos de
    mutação lançam ``RuntimeCommandError`` em caso de falha.
    """

    def __init__(self) -> None:
        self._logger: logging.Logger = logging.getLogger(
            self.__class__.__module__ + "." + self.__class__.__name__
        )

    # ─── Leitura ──────────────────────────────────────────────────────────────

    @abstractmethod
    def exists(self, name: str) -> bool:
        """True se o container existe (em qualquer estado)."""

    @abstractmethod
    def is_running(self, name: str) -> bool:
        """True se o container está em execução."""

    @abstractmethod
    def inspect(self, name: str) -> dict[str, Any]:
        """
        Retorna o documento de inspeção do container.

        Formato esperado (subconjunto): ``Name``, ``Config`` (Image, Env,
        Labels, Cmd, Entrypoint, WorkingDir, User), ``HostConfig``
        (RestartPolicy, NetworkMode, Binds, CapAdd, CapDrop, Devices,
        Privileged, Sysctls), ``Mounts`` e ``NetworkSettings`` (Ports,
        Networks).
        """

    # ─── Mutação ──────────────────────────────────────────────────────────────

    @abstractmethod
    def stop(self, name: str) -> None: ...

    @abstractmethod
    def remove(self, name: str) -> None: ...

    @abstractmethod
    def create(self, args: list[str]) -> None:
        """Cria um container a partir dos argumentos de ``create``."""

    @abstractmethod
    def start(self, name: str) -> None: ...

    @abstractmethod
    def network_connect(self, network: str, name: str) -> None:
        """Conecta o container a uma rede adicional."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
