"""
core/executor/confirm.py
Portões de confirmação explícita do operador.

Dois portões distintos: aprovação do plano (``APPLY``) e ciência de
downtime antes de mutações no runtime.
"""

from __future__ import annotations

from typing import Callable, Protocol

from core.constants import APPLY_PHRASE, DOWNTIME_PHRASE
from core.schemas import Plan


class Confirmer(Protocol):
    def confirm_apply(self, plan: Plan) -> bool: ...

    def confirm_downtime(self) -> bool: ...


class ConsoleConfirmer:
    """Confirmação interativa no terminal (frases digitadas exatamente)."""

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ) -> None:
        self._input = input_fn
        self._output = output_fn

    def confirm_apply(self, plan: Plan) -> bool:
        self._output("\nVocê está prestes a APLICAR as seguintes ações:\n")
        for index, action in enumerate(plan.actions, start=1):
            self._output(f" {index}. {action.type} → {action.container}")
        self._output(
            "\nIsto pode alterar o registry upstream e/ou o estado dos containers.\n"
            f'Digite "{APPLY_PHRASE}" para continuar:'
        )
        return self._input("> ").strip() == APPLY_PHRASE

    def confirm_downtime(self) -> bool:
        self._output(
            "\nATENÇÃO: a mutação vai PARAR e RECRIAR containers.\n"
            "Downtime é esperado. Rollback é manual.\n\n"
            "Digite EXATAMENTE o texto abaixo para continuar:\n\n"
            f"{DOWNTIME_PHRASE}\n"
        )
        return self._input("> ").strip() == DOWNTIME_PHRASE
