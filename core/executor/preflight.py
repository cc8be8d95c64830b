"""
core/executor/preflight.py
Validação estrutural do plano antes de qualquer portão ou mutação.

Todas as ações que serão despachadas têm a forma checada aqui; um plano
com uma ação malformada na posição N não executa as ações 1..N-1.
"""

from __future__ import annotations

from core.constants import MUTATION_ACTION_TYPES
from core.exceptions import ValidationError
from core.executor.actions import ACTION_HANDLERS, validate_action
from core.schemas import Plan
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)


def preflight(plan: Plan) -> None:
    """
    Garante que o plano é dry-run, que todo tipo de ação é conhecido e que
    cada ação despachável tem forma válida.

    Raises:
        ValidationError: na primeira violação encontrada.
    """
    if plan.dry_run is not True:
        raise ValidationError("O executor só aceita planos dry-run.")

    for index, action in enumerate(plan.actions, start=1):
        if action.type not in ACTION_HANDLERS:
            raise ValidationError(
                f"Tipo de ação não suportado na posição {index}: '{action.type}'."
            )

    for index, action in enumerate(plan.actions, start=1):
        # Mutações não executáveis são puladas pelo runner
        if action.type in MUTATION_ACTION_TYPES and not action.executable:
            continue
        try:
            validate_action(action)
        except ValidationError as exc:
            raise ValidationError(f"Ação {index} inválida: {exc}") from exc

    logger.info("Preflight aprovado: %d ação(ões).", len(plan.actions))
