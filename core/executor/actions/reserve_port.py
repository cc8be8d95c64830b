"""
core/executor/actions/reserve_port.py
Reserva portas host na autoridade upstream.

Sem inspeção e sem mutação do runtime: toda a autoridade é delegada ao
upstream, e nenhuma pré-condição de estado vivo é verificada.
"""

from __future__ import annotations

from typing import Any

from core.exceptions import ValidationError
from core.executor.actions.base import ActionContext
from core.schemas import PlanAction
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)


def validate_reserve_action(action: PlanAction) -> None:
    if not action.ports:
        raise ValidationError(
            f"reserve-port em '{action.container}' exige ports[] não vazio."
        )


def reserve_port(action: PlanAction, ctx: ActionContext) -> dict[str, Any]:
    validate_reserve_action(action)

    ports = [p.to_json_dict() for p in action.ports]
    if ctx.dry_run:
        logger.info("DRY-RUN reserve-port %s: %s", action.container, ports)
        return {"status": "validated", "container": action.container, "ports": ports}

    response = ctx.upstream.allocate_ports(action.container, ports)
    logger.info("Portas reservadas para %s: %s", action.container, ports)
    return {"status": "success", "container": action.container, "response": response}
