"""
core/executor/actions/informational.py
Handler das ações informativas (manual-review, review-game-ports, no-op).

Essas ações documentam uma decisão do planejador; o executor apenas as
registra como puladas.
"""

from __future__ import annotations

from typing import Any

from core.executor.actions.base import ActionContext
from core.schemas import PlanAction
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)


def skip_informational(action: PlanAction, ctx: ActionContext) -> dict[str, Any]:
    logger.info("Ação informativa '%s' em %s: nada a executar.", action.type, action.container)
    return {"status": "skipped", "type": action.type, "container": action.container}
