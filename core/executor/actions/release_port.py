"""
core/executor/actions/release_port.py
Libera as portas reservadas por um container na autoridade upstream.
"""

from __future__ import annotations

from typing import Any

from core.executor.actions.base import ActionContext
from core.schemas import PlanAction
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)


def release_port(action: PlanAction, ctx: ActionContext) -> dict[str, Any]:
    if ctx.dry_run:
        logger.info("DRY-RUN release-port %s", action.container)
        return {"status": "validated", "container": action.container}

    response = ctx.upstream.release_ports(action.container)
    logger.info("Portas liberadas para %s.", action.container)
    return {"status": "success", "container": action.container, "response": response}
