"""
core/executor/actions/
Registro de handlers indexado pelo tipo da ação, e dos validadores de
forma usados pelo preflight.
"""

from __future__ import annotations

from typing import Callable

from core.constants import (
    ACTION_MANUAL_REVIEW,
    ACTION_NO_OP,
    ACTION_RELEASE_PORT,
    ACTION_RESERVE_PORT,
    ACTION_REVIEW_GAME_PORTS,
    ACTION_UPDATE_CONTAINER_PORTS,
)
from core.schemas import PlanAction

from .base import ActionContext, ActionHandler
from .informational import skip_informational
from .release_port import release_port
from .reserve_port import reserve_port, validate_reserve_action
from .update_container_ports import update_container_ports, validate_update_action

ACTION_HANDLERS: dict[str, ActionHandler] = {
    ACTION_MANUAL_REVIEW: skip_informational,
    ACTION_REVIEW_GAME_PORTS: skip_informational,
    ACTION_NO_OP: skip_informational,
    ACTION_RESERVE_PORT: reserve_port,
    ACTION_RELEASE_PORT: release_port,
    ACTION_UPDATE_CONTAINER_PORTS: update_container_ports,
}

# Checagens puras de forma; nunca tocam runtime nem upstream
ACTION_VALIDATORS: dict[str, Callable[[PlanAction], None]] = {
    ACTION_RESERVE_PORT: validate_reserve_action,
    ACTION_UPDATE_CONTAINER_PORTS: validate_update_action,
}


def validate_action(action: PlanAction) -> None:
    """Aplica o validador do tipo, se houver. Levanta ValidationError."""
    validator = ACTION_VALIDATORS.get(action.type)
    if validator is not None:
        validator(action)


__all__ = [
    "ACTION_HANDLERS",
    "ACTION_VALIDATORS",
    "ActionContext",
    "ActionHandler",
    "validate_action",
]
