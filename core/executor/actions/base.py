"""
core/executor/actions/base.py
Contexto compartilhado pelos handlers de ação.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from core.base_runtime import ContainerRuntime
from core.schemas import PlanAction
from core.services.upstream_client import UpstreamClient


@dataclass(slots=True)
class ActionContext:
    """Dependências e modo de execução entregues a cada handler."""

    runtime: ContainerRuntime
    upstream: UpstreamClient
    dry_run: bool = False


ActionHandler = Callable[[PlanAction, ActionContext], dict[str, Any]]
