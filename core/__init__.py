"""
core/
Núcleo do PortSentinel.

Contém:
- schemas.py               : Modelos Pydantic (estado, plano, job, snapshot).
- classifier.py            : Classificação heurística de containers por categoria.
- policies.py              : Registro estático de políticas por categoria.
- plan_builder.py          : Geração do plano dry-run (funções puras).
- rollback_plan_builder.py : Planos de rollback a partir de pré/pós-estado.
- diff_engine.py           : Diff de portas entre dois snapshots.
- snapshot_manager.py      : Persistência durável de snapshots de job.
- job_registry.py          : Registro de jobs em memória + canal de eventos.
- intent.py                : Validação de overrides, opt-in e requisições de job.
- analysis.py              : Colisões, drift do registry e postura de rede.
- renderers.py             : Saída de planos para o terminal.
- base_runtime.py          : Contrato abstrato do runtime de containers.
- executor/                : Portões de segurança e handlers de ação.
- services/                : Coleta de estado, cliente upstream e orquestração.
"""

from .classifier import classify
from .exceptions import PortSentinelError
from .plan_builder import build_plan
from .schemas import Container, Plan, PlanAction, PortBinding, State

__all__ = [
    "Container",
    "Plan",
    "PlanAction",
    "PortBinding",
    "PortSentinelError",
    "State",
    "build_plan",
    "classify",
]
