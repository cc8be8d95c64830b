"""
core/renderers.py
Renderização de planos para o terminal (resumo, diff e JSON).

Somente leitura: as funções devolvem strings; quem imprime é o CLI.
"""

from __future__ import annotations

import json

from core.schemas import Plan, PlanAction, PortBinding


def _ports(value: list[PortBinding] | int | None) -> str:
    if value is None:
        return "-"
    if isinstance(value, int):
        return str(value)
    return ", ".join(b.flag for b in value) or "[]"


def _action_line(index: int, action: PlanAction) -> str:
    line = f"{index:>2}. {action.type:<24} {action.container}"
    ctx = action.policy_context
    if ctx is not None:
        line += f"\n    Policy    : {ctx.id} ({ctx.status})"
        line += f"\n    Reason    : {ctx.reason}"
        if ctx.confidence_used is not None:
            line += f"\n    Confidence: {ctx.confidence_used:.2f}"
    elif action.reason:
        line += f"\n    Reason    : {action.reason}"
    return line


def render_console(plan: Plan) -> str:
    """Resumo legível do plano proposto."""
    lines = ["", "=== PortSentinel: Plano proposto (DRY-RUN) ===", ""]
    if plan.summary:
        lines += [plan.summary, ""]

    if not plan.actions:
        lines.append("Nenhuma ação proposta.")
        return "\n".join(lines)

    lines += [f"Ações propostas ({plan.action_count}, executáveis: {plan.executable_count}):", ""]
    for index, action in enumerate(plan.actions, start=1):
        lines += [_action_line(index, action), ""]
    lines.append("NOTA: apenas dry-run. Nenhuma alteração foi feita.")
    return "\n".join(lines)


def render_diff(plan: Plan) -> str:
    """Prévia das mudanças de porta (somente ações com from/to)."""
    lines = ["", "=== Mudanças propostas (DIFF / DRY-RUN) ===", ""]
    changes = [a for a in plan.actions if a.from_ is not None or a.to is not None]
    if not changes:
        lines.append("Nenhuma mudança proposta.")
        return "\n".join(lines)

    for index, action in enumerate(changes, start=1):
        lines.append(f"{index}. {action.type}")
        lines.append(f"   container : {action.container}")
        if action.container_port is not None:
            lines.append(f"   porta     : {action.container_port}/{action.protocol}")
        if action.reason:
            lines.append(f"   reason    : {action.reason}")
        lines.append(f"   from      : {_ports(action.from_)}")
        lines.append(f"   to        : {_ports(action.to)}")
        lines.append("")
    lines.append("NOTA: apenas prévia. Nenhuma alteração foi feita.")
    return "\n".join(lines)


def render_json(plan: Plan) -> str:
    return json.dumps(plan.to_json_dict(), indent=2)
