"""
core/rollback_plan_builder.py
Constrói planos de rollback/restore a partir de dois estados de porta.

Somente portas: redes, env e volumes ficam fora. O plano gerado tem o
mesmo formato de um plano normal e passa pelo mesmo executor.

Chave de identidade: ``(container, protocol, containerPort)``.

    só no pós   → remover  (from=hostPós, to=None)
    só no pré   → adicionar (from=None,  to=hostPré)
    nos dois    → alterar  (from=hostPós, to=hostPré) se o host diferir

Remoções vêm primeiro, depois adições/alterações na ordem do pré-estado.
"""

from __future__ import annotations

from typing import Iterable, Optional

from core.constants import ACTION_UPDATE_CONTAINER_PORTS
from core.schemas import Plan, PlanAction, PortRecord


def _index(
    ports: Iterable[PortRecord], allowed: Optional[set[str]]
) -> dict[tuple[str, str, int], PortRecord]:
    indexed: dict[tuple[str, str, int], PortRecord] = {}
    for record in ports:
        if allowed is not None and record.container not in allowed:
            continue
        indexed[record.key] = record
    return indexed


def build_port_delta_actions(
    target_ports: Iterable[PortRecord],
    current_ports: Iterable[PortRecord],
    selected_containers: Optional[Iterable[str]] = None,
    reason: Optional[str] = None,
) -> list[PlanAction]:
    """
    Ações que levam ``current_ports`` de volta para ``target_ports``.

    ``selected_containers`` vazio ou None significa todos os containers.
    """
    selection = set(selected_containers or [])
    allowed = selection or None

    target = _index(target_ports, allowed)
    current = _index(current_ports, allowed)

    actions: list[PlanAction] = []

    for key, post in current.items():
        if key not in target:
            actions.append(PlanAction(
                type=ACTION_UPDATE_CONTAINER_PORTS,
                container=post.container,
                executable=True,
                protocol=post.protocol,
                container_port=post.container_port,
                from_=post.host,
                to=None,
                reason=reason,
            ))

    for key, pre in target.items():
        post = current.get(key)
        if post is not None and post.host == pre.host:
            continue
        actions.append(PlanAction(
            type=ACTION_UPDATE_CONTAINER_PORTS,
            container=pre.container,
            executable=True,
            protocol=pre.protocol,
            container_port=pre.container_port,
            from_=post.host if post is not None else None,
            to=pre.host,
            reason=reason,
        ))

    return actions


def build_rollback_plan(
    pre_ports: Iterable[PortRecord],
    post_ports: Iterable[PortRecord],
    selected_containers: Optional[Iterable[str]] = None,
) -> Plan:
    """
    Plano que reverte ``post_ports`` para ``pre_ports``.

    >>> pre = [PortRecord(container="c1", container_port=80, host=8080)]
    >>> post = [PortRecord(container="c1", container_port=80, host=5000)]
    >>> plan = build_rollback_plan(pre, post, ["c1"])
    >>> (plan.actions[0].from_, plan.actions[0].to)
    (5000, 8080)
    """
    actions = build_port_delta_actions(pre_ports, post_ports, selected_containers)
    return Plan.from_actions(
        actions,
        kind="rollback",
        summary=f"Rollback {len(actions)} port change(s)",
    )
