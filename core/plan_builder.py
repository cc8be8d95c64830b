"""
core/plan_builder.py
────────────────────
Transforma classificação + intenção do usuário em um plano auditável.

Design Decisions
────────────────
1. Função pura e idempotente:
   Mesma entrada produz o mesmo plano, sem I/O e sem timestamp embutido.
   Quem persiste ou exibe o plano (CLI, API) carimba ``generatedAt``.

2. Ordem de decisão por container (primeira regra que casa vence):
       a) categoria unknown                     → manual-review (blocking)
       b) confiança < 0.9                       → manual-review (blocking)
       c) games                                 → review-game-ports (blocking)
       d) system                                → no-op (protected)
       e) apps com política incremental         → update-container-ports | no-op
       f) demais                                → no-op (no-policy)

   Override de categoria sempre força confiança 1.0.

3. Layout incremental compartilhado:
   Containers apps elegíveis e com opt-in são ordenados por nome e
   consomem um contador único a partir de ``startPort``. Cada binding TCP
   recebe a próxima porta host (porta interna preservada); bindings UDP
   são mantidos como estão.

4. Ações de manual-review e review-game-ports nunca são executáveis.
   Mutação executável só é emitida para container apps em execução.
"""

from __future__ import annotations

from typing import Mapping, Optional

from core.constants import (
    ACTION_MANUAL_REVIEW,
    ACTION_NO_OP,
    ACTION_REVIEW_GAME_PORTS,
    ACTION_UPDATE_CONTAINER_PORTS,
    CATEGORY_APPS,
    CATEGORY_GAMES,
    CATEGORY_SYSTEM,
    CATEGORY_UNKNOWN,
    INCREMENTAL_START_PORT,
    MIN_SAFE_CONFIDENCE,
    OVERRIDE_CONFIDENCE,
)
from core.policies import (
    GAMES_PORT_REVIEW,
    SYSTEM_PROTECTION,
    UNKNOWN_CLASSIFICATION,
    get_policies_for_category,
)
from core.schemas import (
    Classification,
    ClassificationResult,
    Container,
    Plan,
    PlanAction,
    PolicyContext,
    PortBinding,
    State,
)

LOW_CONFIDENCE = "low-confidence-classification"
NO_POLICY = "no-policy"


# ── Helpers ───────────────────────────────────────────────────


def _effective(
    item: Classification, overrides: Mapping[str, str]
) -> tuple[str, Optional[float]]:
    """Categoria e confiança efetivas, já com o override aplicado."""
    override = overrides.get(item.name)
    if override:
        return override, OVERRIDE_CONFIDENCE
    return item.category or CATEGORY_UNKNOWN, item.confidence


def _is_eligible_app(category: str, confidence: Optional[float]) -> bool:
    return (
        category == CATEGORY_APPS
        and confidence is not None
        and confidence >= MIN_SAFE_CONFIDENCE
    )


def generate_incremental_layout(
    containers: list[Container], start_port: int = INCREMENTAL_START_PORT
) -> dict[str, list[PortBinding]]:
    """
    Calcula o layout incremental para os containers informados.

    >>> c = Container(name="web1", ports=[PortBinding(host=8080, container=80)])
    >>> generate_incremental_layout([c])["web1"][0].host
    5000
    """
    layout: dict[str, list[PortBinding]] = {}
    next_port = start_port

    for container in sorted(containers, key=lambda c: c.name):
        desired: list[PortBinding] = []
        for binding in container.ports:
            if binding.protocol == "tcp":
                desired.append(
                    PortBinding(host=next_port, container=binding.container, protocol="tcp")
                )
                next_port += 1
        desired.extend(p for p in container.ports if p.protocol == "udp")
        layout[container.name] = desired
    return layout


def ports_changed(current: list[PortBinding], desired: list[PortBinding]) -> bool:
    """Comparação por conjunto: a ordem dos bindings não importa."""
    return {p.key for p in current} != {p.key for p in desired}


def _context(
    policy_id: str,
    status: str,
    enforceable: bool,
    reason: str,
    confidence: Optional[float],
) -> PolicyContext:
    return PolicyContext(
        id=policy_id,
        status=status,
        enforceable=enforceable,
        reason=reason,
        confidence_used=confidence,
    )


def _summarize(actions: list[PlanAction]) -> str:
    executable = sum(1 for a in actions if a.executable)
    return f"{len(actions)} action(s) proposed, {executable} executable"


# ── API pública ───────────────────────────────────────────────


def build_plan(
    classification: ClassificationResult,
    state: Optional[State] = None,
    overrides: Optional[Mapping[str, str]] = None,
    policy_enforcement: Optional[Mapping[str, bool]] = None,
) -> Plan:
    """
    Avalia as políticas e devolve o plano (sempre dry-run).

    Args:
        classification:     Resultado de ``classify``.
        state:              Estado atual; sem ele nenhuma mutação é proposta.
        overrides:          ``{nome: categoria}`` validado.
        policy_enforcement: ``{nome: bool}`` de opt-in validado.
    """
    overrides = overrides or {}
    enforcement = policy_enforcement or {}
    containers = state.container_by_name() if state is not None else {}

    effective = {
        item.name: _effective(item, overrides) for item in classification.containers
    }

    opted_in_apps = [
        containers[name]
        for name, (category, confidence) in effective.items()
        if _is_eligible_app(category, confidence)
        and enforcement.get(name) is True
        and name in containers
    ]
    layout = generate_incremental_layout(opted_in_apps)

    actions: list[PlanAction] = []
    seen: set[str] = set()

    for item in classification.containers:
        name = item.name
        if name in seen:
            continue
        seen.add(name)

        category, confidence = _effective(item, overrides)

        if category == CATEGORY_UNKNOWN:
            actions.append(PlanAction(
                type=ACTION_MANUAL_REVIEW,
                container=name,
                policy_context=_context(
                    UNKNOWN_CLASSIFICATION, "blocking", False,
                    "Container could not be confidently classified", confidence,
                ),
            ))
            continue

        if confidence is None or confidence < MIN_SAFE_CONFIDENCE:
            actions.append(PlanAction(
                type=ACTION_MANUAL_REVIEW,
                container=name,
                policy_context=_context(
                    LOW_CONFIDENCE, "blocking", False,
                    "Classifier confidence below safe threshold", confidence,
                ),
            ))
            continue

        if category == CATEGORY_GAMES:
            actions.append(PlanAction(
                type=ACTION_REVIEW_GAME_PORTS,
                container=name,
                policy_context=_context(
                    GAMES_PORT_REVIEW, "blocking", False,
                    "Game servers require explicit review of port assignments",
                    confidence,
                ),
            ))
            continue

        if category == CATEGORY_SYSTEM:
            actions.append(PlanAction(
                type=ACTION_NO_OP,
                container=name,
                policy_context=_context(
                    SYSTEM_PROTECTION, "protected", True,
                    "System containers are protected from automatic mutation",
                    confidence,
                ),
            ))
            continue

        policies = get_policies_for_category(category)
        policy = policies[0] if policies else None

        if category == CATEGORY_APPS and policy is not None and policy.mode == "incremental":
            actions.append(
                _apps_action(
                    name,
                    containers.get(name),
                    layout,
                    policy.id,
                    policy.enforceable and enforcement.get(name) is True,
                    confidence,
                )
            )
            continue

        actions.append(PlanAction(
            type=ACTION_NO_OP,
            container=name,
            policy_context=_context(
                NO_POLICY, NO_POLICY, False, "No applicable policy", confidence,
            ),
        ))

    return Plan.from_actions(actions, summary=_summarize(actions))


def _apps_action(
    name: str,
    container: Optional[Container],
    layout: dict[str, list[PortBinding]],
    policy_id: str,
    enforced: bool,
    confidence: Optional[float],
) -> PlanAction:
    if not enforced:
        return PlanAction(
            type=ACTION_NO_OP,
            container=name,
            policy_context=_context(
                policy_id, "enforceable-opt-in", True,
                "Policy may be enforced if user opts in", confidence,
            ),
        )

    if container is None or not container.running:
        return PlanAction(
            type=ACTION_NO_OP,
            container=name,
            policy_context=_context(
                policy_id, "blocked-not-running", True,
                "Container must be running for policy enforcement", confidence,
            ),
        )

    desired = layout.get(name, [])
    if not ports_changed(container.ports, desired):
        return PlanAction(
            type=ACTION_NO_OP,
            container=name,
            policy_context=_context(
                policy_id, "compliant", True,
                "Container already complies with incremental layout", confidence,
            ),
        )

    return PlanAction(
        type=ACTION_UPDATE_CONTAINER_PORTS,
        container=name,
        executable=True,
        from_=list(container.ports),
        to=desired,
        policy_context=_context(
            policy_id, "enforced", True,
            "Applying incremental port layout per user opt-in", confidence,
        ),
    )
