"""Testes do Plan Builder: ordem de decisão, layout incremental e pureza."""

from __future__ import annotations

from core.classifier import classify
from core.plan_builder import build_plan, generate_incremental_layout, ports_changed
from core.schemas import (
    Classification,
    ClassificationResult,
    Container,
    PortBinding,
    State,
)


def _classification(*items: tuple[str, str, float]) -> ClassificationResult:
    return ClassificationResult(
        containers=[
            Classification(name=name, category=category, confidence=confidence)
            for name, category, confidence in items
        ]
    )


def _web1_state(running: bool = True) -> State:
    return State(
        containers=[
            Container(
                name="web1",
                running=running,
                ports=[PortBinding(host=8080, container=80)],
            )
        ]
    )


class TestAppsEnforcement:
    def test_web1_com_opt_in_gera_uma_mutacao(self):
        plan = build_plan(
            _classification(("web1", "apps", 0.95)),
            _web1_state(),
            policy_enforcement={"web1": True},
        )

        assert plan.action_count == 1
        action = plan.actions[0]
        assert action.type == "update-container-ports"
        assert action.executable is True
        assert action.from_ == [PortBinding(host=8080, container=80, protocol="tcp")]
        assert action.to == [PortBinding(host=5000, container=80, protocol="tcp")]
        assert action.policy_context.status == "enforced"

    def test_json_do_plano_usa_chaves_externas(self):
        plan = build_plan(
            _classification(("web1", "apps", 0.95)),
            _web1_state(),
            policy_enforcement={"web1": True},
        )
        data = plan.to_json_dict()
        assert data["dryRun"] is True
        assert data["actionCount"] == 1
        assert data["executableCount"] == 1
        action = data["actions"][0]
        assert action["from"] == [{"host": 8080, "container": 80, "protocol": "tcp"}]
        assert action["policyContext"]["confidenceUsed"] == 0.95

    def test_sem_opt_in_e_no_op(self):
        plan = build_plan(_classification(("web1", "apps", 0.95)), _web1_state())
        action = plan.actions[0]
        assert action.type == "no-op"
        assert action.executable is False
        assert action.policy_context.status == "enforceable-opt-in"

    def test_container_parado_e_bloqueado(self):
        plan = build_plan(
            _classification(("web1", "apps", 0.95)),
            _web1_state(running=False),
            policy_enforcement={"web1": True},
        )
        assert plan.actions[0].policy_context.status == "blocked-not-running"
        assert plan.executable_count == 0

    def test_layout_ja_conforme_e_compliant(self):
        state = State(
            containers=[
                Container(name="web1", running=True, ports=[PortBinding(host=5000, container=80)])
            ]
        )
        plan = build_plan(
            _classification(("web1", "apps", 0.95)),
            state,
            policy_enforcement={"web1": True},
        )
        assert plan.actions[0].policy_context.status == "compliant"

    def test_sem_estado_nao_propoe_mutacao(self):
        plan = build_plan(
            _classification(("web1", "apps", 0.95)),
            policy_enforcement={"web1": True},
        )
        assert plan.actions[0].type == "no-op"
        assert plan.executable_count == 0


class TestDecisionOrder:
    def test_unknown_vira_manual_review(self):
        plan = build_plan(_classification(("mystery", "unknown", 0.2)))
        action = plan.actions[0]
        assert action.type == "manual-review"
        assert action.executable is False
        assert action.policy_context.id == "unknown-classification"

    def test_baixa_confianca_bloqueia_antes_da_categoria(self):
        plan = build_plan(
            _classification(("mc-server", "games", 0.8)),
            policy_enforcement={"mc-server": True},
        )
        action = plan.actions[0]
        assert action.type == "manual-review"
        assert action.policy_context.id == "low-confidence-classification"
        assert action.executable is False

    def test_games_confiantes_exigem_revisao(self):
        plan = build_plan(
            _classification(("mc-server", "games", 0.95)),
            policy_enforcement={"mc-server": True},
        )
        action = plan.actions[0]
        assert action.type == "review-game-ports"
        assert action.executable is False

    def test_system_e_protegido(self):
        plan = build_plan(
            _classification(("traefik", "system", 0.95)),
            policy_enforcement={"traefik": True},
        )
        action = plan.actions[0]
        assert action.type == "no-op"
        assert action.policy_context.status == "protected"

    def test_override_ignora_limiar_de_confianca(self):
        plan = build_plan(
            _classification(("web1", "apps", 0.4)),
            _web1_state(),
            overrides={"web1": "apps"},
            policy_enforcement={"web1": True},
        )
        assert plan.actions[0].type == "update-container-ports"
        assert plan.actions[0].policy_context.confidence_used == 1.0

    def test_nunca_muta_system_games_unknown(self, sample_state: State):
        enforcement = {c.name: True for c in sample_state.containers}
        plan = build_plan(
            classify(sample_state), sample_state, policy_enforcement=enforcement
        )
        assert all(not a.executable for a in plan.actions)


class TestLayout:
    def test_contador_compartilhado_em_ordem_de_nome(self):
        containers = [
            Container(name="zeta", ports=[PortBinding(host=9000, container=90)]),
            Container(
                name="alpha",
                ports=[
                    PortBinding(host=8080, container=80),
                    PortBinding(host=8443, container=443),
                    PortBinding(host=7777, container=7777, protocol="udp"),
                ],
            ),
        ]
        layout = generate_incremental_layout(containers, 5000)
        assert [b.host for b in layout["alpha"]] == [5000, 5001, 7777]
        assert layout["alpha"][2].protocol == "udp"
        assert [b.host for b in layout["zeta"]] == [5002]

    def test_ports_changed_ignora_ordem(self):
        a = [PortBinding(host=1, container=1), PortBinding(host=2, container=2)]
        assert ports_changed(a, list(reversed(a))) is False
        assert ports_changed(a, a[:1]) is True

    def test_build_plan_e_idempotente(self, sample_state: State):
        classification = classify(sample_state, {"web1": "apps"})
        first = build_plan(classification, sample_state, {"web1": "apps"}, {"web1": True})
        second = build_plan(classification, sample_state, {"web1": "apps"}, {"web1": True})
        assert first.to_json_dict() == second.to_json_dict()

    def test_nome_duplicado_gera_uma_acao(self):
        classification = _classification(("web1", "apps", 0.95), ("web1", "apps", 0.95))
        plan = build_plan(classification, _web1_state(), policy_enforcement={"web1": True})
        assert plan.action_count == 1

    def test_restricted_to_recalcula_contadores(self):
        classification = _classification(("web1", "apps", 0.95), ("mystery", "unknown", 0.2))
        plan = build_plan(classification, _web1_state(), policy_enforcement={"web1": True})
        restricted = plan.restricted_to(["mystery"])
        assert restricted.action_count == 1
        assert restricted.executable_count == 0
        assert plan.action_count == 2
