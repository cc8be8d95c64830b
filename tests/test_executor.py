"""Testes do executor: portões, preflight, handlers e auditoria."""

from __future__ import annotations

import pytest

from core.exceptions import GateDenied, PreconditionFailed, RuntimeCommandError, ValidationError
from core.executor import ConsoleConfirmer, ExecutorOptions, load_plan, run_executor, save_plan
from core.executor.actions.update_container_ports import (
    build_create_args,
    extract_published_ports,
    secondary_networks,
)
from core.schemas import Plan, PlanAction, PortBinding
from tests.conftest import FakeRuntime, make_inspect


def _web1_plan(from_host: int = 8080, to_host: int = 5000) -> Plan:
    action = PlanAction(
        type="update-container-ports",
        container="web1",
        executable=True,
        from_=[PortBinding(host=from_host, container=80)],
        to=[PortBinding(host=to_host, container=80)],
    )
    return Plan.from_actions([action], summary="1 action(s) proposed, 1 executable")


def _options(plan, runtime, audit_log, upstream, **overrides) -> ExecutorOptions:
    fields = dict(
        apply=True,
        plan_object=plan,
        yes=True,
        allow_mutation=True,
        mutation_confirmed=True,
        runtime=runtime,
        audit_log=audit_log,
        upstream=upstream,
    )
    fields.update(overrides)
    return ExecutorOptions(**fields)


class ScriptedConfirmer:
    def __init__(self, apply: bool = True, downtime: bool = True) -> None:
        self.apply = apply
        self.downtime = downtime

    def confirm_apply(self, plan):
        return self.apply

    def confirm_downtime(self):
        return self.downtime


class TestGates:
    def test_sem_apply_e_negado(self, web1_runtime, audit_log, fake_upstream):
        opts = _options(_web1_plan(), web1_runtime, audit_log, fake_upstream, apply=False)
        with pytest.raises(GateDenied) as info:
            run_executor(opts)
        assert info.value.gate == "apply"
        assert audit_log.read()[-1]["event"] == "denied"
        assert web1_runtime.calls == []

    def test_tipo_desconhecido_falha_no_preflight(self, web1_runtime, audit_log, fake_upstream):
        plan = Plan.from_actions(
            [PlanAction(type="format-disk", container="web1")], summary="x"
        )
        with pytest.raises(ValidationError):
            run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))

    def test_plano_nao_dry_run_e_rejeitado(self, web1_runtime, audit_log, fake_upstream):
        plan = _web1_plan().model_copy(update={"dry_run": False})
        with pytest.raises(ValidationError):
            run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))

    def test_mutacao_sem_allow_mutation(self, web1_runtime, audit_log, fake_upstream):
        opts = _options(_web1_plan(), web1_runtime, audit_log, fake_upstream, allow_mutation=False)
        with pytest.raises(GateDenied) as info:
            run_executor(opts)
        assert info.value.gate == "allow-mutation"
        assert "allow-mutation" in str(info.value)
        assert web1_runtime.mutating_calls() == []

    def test_confirmacao_negativa_aborta(self, web1_runtime, audit_log, fake_upstream):
        opts = _options(
            _web1_plan(), web1_runtime, audit_log, fake_upstream,
            yes=False, confirmer=ScriptedConfirmer(apply=False),
        )
        result = run_executor(opts)
        assert result.status == "aborted"
        assert result.aborted_at == "apply-confirmation"
        assert audit_log.read()[-1]["event"] == "aborted"
        assert web1_runtime.calls == []

    def test_downtime_negado_aborta(self, web1_runtime, audit_log, fake_upstream):
        opts = _options(
            _web1_plan(), web1_runtime, audit_log, fake_upstream,
            mutation_confirmed=False, confirmer=ScriptedConfirmer(downtime=False),
        )
        result = run_executor(opts)
        assert result.aborted_at == "downtime-confirmation"
        assert web1_runtime.mutating_calls() == []

    def test_console_confirmer_exige_frase_exata(self):
        answers = iter(["APPLY", "i understand"])
        confirmer = ConsoleConfirmer(input_fn=lambda _: next(answers), output_fn=lambda _: None)
        assert confirmer.confirm_apply(_web1_plan()) is True
        assert confirmer.confirm_downtime() is False


class TestUpdateContainerPorts:
    def test_recria_container_com_novas_portas(self, web1_runtime, audit_log, fake_upstream):
        events: list[str] = []
        opts = _options(
            _web1_plan(), web1_runtime, audit_log, fake_upstream,
            observer=lambda event_type, payload: events.append(event_type),
        )
        result = run_executor(opts)

        assert result.status == "completed"
        assert result.results[0] == {"status": "success", "container": "web1", "ports": ["5000:80/tcp"]}
        assert web1_runtime.mutating_calls() == ["stop", "remove", "create", "start"]
        assert extract_published_ports(web1_runtime.containers["web1"]) == [
            PortBinding(host=5000, container=80)
        ]
        assert events == ["job:start", "action:start", "action:success", "job:complete"]
        assert audit_log.read()[-1]["event"] == "completed"

    def test_drift_no_preflight_nao_muta(self, audit_log, fake_upstream):
        runtime = FakeRuntime({"web1": make_inspect("web1", [(8081, 80, "tcp")])})
        with pytest.raises(PreconditionFailed):
            run_executor(_options(_web1_plan(), runtime, audit_log, fake_upstream))
        assert runtime.mutating_calls() == []
        assert audit_log.read()[-1]["event"] == "failed"

    def test_binding_extra_tambem_e_drift(self, audit_log, fake_upstream):
        runtime = FakeRuntime(
            {"web1": make_inspect("web1", [(8080, 80, "tcp"), (8443, 443, "tcp")])}
        )
        with pytest.raises(PreconditionFailed):
            run_executor(_options(_web1_plan(), runtime, audit_log, fake_upstream))
        assert runtime.mutating_calls() == []

    def test_container_parado_e_recusado(self, web1_runtime, audit_log, fake_upstream):
        web1_runtime.running.clear()
        with pytest.raises(PreconditionFailed):
            run_executor(_options(_web1_plan(), web1_runtime, audit_log, fake_upstream))
        assert web1_runtime.calls == []

    def test_dry_run_valida_sem_mutar(self, web1_runtime, audit_log, fake_upstream):
        opts = _options(
            _web1_plan(), web1_runtime, audit_log, fake_upstream,
            dry_run=True, allow_mutation=False,
        )
        result = run_executor(opts)
        assert result.results[0]["status"] == "validated"
        assert web1_runtime.calls == [("inspect", "web1")]

    def test_falha_no_create_interrompe_e_propaga(self, web1_runtime, audit_log, fake_upstream):
        web1_runtime.fail_on = "create"
        events: list[str] = []
        opts = _options(
            _web1_plan(), web1_runtime, audit_log, fake_upstream,
            observer=lambda event_type, payload: events.append(event_type),
        )
        with pytest.raises(RuntimeCommandError):
            run_executor(opts)
        assert web1_runtime.mutating_calls() == ["stop", "remove", "create"]
        assert events[-2:] == ["action:error", "job:failed"]

    def test_acao_delta_de_rollback(self, audit_log, fake_upstream):
        runtime = FakeRuntime({"c1": make_inspect("c1", [(5000, 80, "tcp"), (53, 53, "udp")])})
        action = PlanAction(
            type="update-container-ports",
            container="c1",
            executable=True,
            protocol="tcp",
            container_port=80,
            from_=5000,
            to=8080,
        )
        plan = Plan.from_actions([action], kind="rollback", summary="Rollback 1 port change(s)")
        run_executor(_options(plan, runtime, audit_log, fake_upstream))

        ports = {b.key for b in extract_published_ports(runtime.containers["c1"])}
        assert ports == {(8080, 80, "tcp"), (53, 53, "udp")}

    def test_acao_delta_com_from_divergente(self, audit_log, fake_upstream):
        runtime = FakeRuntime({"c1": make_inspect("c1", [(6000, 80, "tcp")])})
        action = PlanAction(
            type="update-container-ports", container="c1", executable=True,
            protocol="tcp", container_port=80, from_=5000, to=8080,
        )
        plan = Plan.from_actions([action], kind="rollback", summary="x")
        with pytest.raises(PreconditionFailed):
            run_executor(_options(plan, runtime, audit_log, fake_upstream))
        assert runtime.mutating_calls() == []

    def test_acao_nao_executavel_e_pulada(self, web1_runtime, audit_log, fake_upstream):
        plan = _web1_plan()
        plan.actions[0].executable = False
        result = run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))
        assert result.results[0]["status"] == "skipped"
        assert web1_runtime.calls == []


class TestInformationalAndRegistry:
    def test_acoes_informativas_sao_puladas(self, web1_runtime, audit_log, fake_upstream):
        plan = Plan.from_actions(
            [
                PlanAction(type="manual-review", container="x"),
                PlanAction(type="review-game-ports", container="y"),
                PlanAction(type="no-op", container="z"),
            ],
            summary="3 action(s) proposed, 0 executable",
        )
        result = run_executor(
            _options(plan, web1_runtime, audit_log, fake_upstream, allow_mutation=False)
        )
        assert [r["status"] for r in result.results] == ["skipped"] * 3

    def test_reserve_e_release_chamam_upstream(self, web1_runtime, audit_log, fake_upstream):
        ports = [PortBinding(host=5000, container=80)]
        plan = Plan.from_actions(
            [
                PlanAction(type="reserve-port", container="web1", executable=True, ports=ports),
                PlanAction(type="release-port", container="web1", executable=True, ports=ports),
            ],
            summary="2",
        )
        run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))
        assert fake_upstream.allocated == [
            ("web1", [{"host": 5000, "container": 80, "protocol": "tcp"}])
        ]
        assert fake_upstream.released == ["web1"]

    def test_reserve_sem_portas_e_invalido(self, web1_runtime, audit_log, fake_upstream):
        plan = Plan.from_actions([PlanAction(type="reserve-port", container="web1")], summary="1")
        with pytest.raises(ValidationError):
            run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))


class TestPreflightShape:
    def test_segunda_acao_malformada_barra_a_primeira(self, audit_log, fake_upstream):
        runtime = FakeRuntime({
            "web1": make_inspect("web1", [(8080, 80, "tcp")]),
            "web2": make_inspect("web2", [(8081, 80, "tcp")]),
        })
        plan = Plan.from_actions(
            [
                _web1_plan().actions[0],
                PlanAction(
                    type="update-container-ports",
                    container="web2",
                    executable=True,
                    from_=[PortBinding(host=8081, container=80)],
                    to=[],
                ),
            ],
            summary="2",
        )
        with pytest.raises(ValidationError) as info:
            run_executor(_options(plan, runtime, audit_log, fake_upstream))
        assert "Ação 2" in str(info.value)
        assert runtime.calls == []
        assert runtime.mutating_calls() == []

    def test_reserve_malformado_depois_de_reserve_valido(self, web1_runtime, audit_log, fake_upstream):
        plan = Plan.from_actions(
            [
                PlanAction(
                    type="reserve-port", container="web1", executable=True,
                    ports=[PortBinding(host=5000, container=80)],
                ),
                PlanAction(type="reserve-port", container="web2", executable=True, ports=[]),
            ],
            summary="2",
        )
        with pytest.raises(ValidationError):
            run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))
        assert fake_upstream.allocated == []

    def test_delta_sem_from_nem_to_e_rejeitado(self, web1_runtime, audit_log, fake_upstream):
        action = PlanAction(
            type="update-container-ports", container="web1", executable=True,
            protocol="tcp", container_port=80,
        )
        plan = Plan.from_actions([action], kind="rollback", summary="1")
        with pytest.raises(ValidationError):
            run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))
        assert web1_runtime.calls == []

    def test_mutacao_nao_executavel_nao_e_validada(self, web1_runtime, audit_log, fake_upstream):
        action = PlanAction(type="update-container-ports", container="web1", to=[])
        plan = Plan.from_actions([action], summary="1")
        result = run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))
        assert result.results[0]["status"] == "skipped"


class TestRejectedAudit:
    def test_tipo_desconhecido_grava_rejected(self, web1_runtime, audit_log, fake_upstream):
        plan = Plan.from_actions([PlanAction(type="format-disk", container="web1")], summary="x")
        with pytest.raises(ValidationError):
            run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))
        entry = audit_log.read()[-1]
        assert entry["event"] == "rejected"
        assert "format-disk" in entry["error"]

    def test_plano_nao_dry_run_grava_rejected(self, web1_runtime, audit_log, fake_upstream):
        plan = _web1_plan().model_copy(update={"dry_run": False})
        with pytest.raises(ValidationError):
            run_executor(_options(plan, web1_runtime, audit_log, fake_upstream))
        assert [e["event"] for e in audit_log.read()] == ["rejected"]

    def test_arquivo_de_plano_ausente_grava_rejected(self, tmp_path, web1_runtime, audit_log, fake_upstream):
        opts = _options(
            None, web1_runtime, audit_log, fake_upstream, plan_path=tmp_path / "nope.json"
        )
        with pytest.raises(ValidationError):
            run_executor(opts)
        assert audit_log.read()[-1]["event"] == "rejected"


class TestObserverAndSequencing:
    def test_observador_que_falha_nao_interrompe(self, web1_runtime, audit_log, fake_upstream):
        def broken_observer(event_type, payload):
            raise RuntimeError("observador quebrado")

        result = run_executor(
            _options(_web1_plan(), web1_runtime, audit_log, fake_upstream, observer=broken_observer)
        )
        assert result.status == "completed"
        assert web1_runtime.mutating_calls() == ["stop", "remove", "create", "start"]
        assert audit_log.read()[-1]["event"] == "completed"

    def test_falha_na_primeira_acao_nao_executa_a_segunda(self, web1_runtime, audit_log, fake_upstream):
        web1_runtime.fail_on = "create"
        plan = Plan.from_actions(
            [
                _web1_plan().actions[0],
                PlanAction(
                    type="reserve-port", container="web1", executable=True,
                    ports=[PortBinding(host=5000, container=80)],
                ),
            ],
            summary="2",
        )
        events: list[tuple[str, dict]] = []
        opts = _options(
            plan, web1_runtime, audit_log, fake_upstream,
            observer=lambda event_type, payload: events.append((event_type, payload)),
        )
        with pytest.raises(RuntimeCommandError):
            run_executor(opts)

        assert fake_upstream.allocated == []
        started = [p["index"] for t, p in events if t == "action:start"]
        assert started == [0]
        entry = audit_log.read()[-1]
        assert entry["event"] == "failed"
        assert entry["failedAction"]["index"] == 0


class TestCreateArgs:
    def test_preserva_configuracao_e_troca_portas(self):
        inspect = make_inspect("web1", [(8080, 80, "tcp")])
        inspect["Config"]["Entrypoint"] = ["/init", "--verbose"]
        inspect["HostConfig"]["CapAdd"] = ["NET_ADMIN"]
        inspect["HostConfig"]["Privileged"] = True
        inspect["Mounts"] = [
            {"Type": "volume", "Name": "webdata", "Destination": "/var/www", "RW": False}
        ]

        args = build_create_args(inspect, [PortBinding(host=5000, container=80)])

        assert args[:2] == ["--name", "web1"]
        assert ["--restart", "unless-stopped"] == args[2:4]
        assert "-e" in args and "TZ=UTC" in args
        assert "webdata:/var/www:ro" in args
        assert ["--entrypoint", "/init"] == args[args.index("--entrypoint"):args.index("--entrypoint") + 2]
        assert "--privileged" in args
        assert ["-p", "5000:80/tcp"] == args[args.index("-p"):args.index("-p") + 2]
        assert "8080:80/tcp" not in args
        assert args[-3:] == ["acme/app:1.0", "--verbose", "serve"]

    def test_redes_secundarias(self):
        inspect = make_inspect("web1", [], network_mode="proxy", networks=["proxy", "db"])
        assert secondary_networks(inspect) == ["db"]
        host = make_inspect("web1", [], network_mode="host")
        assert secondary_networks(host) == []


class TestPlanIO:
    def test_salva_e_carrega_plano(self, tmp_path):
        path = save_plan(_web1_plan(), tmp_path / "plan.json")
        loaded = load_plan(plan_path=path)
        assert loaded.actions[0].to == [PortBinding(host=5000, container=80)]

    def test_arquivo_invalido(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text('{"actions": [{"container": "x"}]}', encoding="utf-8")
        with pytest.raises(ValidationError):
            load_plan(plan_path=bad)
        with pytest.raises(ValidationError):
            load_plan(plan_path=tmp_path / "missing.json")
        with pytest.raises(ValidationError):
            load_plan()
