"""Testes do CLI (main.py) com o estado upstream substituído."""

from __future__ import annotations

import io
import json

import pytest

import main
from core.classifier import classify
from core.executor import save_plan
from core.plan_builder import build_plan
from core.schemas import State


@pytest.fixture
def patched_state(monkeypatch, sample_state: State) -> State:
    monkeypatch.setattr(main, "load_state", lambda *args, **kwargs: sample_state)
    return sample_state


def _web1_plan(state: State):
    overrides = {"web1": "apps"}
    return build_plan(classify(state, overrides), state, overrides, {"web1": True})


class TestPlanCommands:
    def test_plan_show_json(self, patched_state, capsys):
        assert main.main(["plan", "show", "--json"]) == main.EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["dryRun"] is True
        assert {a["container"] for a in data["actions"]} == {"web1", "mc-server", "mystery"}
        assert data["executableCount"] == 0

    def test_plan_show_com_intencao(self, patched_state, tmp_path, capsys):
        intent = tmp_path / "intent.json"
        intent.write_text(
            json.dumps({"categoryOverrides": {"web1": "apps"}, "policyEnforcement": {"web1": True}}),
            encoding="utf-8",
        )
        assert main.main(["plan", "show", "--intent", str(intent)]) == main.EXIT_OK
        out = capsys.readouterr().out
        assert "update-container-ports" in out
        assert "DRY-RUN" in out

    def test_intencao_invalida_e_erro(self, patched_state, tmp_path, capsys):
        intent = tmp_path / "intent.json"
        intent.write_text("[1, 2]", encoding="utf-8")
        assert main.main(["plan", "show", "--intent", str(intent)]) == main.EXIT_ERROR
        assert "Erro:" in capsys.readouterr().err

    def test_save_e_diff(self, patched_state, tmp_path, capsys):
        path = tmp_path / "plan.json"
        assert main.main(["plan", "save", str(path)]) == main.EXIT_OK
        assert json.loads(path.read_text(encoding="utf-8"))["generatedAt"] is not None

        save_plan(_web1_plan(patched_state), path)
        capsys.readouterr()
        assert main.main(["plan", "diff", str(path)]) == main.EXIT_OK
        out = capsys.readouterr().out
        assert "8080:80/tcp" in out
        assert "5000:80/tcp" in out

    def test_analyze(self, patched_state, capsys):
        assert main.main(["analyze"]) == main.EXIT_OK
        report = json.loads(capsys.readouterr().out)
        assert report["summary"]["networks"]["containers"] == 3


class TestExecuteCommand:
    def test_sem_apply_e_negado(self, tmp_path, patched_state, capsys):
        path = save_plan(_web1_plan(patched_state), tmp_path / "plan.json")
        assert main.main(["execute", "--from-plan", str(path)]) == main.EXIT_ERROR
        assert "apply" in capsys.readouterr().err

    def test_mutacao_sem_allow_mutation_e_negada(self, tmp_path, patched_state, capsys):
        path = save_plan(_web1_plan(patched_state), tmp_path / "plan.json")
        code = main.main(["execute", "--from-plan", str(path), "--apply", "--yes"])
        assert code == main.EXIT_ERROR
        assert "allow-mutation" in capsys.readouterr().err

    def test_confirmacao_negada_aborta(self, tmp_path, patched_state, monkeypatch, capsys):
        path = save_plan(_web1_plan(patched_state), tmp_path / "plan.json")
        monkeypatch.setattr("sys.stdin", io.StringIO("nao\n"))
        code = main.main(["execute", "--from-plan", str(path), "--apply"])
        assert code == main.EXIT_ABORTED
        assert "apply-confirmation" in capsys.readouterr().out

    def test_plano_informativo_conclui_sem_runtime(self, tmp_path, patched_state, capsys):
        plan = build_plan(classify(patched_state), patched_state)
        path = save_plan(plan, tmp_path / "plan.json")
        code = main.main(["execute", "--from-plan", str(path), "--apply", "--yes"])
        assert code == main.EXIT_OK
        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "completed"
        assert {r["status"] for r in result["results"]} == {"skipped"}


class TestSnapshotCommands:
    def test_lista_vazia(self, tmp_path, capsys):
        code = main.main(["snapshots", "--snapshots-dir", str(tmp_path), "list"])
        assert code == main.EXIT_OK
        assert "Nenhum snapshot encontrado." in capsys.readouterr().out

    def test_restore_plan_inexistente_e_erro(self, tmp_path, capsys):
        code = main.main(
            ["snapshots", "--snapshots-dir", str(tmp_path), "restore-plan", "nope", "--offline"]
        )
        assert code == main.EXIT_ERROR

    def test_cleanup(self, tmp_path, capsys):
        code = main.main(["snapshots", "--snapshots-dir", str(tmp_path), "cleanup", "--days", "7"])
        assert code == main.EXIT_OK
        assert "0 snapshot(s) removido(s)." in capsys.readouterr().out

    def test_sem_comando_mostra_ajuda(self, capsys):
        assert main.main([]) == main.EXIT_ERROR
        assert "portsentinel" in capsys.readouterr().out
