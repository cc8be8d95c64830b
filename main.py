"""
main.py
────────
Ponto de entrada CLI do PortSentinel.

Uso:
    python main.py plan show [--json] [--intent FILE]
    python main.py plan save FILE [--intent FILE]
    python main.py plan diff FILE
    python main.py analyze
    python main.py execute --from-plan FILE --apply [--yes] [--allow-mutation] [--dry-run]
    python main.py snapshots list
    python main.py snapshots cleanup [--days N]
    python main.py snapshots restore-plan ID [--containers a,b] [--save FILE]

``-v`` habilita logs de DEBUG no console. ``--intent`` aponta para um
JSON ``{"categoryOverrides": {...}, "policyEnforcement": {...}}``.
Nenhum comando além de ``execute --apply`` altera containers.

Códigos de saída:
    0  sucesso
    1  erro (validação, portão negado, upstream, runtime)
    3  abortado pelo operador em uma confirmação
"""

from __future__ import annotations

import argparse
import logging
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from core.analysis import analyze_state
from core.classifier import classify
from core.constants import SNAPSHOT_RETENTION_DAYS, UPSTREAM_BASE_URL
from core.exceptions import PortSentinelError, ValidationError
from core.executor import ExecutorOptions, load_plan, run_executor, save_plan
from core.intent import parse_overrides, parse_policy_enforcement
from core.plan_builder import build_plan
from core.renderers import render_console, render_diff, render_json
from core.schemas import Plan
from core.services.state_loader import load_state
from core.services.upstream_client import UpstreamClient
from core.snapshot_manager import SnapshotManager
from internalloggin.logger import set_console_level, setup_logger

logger = setup_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ABORTED = 3


# ── Helpers ───────────────────────────────────────────────────────────────────


def _read_intent(path: Optional[str]) -> tuple[dict[str, str], dict[str, bool]]:
    if not path:
        return {}, {}
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ValidationError(f"Falha ao ler intenção '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise ValidationError("O arquivo de intenção deve conter um objeto JSON.")
    return (
        parse_overrides(raw.get("categoryOverrides")),
        parse_policy_enforcement(raw.get("policyEnforcement")),
    )


def _current_plan(args: argparse.Namespace) -> Plan:
    overrides, enforcement = _read_intent(args.intent)
    state = load_state(args.upstream)
    plan = build_plan(classify(state, overrides), state, overrides, enforcement)
    return plan.model_copy(update={"generated_at": datetime.now(timezone.utc)})


def _containers(raw: Optional[str]) -> Optional[list[str]]:
    if not raw:
        return None
    return [name.strip() for name in raw.split(",") if name.strip()] or None


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


# ── Comandos ──────────────────────────────────────────────────────────────────


def _cmd_plan_show(args: argparse.Namespace) -> int:
    plan = _current_plan(args)
    print(render_json(plan) if args.json else render_console(plan))
    return EXIT_OK


def _cmd_plan_save(args: argparse.Namespace) -> int:
    path = save_plan(_current_plan(args), args.file)
    print(f"Plano salvo em {path}")
    return EXIT_OK


def _cmd_plan_diff(args: argparse.Namespace) -> int:
    print(render_diff(load_plan(plan_path=args.file)))
    return EXIT_OK


def _cmd_analyze(args: argparse.Namespace) -> int:
    _print_json(analyze_state(load_state(args.upstream)))
    return EXIT_OK


def _cmd_execute(args: argparse.Namespace) -> int:
    result = run_executor(
        ExecutorOptions(
            apply=args.apply,
            plan_path=args.from_plan,
            yes=args.yes,
            allow_mutation=args.allow_mutation,
            dry_run=args.dry_run,
            upstream=UpstreamClient(args.upstream),
        )
    )
    _print_json(result.to_json_dict())
    if result.status == "aborted":
        print(f"Execução abortada no portão '{result.aborted_at}'.")
        return EXIT_ABORTED
    return EXIT_OK


def _cmd_snapshots_list(args: argparse.Namespace) -> int:
    snapshots = SnapshotManager(args.snapshots_dir).list_snapshots()
    if not snapshots:
        print("Nenhum snapshot encontrado.")
        return EXIT_OK
    for snap in snapshots:
        print(
            f"{snap.directory:<40} {snap.kind:<10} "
            f"{snap.finished_at.isoformat()}  {', '.join(snap.selected_containers) or '-'}"
        )
    return EXIT_OK


def _cmd_snapshots_cleanup(args: argparse.Namespace) -> int:
    removed = SnapshotManager(args.snapshots_dir).cleanup_old_snapshots(args.days)
    print(f"{removed} snapshot(s) removido(s).")
    return EXIT_OK


def _cmd_snapshots_restore_plan(args: argparse.Namespace) -> int:
    manager = SnapshotManager(args.snapshots_dir)
    snapshot = manager.load_snapshot(args.snapshot_id)
    current = None if args.offline else load_state(args.upstream).port_records()
    plan = manager.create_restore_plan(snapshot, _containers(args.containers), current)

    if args.save:
        path = save_plan(plan, args.save)
        print(f"Plano de restore salvo em {path}")
    else:
        print(render_console(plan))
    return EXIT_OK


# ── Parser ────────────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portsentinel",
        description="PortSentinel: planejamento e aplicação de políticas de portas de containers.",
    )
    parser.add_argument(
        "--upstream", default=UPSTREAM_BASE_URL,
        help="URL base da autoridade upstream de estado.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Logs de DEBUG no console.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Comandos disponíveis")

    # ── plan ──────────────────────────────────────────────────────────────
    plan_parser = subparsers.add_parser("plan", help="Gera, salva ou exibe planos dry-run.")
    plan_sub = plan_parser.add_subparsers(dest="plan_command")

    show = plan_sub.add_parser("show", help="Exibe o plano atual.")
    show.add_argument("--json", action="store_true", help="Saída em JSON.")
    show.add_argument("--intent", help="JSON com categoryOverrides/policyEnforcement.")
    show.set_defaults(func=_cmd_plan_show)

    save = plan_sub.add_parser("save", help="Salva o plano atual em arquivo JSON.")
    save.add_argument("file")
    save.add_argument("--intent", help="JSON com categoryOverrides/policyEnforcement.")
    save.set_defaults(func=_cmd_plan_save)

    diff = plan_sub.add_parser("diff", help="Prévia das mudanças de um plano salvo.")
    diff.add_argument("file")
    diff.set_defaults(func=_cmd_plan_diff)

    # ── analyze ───────────────────────────────────────────────────────────
    analyze = subparsers.add_parser("analyze", help="Colisões, drift do registry e redes.")
    analyze.set_defaults(func=_cmd_analyze)

    # ── execute ───────────────────────────────────────────────────────────
    execute = subparsers.add_parser("execute", help="Executa um plano salvo.")
    execute.add_argument("--from-plan", required=True, help="Arquivo JSON do plano.")
    execute.add_argument("--apply", action="store_true", help="Habilita a execução.")
    execute.add_argument("--yes", action="store_true", help="Pula a confirmação do plano.")
    execute.add_argument(
        "--allow-mutation", action="store_true",
        help="Permite recriar containers (causa downtime).",
    )
    execute.add_argument("--dry-run", action="store_true", help="Valida sem mutar.")
    execute.set_defaults(func=_cmd_execute)

    # ── snapshots ─────────────────────────────────────────────────────────
    snaps = subparsers.add_parser("snapshots", help="Snapshots duráveis de jobs.")
    snaps.add_argument("--snapshots-dir", default=None, help="Diretório de snapshots.")
    snaps_sub = snaps.add_subparsers(dest="snapshots_command")

    snaps_list = snaps_sub.add_parser("list", help="Lista snapshots (mais recente primeiro).")
    snaps_list.set_defaults(func=_cmd_snapshots_list)

    cleanup = snaps_sub.add_parser("cleanup", help="Remove snapshots antigos.")
    cleanup.add_argument("--days", type=int, default=SNAPSHOT_RETENTION_DAYS)
    cleanup.set_defaults(func=_cmd_snapshots_cleanup)

    restore = snaps_sub.add_parser("restore-plan", help="Plano de restore de um snapshot.")
    restore.add_argument("snapshot_id")
    restore.add_argument("--containers", help="Lista separada por vírgula.")
    restore.add_argument("--save", help="Salva o plano em arquivo em vez de exibir.")
    restore.add_argument(
        "--offline", action="store_true",
        help="Usa o pós-estado do snapshot em vez do estado vivo.",
    )
    restore.set_defaults(func=_cmd_snapshots_restore_plan)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        set_console_level(logging.DEBUG)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_ERROR

    try:
        return args.func(args)
    except PortSentinelError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        print(f"Erro: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
