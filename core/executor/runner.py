"""
core/executor/runner.py
───────────────────────
Executa um plano aprovado, ação por ação, atrás de portões sequenciais.

Design Decisions
────────────────
1. Portões (cada um é uma parada definitiva):
       1. flag ``apply``                          → GateDenied("apply")
       2. carga do plano (objeto ou arquivo)      → ValidationError
       3. preflight: dry-run, tipos e forma       → ValidationError
       4. confirmação "APPLY" (exceto ``yes``)    → UserAborted
       5. mutação exige ``allow_mutation``        → GateDenied("allow-mutation")
       6. confirmação de downtime                 → UserAborted
   Os portões 5 e 6 só valem fora de dry-run. ``UserAborted`` vira
   resultado ``aborted``, não exceção.

2. Execução estritamente sequencial:
   A primeira falha interrompe as ações restantes e propaga; mutações já
   aplicadas não são desfeitas.

3. Observador isolado:
   Eventos job:start, action:start, action:success, action:error,
   job:complete e job:failed são entregues ao observador; exceções do
   observador são logadas e nunca interrompem a execução.

4. Auditoria:
   Toda execução concluída, abortada, negada, rejeitada ou falha grava
   exatamente uma linha JSON no audit log.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

from core.base_runtime import ContainerRuntime
from core.constants import MUTATION_ACTION_TYPES
from core.exceptions import GateDenied, UserAborted, ValidationError
from core.executor.actions import ACTION_HANDLERS, ActionContext
from core.executor.audit_log import AuditLog
from core.executor.confirm import Confirmer, ConsoleConfirmer
from core.executor.plan_io import load_plan
from core.executor.preflight import preflight
from core.schemas import JobResult, Plan, PlanAction
from core.services.upstream_client import UpstreamClient
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)

Observer = Callable[[str, dict[str, Any]], None]


@dataclass(slots=True)
class ExecutorOptions:
    """Opções de uma execução. Apenas ``apply=True`` habilita qualquer efeito."""

    apply: bool = False
    plan_path: Optional[Path | str] = None
    plan_object: Union[Plan, dict[str, Any], None] = None
    yes: bool = False
    allow_mutation: bool = False
    mutation_confirmed: bool = False
    dry_run: bool = False
    observer: Optional[Observer] = None
    runtime: Optional[ContainerRuntime] = None
    confirmer: Optional[Confirmer] = None
    audit_log: Optional[AuditLog] = None
    upstream: Optional[UpstreamClient] = None


def _notify(observer: Optional[Observer], event_type: str, **payload: Any) -> None:
    if observer is None:
        return
    try:
        observer(event_type, payload)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Observador falhou no evento '%s': %s", event_type, exc)


def _describe(index: int, action: PlanAction) -> dict[str, Any]:
    return {"index": index, "actionType": action.type, "container": action.container}


def _check_gates(plan: Plan, options: ExecutorOptions, confirmer: Confirmer) -> None:
    if not options.yes and not confirmer.confirm_apply(plan):
        raise UserAborted("apply-confirmation")

    has_mutation = any(a.type in MUTATION_ACTION_TYPES for a in plan.actions)
    if not has_mutation or options.dry_run:
        return

    if not options.allow_mutation:
        raise GateDenied(
            "allow-mutation",
            "o plano contém mutações de container e --allow-mutation não foi informado",
        )
    if not options.mutation_confirmed and not confirmer.confirm_downtime():
        raise UserAborted("downtime-confirmation")


def run_executor(options: ExecutorOptions) -> JobResult:
    """
    Executa o plano indicado em ``options``.

    Raises:
        GateDenied:          portão de consentimento não satisfeito.
        ValidationError:     plano ausente ou malformado, tipo desconhecido.
        PreconditionFailed:  estado vivo diverge do plano (nada foi mutado
                             na ação corrente).
        RuntimeCommandError: falha do runtime no meio da ação.
    """
    audit = options.audit_log or AuditLog()

    if not options.apply:
        audit.append({"event": "denied", "gate": "apply"})
        raise GateDenied("apply", "execução exige a flag --apply explícita")

    try:
        plan = load_plan(plan_object=options.plan_object, plan_path=options.plan_path)
        preflight(plan)
    except ValidationError as exc:
        logger.error("Plano rejeitado: %s", exc)
        audit.append({"event": "rejected", "error": str(exc)})
        raise

    base_entry = {
        "kind": plan.kind,
        "actionCount": len(plan.actions),
        "dryRun": options.dry_run,
        "containers": sorted({a.container for a in plan.actions}),
    }

    try:
        _check_gates(plan, options, options.confirmer or ConsoleConfirmer())
    except UserAborted as exc:
        logger.warning("Execução abortada pelo usuário no portão '%s'.", exc.gate)
        audit.append({"event": "aborted", "gate": exc.gate, **base_entry})
        return JobResult(
            status="aborted",
            dry_run=options.dry_run,
            action_count=len(plan.actions),
            aborted_at=exc.gate,
        )
    except GateDenied as exc:
        logger.error("%s", exc)
        audit.append({"event": "denied", "gate": exc.gate, **base_entry})
        raise

    if options.runtime is None:
        # Import local para evitar dependência circular core ↔ drivers
        from drivers.docker_cli import DockerCLIRuntime  # noqa: PLC0415

        runtime: ContainerRuntime = DockerCLIRuntime()
    else:
        runtime = options.runtime

    ctx = ActionContext(
        runtime=runtime,
        upstream=options.upstream or UpstreamClient(),
        dry_run=options.dry_run,
    )
    observer = options.observer
    results: list[dict[str, Any]] = []

    logger.info(
        "Iniciando execução: %d ação(ões), dryRun=%s.", len(plan.actions), options.dry_run
    )
    _notify(observer, "job:start", actionCount=len(plan.actions), dryRun=options.dry_run)

    for index, action in enumerate(plan.actions):
        _notify(observer, "action:start", **_describe(index, action))
        try:
            if action.type in MUTATION_ACTION_TYPES and not action.executable:
                result = {
                    "status": "skipped",
                    "type": action.type,
                    "container": action.container,
                    "reason": "ação não executável",
                }
            else:
                result = ACTION_HANDLERS[action.type](action, ctx)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Ação %d (%s → %s) falhou: %s", index + 1, action.type, action.container, exc
            )
            _notify(observer, "action:error", error=str(exc), **_describe(index, action))
            _notify(observer, "job:failed", error=str(exc), completed=len(results))
            audit.append({
                "event": "failed",
                "failedAction": _describe(index, action),
                "error": str(exc),
                "results": results,
                **base_entry,
            })
            raise

        results.append(result)
        _notify(observer, "action:success", result=result, **_describe(index, action))

    _notify(observer, "job:complete", results=results)
    audit.append({"event": "completed", "results": results, **base_entry})
    logger.info("Execução concluída: %d ação(ões).", len(results))

    return JobResult(
        status="completed",
        dry_run=options.dry_run,
        action_count=len(plan.actions),
        results=results,
    )
