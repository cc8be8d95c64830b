"""
core/services/job_service.py
────────────────────────────
Orquestração de jobs: scan, apply, rollback e restore.

Consolida State Loader + Classifier + Plan Builder + Executor +
SnapshotManager em um serviço reutilizável pelo CLI e pela API.

Design Decisions
────────────────
1. Replanejamento no servidor:
   O job nunca executa um plano vindo do cliente; o estado é recarregado,
   o plano é reconstruído com a intenção validada e restrito à seleção.

2. Execução em segundo plano:
   Cada job roda em uma thread daemon própria (``run_async=True``). Os
   testes usam ``run_async=False`` para execução síncrona e determinística.

3. Pré/pós-estado sempre capturados:
   Portas vivas antes e depois da execução ficam no job, inclusive quando
   a execução falha no meio (o rollback desse job fica disponível). Jobs
   concluídos e não dry-run viram snapshot durável.

4. Isolamento de falhas por job:
   Qualquer exceção dentro da thread marca o job como ``failed`` e é
   logada; nunca derruba o processo nem outros jobs.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterable, Optional

from core.analysis import analyze_port_impact, analyze_state
from core.base_runtime import ContainerRuntime
from core.classifier import classify
from core.constants import JOB_KIND_EXECUTION, JOB_KIND_RESTORE, JOB_KIND_ROLLBACK
from core.exceptions import NotFoundError, RuntimeCommandError, ValidationError
from core.executor import AuditLog, ExecutorOptions, run_executor
from core.intent import (
    ApplyRequest,
    MutationRequest,
    RollbackRequest,
    parse_overrides,
    parse_policy_enforcement,
)
from core.job_registry import JobRegistry
from core.plan_builder import build_plan
from core.rollback_plan_builder import build_rollback_plan
from core.schemas import ClassificationResult, Job, Plan, PortSnapshot, State
from core.services.state_loader import capture_port_snapshot, load_state
from core.services.upstream_client import UpstreamClient
from core.snapshot_manager import SnapshotManager
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)

StateProvider = Callable[[], State]
PlanFactory = Callable[[State], Plan]


class JobService:
    """
    Serviço de jobs injetável.

    Args:
        registry:       Registro de jobs (compartilhado com a camada HTTP).
        snapshots:      Gerenciador de snapshots duráveis.
        state_provider: Função que devolve o estado atual. Default:
                        ``load_state`` contra a autoridade upstream.
        runtime:        Runtime de containers (default: Docker CLI).
        upstream:       Cliente upstream para reserve/release.
        audit_log:      Trilha de auditoria do executor.
        run_async:      Executa jobs em thread daemon.
    """

    def __init__(
        self,
        registry: JobRegistry,
        snapshots: SnapshotManager,
        *,
        state_provider: Optional[StateProvider] = None,
        runtime: Optional[ContainerRuntime] = None,
        upstream: Optional[UpstreamClient] = None,
        audit_log: Optional[AuditLog] = None,
        run_async: bool = True,
    ) -> None:
        self.registry = registry
        self.snapshots = snapshots
        self._state_provider = state_provider or load_state
        self._runtime = runtime
        self._upstream = upstream
        self._audit_log = audit_log
        self._run_async = run_async

    # ── Planejamento (somente leitura) ───────────────────────

    def current_state(self) -> State:
        return self._state_provider()

    def plan(
        self,
        overrides: Optional[dict[str, Any]] = None,
        policy_enforcement: Optional[dict[str, Any]] = None,
        state: Optional[State] = None,
    ) -> tuple[State, ClassificationResult, Plan]:
        """Estado → classificação → plano, com a intenção já validada."""
        parsed_overrides = parse_overrides(overrides)
        enforcement = parse_policy_enforcement(policy_enforcement)
        state = state if state is not None else self.current_state()
        classification = classify(state, parsed_overrides)
        plan = build_plan(classification, state, parsed_overrides, enforcement)
        return state, classification, plan

    def analyze(self) -> dict[str, Any]:
        return analyze_state(self.current_state())

    def port_impact(
        self, container: str, current_port: int, new_port: Optional[int] = None
    ) -> dict[str, Any]:
        """Impacto de trocar a porta host de ``container`` (somente leitura)."""
        state = self.current_state()
        runtime = self._runtime_or_default()
        inspect_docs: dict[str, dict[str, Any]] = {}
        for item in state.containers:
            try:
                inspect_docs[item.name] = runtime.inspect(item.name)
            except RuntimeCommandError as exc:
                logger.warning("Inspect de %s indisponível: %s", item.name, exc)
        return analyze_port_impact(
            state, classify(state), container, current_port, inspect_docs, new_port=new_port
        )

    def _runtime_or_default(self) -> ContainerRuntime:
        if self._runtime is not None:
            return self._runtime
        from drivers.docker_cli import DockerCLIRuntime  # noqa: PLC0415

        return DockerCLIRuntime()

    # ── Jobs ──────────────────────────────────────────────────

    def get_job(self, job_id: str) -> Job:
        return self.registry.get(job_id)

    def list_jobs(self) -> list[Job]:
        return self.registry.list()

    def start_apply(self, request: ApplyRequest) -> Job:
        """Valida os portões, cria o job e dispara a execução."""
        request.check_gates()
        overrides = parse_overrides(request.category_overrides)
        enforcement = parse_policy_enforcement(request.policy_enforcement)
        selection = list(request.selected_containers)

        def factory(state: State) -> Plan:
            classification = classify(state, overrides)
            plan = build_plan(classification, state, overrides, enforcement)
            return plan.restricted_to(selection)

        job = self.registry.create(
            kind=JOB_KIND_EXECUTION,
            selected_containers=selection,
            dry_run=request.dry_run,
        )
        self._dispatch(job.id, factory, request.dry_run, "job")
        return job

    # ── Rollback ──────────────────────────────────────────────

    def _rollback_source(self, job_id: str) -> tuple[bool, PortSnapshot, PortSnapshot]:
        """(dry_run, pré, pós) do job de origem: registro em memória ou snapshot."""
        try:
            source = self.registry.get(job_id)
        except NotFoundError:
            snapshot = self.snapshots.load_snapshot(job_id)
            return snapshot.metadata.dry_run, snapshot.pre_state, snapshot.post_state

        if source.dry_run:
            return True, PortSnapshot(), PortSnapshot()
        if source.pre_state is None or source.post_state is None:
            raise ValidationError(f"Job {job_id} não possui snapshots para rollback.")
        return False, source.pre_state, source.post_state

    def rollback_preview(
        self, job_id: str, selected_containers: Optional[Iterable[str]] = None
    ) -> Plan:
        dry_run, pre, post = self._rollback_source(job_id)
        if dry_run:
            return Plan.from_actions(
                [], kind="rollback", summary="Dry-run job: rollback not applicable"
            )
        return build_rollback_plan(pre.ports, post.ports, selected_containers)

    def start_rollback(self, request: RollbackRequest) -> Job:
        dry_run, pre, post = self._rollback_source(request.job_id)
        if dry_run:
            raise ValidationError("Rollback não se aplica a jobs dry-run.")

        request.check_gates()

        selection = list(request.selected_containers)
        # ConflictError se outro rollback da mesma origem já foi registrado
        job = self.registry.create_unique(
            source_job_id=request.job_id,
            kind=JOB_KIND_ROLLBACK,
            selected_containers=selection,
            dry_run=request.dry_run,
        )
        self._dispatch(
            job.id,
            lambda _state: build_rollback_plan(pre.ports, post.ports, selection),
            request.dry_run,
            "rollback",
        )
        return job

    # ── Restore ───────────────────────────────────────────────

    def restore_preview(
        self, snapshot_id: str, selected_containers: Optional[Iterable[str]] = None
    ) -> Plan:
        snapshot = self.snapshots.load_snapshot(snapshot_id)
        current = self.current_state().port_records()
        return self.snapshots.create_restore_plan(snapshot, selected_containers, current)

    def start_restore(self, snapshot_id: str, request: MutationRequest) -> Job:
        snapshot = self.snapshots.load_snapshot(snapshot_id)
        request.check_gates()

        selection = list(request.selected_containers)
        job = self.registry.create(
            kind=JOB_KIND_RESTORE,
            selected_containers=selection,
            dry_run=request.dry_run,
            source_job_id=snapshot.metadata.job_id,
        )
        self._dispatch(
            job.id,
            lambda state: self.snapshots.create_restore_plan(
                snapshot, selection, state.port_records()
            ),
            request.dry_run,
            "restore",
        )
        return job

    # ── Execução ──────────────────────────────────────────────

    def _dispatch(self, job_id: str, factory: PlanFactory, dry_run: bool, prefix: str) -> None:
        if self._run_async:
            threading.Thread(
                target=self._execute,
                args=(job_id, factory, dry_run, prefix),
                name=f"job-{job_id}",
                daemon=True,
            ).start()
        else:
            self._execute(job_id, factory, dry_run, prefix)

    def _execute(self, job_id: str, factory: PlanFactory, dry_run: bool, prefix: str) -> None:
        registry = self.registry
        try:
            registry.append_event(job_id, f"{prefix}:planning:start")

            pre_state = self.current_state()
            pre = capture_port_snapshot(pre_state)
            registry.update(job_id, pre_state=pre)
            registry.append_event(job_id, "job:snapshot:pre", ports=len(pre.ports))

            plan = factory(pre_state)
            registry.append_event(
                job_id,
                f"{prefix}:planning:complete",
                actionCount=len(plan.actions),
                dryRun=dry_run,
            )

            result = run_executor(
                ExecutorOptions(
                    apply=True,
                    yes=True,
                    allow_mutation=not dry_run,
                    mutation_confirmed=True,
                    dry_run=dry_run,
                    plan_object=plan,
                    observer=lambda event_type, payload: registry.append_event(
                        job_id, event_type, **payload
                    ),
                    runtime=self._runtime,
                    audit_log=self._audit_log,
                    upstream=self._upstream,
                )
            )

            post = capture_port_snapshot(self.current_state())
            registry.update(job_id, post_state=post)
            registry.append_event(job_id, "job:snapshot:post", ports=len(post.ports))

            if result.status == "aborted":
                registry.abort(job_id, f"abortado no portão '{result.aborted_at}'")
                return
            job = registry.complete(job_id, result.to_json_dict())
        except Exception as exc:  # noqa: BLE001
            logger.exception("Job %s falhou: %s", job_id, exc)
            self._capture_post_after_failure(job_id)
            registry.fail(job_id, str(exc))
            return

        try:
            self.snapshots.save_job_snapshot(job)
        except OSError as exc:
            logger.error("Falha ao salvar snapshot do job %s: %s", job_id, exc)

    def _capture_post_after_failure(self, job_id: str) -> None:
        """Registra o pós-estado de um job que falhou, se ele tiver pré-estado."""
        job = self.registry.get(job_id)
        if job.pre_state is None or job.post_state is not None:
            return
        try:
            post = capture_port_snapshot(self.current_state())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Pós-estado do job %s indisponível após falha: %s", job_id, exc)
            return
        self.registry.update(job_id, post_state=post)
        self.registry.append_event(job_id, "job:snapshot:post", ports=len(post.ports))
