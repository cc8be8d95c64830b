"""
core/job_registry.py
────────────────────
Registro de jobs em memória e canal de eventos por job.

Transforma o progresso da execução em registros consultáveis pela API e
em um fluxo de eventos assinável (SSE).

Design Decisions
────────────────
1. Registro injetável, protegido por lock:
   ``JobRegistry`` é instanciado pelo app factory / CLI e injetado no
   ``JobService``. Todas as operações (create / create_unique / update /
   append_event / complete / fail / abort) passam por um ``threading.Lock``;
   leituras devolvem cópias profundas, nunca o objeto interno.

2. Canal limitado por job:
   ``JobEventChannel`` guarda no máximo ``MAX_JOB_EVENTS`` eventos
   (descarta os mais antigos). Cada evento recebe um número de sequência;
   assinantes recebem o replay do que ainda está no buffer e depois os
   eventos novos, acordados por ``threading.Condition``.

3. Heartbeat sem thread extra:
   ``subscribe`` devolve ``None`` quando o timeout de espera expira sem
   evento novo; a camada HTTP traduz isso em ``: heartbeat``.
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from core.constants import JOB_KIND_EXECUTION, MAX_JOB_EVENTS
from core.exceptions import ConflictError, NotFoundError
from core.schemas import Job, JobEvent
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)


class JobEventChannel:
    """Publish/subscribe limitado para os eventos de um único job."""

    def __init__(self, max_events: int = MAX_JOB_EVENTS) -> None:
        self._events: deque[tuple[int, JobEvent]] = deque(maxlen=max_events)
        self._cond = threading.Condition()
        self._seq = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: JobEvent) -> None:
        with self._cond:
            self._seq += 1
            self._events.append((self._seq, event))
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def snapshot(self) -> list[JobEvent]:
        with self._cond:
            return [event for _, event in self._events]

    def subscribe(self, heartbeat_seconds: float = 15.0) -> Iterator[Optional[JobEvent]]:
        """
        Itera sobre replay + eventos novos até o canal fechar.

        Produz ``None`` a cada ``heartbeat_seconds`` sem evento novo.
        """
        last_seq = 0
        while True:
            with self._cond:
                pending = [(s, e) for s, e in self._events if s > last_seq]
                if not pending and not self._closed:
                    self._cond.wait(timeout=heartbeat_seconds)
                    pending = [(s, e) for s, e in self._events if s > last_seq]
                closed = self._closed

            if pending:
                for seq, event in pending:
                    last_seq = seq
                    yield event
            elif closed:
                return
            else:
                yield None


class JobRegistry:
    """
    Armazena jobs e seus canais de evento.

    Uso típico::

        registry = JobRegistry()
        job = registry.create(selected_containers=["web1"], dry_run=False)
        registry.append_event(job.id, "job:start", actionCount=1)
        registry.complete(job.id, result={...})
    """

    def __init__(self, max_events: int = MAX_JOB_EVENTS) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {}
        self._channels: dict[str, JobEventChannel] = {}
        self._max_events = max_events

    # ── Escrita ───────────────────────────────────────────────────────────────

    def create(
        self,
        *,
        kind: str = JOB_KIND_EXECUTION,
        selected_containers: Optional[list[str]] = None,
        dry_run: bool = False,
        source_job_id: Optional[str] = None,
    ) -> Job:
        job = Job(
            id=uuid.uuid4().hex[:12],
            kind=kind,
            selected_containers=list(selected_containers or []),
            dry_run=dry_run,
            source_job_id=source_job_id,
        )
        with self._lock:
            self._jobs[job.id] = job
            self._channels[job.id] = JobEventChannel(self._max_events)
        logger.info("Job %s criado (kind=%s, dryRun=%s).", job.id, kind, dry_run)
        return job.model_copy(deep=True)

    def create_unique(
        self,
        *,
        source_job_id: str,
        kind: str,
        selected_containers: Optional[list[str]] = None,
        dry_run: bool = False,
    ) -> Job:
        """
        Cria o job somente se não houver outro do mesmo ``kind`` para a
        mesma origem. Checagem e inserção acontecem sob o mesmo lock.

        Raises:
            ConflictError: já existe job para ``(source_job_id, kind)``.
        """
        job = Job(
            id=uuid.uuid4().hex[:12],
            kind=kind,
            selected_containers=list(selected_containers or []),
            dry_run=dry_run,
            source_job_id=source_job_id,
        )
        with self._lock:
            existing = self._by_source(source_job_id, kind)
            if existing is not None:
                raise ConflictError(
                    f"Já existe {kind} para o job {source_job_id}.",
                    existing_job_id=existing.id,
                )
            self._jobs[job.id] = job
            self._channels[job.id] = JobEventChannel(self._max_events)
        logger.info("Job %s criado (kind=%s, origem=%s).", job.id, kind, source_job_id)
        return job.model_copy(deep=True)

    def update(self, job_id: str, **changes: Any) -> Job:
        with self._lock:
            job = self._require(job_id)
            updated = job.model_copy(update=changes)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    def append_event(self, job_id: str, event_type: str, **payload: Any) -> JobEvent:
        event = JobEvent(type=event_type, **payload)
        with self._lock:
            job = self._require(job_id)
            events = (job.events + [event])[-self._max_events:]
            self._jobs[job_id] = job.model_copy(update={"events": events})
            channel = self._channels[job_id]
        channel.publish(event)
        return event

    def complete(self, job_id: str, result: dict[str, Any]) -> Job:
        return self._finish(job_id, "completed", result=result)

    def fail(self, job_id: str, error: str) -> Job:
        return self._finish(job_id, "failed", error=error)

    def abort(self, job_id: str, reason: str) -> Job:
        return self._finish(job_id, "aborted", error=reason)

    # ── Leitura ───────────────────────────────────────────────────────────────

    def get(self, job_id: str) -> Job:
        with self._lock:
            return self._require(job_id).model_copy(deep=True)

    def list(self) -> list[Job]:
        """Jobs do mais recente para o mais antigo."""
        with self._lock:
            jobs = [j.model_copy(deep=True) for j in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.started_at, reverse=True)

    def channel(self, job_id: str) -> JobEventChannel:
        with self._lock:
            self._require(job_id)
            return self._channels[job_id]

    # ── Internals ─────────────────────────────────────────────────────────────

    def _require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job não encontrado: {job_id}")
        return job

    def _by_source(self, source_job_id: str, kind: str) -> Optional[Job]:
        for job in self._jobs.values():
            if job.source_job_id == source_job_id and job.kind == kind:
                return job
        return None

    def _finish(self, job_id: str, status: str, **changes: Any) -> Job:
        with self._lock:
            job = self._require(job_id)
            finished = job.model_copy(
                update={
                    "status": status,
                    "finished_at": datetime.now(timezone.utc),
                    **changes,
                }
            )
            self._jobs[job_id] = finished
            channel = self._channels[job_id]
        channel.close()
        logger.info("Job %s finalizado com status '%s'.", job_id, status)
        return finished.model_copy(deep=True)
