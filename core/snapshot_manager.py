"""
core/snapshot_manager.py
────────────────────────
Persistência durável de snapshots de jobs concluídos.

Cada job concluído (não dry-run, com pré e pós-estado) gera um diretório::

    snapshots/<jobId>-<YYYY-MM-DDTHH-MM-SS>/
        pre.json        portas antes da execução
        post.json       portas depois da execução
        diff.json       mudanças derivadas (generate_port_diff)
        metadata.json   jobId, status, kind, datas, seleção, dryRun

Design Decisions
────────────────
1. Diretório por job com timestamp de conclusão:
   Facilita navegação manual e limpeza seletiva; o nome é ordenável.

2. Restore para qualquer ponto no tempo:
   ``create_restore_plan`` compara o estado atual (ou o pós-estado do
   snapshot, quando o atual não é informado) com o pré-estado do snapshot
   e devolve um plano ``kind="restore"`` com o mesmo formato de rollback.

3. Fail-safe na leitura em lote:
   Um diretório corrompido é logado e ignorado na listagem e na limpeza;
   não impede os demais.
"""

from __future__ import annotations

import json
import re
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from core.constants import SNAPSHOTS_DIR, SNAPSHOT_RETENTION_DAYS
from core.diff_engine import generate_port_diff
from core.exceptions import NotFoundError, ValidationError
from core.rollback_plan_builder import build_port_delta_actions
from core.schemas import (
    Job,
    Plan,
    PortRecord,
    PortSnapshot,
    Snapshot,
    SnapshotMetadata,
    SnapshotSummary,
)
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)

_TIMESTAMP_FMT = "%Y-%m-%dT%H-%M-%S"
_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]+$")

_PRE_FILE = "pre.json"
_POST_FILE = "post.json"
_DIFF_FILE = "diff.json"
_METADATA_FILE = "metadata.json"


def _write_json(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class SnapshotManager:
    """
    Gerencia snapshots de jobs em disco.

    Uso típico::

        manager = SnapshotManager()
        path = manager.save_job_snapshot(job)
        plan = manager.create_restore_plan(manager.load_snapshot(job.id))

    Args:
        snapshots_dir: Diretório base. Default: ``SNAPSHOTS_DIR``.
    """

    def __init__(self, snapshots_dir: Optional[Path | str] = None) -> None:
        self._dir = Path(snapshots_dir) if snapshots_dir else SNAPSHOTS_DIR
        self._dir.mkdir(parents=True, exist_ok=True)
        logger.debug("SnapshotManager inicializado: dir='%s'", self._dir)

    @property
    def directory(self) -> Path:
        return self._dir

    # ── Escrita ───────────────────────────────────────────────────────────────

    def save_job_snapshot(self, job: Job) -> Optional[Path]:
        """
        Persiste o snapshot de um job concluído.

        Returns:
            Caminho do diretório criado, ou None quando o job não se
            qualifica (dry-run, não concluído, ou sem pré/pós-estado).
        """
        if job.dry_run:
            logger.info("Snapshot ignorado: job %s é dry-run.", job.id)
            return None
        if job.status != "completed":
            logger.info("Snapshot ignorado: job %s com status '%s'.", job.id, job.status)
            return None
        if job.pre_state is None or job.post_state is None:
            logger.warning("Snapshot ignorado: job %s sem pré/pós-estado.", job.id)
            return None

        finished_at = job.finished_at or datetime.now(timezone.utc)
        job_dir = self._dir / f"{job.id}-{finished_at.strftime(_TIMESTAMP_FMT)}"
        job_dir.mkdir(parents=True, exist_ok=True)

        diff = generate_port_diff(job.pre_state.ports, job.post_state.ports)
        metadata = SnapshotMetadata(
            job_id=job.id,
            status=job.status,
            kind=job.kind,
            started_at=job.started_at,
            finished_at=finished_at,
            duration_seconds=(finished_at - job.started_at).total_seconds(),
            selected_containers=job.selected_containers,
            dry_run=job.dry_run,
            source_job_id=job.source_job_id,
        )

        _write_json(job_dir / _PRE_FILE, job.pre_state.to_json_dict())
        _write_json(job_dir / _POST_FILE, job.post_state.to_json_dict())
        _write_json(job_dir / _DIFF_FILE, diff.to_dict())
        _write_json(job_dir / _METADATA_FILE, metadata.to_json_dict())

        logger.info("Snapshot salvo: %s (%s)", job_dir, diff.summary())
        return job_dir

    # ── Leitura ───────────────────────────────────────────────────────────────

    def list_snapshots(self) -> list[SnapshotSummary]:
        """Lista os snapshots válidos, mais recente primeiro."""
        summaries: list[SnapshotSummary] = []
        for entry in self._dir.iterdir():
            metadata_path = entry / _METADATA_FILE
            if not entry.is_dir() or not metadata_path.exists():
                continue
            try:
                data = json.loads(metadata_path.read_text(encoding="utf-8"))
                summaries.append(
                    SnapshotSummary.model_validate(
                        {**data, "directory": entry.name, "path": str(entry)}
                    )
                )
            except (OSError, ValueError, PydanticValidationError) as exc:
                logger.error("Falha ao ler snapshot '%s': %s", entry.name, exc)

        summaries.sort(key=lambda s: (s.finished_at, s.directory), reverse=True)
        return summaries

    def load_snapshot(self, job_id_or_dir: str) -> Snapshot:
        """
        Carrega um snapshot pelo id do job ou pelo nome do diretório.

        Raises:
            ValidationError: identificador com caracteres inválidos.
            NotFoundError:   nenhum diretório corresponde.
        """
        if not job_id_or_dir or not _SAFE_ID.match(job_id_or_dir):
            raise ValidationError(f"Identificador de snapshot inválido: {job_id_or_dir!r}")

        # id do job casa apenas "<id>-<timestamp>"; prefixos soltos não
        candidates = sorted(
            (
                d for d in self._dir.iterdir()
                if d.is_dir()
                and (d.name == job_id_or_dir or d.name.startswith(f"{job_id_or_dir}-"))
            ),
            key=lambda d: d.name,
            reverse=True,
        )
        if not candidates:
            raise NotFoundError(f"Snapshot não encontrado: {job_id_or_dir}")

        snapshot_dir = candidates[0]
        try:
            return Snapshot(
                directory=snapshot_dir.name,
                path=str(snapshot_dir),
                pre_state=PortSnapshot.model_validate_json(
                    (snapshot_dir / _PRE_FILE).read_text(encoding="utf-8")
                ),
                post_state=PortSnapshot.model_validate_json(
                    (snapshot_dir / _POST_FILE).read_text(encoding="utf-8")
                ),
                diff=json.loads((snapshot_dir / _DIFF_FILE).read_text(encoding="utf-8")),
                metadata=SnapshotMetadata.model_validate_json(
                    (snapshot_dir / _METADATA_FILE).read_text(encoding="utf-8")
                ),
            )
        except (OSError, ValueError) as exc:
            raise ValidationError(
                f"Snapshot '{snapshot_dir.name}' corrompido: {exc}"
            ) from exc

    # ── Restore ───────────────────────────────────────────────────────────────

    def create_restore_plan(
        self,
        snapshot: Snapshot,
        selected_containers: Optional[Iterable[str]] = None,
        current_ports: Optional[list[PortRecord]] = None,
    ) -> Plan:
        """
        Plano que leva o estado atual de volta ao pré-estado do snapshot.

        Args:
            snapshot:            Snapshot carregado por ``load_snapshot``.
            selected_containers: Restringe a containers; vazio/None = todos.
            current_ports:       Portas vivas atuais. Sem elas, assume-se
                                 que o estado atual é o pós-estado do snapshot.
        """
        job_id = snapshot.metadata.job_id
        current = current_ports if current_ports is not None else snapshot.post_state.ports
        actions = build_port_delta_actions(
            snapshot.pre_state.ports,
            current,
            selected_containers,
            reason=f"Restore from snapshot {job_id}",
        )
        containers = {a.container for a in actions}
        return Plan.from_actions(
            actions,
            kind="restore",
            summary=f"Restore {len(containers)} container(s) to snapshot state",
            source=job_id,
            source_timestamp=snapshot.metadata.finished_at,
        )

    # ── Limpeza ───────────────────────────────────────────────────────────────

    def cleanup_old_snapshots(self, days_to_keep: int = SNAPSHOT_RETENTION_DAYS) -> int:
        """Remove snapshots concluídos há mais de ``days_to_keep`` dias."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
        deleted = 0
        for summary in self.list_snapshots():
            if summary.finished_at >= cutoff:
                continue
            try:
                shutil.rmtree(summary.path)
                deleted += 1
                logger.info("Snapshot antigo removido: %s", summary.directory)
            except OSError as exc:
                logger.error("Falha ao remover '%s': %s", summary.directory, exc)

        logger.info("Limpeza de snapshots concluída: %d removido(s).", deleted)
        return deleted
