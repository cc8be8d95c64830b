"""
core/diff_engine.py
───────────────────
Motor de comparação de portas publicadas entre dois snapshots.

Compara o pré-estado e o pós-estado de um job e produz um relatório
estruturado de mudanças, classificadas em:

    - **added**   : binding presente no pós-estado mas ausente no pré.
    - **changed** : mesma chave, porta host diferente.
    - **removed** : binding presente no pré-estado mas ausente no pós.

Design Decisions
────────────────
1. Chave semântica ``container:containerPort/protocol``:
   A porta host é o valor comparado, nunca parte da chave. Assim uma
   troca 8080 → 5000 aparece como "changed", e não como remove + add.

2. Ordem estável:
   added/changed seguem a ordem do pós-estado; removed segue a ordem do
   pré-estado. O mesmo par de entradas gera sempre o mesmo relatório.

3. Sem dependências externas:
   Comparação manual sobre os modelos Pydantic, sem ``deepdiff``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from core.schemas import PortRecord
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)


def _diff_key(record: PortRecord) -> str:
    return f"{record.container}:{record.container_port}/{record.protocol}"


class PortDiffReport:
    """
    Encapsula o resultado de uma comparação pré × pós.

    Atributos:
        changes (list[dict[str, Any]]): Mudanças em ordem estável, cada uma
            com ``type``, ``container``, ``containerPort``, ``protocol``,
            ``from`` e ``to``.
    """

    __slots__ = ("changes", "generated_at")

    def __init__(self) -> None:
        self.changes: list[dict[str, Any]] = []
        self.generated_at: datetime = datetime.now(timezone.utc)

    # ── Helpers ───────────────────────────────────────────────────────────────

    @property
    def has_drift(self) -> bool:
        """Retorna True se qualquer mudança foi detectada."""
        return bool(self.changes)

    def of_type(self, change_type: str) -> list[dict[str, Any]]:
        return [c for c in self.changes if c["type"] == change_type]

    def to_dict(self) -> dict[str, Any]:
        """Serializa no formato de ``diff.json``."""
        return {
            "generatedAt": self.generated_at.isoformat(),
            "totalChanges": len(self.changes),
            "changes": self.changes,
        }

    def summary(self) -> str:
        """Resumo legível em uma linha para logs."""
        counts = (
            f"added={len(self.of_type('added'))}",
            f"changed={len(self.of_type('changed'))}",
            f"removed={len(self.of_type('removed'))}",
        )
        return f"PortDiffReport({', '.join(counts)})"

    def __repr__(self) -> str:  # pragma: no cover
        return self.summary()


def _change(
    change_type: str, record: PortRecord, from_host: int | None, to_host: int | None
) -> dict[str, Any]:
    return {
        "type": change_type,
        "container": record.container,
        "containerPort": record.container_port,
        "protocol": record.protocol,
        "from": from_host,
        "to": to_host,
    }


def generate_port_diff(
    pre: Iterable[PortRecord], post: Iterable[PortRecord]
) -> PortDiffReport:
    """
    Compara dois conjuntos de portas e retorna o relatório de mudanças.

    Args:
        pre:  Portas antes do job.
        post: Portas depois do job.
    """
    pre_map = {_diff_key(p): p for p in pre}
    post_map = {_diff_key(p): p for p in post}
    report = PortDiffReport()

    for key, after in post_map.items():
        before = pre_map.get(key)
        if before is None:
            report.changes.append(_change("added", after, None, after.host))
        elif before.host != after.host:
            report.changes.append(_change("changed", after, before.host, after.host))

    for key, before in pre_map.items():
        if key not in post_map:
            report.changes.append(_change("removed", before, before.host, None))

    if report.has_drift:
        logger.info("Mudanças de porta detectadas: %s", report.summary())
    else:
        logger.debug("Nenhuma mudança de porta entre pré e pós-estado.")
    return report
