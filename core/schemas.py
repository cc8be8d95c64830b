"""
core/schemas.py
───────────────
Define os modelos Pydantic que representam o estado de containers, portas
publicadas, planos de ação e jobs: o contrato de dados do PortSentinel.

Design Decisions
────────────────
1. Hierarquia:
       PortBinding / NetworkAttachment  →  Container  →  State (Aggregate Root)
       PolicyContext                    →  PlanAction →  Plan
       JobEvent / PortSnapshot          →  Job

   State é sempre substituído por inteiro a cada coleta (sem patch
   incremental). Os submodelos de estado são imutáveis (frozen=True).

2. JSON em camelCase, Python em snake_case:
   O contrato externo (plano, job, snapshot) usa chaves camelCase
   (``actionCount``, ``policyContext``, ``confidenceUsed``). O
   ``alias_generator=to_camel`` com ``populate_by_name=True`` permite
   instanciar por nome Python e serializar com ``by_alias=True``.

3. ``PlanAction.from_`` / ``PlanAction.to`` polimórficos:
   Ações do Plan Builder carregam listas de PortBinding. Ações de rollback
   e restore carregam valores escalares de porta host (ou None) junto com
   ``protocol`` e ``containerPort``; mesmo tipo de ação, mesmo executor.

4. ``State.schema_version``:
   O núcleo consome apenas este schema estrito e versionado. A descoberta
   defensiva de formato dos feeds upstream fica confinada ao State Loader.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

Protocol = Literal["tcp", "udp"]
Category = Literal["system", "apps", "games", "unknown"]
JobStatus = Literal["running", "completed", "failed", "aborted"]
JobKind = Literal["execution", "rollback", "restore"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base comum: aliases camelCase e normalização de strings."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Serializa no formato JSON externo (camelCase)."""
        return self.model_dump(mode="json", by_alias=True)


# ─── Modelo 1: Binding de Porta ──────────────────────────────────────────────

class PortBinding(CamelModel):
    """
    Uma porta publicada: ``host`` → ``container`` / ``protocol``.

    Exemplos de uso:
    >>> PortBinding(host=8080, container=80).flag
    '8080:80/tcp'
    """

    model_config = ConfigDict(frozen=True)

    host: int = Field(
        ...,
        ge=1,
        le=65535,
        description="Porta publicada no host (1–65535).",
    )
    container: int = Field(
        ...,
        ge=1,
        le=65535,
        description="Porta interna do container (1–65535).",
    )
    protocol: Protocol = Field(
        default="tcp",
        description="Protocolo de transporte. Padrão explícito 'tcp'.",
    )

    @field_validator("protocol", mode="before")
    @classmethod
    def _normalize_protocol(cls, value: object) -> object:
        """Aceita 'TCP', ' udp ' e vazio/None (→ 'tcp')."""
        if value is None or value == "":
            return "tcp"
        return str(value).strip().lower()

    @property
    def key(self) -> tuple[int, int, str]:
        return (self.host, self.container, self.protocol)

    @property
    def flag(self) -> str:
        """Formato do flag ``-p`` do runtime."""
        return f"{self.host}:{self.container}/{self.protocol}"


class NetworkAttachment(CamelModel):
    """Rede à qual um container está conectado."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Nome da rede (ex: 'bridge', 'proxy').")
    ip: Optional[str] = Field(default=None, description="IP do container nesta rede.")
    gateway: Optional[str] = Field(default=None, description="Gateway da rede.")


# ─── Modelo 2: Container ──────────────────────────────────────────────────────

class Container(CamelModel):
    """
    Snapshot imutável de um container, normalizado pelo State Loader.

    ``ports`` e ``networks`` são sempre listas (possivelmente vazias).
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(default=None, description="ID do container no runtime.")
    name: str = Field(..., description="Nome único do container.")
    image: str = Field(default="", description="Imagem de origem (ex: 'nginx:1.25').")
    running: bool = Field(default=False, description="True se o container está em execução.")
    ports: list[PortBinding] = Field(default_factory=list)
    networks: list[NetworkAttachment] = Field(default_factory=list)


class PortRecord(CamelModel):
    """
    Entrada plana de porta publicada: a unidade de comparação de snapshots.

    A chave ``(container, protocol, containerPort)`` identifica a intenção;
    ``host`` é o valor comparado entre pré e pós-estado.
    """

    model_config = ConfigDict(frozen=True)

    container: str
    container_port: int = Field(..., ge=1, le=65535)
    host: int = Field(..., ge=1, le=65535)
    protocol: Protocol = "tcp"
    ip: Optional[str] = None

    @field_validator("protocol", mode="before")
    @classmethod
    def _normalize_protocol(cls, value: object) -> object:
        if value is None or value == "":
            return "tcp"
        return str(value).strip().lower()

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.container, self.protocol, self.container_port)


class NetworkInfo(CamelModel):
    """Rede conhecida pela autoridade upstream."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: Optional[str] = None
    driver: Optional[str] = None
    scope: Optional[str] = None
    internal: bool = False
    attachable: bool = False


class RegistryEntry(CamelModel):
    """Reserva de porta registrada na autoridade upstream."""

    model_config = ConfigDict(frozen=True)

    host: int = Field(..., ge=1, le=65535)
    protocol: Protocol = "tcp"
    owner: Any = None
    range: Any = None
    created_at: Any = None
    binding: Any = None

    @field_validator("protocol", mode="before")
    @classmethod
    def _normalize_protocol(cls, value: object) -> object:
        if value is None or value == "":
            return "tcp"
        return str(value).strip().lower()


# ─── Modelo Raiz: State (Aggregate Root) ──────────────────────────────────────

class State(CamelModel):
    """
    Estado autoritativo e normalizado de uma coleta.

    Exemplos de uso:
    >>> s = State(containers=[Container(name="web1")])
    >>> s.container_by_name()["web1"].ports
    []
    """

    model_config = ConfigDict(frozen=True)

    schema_version: Literal[1] = Field(
        default=1,
        description="Versão do schema interno consumido pelo núcleo.",
    )
    fetched_at: datetime = Field(default_factory=_utcnow)
    containers: list[Container] = Field(default_factory=list)
    ports: list[PortRecord] = Field(
        default_factory=list,
        description="Feed plano de portas como reportado pela autoridade upstream.",
    )
    networks: list[NetworkInfo] = Field(default_factory=list)
    registry: list[RegistryEntry] = Field(default_factory=list)

    def container_by_name(self) -> dict[str, Container]:
        return {c.name: c for c in self.containers}

    def port_records(self) -> list[PortRecord]:
        """Portas canônicas por container, achatadas (base dos snapshots)."""
        return [
            PortRecord(
                container=c.name,
                container_port=p.container,
                host=p.host,
                protocol=p.protocol,
            )
            for c in self.containers
            for p in c.ports
        ]


# ─── Classificação ────────────────────────────────────────────────────────────

class Classification(CamelModel):
    """Categoria atribuída a um container, com confiança e justificativas."""

    id: Optional[str] = None
    name: str
    image: Optional[str] = None
    category: Category
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)


class ClassificationResult(CamelModel):
    containers: list[Classification] = Field(default_factory=list)


# ─── Política ─────────────────────────────────────────────────────────────────

class Policy(CamelModel):
    """Regra declarativa por categoria. Sem comportamento, apenas configuração."""

    model_config = ConfigDict(frozen=True)

    id: str
    applies_to: Category
    description: str
    mode: Literal["incremental", "manual", "protected"]
    enforceable: bool
    rationale: str
    start_port: Optional[int] = None
    protocol: Optional[Protocol] = None


# ─── Plano ────────────────────────────────────────────────────────────────────

class PolicyContext(CamelModel):
    id: str
    status: str
    enforceable: bool
    reason: str
    confidence_used: Optional[float] = None


class PlanAction(CamelModel):
    """
    Uma unidade de mudança proposta (executável) ou informativa.

    ``from_`` é serializado como ``from`` (palavra reservada em Python).
    """

    type: str = Field(..., description="Tipo da ação, resolvido no registro de handlers.")
    container: str = Field(..., description="Nome do container alvo.")
    executable: bool = False
    from_: Union[list[PortBinding], int, None] = Field(default=None, alias="from")
    to: Union[list[PortBinding], int, None] = None
    protocol: Optional[Protocol] = None
    container_port: Optional[int] = None
    ports: Optional[list[PortBinding]] = Field(
        default=None,
        description="Portas de reserve-port/release-port.",
    )
    policy_context: Optional[PolicyContext] = None
    reason: Optional[str] = None


class Plan(CamelModel):
    """
    Descrição auditável e sem efeitos colaterais das ações propostas.

    Planos de rollback e restore têm exatamente o mesmo formato.
    """

    dry_run: bool = True
    kind: Literal["plan", "rollback", "restore"] = "plan"
    summary: str = ""
    action_count: int = 0
    executable_count: int = 0
    actions: list[PlanAction] = Field(default_factory=list)
    source: Optional[str] = None
    source_timestamp: Optional[datetime] = None
    generated_at: Optional[datetime] = None

    @classmethod
    def from_actions(
        cls,
        actions: list[PlanAction],
        *,
        kind: Literal["plan", "rollback", "restore"] = "plan",
        summary: str,
        **extra: Any,
    ) -> Plan:
        """Monta o plano calculando os contadores derivados."""
        return cls(
            kind=kind,
            summary=summary,
            action_count=len(actions),
            executable_count=sum(1 for a in actions if a.executable),
            actions=actions,
            **extra,
        )

    def restricted_to(self, containers: list[str]) -> Plan:
        """Cópia do plano contendo apenas ações dos containers indicados."""
        allowed = set(containers)
        actions = [a for a in self.actions if a.container in allowed]
        return self.model_copy(
            update={
                "actions": actions,
                "action_count": len(actions),
                "executable_count": sum(1 for a in actions if a.executable),
            }
        )


# ─── Jobs ─────────────────────────────────────────────────────────────────────

class JobEvent(CamelModel):
    """Evento de progresso de um job. Campos extras são preservados."""

    model_config = ConfigDict(extra="allow")

    type: str
    ts: datetime = Field(default_factory=_utcnow)


class PortSnapshot(CamelModel):
    """Estado de portas capturado antes ou depois de um job."""

    captured_at: datetime = Field(default_factory=_utcnow)
    ports: list[PortRecord] = Field(default_factory=list)


class Job(CamelModel):
    id: str
    kind: JobKind = "execution"
    status: JobStatus = "running"
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
    selected_containers: list[str] = Field(default_factory=list)
    dry_run: bool = False
    source_job_id: Optional[str] = None
    pre_state: Optional[PortSnapshot] = None
    post_state: Optional[PortSnapshot] = None
    events: list[JobEvent] = Field(default_factory=list)
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class JobResult(CamelModel):
    """Resultado devolvido pelo executor."""

    status: Literal["completed", "aborted"]
    dry_run: bool = False
    action_count: int = 0
    results: list[dict[str, Any]] = Field(default_factory=list)
    aborted_at: Optional[str] = Field(
        default=None,
        description="Portão de confirmação onde o usuário abortou.",
    )


# ─── Snapshots ────────────────────────────────────────────────────────────────

class SnapshotMetadata(CamelModel):
    job_id: str
    status: JobStatus
    kind: JobKind = "execution"
    started_at: datetime
    finished_at: datetime
    duration_seconds: float = 0.0
    selected_containers: list[str] = Field(default_factory=list)
    dry_run: bool = False
    source_job_id: Optional[str] = None


class SnapshotSummary(SnapshotMetadata):
    """Entrada da listagem de snapshots: metadados + localização."""

    directory: str
    path: str


class Snapshot(CamelModel):
    directory: str
    path: str
    pre_state: PortSnapshot
    post_state: PortSnapshot
    diff: dict[str, Any] = Field(default_factory=dict)
    metadata: SnapshotMetadata
