"""
core/intent.py
Validação da intenção do usuário na fronteira do sistema.

Overrides de categoria e flags de enforcement chegam como JSON livre
(CLI, API, arquivo). Aqui são validados uma única vez e convertidos em
dicionários tipados; o núcleo (classifier, plan_builder) só recebe
valores já confiáveis.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import AliasChoices, Field
from pydantic import ValidationError as PydanticValidationError

from core.constants import CATEGORIES, DOWNTIME_PHRASE
from core.exceptions import GateDenied, ValidationError
from core.schemas import CamelModel


def parse_overrides(raw: Optional[Mapping[str, Any]]) -> dict[str, str]:
    """
    Normaliza overrides ``{nome: categoria}``.

    Aceita valores como string (``"apps"``) ou objeto
    (``{"category": "apps"}``). Categorias fora do conjunto conhecido
    lançam ValidationError.

    >>> parse_overrides({"web1": {"category": "Apps"}})
    {'web1': 'apps'}
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValidationError("Overrides devem ser um objeto {container: categoria}.")

    overrides: dict[str, str] = {}
    for name, value in raw.items():
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"Nome de container inválido em overrides: {name!r}")

        category = value.get("category") if isinstance(value, Mapping) else value
        if not isinstance(category, str):
            raise ValidationError(
                f"Override de '{name}' sem categoria válida: {value!r}"
            )

        category = category.strip().lower()
        if category not in CATEGORIES:
            raise ValidationError(
                f"Categoria '{category}' desconhecida para '{name}'. "
                f"Permitidas: {', '.join(CATEGORIES)}."
            )
        overrides[name.strip()] = category
    return overrides


def parse_policy_enforcement(raw: Optional[Mapping[str, Any]]) -> dict[str, bool]:
    """Normaliza o opt-in de enforcement ``{nome: bool}``; não-booleanos são rejeitados."""
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValidationError("policyEnforcement deve ser um objeto {container: bool}.")

    enforcement: dict[str, bool] = {}
    for name, value in raw.items():
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"Nome de container inválido em policyEnforcement: {name!r}")
        if not isinstance(value, bool):
            raise ValidationError(
                f"policyEnforcement['{name}'] deve ser booleano, recebido {value!r}."
            )
        enforcement[name.strip()] = value
    return enforcement


# ── Requisições de job (API / CLI) ────────────────────────────


class MutationRequest(CamelModel):
    """Campos comuns a apply, rollback e restore."""

    selected_containers: list[str] = Field(default_factory=list)
    allow_mutation: bool = Field(
        default=False,
        validation_alias=AliasChoices("allowMutation", "allowDockerMutation", "allow_mutation"),
    )
    confirm_phrase: str = ""
    dry_run: bool = False

    def check_gates(self) -> None:
        """
        Portões do lado do servidor, avaliados antes de criar o job.

        Raises:
            GateDenied: mutação sem ``allowMutation`` ou frase divergente.
        """
        if not self.dry_run and not self.allow_mutation:
            raise GateDenied("allow-mutation", "mutação de containers não autorizada")
        if self.confirm_phrase != DOWNTIME_PHRASE:
            raise GateDenied("confirm-phrase", "frase de confirmação divergente")


class ApplyRequest(MutationRequest):
    category_overrides: Optional[dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("categoryOverrides", "overrides", "category_overrides"),
    )
    policy_enforcement: Optional[dict[str, Any]] = None

    def check_gates(self) -> None:
        super().check_gates()
        if not self.selected_containers:
            raise ValidationError("Nenhum container selecionado.")


class RollbackRequest(MutationRequest):
    job_id: str = Field(..., min_length=1)


class SelectionRequest(CamelModel):
    """Corpo das prévias de rollback e restore."""

    selected_containers: list[str] = Field(default_factory=list)


class RollbackPreviewRequest(SelectionRequest):
    job_id: str = Field(..., min_length=1)


class PortImpactRequest(CamelModel):
    container: str = Field(..., min_length=1)
    current_port: int = Field(..., ge=1, le=65535)
    new_port: Optional[int] = Field(default=None, ge=1, le=65535)


def parse_request(model: type[CamelModel], payload: Any) -> Any:
    """Valida o corpo JSON de uma requisição, traduzindo erros do Pydantic."""
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValidationError("O corpo da requisição deve ser um objeto JSON.")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(f"Requisição inválida: {exc}") from exc
