"""
core/executor/plan_io.py
Carrega e salva planos (objeto em memória ou arquivo JSON).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from core.exceptions import ValidationError
from core.schemas import Plan
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)


def load_plan(
    plan_object: Union[Plan, dict[str, Any], None] = None,
    plan_path: Optional[Path | str] = None,
) -> Plan:
    """
    Carrega o plano a executar. O arquivo tem precedência sobre o objeto.

    Raises:
        ValidationError: nenhum plano informado, arquivo ilegível ou JSON
                         fora do formato de plano.
    """
    try:
        if plan_path is not None:
            raw = Path(plan_path).read_text(encoding="utf-8")
            plan = Plan.model_validate_json(raw)
            logger.info("Plano carregado de '%s' (%d ações).", plan_path, plan.action_count)
            return plan
        if isinstance(plan_object, Plan):
            return plan_object
        if plan_object is not None:
            return Plan.model_validate(plan_object)
    except OSError as exc:
        raise ValidationError(f"Não foi possível ler o plano '{plan_path}': {exc}") from exc
    except PydanticValidationError as exc:
        raise ValidationError(f"Plano malformado: {exc}") from exc

    raise ValidationError("Nenhum plano informado ao executor.")


def save_plan(plan: Plan, path: Path | str) -> Path:
    """Persiste o plano como JSON (camelCase, indentado)."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(plan.to_json_dict(), indent=2), encoding="utf-8")
    logger.info("Plano salvo em '%s'.", target)
    return target
