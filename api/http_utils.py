"""
api/http_utils.py
Utilitários HTTP exclusivos da camada web Flask.
"""

from __future__ import annotations

from typing import Any

from flask import Request, current_app

from core.exceptions import ValidationError
from core.services.job_service import JobService

SERVICE_KEY = "portsentinel"


def get_service() -> JobService:
    """JobService registrado pela app factory."""
    return current_app.extensions[SERVICE_KEY]


def json_body(request: Request) -> dict[str, Any]:
    """Corpo JSON da requisição; ausente vira ``{}``, não-objeto é rejeitado."""
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError("O corpo da requisição deve ser um objeto JSON.")
    return body
