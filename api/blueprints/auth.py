"""
api/blueprints/auth.py
Blueprint de autenticação das rotas que mutam containers.

- Expõe o decorator `token_required` (header configurável,
  padrão X-API-Token).
- Sem token configurado no servidor, as rotas protegidas
  ficam indisponíveis (503) em vez de abertas.
- Rota /auth/verify permite testar o token sem efeitos
  colaterais.
"""

from __future__ import annotations

import hmac
from functools import wraps

from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
)

from internalloggin.logger import setup_logger

logger = setup_logger(__name__)

auth_bp = Blueprint("auth", __name__)


def token_required(f):
    """Decorator: exige o token estático da API no header."""

    @wraps(f)
    def decorated(*args, **kwargs):
        header = current_app.config.get(
            "API_TOKEN_HEADER", "X-API-Token"
        )
        expected = current_app.config.get("API_STATIC_TOKEN")
        if not expected:
            logger.error(
                "Rota protegida %s chamada sem API_STATIC_TOKEN configurado.",
                request.path,
            )
            return (
                jsonify({"error": "Mutação desabilitada: token da API não configurado."}),
                503,
            )

        token = request.headers.get(header)
        if not token:
            return (
                jsonify({"error": f"Header {header} ausente."}),
                401,
            )

        if not hmac.compare_digest(token.encode(), expected.encode()):
            logger.warning(
                "Token inválido para %s a partir de %s.",
                request.path,
                request.remote_addr,
            )
            return (
                jsonify({"error": "Token inválido."}),
                403,
            )

        return f(*args, **kwargs)

    return decorated


# ── Rotas ─────────────────────────────────────────────


@auth_bp.get("/verify")
@token_required
def verify():
    """Confirma que o token aceita rotas de mutação."""
    return jsonify(
        {
            "status": "ok",
            "header": current_app.config.get("API_TOKEN_HEADER", "X-API-Token"),
        }
    )
