"""
api/blueprints/health.py
Blueprint de saúde da aplicação e da autoridade upstream.

Endpoints:
    GET /health/ping     : liveness check
    GET /health/upstream : readiness (coleta o estado e resume os totais)
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from api.http_utils import get_service
from core.exceptions import ContractViolation, UpstreamTransportError

health_bp = Blueprint("health", __name__)


# ── Rotas ────────────────────────────────────────────


@health_bp.get("/ping")
def ping():
    """Liveness check da aplicação."""
    return jsonify({"status": "ok"})


@health_bp.get("/upstream")
def upstream():
    """Readiness: a autoridade upstream responde dentro do contrato?"""
    try:
        state = get_service().current_state()
    except (UpstreamTransportError, ContractViolation) as exc:
        return (
            jsonify({"status": "unavailable", "error": str(exc)}),
            503,
        )

    return jsonify(
        {
            "status": "ok",
            "fetchedAt": state.fetched_at.isoformat(),
            "containers": len(state.containers),
            "ports": len(state.ports),
            "networks": len(state.networks),
            "registry": len(state.registry),
        }
    )
