"""
api/blueprints/plan.py
Blueprint de planejamento (somente leitura, sem token).

Endpoints:
    GET  /plan/scan      : estado + classificação + plano padrão
    POST /plan/preview   : plano com overrides e opt-in de enforcement
    GET  /plan/analysis  : colisões, drift do registry e postura de rede
    POST /plan/impact    : quem depende de uma porta host antes de trocá-la
"""

from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, jsonify, request

from api.http_utils import get_service, json_body
from core.intent import PortImpactRequest, parse_request

plan_bp = Blueprint("plan", __name__)


def _plan_response(state, classification, plan):
    plan = plan.model_copy(
        update={"generated_at": datetime.now(timezone.utc)}
    )
    return jsonify(
        {
            "state": state.to_json_dict(),
            "classification": classification.to_json_dict(),
            "plan": plan.to_json_dict(),
        }
    )


# ── Rotas ────────────────────────────────────────────


@plan_bp.get("/scan")
def scan():
    """Classificação e plano sem intenção do usuário."""
    return _plan_response(*get_service().plan())


@plan_bp.post("/preview")
def preview():
    """
    Plano com a intenção do usuário.

    Body:
        categoryOverrides (obj): ``{container: categoria}``.
        policyEnforcement (obj): ``{container: bool}``.
    """
    body = json_body(request)
    overrides = body.get("categoryOverrides", body.get("overrides"))
    return _plan_response(
        *get_service().plan(
            overrides,
            body.get("policyEnforcement"),
        )
    )


@plan_bp.get("/analysis")
def analysis():
    """Achados de portas e redes do estado atual."""
    return jsonify(get_service().analyze())


@plan_bp.post("/impact")
def impact():
    """
    Body:
        container   (str): container cuja porta mudaria.
        currentPort (int): porta host atual.
        newPort     (int): porta pretendida (opcional; sem ela há sugestão).
    """
    req = parse_request(PortImpactRequest, json_body(request))
    return jsonify(
        get_service().port_impact(req.container, req.current_port, req.new_port)
    )
