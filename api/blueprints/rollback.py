"""
api/blueprints/rollback.py
Blueprint de rollback de jobs concluídos.

Endpoints:
    POST /rollback/plan   : prévia do plano de rollback
    POST /rollback/apply  : cria job de rollback (token) → 202 / 409
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from api.blueprints.auth import token_required
from api.http_utils import get_service, json_body
from core.intent import RollbackPreviewRequest, RollbackRequest, parse_request

rollback_bp = Blueprint("rollback", __name__)


# ── Rotas ────────────────────────────────────────────


@rollback_bp.post("/plan")
def plan():
    """
    Body:
        jobId              (str):  job de origem.
        selectedContainers (list): restringe o rollback (vazio = todos).
    """
    req = parse_request(RollbackPreviewRequest, json_body(request))
    rollback_plan = get_service().rollback_preview(req.job_id, req.selected_containers)
    return jsonify(
        {"jobId": req.job_id, "plan": rollback_plan.to_json_dict()}
    )


@rollback_bp.post("/apply")
@token_required
def apply():
    req = parse_request(RollbackRequest, json_body(request))
    job = get_service().start_rollback(req)
    return (
        jsonify({"jobId": job.id, "sourceJobId": req.job_id}),
        202,
    )
