"""
api/blueprints/snapshots.py
Blueprint de snapshots duráveis de jobs.

Endpoints:
    GET  /snapshots/                    : lista (mais recente primeiro)
    GET  /snapshots/<id>                : pré/pós-estado, diff e metadados
    POST /snapshots/<id>/restore-plan   : prévia do plano de restore
    POST /snapshots/<id>/restore        : cria job de restore (token) → 202
    POST /snapshots/cleanup             : remove snapshots antigos (token)
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from api.blueprints.auth import token_required
from api.http_utils import get_service, json_body
from core.constants import SNAPSHOT_RETENTION_DAYS
from core.exceptions import ValidationError
from core.intent import MutationRequest, SelectionRequest, parse_request

snapshots_bp = Blueprint("snapshots", __name__)


# ── Rotas ────────────────────────────────────────────


@snapshots_bp.get("/")
def list_snapshots():
    items = get_service().snapshots.list_snapshots()
    return jsonify(
        {"snapshots": [s.to_json_dict() for s in items]}
    )


@snapshots_bp.get("/<snapshot_id>")
def get_snapshot(snapshot_id: str):
    snapshot = get_service().snapshots.load_snapshot(snapshot_id)
    return jsonify(snapshot.to_json_dict())


@snapshots_bp.post("/<snapshot_id>/restore-plan")
def restore_plan(snapshot_id: str):
    req = parse_request(SelectionRequest, json_body(request))
    plan = get_service().restore_preview(snapshot_id, req.selected_containers)
    return jsonify(
        {"snapshotId": snapshot_id, "plan": plan.to_json_dict()}
    )


@snapshots_bp.post("/<snapshot_id>/restore")
@token_required
def restore(snapshot_id: str):
    req = parse_request(MutationRequest, json_body(request))
    job = get_service().start_restore(snapshot_id, req)
    return (
        jsonify({"jobId": job.id, "snapshotId": snapshot_id}),
        202,
    )


@snapshots_bp.post("/cleanup")
@token_required
def cleanup():
    """
    Body:
        daysToKeep (int): retenção em dias. Padrão 30.
    """
    body = json_body(request)
    days = body.get("daysToKeep", SNAPSHOT_RETENTION_DAYS)
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise ValidationError("daysToKeep deve ser um inteiro >= 0.")

    removed = get_service().snapshots.cleanup_old_snapshots(days)
    return jsonify({"removed": removed, "daysToKeep": days})
