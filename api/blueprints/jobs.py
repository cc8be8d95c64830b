"""
api/blueprints/jobs.py
Blueprint de jobs de execução.

Endpoints:
    POST /jobs/apply          : cria job de apply (token) → 202 {jobId}
    GET  /jobs/               : lista jobs (mais recente primeiro)
    GET  /jobs/<id>           : detalhe do job
    GET  /jobs/<id>/events    : SSE com replay + eventos ao vivo
"""

from __future__ import annotations

import json
from typing import Generator

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    request,
    stream_with_context,
)

from api.blueprints.auth import token_required
from api.http_utils import get_service, json_body
from core.intent import ApplyRequest, parse_request
from core.job_registry import JobEventChannel

jobs_bp = Blueprint("jobs", __name__)


# ── SSE Generator ────────────────────────────────────


def _sse_generator(
    job_id: str,
    channel: JobEventChannel,
    heartbeat_seconds: float,
) -> Generator[str, None, None]:
    """Replay dos eventos já emitidos e, em seguida, eventos ao vivo."""
    yield "retry: 5000\n\n"
    for event in channel.subscribe(heartbeat_seconds):
        if event is None:
            yield ": heartbeat\n\n"
            continue
        payload = json.dumps(event.to_json_dict(), default=str)
        yield f"event: {event.type}\ndata: {payload}\n\n"

    job = get_service().get_job(job_id)
    end = {"jobId": job.id, "status": job.status}
    yield f"event: stream:end\ndata: {json.dumps(end)}\n\n"


# ── Rotas ────────────────────────────────────────────


@jobs_bp.post("/apply")
@token_required
def apply():
    """
    Cria um job de apply. O servidor recarrega o estado e replaneja.

    Body:
        selectedContainers (list): containers a aplicar (obrigatório).
        categoryOverrides  (obj):  ``{container: categoria}``.
        policyEnforcement  (obj):  ``{container: bool}``.
        allowMutation      (bool): obrigatório quando ``dryRun`` é falso.
        confirmPhrase      (str):  frase exata de downtime.
        dryRun             (bool): valida sem mutar.
    """
    req = parse_request(ApplyRequest, json_body(request))
    job = get_service().start_apply(req)
    return jsonify({"jobId": job.id}), 202


@jobs_bp.get("/")
def list_jobs():
    jobs = get_service().list_jobs()
    return jsonify(
        {"jobs": [j.to_json_dict() for j in jobs]}
    )


@jobs_bp.get("/<job_id>")
def get_job(job_id: str):
    return jsonify(get_service().get_job(job_id).to_json_dict())


@jobs_bp.get("/<job_id>/events")
def events(job_id: str):
    """SSE: eventos do job até a finalização."""
    channel = get_service().registry.channel(job_id)
    heartbeat = current_app.config.get(
        "SSE_HEARTBEAT_SECONDS", 15.0
    )

    return Response(
        stream_with_context(
            _sse_generator(job_id, channel, heartbeat)
        ),
        content_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )
