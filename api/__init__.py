"""
api/__init__.py
App Factory da API do PortSentinel (Flask).

Uso:
    from api import create_app
    app = create_app()
"""

from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify

from api.blueprints.auth import auth_bp
from api.blueprints.health import health_bp
from api.blueprints.jobs import jobs_bp
from api.blueprints.plan import plan_bp
from api.blueprints.rollback import rollback_bp
from api.blueprints.snapshots import snapshots_bp
from api.config import DevelopmentConfig
from api.http_utils import SERVICE_KEY
from core.exceptions import (
    ConflictError,
    ContractViolation,
    GateDenied,
    NotFoundError,
    PortSentinelError,
    PreconditionFailed,
    RuntimeCommandError,
    UpstreamTransportError,
    ValidationError,
)
from core.executor import AuditLog
from core.job_registry import JobRegistry
from core.services.job_service import JobService
from core.services.state_loader import load_state
from core.services.upstream_client import UpstreamClient
from core.snapshot_manager import SnapshotManager
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)

# Ordem importa: subclasses antes da base
_ERROR_STATUS: tuple[tuple[type[PortSentinelError], int], ...] = (
    (ValidationError, 400),
    (GateDenied, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (PreconditionFailed, 412),
    (ContractViolation, 502),
    (UpstreamTransportError, 503),
    (RuntimeCommandError, 500),
)


def _status_for(exc: PortSentinelError) -> int:
    for exc_type, status in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 500


def _build_service(app: Flask) -> JobService:
    upstream = UpstreamClient(
        app.config["UPSTREAM_URL"],
        app.config["UPSTREAM_TIMEOUT_SECONDS"],
    )
    return JobService(
        JobRegistry(),
        SnapshotManager(app.config["SNAPSHOTS_DIR"]),
        state_provider=lambda: load_state(client=upstream),
        upstream=upstream,
        audit_log=AuditLog(app.config["AUDIT_LOG_PATH"]),
        run_async=app.config["RUN_JOBS_ASYNC"],
    )


def create_app(
    config_class=DevelopmentConfig,
    service: Optional[JobService] = None,
) -> Flask:
    """Cria e configura a instância Flask."""

    app = Flask(__name__)
    app.config.from_object(config_class)
    app.extensions[SERVICE_KEY] = service or _build_service(app)

    # ── Blueprints ────────────────────────────────────
    app.register_blueprint(
        auth_bp, url_prefix="/auth"
    )
    app.register_blueprint(
        health_bp, url_prefix="/health"
    )
    app.register_blueprint(
        plan_bp, url_prefix="/plan"
    )
    app.register_blueprint(
        jobs_bp, url_prefix="/jobs"
    )
    app.register_blueprint(
        rollback_bp, url_prefix="/rollback"
    )
    app.register_blueprint(
        snapshots_bp, url_prefix="/snapshots"
    )

    # ── Erros de domínio → JSON ───────────────────────
    @app.errorhandler(PortSentinelError)
    def handle_domain_error(exc: PortSentinelError):
        status = _status_for(exc)
        body = {"error": str(exc), "type": type(exc).__name__}
        if isinstance(exc, GateDenied):
            body["gate"] = exc.gate
        if isinstance(exc, ConflictError) and exc.existing_job_id:
            body["existingJobId"] = exc.existing_job_id

        if status >= 500:
            logger.error("Erro %d em requisição: %s", status, exc)
        else:
            logger.warning("Requisição rejeitada (%d): %s", status, exc)
        return jsonify(body), status

    return app
