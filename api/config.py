"""
api/config.py
Classes de configuração Flask por ambiente.
"""

import os

from core.constants import (
    AUDIT_LOG_PATH,
    SNAPSHOTS_DIR,
    UPSTREAM_BASE_URL,
    UPSTREAM_TIMEOUT_SECONDS,
)


class BaseConfig:
    SECRET_KEY: str = os.getenv(
        "FLASK_SECRET_KEY", "dev-secret-change-in-prod"
    )
    API_TOKEN_HEADER: str = "X-API-Token"
    API_STATIC_TOKEN: str | None = os.getenv(
        "PORTSENTINEL_API_TOKEN"
    )

    UPSTREAM_URL: str = UPSTREAM_BASE_URL
    UPSTREAM_TIMEOUT_SECONDS: float = UPSTREAM_TIMEOUT_SECONDS

    SNAPSHOTS_DIR: str = str(SNAPSHOTS_DIR)
    AUDIT_LOG_PATH: str = str(AUDIT_LOG_PATH)

    SSE_HEARTBEAT_SECONDS: float = 15.0
    RUN_JOBS_ASYNC: bool = True


class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True
    TESTING: bool = False


class ProductionConfig(BaseConfig):
    DEBUG: bool = False
    TESTING: bool = False


class TestingConfig(BaseConfig):
    TESTING: bool = True
    API_STATIC_TOKEN: str | None = "test-token"
    SSE_HEARTBEAT_SECONDS: float = 0.05
    RUN_JOBS_ASYNC: bool = False
