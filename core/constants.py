"""
core/constants.py
Constantes de domínio do PortSentinel.

Single source of truth para caminhos de persistência, endereço da
autoridade upstream, conjuntos de palavras-chave do classificador,
limiares de política e frases de confirmação do executor.
"""

from __future__ import annotations

import os
from pathlib import Path

_ROOT: Path = Path(__file__).resolve().parent.parent

# ── Autoridade upstream (fonte única da verdade do estado) ───
UPSTREAM_BASE_URL: str = os.getenv(
    "PORTSENTINEL_UPSTREAM_URL", "http://127.0.0.1:4100"
)
UPSTREAM_TIMEOUT_SECONDS: float = float(
    os.getenv("PORTSENTINEL_UPSTREAM_TIMEOUT", "10")
)

# ── Persistência ─────────────────────────────────────────────
SNAPSHOTS_DIR: Path = Path(
    os.getenv("PORTSENTINEL_SNAPSHOTS_DIR", str(_ROOT / "snapshots"))
)
AUDIT_LOG_PATH: Path = Path(
    os.getenv("PORTSENTINEL_AUDIT_LOG", str(_ROOT / "logs" / "executor-audit.log"))
)
SNAPSHOT_RETENTION_DAYS: int = 30

# ── Categorias do classificador ──────────────────────────────
CATEGORY_SYSTEM: str = "system"
CATEGORY_APPS: str = "apps"
CATEGORY_GAMES: str = "games"
CATEGORY_UNKNOWN: str = "unknown"

CATEGORIES: tuple[str, ...] = (
    CATEGORY_SYSTEM,
    CATEGORY_APPS,
    CATEGORY_GAMES,
    CATEGORY_UNKNOWN,
)

# Ordem de desempate do ranking (sort estável)
SCORED_CATEGORIES: tuple[str, ...] = (
    CATEGORY_SYSTEM,
    CATEGORY_APPS,
    CATEGORY_GAMES,
)

GAME_KEYWORDS: tuple[str, ...] = (
    "7dtd",
    "seven-days",
    "valheim",
    "minecraft",
    "factorio",
    "satisfactory",
    "conan",
    "rust",
    "icarus",
    "ark",
)

SYSTEM_KEYWORDS: tuple[str, ...] = (
    "traefik",
    "nginx",
    "caddy",
    "port-mcp",
    "docker",
    "watchtower",
    "unraid",
    "grafana",
    "prometheus",
)

APP_KEYWORDS: tuple[str, ...] = (
    "postgres",
    "mysql",
    "redis",
    "mongo",
    "node",
    "api",
    "web",
    "ui",
    "dashboard",
)

GAME_HOST_PORT_FLOOR: int = 20000
UNKNOWN_CONFIDENCE: float = 0.2
MAX_HEURISTIC_CONFIDENCE: float = 0.95
OVERRIDE_CONFIDENCE: float = 1.0

# ── Plan Builder ─────────────────────────────────────────────
MIN_SAFE_CONFIDENCE: float = 0.9
INCREMENTAL_START_PORT: int = 5000

# ── Análise de impacto ───────────────────────────────────────
# Faixas host onde a próxima porta livre é sugerida, por categoria
SUGGESTION_RANGES: dict[str, tuple[tuple[int, int], ...]] = {
    CATEGORY_SYSTEM: ((1, 1023),),
    CATEGORY_APPS: ((1024, 19999),),
    CATEGORY_GAMES: ((7000, 9999), (GAME_HOST_PORT_FLOOR, 39999)),
}

# ── Tipos de ação ────────────────────────────────────────────
ACTION_MANUAL_REVIEW: str = "manual-review"
ACTION_REVIEW_GAME_PORTS: str = "review-game-ports"
ACTION_NO_OP: str = "no-op"
ACTION_UPDATE_CONTAINER_PORTS: str = "update-container-ports"
ACTION_RESERVE_PORT: str = "reserve-port"
ACTION_RELEASE_PORT: str = "release-port"

MUTATION_ACTION_TYPES: frozenset[str] = frozenset({ACTION_UPDATE_CONTAINER_PORTS})

# ── Executor ─────────────────────────────────────────────────
APPLY_PHRASE: str = "APPLY"
DOWNTIME_PHRASE: str = "I UNDERSTAND THIS WILL CAUSE DOWNTIME"

# ── Jobs ─────────────────────────────────────────────────────
MAX_JOB_EVENTS: int = 500
JOB_KIND_EXECUTION: str = "execution"
JOB_KIND_ROLLBACK: str = "rollback"
JOB_KIND_RESTORE: str = "restore"

# ── Runtime de containers ────────────────────────────────────
DOCKER_BIN: str = os.getenv("PORTSENTINEL_DOCKER_BIN", "docker")
DOCKER_TIMEOUT_SECONDS: int = int(os.getenv("PORTSENTINEL_DOCKER_TIMEOUT", "120"))
