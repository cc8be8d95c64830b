"""
core/policies.py
Registro estático de políticas de porta (somente leitura).

Cada política descreve a quem se aplica, o estado desejado e se pode ser
aplicada automaticamente. Não há comportamento aqui: quem interpreta é o
Plan Builder.
"""

from __future__ import annotations

from core.constants import (
    CATEGORY_APPS,
    CATEGORY_GAMES,
    CATEGORY_SYSTEM,
    CATEGORY_UNKNOWN,
    INCREMENTAL_START_PORT,
)
from core.schemas import Policy

APPS_PORT_LAYOUT = "apps-port-layout"
GAMES_PORT_REVIEW = "games-port-review"
SYSTEM_PROTECTION = "system-protection"
UNKNOWN_CLASSIFICATION = "unknown-classification"

POLICIES: tuple[Policy, ...] = (
    Policy(
        id=APPS_PORT_LAYOUT,
        applies_to=CATEGORY_APPS,
        description=(
            "Applications should use a fixed incremental TCP port layout "
            "for consistency"
        ),
        mode="incremental",
        start_port=INCREMENTAL_START_PORT,
        protocol="tcp",
        enforceable=True,
        rationale="Provides predictable ports for dashboards, bookmarks, and proxies",
    ),
    Policy(
        id=GAMES_PORT_REVIEW,
        applies_to=CATEGORY_GAMES,
        description="Game servers require explicit review of port assignments",
        mode="manual",
        enforceable=True,
        rationale="Game servers often require wide or dynamic port ranges",
    ),
    Policy(
        id=SYSTEM_PROTECTION,
        applies_to=CATEGORY_SYSTEM,
        description="System containers must never have ports modified automatically",
        mode="protected",
        enforceable=True,
        rationale="Prevents breaking core infrastructure services",
    ),
    Policy(
        id=UNKNOWN_CLASSIFICATION,
        applies_to=CATEGORY_UNKNOWN,
        description="Unclassified containers require human review before any action",
        mode="manual",
        enforceable=True,
        rationale="Insufficient information to safely apply policies",
    ),
)


def get_policies_for_category(category: str) -> list[Policy]:
    return [p for p in POLICIES if p.applies_to == category]

