"""
core/classifier.py
──────────────────
Classificador determinístico de containers (somente leitura).

Atribui a cada container uma categoria (system / apps / games / unknown)
com um grau de confiança e as razões que levaram à decisão.

Design Decisions
────────────────
1. Conservador por construção:
   Na dúvida, ``unknown`` com confiança 0.2. Uma categoria só é atribuída
   quando a pontuação vencedora supera a segunda colocada por pelo menos
   um ponto.

2. Pontuação:
       keyword de jogo no nome/imagem       games  +2
       keyword de infraestrutura            system +2
       keyword de aplicação                 apps   +1
       alguma porta UDP                     games  +2
       portas não vazias e todas TCP        apps   +1
       alguma porta host >= 20000           games  +1

   Empates são resolvidos por sort estável na ordem system, apps, games.
   Confiança = min(0.95, pontuação / 5).

3. Overrides são autoritativos:
   categoria forçada, confiança 1.0, razão "user override". A validação
   dos valores acontece antes, em ``core.intent.parse_overrides``.

4. Função pura:
   Nenhum I/O e nenhuma exceção em entradas normais; a incerteza é
   devolvida como dado.
"""

from __future__ import annotations

from typing import Mapping, Optional

from core.constants import (
    APP_KEYWORDS,
    CATEGORY_APPS,
    CATEGORY_GAMES,
    CATEGORY_SYSTEM,
    CATEGORY_UNKNOWN,
    GAME_HOST_PORT_FLOOR,
    GAME_KEYWORDS,
    MAX_HEURISTIC_CONFIDENCE,
    OVERRIDE_CONFIDENCE,
    SCORED_CATEGORIES,
    SYSTEM_KEYWORDS,
    UNKNOWN_CONFIDENCE,
)
from core.schemas import Classification, ClassificationResult, Container, State

OVERRIDE_REASON = "user override"


def _contains_any(haystack: str, needles: tuple[str, ...]) -> bool:
    return any(n in haystack for n in needles)


def classify_container(
    container: Container,
    overrides: Optional[Mapping[str, str]] = None,
) -> Classification:
    """Classifica um único container."""
    override = (overrides or {}).get(container.name)
    if override:
        return Classification(
            id=container.id,
            name=container.name,
            image=container.image,
            category=override,
            confidence=OVERRIDE_CONFIDENCE,
            reasons=[OVERRIDE_REASON],
        )

    name = (container.name or "").lower()
    image = (container.image or "").lower()
    ports = container.ports

    score = {category: 0 for category in SCORED_CATEGORIES}
    reasons: list[str] = []

    # ── Sinais por palavra-chave ─────────────────────────────
    if _contains_any(name, GAME_KEYWORDS) or _contains_any(image, GAME_KEYWORDS):
        score[CATEGORY_GAMES] += 2
        reasons.append("matches known game keywords")

    if _contains_any(name, SYSTEM_KEYWORDS) or _contains_any(image, SYSTEM_KEYWORDS):
        score[CATEGORY_SYSTEM] += 2
        reasons.append("matches infrastructure keywords")

    if _contains_any(name, APP_KEYWORDS) or _contains_any(image, APP_KEYWORDS):
        score[CATEGORY_APPS] += 1
        reasons.append("matches application keywords")

    # ── Sinais por porta ─────────────────────────────────────
    if any(p.protocol == "udp" for p in ports):
        score[CATEGORY_GAMES] += 2
        reasons.append("exposes UDP ports")

    if ports and all(p.protocol == "tcp" for p in ports):
        score[CATEGORY_APPS] += 1
        reasons.append("TCP-only exposure")

    if any(p.host >= GAME_HOST_PORT_FLOOR for p in ports):
        score[CATEGORY_GAMES] += 1
        reasons.append("host ports in typical game range")

    # sorted() é estável: empates preservam a ordem de SCORED_CATEGORIES
    ranked = sorted(score.items(), key=lambda item: item[1], reverse=True)
    (top_category, top_score), (_, runner_up) = ranked[0], ranked[1]

    category = CATEGORY_UNKNOWN
    confidence = UNKNOWN_CONFIDENCE
    if top_score > 0 and top_score >= runner_up + 1:
        category = top_category
        confidence = min(MAX_HEURISTIC_CONFIDENCE, top_score / 5)

    return Classification(
        id=container.id,
        name=container.name,
        image=container.image,
        category=category,
        confidence=confidence,
        reasons=reasons,
    )


def classify(
    state: State,
    overrides: Optional[Mapping[str, str]] = None,
) -> ClassificationResult:
    """
    Classifica todos os containers do estado, na ordem em que aparecem.

    Args:
        state:     Estado normalizado pelo State Loader.
        overrides: ``{nome: categoria}`` já validado por ``parse_overrides``.
    """
    return ClassificationResult(
        containers=[classify_container(c, overrides) for c in state.containers]
    )
