"""
core/services/upstream_client.py
Cliente HTTP da autoridade upstream de portas (fonte única da verdade).

Somente leitura para os feeds de estado; escrita apenas nos endpoints de
reserva/liberação usados pelas ações reserve-port / release-port.
Sem retries: a primeira falha de transporte propaga.
"""

from __future__ import annotations

from typing import Any, Optional

import requests

from core.constants import UPSTREAM_BASE_URL, UPSTREAM_TIMEOUT_SECONDS
from core.exceptions import UpstreamTransportError
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)

CONTAINERS_PATH = "/api/v1/containers"
PORTS_PATH = "/api/v1/ports"
NETWORKS_PATH = "/api/v1/networks"
REGISTRY_PATH = "/api/v1/registry"
ALLOCATE_PATH = "/api/v1/ports/allocate"
RELEASE_PATH = "/api/v1/ports/release"


class UpstreamClient:
    """
    Cliente ``requests.Session`` para a autoridade upstream.

    Args:
        base_url:        Endereço base (ex: ``http://127.0.0.1:4100``).
        timeout_seconds: Timeout por requisição.
        session:         Sessão injetável (testes).
    """

    def __init__(
        self,
        base_url: str = UPSTREAM_BASE_URL,
        timeout_seconds: float = UPSTREAM_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                method, url, timeout=self.timeout_seconds, **kwargs
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Falha de transporte em %s %s: %s", method, url, exc)
            raise UpstreamTransportError(f"{method} {path} falhou: {exc}") from exc

        if not response.ok:
            logger.error(
                "Upstream respondeu %d em %s %s: %s",
                response.status_code, method, path, response.text[:500],
            )
            raise UpstreamTransportError(
                f"HTTP {response.status_code} em {method} {path}: {response.text[:500]}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamTransportError(
                f"{method} {path} retornou corpo não-JSON"
            ) from exc

    # ── Feeds de estado ───────────────────────────────────────

    def get_containers(self) -> Any:
        return self._request("GET", CONTAINERS_PATH)

    def get_ports(self) -> Any:
        return self._request("GET", PORTS_PATH)

    def get_networks(self) -> Any:
        return self._request("GET", NETWORKS_PATH)

    def get_registry(self) -> Any:
        return self._request("GET", REGISTRY_PATH)

    # ── Reservas ──────────────────────────────────────────────

    def allocate_ports(self, owner_id: str, ports: list[dict[str, Any]]) -> Any:
        """Reserva portas host em nome de ``owner_id``."""
        payload = {"owner": {"type": "enforcer", "id": owner_id}, "ports": ports}
        return self._request("POST", ALLOCATE_PATH, json=payload)

    def release_ports(self, owner_id: str) -> Any:
        """Libera todas as portas reservadas por ``owner_id``."""
        payload = {"owner": {"type": "enforcer", "id": owner_id}}
        return self._request("POST", RELEASE_PATH, json=payload)
