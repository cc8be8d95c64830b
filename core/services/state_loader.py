"""
core/services/state_loader.py
─────────────────────────────
Busca o estado autoritativo na autoridade upstream e o normaliza no
schema estrito ``State`` (schemaVersion 1) consumido pelo núcleo.

Design Decisions
────────────────
1. Fan-out concorrente:
   Os quatro feeds (containers, ports, networks, registry) são buscados em
   paralelo com ``ThreadPoolExecutor``. A primeira falha de transporte
   propaga como ``UpstreamTransportError``; não há retry.

2. Contrato de envelope:
   ``{containers: [...]}``, ``{ports: [...]}`` e ``{networks: [...]}``
   são obrigatórios; fora disso, ``ContractViolation``. O registry aceita
   array puro, envelope ``registry``/``entries`` ou, como shim de
   compatibilidade, o primeiro campo do objeto que for array.

3. Descoberta defensiva confinada aqui:
   Nomes heterogêneos (``HostPort``, ``publicPort``, ``privatePort``,
   ``Protocol``...) são resolvidos neste módulo; o resto do sistema vê
   apenas campos canônicos. Entradas de porta inválidas são descartadas
   com WARNING; bindings duplicados (pares IPv4/IPv6) colapsam em um.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping, Optional, Protocol

from core.exceptions import ContractViolation
from core.schemas import (
    Container,
    NetworkAttachment,
    NetworkInfo,
    PortBinding,
    PortRecord,
    PortSnapshot,
    RegistryEntry,
    State,
)
from core.services.upstream_client import UpstreamClient
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)

_HOST_KEYS = ("host", "hostPort", "HostPort", "public", "publicPort", "PublicPort")
_CONTAINER_PORT_KEYS = (
    "containerPort", "ContainerPort", "private", "privatePort", "PrivatePort",
)
_PROTOCOL_KEYS = ("protocol", "Protocol", "proto", "Type")
_PROTOCOLS = ("tcp", "udp")


class StateSource(Protocol):
    """Qualquer objeto que exponha os quatro feeds (ex: UpstreamClient)."""

    def get_containers(self) -> Any: ...
    def get_ports(self) -> Any: ...
    def get_networks(self) -> Any: ...
    def get_registry(self) -> Any: ...


# ── Helpers de normalização ───────────────────────────────────


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _as_port(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        port = int(str(value).strip())
    except ValueError:
        return None
    return port if 1 <= port <= 65535 else None


def _as_protocol(value: Any) -> Optional[str]:
    if value is None or str(value).strip() == "":
        return "tcp"
    proto = str(value).strip().lower()
    return proto if proto in _PROTOCOLS else None


def _is_running(record: Mapping[str, Any]) -> bool:
    running = record.get("running")
    if isinstance(running, bool):
        return running
    state = record.get("state") or record.get("State")
    if isinstance(state, str):
        return state.strip().lower() == "running"
    if isinstance(state, Mapping) and isinstance(state.get("Running"), bool):
        return state["Running"]
    status = record.get("status") or record.get("Status")
    return isinstance(status, str) and status.strip().lower().startswith("up")


def _container_name(record: Mapping[str, Any]) -> Optional[str]:
    name = _first(record, "name", "containerName", "Name")
    if name is None:
        names = record.get("Names")
        if isinstance(names, list) and names:
            name = names[0]
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip().lstrip("/")


def _binding(entry: Any, owner: str) -> Optional[PortBinding]:
    if not isinstance(entry, Mapping):
        logger.warning("[%s] Entrada de porta ignorada (não é objeto): %r", owner, entry)
        return None

    host = _as_port(_first(entry, *_HOST_KEYS))
    container_raw = _first(entry, *_CONTAINER_PORT_KEYS)
    if container_raw is None and not isinstance(entry.get("container"), str):
        container_raw = entry.get("container")
    container = _as_port(container_raw)
    protocol = _as_protocol(_first(entry, *_PROTOCOL_KEYS))

    if host is None or container is None or protocol is None:
        logger.warning("[%s] Entrada de porta inválida descartada: %r", owner, entry)
        return None
    return PortBinding(host=host, container=container, protocol=protocol)


def _dedupe(bindings: list[PortBinding]) -> list[PortBinding]:
    seen: set[tuple[int, int, str]] = set()
    unique: list[PortBinding] = []
    for binding in bindings:
        if binding.key not in seen:
            seen.add(binding.key)
            unique.append(binding)
    return unique


def _networks(raw: Any) -> list[NetworkAttachment]:
    attachments: list[NetworkAttachment] = []
    if isinstance(raw, Mapping):
        items = [
            {"name": name, **(value if isinstance(value, Mapping) else {})}
            for name, value in raw.items()
        ]
    elif isinstance(raw, list):
        items = raw
    else:
        return attachments

    for item in items:
        if isinstance(item, str):
            attachments.append(NetworkAttachment(name=item))
            continue
        if not isinstance(item, Mapping):
            continue
        name = _first(item, "name", "Name", "network")
        if not isinstance(name, str) or not name:
            continue
        attachments.append(
            NetworkAttachment(
                name=name,
                ip=_first(item, "ip", "IPAddress", "ipAddress"),
                gateway=_first(item, "gateway", "Gateway"),
            )
        )
    return attachments


# ── Normalização por feed ─────────────────────────────────────


def normalize_port_records(raw_ports: list[Any]) -> list[PortRecord]:
    """Normaliza o feed plano de portas; entradas sem container são descartadas."""
    records: list[PortRecord] = []
    for entry in raw_ports:
        if not isinstance(entry, Mapping):
            logger.warning("Entrada do feed de portas ignorada: %r", entry)
            continue
        name = entry.get("container") if isinstance(entry.get("container"), str) else None
        name = name or _container_name(entry)
        binding = _binding(entry, name or "?")
        if name is None or binding is None:
            if name is None:
                logger.warning("Porta sem container associado descartada: %r", entry)
            continue
        records.append(
            PortRecord(
                container=name,
                container_port=binding.container,
                host=binding.host,
                protocol=binding.protocol,
                ip=_first(entry, "ip", "hostIp", "HostIp", "IP"),
            )
        )
    return records


def normalize_containers(
    raw_containers: list[Any], port_records: list[PortRecord]
) -> list[Container]:
    """Normaliza containers; portas do próprio registro têm precedência sobre o feed."""
    by_container: dict[str, list[PortBinding]] = {}
    for record in port_records:
        by_container.setdefault(record.container, []).append(
            PortBinding(
                host=record.host,
                container=record.container_port,
                protocol=record.protocol,
            )
        )

    containers: list[Container] = []
    for raw in raw_containers:
        if not isinstance(raw, Mapping):
            logger.warning("Registro de container ignorado (não é objeto): %r", raw)
            continue
        name = _container_name(raw)
        if name is None:
            logger.warning("Container sem nome descartado: %r", raw)
            continue

        embedded = _first(raw, "ports", "Ports")
        if isinstance(embedded, list):
            bindings = [b for b in (_binding(e, name) for e in embedded) if b is not None]
        else:
            bindings = by_container.get(name, [])

        image = _first(raw, "image", "Image")
        container_id = _first(raw, "id", "containerId", "Id")
        containers.append(
            Container(
                id=str(container_id) if container_id is not None else None,
                name=name,
                image=str(image) if image is not None else "",
                running=_is_running(raw),
                ports=_dedupe(bindings),
                networks=_networks(_first(raw, "networks", "Networks")),
            )
        )
    return containers


def normalize_networks(raw_networks: list[Any]) -> list[NetworkInfo]:
    networks: list[NetworkInfo] = []
    for raw in raw_networks:
        if not isinstance(raw, Mapping):
            continue
        networks.append(
            NetworkInfo(
                id=_first(raw, "id", "Id"),
                name=_first(raw, "name", "Name"),
                driver=_first(raw, "driver", "Driver"),
                scope=_first(raw, "scope", "Scope"),
                internal=bool(_first(raw, "internal", "Internal")),
                attachable=bool(_first(raw, "attachable", "Attachable")),
            )
        )
    return networks


def normalize_registry(raw_entries: list[Any]) -> list[RegistryEntry]:
    entries: list[RegistryEntry] = []
    for raw in raw_entries:
        if not isinstance(raw, Mapping):
            logger.warning("Entrada de registry ignorada: %r", raw)
            continue
        host = _as_port(_first(raw, "host", "port"))
        protocol = _as_protocol(raw.get("protocol"))
        if host is None or protocol is None:
            logger.warning("Entrada de registry inválida descartada: %r", raw)
            continue
        entries.append(
            RegistryEntry(
                host=host,
                protocol=protocol,
                owner=raw.get("owner"),
                range=raw.get("range"),
                created_at=raw.get("createdAt"),
                binding=raw.get("binding"),
            )
        )
    return entries


# ── Contrato de envelopes ─────────────────────────────────────


def _require_array(response: Any, field: str) -> list[Any]:
    if not isinstance(response, Mapping) or not isinstance(response.get(field), list):
        raise ContractViolation(
            f"Resposta inválida do feed '{field}': esperado {{{field}: [...]}}."
        )
    return response[field]


def extract_registry_entries(response: Any) -> list[Any]:
    """Array puro, envelope ``registry``/``entries`` ou primeiro campo array."""
    if isinstance(response, list):
        return response
    if isinstance(response, Mapping):
        for field in ("registry", "entries"):
            if isinstance(response.get(field), list):
                return response[field]
        for value in response.values():
            if isinstance(value, list):
                logger.debug("Registry em envelope não padrão; usando primeiro array.")
                return value
    raise ContractViolation("Resposta inválida do feed 'registry': nenhum array encontrado.")


# ── API pública ───────────────────────────────────────────────


def load_state(
    source_address: Optional[str] = None,
    client: Optional[StateSource] = None,
) -> State:
    """
    Busca e normaliza o estado atual.

    Args:
        source_address: URL base da autoridade upstream (ignorada se ``client``
                        for informado).
        client:         Fonte de feeds injetável.

    Raises:
        UpstreamTransportError: falha de rede/HTTP.
        ContractViolation:      feed fora do contrato.
    """
    if client is None:
        client = UpstreamClient(source_address) if source_address else UpstreamClient()

    with ThreadPoolExecutor(max_workers=4, thread_name_prefix="state-feed") as pool:
        futures = [
            pool.submit(client.get_containers),
            pool.submit(client.get_ports),
            pool.submit(client.get_networks),
            pool.submit(client.get_registry),
        ]
        containers_res, ports_res, networks_res, registry_res = (
            f.result() for f in futures
        )

    raw_containers = _require_array(containers_res, "containers")
    raw_ports = _require_array(ports_res, "ports")
    raw_networks = _require_array(networks_res, "networks")
    raw_registry = extract_registry_entries(registry_res)

    port_records = normalize_port_records(raw_ports)
    state = State(
        containers=normalize_containers(raw_containers, port_records),
        ports=port_records,
        networks=normalize_networks(raw_networks),
        registry=normalize_registry(raw_registry),
    )
    logger.info(
        "Estado carregado: %d containers, %d portas, %d redes, %d reservas.",
        len(state.containers), len(state.ports), len(state.networks), len(state.registry),
    )
    return state


def capture_port_snapshot(state: State) -> PortSnapshot:
    """Portas canônicas do estado no formato de snapshot de job."""
    return PortSnapshot(ports=state.port_records())
