"""
core/analysis.py
────────────────
Análise somente leitura do estado: colisões de porta, drift do registry e
postura de rede. Produz apenas achados; nenhuma política é aplicada.

Design Decisions
────────────────
1. Colisão = mesma porta host/protocolo usada por mais de um container.
   Entradas duplicadas do mesmo container (IPv4/IPv6) não contam.

2. Drift do registry em duas direções:
   ``unregisteredInUse`` (publicada sem reserva) e ``staleRegistry``
   (reservada sem nenhuma publicação).

3. Postura de rede:
   containers em múltiplas redes, em ``host``, em redes ``brN`` (macvlan /
   ipvlan típicas), na ``bridge`` padrão e em redes customizadas; além do
   uso por rede ordenado por quantidade de containers.

4. Impacto de troca de porta:
   Outros containers que citam a porta host em Env, Labels ou comando
   (lidos do inspect do runtime) são dependências de alta confiança;
   redes compartilhadas, de baixa. A sugestão de porta livre respeita a
   faixa da categoria e nunca repete uma porta já sugerida.
"""

from __future__ import annotations

import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from core.constants import CATEGORY_APPS, CATEGORY_GAMES, INCREMENTAL_START_PORT, SUGGESTION_RANGES
from core.exceptions import NotFoundError
from core.schemas import ClassificationResult, State

_BR_LIKE = re.compile(r"^br\d+$", re.IGNORECASE)
_BUILTIN_NETWORKS = ("bridge", "host", "none")


def _sort_host_proto(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(items, key=lambda i: (i["host"], i["protocol"]))


def analyze_ports(state: State) -> dict[str, Any]:
    by_key: dict[tuple[int, str], dict[str, dict[str, Any]]] = defaultdict(dict)
    for record in state.ports:
        users = by_key[(record.host, record.protocol)]
        users.setdefault(record.container, {
            "containerName": record.container,
            "containerPort": record.container_port,
            "ip": record.ip,
        })

    collisions = _sort_host_proto([
        {"host": host, "protocol": proto, "usedBy": list(users.values())}
        for (host, proto), users in by_key.items()
        if len(users) > 1
    ])

    registered = {(r.host, r.protocol) for r in state.registry}
    unregistered = _sort_host_proto([
        {
            "host": record.host,
            "protocol": record.protocol,
            "containerName": record.container,
            "containerPort": record.container_port,
            "ip": record.ip,
        }
        for record in state.ports
        if (record.host, record.protocol) not in registered
    ])
    stale = _sort_host_proto([
        {
            "host": entry.host,
            "protocol": entry.protocol,
            "owner": entry.owner,
            "range": entry.range,
            "createdAt": entry.created_at,
            "binding": entry.binding,
        }
        for entry in state.registry
        if (entry.host, entry.protocol) not in by_key
    ])

    return {
        "totals": {
            "livePorts": len(state.ports),
            "registryEntries": len(state.registry),
            "collisions": len(collisions),
            "unregisteredInUse": len(unregistered),
            "staleRegistry": len(stale),
        },
        "collisions": collisions,
        "drift": {"unregisteredInUse": unregistered, "staleRegistry": stale},
    }


def analyze_networks(state: State) -> dict[str, Any]:
    usage: dict[str, list[dict[str, Any]]] = defaultdict(list)
    posture: dict[str, list[dict[str, Any]]] = {
        "multiNetworkContainers": [],
        "hostNetContainers": [],
        "br0LikeContainers": [],
        "bridgeContainers": [],
        "customBridgeContainers": [],
    }

    for container in state.containers:
        ref = {"id": container.id, "name": container.name}
        names = [n.name for n in container.networks if n.name]

        if len(names) > 1:
            posture["multiNetworkContainers"].append({**ref, "networks": names})
        if "host" in names:
            posture["hostNetContainers"].append(ref)
        if "bridge" in names:
            posture["bridgeContainers"].append(ref)

        for name in names:
            usage[name].append({**ref, "running": container.running})
            if _BR_LIKE.match(name):
                posture["br0LikeContainers"].append({**ref, "network": name})
            elif name not in _BUILTIN_NETWORKS:
                posture["customBridgeContainers"].append({**ref, "network": name})

    usage_list = sorted(
        (
            {
                "network": network,
                "totalContainers": len(members),
                "runningContainers": sum(1 for m in members if m["running"]),
                "containers": members,
            }
            for network, members in usage.items()
        ),
        key=lambda u: (-u["totalContainers"], u["network"]),
    )

    return {
        "totals": {
            "networks": len(state.networks),
            "containers": len(state.containers),
            **{key: len(items) for key, items in posture.items()},
        },
        "usage": usage_list,
        "posture": posture,
    }


def analyze_state(state: State) -> dict[str, Any]:
    """Executa todas as análises e devolve o relatório consolidado."""
    ports = analyze_ports(state)
    networks = analyze_networks(state)
    return {
        "summary": {
            "analyzedAt": datetime.now(timezone.utc).isoformat(),
            "ports": ports["totals"],
            "networks": networks["totals"],
        },
        "ports": ports,
        "networks": networks,
    }


# ── Impacto de troca de porta ─────────────────────────────────


_DETAIL_MAX = 80


def _truncate(text: str) -> str:
    return text if len(text) <= _DETAIL_MAX else text[: _DETAIL_MAX - 3] + "..."


def suggest_free_port(
    category: str,
    current_port: int,
    used_hosts: Iterable[int],
    already_suggested: Iterable[int] = (),
) -> Optional[dict[str, Any]]:
    """
    Próxima porta host livre na faixa da categoria.

    Apps começam em ``INCREMENTAL_START_PORT``. Games procuram primeiro na
    faixa que contém a porta atual (a alta, se nenhuma contiver) e depois
    na outra. Demais categorias avançam a partir da porta atual quando ela
    já está na faixa.
    Categorias sem faixa própria usam a de apps.
    """
    if category not in SUGGESTION_RANGES:
        category = CATEGORY_APPS
    taken = set(used_hosts) | set(already_suggested)
    ranges = list(SUGGESTION_RANGES[category])

    if category == CATEGORY_GAMES:
        preferred = next((r for r in ranges if r[0] <= current_port <= r[1]), ranges[-1])
        ranges = [preferred] + [r for r in ranges if r != preferred]

    for index, (low, high) in enumerate(ranges):
        if category == CATEGORY_APPS:
            start = max(INCREMENTAL_START_PORT, low)
        elif low <= current_port <= high:
            start = current_port + 1
        else:
            start = low
        for port in range(start, high + 1):
            if port not in taken:
                reason = f"Próxima livre na faixa {category}"
                if index > 0 and category == CATEGORY_GAMES:
                    reason += " (faixa preferida cheia)"
                return {"port": port, "range": f"{low}-{high}", "reason": reason}
    return None


def find_port_references(name: str, port: int, inspect: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Referências literais a ``port`` em Env, Labels e comando de um container."""
    config = inspect.get("Config") or {}
    assignment = re.compile(rf"[:= {{]{port}(?!\d)")
    bare = re.compile(rf"(?<!\d){port}(?!\d)")
    references: list[dict[str, Any]] = []

    for line in config.get("Env") or []:
        if assignment.search(line):
            references.append({
                "container": name,
                "type": "environment",
                "location": "ENV",
                "detail": _truncate(line),
                "confidence": "high",
                "risk": "breaking",
            })

    for key, value in (config.get("Labels") or {}).items():
        value = str(value)
        # valor só com o número (ex: ...server.port=8080)
        if assignment.search(value) or value.strip() == str(port):
            references.append({
                "container": name,
                "type": "label",
                "location": key,
                "detail": _truncate(value),
                "confidence": "high",
                "risk": "breaking",
            })

    entrypoint = config.get("Entrypoint") or []
    if isinstance(entrypoint, str):
        entrypoint = [entrypoint]
    command = " ".join([*entrypoint, *(config.get("Cmd") or [])])
    if command and bare.search(command):
        references.append({
            "container": name,
            "type": "command",
            "location": "CMD",
            "detail": _truncate(command),
            "confidence": "medium",
            "risk": "potential",
        })
    return references


def analyze_port_impact(
    state: State,
    classification: ClassificationResult,
    container_name: str,
    current_port: int,
    inspect_docs: Mapping[str, Mapping[str, Any]],
    *,
    new_port: Optional[int] = None,
    already_suggested: Iterable[int] = (),
) -> dict[str, Any]:
    """
    Quem seria afetado se ``container_name`` trocasse a porta host
    ``current_port``.

    Args:
        inspect_docs: documentos de inspect por nome de container; quem não
                      estiver aqui só é avaliado por rede compartilhada.
        new_port:     porta pretendida; sem ela, uma porta livre é sugerida.

    Raises:
        NotFoundError: ``container_name`` não está no estado.
    """
    target = next((c for c in state.containers if c.name == container_name), None)
    if target is None:
        raise NotFoundError(f"Container não encontrado: {container_name}")

    categories = {c.name: c.category for c in classification.containers}
    category = categories.get(container_name, CATEGORY_APPS)

    owners: dict[int, str] = {r.host: r.container for r in state.ports}
    for container in state.containers:
        for binding in container.ports:
            owners.setdefault(binding.host, container.name)

    warnings: list[str] = []
    has_port = any(b.host == current_port for b in target.ports) or any(
        r.container == container_name and r.host == current_port for r in state.ports
    )
    if not has_port:
        warnings.append(f"{container_name} não publica a porta {current_port}")

    port_available: Optional[bool] = None
    suggested = None
    if new_port is not None:
        holder = owners.get(new_port)
        port_available = holder is None
        if holder is not None:
            warnings.append(f"Porta {new_port} já em uso por {holder}")
    else:
        suggested = suggest_free_port(category, current_port, owners, already_suggested)

    target_networks = {n.name for n in target.networks}
    hardcoded: list[dict[str, Any]] = []
    shared: list[dict[str, Any]] = []
    for container in state.containers:
        if container.name == container_name:
            continue
        refs = find_port_references(
            container.name, current_port, inspect_docs.get(container.name) or {}
        )
        if refs:
            hardcoded.append({
                "name": container.name,
                "category": categories.get(container.name),
                "priority": "high",
                "references": refs,
                "reason": " | ".join(f"{r['type']}: {r['detail']}" for r in refs),
            })
            continue
        common = sorted(target_networks & {n.name for n in container.networks})
        if common:
            shared.append({
                "name": container.name,
                "category": categories.get(container.name),
                "priority": "low",
                "networks": common,
                "reason": f"Rede compartilhada: {', '.join(common)}",
            })

    affected = sorted(hardcoded, key=lambda a: a["name"]) + sorted(shared, key=lambda a: a["name"])
    return {
        "containerName": container_name,
        "category": category,
        "currentPort": current_port,
        "newPort": new_port,
        "suggestedPort": suggested,
        "checks": {"hasPort": has_port, "portAvailable": port_available},
        "warnings": warnings,
        "affectedContainers": affected,
        "summary": {
            "totalAffected": len(affected),
            "highConfidence": len(hardcoded),
            "lowConfidence": len(shared),
            "requiresManualUpdate": bool(affected),
        },
    }
