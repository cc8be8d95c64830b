"""
core/executor/actions/update_container_ports.py
───────────────────────────────────────────────
Recria um container com novas portas publicadas (ALTO RISCO).

Design Decisions
────────────────
1. Duas formas de ação, um único caminho de execução:
   - Lista (Plan Builder): ``from``/``to`` são listas completas de
     PortBinding; os bindings vivos devem ser iguais a ``from`` por
     igualdade de conjunto.
   - Delta (rollback/restore): ``protocol`` + ``containerPort`` e portas
     host escalares. O host vivo dessa chave deve ser igual a ``from``
     (None = chave ausente); o novo conjunto é o vivo com a chave
     substituída, removida ou adicionada.

2. Pré-condição antes de qualquer chamada destrutiva:
   existe → em execução → inspect → comparação com ``from``. Divergência
   lança ``PreconditionFailed`` sem nenhum stop/rm/create.

3. Recriação fiel:
   Somente as portas mudam. Restart policy, env, labels, binds, volumes
   nomeados, workdir, entrypoint, user, capabilities, devices,
   privileged, sysctls e rede primária são reconstruídos a partir do
   inspect; redes secundárias são reconectadas antes do start.

4. Sem recuperação automática:
   Se create/connect/start falhar após o rm, o container fica ausente.
   Os argumentos de create são logados em ERROR para recuperação manual.
"""

from __future__ import annotations

from typing import Any

from core.exceptions import PreconditionFailed, RuntimeCommandError, ValidationError
from core.executor.actions.base import ActionContext
from core.schemas import PlanAction, PortBinding
from internalloggin.logger import setup_logger

logger = setup_logger(__name__)

_SINGLE_NETWORK_MODES = ("host", "none")


# ── Inspect → portas ──────────────────────────────────────────


def extract_published_ports(inspect: dict[str, Any]) -> list[PortBinding]:
    """Bindings publicados em ``NetworkSettings.Ports`` (sem duplicatas IPv4/IPv6)."""
    raw = (inspect.get("NetworkSettings") or {}).get("Ports") or {}
    bindings: list[PortBinding] = []
    seen: set[tuple[int, int, str]] = set()

    for key, published in raw.items():
        if not isinstance(published, list):
            continue
        container_str, _, proto = str(key).partition("/")
        for entry in published:
            try:
                binding = PortBinding(
                    host=int(entry.get("HostPort")),
                    container=int(container_str),
                    protocol=proto or "tcp",
                )
            except (TypeError, ValueError, AttributeError):
                logger.debug("Binding não publicado ignorado em %s: %r", key, entry)
                continue
            if binding.key not in seen:
                seen.add(binding.key)
                bindings.append(binding)
    return bindings


# ── Inspect → argumentos de create ───────────────────────────


def build_create_args(inspect: dict[str, Any], ports: list[PortBinding]) -> list[str]:
    """
    Reconstrói os argumentos de ``create`` a partir do inspect.

    Apenas os flags ``-p`` vêm de ``ports``; todo o resto é preservado.
    """
    config = inspect.get("Config") or {}
    host_config = inspect.get("HostConfig") or {}

    name = str(inspect.get("Name") or "").lstrip("/")
    if not name:
        raise PreconditionFailed("Não foi possível derivar o nome do container do inspect.")
    image = config.get("Image")
    if not image:
        raise PreconditionFailed(f"Não foi possível derivar a imagem de '{name}' do inspect.")

    args: list[str] = ["--name", name]

    restart = host_config.get("RestartPolicy") or {}
    restart_name = restart.get("Name")
    if restart_name == "on-failure":
        args += ["--restart", f"on-failure:{restart.get('MaximumRetryCount') or 0}"]
    elif restart_name and restart_name != "no":
        args += ["--restart", restart_name]

    network_mode = host_config.get("NetworkMode")
    if network_mode and network_mode != "default":
        args += ["--network", network_mode]

    for env in config.get("Env") or []:
        args += ["-e", env]
    for key, value in (config.get("Labels") or {}).items():
        args += ["--label", f"{key}={value}"]

    for bind in host_config.get("Binds") or []:
        args += ["-v", bind]
    for mount in inspect.get("Mounts") or []:
        if mount.get("Type") == "volume" and mount.get("Name"):
            mode = "rw" if mount.get("RW", True) else "ro"
            args += ["-v", f"{mount['Name']}:{mount['Destination']}:{mode}"]

    if config.get("WorkingDir"):
        args += ["-w", config["WorkingDir"]]

    entrypoint = config.get("Entrypoint") or []
    if isinstance(entrypoint, str):
        entrypoint = [entrypoint]
    if entrypoint:
        args += ["--entrypoint", entrypoint[0]]

    if config.get("User"):
        args += ["-u", config["User"]]

    for cap in host_config.get("CapAdd") or []:
        args += ["--cap-add", cap]
    for cap in host_config.get("CapDrop") or []:
        args += ["--cap-drop", cap]
    for device in host_config.get("Devices") or []:
        spec = f"{device.get('PathOnHost')}:{device.get('PathInContainer')}"
        if device.get("CgroupPermissions"):
            spec += f":{device['CgroupPermissions']}"
        args += ["--device", spec]
    if host_config.get("Privileged"):
        args.append("--privileged")
    for key, value in (host_config.get("Sysctls") or {}).items():
        args += ["--sysctl", f"{key}={value}"]

    # a mutação
    for binding in ports:
        args += ["-p", binding.flag]

    args.append(image)
    args += list(entrypoint[1:])
    args += list(config.get("Cmd") or [])
    return args


def secondary_networks(inspect: dict[str, Any]) -> list[str]:
    """Redes conectadas além do NetworkMode primário."""
    primary = (inspect.get("HostConfig") or {}).get("NetworkMode") or ""
    if primary in _SINGLE_NETWORK_MODES or primary.startswith("container:"):
        return []
    networks = ((inspect.get("NetworkSettings") or {}).get("Networks")) or {}
    return [n for n in networks if n != primary and not (primary == "default" and n == "bridge")]


# ── Validação das formas de ação ─────────────────────────────


def is_delta_form(action: PlanAction) -> bool:
    return action.protocol is not None or action.container_port is not None


def _validate_list_form(action: PlanAction) -> tuple[list[PortBinding], list[PortBinding]]:
    if not isinstance(action.from_, list) or not action.from_:
        raise ValidationError(f"update-container-ports em '{action.container}' exige from[] não vazio.")
    if not isinstance(action.to, list) or not action.to:
        raise ValidationError(f"update-container-ports em '{action.container}' exige to[] não vazio.")
    return action.from_, action.to


def _validate_delta_form(action: PlanAction) -> None:
    if action.protocol is None or action.container_port is None:
        raise ValidationError(
            f"Ação delta em '{action.container}' exige protocol e containerPort."
        )
    if not 1 <= action.container_port <= 65535:
        raise ValidationError(f"containerPort inválido: {action.container_port}")
    for label, value in (("from", action.from_), ("to", action.to)):
        if value is not None and (not isinstance(value, int) or not 1 <= value <= 65535):
            raise ValidationError(f"Valor '{label}' inválido na ação delta: {value!r}")
    if action.from_ is None and action.to is None:
        raise ValidationError(f"Ação delta em '{action.container}' sem from nem to.")


def validate_update_action(action: PlanAction) -> None:
    """Checagem estrutural (lista ou delta), sem tocar no runtime."""
    if is_delta_form(action):
        _validate_delta_form(action)
    else:
        _validate_list_form(action)


def _apply_delta(live: list[PortBinding], action: PlanAction) -> list[PortBinding]:
    def matches(binding: PortBinding) -> bool:
        return binding.container == action.container_port and binding.protocol == action.protocol

    current = [b for b in live if matches(b)]
    if len(current) > 1:
        raise PreconditionFailed(
            f"{action.container}: {action.container_port}/{action.protocol} publicado "
            f"em mais de uma porta host ({[b.host for b in current]})."
        )
    live_host = current[0].host if current else None
    if live_host != action.from_:
        raise PreconditionFailed(
            f"{action.container}: porta host viva de {action.container_port}/{action.protocol} "
            f"é {live_host}, plano esperava {action.from_}."
        )

    target = [b for b in live if not matches(b)]
    if action.to is not None:
        target.append(
            PortBinding(host=action.to, container=action.container_port, protocol=action.protocol)
        )
    return target


# ── Handler ───────────────────────────────────────────────────


def update_container_ports(action: PlanAction, ctx: ActionContext) -> dict[str, Any]:
    name = action.container
    delta = is_delta_form(action)
    if delta:
        _validate_delta_form(action)
    else:
        expected, desired = _validate_list_form(action)

    runtime = ctx.runtime
    if not runtime.exists(name):
        raise PreconditionFailed(f"Container não encontrado: {name}")
    if not runtime.is_running(name):
        raise PreconditionFailed(f"Container não está em execução: {name} (mutação recusada)")

    inspect = runtime.inspect(name)
    live = extract_published_ports(inspect)

    if delta:
        target = _apply_delta(live, action)
    else:
        if {b.key for b in live} != {b.key for b in expected}:
            logger.warning(
                "Pré-condição divergente em %s: vivo=%s plano=%s",
                name, [b.flag for b in live], [b.flag for b in expected],
            )
            raise PreconditionFailed(
                f"plan.from não corresponde às portas publicadas atuais de {name}"
            )
        target = desired

    flags = [b.flag for b in target]
    create_args = build_create_args(inspect, target)

    if ctx.dry_run:
        logger.info("DRY-RUN update-container-ports %s: %s", name, flags)
        return {"status": "validated", "container": name, "ports": flags}

    networks = secondary_networks(inspect)
    logger.warning("Recriando %s com portas %s (downtime esperado).", name, flags)

    runtime.stop(name)
    runtime.remove(name)
    try:
        runtime.create(create_args)
        for network in networks:
            runtime.network_connect(network, name)
        runtime.start(name)
    except RuntimeCommandError:
        logger.error(
            "Recriação parcial de %s. Argumentos de create para recuperação manual: %s",
            name, create_args,
        )
        raise

    logger.info("Container %s recriado com sucesso.", name)
    return {"status": "success", "container": name, "ports": flags}
