"""
tests/conftest.py
Fixtures compartilhadas: estados de exemplo, runtime em memória, upstream
falso e diretórios temporários.
"""

from __future__ import annotations

import os
import tempfile

# Logs de teste fora da árvore do projeto (antes de qualquer import do pacote)
_SCRATCH = tempfile.mkdtemp(prefix="portsentinel-tests-")
os.environ.setdefault("PORTSENTINEL_LOG_DIR", os.path.join(_SCRATCH, "logs"))
os.environ.setdefault("PORTSENTINEL_SNAPSHOTS_DIR", os.path.join(_SCRATCH, "snapshots"))
os.environ.setdefault("PORTSENTINEL_AUDIT_LOG", os.path.join(_SCRATCH, "audit.log"))
os.environ.setdefault("PORTSENTINEL_CONSOLE_LOG_LEVEL", "CRITICAL")

from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402

from core.base_runtime import ContainerRuntime  # noqa: E402
from core.exceptions import RuntimeCommandError  # noqa: E402
from core.executor import AuditLog  # noqa: E402
from core.job_registry import JobRegistry  # noqa: E402
from core.schemas import Container, PortBinding, State  # noqa: E402
from core.snapshot_manager import SnapshotManager  # noqa: E402


# ── Runtime em memória ────────────────────────────────────────


def make_inspect(
    name: str,
    ports: list[tuple[int, int, str]],
    *,
    image: str = "acme/app:1.0",
    network_mode: str = "bridge",
    networks: Optional[list[str]] = None,
) -> dict[str, Any]:
    """Documento de inspect mínimo com as portas publicadas informadas."""
    published: dict[str, list[dict[str, str]]] = {}
    for host, container, proto in ports:
        published.setdefault(f"{container}/{proto}", []).append(
            {"HostIp": "0.0.0.0", "HostPort": str(host)}
        )
    return {
        "Name": f"/{name}",
        "Config": {
            "Image": image,
            "Env": ["TZ=UTC"],
            "Labels": {"app": name},
            "Cmd": ["serve"],
            "Entrypoint": None,
            "WorkingDir": "",
            "User": "",
        },
        "HostConfig": {
            "RestartPolicy": {"Name": "unless-stopped", "MaximumRetryCount": 0},
            "NetworkMode": network_mode,
            "Binds": ["/data:/data:rw"],
        },
        "Mounts": [],
        "NetworkSettings": {
            "Ports": published,
            "Networks": {n: {} for n in (networks or [network_mode])},
        },
    }


class FakeRuntime(ContainerRuntime):
    """Runtime que registra chamadas e simula recriação de containers."""

    def __init__(self, containers: Optional[dict[str, dict[str, Any]]] = None) -> None:
        super().__init__()
        self.containers: dict[str, dict[str, Any]] = dict(containers or {})
        self.running: set[str] = set(self.containers)
        self.removed: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.fail_on: Optional[str] = None

    def _maybe_fail(self, op: str) -> None:
        if self.fail_on == op:
            raise RuntimeCommandError(["docker", op], 1, f"{op} falhou")

    def exists(self, name: str) -> bool:
        return name in self.containers

    def is_running(self, name: str) -> bool:
        return name in self.running

    def inspect(self, name: str) -> dict[str, Any]:
        self.calls.append(("inspect", name))
        return self.containers[name]

    def stop(self, name: str) -> None:
        self.calls.append(("stop", name))
        self._maybe_fail("stop")
        self.running.discard(name)

    def remove(self, name: str) -> None:
        self.calls.append(("remove", name))
        self._maybe_fail("remove")
        self.removed[name] = self.containers.pop(name)

    def create(self, args: list[str]) -> None:
        self.calls.append(("create", *args))
        self._maybe_fail("create")
        name = args[args.index("--name") + 1]
        ports: list[tuple[int, int, str]] = []
        for i, arg in enumerate(args):
            if arg == "-p":
                host, rest = args[i + 1].split(":", 1)
                container, proto = rest.split("/")
                ports.append((int(host), int(container), proto))
        previous = self.removed.get(name)
        image = previous["Config"]["Image"] if previous else "acme/app:1.0"
        self.containers[name] = make_inspect(name, ports, image=image)

    def start(self, name: str) -> None:
        self.calls.append(("start", name))
        self._maybe_fail("start")
        self.running.add(name)

    def network_connect(self, network: str, name: str) -> None:
        self.calls.append(("network_connect", network, name))

    def mutating_calls(self) -> list[str]:
        return [c[0] for c in self.calls if c[0] in ("stop", "remove", "create", "start")]

    def state(self) -> State:
        """Estado equivalente ao que a autoridade upstream reportaria."""
        containers = []
        for name, doc in self.containers.items():
            bindings = []
            for key, published in doc["NetworkSettings"]["Ports"].items():
                port, proto = key.split("/")
                for entry in published:
                    bindings.append(
                        PortBinding(host=int(entry["HostPort"]), container=int(port), protocol=proto)
                    )
            containers.append(
                Container(
                    name=name,
                    image=doc["Config"]["Image"],
                    running=name in self.running,
                    ports=bindings,
                )
            )
        return State(containers=containers)


class FakeUpstream:
    """Substituto do UpstreamClient para reserve/release."""

    def __init__(self) -> None:
        self.allocated: list[tuple[str, list[dict[str, Any]]]] = []
        self.released: list[str] = []

    def allocate_ports(self, owner_id: str, ports: list[dict[str, Any]]) -> dict[str, Any]:
        self.allocated.append((owner_id, ports))
        return {"ok": True}

    def release_ports(self, owner_id: str) -> dict[str, Any]:
        self.released.append(owner_id)
        return {"ok": True}


class FakeFeeds:
    """Fonte de feeds upstream com respostas fixas (envelopes crus)."""

    def __init__(self, containers=(), ports=(), networks=(), registry=()) -> None:
        self.containers: Any = {"containers": list(containers)}
        self.ports: Any = {"ports": list(ports)}
        self.networks: Any = {"networks": list(networks)}
        self.registry: Any = list(registry)

    def get_containers(self):
        return self.containers

    def get_ports(self):
        return self.ports

    def get_networks(self):
        return self.networks

    def get_registry(self):
        return self.registry


# ── Fixtures ──────────────────────────────────────────────────


@pytest.fixture
def web1_runtime() -> FakeRuntime:
    return FakeRuntime({"web1": make_inspect("web1", [(8080, 80, "tcp")])})


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def audit_log(tmp_path) -> AuditLog:
    return AuditLog(tmp_path / "audit.log")


@pytest.fixture
def snapshots(tmp_path) -> SnapshotManager:
    return SnapshotManager(tmp_path / "snapshots")


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
def sample_state() -> State:
    return State(
        containers=[
            Container(
                name="web1",
                image="acme/web:1.0",
                running=True,
                ports=[PortBinding(host=8080, container=80)],
            ),
            Container(
                name="mc-server",
                image="itzg/minecraft-server",
                running=True,
                ports=[PortBinding(host=19132, container=19132, protocol="udp")],
            ),
            Container(name="mystery", image="busybox", running=True),
        ]
    )
