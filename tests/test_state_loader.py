"""Testes do State Loader e do cliente upstream."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from core.exceptions import ContractViolation, UpstreamTransportError
from core.services.state_loader import (
    capture_port_snapshot,
    extract_registry_entries,
    load_state,
    normalize_containers,
    normalize_port_records,
)
from core.services.upstream_client import UpstreamClient
from tests.conftest import FakeFeeds


class TestNormalization:
    def test_feed_de_portas_aceita_variacoes_de_chave(self):
        records = normalize_port_records([
            {"container": "web1", "host": "8080", "containerPort": 80},
            {"containerName": "db", "PublicPort": 5432, "PrivatePort": 5432, "Type": "TCP"},
            {"container": "dns", "hostPort": 53, "containerPort": 53, "protocol": "udp"},
            {"host": 1234, "containerPort": 1},
            {"container": "bad", "host": 70000, "containerPort": 80},
        ])
        assert [(r.container, r.host, r.container_port, r.protocol) for r in records] == [
            ("web1", 8080, 80, "tcp"),
            ("db", 5432, 5432, "tcp"),
            ("dns", 53, 53, "udp"),
        ]

    def test_portas_embutidas_tem_precedencia(self):
        records = normalize_port_records([{"container": "web1", "host": 9999, "containerPort": 80}])
        containers = normalize_containers(
            [
                {"name": "web1", "state": "running", "ports": [{"host": 8080, "containerPort": 80}]},
                {"Names": ["/api"], "Status": "Up 3 hours"},
            ],
            records,
        )
        assert containers[0].ports[0].host == 8080
        assert containers[0].running is True
        assert containers[1].name == "api"
        assert containers[1].running is True
        assert containers[1].ports == []

    def test_portas_do_feed_quando_nao_embutidas(self):
        records = normalize_port_records([
            {"container": "web1", "host": 8080, "containerPort": 80, "ip": "0.0.0.0"},
            {"container": "web1", "host": 8080, "containerPort": 80, "ip": "::"},
        ])
        containers = normalize_containers([{"name": "web1", "running": False}], records)
        assert len(containers[0].ports) == 1
        assert containers[0].running is False

    def test_registry_aceita_envelopes(self):
        assert extract_registry_entries([{"host": 1}]) == [{"host": 1}]
        assert extract_registry_entries({"entries": [{"host": 2}]}) == [{"host": 2}]
        assert extract_registry_entries({"data": [{"host": 3}]}) == [{"host": 3}]
        with pytest.raises(ContractViolation):
            extract_registry_entries({"count": 0})


class TestLoadState:
    def test_carrega_estado_completo(self):
        feeds = FakeFeeds(
            containers=[{"id": "a1", "name": "web1", "image": "acme/web", "running": True,
                         "networks": {"proxy": {"IPAddress": "172.18.0.2"}}}],
            ports=[{"container": "web1", "host": 8080, "containerPort": 80}],
            networks=[{"name": "proxy", "driver": "bridge"}],
            registry=[{"host": 8080, "protocol": "tcp", "owner": {"type": "enforcer"}}],
        )
        state = load_state(client=feeds)

        assert state.schema_version == 1
        web1 = state.container_by_name()["web1"]
        assert web1.ports[0].host == 8080
        assert web1.networks[0].name == "proxy"
        assert web1.networks[0].ip == "172.18.0.2"
        assert state.registry[0].host == 8080
        assert capture_port_snapshot(state).ports[0].container == "web1"

    def test_envelope_invalido_e_violacao_de_contrato(self):
        feeds = FakeFeeds()
        feeds.containers = {"items": []}
        with pytest.raises(ContractViolation):
            load_state(client=feeds)


class TestUpstreamClient:
    def _client(self, response=None, exc=None) -> tuple[UpstreamClient, MagicMock]:
        session = MagicMock()
        session.headers = {}
        if exc is not None:
            session.request.side_effect = exc
        else:
            session.request.return_value = response
        return UpstreamClient("http://upstream:4100/", 2.0, session=session), session

    def test_get_containers(self):
        response = MagicMock(ok=True, status_code=200)
        response.json.return_value = {"containers": []}
        client, session = self._client(response)

        assert client.get_containers() == {"containers": []}
        session.request.assert_called_once_with(
            "GET", "http://upstream:4100/api/v1/containers", timeout=2.0
        )

    def test_allocate_envia_owner_enforcer(self):
        response = MagicMock(ok=True, status_code=200)
        response.json.return_value = {"ok": True}
        client, session = self._client(response)

        client.allocate_ports("web1", [{"host": 5000, "container": 80, "protocol": "tcp"}])
        payload = session.request.call_args.kwargs["json"]
        assert payload["owner"] == {"type": "enforcer", "id": "web1"}

    def test_http_erro_vira_transporte(self):
        response = MagicMock(ok=False, status_code=500, text="boom")
        client, _ = self._client(response)
        with pytest.raises(UpstreamTransportError):
            client.get_ports()

    def test_falha_de_rede_vira_transporte(self):
        client, _ = self._client(exc=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(UpstreamTransportError):
            client.get_networks()

    def test_corpo_nao_json(self):
        response = MagicMock(ok=True, status_code=200)
        response.json.side_effect = ValueError("no json")
        client, _ = self._client(response)
        with pytest.raises(UpstreamTransportError):
            client.get_registry()
