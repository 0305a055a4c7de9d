"""Shared test fixtures."""

import base64
import json
from dataclasses import dataclass

import httpx
import pytest

from etcd_gateway.client import EtcdClient

HEADER = {"cluster_id": "14841639068965178418", "member_id": "10276657743932975437", "revision": "5", "raft_term": "2"}


def b64(value) -> str:
    if isinstance(value, str):
        value = value.encode()
    return base64.b64encode(value).decode()


def unb64(value: str) -> bytes:
    return base64.b64decode(value)


@dataclass
class RecordedRequest:
    path: str
    json: dict
    headers: httpx.Headers


class FakeGateway:
    """In-memory stand-in for the etcd JSON gateway, served via httpx.MockTransport.

    Implements kv and lease endpoints with gateway-shaped replies (base64
    fields, int64 as strings). Any path can be overridden with a canned JSON
    reply via ``replies`` or a raw (status, bytes) reply via ``raw``.
    """

    def __init__(self, version: str = "v3alpha"):
        self.version = version
        self.requests: list[RecordedRequest] = []
        self.replies: dict[str, dict] = {}
        self.raw: dict[str, tuple[int, bytes]] = {}
        self.store: dict[bytes, bytes] = {}
        self.key_leases: dict[bytes, int] = {}
        self.leases: dict[int, int] = {}
        self._next_lease = 7587848875123400000
        self.revision = 1

    @property
    def last(self) -> RecordedRequest:
        return self.requests[-1]

    def paths(self) -> list[str]:
        return [r.path for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        prefix = f"/{self.version}/"
        assert request.method == "POST"
        assert request.url.path.startswith(prefix), request.url.path
        path = request.url.path[len(prefix):]
        payload = json.loads(request.content)
        self.requests.append(RecordedRequest(path=path, json=payload, headers=request.headers))

        if path in self.raw:
            status, content = self.raw[path]
            return httpx.Response(status, content=content)
        if path in self.replies:
            return httpx.Response(200, json=self.replies[path])

        method = getattr(self, "_" + path.replace("/", "_"), None)
        if method is None:
            return httpx.Response(200, json={"header": HEADER})
        return httpx.Response(200, json=method(payload))

    # --- kv ---

    def _kv(self, key: bytes) -> dict:
        kv = {
            "key": b64(key),
            "create_revision": "2",
            "mod_revision": str(self.revision),
            "version": "1",
            "value": b64(self.store[key]),
        }
        if key in self.key_leases:
            kv["lease"] = str(self.key_leases[key])
        return kv

    def _select(self, payload: dict) -> list[bytes]:
        key = unb64(payload["key"])
        if "range_end" not in payload:
            return [key] if key in self.store else []
        end = unb64(payload["range_end"])
        if end == b"\x00":
            return sorted(k for k in self.store if k >= key)
        return sorted(k for k in self.store if key <= k < end)

    def _kv_put(self, payload: dict) -> dict:
        key = unb64(payload["key"])
        body = {"header": HEADER}
        if payload.get("prev_kv") and key in self.store:
            body["prev_kv"] = self._kv(key)
        self.revision += 1
        self.store[key] = unb64(payload["value"])
        if payload.get("lease"):
            self.key_leases[key] = int(payload["lease"])
        return body

    def _kv_range(self, payload: dict) -> dict:
        keys = self._select(payload)
        body = {"header": HEADER}
        if keys:
            body["kvs"] = [self._kv(k) for k in keys]
            body["count"] = str(len(keys))
        return body

    def _kv_deleterange(self, payload: dict) -> dict:
        keys = self._select(payload)
        body = {"header": HEADER}
        if payload.get("prev_kv") and keys:
            body["prev_kvs"] = [self._kv(k) for k in keys]
        for k in keys:
            del self.store[k]
            self.key_leases.pop(k, None)
        if keys:
            body["deleted"] = str(len(keys))
        return body

    # --- lease ---

    def _lease_grant(self, payload: dict) -> dict:
        lease_id = int(payload.get("ID") or 0)
        if not lease_id:
            lease_id = self._next_lease
            self._next_lease += 1
        self.leases[lease_id] = int(payload["TTL"])
        return {"header": HEADER, "ID": str(lease_id), "TTL": str(payload["TTL"])}

    def _kv_lease_revoke(self, payload: dict) -> dict:
        lease_id = int(payload["ID"])
        self.leases.pop(lease_id, None)
        for key in [k for k, lid in self.key_leases.items() if lid == lease_id]:
            self.store.pop(key, None)
            del self.key_leases[key]
        return {"header": HEADER}

    def _kv_lease_timetolive(self, payload: dict) -> dict:
        lease_id = int(payload["ID"])
        if lease_id not in self.leases:
            return {"header": HEADER, "ID": str(lease_id), "TTL": "-1"}
        ttl = self.leases[lease_id]
        body = {"header": HEADER, "ID": str(lease_id), "TTL": str(ttl - 1), "grantedTTL": str(ttl)}
        if payload.get("keys"):
            body["keys"] = [b64(k) for k, lid in self.key_leases.items() if lid == lease_id]
        return body

    def _lease_keepalive(self, payload: dict) -> dict:
        lease_id = int(payload["ID"])
        ttl = self.leases.get(lease_id)
        result = {"header": HEADER, "ID": str(lease_id)}
        if ttl is not None:
            result["TTL"] = str(ttl)
        return {"result": result}


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_client(gateway):
    """Factory for clients wired to the fake gateway."""
    created: list[EtcdClient] = []

    def _create(**settings) -> EtcdClient:
        client = EtcdClient(
            "127.0.0.1:2379",
            http_options={"transport": httpx.MockTransport(gateway.handler)},
            **settings,
        )
        created.append(client)
        return client

    yield _create
    for client in created:
        client.close()


@pytest.fixture
def client(make_client) -> EtcdClient:
    return make_client()


@pytest.fixture
def pretty_client(make_client) -> EtcdClient:
    return make_client(pretty=True)
