"""Synchronous client for the etcd v3 JSON gateway."""

import logging
from typing import Any, Optional

import httpx

from .codec import (
    KV_FIELDS,
    PERM_FIELDS,
    BinaryLike,
    b64decode,
    b64encode,
    collapse_kvs,
    decode_fields,
    encode_params,
    prefix_range_end,
)
from .config import DEFAULT_SERVER, DEFAULT_VERSION, ClientConfig
from .session import Session
from .transport import GatewayTransport, build_payload

logger = logging.getLogger(__name__)

# KV
URI_PUT = "kv/put"
URI_RANGE = "kv/range"
URI_DELETE_RANGE = "kv/deleterange"
URI_COMPACTION = "kv/compaction"

# Lease
URI_GRANT = "lease/grant"
URI_REVOKE = "kv/lease/revoke"
URI_KEEPALIVE = "lease/keepalive"
URI_TIMETOLIVE = "kv/lease/timetolive"

# Role
URI_AUTH_ROLE_ADD = "auth/role/add"
URI_AUTH_ROLE_GET = "auth/role/get"
URI_AUTH_ROLE_DELETE = "auth/role/delete"
URI_AUTH_ROLE_LIST = "auth/role/list"
URI_AUTH_ROLE_GRANT = "auth/role/grant"
URI_AUTH_ROLE_REVOKE = "auth/role/revoke"

# Authentication
URI_AUTH_ENABLE = "auth/enable"
URI_AUTH_DISABLE = "auth/disable"
URI_AUTH_AUTHENTICATE = "auth/authenticate"

# User
URI_AUTH_USER_ADD = "auth/user/add"
URI_AUTH_USER_GET = "auth/user/get"
URI_AUTH_USER_DELETE = "auth/user/delete"
URI_AUTH_USER_CHANGE_PASSWORD = "auth/user/changepw"
URI_AUTH_USER_LIST = "auth/user/list"
URI_AUTH_USER_GRANT = "auth/user/grant"
URI_AUTH_USER_REVOKE = "auth/user/revoke"

PERMISSION_READ = 0
PERMISSION_WRITE = 1
PERMISSION_READWRITE = 2

# Characters trimmed from a prefix before a prefix scan; NUL included.
_TRIM_CHARS = " \t\n\r\0\x0b"


class EtcdClient:
    """Client for the etcd JSON gateway (``<server>/<version>/...``).

    Keys and values may be ``str`` or ``bytes``. Decoded fields come back as
    ``str`` by default, or as ``bytes`` with ``decode_text=False``. With
    ``pretty=True`` responses are reshaped into simpler values, e.g. ``get()``
    returns ``{key: value}``.

    Usage:
        with EtcdClient("127.0.0.1:2379", pretty=True) as client:
            client.put("/config/a", "1")
            client.get("/config/a")   # -> {"/config/a": "1"}
    """

    def __init__(
        self,
        server: str = DEFAULT_SERVER,
        version: str = DEFAULT_VERSION,
        *,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.Client] = None,
        **settings: Any,
    ):
        """Build from ``server``/``version``/``settings``, or from a ready ``config``.

        When ``config`` is given the other arguments are ignored.
        """
        if config is None:
            config = ClientConfig(server=server, version=version, **settings)
        self._config = config
        self._transport = GatewayTransport(config, http_client)
        self.session = Session(token=config.token)

    @classmethod
    def from_config(cls, config: ClientConfig, http_client: Optional[httpx.Client] = None) -> "EtcdClient":
        return cls(config=config, http_client=http_client)

    # --- configuration ---

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def pretty(self) -> bool:
        return self._config.pretty

    def set_pretty(self, enabled: bool) -> None:
        self._config = self._config.model_copy(update={"pretty": bool(enabled)})

    def set_http_options(self, options: dict[str, Any]) -> None:
        """Replace extra httpx.Client options; takes effect on the next request.

        An injected ``http_client`` is never rebuilt, so the options are
        recorded in the config but not applied to it.
        """
        self._config = self._config.model_copy(update={"http_options": dict(options)})
        self._transport.reconfigure(self._config)

    @property
    def decode_text(self) -> bool:
        return self._config.decode_text

    def set_token(self, token: Optional[str]) -> None:
        self.session = self.session.with_token(token)

    def clear_token(self) -> None:
        self.session = self.session.cleared()

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> "EtcdClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # --- kv ---

    def put(self, key: BinaryLike, value: BinaryLike, options: Optional[dict[str, Any]] = None) -> Any:
        """Put the given key into the store.

        Options: ``lease`` (int), ``prev_kv``, ``ignore_value``, ``ignore_lease`` (bool).
        In pretty mode with ``prev_kv`` set, returns the previous value.
        """
        body = self._request(
            URI_PUT,
            encode_params({"key": key, "value": value}),
            encode_params(options or {}),
        )
        body = decode_fields(body, "prev_kv", KV_FIELDS, self.decode_text)
        if self.pretty and body.get("prev_kv") is not None:
            return collapse_kvs(body["prev_kv"])
        return body

    def get(self, key: BinaryLike, options: Optional[dict[str, Any]] = None) -> Any:
        """Get a key or a range of keys.

        Options: ``range_end``, ``limit``, ``revision``, ``sort_order``,
        ``sort_target``, ``serializable``, ``keys_only``, ``count_only``,
        ``min_mod_revision``, ``max_mod_revision``, ``min_create_revision``,
        ``max_create_revision``.
        """
        body = self._request(URI_RANGE, encode_params({"key": key}), encode_params(options or {}))
        body = decode_fields(body, "kvs", KV_FIELDS, self.decode_text)
        if self.pretty and body.get("kvs") is not None:
            return collapse_kvs(body["kvs"])
        return body

    def get_all_keys(self) -> Any:
        return self.get("\0", {"range_end": "\0"})

    def get_keys_with_prefix(self, prefix: BinaryLike) -> Any:
        if isinstance(prefix, bytes):
            prefix = prefix.strip(_TRIM_CHARS.encode())
        else:
            prefix = prefix.strip(_TRIM_CHARS)
        if not prefix:
            return {}
        return self.get(prefix, {"range_end": prefix_range_end(prefix)})

    def delete(self, key: BinaryLike, options: Optional[dict[str, Any]] = None) -> Any:
        """Remove a key or a range of keys.

        Options: ``range_end``, ``prev_kv``.
        """
        body = self._request(URI_DELETE_RANGE, encode_params({"key": key}), encode_params(options or {}))
        body = decode_fields(body, "prev_kvs", KV_FIELDS, self.decode_text)
        if self.pretty and body.get("prev_kvs") is not None:
            return collapse_kvs(body["prev_kvs"])
        return body

    def compaction(self, revision: int, physical: bool = False) -> dict[str, Any]:
        """Compact the event history up to ``revision``."""
        return self._request(URI_COMPACTION, {"revision": revision, "physical": physical})

    # --- lease ---

    def grant(self, ttl: int, lease_id: int = 0) -> dict[str, Any]:
        """Create a lease of ``ttl`` seconds. ``lease_id=0`` lets the server choose."""
        return self._request(URI_GRANT, {"TTL": ttl, "ID": lease_id})

    def revoke(self, lease_id: int) -> dict[str, Any]:
        """Revoke a lease; keys attached to it are deleted."""
        return self._request(URI_REVOKE, {"ID": lease_id})

    def keep_alive(self, lease_id: int) -> dict[str, Any]:
        """Renew a lease once. Returns ``{"ID": ..., "TTL": ...}`` when the gateway wraps it."""
        body = self._request(URI_KEEPALIVE, {"ID": lease_id})
        result = body.get("result")
        if not isinstance(result, dict):
            return body
        # Gateways relaying the streaming RPC wrap the message in "result".
        logger.debug("Unwrapping keepalive result for lease %s", lease_id)
        return {"ID": result.get("ID"), "TTL": result.get("TTL")}

    def time_to_live(self, lease_id: int, keys: bool = False) -> dict[str, Any]:
        """Lease information; with ``keys=True`` also the attached keys, decoded."""
        body = self._request(URI_TIMETOLIVE, {"ID": lease_id, "keys": keys})
        if body.get("keys") is not None:
            body["keys"] = [b64decode(k, self.decode_text) for k in body["keys"]]
        return body

    # --- roles ---

    def add_role(self, name: str) -> dict[str, Any]:
        return self._request(URI_AUTH_ROLE_ADD, {"name": name})

    def get_role(self, role: str) -> Any:
        """Role details; in pretty mode only the permission(s)."""
        body = self._request(URI_AUTH_ROLE_GET, {"role": role})
        body = decode_fields(body, "perm", PERM_FIELDS, self.decode_text)
        if self.pretty and body.get("perm") is not None:
            return body["perm"]
        return body

    def delete_role(self, role: str) -> dict[str, Any]:
        return self._request(URI_AUTH_ROLE_DELETE, {"role": role})

    def role_list(self) -> Any:
        body = self._request(URI_AUTH_ROLE_LIST)
        if self.pretty and body.get("roles") is not None:
            return body["roles"]
        return body

    def grant_role_permission(
        self,
        role: str,
        perm_type: int,
        key: BinaryLike,
        range_end: Optional[BinaryLike] = None,
    ) -> dict[str, Any]:
        """Grant ``perm_type`` (PERMISSION_READ/WRITE/READWRITE) on a key or range."""
        perm: dict[str, Any] = {"permType": perm_type, "key": b64encode(key)}
        if range_end is not None:
            perm["range_end"] = b64encode(range_end)
        return self._request(URI_AUTH_ROLE_GRANT, {"name": role, "perm": perm})

    def revoke_role_permission(
        self,
        role: str,
        key: BinaryLike,
        range_end: Optional[BinaryLike] = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"role": role, "key": b64encode(key)}
        if range_end is not None:
            params["range_end"] = b64encode(range_end)
        return self._request(URI_AUTH_ROLE_REVOKE, params)

    # --- authentication ---

    def auth_enable(self) -> dict[str, Any]:
        """Enable authentication. Any held token is dropped."""
        body = self._request(URI_AUTH_ENABLE)
        self.clear_token()
        return body

    def auth_disable(self) -> dict[str, Any]:
        """Disable authentication. Any held token is dropped."""
        body = self._request(URI_AUTH_DISABLE)
        self.clear_token()
        return body

    def authenticate(self, user: str, password: str) -> Any:
        """Request a token. In pretty mode returns the token string.

        The token is not stored; pass it to ``set_token()``.
        """
        body = self._request(URI_AUTH_AUTHENTICATE, {"name": user, "password": password})
        if self.pretty and body.get("token") is not None:
            return body["token"]
        return body

    # --- users ---

    def add_user(self, user: str, password: str) -> dict[str, Any]:
        return self._request(URI_AUTH_USER_ADD, {"name": user, "password": password})

    def get_user(self, user: str) -> Any:
        """User details; in pretty mode only the granted role names."""
        body = self._request(URI_AUTH_USER_GET, {"name": user})
        if self.pretty and body.get("roles") is not None:
            return body["roles"]
        return body

    def delete_user(self, user: str) -> dict[str, Any]:
        return self._request(URI_AUTH_USER_DELETE, {"name": user})

    def change_user_password(self, user: str, password: str) -> dict[str, Any]:
        return self._request(URI_AUTH_USER_CHANGE_PASSWORD, {"name": user, "password": password})

    def user_list(self) -> Any:
        body = self._request(URI_AUTH_USER_LIST)
        if self.pretty and body.get("users") is not None:
            return body["users"]
        return body

    def grant_user_role(self, user: str, role: str) -> dict[str, Any]:
        return self._request(URI_AUTH_USER_GRANT, {"user": user, "role": role})

    def revoke_user_role(self, user: str, role: str) -> dict[str, Any]:
        return self._request(URI_AUTH_USER_REVOKE, {"name": user, "role": role})

    # --- internals ---

    def _request(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        options: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        payload = build_payload(params, options)
        body = self._transport.post(path, payload, self.session.headers())
        if self.pretty:
            body.pop("header", None)
        return body
