"""HTTP envelope for the JSON gateway: one POST per call, JSON in, JSON out."""

import logging
from typing import Any, Optional

import httpx

from .config import ClientConfig

logger = logging.getLogger(__name__)

# Some gateway builds reject an empty JSON object as the request body.
EMPTY_BODY_MARKER = "etcd-gateway-client"


class GatewayResponseError(ValueError):
    """The gateway answered with something that is not a JSON object."""

    def __init__(self, message: str, *, path: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.path = path
        self.status_code = status_code


def build_payload(
    params: Optional[dict[str, Any]] = None,
    options: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Merge options over params; never return an empty mapping."""
    payload = dict(params or {})
    if options:
        payload.update(options)
    if not payload:
        payload[EMPTY_BODY_MARKER] = 1
    return payload


class GatewayTransport:
    """Owns the ``httpx.Client`` used to reach ``<server>/<version>/``.

    An injected client is used as-is and never closed here. Otherwise one is
    built from the config on first use and reused until ``close()`` or
    ``reset()``.
    """

    def __init__(self, config: ClientConfig, http_client: Optional[httpx.Client] = None):
        self._config = config
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def config(self) -> ClientConfig:
        return self._config

    def _build_client(self) -> httpx.Client:
        kwargs: dict[str, Any] = {
            "timeout": self._config.timeout,
            "verify": self._config.verify,
        }
        if self._config.cert:
            kwargs["cert"] = self._config.cert
        kwargs.update(self._config.http_options)
        kwargs["base_url"] = self._config.base_url
        logger.debug("Creating HTTP client for %s", self._config.base_url)
        return httpx.Client(**kwargs)

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def reconfigure(self, config: ClientConfig) -> None:
        """Swap the config; an owned client is rebuilt on the next request."""
        self._config = config
        if not self._owns_client:
            logger.debug("HTTP client was injected; new options not applied to it")
        self.reset()

    def reset(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def close(self) -> None:
        self.reset()

    def post(
        self,
        path: str,
        payload: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        """POST ``payload`` as JSON to ``path`` and return the parsed object.

        Transport errors from httpx propagate unchanged. The HTTP status is not
        interpreted: gateway errors arrive as JSON bodies like any other reply.
        """
        logger.debug("POST %s", path)
        resp = self.client.post(path, json=payload, headers=headers or {})
        try:
            body = resp.json()
        except ValueError as exc:
            raise GatewayResponseError(
                f"gateway returned non-JSON body for {path} (HTTP {resp.status_code})",
                path=path,
                status_code=resp.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise GatewayResponseError(
                f"gateway returned {type(body).__name__} instead of an object for {path}",
                path=path,
                status_code=resp.status_code,
            )
        return body
