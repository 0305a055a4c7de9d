"""Client for the etcd v3 HTTP/JSON gateway."""

from .client import (
    PERMISSION_READ,
    PERMISSION_READWRITE,
    PERMISSION_WRITE,
    EtcdClient,
)
from .config import ClientConfig, GatewayConfig, LoggingConfig, configure_logging, load_config
from .session import Session
from .transport import GatewayResponseError

__all__ = [
    "ClientConfig",
    "EtcdClient",
    "GatewayConfig",
    "GatewayResponseError",
    "LoggingConfig",
    "PERMISSION_READ",
    "PERMISSION_READWRITE",
    "PERMISSION_WRITE",
    "Session",
    "configure_logging",
    "load_config",
]
