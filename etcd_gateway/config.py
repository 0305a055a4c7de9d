"""Configuration loader - parses etcd.yaml with env var expansion and Pydantic validation."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

_ENV_RE = re.compile(r"\$\{([^}]+)\}")

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

DEFAULT_SERVER = "127.0.0.1:2379"
DEFAULT_VERSION = "v3alpha"
DEFAULT_HTTP_TIMEOUT = 30


def _expand_env(value: str) -> str:
    """Replace ${VAR} patterns with environment variable values."""
    def _replace(match: re.Match) -> str:
        var = match.group(1)
        return os.environ.get(var, "")
    return _ENV_RE.sub(_replace, value)


def _walk_expand(obj: Any) -> Any:
    """Recursively expand env vars in strings throughout a dict/list."""
    if isinstance(obj, str):
        return _expand_env(obj)
    if isinstance(obj, dict):
        return {k: _walk_expand(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_expand(i) for i in obj]
    return obj


def _empty_str_to_none(v: Any) -> Optional[str]:
    """Convert empty strings to None for optional string fields."""
    if isinstance(v, str) and not v.strip():
        return None
    return v


def normalize_server(server: str) -> str:
    """Turn ``host:port`` into an HTTP base URL without a trailing slash."""
    server = server.strip().rstrip("/")
    if not server.startswith("http"):
        server = "http://" + server
    return server


# --- Pydantic models ---


class ClientConfig(BaseModel):
    server: str = Field(default=DEFAULT_SERVER, validate_default=True)
    version: str = Field(default=DEFAULT_VERSION, validate_default=True)
    timeout: float = DEFAULT_HTTP_TIMEOUT
    pretty: bool = False
    decode_text: bool = True  # False: binary fields come back as bytes
    token: Optional[str] = None
    verify: Union[bool, str] = True
    cert: Optional[str] = None
    http_options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("server")
    @classmethod
    def _normalize_server(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("server must not be empty")
        return normalize_server(v)

    @field_validator("version")
    @classmethod
    def _trim_version(cls, v: str) -> str:
        return v.strip()

    @field_validator("token", "cert", mode="before")
    @classmethod
    def _empty_to_none(cls, v: Any) -> Optional[str]:
        return _empty_str_to_none(v)

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be > 0")
        return v

    @property
    def base_url(self) -> str:
        return f"{self.server}/{self.version}/"


class LoggingConfig(BaseModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        v = v.upper()
        if v not in _VALID_LOG_LEVELS:
            raise ValueError(f"logging level must be one of {_VALID_LOG_LEVELS}")
        return v


class GatewayConfig(BaseModel):
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str = "etcd.yaml") -> GatewayConfig:
    """Load and validate config from YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    expanded = _walk_expand(raw or {})
    return GatewayConfig.model_validate(expanded)


def configure_logging(config: LoggingConfig) -> None:
    """Apply the configured log level with the standard line format."""
    logging.basicConfig(
        level=getattr(logging, config.level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
