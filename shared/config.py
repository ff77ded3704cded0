from __future__ import annotations
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from shared.errors import ConfigError
from shared.log import get_logger

logger = get_logger(__name__)

DEFAULT_BACKEND_URL = "http://localhost:5000"


@dataclass(frozen=True)
class ClientConfig:
    backend_url: str = DEFAULT_BACKEND_URL
    http_timeout: float = 10.0
    socketio_path: str = "socket.io"
    log_level: Optional[str] = None

    def with_backend(self, backend_url: Optional[str]) -> "ClientConfig":
        if not backend_url:
            return self
        return replace(self, backend_url=backend_url.rstrip("/"))


def default_config_path() -> Path:
    """Return path to the YAML config file, present or not."""
    env_path = os.getenv("ICHAT_CONFIG")
    if env_path:
        return Path(env_path)
    return Path.home() / ".ichat" / "config.yaml"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.debug("No config file at %s; using defaults", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error reading {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must hold a mapping, got {type(data).__name__}")
    return data


def load_config(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ClientConfig:
    """
    Resolve the client configuration.

    Precedence, lowest first: defaults, YAML file, environment.
    The backend URL is the only setting the client strictly needs.
    """
    env = os.environ if env is None else env
    data = _load_yaml(path or default_config_path())

    backend_url = env.get("ICHAT_BACKEND_URL") or data.get("backend_url") or DEFAULT_BACKEND_URL
    timeout_raw = env.get("ICHAT_HTTP_TIMEOUT") or data.get("http_timeout", 10.0)
    try:
        http_timeout = float(timeout_raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"http_timeout must be a number, got {timeout_raw!r}") from e
    if http_timeout <= 0:
        raise ConfigError("http_timeout must be positive")

    config = ClientConfig(
        backend_url=str(backend_url).rstrip("/"),
        http_timeout=http_timeout,
        socketio_path=str(data.get("socketio_path", "socket.io")),
        log_level=env.get("ICHAT_LOG_LEVEL") or data.get("log_level"),
    )
    logger.debug("Loaded config: backend=%s timeout=%.1fs", config.backend_url, config.http_timeout)
    return config
