"""
Gateway configuration, read from YAML.

    backend: docker
    image: gnuoctave/octave:8.1.0
    timeout: 120

The file is located by explicit path, else by the MOCKTAVE_CONFIG
environment variable; with neither, the defaults below apply.
"""
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from mocktave.mocktave_gateway import (
    DEFAULT_COMMAND, DEFAULT_IMAGE, Gateway, LocalGateway, DockerGateway, HttpGateway,
)
from mocktave.mocktave_serialize import deserialize

CONFIG_ENV = "MOCKTAVE_CONFIG"
BACKENDS = ("local", "docker", "http")


@dataclass
class GatewayConfig:
    backend: str = "local"
    command: List[str] = field(default_factory=lambda: list(DEFAULT_COMMAND))
    image: str = DEFAULT_IMAGE
    docker: str = "docker"
    url: Optional[str] = None
    timeout: float = 60.0
    retries: int = 2
    backoff: float = 0.2
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'GatewayConfig':
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown gateway config keys: {', '.join(unknown)}")
        cfg = cls(**data)
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend {self.backend!r}; expected one of {', '.join(BACKENDS)}")
        if self.backend == "http" and not self.url:
            raise ValueError("The http backend needs a url")
        if isinstance(self.command, str) or not self.command:
            raise ValueError("command must be a non-empty list")
        self.timeout = float(self.timeout)
        self.retries = int(self.retries)
        self.backoff = float(self.backoff)
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.retries < 0:
            raise ValueError(f"retries must be zero or more, got {self.retries}")
        if self.backoff < 0:
            raise ValueError(f"backoff must not be negative, got {self.backoff}")


def load_config(path: Optional[str] = None) -> GatewayConfig:
    """Loads a GatewayConfig from YAML; defaults when no file is configured."""
    path = path or os.environ.get(CONFIG_ENV)
    if not path:
        return GatewayConfig()
    text = Path(path).read_text(encoding="utf-8")
    data = deserialize(text, fmt="yaml")
    if data is None:
        return GatewayConfig()
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return GatewayConfig.from_mapping(data)


def make_gateway(config: Optional[GatewayConfig] = None) -> Gateway:
    """Builds the gateway a config describes."""
    cfg = config or GatewayConfig()
    match cfg.backend:
        case "local":
            return LocalGateway(cfg.command, timeout=cfg.timeout)
        case "docker":
            return DockerGateway(cfg.image, docker=cfg.docker, command=cfg.command, timeout=cfg.timeout)
        case "http":
            return HttpGateway(cfg.url, timeout=cfg.timeout, retries=cfg.retries,
                               backoff=cfg.backoff, headers=cfg.headers)
    raise ValueError(f"Unknown backend {cfg.backend!r}")
