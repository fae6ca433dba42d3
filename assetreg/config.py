# assetreg/config.py
"""
Registry configuration.

Loaded from YAML:

    data_dir: ./registry-data
    clock: wall            # or "sequence"
    log_level: INFO
    server:
      host: 127.0.0.1
      port: 8080
      require_signatures: true
      signature_max_age: 300
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

from .clock import make_clock
from .identity import PrincipalStore
from .registry import AssetRegistry
from .store import JsonStore


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    require_signatures: bool = True
    signature_max_age: float = 300

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "require_signatures": self.require_signatures,
            "signature_max_age": self.signature_max_age,
        }


@dataclass
class RegistryConfig:
    """Where the registry keeps its data and how it is served."""
    data_dir: Path = Path("./registry-data")
    clock: str = "wall"
    log_level: str = "INFO"
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryConfig":
        if not isinstance(data, dict):
            raise ValueError("Config must be a mapping")

        server_data = data.get("server") or {}
        if not isinstance(server_data, dict):
            raise ValueError("Config 'server' must be a mapping")

        defaults = ServerConfig()
        config = cls(
            data_dir=Path(data.get("data_dir", "./registry-data")).expanduser(),
            clock=data.get("clock", "wall"),
            log_level=str(data.get("log_level", "INFO")).upper(),
            server=ServerConfig(
                host=server_data.get("host", defaults.host),
                port=int(server_data.get("port", defaults.port)),
                require_signatures=bool(server_data.get("require_signatures", defaults.require_signatures)),
                signature_max_age=float(server_data.get("signature_max_age", defaults.signature_max_age)),
            ),
        )
        # Fail on a bad clock name at load time, not first use
        make_clock(config.clock)
        return config

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "RegistryConfig":
        """Parse config from YAML string. An empty document gives the defaults."""
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML: {e}")
        return cls.from_dict(data if data is not None else {})

    @classmethod
    def from_file(cls, path: Path | str) -> "RegistryConfig":
        """Load config from YAML file."""
        with open(path, "r") as f:
            return cls.from_yaml(f.read())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data_dir": str(self.data_dir),
            "clock": self.clock,
            "log_level": self.log_level,
            "server": self.server.to_dict(),
        }

    def open_registry(self) -> AssetRegistry:
        """Registry over the durable store in data_dir/store."""
        store = JsonStore(self.data_dir / "store")
        return AssetRegistry(store=store, clock=make_clock(self.clock, store))

    def open_principals(self) -> PrincipalStore:
        return PrincipalStore(self.data_dir / "principals")
