import os
import tempfile
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, NamedTuple, Optional

import yaml
from eth_utils import to_checksum_address

from walletdeploy.constants import CONFIG_DIR
from walletdeploy.utils import _load_yaml

REQUIRED_SECTIONS = ("contracts", "modules")
ADDRESS_SECTIONS = ("contracts", "modules")


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


class ConfigUpdate(NamedTuple):
    """Addresses and revision produced by a run, applied to the config in one step."""

    modules: Mapping[str, str] = MappingProxyType({})
    infrastructure: Mapping[str, str] = MappingProxyType({})
    git_commit: Optional[str] = None

    def merge(self, other: "ConfigUpdate") -> "ConfigUpdate":
        return ConfigUpdate(
            modules=MappingProxyType({**self.modules, **other.modules}),
            infrastructure=MappingProxyType({**self.infrastructure, **other.infrastructure}),
            git_commit=other.git_commit or self.git_commit,
        )


class WalletConfig(NamedTuple):
    """Read-only snapshot of a deployment target's configuration."""

    contracts: Mapping[str, str]
    modules: Mapping[str, str]
    settings: Mapping[str, Any] = MappingProxyType({})
    defi: Mapping[str, Any] = MappingProxyType({})
    multisig: Mapping[str, Any] = MappingProxyType({})
    deployment: Mapping[str, Any] = MappingProxyType({})
    git_commit: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WalletConfig":
        fields = {name: _freeze(data.get(name) or {}) for name in cls._fields[:-1]}
        return cls(**fields, git_commit=data.get("git_commit"))

    def to_dict(self) -> Dict[str, Any]:
        data = {name: _thaw(getattr(self, name)) for name in self._fields[:-1]}
        data["git_commit"] = self.git_commit
        return data

    def setting(self, name: str, default: Any = 0) -> Any:
        value = self.settings.get(name)
        return default if value is None else value

    def apply(self, update: ConfigUpdate) -> "WalletConfig":
        """Returns a new snapshot with the update's addresses and revision."""
        return self._replace(
            modules=MappingProxyType({**self.modules, **update.modules}),
            contracts=MappingProxyType({**self.contracts, **update.infrastructure}),
            git_commit=update.git_commit or self.git_commit,
        )


class Configurator:
    """Loads, validates and persists the per-target wallet configuration."""

    class Invalid(Exception):
        """Raised when the configuration file is malformed"""

    def __init__(self, filepath: Path):
        self.filepath = Path(filepath)

    @classmethod
    def for_target(cls, target: str) -> "Configurator":
        return cls(CONFIG_DIR / f"{target}.yml")

    def load(self) -> WalletConfig:
        print(f"Loading configuration from {self.filepath}...")
        if not self.filepath.exists():
            raise self.Invalid(f"No configuration found at {self.filepath}")
        data = _load_yaml(self.filepath) or dict()
        self.validate(data)
        return WalletConfig.from_dict(data)

    def validate(self, data: Dict[str, Any]) -> None:
        for section in REQUIRED_SECTIONS:
            if not isinstance(data.get(section), dict):
                raise self.Invalid(f"Configuration is missing the '{section}' section.")
        for section in ADDRESS_SECTIONS:
            for name, address in data[section].items():
                try:
                    to_checksum_address(address)
                except (TypeError, ValueError):
                    raise self.Invalid(f"{section}.{name} is not a valid address: {address}")

    def check_chain_id(self, config: WalletConfig, chain_id: int, live: bool) -> None:
        """Refuses to run against a live network that differs from the configured one."""
        config_chain_id = config.deployment.get("chain_id")
        if config_chain_id is None or not live:
            return
        if int(config_chain_id) != chain_id:
            raise self.Invalid(
                f"chain_id in {self.filepath.name} ({config_chain_id}) does not match "
                f"chain_id of current network ({chain_id})."
            )

    def save(self, config: WalletConfig) -> Path:
        """Writes the snapshot next to the original file and swaps it in."""
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.filepath.parent, prefix=f".{self.filepath.stem}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as file:
                yaml.safe_dump(config.to_dict(), file, sort_keys=False)
            os.replace(temp_path, self.filepath)
        except Exception:
            os.unlink(temp_path)
            raise
        print(f"(i) Configuration written to {self.filepath}")
        return self.filepath
