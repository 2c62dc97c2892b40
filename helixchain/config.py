"""Node configuration: defaults and loading from TOML files."""

import tomllib
import types
from dataclasses import MISSING, dataclass, fields, is_dataclass
from typing import Any, Union, get_args, get_origin


@dataclass
class NetworkConfig:
    listen_addr: str
    listen_port: int
    max_peers: int
    bootstrap_nodes: list[str]
    chain_id: str


@dataclass
class ConsensusConfig:
    min_validators: int
    block_time_ms: int
    max_block_size: int
    min_stake: int


@dataclass
class ApiConfig:
    port: int
    rate_limit_per_minute: int
    max_request_size: int


@dataclass
class DatabaseConfig:
    url: str
    max_connections: int
    timeout_seconds: int


@dataclass
class SecurityConfig:
    audit_enabled: bool
    rate_limiting: bool
    encryption_enabled: bool


@dataclass
class WalletConfig:
    seed: str
    derivation_path: str


@dataclass
class LoggingConfig:
    level: str
    console: bool
    enable_metrics: bool
    file: str | None = None


def _convert(value: Any, hint: Any, where: str) -> Any:
    if is_dataclass(hint):
        return _build(hint, value, where)
    origin = get_origin(hint)
    if origin in (Union, types.UnionType):
        options = [arg for arg in get_args(hint) if arg is not type(None)]
        return _convert(value, options[0], where)
    if origin is list:
        if not isinstance(value, list):
            raise ValueError(f"{where}: expected an array")
        (item_hint,) = get_args(hint)
        return [_convert(item, item_hint, f"{where}[{i}]") for i, item in enumerate(value)]
    if hint is bool:
        if not isinstance(value, bool):
            raise ValueError(f"{where}: expected a boolean")
        return value
    if hint is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{where}: expected an integer")
        if value < 0:
            raise ValueError(f"{where}: must not be negative")
        return value
    if hint is str:
        if not isinstance(value, str):
            raise ValueError(f"{where}: expected a string")
        return value
    raise TypeError(f"{where}: unsupported field type {hint!r}")


def _build(cls: type, data: Any, where: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"{where}: expected a table")
    values = {}
    for f in fields(cls):
        path = f"{where}.{f.name}" if where else f.name
        if f.name not in data:
            if f.default is MISSING and f.default_factory is MISSING:
                raise ValueError(f"missing field '{path}'")
            continue
        values[f.name] = _convert(data[f.name], f.type, path)
    return cls(**values)


@dataclass
class Config:
    network: NetworkConfig
    consensus: ConsensusConfig
    api: ApiConfig
    database: DatabaseConfig
    security: SecurityConfig
    wallet: WalletConfig

    @classmethod
    def load(cls, path: str) -> "Config":
        """Read and validate a configuration from a TOML file."""
        with open(path, "rb") as handle:
            data = tomllib.load(handle)
        return _build(cls, data, "")

    @classmethod
    def default(cls) -> "Config":
        """Return the built-in configuration."""
        return cls(
            network=NetworkConfig(
                listen_addr="0.0.0.0",
                listen_port=8080,
                max_peers=50,
                bootstrap_nodes=[],
                chain_id="helix-mainnet-1",
            ),
            consensus=ConsensusConfig(
                min_validators=3,
                block_time_ms=5000,
                max_block_size=1024 * 1024,
                min_stake=1000,
            ),
            api=ApiConfig(
                port=3000,
                rate_limit_per_minute=100,
                max_request_size=1024 * 1024,
            ),
            database=DatabaseConfig(
                url="sqlite:helix.db",
                max_connections=10,
                timeout_seconds=30,
            ),
            security=SecurityConfig(
                audit_enabled=True,
                rate_limiting=True,
                encryption_enabled=True,
            ),
            wallet=WalletConfig(seed="", derivation_path="m/44'/60'/0'/0/0"),
        )