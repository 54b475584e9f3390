"""Loading of the TOML configuration file."""

from __future__ import annotations

import argparse
import sys
import tomllib
from dataclasses import dataclass

from termcolor import colored

_RPC_FIELDS = ("rpc_url", "rpc_user", "rpc_password")


@dataclass
class RocksDBConfig:
    path: str


@dataclass
class BitcoinRpcConfig:
    rpc_url: str = "http://127.0.0.1:8332"
    rpc_user: str = "admin"
    rpc_password: str = "password"


@dataclass
class ApiConfig:
    ip: str
    port: int


@dataclass
class IndexerConfig:
    mem_alloc_pubkey_hset: int = 1028
    log_interval: int = 10


@dataclass
class Config:
    rocksdb: RocksDBConfig
    api: ApiConfig
    bitcoin_rpc: BitcoinRpcConfig
    indexer: IndexerConfig


def _section(data: dict, name: str) -> dict:
    value = data.get(name)
    if not isinstance(value, dict):
        raise ValueError(f"missing section [{name}]")
    return value


def _field(section: dict, name: str, kind: type, upper: int | None = None):
    if name not in section:
        raise ValueError(f"missing field `{name}`")
    value = section[name]
    if kind is int:
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValueError(f"field `{name}` must be a non-negative integer")
        if upper is not None and value > upper:
            raise ValueError(f"field `{name}` out of range")
    elif not isinstance(value, kind):
        raise ValueError(f"field `{name}` must be a {kind.__name__}")
    return value


def parse_config(text: str) -> Config:
    """Parse configuration TOML; every section and field is required."""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(str(exc)) from exc
    rocks = _section(data, "rocksdb")
    api = _section(data, "api")
    rpc = _section(data, "bitcoin_rpc")
    idx = _section(data, "indexer")
    rpc_values = {name: _field(rpc, name, str) for name in _RPC_FIELDS}
    return Config(
        rocksdb=RocksDBConfig(path=_field(rocks, "path", str)),
        api=ApiConfig(ip=_field(api, "ip", str), port=_field(api, "port", int, 0xFFFF)),
        bitcoin_rpc=BitcoinRpcConfig(**rpc_values),
        indexer=IndexerConfig(
            mem_alloc_pubkey_hset=_field(idx, "mem_alloc_pubkey_hset", int),
            log_interval=_field(idx, "log_interval", int, 0xFFFFFFFF),
        ),
    )


def _report(exc: Exception) -> None:
    label = colored("Err: Failed to get config file", "red", attrs=["bold"])
    print(f"{label}: {exc}", file=sys.stderr)


def load_config(path: str) -> Config:
    """Read and parse a configuration file, reporting failures on stderr."""
    try:
        with open(path, "rb") as handle:
            text = handle.read().decode("utf-8", errors="replace")
        return parse_config(text)
    except (OSError, ValueError) as exc:
        _report(exc)
        raise


def get_config(argv: list[str] | None = None) -> Config:
    """Parse ``--config PATH`` from the command line and load that file."""
    parser = argparse.ArgumentParser(prog="pubdex")
    parser.add_argument("-c", "--config", required=True, help="path to the config file")
    args = parser.parse_args(argv)
    return load_config(args.config)