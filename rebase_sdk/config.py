"""
Rebase SDK - Configuration

JSON config file merged over DEFAULT_CONFIG.

Example config.json:
    {
        "pool_address": "pool",
        "state_file": "rebase_state.json",
        "oracle": {
            "source": "rpc",
            "rpc": {"host": "127.0.0.1", "port": 27170, "user": "u", "password": "p"}
        }
    }
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .share_math import DEFAULT_FEE_PPM

log = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "fee_ppm": DEFAULT_FEE_PPM,
    "decimals": 18,
    "plain_asset_symbol": "USDC",
    "plain_asset_decimals": 6,
    "pool_address": "pool",
    "reject_self_transfer": True,
    "state_file": "rebase_state.json",
    "http_port": 8080,
    "log_level": "INFO",
    "oracle": {
        "source": "static",     # static | rpc | web3
        "liquid": 0,
        "deployed": 0,
        "pending": 0,
        "rpc": {
            "host": "127.0.0.1",
            "port": 27170,
            "user": "",
            "password": ""
        },
        "web3": {
            "rpc_url": "https://polygon-rpc.com",
            "vault_address": ""
        }
    }
}


@dataclass
class Config:
    fee_ppm: int = DEFAULT_FEE_PPM
    decimals: int = 18
    plain_asset_symbol: str = "USDC"
    plain_asset_decimals: int = 6
    pool_address: str = "pool"
    reject_self_transfer: bool = True
    state_file: str = "rebase_state.json"
    http_port: int = 8080
    log_level: str = "INFO"
    oracle: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_CONFIG["oracle"]))

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        merged = _merge(DEFAULT_CONFIG, data)
        known = {name: merged[name] for name in cls.__dataclass_fields__ if name in merged}
        return cls(**known)

    def to_dict(self) -> dict:
        return {name: copy.deepcopy(getattr(self, name)) for name in self.__dataclass_fields__}


def _merge(base: dict, override: dict) -> dict:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: Optional[str] = None) -> Config:
    """
    Load config from a JSON file, falling back to defaults.

    Raises:
        ValueError: If the file exists but is not valid JSON
    """
    if not path:
        return Config.from_dict({})
    config_path = Path(path)
    if not config_path.exists():
        log.warning(f"Config file {config_path} not found, using defaults")
        return Config.from_dict({})
    try:
        data = json.loads(config_path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid config file {config_path}: {e}") from e
    log.info(f"Loaded config from {config_path}")
    return Config.from_dict(data)
