"""
Rebase SDK - State Store

JSON persistence of the ledger and pool state, plus the simulation-side
collaborators (plain asset balances, simulated holdings) when present:

    {
        "version": "1.0",
        "updated_ts": 1735689600,
        "ledger": {"total_shares": ..., "reserve": ..., "account_shares": {...}},
        "pool": {"lp_total_shares": ..., "lp_account_shares": {...},
                 "plain_asset_reserve": ...},
        "plain_asset": {"balances": {...}},
        "holdings": {"liquid": ..., "deployed": ..., "pending": ...}
    }
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from .ledger_types import LedgerState, PoolState

log = logging.getLogger(__name__)

STORE_VERSION = "1.0"


@dataclass
class StoredState:
    ledger: LedgerState = field(default_factory=LedgerState)
    pool: PoolState = field(default_factory=PoolState)
    plain_balances: Dict[str, int] = field(default_factory=dict)
    holdings: Optional[Dict[str, int]] = None


class StateStore:
    """
    File-backed state.

    Usage:
        store = StateStore("rebase_state.json")
        stored = store.load()
        ...
        store.save(StoredState(ledger.state, pool.state, usdc.balances))
    """

    def __init__(self, storage_path: str = "rebase_state.json"):
        self.storage_path = storage_path

    def load(self) -> StoredState:
        """
        Load state; genesis state when the file does not exist.

        Raises:
            ValueError: If the file is unreadable or malformed
        """
        if not os.path.exists(self.storage_path):
            log.info(f"No state at {self.storage_path}, starting from genesis")
            return StoredState()
        try:
            with open(self.storage_path, "r") as f:
                data = json.load(f)
            holdings = data.get("holdings")
            return StoredState(
                ledger=LedgerState.from_dict(data.get("ledger", {})),
                pool=PoolState.from_dict(data.get("pool", {})),
                plain_balances={
                    k: int(v) for k, v in data.get("plain_asset", {}).get("balances", {}).items()
                },
                holdings={k: int(v) for k, v in holdings.items()} if holdings else None,
            )
        except (OSError, ValueError, TypeError, AttributeError) as e:
            raise ValueError(f"Failed to load state from {self.storage_path}: {e}") from e

    def save(self, stored: StoredState) -> None:
        """Write state via temp file + rename so a crash never leaves half a file."""
        data = {
            "version": STORE_VERSION,
            "updated_ts": int(time.time()),
            "ledger": stored.ledger.to_dict(),
            "pool": stored.pool.to_dict(),
            "plain_asset": {"balances": dict(stored.plain_balances)},
        }
        if stored.holdings is not None:
            data["holdings"] = dict(stored.holdings)
        tmp_path = f"{self.storage_path}.tmp"
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.storage_path)
        log.debug(f"Saved state to {self.storage_path}")
