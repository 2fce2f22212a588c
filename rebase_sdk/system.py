"""
Rebase SDK - System Wiring

Builds the oracle, rebasing ledger, plain asset and pool from a Config and a
StateStore, and persists them back after each operation. Shared by the CLI
and the REST server.
"""

import logging
from typing import Optional

from .config import Config
from .ledger import RebasingLedger
from .oracle import SimulatedReserve, build_oracle, burn_and_withdraw, deposit_and_mint
from .pool import ConstantProductPool
from .state_store import StateStore, StoredState
from .token import PlainToken

log = logging.getLogger(__name__)


class RebaseSystem:
    """
    Ledger + pool + collaborators for one deployment.

    Usage:
        system = RebaseSystem.from_config(load_config("config.json"))
        system.deposit("alice", 1_000_000)
        system.pool.swap_b_to_a("alice", 10_000, 0)
        system.save()
    """

    def __init__(self, config: Config, oracle, ledger: RebasingLedger,
                 plain_asset: PlainToken, pool: ConstantProductPool,
                 store: Optional[StateStore] = None):
        self.config = config
        self.oracle = oracle
        self.ledger = ledger
        self.plain_asset = plain_asset
        self.pool = pool
        self.store = store

    @classmethod
    def from_config(cls, config: Config, store: Optional[StateStore] = None) -> "RebaseSystem":
        stored = store.load() if store else StoredState()
        oracle = build_oracle(config)
        if isinstance(oracle, SimulatedReserve) and stored.holdings:
            oracle.restore((stored.holdings["liquid"], stored.holdings["deployed"],
                            stored.holdings["pending"]))
        ledger = RebasingLedger(
            oracle,
            state=stored.ledger,
            decimals=config.decimals,
            reject_self_transfer=config.reject_self_transfer,
        )
        plain_asset = PlainToken(config.plain_asset_symbol, config.plain_asset_decimals,
                                 stored.plain_balances)
        pool = ConstantProductPool(plain_asset, ledger, address=config.pool_address,
                                   state=stored.pool, fee_ppm=config.fee_ppm)
        return cls(config, oracle, ledger, plain_asset, pool, store)

    @property
    def simulated(self) -> bool:
        return isinstance(self.oracle, SimulatedReserve)

    def deposit(self, account: str, amount: int) -> int:
        """Credit a deposit; with simulated holdings the backing is booked too."""
        if self.simulated:
            return deposit_and_mint(self.ledger, self.oracle, account, amount)
        return self.ledger.mint(account, amount)

    def withdraw(self, account: str, amount: int) -> int:
        """Burn tokens; with simulated holdings the backing is released too."""
        if self.simulated:
            return burn_and_withdraw(self.ledger, self.oracle, account, amount)
        return self.ledger.burn(account, amount)

    def save(self) -> None:
        if not self.store:
            return
        holdings = None
        if self.simulated:
            liquid, deployed, pending = self.oracle.snapshot()
            holdings = {"liquid": liquid, "deployed": deployed, "pending": pending}
        self.store.save(StoredState(
            ledger=self.ledger.state,
            pool=self.pool.state,
            plain_balances=self.plain_asset.balances,
            holdings=holdings,
        ))

    def status(self) -> dict:
        """Read-only summary (no rebase)."""
        ledger = self.ledger
        return {
            "ledger": {
                "reserve": ledger.total_supply(),
                "total_shares": ledger.total_shares(),
                "accounts": len(ledger.state.account_shares),
                "dust": ledger.dust(),
                "decimals": ledger.get_decimals(),
            },
            "pool": self.pool.status(),
            "oracle": type(self.oracle).__name__,
        }
