"""
Rebase SDK

Shares-based rebasing ledger and a constant-product pool that trades it.

Architecture:
  - RebasingLedger: holders own shares; balances are shares priced against
    the backing reported by a reserve oracle (rebase before every mutation)
  - ConstantProductPool: plain asset vs rebasing token; the rebasing reserve
    is always the pool's live ledger balance
  - ReserveOracle: liquid + deployed - pending holdings (simulated, JSON-RPC
    or on-chain vault)

Usage:
    from rebase_sdk import (
        SimulatedReserve, RebasingLedger, PlainToken, ConstantProductPool,
        deposit_and_mint,
    )

    reserve = SimulatedReserve()
    ledger = RebasingLedger(reserve)
    usdc = PlainToken("USDC", decimals=6)
    pool = ConstantProductPool(usdc, ledger, address="pool")

    deposit_and_mint(ledger, reserve, "lp", 1_000_000)
    usdc.mint("lp", 1_000_000)
    pool.add_liquidity("lp", 1_000_000, 1_000_000, min_lp_out=0)
"""

from .errors import (
    LedgerError,
    InsufficientBalance,
    ZeroAmount,
    SlippageExceeded,
    OracleUnavailable,
    Overflow,
    PoolDrained,
    SelfTransferNotMeaningful,
    InvariantViolation,
)
from .ledger_types import LedgerState, PoolState, SwapDirection, BackingReport, TxResult
from .atomic import atomic, execute
from .token import Token, PlainToken
from .ledger import RebasingLedger
from .oracle import (
    ReserveOracle,
    SimulatedReserve,
    RPCReserveOracle,
    Web3ReserveOracle,
    build_oracle,
    deposit_and_mint,
    burn_and_withdraw,
)
from .pool import ConstantProductPool
from .config import Config, load_config
from .state_store import StateStore, StoredState
from .system import RebaseSystem

__version__ = "0.1.0"
__all__ = [
    # Errors
    "LedgerError", "InsufficientBalance", "ZeroAmount", "SlippageExceeded",
    "OracleUnavailable", "Overflow", "PoolDrained", "SelfTransferNotMeaningful",
    "InvariantViolation",
    # Types
    "LedgerState", "PoolState", "SwapDirection", "BackingReport", "TxResult",
    # Core
    "atomic", "execute", "Token", "PlainToken", "RebasingLedger",
    "ConstantProductPool",
    # Oracle
    "ReserveOracle", "SimulatedReserve", "RPCReserveOracle", "Web3ReserveOracle",
    "build_oracle", "deposit_and_mint", "burn_and_withdraw",
    # Wiring
    "Config", "load_config", "StateStore", "StoredState", "RebaseSystem",
]
