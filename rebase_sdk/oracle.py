"""
Rebase SDK - Reserve Oracle

Reports the total backing behind the rebasing token:

    total = liquid holdings + deployed holdings - pending (uncredited) deposits

Sources:
  - SimulatedReserve: in-process holdings (tests, simulations, static config)
  - RPCReserveOracle: node JSON-RPC `getreservestate`
  - Web3ReserveOracle: vault contract view functions

Any failure surfaces as OracleUnavailable; an oracle never substitutes a
default value.

Deposit / withdrawal glue keeps ledger and holdings consistent: backing that
arrives for a deposit is reported as pending until the ledger has minted
against it, so the rebase inside mint never counts it twice.
"""

import logging
from abc import ABC, abstractmethod

from web3 import Web3

from .atomic import atomic
from .errors import InsufficientBalance, OracleUnavailable, ZeroAmount
from .ledger_types import BackingReport
from .rpc_client import RPCClient, RPCError
from .share_math import checked_add, checked_sub, validate_amount

log = logging.getLogger(__name__)

# Vault contract ABI (holdings views only)
VAULT_ABI = [
    {
        "inputs": [],
        "name": "liquidHoldings",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "deployedHoldings",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "pendingCreditedAmount",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]


class ReserveOracle(ABC):
    """Source of the ledger's total backing."""

    @abstractmethod
    def fetch_report(self) -> BackingReport:
        """Read current holdings. Raises OracleUnavailable on failure."""

    def get_total_backing(self) -> int:
        report = self.fetch_report()
        total = report.total
        log.debug(f"Backing: liquid={report.liquid} deployed={report.deployed} "
                  f"pending={report.pending} total={total}")
        return total


# ═══════════════════════════════════════════════════════════════════════════════
# IN-PROCESS HOLDINGS
# ═══════════════════════════════════════════════════════════════════════════════

class SimulatedReserve(ReserveOracle):
    """
    In-process vault holdings.

    Usage:
        reserve = SimulatedReserve(liquid=1_000_000)
        reserve.accrue(5_000)       # yield lands in deployed holdings
        reserve.fail = True         # next reads raise OracleUnavailable
    """

    def __init__(self, liquid: int = 0, deployed: int = 0, pending: int = 0):
        BackingReport(liquid, deployed, pending)
        self.liquid = liquid
        self.deployed = deployed
        self.pending = pending
        self.fail = False

    def snapshot(self):
        return self.liquid, self.deployed, self.pending

    def restore(self, snap) -> None:
        self.liquid, self.deployed, self.pending = snap

    def fetch_report(self) -> BackingReport:
        if self.fail:
            raise OracleUnavailable("simulated reserve unreachable")
        return BackingReport(self.liquid, self.deployed, self.pending)

    def record_deposit(self, amount: int) -> None:
        """Backing received for a deposit that is not credited yet."""
        validate_amount(amount)
        self.liquid = checked_add(self.liquid, amount)
        self.pending = checked_add(self.pending, amount)

    def settle_deposit(self, amount: int) -> None:
        """Deposit credited on the ledger; it now counts as backing."""
        self.pending = checked_sub(self.pending, amount)

    def withdraw(self, amount: int) -> None:
        """Release liquid backing to a redeeming holder."""
        free = max(self.liquid - self.pending, 0)
        if amount > free:
            raise InsufficientBalance(f"withdrawal of {amount} exceeds free liquid holdings {free}")
        self.liquid = checked_sub(self.liquid, amount)

    def accrue(self, amount: int) -> None:
        """Strategy yield on deployed holdings."""
        self.deployed = checked_add(self.deployed, validate_amount(amount))

    def realize_loss(self, amount: int) -> None:
        """Strategy loss on deployed holdings."""
        self.deployed = checked_sub(self.deployed, validate_amount(amount))

    def deploy(self, amount: int) -> None:
        """Move liquid holdings into the strategy (total unchanged)."""
        self.liquid = checked_sub(self.liquid, amount)
        self.deployed = checked_add(self.deployed, amount)


# ═══════════════════════════════════════════════════════════════════════════════
# REMOTE SOURCES
# ═══════════════════════════════════════════════════════════════════════════════

class RPCReserveOracle(ReserveOracle):
    """Holdings from the node's `getreservestate` RPC."""

    def __init__(self, rpc: RPCClient):
        self.rpc = rpc

    def fetch_report(self) -> BackingReport:
        try:
            state = self.rpc.getreservestate()
        except RPCError as e:
            raise OracleUnavailable(f"getreservestate failed: {e}") from e

        if not isinstance(state, dict):
            raise OracleUnavailable(f"getreservestate returned {state!r}")
        try:
            return BackingReport(
                liquid=int(state["liquid"]),
                deployed=int(state["deployed"]),
                pending=int(state.get("pending", 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise OracleUnavailable(f"malformed reserve state: {e}") from e


class Web3ReserveOracle(ReserveOracle):
    """
    Holdings from a vault contract.

    Args:
        rpc_url: EVM JSON-RPC endpoint
        vault_address: Vault contract address
        contract: Pre-built contract object (skips provider setup)
    """

    def __init__(self, rpc_url: str = "", vault_address: str = "", contract=None):
        if contract is None:
            w3 = Web3(Web3.HTTPProvider(rpc_url))
            contract = w3.eth.contract(
                address=Web3.to_checksum_address(vault_address),
                abi=VAULT_ABI
            )
        self.contract = contract

    def fetch_report(self) -> BackingReport:
        functions = self.contract.functions
        try:
            liquid = functions.liquidHoldings().call()
            deployed = functions.deployedHoldings().call()
            pending = functions.pendingCreditedAmount().call()
        except Exception as e:
            raise OracleUnavailable(f"vault query failed: {e}") from e
        return BackingReport(int(liquid), int(deployed), int(pending))


def build_oracle(config) -> ReserveOracle:
    """Create the oracle selected by config.oracle["source"]."""
    settings = config.oracle
    source = settings.get("source", "static")
    if source == "static":
        return SimulatedReserve(
            liquid=int(settings.get("liquid", 0)),
            deployed=int(settings.get("deployed", 0)),
            pending=int(settings.get("pending", 0)),
        )
    if source == "rpc":
        rpc = settings.get("rpc", {})
        return RPCReserveOracle(RPCClient(
            host=rpc.get("host", "localhost"),
            port=int(rpc.get("port", 27170)),
            user=rpc.get("user", ""),
            password=rpc.get("password", ""),
        ))
    if source == "web3":
        web3_cfg = settings.get("web3", {})
        return Web3ReserveOracle(web3_cfg["rpc_url"], web3_cfg["vault_address"])
    raise ValueError(f"Unknown oracle source: {source}")


# ═══════════════════════════════════════════════════════════════════════════════
# LEDGER GLUE
# ═══════════════════════════════════════════════════════════════════════════════

def deposit_and_mint(ledger, reserve: SimulatedReserve, recipient: str, amount: int) -> int:
    """
    Receive backing for a deposit and credit it on the ledger.

    Returns:
        Shares issued
    """
    validate_amount(amount)
    if amount == 0:
        raise ZeroAmount("deposit of 0")
    with atomic(ledger, reserve):
        reserve.record_deposit(amount)
        shares = ledger.mint(recipient, amount)
        reserve.settle_deposit(amount)
    return shares


def burn_and_withdraw(ledger, reserve: SimulatedReserve, owner: str, amount: int) -> int:
    """
    Burn owner's tokens and release the matching liquid backing.

    Returns:
        Shares removed
    """
    with atomic(ledger, reserve):
        shares = ledger.burn(owner, amount)
        reserve.withdraw(amount)
    return shares
