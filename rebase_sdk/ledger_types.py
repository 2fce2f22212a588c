"""
Rebase SDK - Data Types

Ledger and pool state records, swap direction, backing reports and the
Result-typed operation outcome.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import json

from .errors import LedgerError, OracleUnavailable


class SwapDirection(Enum):
    """Swap direction: A_TO_B sells the plain asset, B_TO_A sells the rebasing token"""
    A_TO_B = "a_to_b"
    B_TO_A = "b_to_a"


def _clean_shares(mapping: Dict[str, int]) -> Dict[str, int]:
    return {owner: int(shares) for owner, shares in mapping.items() if int(shares) > 0}


@dataclass
class LedgerState:
    """
    Rebasing ledger state.

    Structure:
      - total_shares: Shares issued and not yet burned
      - reserve: Cached total backing, written only by rebase/mint/burn
      - account_shares: owner -> shares (zero entries are dropped)
    """
    total_shares: int = 0
    reserve: int = 0
    account_shares: Dict[str, int] = field(default_factory=dict)

    def copy(self) -> "LedgerState":
        return LedgerState(self.total_shares, self.reserve, dict(self.account_shares))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_shares": self.total_shares,
            "reserve": self.reserve,
            "account_shares": dict(self.account_shares),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerState":
        """Create LedgerState from dictionary."""
        return cls(
            total_shares=int(data.get("total_shares", 0)),
            reserve=int(data.get("reserve", 0)),
            account_shares=_clean_shares(data.get("account_shares", {})),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "LedgerState":
        return cls.from_dict(json.loads(json_str))


@dataclass
class PoolState:
    """
    Constant-product pool state.

    The rebasing side has no stored reserve: it is the ledger balance of the
    pool address, read at use time.
    """
    lp_total_shares: int = 0
    lp_account_shares: Dict[str, int] = field(default_factory=dict)
    plain_asset_reserve: int = 0

    def copy(self) -> "PoolState":
        return PoolState(self.lp_total_shares, dict(self.lp_account_shares),
                         self.plain_asset_reserve)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "lp_total_shares": self.lp_total_shares,
            "lp_account_shares": dict(self.lp_account_shares),
            "plain_asset_reserve": self.plain_asset_reserve,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PoolState":
        """Create PoolState from dictionary."""
        return cls(
            lp_total_shares=int(data.get("lp_total_shares", 0)),
            lp_account_shares=_clean_shares(data.get("lp_account_shares", {})),
            plain_asset_reserve=int(data.get("plain_asset_reserve", 0)),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "PoolState":
        return cls.from_dict(json.loads(json_str))


@dataclass(frozen=True)
class BackingReport:
    """
    Reserve oracle reading.

    total = liquid + deployed - pending, where pending is backing already
    received for deposits that have not been credited (minted) yet.
    """
    liquid: int
    deployed: int
    pending: int = 0

    def __post_init__(self):
        for name in ("liquid", "deployed", "pending"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise OracleUnavailable(f"invalid {name} holdings: {value!r}")
        if self.pending > self.liquid + self.deployed:
            raise OracleUnavailable(
                f"pending {self.pending} exceeds holdings {self.liquid + self.deployed}"
            )

    @property
    def total(self) -> int:
        return self.liquid + self.deployed - self.pending

    def to_dict(self) -> dict:
        return {
            "liquid": self.liquid,
            "deployed": self.deployed,
            "pending": self.pending,
            "total": self.total,
        }


@dataclass
class TxResult:
    """
    Outcome of one operation at the API boundary.

    ok=True carries the operation's return value; ok=False carries the error
    and guarantees the operation left no state change behind.
    """
    ok: bool
    value: Any = None
    error: Optional[LedgerError] = None

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "result": self.value}
        return {"ok": False, **self.error.to_dict()}
