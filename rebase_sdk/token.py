"""
Rebase SDK - Token Interface

The capability set the pool depends on: transfer, balance, supply and
decimals. The pool never sees how a token stores balances.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from .errors import InsufficientBalance, ZeroAmount
from .share_math import checked_add, checked_sub, validate_amount
from .atomic import atomic

log = logging.getLogger(__name__)


class Token(ABC):
    """Fungible token as seen by the pool."""

    @abstractmethod
    def transfer(self, amount: int, sender: str, recipient: str,
                 memo: Optional[str] = None) -> int:
        """Move amount from sender to recipient. Raises LedgerError on failure."""

    @abstractmethod
    def get_balance(self, account: str) -> int:
        """Current balance in base units."""

    @abstractmethod
    def get_total_supply(self) -> int:
        """Total supply in base units."""

    @abstractmethod
    def get_decimals(self) -> int:
        """Number of decimals of one whole token."""

    def refresh(self) -> None:
        """Bring balances up to date before a mutation. No-op for plain tokens."""
        return None


class PlainToken(Token):
    """
    Plain fixed-balance asset (the pool's A side).

    Usage:
        usdc = PlainToken("USDC", decimals=6)
        usdc.mint("alice", 1_000_000)
        usdc.transfer(250_000, "alice", "bob")
    """

    def __init__(self, symbol: str = "A", decimals: int = 18,
                 balances: Optional[Dict[str, int]] = None):
        self.symbol = symbol
        self.decimals = decimals
        self.balances: Dict[str, int] = {k: v for k, v in (balances or {}).items() if v > 0}
        self.total_supply = sum(self.balances.values())

    def snapshot(self):
        return dict(self.balances), self.total_supply

    def restore(self, snap) -> None:
        balances, total = snap
        self.balances = dict(balances)
        self.total_supply = total

    def mint(self, account: str, amount: int) -> None:
        """Credit new units to account (funding for simulations and tests)."""
        validate_amount(amount)
        if amount == 0:
            raise ZeroAmount("mint of 0")
        with atomic(self):
            self.total_supply = checked_add(self.total_supply, amount)
            self.balances[account] = self.balances.get(account, 0) + amount

    def transfer(self, amount: int, sender: str, recipient: str,
                 memo: Optional[str] = None) -> int:
        validate_amount(amount)
        if amount == 0:
            raise ZeroAmount(f"{self.symbol} transfer of 0")
        balance = self.balances.get(sender, 0)
        if amount > balance:
            raise InsufficientBalance(
                f"{sender} has {balance} {self.symbol}, needs {amount}"
            )
        with atomic(self):
            remaining = checked_sub(balance, amount)
            if remaining:
                self.balances[sender] = remaining
            else:
                del self.balances[sender]
            self.balances[recipient] = self.balances.get(recipient, 0) + amount
        if memo:
            log.debug(f"{self.symbol} transfer {sender} -> {recipient} {amount} ({memo})")
        return amount

    def get_balance(self, account: str) -> int:
        return self.balances.get(account, 0)

    def get_total_supply(self) -> int:
        return self.total_supply

    def get_decimals(self) -> int:
        return self.decimals
