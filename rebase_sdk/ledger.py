"""
Rebase SDK - Rebasing Ledger

Share-based ledger whose token balances follow the backing reported by a
reserve oracle. Holders own shares; a balance is the holder's pro-rata slice
of the cached reserve:

    balance(account) = floor(shares(account) * reserve / total_shares)

Yield moves reserve, not shares, so every balance grows together without
touching any account. Floor rounding leaves a little unattributed "dust" in
the reserve; it is never negative and stays below total_shares.

Every mutation rebases first (refreshes reserve from the oracle) and runs
inside an atomic block, so a failed oracle call, a balance check or any
later step leaves the ledger exactly as it was.

Usage:
    reserve = SimulatedReserve()
    ledger = RebasingLedger(reserve)

    deposit_and_mint(ledger, reserve, "alice", 1_000_000)
    reserve.accrue(100_000)                 # strategy yield
    ledger.rebase()
    ledger.balance_of("alice")              # 1_100_000
"""

import logging
from typing import Optional

from .atomic import atomic
from .errors import (
    InsufficientBalance,
    InvariantViolation,
    OracleUnavailable,
    SelfTransferNotMeaningful,
    ZeroAmount,
)
from .ledger_types import LedgerState
from .share_math import (
    MAX_UINT,
    ROUND_DOWN,
    ROUND_UP,
    checked_add,
    checked_sub,
    shares_to_tokens,
    tokens_to_shares,
    validate_amount,
)
from .token import Token

log = logging.getLogger(__name__)


class RebasingLedger(Token):
    """
    Rebasing token ledger.

    Args:
        oracle: Object with get_total_backing() -> int
        state: Existing LedgerState (genesis state if omitted)
        decimals: Decimals reported to token consumers
        reject_self_transfer: Raise SelfTransferNotMeaningful for sender == recipient
    """

    def __init__(self, oracle, state: Optional[LedgerState] = None,
                 decimals: int = 18, reject_self_transfer: bool = True):
        self.oracle = oracle
        self.state = state if state is not None else LedgerState()
        self.decimals = decimals
        self.reject_self_transfer = reject_self_transfer

    # ═══════════════════════════════════════════════════════════════════════
    # SNAPSHOT / RESTORE
    # ═══════════════════════════════════════════════════════════════════════

    def snapshot(self) -> LedgerState:
        return self.state.copy()

    def restore(self, snap: LedgerState) -> None:
        # Restore in place: callers hold a reference to self.state
        self.state.total_shares = snap.total_shares
        self.state.reserve = snap.reserve
        self.state.account_shares.clear()
        self.state.account_shares.update(snap.account_shares)

    # ═══════════════════════════════════════════════════════════════════════
    # REBASE
    # ═══════════════════════════════════════════════════════════════════════

    def rebase(self) -> int:
        """
        Refresh the cached reserve from the oracle.

        Returns:
            New reserve

        Raises:
            OracleUnavailable: If the oracle fails or reports an invalid value;
                reserve is left untouched
        """
        try:
            backing = self.oracle.get_total_backing()
        except OracleUnavailable:
            raise
        except Exception as e:
            raise OracleUnavailable(f"reserve oracle failed: {e}") from e

        if isinstance(backing, bool) or not isinstance(backing, int):
            raise OracleUnavailable(f"oracle returned non-integer backing: {backing!r}")
        if backing < 0 or backing > MAX_UINT:
            raise OracleUnavailable(f"oracle backing out of range: {backing}")

        if backing != self.state.reserve:
            log.debug(f"Rebase: reserve {self.state.reserve} -> {backing}")
        self.state.reserve = backing
        return backing

    def refresh(self) -> None:
        self.rebase()

    # ═══════════════════════════════════════════════════════════════════════
    # CONVERSIONS
    # ═══════════════════════════════════════════════════════════════════════

    def tokens_to_shares(self, amount: int, rounding: str = ROUND_DOWN) -> int:
        return tokens_to_shares(amount, self.state.total_shares, self.state.reserve, rounding)

    def shares_to_tokens(self, shares: int) -> int:
        return shares_to_tokens(shares, self.state.total_shares, self.state.reserve)

    # ═══════════════════════════════════════════════════════════════════════
    # MUTATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def mint(self, recipient: str, amount: int) -> int:
        """
        Issue tokens backed by newly received backing.

        Shares are priced against the reserve before the minted backing is
        added, then reserve grows by amount. The oracle must not yet count
        this backing (it is reported as pending until settled).

        Returns:
            Shares issued
        """
        validate_amount(amount)
        if amount == 0:
            raise ZeroAmount("mint of 0")

        with atomic(self):
            self.rebase()
            new_shares = self.tokens_to_shares(amount)
            if new_shares == 0:
                raise ZeroAmount(f"mint of {amount} is worth 0 shares")

            self._credit(recipient, new_shares)
            self.state.total_shares = checked_add(self.state.total_shares, new_shares)
            self.state.reserve = checked_add(self.state.reserve, amount)

        log.info(f"Mint {amount} to {recipient} ({new_shares} shares)")
        return new_shares

    def burn(self, owner: str, amount: int) -> int:
        """
        Destroy tokens ahead of releasing their backing.

        Shares removed are rounded up, so a burn never withdraws backing it
        did not pay for in shares.

        Returns:
            Shares removed
        """
        validate_amount(amount)
        if amount == 0:
            raise ZeroAmount("burn of 0")

        with atomic(self):
            self.rebase()
            shares = self.tokens_to_shares(amount, ROUND_UP)
            held = self.shares_of(owner)
            if shares > held:
                raise InsufficientBalance(
                    f"{owner} holds {held} shares, burn of {amount} needs {shares}"
                )
            if amount > self.state.reserve:
                raise InsufficientBalance(f"burn of {amount} exceeds reserve {self.state.reserve}")

            self._debit(owner, shares)
            self.state.total_shares = checked_sub(self.state.total_shares, shares)
            self.state.reserve = checked_sub(self.state.reserve, amount)

        log.info(f"Burn {amount} from {owner} ({shares} shares)")
        return shares

    def transfer(self, amount: int, sender: str, recipient: str,
                 memo: Optional[str] = None) -> int:
        """
        Move the shares worth amount from sender to recipient.

        total_shares and reserve do not change. Each side's balance may move
        by one unit less than amount because of floor rounding.

        Returns:
            Shares moved
        """
        validate_amount(amount)
        if amount == 0:
            raise ZeroAmount("transfer of 0")
        if sender == recipient and self.reject_self_transfer:
            raise SelfTransferNotMeaningful(f"{sender} -> {recipient}")

        with atomic(self):
            self.rebase()
            shares = self.tokens_to_shares(amount)
            if shares == 0:
                raise ZeroAmount(f"transfer of {amount} is worth 0 shares")
            held = self.shares_of(sender)
            if shares > held:
                raise InsufficientBalance(
                    f"{sender} holds {held} shares, transfer of {amount} needs {shares}"
                )
            self._debit(sender, shares)
            self._credit(recipient, shares)

        if memo:
            log.info(f"Transfer {amount} {sender} -> {recipient} ({shares} shares, memo: {memo})")
        else:
            log.info(f"Transfer {amount} {sender} -> {recipient} ({shares} shares)")
        return shares

    def _credit(self, account: str, shares: int) -> None:
        accounts = self.state.account_shares
        accounts[account] = checked_add(accounts.get(account, 0), shares)

    def _debit(self, account: str, shares: int) -> None:
        accounts = self.state.account_shares
        remaining = checked_sub(accounts.get(account, 0), shares)
        if remaining:
            accounts[account] = remaining
        else:
            accounts.pop(account, None)

    # ═══════════════════════════════════════════════════════════════════════
    # READS (no rebase; call rebase() first when freshness matters)
    # ═══════════════════════════════════════════════════════════════════════

    def shares_of(self, account: str) -> int:
        return self.state.account_shares.get(account, 0)

    def balance_of(self, account: str) -> int:
        return self.shares_to_tokens(self.shares_of(account))

    def total_supply(self) -> int:
        return self.state.reserve

    def total_shares(self) -> int:
        return self.state.total_shares

    def get_balance(self, account: str) -> int:
        return self.balance_of(account)

    def get_total_supply(self) -> int:
        return self.total_supply()

    def get_decimals(self) -> int:
        return self.decimals

    def dust(self) -> int:
        """Reserve not attributed to any account by floor rounding."""
        attributed = sum(self.balance_of(a) for a in self.state.account_shares)
        return self.state.reserve - attributed

    def check_invariants(self) -> None:
        """
        Verify share bookkeeping and conservation.

        Raises:
            InvariantViolation: On the first broken invariant
        """
        state = self.state
        if any(shares <= 0 for shares in state.account_shares.values()):
            raise InvariantViolation("non-positive share entry")
        if sum(state.account_shares.values()) != state.total_shares:
            raise InvariantViolation(
                f"account shares sum {sum(state.account_shares.values())} "
                f"!= total_shares {state.total_shares}"
            )
        if state.total_shares == 0:
            return
        dust = self.dust()
        if dust < 0:
            raise InvariantViolation(f"balances exceed reserve by {-dust}")
        if dust >= max(state.total_shares, 1):
            raise InvariantViolation(f"dust {dust} not below total_shares {state.total_shares}")

    def __repr__(self) -> str:
        return (f"RebasingLedger(total_shares={self.state.total_shares}, "
                f"reserve={self.state.reserve}, accounts={len(self.state.account_shares)})")

