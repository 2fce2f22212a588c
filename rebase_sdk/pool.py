"""
Rebase SDK - Constant-Product Pool

Two-asset AMM between a plain asset (A) and the rebasing token (B).

The B reserve is never stored: it is the rebasing ledger's balance of the
pool address, read every time it is needed. Yield accrued since the last
interaction is therefore priced in before any swap or liquidity change, and
nobody can trade against a stale reserve.

Pricing (0.3% fee by default):

    after_fee  = amount_in * (1_000_000 - fee_ppm) / 1_000_000
    amount_out = reserve_out * after_fee / (reserve_in + after_fee)

The pool prices what it actually received: a rebasing transfer may credit a
unit or two less than requested because of share rounding, and the output is
computed from the credited amount. The same rounding applies on the way
out, so slippage floors are checked against what the caller's balance
actually gained, and that is the amount reported back. reserve_a * reserve_b
never decreases across a swap.

Usage:
    pool = ConstantProductPool(usdc, ledger, address="pool")
    pool.add_liquidity("lp", 1_000_000, 1_000_000, min_lp_out=0)
    pool.swap_a_to_b("trader", 10_000, min_amount_out=9_800)
"""

import logging
from typing import Dict, Optional, Tuple

from .atomic import atomic
from .errors import (
    InsufficientBalance,
    InvariantViolation,
    PoolDrained,
    SlippageExceeded,
    ZeroAmount,
)
from .ledger_types import PoolState, SwapDirection
from .share_math import (
    DEFAULT_FEE_PPM,
    FEE_DENOMINATOR,
    checked_add,
    checked_mul,
    checked_sub,
    get_amount_out,
    isqrt,
    mul_div,
    product,
    quote_proportional,
    validate_amount,
)
from .token import Token

log = logging.getLogger(__name__)

SIDE_A = "a"
SIDE_B = "b"


class ConstantProductPool:
    """
    Constant-product pool.

    Args:
        token_a: Plain asset
        token_b: Rebasing token (any Token whose balances may change on refresh)
        address: Account the pool holds its assets under
        state: Existing PoolState (empty pool if omitted)
        fee_ppm: Swap fee in parts-per-million
    """

    def __init__(self, token_a: Token, token_b: Token, address: str = "pool",
                 state: Optional[PoolState] = None, fee_ppm: int = DEFAULT_FEE_PPM):
        if not 0 <= fee_ppm < FEE_DENOMINATOR:
            raise ValueError(f"fee_ppm must be in [0, {FEE_DENOMINATOR}), got {fee_ppm}")
        self.token_a = token_a
        self.token_b = token_b
        self.address = address
        self.state = state if state is not None else PoolState()
        self.fee_ppm = fee_ppm

    def snapshot(self) -> PoolState:
        return self.state.copy()

    def restore(self, snap: PoolState) -> None:
        self.state.lp_total_shares = snap.lp_total_shares
        self.state.plain_asset_reserve = snap.plain_asset_reserve
        self.state.lp_account_shares.clear()
        self.state.lp_account_shares.update(snap.lp_account_shares)

    def _atomic(self):
        return atomic(self, self.token_a, self.token_b)

    def _refresh(self) -> None:
        self.token_a.refresh()
        self.token_b.refresh()

    # ═══════════════════════════════════════════════════════════════════════
    # RESERVES AND QUOTES
    # ═══════════════════════════════════════════════════════════════════════

    def get_live_reserves(self) -> Tuple[int, int]:
        """(plain asset reserve, rebasing balance of the pool), never cached."""
        return self.state.plain_asset_reserve, self.token_b.get_balance(self.address)

    @staticmethod
    def _orient(direction: SwapDirection, reserves: Tuple[int, int]) -> Tuple[int, int]:
        reserve_a, reserve_b = reserves
        if direction == SwapDirection.A_TO_B:
            return reserve_a, reserve_b
        return reserve_b, reserve_a

    def quote_swap(self, amount_in: int, direction: SwapDirection) -> int:
        """
        Output for amount_in at the current live reserves.

        Reads without refreshing the rebasing token, so the quote may trail
        unrebased yield; swap() always refreshes first. Rebasing transfers round
        to whole shares, so the quote is an upper bound in both directions.
        """
        reserve_in, reserve_out = self._orient(direction, self.get_live_reserves())
        return get_amount_out(amount_in, reserve_in, reserve_out, self.fee_ppm)

    def price(self) -> float:
        """Units of B per unit of A (display only)."""
        reserve_a, reserve_b = self.get_live_reserves()
        if reserve_a == 0:
            return 0.0
        return reserve_b / reserve_a

    def _optimal_amounts(self, amount_a: int, amount_b: int,
                         reserves: Tuple[int, int]) -> Tuple[int, int]:
        """Largest pair at the pool ratio not exceeding the desired amounts."""
        if self.state.lp_total_shares == 0:
            return amount_a, amount_b
        reserve_a, reserve_b = reserves
        if reserve_a == 0 or reserve_b == 0:
            raise PoolDrained(f"pool has LP supply but reserves are {reserves}")
        b_optimal = quote_proportional(amount_a, reserve_a, reserve_b)
        if b_optimal <= amount_b:
            return amount_a, b_optimal
        return quote_proportional(amount_b, reserve_b, reserve_a), amount_b

    def _lp_for(self, amount_a: int, amount_b: int, reserves: Tuple[int, int]) -> int:
        total = self.state.lp_total_shares
        if total == 0:
            # No LP supply: the deposit alone sets price and share count. Any
            # rebasing balance still held at the pool address (exit rounding
            # dust, direct transfers) belongs to this depositor.
            return isqrt(checked_mul(amount_a, amount_b))
        reserve_a, reserve_b = reserves
        return min(mul_div(total, amount_a, reserve_a), mul_div(total, amount_b, reserve_b))

    def quote_add_liquidity(self, amount_a: int, amount_b: int) -> dict:
        """Amounts that would be pulled and LP shares that would be issued."""
        validate_amount(amount_a, "amount_a")
        validate_amount(amount_b, "amount_b")
        reserves = self.get_live_reserves()
        use_a, use_b = self._optimal_amounts(amount_a, amount_b, reserves)
        return {
            "amount_a": use_a,
            "amount_b": use_b,
            "lp_issued": self._lp_for(use_a, use_b, reserves),
        }

    def quote_remove_liquidity(self, lp_shares: int) -> dict:
        """Pro-rata outputs for burning lp_shares at the current live reserves."""
        validate_amount(lp_shares, "lp_shares")
        total = self.state.lp_total_shares
        if total == 0:
            return {"amount_a_out": 0, "amount_b_out": 0}
        if lp_shares > total:
            raise InsufficientBalance(f"{lp_shares} exceeds LP supply {total}")
        reserve_a, reserve_b = self.get_live_reserves()
        return {
            "amount_a_out": mul_div(reserve_a, lp_shares, total),
            "amount_b_out": mul_div(reserve_b, lp_shares, total),
        }

    # ═══════════════════════════════════════════════════════════════════════
    # ASSET MOVEMENT
    # ═══════════════════════════════════════════════════════════════════════

    def _pull(self, side: str, caller: str, amount: int) -> int:
        """Move amount from caller into the pool; returns the amount credited."""
        if side == SIDE_A:
            self.token_a.transfer(amount, caller, self.address)
            self.state.plain_asset_reserve = checked_add(self.state.plain_asset_reserve, amount)
            return amount
        before = self.token_b.get_balance(self.address)
        self.token_b.transfer(amount, caller, self.address)
        return checked_sub(self.token_b.get_balance(self.address), before)

    def _push(self, side: str, caller: str, amount: int) -> int:
        """Move amount from the pool to caller; returns the amount caller gained."""
        if side == SIDE_A:
            self.state.plain_asset_reserve = checked_sub(self.state.plain_asset_reserve, amount)
            self.token_a.transfer(amount, self.address, caller)
            return amount
        before = self.token_b.get_balance(caller)
        self.token_b.transfer(amount, self.address, caller)
        return checked_sub(self.token_b.get_balance(caller), before)

    # ═══════════════════════════════════════════════════════════════════════
    # SWAPS
    # ═══════════════════════════════════════════════════════════════════════

    def swap(self, caller: str, amount_in: int, min_amount_out: int,
             direction: SwapDirection) -> dict:
        """
        Swap an exact input for at least min_amount_out.

        Returns:
            {"amount_out": int}, the amount caller's balance gained

        Raises:
            ZeroAmount: amount_in is 0, or output rounds to 0
            SlippageExceeded: output (as credited to caller) below min_amount_out
            PoolDrained: a reserve is empty or would be emptied
            InsufficientBalance: caller cannot pay amount_in
        """
        validate_amount(amount_in, "amount_in")
        validate_amount(min_amount_out, "min_amount_out")
        if amount_in == 0:
            raise ZeroAmount("swap of 0")
        side_in, side_out = (SIDE_A, SIDE_B) if direction == SwapDirection.A_TO_B else (SIDE_B, SIDE_A)

        with self._atomic():
            self._refresh()
            before = self.get_live_reserves()
            reserve_in, reserve_out = self._orient(direction, before)
            if reserve_in == 0 or reserve_out == 0:
                raise PoolDrained(f"empty reserve {before}")

            received = self._pull(side_in, caller, amount_in)
            amount_out = get_amount_out(received, reserve_in, reserve_out, self.fee_ppm)
            if amount_out < min_amount_out:
                raise SlippageExceeded(f"amount_out {amount_out} < min {min_amount_out}")
            if amount_out == 0:
                raise ZeroAmount(f"swap of {amount_in} yields 0")
            if amount_out >= reserve_out:
                raise PoolDrained(f"amount_out {amount_out} would drain reserve {reserve_out}")
            delivered = self._push(side_out, caller, amount_out)
            if delivered < min_amount_out:
                raise SlippageExceeded(
                    f"delivered {delivered} (of {amount_out}) < min {min_amount_out}"
                )
            if delivered == 0:
                raise ZeroAmount(f"swap of {amount_in} delivers 0")

            after = self.get_live_reserves()
            if product(after) < product(before):
                raise InvariantViolation(f"k decreased: {before} -> {after}")

        log.info(f"Swap {direction.value} {caller}: {received} in -> {delivered} out")
        return {"amount_out": delivered}

    def swap_a_to_b(self, caller: str, amount_in: int, min_amount_out: int) -> dict:
        return self.swap(caller, amount_in, min_amount_out, SwapDirection.A_TO_B)

    def swap_b_to_a(self, caller: str, amount_in: int, min_amount_out: int) -> dict:
        return self.swap(caller, amount_in, min_amount_out, SwapDirection.B_TO_A)

    # ═══════════════════════════════════════════════════════════════════════
    # LIQUIDITY
    # ═══════════════════════════════════════════════════════════════════════

    def lp_balance_of(self, account: str) -> int:
        return self.state.lp_account_shares.get(account, 0)

    def add_liquidity(self, caller: str, amount_a: int, amount_b: int,
                      min_lp_out: int) -> dict:
        """
        Deposit both assets for LP shares.

        The first deposit sets the price and issues isqrt(a * b) shares.
        Later deposits are trimmed to the pool ratio (the excess side is not
        pulled) and issue the smaller of the two proportional share counts,
        computed from the amounts actually credited.

        Returns:
            {"lp_issued": int, "amount_a": int, "amount_b": int}
        """
        validate_amount(amount_a, "amount_a")
        validate_amount(amount_b, "amount_b")
        validate_amount(min_lp_out, "min_lp_out")
        if amount_a == 0 or amount_b == 0:
            raise ZeroAmount(f"liquidity needs both assets ({amount_a}, {amount_b})")

        with self._atomic():
            self._refresh()
            reserves = self.get_live_reserves()
            use_a, use_b = self._optimal_amounts(amount_a, amount_b, reserves)
            if use_a == 0 or use_b == 0:
                raise ZeroAmount(f"deposit rounds to ({use_a}, {use_b}) at pool ratio")

            received_a = self._pull(SIDE_A, caller, use_a)
            received_b = self._pull(SIDE_B, caller, use_b)
            lp_issued = self._lp_for(received_a, received_b, reserves)
            if lp_issued < min_lp_out:
                raise SlippageExceeded(f"lp_issued {lp_issued} < min {min_lp_out}")
            if lp_issued == 0:
                raise ZeroAmount("deposit issues 0 LP shares")

            shares = self.state.lp_account_shares
            shares[caller] = checked_add(shares.get(caller, 0), lp_issued)
            self.state.lp_total_shares = checked_add(self.state.lp_total_shares, lp_issued)

        log.info(f"Add liquidity {caller}: {received_a} A + {received_b} B -> {lp_issued} LP")
        return {"lp_issued": lp_issued, "amount_a": received_a, "amount_b": received_b}

    def remove_liquidity(self, caller: str, lp_shares_burned: int,
                         min_amount_a_out: int, min_amount_b_out: int) -> dict:
        """
        Burn LP shares for a pro-rata slice of both live reserves.

        The B output and its minimum refer to what caller's balance actually
        gains from the rounding ledger transfer.

        Returns:
            {"amount_a_out": int, "amount_b_out": int}
        """
        validate_amount(lp_shares_burned, "lp_shares_burned")
        validate_amount(min_amount_a_out, "min_amount_a_out")
        validate_amount(min_amount_b_out, "min_amount_b_out")
        if lp_shares_burned == 0:
            raise ZeroAmount("remove of 0 LP shares")
        held = self.lp_balance_of(caller)
        if lp_shares_burned > held:
            raise InsufficientBalance(f"{caller} holds {held} LP shares, burning {lp_shares_burned}")

        with self._atomic():
            self._refresh()
            reserve_a, reserve_b = self.get_live_reserves()
            total = self.state.lp_total_shares
            amount_a_out = mul_div(reserve_a, lp_shares_burned, total)
            amount_b_out = mul_div(reserve_b, lp_shares_burned, total)
            if amount_a_out < min_amount_a_out or amount_b_out < min_amount_b_out:
                raise SlippageExceeded(
                    f"outputs ({amount_a_out}, {amount_b_out}) below "
                    f"({min_amount_a_out}, {min_amount_b_out})"
                )
            if amount_a_out == 0 and amount_b_out == 0:
                raise ZeroAmount(f"{lp_shares_burned} LP shares are worth nothing")

            shares = self.state.lp_account_shares
            remaining = held - lp_shares_burned
            if remaining:
                shares[caller] = remaining
            else:
                del shares[caller]
            self.state.lp_total_shares = checked_sub(total, lp_shares_burned)

            if amount_a_out:
                self._push(SIDE_A, caller, amount_a_out)
            if amount_b_out:
                amount_b_out = self._push_dust_tolerant(caller, amount_b_out, min_amount_b_out)

        log.info(f"Remove liquidity {caller}: {lp_shares_burned} LP -> "
                 f"{amount_a_out} A + {amount_b_out} B")
        return {"amount_a_out": amount_a_out, "amount_b_out": amount_b_out}

    def _push_dust_tolerant(self, caller: str, amount: int, minimum: int) -> int:
        # Amounts below one ledger share cannot move; they stay in the pool
        try:
            delivered = self._push(SIDE_B, caller, amount)
        except ZeroAmount:
            if minimum > 0:
                raise SlippageExceeded(f"B output {amount} is below one share, min {minimum}")
            return 0
        if delivered < minimum:
            raise SlippageExceeded(f"B delivered {delivered} (of {amount}) < min {minimum}")
        return delivered

    def lp_positions(self) -> Dict[str, dict]:
        """LP holders with their share of each live reserve."""
        return {
            owner: {"lp_shares": lp, **self.quote_remove_liquidity(lp)}
            for owner, lp in self.state.lp_account_shares.items()
        }

    def status(self) -> dict:
        reserve_a, reserve_b = self.get_live_reserves()
        return {
            "address": self.address,
            "reserve_a": reserve_a,
            "reserve_b": reserve_b,
            "k": reserve_a * reserve_b,
            "price_b_per_a": self.price(),
            "lp_total_shares": self.state.lp_total_shares,
            "fee_ppm": self.fee_ppm,
        }
