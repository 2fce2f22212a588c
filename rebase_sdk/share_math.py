"""
Rebase SDK - Share Math

Integer conversions between token amounts and ledger shares, and the
constant-product pricing used by the pool.

All values are unsigned base units bounded by MAX_UINT. Every multiply that
precedes a divide is range-checked, so results match what a uint256 ledger
would produce (or fail with Overflow where it would).

Rounding:
    - tokens_to_shares / shares_to_tokens floor by default.
    - Burns convert with ROUND_UP so a burn always surrenders at least the
      shares backing the withdrawn amount.

Examples:
    >>> tokens_to_shares(10_000, total_shares=1_000_000, reserve=1_100_000)
    9090
    >>> shares_to_tokens(10_000, total_shares=1_000_000, reserve=1_100_000)
    11000
"""

import math
from typing import Tuple

from .errors import Overflow, PoolDrained

# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════════

MAX_UINT = 2 ** 256 - 1

ROUND_DOWN = "down"
ROUND_UP = "up"

# Swap fee in parts-per-million (0.3%)
FEE_DENOMINATOR = 1_000_000
DEFAULT_FEE_PPM = 3_000


# ═══════════════════════════════════════════════════════════════════════════════
# CHECKED ARITHMETIC
# ═══════════════════════════════════════════════════════════════════════════════

def validate_amount(value: int, name: str = "amount") -> int:
    """
    Check that value is an unsigned integer in range.

    Raises:
        TypeError: If value is not an int
        Overflow: If value is negative or above MAX_UINT
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be integer, got {type(value).__name__}")
    if value < 0 or value > MAX_UINT:
        raise Overflow(f"{name} out of unsigned range: {value}")
    return value


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > MAX_UINT:
        raise Overflow(f"{a} + {b} exceeds MAX_UINT")
    return result


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise Overflow(f"{a} - {b} underflows")
    return a - b


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result > MAX_UINT:
        raise Overflow(f"{a} * {b} exceeds MAX_UINT")
    return result


def mul_div(a: int, b: int, denominator: int, rounding: str = ROUND_DOWN) -> int:
    """
    Compute a * b / denominator with a checked multiply.

    Args:
        a, b: Factors
        denominator: Non-zero divisor
        rounding: ROUND_DOWN (floor) or ROUND_UP (ceil)

    Returns:
        Rounded quotient
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")
    product = checked_mul(a, b)
    if rounding == ROUND_UP:
        return -(-product // denominator)
    return product // denominator


def isqrt(n: int) -> int:
    """Exact integer square root (floor)."""
    return math.isqrt(validate_amount(n, "n"))


# ═══════════════════════════════════════════════════════════════════════════════
# SHARE CONVERSIONS
# ═══════════════════════════════════════════════════════════════════════════════

def tokens_to_shares(amount: int, total_shares: int, reserve: int,
                     rounding: str = ROUND_DOWN) -> int:
    """
    Convert a token amount to shares at the current rate.

    Falls back to 1:1 while the ledger is empty (no reserve or no shares).

    Args:
        amount: Token amount in base units
        total_shares: Shares outstanding
        reserve: Cached total backing
        rounding: ROUND_DOWN (default) or ROUND_UP

    Returns:
        Share count
    """
    validate_amount(amount)
    if reserve == 0 or total_shares == 0:
        return amount
    return mul_div(amount, total_shares, reserve, rounding)


def shares_to_tokens(shares: int, total_shares: int, reserve: int) -> int:
    """
    Convert shares to a token amount (floor).

    Returns shares unchanged while no shares exist.
    """
    validate_amount(shares, "shares")
    if total_shares == 0:
        return shares
    return mul_div(shares, reserve, total_shares)


# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANT PRODUCT
# ═══════════════════════════════════════════════════════════════════════════════

def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int,
                   fee_ppm: int = DEFAULT_FEE_PPM) -> int:
    """
    Fee-adjusted constant-product output for an exact input.

        after_fee  = amount_in * (1_000_000 - fee_ppm) / 1_000_000
        amount_out = reserve_out * after_fee / (reserve_in + after_fee)

    The result is always strictly below reserve_out.

    Raises:
        PoolDrained: If either reserve is empty
    """
    validate_amount(amount_in, "amount_in")
    if reserve_in == 0 or reserve_out == 0:
        raise PoolDrained(f"empty reserve ({reserve_in}, {reserve_out})")
    after_fee = mul_div(amount_in, FEE_DENOMINATOR - fee_ppm, FEE_DENOMINATOR)
    return mul_div(reserve_out, after_fee, checked_add(reserve_in, after_fee))


def quote_proportional(amount_a: int, reserve_a: int, reserve_b: int) -> int:
    """Counterpart amount of B matching amount_a at the current pool ratio."""
    if reserve_a == 0 or reserve_b == 0:
        raise PoolDrained(f"empty reserve ({reserve_a}, {reserve_b})")
    return mul_div(amount_a, reserve_b, reserve_a)


def product(reserves: Tuple[int, int]) -> int:
    """Unchecked k = reserve_a * reserve_b, for invariant comparisons."""
    return reserves[0] * reserves[1]
