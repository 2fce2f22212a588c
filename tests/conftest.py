import pytest

from rebase_sdk import (
    ConstantProductPool,
    LedgerState,
    PlainToken,
    RebasingLedger,
    SimulatedReserve,
    deposit_and_mint,
)


class FlakyOracle:
    """Wraps an oracle and fails on chosen call numbers (1-based)."""

    def __init__(self, inner, fail_on=()):
        self.inner = inner
        self.fail_on = set(fail_on)
        self.calls = 0

    def get_total_backing(self):
        self.calls += 1
        if self.calls in self.fail_on:
            raise ConnectionError("aggregation call failed")
        return self.inner.get_total_backing()


@pytest.fixture
def reserve():
    return SimulatedReserve()


@pytest.fixture
def ledger(reserve):
    return RebasingLedger(reserve)


@pytest.fixture
def scenario():
    """reserve = totalShares = 1,000,000 with alice holding 10,000 shares."""
    reserve = SimulatedReserve(liquid=1_000_000)
    state = LedgerState(
        total_shares=1_000_000,
        reserve=1_000_000,
        account_shares={"alice": 10_000, "others": 990_000},
    )
    return reserve, RebasingLedger(reserve, state=state)


@pytest.fixture
def market():
    """
    Pool seeded 1M USDC / 1M rUSD at a 1:1 share rate.

    trader holds 100,000 of each asset.
    """
    reserve = SimulatedReserve()
    ledger = RebasingLedger(reserve)
    usdc = PlainToken("USDC", decimals=6)
    pool = ConstantProductPool(usdc, ledger, address="pool")

    deposit_and_mint(ledger, reserve, "lp", 1_000_000)
    deposit_and_mint(ledger, reserve, "trader", 100_000)
    usdc.mint("lp", 1_000_000)
    usdc.mint("trader", 100_000)
    pool.add_liquidity("lp", 1_000_000, 1_000_000, min_lp_out=0)
    return reserve, ledger, usdc, pool


@pytest.fixture
def flaky():
    return FlakyOracle


@pytest.fixture
def skewed_market(market):
    """market after 123,457 of yield: one share is worth ~1.1122 tokens."""
    reserve, ledger, usdc, pool = market
    reserve.accrue(123_457)
    ledger.rebase()
    return market
