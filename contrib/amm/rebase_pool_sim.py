#!/usr/bin/env python3
"""
Rebase Pool Simulator
Demonstrates a constant-product pool trading a rebasing token while the
backing accrues yield
"""

from rebase_sdk import (
    ConstantProductPool,
    PlainToken,
    RebasingLedger,
    SimulatedReserve,
    SlippageExceeded,
    SwapDirection,
    deposit_and_mint,
)


def status(ledger, pool, accounts):
    """Print ledger and pool status"""
    print("\n" + "="*60)
    print("LEDGER / POOL STATUS")
    print("="*60)
    print(f"Reserve (total supply): {ledger.total_supply():,}")
    print(f"Total shares:           {ledger.total_shares():,}")
    print(f"Dust:                   {ledger.dust():,}")
    print("\nBalances:")
    for name in accounts:
        print(f"  {name}: {ledger.balance_of(name):,} rUSD "
              f"({ledger.shares_of(name):,} shares), "
              f"{pool.token_a.get_balance(name):,} USDC")
    reserve_a, reserve_b = pool.get_live_reserves()
    print("\nPool:")
    print(f"  USDC reserve: {reserve_a:,}")
    print(f"  rUSD reserve: {reserve_b:,} (live ledger balance)")
    print(f"  Price:        {pool.price():.6f} rUSD/USDC")
    print(f"  LP supply:    {pool.state.lp_total_shares:,}")
    print("="*60 + "\n")


def demo_rebase_pool():
    """Demonstrate yield flowing into the pool's rebasing reserve"""

    print("\n" + "#"*60)
    print("# REBASING LEDGER + CONSTANT-PRODUCT POOL DEMO")
    print("#"*60 + "\n")

    reserve = SimulatedReserve()
    ledger = RebasingLedger(reserve)
    usdc = PlainToken("USDC", decimals=6)
    pool = ConstantProductPool(usdc, ledger, address="pool")
    accounts = ["alice", "bob", "lp"]

    print("[SETUP] Deposits...")
    deposit_and_mint(ledger, reserve, "lp", 1_000_000)
    deposit_and_mint(ledger, reserve, "alice", 10_000)
    usdc.mint("lp", 1_000_000)
    usdc.mint("bob", 50_000)

    print("[SETUP] LP seeds pool 1:1...")
    result = pool.add_liquidity("lp", 1_000_000, 1_000_000, min_lp_out=0)
    print(f"  LP shares issued: {result['lp_issued']:,}")
    status(ledger, pool, accounts)

    print("-"*60)
    print("YIELD: strategy returns 10% on deployed backing")
    print("-"*60)
    reserve.deploy(reserve.liquid)
    reserve.accrue(ledger.total_supply() // 10)
    print(f"[QUOTE] stale: 1,000 USDC -> {pool.quote_swap(1_000, SwapDirection.A_TO_B):,} rUSD")
    ledger.rebase()
    print(f"[QUOTE] fresh: 1,000 USDC -> {pool.quote_swap(1_000, SwapDirection.A_TO_B):,} rUSD")
    status(ledger, pool, accounts)

    print("-"*60)
    print("TRANSFER: alice sends 10,000 rUSD to bob")
    print("-"*60)
    shares = ledger.transfer(10_000, "alice", "bob")
    print(f"  Shares moved: {shares:,} (floor rounding)")

    print("\n[SWAP] bob sells 20,000 USDC for rUSD")
    out = pool.swap_a_to_b("bob", 20_000, min_amount_out=0)
    print(f"  Received: {out['amount_out']:,} rUSD")

    print("\n[SWAP] bob sells 5,000 rUSD back with an impossible floor")
    quote = pool.quote_swap(5_000, SwapDirection.B_TO_A)
    try:
        pool.swap_b_to_a("bob", 5_000, min_amount_out=quote + 1)
    except SlippageExceeded as e:
        print(f"  Rejected: {e} (state unchanged)")

    print("\n[LIQUIDITY] LP withdraws everything")
    out = pool.remove_liquidity("lp", pool.lp_balance_of("lp"), 0, 0)
    print(f"  Received: {out['amount_a_out']:,} USDC + {out['amount_b_out']:,} rUSD")

    status(ledger, pool, accounts)
    ledger.check_invariants()
    return ledger, pool


if __name__ == "__main__":
    demo_rebase_pool()
