"""Rebasing ledger: conversions, mutations, rollback and conservation."""

import random

import pytest

from rebase_sdk import (
    InsufficientBalance,
    LedgerState,
    OracleUnavailable,
    RebasingLedger,
    SelfTransferNotMeaningful,
    SimulatedReserve,
    ZeroAmount,
    burn_and_withdraw,
    deposit_and_mint,
    execute,
)


def _state(ledger):
    return ledger.state.to_dict()


def test_concrete_rebase_and_transfer_scenario(scenario) -> None:
    reserve, ledger = scenario
    assert ledger.balance_of("alice") == 10_000

    reserve.accrue(100_000)
    assert ledger.rebase() == 1_100_000
    assert ledger.balance_of("alice") == 11_000

    assert ledger.tokens_to_shares(10_000) == 9_090
    moved = ledger.transfer(10_000, "alice", "bob")
    assert moved == 9_090
    assert ledger.shares_of("alice") == 910
    assert ledger.shares_of("bob") == 9_090
    assert ledger.balance_of("alice") == 1_001
    assert ledger.balance_of("bob") == 9_999


def test_bootstrap_mint_is_one_to_one(ledger, reserve) -> None:
    assert ledger.tokens_to_shares(5_000) == 5_000
    shares = deposit_and_mint(ledger, reserve, "alice", 5_000)
    assert shares == 5_000
    assert ledger.balance_of("alice") == 5_000
    assert ledger.total_supply() == 5_000
    assert ledger.total_shares() == 5_000


def test_mint_prices_shares_before_adding_backing(scenario) -> None:
    reserve, ledger = scenario
    reserve.accrue(100_000)
    reserve.record_deposit(110_000)
    shares = ledger.mint("carol", 110_000)
    reserve.settle_deposit(110_000)
    # 110,000 * 1,000,000 / 1,100,000
    assert shares == 100_000
    assert ledger.total_supply() == 1_210_000
    assert ledger.total_shares() == 1_100_000
    assert ledger.rebase() == 1_210_000
    assert ledger.balance_of("carol") == 110_000


def test_mint_and_burn_reject_zero(ledger) -> None:
    with pytest.raises(ZeroAmount):
        ledger.mint("alice", 0)
    with pytest.raises(ZeroAmount):
        ledger.burn("alice", 0)
    with pytest.raises(ZeroAmount):
        ledger.transfer(0, "alice", "bob")


def test_mint_worth_zero_shares_is_rejected(reserve) -> None:
    state = LedgerState(total_shares=10, reserve=1_000, account_shares={"a": 10})
    reserve.liquid = 1_000
    ledger = RebasingLedger(reserve, state=state)
    with pytest.raises(ZeroAmount):
        ledger.mint("b", 50)
    assert ledger.total_shares() == 10


def test_burn_rounds_shares_up(scenario) -> None:
    reserve, ledger = scenario
    reserve.accrue(100_000)
    # 1 token is worth 0.909 shares: floor would burn nothing
    removed = burn_and_withdraw(ledger, reserve, "alice", 1)
    assert removed == 1
    assert ledger.shares_of("alice") == 9_999
    assert ledger.total_supply() == 1_099_999


def test_burn_full_balance(scenario) -> None:
    reserve, ledger = scenario
    reserve.accrue(100_000)
    ledger.rebase()
    balance = ledger.balance_of("alice")
    burn_and_withdraw(ledger, reserve, "alice", balance)
    assert ledger.shares_of("alice") == 0
    assert "alice" not in ledger.state.account_shares
    ledger.check_invariants()


def test_burn_more_than_balance_fails_without_change(scenario) -> None:
    _, ledger = scenario
    before = _state(ledger)
    with pytest.raises(InsufficientBalance):
        ledger.burn("alice", 10_001)
    assert _state(ledger) == before


def test_transfer_insufficient_balance_keeps_state(scenario) -> None:
    reserve, ledger = scenario
    reserve.accrue(100_000)
    before = _state(ledger)
    with pytest.raises(InsufficientBalance):
        ledger.transfer(12_000, "alice", "bob")
    # the rebase performed inside the failed transfer is rolled back too
    assert _state(ledger) == before
    assert ledger.total_supply() == 1_000_000


def test_transfer_of_less_than_one_share_is_rejected(scenario) -> None:
    reserve, ledger = scenario
    reserve.accrue(100_000)
    with pytest.raises(ZeroAmount):
        ledger.transfer(1, "alice", "bob")


def test_self_transfer_policy(scenario) -> None:
    _, ledger = scenario
    with pytest.raises(SelfTransferNotMeaningful):
        ledger.transfer(100, "alice", "alice")

    ledger.reject_self_transfer = False
    assert ledger.transfer(100, "alice", "alice") == 100
    assert ledger.shares_of("alice") == 10_000


def test_oracle_failure_aborts_without_state_change(scenario) -> None:
    reserve, ledger = scenario
    before = _state(ledger)
    reserve.fail = True
    for op, args in ((ledger.transfer, (100, "alice", "bob")),
                     (ledger.mint, ("bob", 100)),
                     (ledger.burn, ("alice", 100)),
                     (ledger.rebase, ())):
        with pytest.raises(OracleUnavailable):
            op(*args)
        assert _state(ledger) == before


def test_oracle_exception_is_wrapped(scenario, flaky) -> None:
    reserve, ledger = scenario
    ledger.oracle = flaky(reserve, fail_on={1})
    with pytest.raises(OracleUnavailable, match="aggregation call failed"):
        ledger.transfer(100, "alice", "bob")
    assert ledger.transfer(100, "alice", "bob") == 100


@pytest.mark.parametrize("bad", [-5, 1.5, "100", None, True])
def test_invalid_oracle_value_is_rejected(scenario, bad) -> None:
    _, ledger = scenario

    class BadOracle:
        def get_total_backing(self):
            return bad

    ledger.oracle = BadOracle()
    with pytest.raises(OracleUnavailable):
        ledger.rebase()
    assert ledger.total_supply() == 1_000_000


def test_reads_do_not_rebase(scenario) -> None:
    reserve, ledger = scenario
    reserve.accrue(100_000)
    assert ledger.balance_of("alice") == 10_000
    assert ledger.total_supply() == 1_000_000
    ledger.rebase()
    assert ledger.total_supply() == 1_100_000


def test_token_interface(scenario) -> None:
    _, ledger = scenario
    assert ledger.get_balance("alice") == 10_000
    assert ledger.get_total_supply() == 1_000_000
    assert ledger.get_decimals() == 18
    assert ledger.transfer(500, "alice", "bob", memo="rent") == 500


def test_rebase_monotonic_under_yield(reserve, ledger) -> None:
    rng = random.Random(5)
    deposit_and_mint(ledger, reserve, "alice", 1_000)
    previous = ledger.rebase()
    for _ in range(100):
        reserve.accrue(rng.randint(0, 1_000))
        current = ledger.rebase()
        assert current >= previous
        previous = current


def test_transfer_conservation() -> None:
    rng = random.Random(13)
    reserve = SimulatedReserve()
    ledger = RebasingLedger(reserve)
    deposit_and_mint(ledger, reserve, "a", 1_000_000)
    deposit_and_mint(ledger, reserve, "b", 333_333)
    for _ in range(200):
        reserve.accrue(rng.randint(0, 5_000))
        ledger.rebase()
        sender, recipient = rng.sample(["a", "b"], 2)
        balance = ledger.balance_of(sender)
        if balance < 2:
            continue
        total_shares = ledger.total_shares()
        before = ledger.balance_of("a") + ledger.balance_of("b")
        result = execute(ledger.transfer, rng.randint(1, balance), sender, recipient)
        after = ledger.balance_of("a") + ledger.balance_of("b")
        assert ledger.total_shares() == total_shares
        if result.ok:
            assert abs(after - before) <= 1


def test_conservation_over_random_sequences() -> None:
    for seed in range(5):
        rng = random.Random(seed)
        reserve = SimulatedReserve()
        ledger = RebasingLedger(reserve)
        accounts = ["a", "b", "c", "d"]
        for _ in range(300):
            op = rng.choice(["mint", "burn", "transfer", "yield", "loss"])
            account = rng.choice(accounts)
            if op == "mint":
                execute(deposit_and_mint, ledger, reserve, account, rng.randint(1, 10**6))
            elif op == "burn":
                balance = ledger.balance_of(account)
                if balance:
                    execute(burn_and_withdraw, ledger, reserve, account, rng.randint(1, balance))
            elif op == "transfer":
                balance = ledger.balance_of(account)
                if balance:
                    execute(ledger.transfer, rng.randint(1, balance), account,
                            rng.choice([a for a in accounts if a != account]))
            elif op == "yield":
                reserve.deploy(reserve.liquid // 2)
                reserve.accrue(rng.randint(0, 10**4))
            else:
                execute(reserve.realize_loss, min(reserve.deployed, rng.randint(0, 10**4)))
            execute(ledger.rebase)

            ledger.check_invariants()
            attributed = sum(ledger.balance_of(a) for a in accounts)
            assert attributed <= ledger.total_supply()
            if ledger.total_shares():
                assert ledger.total_supply() - attributed < ledger.total_shares()
