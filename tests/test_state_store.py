"""Config loading, state persistence and system wiring."""

import json

import pytest

from rebase_sdk import (
    Config,
    LedgerState,
    PoolState,
    RebaseSystem,
    StateStore,
    StoredState,
    load_config,
)
from rebase_sdk.config import DEFAULT_CONFIG


def test_load_config_defaults_without_file(tmp_path) -> None:
    assert load_config().to_dict() == Config().to_dict()
    config = load_config(str(tmp_path / "missing.json"))
    assert config.fee_ppm == DEFAULT_CONFIG["fee_ppm"]
    assert config.oracle["source"] == "static"


def test_load_config_merges_nested_sections(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "fee_ppm": 5_000,
        "oracle": {"source": "rpc", "rpc": {"port": 9999}},
        "unknown_key": True,
    }))
    config = load_config(str(path))
    assert config.fee_ppm == 5_000
    assert config.oracle["source"] == "rpc"
    assert config.oracle["rpc"]["port"] == 9999
    assert config.oracle["rpc"]["host"] == "127.0.0.1"
    # defaults are copied, never shared
    assert DEFAULT_CONFIG["oracle"]["rpc"]["port"] == 27170


def test_load_config_rejects_bad_json(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_store_genesis_when_missing(tmp_path) -> None:
    stored = StateStore(str(tmp_path / "state.json")).load()
    assert stored.ledger == LedgerState()
    assert stored.pool == PoolState()
    assert stored.plain_balances == {}
    assert stored.holdings is None


def test_store_save_and_load(tmp_path) -> None:
    path = tmp_path / "state.json"
    store = StateStore(str(path))
    store.save(StoredState(
        ledger=LedgerState(total_shares=30, reserve=33, account_shares={"a": 10, "pool": 20}),
        pool=PoolState(lp_total_shares=20, lp_account_shares={"lp": 20}, plain_asset_reserve=20),
        plain_balances={"lp": 5},
        holdings={"liquid": 30, "deployed": 3, "pending": 0},
    ))

    data = json.loads(path.read_text())
    assert data["version"] == "1.0"
    assert isinstance(data["updated_ts"], int)
    assert not (tmp_path / "state.json.tmp").exists()

    stored = store.load()
    assert stored.ledger.account_shares == {"a": 10, "pool": 20}
    assert stored.ledger.reserve == 33
    assert stored.pool.lp_account_shares == {"lp": 20}
    assert stored.plain_balances == {"lp": 5}
    assert stored.holdings == {"liquid": 30, "deployed": 3, "pending": 0}


def test_store_rejects_malformed_file(tmp_path) -> None:
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"ledger": {"total_shares": "many"}}))
    with pytest.raises(ValueError):
        StateStore(str(path)).load()


def test_zero_share_entries_are_dropped() -> None:
    state = LedgerState.from_dict({"total_shares": 5, "reserve": 5,
                                   "account_shares": {"a": 5, "b": 0}})
    assert state.account_shares == {"a": 5}
    assert LedgerState.from_json(state.to_json()) == state


def test_system_round_trips_through_store(tmp_path) -> None:
    config = Config.from_dict({"state_file": str(tmp_path / "state.json")})
    store = StateStore(config.state_file)

    system = RebaseSystem.from_config(config, store)
    assert system.simulated
    system.deposit("alice", 1_000)
    system.plain_asset.mint("alice", 500)
    system.oracle.accrue(100)
    system.save()

    restored = RebaseSystem.from_config(config, store)
    assert restored.ledger.rebase() == 1_100
    assert restored.ledger.balance_of("alice") == 1_100
    assert restored.plain_asset.get_balance("alice") == 500

    restored.withdraw("alice", 100)
    status = restored.status()
    assert status["ledger"]["reserve"] == 1_000
    assert status["oracle"] == "SimulatedReserve"
    assert status["pool"]["reserve_b"] == 0


def test_pool_state_json_round_trip() -> None:
    state = PoolState(lp_total_shares=7, lp_account_shares={"lp": 7, "gone": 0},
                      plain_asset_reserve=49)
    restored = PoolState.from_json(state.to_json())
    assert restored.lp_account_shares == {"lp": 7}
    assert restored.lp_total_shares == 7
    assert restored.plain_asset_reserve == 49
