"""Backing reports, oracle sources and deposit/withdraw glue."""

import pytest
import requests

from rebase_sdk import (
    BackingReport,
    Config,
    InsufficientBalance,
    OracleUnavailable,
    RPCReserveOracle,
    RebasingLedger,
    SimulatedReserve,
    Web3ReserveOracle,
    build_oracle,
    burn_and_withdraw,
    deposit_and_mint,
)
from rebase_sdk import rpc_client
from rebase_sdk.rpc_client import RPCClient, RPCError


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeCall:
    def __init__(self, value):
        self.value = value

    def call(self):
        if isinstance(self.value, Exception):
            raise self.value
        return self.value


class FakeFunctions:
    def __init__(self, liquid, deployed, pending):
        self.values = {"liquidHoldings": liquid, "deployedHoldings": deployed,
                       "pendingCreditedAmount": pending}

    def __getattr__(self, name):
        value = self.values[name]
        return lambda: FakeCall(value)


class FakeContract:
    def __init__(self, liquid=0, deployed=0, pending=0):
        self.functions = FakeFunctions(liquid, deployed, pending)


def _patch_post(monkeypatch, response):
    calls = []

    def fake_post(url, json=None, auth=None, timeout=None):
        calls.append({"url": url, "json": json, "auth": auth})
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(rpc_client.requests, "post", fake_post)
    return calls


# ═══════════════════════════════════════════════════════════════════════════════
# BACKING REPORT
# ═══════════════════════════════════════════════════════════════════════════════

def test_report_total_subtracts_pending() -> None:
    report = BackingReport(liquid=700, deployed=500, pending=200)
    assert report.total == 1_000
    assert report.to_dict() == {"liquid": 700, "deployed": 500, "pending": 200, "total": 1_000}


@pytest.mark.parametrize("liquid,deployed,pending", [
    (-1, 0, 0),
    (0, 1.5, 0),
    (10, 10, 21),
    (True, 0, 0),
])
def test_report_rejects_invalid_holdings(liquid, deployed, pending) -> None:
    with pytest.raises(OracleUnavailable):
        BackingReport(liquid, deployed, pending)


# ═══════════════════════════════════════════════════════════════════════════════
# SIMULATED RESERVE
# ═══════════════════════════════════════════════════════════════════════════════

def test_simulated_reserve_bookkeeping() -> None:
    reserve = SimulatedReserve(liquid=1_000)
    reserve.record_deposit(500)
    assert reserve.get_total_backing() == 1_000
    reserve.settle_deposit(500)
    assert reserve.get_total_backing() == 1_500

    reserve.deploy(1_000)
    reserve.accrue(100)
    reserve.realize_loss(40)
    assert (reserve.liquid, reserve.deployed, reserve.pending) == (500, 1_060, 0)
    assert reserve.get_total_backing() == 1_560

    with pytest.raises(InsufficientBalance):
        reserve.withdraw(501)
    reserve.withdraw(500)
    assert reserve.liquid == 0


def test_simulated_reserve_failure_flag() -> None:
    reserve = SimulatedReserve(liquid=10)
    reserve.fail = True
    with pytest.raises(OracleUnavailable):
        reserve.get_total_backing()


# ═══════════════════════════════════════════════════════════════════════════════
# RPC SOURCE
# ═══════════════════════════════════════════════════════════════════════════════

def test_rpc_oracle_reads_reserve_state(monkeypatch) -> None:
    calls = _patch_post(monkeypatch, FakeResponse({
        "result": {"liquid": 600, "deployed": "400", "pending": 100}, "error": None, "id": 1,
    }))
    oracle = RPCReserveOracle(RPCClient("node", 27170, "user", "pw"))
    assert oracle.get_total_backing() == 900
    assert calls[0]["url"] == "http://node:27170"
    assert calls[0]["json"]["method"] == "getreservestate"
    assert calls[0]["auth"] == ("user", "pw")


@pytest.mark.parametrize("response", [
    requests.exceptions.ConnectionError("refused"),
    FakeResponse({}, status=500),
    FakeResponse(ValueError("not json")),
    FakeResponse({"result": None, "error": {"code": -32601, "message": "Method not found"}}),
    FakeResponse({"result": "busy", "error": None}),
    FakeResponse({"result": {"liquid": 1}, "error": None}),
    FakeResponse({"result": {"liquid": 1, "deployed": 0, "pending": 5}, "error": None}),
])
def test_rpc_oracle_failures_are_unavailable(monkeypatch, response) -> None:
    _patch_post(monkeypatch, response)
    oracle = RPCReserveOracle(RPCClient())
    with pytest.raises(OracleUnavailable):
        oracle.get_total_backing()


def test_rpc_client_error_codes(monkeypatch) -> None:
    _patch_post(monkeypatch, requests.exceptions.Timeout("slow"))
    with pytest.raises(RPCError) as exc:
        RPCClient().getblockcount()
    assert exc.value.code == -1
    assert RPCClient().test_connection() is False

    _patch_post(monkeypatch, FakeResponse({"result": 1234, "error": None}))
    assert RPCClient().getblockcount() == 1234
    assert RPCClient().test_connection() is True


def test_ledger_rebases_through_rpc_oracle(monkeypatch) -> None:
    _patch_post(monkeypatch, FakeResponse({
        "result": {"liquid": 1_100_000, "deployed": 0, "pending": 0}, "error": None,
    }))
    ledger = RebasingLedger(RPCReserveOracle(RPCClient()))
    assert ledger.rebase() == 1_100_000


# ═══════════════════════════════════════════════════════════════════════════════
# WEB3 SOURCE
# ═══════════════════════════════════════════════════════════════════════════════

def test_web3_oracle_reads_vault_views() -> None:
    oracle = Web3ReserveOracle(contract=FakeContract(liquid=300, deployed=900, pending=200))
    report = oracle.fetch_report()
    assert report == BackingReport(300, 900, 200)
    assert oracle.get_total_backing() == 1_000


def test_web3_oracle_call_failure() -> None:
    oracle = Web3ReserveOracle(contract=FakeContract(liquid=ConnectionError("rpc down")))
    with pytest.raises(OracleUnavailable, match="vault query failed"):
        oracle.get_total_backing()


# ═══════════════════════════════════════════════════════════════════════════════
# FACTORY
# ═══════════════════════════════════════════════════════════════════════════════

def test_build_oracle_sources() -> None:
    static = build_oracle(Config.from_dict({"oracle": {"liquid": 50, "deployed": 25}}))
    assert isinstance(static, SimulatedReserve)
    assert static.get_total_backing() == 75

    rpc = build_oracle(Config.from_dict({
        "oracle": {"source": "rpc", "rpc": {"host": "10.0.0.2", "port": 1234}},
    }))
    assert isinstance(rpc, RPCReserveOracle)
    assert rpc.rpc.url == "http://10.0.0.2:1234"

    web3 = build_oracle(Config.from_dict({
        "oracle": {"source": "web3", "web3": {"rpc_url": "http://127.0.0.1:8545",
                                              "vault_address": "0x" + "ab" * 20}},
    }))
    assert isinstance(web3, Web3ReserveOracle)

    with pytest.raises(ValueError):
        build_oracle(Config.from_dict({"oracle": {"source": "carrier-pigeon"}}))


# ═══════════════════════════════════════════════════════════════════════════════
# LEDGER GLUE
# ═══════════════════════════════════════════════════════════════════════════════

def test_deposit_is_pending_until_minted(reserve, ledger) -> None:
    deposit_and_mint(ledger, reserve, "alice", 1_000)
    reserve.accrue(100)
    # second deposit prices against 1,100 of backing, not 1,600
    shares = deposit_and_mint(ledger, reserve, "bob", 500)
    assert shares == 454
    assert reserve.pending == 0
    assert ledger.rebase() == 1_600


def test_deposit_rolls_back_holdings_on_oracle_failure(reserve, ledger) -> None:
    deposit_and_mint(ledger, reserve, "alice", 1_000)
    reserve.fail = True
    with pytest.raises(OracleUnavailable):
        deposit_and_mint(ledger, reserve, "bob", 500)
    reserve.fail = False
    assert (reserve.liquid, reserve.deployed, reserve.pending) == (1_000, 0, 0)
    assert ledger.shares_of("bob") == 0


def test_withdraw_rolls_back_burn_when_backing_is_deployed(reserve, ledger) -> None:
    deposit_and_mint(ledger, reserve, "alice", 1_000)
    reserve.deploy(800)
    with pytest.raises(InsufficientBalance):
        burn_and_withdraw(ledger, reserve, "alice", 500)
    assert ledger.balance_of("alice") == 1_000
    assert ledger.total_supply() == 1_000
    burn_and_withdraw(ledger, reserve, "alice", 200)
    assert ledger.balance_of("alice") == 800
    assert reserve.get_total_backing() == 800
