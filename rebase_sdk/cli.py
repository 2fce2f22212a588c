#!/usr/bin/env python3
"""
Rebase SDK CLI - Ledger and pool operations against a state file

Usage:
    rebase-sdk --config config.json status
    rebase-sdk mint --account alice --amount 1000000
    rebase-sdk transfer --sender alice --recipient bob --amount 10000
    rebase-sdk swap --account alice --amount-in 5000 --direction b_to_a --min-out 4900
    rebase-sdk add-liquidity --account lp --amount-a 100000 --amount-b 100000
    rebase-sdk serve --port 8080

Each command loads state, runs one operation, and saves state only if the
operation succeeded.
"""

import argparse
import json
import logging
import sys

from .atomic import execute
from .config import load_config
from .ledger_types import SwapDirection, TxResult
from .state_store import StateStore
from .system import RebaseSystem

log = logging.getLogger(__name__)


def _print(data) -> None:
    print(json.dumps(data, indent=2))


def _finish(system: RebaseSystem, result: TxResult) -> int:
    if not result.ok:
        print(f"Error: {result.error.code}: {result.error.message}", file=sys.stderr)
        return 1
    system.save()
    _print(result.to_dict())
    return 0


# ============ COMMANDS ============

def cmd_status(system, args):
    """Show ledger and pool summary."""
    status = system.status()
    if args.account:
        status["account"] = {
            "name": args.account,
            "balance": system.ledger.balance_of(args.account),
            "shares": system.ledger.shares_of(args.account),
            "plain_balance": system.plain_asset.get_balance(args.account),
            "lp_shares": system.pool.lp_balance_of(args.account),
        }
    _print(status)
    return 0


def cmd_rebase(system, args):
    return _finish(system, execute(system.ledger.rebase))


def cmd_mint(system, args):
    return _finish(system, execute(system.deposit, args.account, args.amount))


def cmd_burn(system, args):
    return _finish(system, execute(system.withdraw, args.account, args.amount))


def cmd_transfer(system, args):
    return _finish(system, execute(
        system.ledger.transfer, args.amount, args.sender, args.recipient, args.memo
    ))


def cmd_fund(system, args):
    """Credit plain asset units to an account (simulation funding)."""
    return _finish(system, execute(system.plain_asset.mint, args.account, args.amount))


def cmd_accrue(system, args):
    """Book strategy yield on simulated holdings."""
    if not system.simulated:
        print("Error: accrue only applies to the static (simulated) oracle", file=sys.stderr)
        return 1
    return _finish(system, execute(system.oracle.accrue, args.amount))


def cmd_quote(system, args):
    result = execute(system.pool.quote_swap, args.amount_in, SwapDirection(args.direction))
    if not result.ok:
        print(f"Error: {result.error.code}: {result.error.message}", file=sys.stderr)
        return 1
    _print({"amount_out": result.value, "direction": args.direction})
    return 0


def cmd_swap(system, args):
    return _finish(system, execute(
        system.pool.swap, args.account, args.amount_in, args.min_out,
        SwapDirection(args.direction)
    ))


def cmd_add_liquidity(system, args):
    return _finish(system, execute(
        system.pool.add_liquidity, args.account, args.amount_a, args.amount_b, args.min_lp_out
    ))


def cmd_remove_liquidity(system, args):
    return _finish(system, execute(
        system.pool.remove_liquidity, args.account, args.lp_shares, args.min_a_out, args.min_b_out
    ))


def cmd_serve(system, args):
    from .server import create_app

    port = args.port or system.config.http_port
    log.info(f"Serving on port {port}")
    create_app(system).run(host="0.0.0.0", port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rebasing ledger and AMM pool")
    parser.add_argument("--config", help="Path to config JSON")
    parser.add_argument("--state", help="State file (overrides config)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("status", help="Show ledger and pool state")
    p.add_argument("--account", help="Also show one account")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("rebase", help="Refresh reserve from the oracle")
    p.set_defaults(func=cmd_rebase)

    for name, func, text in (("mint", cmd_mint, "Credit a deposit"),
                             ("burn", cmd_burn, "Burn tokens"),
                             ("fund", cmd_fund, "Fund plain asset (simulation)")):
        p = sub.add_parser(name, help=text)
        p.add_argument("--account", required=True)
        p.add_argument("--amount", type=int, required=True)
        p.set_defaults(func=func)

    p = sub.add_parser("accrue", help="Book yield on simulated holdings")
    p.add_argument("--amount", type=int, required=True)
    p.set_defaults(func=cmd_accrue)

    p = sub.add_parser("transfer", help="Transfer rebasing tokens")
    p.add_argument("--sender", required=True)
    p.add_argument("--recipient", required=True)
    p.add_argument("--amount", type=int, required=True)
    p.add_argument("--memo")
    p.set_defaults(func=cmd_transfer)

    directions = [d.value for d in SwapDirection]

    p = sub.add_parser("quote", help="Quote a swap")
    p.add_argument("--amount-in", type=int, required=True)
    p.add_argument("--direction", choices=directions, default="a_to_b")
    p.set_defaults(func=cmd_quote)

    p = sub.add_parser("swap", help="Execute a swap")
    p.add_argument("--account", required=True)
    p.add_argument("--amount-in", type=int, required=True)
    p.add_argument("--min-out", type=int, default=0)
    p.add_argument("--direction", choices=directions, default="a_to_b")
    p.set_defaults(func=cmd_swap)

    p = sub.add_parser("add-liquidity", help="Deposit both assets")
    p.add_argument("--account", required=True)
    p.add_argument("--amount-a", type=int, required=True)
    p.add_argument("--amount-b", type=int, required=True)
    p.add_argument("--min-lp-out", type=int, default=0)
    p.set_defaults(func=cmd_add_liquidity)

    p = sub.add_parser("remove-liquidity", help="Burn LP shares")
    p.add_argument("--account", required=True)
    p.add_argument("--lp-shares", type=int, required=True)
    p.add_argument("--min-a-out", type=int, default=0)
    p.add_argument("--min-b-out", type=int, default=0)
    p.set_defaults(func=cmd_remove_liquidity)

    p = sub.add_parser("serve", help="Run the REST server")
    p.add_argument("--port", type=int)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    if args.state:
        config.state_file = args.state
    if args.log_level:
        config.log_level = args.log_level

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    system = RebaseSystem.from_config(config, StateStore(config.state_file))
    return args.func(system, args)


if __name__ == "__main__":
    sys.exit(main())
