#!/usr/bin/env python3
"""
Rebase SDK Server - REST API for the ledger and pool

Endpoints:
  GET  /health                  - Liveness
  GET  /api/status              - Ledger + pool summary
  GET  /api/balance/<account>   - Token, share and LP balances
  GET  /api/quote               - Swap quote (?amount_in=&direction=a_to_b|b_to_a)
  POST /api/rebase              - Refresh reserve from the oracle
  POST /api/mint                - Credit a deposit         {account, amount}
  POST /api/burn                - Burn / withdraw          {account, amount}
  POST /api/transfer            - Transfer                 {sender, recipient, amount, memo?}
  POST /api/swap                - Swap                     {account, amount_in, min_amount_out, direction}
  POST /api/liquidity/add       - Add liquidity            {account, amount_a, amount_b, min_lp_out}
  POST /api/liquidity/remove    - Remove liquidity         {account, lp_shares, min_a_out, min_b_out}

Mutations are serialized: one request holds the lock from admission to
commit, so requests commit in the order they were admitted.
"""

import argparse
import logging
import threading
import time

from flask import Flask, jsonify, request

from .atomic import execute
from .config import load_config
from .errors import (
    InvariantViolation,
    OracleUnavailable,
    PoolDrained,
    SlippageExceeded,
)
from .ledger_types import SwapDirection, TxResult
from .state_store import StateStore
from .system import RebaseSystem

log = logging.getLogger(__name__)

ERROR_STATUS = {
    SlippageExceeded.code: 409,
    PoolDrained.code: 409,
    OracleUnavailable.code: 503,
    InvariantViolation.code: 500,
}


class BadRequest(Exception):
    pass


def _int_field(data: dict, name: str, default=None) -> int:
    value = data.get(name, default)
    if value is None:
        raise BadRequest(f"Missing field: {name}")
    if isinstance(value, bool):
        raise BadRequest(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be an integer")


def _str_field(data: dict, name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value:
        raise BadRequest(f"Missing field: {name}")
    return value


def _direction(value) -> SwapDirection:
    try:
        return SwapDirection(str(value).lower())
    except ValueError:
        raise BadRequest(f"direction must be a_to_b or b_to_a, got {value!r}")


def create_app(system: RebaseSystem) -> Flask:
    """Build the Flask app around one RebaseSystem."""
    app = Flask(__name__)
    lock = threading.Lock()

    def respond(result: TxResult):
        if result.ok:
            return jsonify(result.to_dict())
        status = ERROR_STATUS.get(result.error.code, 400)
        return jsonify(result.to_dict()), status

    def mutate(fn, *args):
        with lock:
            result = execute(fn, *args)
            if result.ok:
                system.save()
        return respond(result)

    def body() -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise BadRequest("No JSON body provided")
        return data

    @app.errorhandler(BadRequest)
    def bad_request(e):
        return jsonify({"ok": False, "error": "BadRequest", "message": str(e)}), 400

    @app.route('/health')
    def health():
        return jsonify({'ok': True, 'timestamp': int(time.time())})

    @app.route('/api/status')
    def api_status():
        with lock:
            return jsonify(system.status())

    @app.route('/api/balance/<account>')
    def api_balance(account):
        ledger = system.ledger
        with lock:
            return jsonify({
                'account': account,
                'balance': ledger.balance_of(account),
                'shares': ledger.shares_of(account),
                'plain_balance': system.plain_asset.get_balance(account),
                'lp_shares': system.pool.lp_balance_of(account),
            })

    @app.route('/api/quote')
    def api_quote():
        amount_in = _int_field(request.args, 'amount_in')
        direction = _direction(request.args.get('direction', 'a_to_b'))
        with lock:
            result = execute(system.pool.quote_swap, amount_in, direction)
        if result.ok:
            result.value = {'amount_out': result.value, 'direction': direction.value}
        return respond(result)

    @app.route('/api/rebase', methods=['POST'])
    def api_rebase():
        return mutate(system.ledger.rebase)

    @app.route('/api/mint', methods=['POST'])
    def api_mint():
        data = body()
        return mutate(system.deposit, _str_field(data, 'account'), _int_field(data, 'amount'))

    @app.route('/api/burn', methods=['POST'])
    def api_burn():
        data = body()
        return mutate(system.withdraw, _str_field(data, 'account'), _int_field(data, 'amount'))

    @app.route('/api/transfer', methods=['POST'])
    def api_transfer():
        data = body()
        return mutate(
            system.ledger.transfer,
            _int_field(data, 'amount'),
            _str_field(data, 'sender'),
            _str_field(data, 'recipient'),
            data.get('memo'),
        )

    @app.route('/api/swap', methods=['POST'])
    def api_swap():
        data = body()
        return mutate(
            system.pool.swap,
            _str_field(data, 'account'),
            _int_field(data, 'amount_in'),
            _int_field(data, 'min_amount_out', 0),
            _direction(data.get('direction')),
        )

    @app.route('/api/liquidity/add', methods=['POST'])
    def api_add_liquidity():
        data = body()
        return mutate(
            system.pool.add_liquidity,
            _str_field(data, 'account'),
            _int_field(data, 'amount_a'),
            _int_field(data, 'amount_b'),
            _int_field(data, 'min_lp_out', 0),
        )

    @app.route('/api/liquidity/remove', methods=['POST'])
    def api_remove_liquidity():
        data = body()
        return mutate(
            system.pool.remove_liquidity,
            _str_field(data, 'account'),
            _int_field(data, 'lp_shares'),
            _int_field(data, 'min_a_out', 0),
            _int_field(data, 'min_b_out', 0),
        )

    return app


def main():
    parser = argparse.ArgumentParser(description="Rebase SDK REST server")
    parser.add_argument("--config", help="Path to config JSON")
    parser.add_argument("--port", type=int, help="HTTP port (overrides config)")
    args = parser.parse_args()

    config = load_config(args.config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s"
    )
    system = RebaseSystem.from_config(config, StateStore(config.state_file))
    app = create_app(system)
    port = args.port or config.http_port
    log.info(f"Rebase SDK server on port {port} (oracle: {type(system.oracle).__name__})")
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
