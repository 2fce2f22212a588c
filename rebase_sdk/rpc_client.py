"""
Rebase SDK - RPC Client

JSON-RPC client for the reserve node, the process that tracks the vault's
liquid and deployed holdings.
"""

import logging
from typing import Any, Optional

import requests

log = logging.getLogger(__name__)


class RPCError(Exception):
    """Reserve node call failed (transport, HTTP or JSON-RPC level)."""

    # Local codes; anything else comes from the node's error object
    TRANSPORT = -1
    BAD_RESPONSE = -2

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"RPC Error {code}: {message}")


class RPCClient:
    """
    Reserve node JSON-RPC client.

    Usage:
        rpc = RPCClient("localhost", 27170, "user", "pass")
        state = rpc.getreservestate()
        # {"liquid": ..., "deployed": ..., "pending": ...}
    """

    def __init__(self, host: str = "localhost", port: int = 27170,
                 user: str = "", password: str = "", timeout: int = 30):
        self.url = f"http://{host}:{port}"
        self.auth = (user, password) if user else None
        self.timeout = timeout
        self._request_id = 0

    def _call(self, method: str, *params) -> Any:
        self._request_id += 1
        body = {"jsonrpc": "2.0", "id": self._request_id,
                "method": method, "params": list(params)}
        log.debug(f"RPC {method} #{self._request_id}")

        try:
            resp = requests.post(self.url, json=body, auth=self.auth, timeout=self.timeout)
            resp.raise_for_status()
            reply = resp.json()
        except requests.exceptions.RequestException as e:
            raise RPCError(RPCError.TRANSPORT, f"{method}: {e}") from e
        except ValueError as e:
            raise RPCError(RPCError.BAD_RESPONSE, f"{method}: non-JSON reply ({e})") from e

        if not isinstance(reply, dict):
            raise RPCError(RPCError.BAD_RESPONSE, f"{method}: unexpected reply {reply!r}")
        error: Optional[dict] = reply.get("error")
        if error:
            raise RPCError(error.get("code", RPCError.TRANSPORT), error.get("message", method))
        return reply.get("result")

    # ═══════════════════════════════════════════════════════════════════════
    # NODE METHODS
    # ═══════════════════════════════════════════════════════════════════════

    def getreservestate(self) -> dict:
        """Vault holdings: liquid, deployed and pending (received, not yet credited)."""
        return self._call("getreservestate")

    def getblockcount(self) -> int:
        return self._call("getblockcount")

    def test_connection(self) -> bool:
        """True if the node answers getblockcount."""
        try:
            self.getblockcount()
        except RPCError as e:
            log.warning(f"Reserve node {self.url} unreachable: {e}")
            return False
        return True
