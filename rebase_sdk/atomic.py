"""
Rebase SDK - Atomic Operation Boundary

Every externally triggered operation runs as one unit: either all of its
state changes commit, or none do. Participating resources implement
snapshot() / restore(snapshot); atomic() snapshots them on entry and
restores all of them if anything inside raises.

Usage:
    with atomic(ledger, token_a, pool):
        ...  # any exception rolls all three back

    result = execute(pool.swap_a_to_b, "alice", 1_000, 900)
    if not result.ok:
        print(result.error.code)
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from .errors import LedgerError
from .ledger_types import TxResult

log = logging.getLogger(__name__)


@contextmanager
def atomic(*resources) -> Iterator[None]:
    """Roll back every resource if the block raises."""
    snapshots = [(resource, resource.snapshot()) for resource in resources]
    try:
        yield
    except BaseException:
        for resource, snap in reversed(snapshots):
            resource.restore(snap)
        raise


def execute(fn: Callable[..., Any], *args, **kwargs) -> TxResult:
    """
    Run one operation and return a Result instead of raising.

    LedgerError becomes TxResult(ok=False); the operation's own atomic
    block has already restored state by the time it gets here. Anything
    else (programming errors) propagates.
    """
    try:
        value = fn(*args, **kwargs)
    except LedgerError as e:
        log.warning(f"{getattr(fn, '__name__', fn)} rejected: {e}")
        return TxResult(ok=False, error=e)
    return TxResult(ok=True, value=value)
