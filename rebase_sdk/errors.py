"""
Rebase SDK - Errors

Typed failures for ledger and pool operations. Every error aborts the
enclosing operation; the atomic boundary restores the pre-state before the
error reaches the caller.
"""


class LedgerError(Exception):
    """Base class for ledger/pool failures."""

    code = "LedgerError"

    def __init__(self, message: str = ""):
        self.message = message or self.code
        super().__init__(f"{self.code}: {self.message}")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON responses."""
        return {"error": self.code, "message": self.message}


class InsufficientBalance(LedgerError):
    """Requested shares/amount exceeds the holder's balance."""
    code = "InsufficientBalance"


class ZeroAmount(LedgerError):
    """Degenerate no-op input (zero amount, or an amount worth zero shares)."""
    code = "ZeroAmount"


class SlippageExceeded(LedgerError):
    """Output or LP issuance below the caller's floor."""
    code = "SlippageExceeded"


class OracleUnavailable(LedgerError):
    """Reserve oracle call failed or returned an invalid value."""
    code = "OracleUnavailable"


class Overflow(LedgerError):
    """Arithmetic outside the unsigned 256-bit range."""
    code = "Overflow"


class PoolDrained(LedgerError):
    """Computed output would consume a whole reserve, or a reserve is empty."""
    code = "PoolDrained"


class SelfTransferNotMeaningful(LedgerError):
    """Transfer where sender and recipient are the same account."""
    code = "SelfTransferNotMeaningful"


class InvariantViolation(LedgerError):
    """Post-operation invariant check failed."""
    code = "InvariantViolation"
