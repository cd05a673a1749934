"""
Error Taxonomy Module

Failures inside the ledger are values: a LedgerError carried by a Failed
transaction. Exceptions are reserved for contract violations (misconfigured
accounts, unknown account kinds) and for carrying a pre-check failure to the
boundary of a client operation.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Kinds of ledger failures"""
    TRANSACTION_ERROR = "transaction_error"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    SYSTEM_ERROR = "system_error"
    ACCESS_DENIED = "access_denied"
    PAYMENT_ERROR = "payment_error"

    @property
    def prefix(self) -> str:
        """Display prefix used when rendering the error"""
        return _PREFIXES[self]


_PREFIXES = {
    ErrorKind.TRANSACTION_ERROR: "TRANSACTION ERROR",
    ErrorKind.INSUFFICIENT_FUNDS: "ACCOUNT ERROR",
    ErrorKind.SYSTEM_ERROR: "SYSTEM ERROR",
    ErrorKind.ACCESS_DENIED: "ACCESS ERROR",
    ErrorKind.PAYMENT_ERROR: "PAYMENT ERROR",
}


@dataclass(frozen=True)
class LedgerError:
    """A failure kind with a human-readable message"""
    kind: ErrorKind
    message: str

    def describe(self) -> str:
        return f"{self.kind.prefix}: {self.message}"

    @classmethod
    def transaction_error(cls, message: str) -> 'LedgerError':
        return cls(ErrorKind.TRANSACTION_ERROR, message)

    @classmethod
    def insufficient_funds(cls, message: str) -> 'LedgerError':
        return cls(ErrorKind.INSUFFICIENT_FUNDS, message)

    @classmethod
    def system_error(cls, message: str) -> 'LedgerError':
        return cls(ErrorKind.SYSTEM_ERROR, message)

    @classmethod
    def access_denied(cls, message: str) -> 'LedgerError':
        return cls(ErrorKind.ACCESS_DENIED, message)

    @classmethod
    def payment_error(cls, message: str) -> 'LedgerError':
        return cls(ErrorKind.PAYMENT_ERROR, message)


class KeyLedgerError(Exception):
    """Base exception for all keyledger errors"""


class ConfigurationError(KeyLedgerError):
    """Raised when an account or the ledger is configured inconsistently"""


class AccountNotFoundError(KeyLedgerError):
    """Raised when a referenced account does not exist"""


class OperationRejected(KeyLedgerError):
    """Raised by a client pre-check; converted to a Failed entry at the operation boundary"""

    def __init__(self, error: LedgerError):
        super().__init__(error.describe())
        self.error = error
