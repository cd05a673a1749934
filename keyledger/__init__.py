"""
keyledger

An in-memory banking ledger with permissioned access keys, per-account
transaction processing and multi-account orchestration of transfers,
purchases and bills.
"""

__version__ = "1.0.0"

from .accounts import AccountKind, AccountFlag, Account, SavingsAccount, CheckingAccount, BillingAccount
from .bank import Bank
from .clients import Client
from .config import LedgerConfig, get_config
from .errors import ErrorKind, LedgerError, KeyLedgerError, ConfigurationError, AccountNotFoundError
from .history import TransactionHistory
from .permissions import AccessKey, CapabilityLevel
