"""
Bank Module

The bank is the registry: it owns every account and client, holds the root
capability used to bootstrap new accounts, mints the deposit-only payee key
that lets purchases and bills credit an account, and keeps the transaction
history.
"""

import secrets
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .accounts import Account, AccountKind, ACCOUNT_CLASSES
from .clients import Client
from .config import LedgerConfig, get_config
from .errors import AccountNotFoundError, ConfigurationError, KeyLedgerError
from .history import TransactionHistory
from .logging_config import get_logger, log_action
from .permissions import AccessKey, CapabilityLevel
from .transactions import Transaction, CreateAccount, Interest, to_decimal


class Bank:
    """
    Registry of accounts and clients

    The root key is injected, built from a configured secret, or generated at
    random. It is registered on every account at construction and only
    authorizes the initial owner of each account; clients cannot present it.
    """

    def __init__(self, root_key: Optional[AccessKey] = None, config: Optional[LedgerConfig] = None):
        self.config = config or get_config()
        if root_key is None:
            secret = self.config.root_key_secret or secrets.token_hex(16)
            root_key = AccessKey(secret, CapabilityLevel.ADMIN)
        self.root_key = root_key
        if self.root_key.level is not CapabilityLevel.ADMIN:
            raise ConfigurationError("The root key must be ADMIN level")

        self._accounts: Dict[str, Account] = {}
        self._clients: Dict[str, Client] = {}
        self._payee_keys: Dict[str, AccessKey] = {}
        self.history = TransactionHistory(self.config)
        self.logger = get_logger("keyledger.bank")

    # Lookups

    def get_account(self, account_number: str) -> Optional[Account]:
        return self._accounts.get(account_number)

    def require_account(self, account_number: str) -> Account:
        """Get an account or raise AccountNotFoundError"""
        account = self._accounts.get(account_number)
        if account is None:
            raise AccountNotFoundError(f"Account {account_number} not found")
        return account

    def get_client(self, name: str) -> Optional[Client]:
        return self._clients.get(name)

    def register_client(self, name: str) -> Client:
        """Get a client by name, creating it on first use"""
        client = self._clients.get(name)
        if client is None:
            client = Client(name, self)
            self._clients[name] = client
            log_action(self.logger, "info", f"Client registered: {name}",
                       client=name, action="register_client")
        return client

    @property
    def account_numbers(self) -> List[str]:
        return list(self._accounts)

    @property
    def clients(self) -> List[Client]:
        return list(self._clients.values())

    def payee_key(self, account_number: str) -> Optional[AccessKey]:
        """Deposit-only key used to credit an account in a purchase or bill"""
        return self._payee_keys.get(account_number)

    # Account creation

    def _random_digits(self, digits: int) -> str:
        return f"{secrets.randbelow(10 ** digits):0{digits}d}"

    def _generate_account_number(self) -> str:
        digits = self.config.account_number_digits
        for _ in range(self.config.max_generation_attempts):
            candidate = self._random_digits(digits)
            if candidate not in self._accounts:
                return candidate
        raise KeyLedgerError("Could not generate a free account number")

    def _generate_key_secret(self, account: Account) -> str:
        digits = self.config.access_key_digits
        for _ in range(self.config.max_generation_attempts):
            candidate = self._random_digits(digits)
            if candidate not in account.access_keys:
                return candidate
        raise KeyLedgerError(f"Could not generate an access key for account {account.account_number}")

    def create_account(
        self,
        kind: AccountKind,
        owner: str,
        balance=Decimal('0'),
        interest_rate=Decimal('0'),
        withdraw_limit=None,
        overdraft_fee=None
    ) -> str:
        """
        Create an account and hand its owner an ADMIN key

        Args:
            kind: Account kind
            owner: Name of the owning client (created if unknown)
            balance: Opening balance
            interest_rate: Interest rate applied per accrual
            withdraw_limit: Withdrawal cap (required for savings, optional for checking)
            overdraft_fee: Overdraft fee (checking only)

        Returns:
            The new account number
        """
        if not isinstance(kind, AccountKind):
            raise ConfigurationError(f"Unknown account kind: {kind!r}")

        params = {}
        if withdraw_limit is not None:
            if kind is AccountKind.BILLING:
                raise ConfigurationError("Billing accounts do not take a withdraw limit")
            params["withdraw_limit"] = to_decimal(withdraw_limit)
        if overdraft_fee is not None:
            if kind is not AccountKind.CHECKING:
                raise ConfigurationError("Only checking accounts take an overdraft fee")
            params["overdraft_fee"] = to_decimal(overdraft_fee)
        if kind is AccountKind.SAVINGS and "withdraw_limit" not in params:
            raise ConfigurationError("Savings accounts require a withdraw limit")

        client = self.register_client(owner)
        number = self._generate_account_number()
        account = ACCOUNT_CLASSES[kind](
            number, self.root_key, to_decimal(interest_rate),
            balance=to_decimal(balance), **params
        )
        self._accounts[number] = account

        payee_key = AccessKey(self._generate_key_secret(account), CapabilityLevel.DEPOSIT)
        account.register_key(payee_key)
        self._payee_keys[number] = payee_key

        log_action(
            self.logger, "info", f"Account created: {number}",
            client=owner, action="create_account", account=number,
            extra={
                "account_type": account.account_type,
                "balance": str(account.balance),
                "interest_rate": str(account.interest_rate),
                "flags": sorted(flag.value for flag in account.flags)
            }
        )
        self.log_transaction(CreateAccount(number, account.account_type, owner, account.balance))

        owner_key = AccessKey(self._generate_key_secret(account), CapabilityLevel.ADMIN)
        client.init_account(number, self.root_key, owner_key)
        return number

    def create_checking(self, owner: str, balance=Decimal('0'), interest_rate=Decimal('0'),
                        withdraw_limit=None, overdraft_fee=None) -> str:
        return self.create_account(AccountKind.CHECKING, owner, balance, interest_rate,
                                   withdraw_limit=withdraw_limit, overdraft_fee=overdraft_fee)

    def create_savings(self, owner: str, balance=Decimal('0'), interest_rate=Decimal('0'),
                       withdraw_limit=None) -> str:
        return self.create_account(AccountKind.SAVINGS, owner, balance, interest_rate,
                                   withdraw_limit=withdraw_limit)

    def create_billing(self, owner: str, balance=Decimal('0'), interest_rate=Decimal('0')) -> str:
        return self.create_account(AccountKind.BILLING, owner, balance, interest_rate)

    # Interest

    def apply_interest(self, account_numbers: Optional[Iterable[str]] = None) -> List[Transaction]:
        """
        Accrue one period of interest on each listed account (all accounts by default)

        Unknown account numbers are skipped.
        """
        numbers = self.account_numbers if account_numbers is None else list(account_numbers)
        results = []
        for number in numbers:
            account = self._accounts.get(number)
            if account is None:
                self.logger.warning("Interest skipped for unknown account %s", number)
                continue
            request = Interest(account.account_type, account.primary_owner, number)
            results.append(self.log_transaction(account.transact(request)))
        return results

    # History

    def log_transaction(self, transaction: Transaction) -> Transaction:
        return self.history.append(transaction)

    def add_spacer(self) -> None:
        self.history.add_spacer()

    def add_section(self, header: str) -> None:
        self.history.add_section(header)

    def render_log(self) -> str:
        return self.history.render()

    def print_log(self) -> None:
        print(self.render_log())
