"""
Account Module

Savings, checking and billing accounts. An account owns its balance, its
registered access keys and its capability flags, and applies one transaction
at a time through ``transact``. Every validation failure comes back as a
Failed transaction; nothing raises past the account boundary.
"""

from abc import ABC
from dataclasses import replace
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set

from .errors import ConfigurationError, LedgerError
from .logging_config import get_logger
from .permissions import AccessKey, CapabilityLevel, key_authorizes
from .transactions import (
    Transaction, Deposit, Withdraw, Purchase, Interest, Bill, Failed, Partial, to_decimal
)


logger = get_logger("keyledger.accounts")


class AccountKind(Enum):
    """Account product kinds"""
    SAVINGS = "Savings"
    CHECKING = "Checking"
    BILLING = "Billing"


class AccountFlag(Enum):
    """Capability toggles; some carry a numeric parameter"""
    WITHDRAW_LIMIT = "withdraw limit"
    OVERDRAFT_FEE = "overdraft fee"
    CAN_PURCHASE = "can purchase"
    BILLABLE = "billable"

    @property
    def needs_limit(self) -> bool:
        return self in (AccountFlag.WITHDRAW_LIMIT, AccountFlag.OVERDRAFT_FEE)


BAD_KEY = LedgerError.access_denied("Invalid Access Key")
INVALID_TRANSACTION = LedgerError.system_error("Invalid Transaction")


class Account(ABC):
    """
    Base account: balance, owners, access keys and flags

    Flags are split in two: ``flags`` is the set of enabled capabilities and
    ``limits`` maps the flags that take a parameter to their value. A flag
    that needs a parameter but has none is rejected on construction.
    """

    kind: AccountKind

    def __init__(
        self,
        account_number: str,
        root_key: AccessKey,
        interest_rate: Decimal,
        balance: Decimal = Decimal('0'),
        flags: Optional[Set[AccountFlag]] = None,
        limits: Optional[Dict[AccountFlag, Decimal]] = None
    ):
        if root_key is None:
            raise ConfigurationError(f"Account {account_number} requires an initial access key")

        self.account_number = account_number
        self.interest_rate = to_decimal(interest_rate)
        self.balance = to_decimal(balance)
        self.owners: List[str] = []
        self.access_keys: Dict[str, AccessKey] = {root_key.secret: root_key}
        self.flags: Set[AccountFlag] = set(flags or ())
        self.limits: Dict[AccountFlag, Decimal] = {
            flag: to_decimal(value) for flag, value in (limits or {}).items()
        }
        self._validate_flags()

    def _validate_flags(self) -> None:
        for flag in self.flags:
            if flag.needs_limit and flag not in self.limits:
                raise ConfigurationError(
                    f"Account {self.account_number} is flagged for a {flag.value}, but no value was provided"
                )
        for flag in self.limits:
            if flag not in self.flags:
                raise ConfigurationError(
                    f"Account {self.account_number} has a {flag.value} value without the flag"
                )

    @property
    def account_type(self) -> str:
        """Display name of the account kind"""
        return self.kind.value

    @property
    def primary_owner(self) -> str:
        return self.owners[0] if self.owners else ""

    @property
    def withdraw_limit(self) -> Optional[Decimal]:
        return self.limits.get(AccountFlag.WITHDRAW_LIMIT)

    @property
    def overdraft_fee(self) -> Optional[Decimal]:
        return self.limits.get(AccountFlag.OVERDRAFT_FEE)

    def has_flag(self, flag: AccountFlag) -> bool:
        """Flag presence gates the capability"""
        return flag in self.flags

    def register_key(self, key: AccessKey) -> None:
        """Register a key on this account, replacing any key with the same secret"""
        self.access_keys[key.secret] = key

    def verify(self, key: Optional[AccessKey], target_account_number: str,
               required: CapabilityLevel) -> bool:
        """Check that ``key`` grants ``required`` on this account"""
        return key_authorizes(key, self, target_account_number, required)

    def transact(self, transaction: Transaction) -> Transaction:
        """
        Validate and apply one transaction against this account

        Args:
            transaction: Request variant (Deposit, Withdraw, Interest, Purchase or Bill)

        Returns:
            The processed transaction, a Partial for a clamped withdrawal,
            or Failed carrying the reason
        """
        if isinstance(transaction, Deposit):
            result = self._deposit(transaction)
        elif isinstance(transaction, Withdraw):
            result = self._withdraw(transaction)
        elif isinstance(transaction, Interest):
            result = self.interest_calc()
        elif isinstance(transaction, Purchase):
            result = self._purchase(transaction)
        elif isinstance(transaction, Bill):
            result = self._bill(transaction)
        else:
            result = Failed(INVALID_TRANSACTION)

        logger.debug(
            "Account %s processed %s -> %s",
            self.account_number, type(transaction).__name__, type(result).__name__
        )
        return result

    def interest_calc(self) -> Interest:
        """Accrue one period of interest onto the balance"""
        interest = self.balance * self.interest_rate
        self.balance += interest
        return Interest(self.account_type, self.primary_owner, self.account_number, interest)

    def _deposit(self, request: Deposit) -> Transaction:
        if not self.verify(request.access_key, request.account, CapabilityLevel.DEPOSIT):
            return Failed(BAD_KEY)

        self.balance += request.amount
        return replace(request, final_balance=self.balance, access_key=None)

    def _withdraw(self, request: Withdraw) -> Transaction:
        if not self.verify(request.access_key, request.account, CapabilityLevel.WITHDRAW):
            return Failed(BAD_KEY)

        amount = request.amount
        if self.has_flag(AccountFlag.WITHDRAW_LIMIT):
            limit = self.withdraw_limit
            if limit is None:
                return Failed(LedgerError.system_error(
                    f"Account {self.account_number} is flagged for a withdrawal limit, but no limit was provided."
                ))
            if amount > limit:
                amount = limit

        if self.balance < amount:
            return Failed(LedgerError.insufficient_funds(
                f"Insufficient balance in account {request.account}. "
                f"Available: {self.balance}, Required: {amount}"
            ))

        self.balance -= amount

        if amount < request.amount:
            return Partial(
                request.client, amount, request.amount - amount,
                request.account, self.account_type, final_balance=self.balance
            )
        return replace(request, final_balance=self.balance, access_key=None)

    def _purchase(self, request: Purchase) -> Transaction:
        if not self.has_flag(AccountFlag.CAN_PURCHASE):
            return Failed(LedgerError.payment_error("Cannot make purchases with this account"))

        # Payer leg
        if self.verify(request.access_key, request.from_account, CapabilityLevel.WITHDRAW):
            limit = self.withdraw_limit
            if limit is not None and request.amount > limit:
                return Failed(LedgerError.insufficient_funds(
                    f"Cannot make a purchase for more than {limit}"
                ))
            if self.balance < request.amount:
                return Failed(LedgerError.insufficient_funds(
                    f"Insufficient balance in account {request.from_account}. "
                    f"Available: {self.balance}, Required: {request.amount}"
                ))
            self.balance -= request.amount
            return request

        # Seller leg
        payee_key = request.payee_key or request.access_key
        if self.verify(payee_key, request.to_account, CapabilityLevel.DEPOSIT):
            self.balance += request.amount
            return request

        return Failed(BAD_KEY)

    def _bill(self, request: Bill) -> Transaction:
        if not self.has_flag(AccountFlag.BILLABLE):
            return Failed(LedgerError.payment_error("Cannot pay bills with this account"))

        # Payer leg; bills are paid even past a zero balance
        if self.verify(request.access_key, request.payer_account, CapabilityLevel.WITHDRAW):
            self.balance -= request.amount
            return request

        # Receiver leg
        payee_key = request.payee_key or request.access_key
        if request.receiver_account and self.verify(payee_key, request.receiver_account, CapabilityLevel.DEPOSIT):
            self.balance += request.amount
            return request

        return Failed(BAD_KEY)

    def __repr__(self):
        return f"{type(self).__name__}(account_number={self.account_number!r}, balance={self.balance})"


class SavingsAccount(Account):
    """Savings account; withdrawals are capped by a mandatory limit"""

    kind = AccountKind.SAVINGS

    def __init__(self, account_number: str, root_key: AccessKey, interest_rate: Decimal,
                 withdraw_limit: Decimal, balance: Decimal = Decimal('0')):
        if withdraw_limit is None:
            raise ConfigurationError(f"Savings account {account_number} requires a withdraw limit")
        super().__init__(
            account_number, root_key, interest_rate, balance,
            flags={AccountFlag.WITHDRAW_LIMIT},
            limits={AccountFlag.WITHDRAW_LIMIT: withdraw_limit}
        )


class CheckingAccount(Account):
    """Checking account; can purchase and pay bills, optional limit and overdraft fee"""

    kind = AccountKind.CHECKING

    def __init__(self, account_number: str, root_key: AccessKey, interest_rate: Decimal,
                 withdraw_limit: Optional[Decimal] = None, overdraft_fee: Optional[Decimal] = None,
                 balance: Decimal = Decimal('0')):
        flags = {AccountFlag.CAN_PURCHASE, AccountFlag.BILLABLE}
        limits = {}
        if withdraw_limit is not None:
            flags.add(AccountFlag.WITHDRAW_LIMIT)
            limits[AccountFlag.WITHDRAW_LIMIT] = withdraw_limit
        if overdraft_fee is not None:
            flags.add(AccountFlag.OVERDRAFT_FEE)
            limits[AccountFlag.OVERDRAFT_FEE] = overdraft_fee
        super().__init__(account_number, root_key, interest_rate, balance, flags=flags, limits=limits)


class BillingAccount(Account):
    """Billing account; pays and receives bills only"""

    kind = AccountKind.BILLING

    def __init__(self, account_number: str, root_key: AccessKey, interest_rate: Decimal,
                 balance: Decimal = Decimal('0')):
        super().__init__(
            account_number, root_key, interest_rate, balance,
            flags={AccountFlag.BILLABLE}
        )


ACCOUNT_CLASSES = {
    AccountKind.SAVINGS: SavingsAccount,
    AccountKind.CHECKING: CheckingAccount,
    AccountKind.BILLING: BillingAccount,
}
