"""
Transaction Module

Every ledger operation and its outcome is a Transaction value. One frozen
dataclass per variant, each owning only the fields it needs. The same value
is the request handed to an account and, once processed, the result: an
account returns either an enriched copy (final balance, accrued interest) or a
different variant (Failed, Partial). Values are never mutated in place.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .errors import LedgerError, ErrorKind
from .permissions import AccessKey, CapabilityLevel


SECTION_RULE = "#" * 50


def format_amount(amount: Optional[Decimal]) -> str:
    """Render an amount for the history log"""
    if amount is None:
        return "0"
    return str(amount)


def to_decimal(value) -> Decimal:
    """Coerce a numeric input to Decimal without float artifacts"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


class Transaction:
    """Base class of all transaction variants"""

    #: True for variants that only structure the rendered log
    is_marker = False

    def describe(self) -> str:
        """Human-readable description for the history log"""
        raise NotImplementedError

    @property
    def succeeded(self) -> bool:
        return not isinstance(self, Failed)

    def __str__(self):
        return self.describe()


@dataclass(frozen=True)
class Deposit(Transaction):
    """Credit to a single account"""
    client: str
    amount: Decimal
    account: str
    final_balance: Optional[Decimal] = None
    access_key: Optional[AccessKey] = None

    def describe(self) -> str:
        msg = f"Value of ${format_amount(self.amount)} deposited into account: {self.account} by {self.client}."
        if self.final_balance is not None:
            msg += f" - New balance: {format_amount(self.final_balance)}"
        return msg


@dataclass(frozen=True)
class Withdraw(Transaction):
    """Debit from a single account"""
    client: str
    amount: Decimal
    account: str
    final_balance: Optional[Decimal] = None
    access_key: Optional[AccessKey] = None

    def describe(self) -> str:
        msg = f"Value of ${format_amount(self.amount)} withdrawn from account: {self.account} by {self.client}."
        if self.final_balance is not None:
            msg += f" - New balance: {format_amount(self.final_balance)}"
        return msg


@dataclass(frozen=True)
class Purchase(Transaction):
    """
    Payment from a payer account to a seller account.

    The same value is submitted to both accounts: the payer account debits
    when ``access_key`` authorizes a withdrawal on ``from_account``, the
    seller account credits when ``payee_key`` (or ``access_key`` when no
    payee key is attached) authorizes a deposit on ``to_account``.
    """
    client: str
    amount: Decimal
    access_key: AccessKey
    from_account: str
    from_type: str
    to_account: str
    to_client: str
    payee_key: Optional[AccessKey] = None

    def describe(self) -> str:
        return (f"{self.client} made a purchase of ${format_amount(self.amount)} from {self.to_client} "
                f"using {self.from_type} account: {self.from_account}")


@dataclass(frozen=True)
class Interest(Transaction):
    """Interest accrual on one account; ``amount`` is filled in by the account"""
    account_type: str
    client: str
    account: str
    amount: Optional[Decimal] = None

    def describe(self) -> str:
        return (f"Interest accrued on {self.account_type} account: {self.account} "
                f"owned by {self.client} at value of ${format_amount(self.amount)}")


@dataclass(frozen=True)
class Bill(Transaction):
    """Bill paid from a payer account to a receiver account, shared by both legs"""
    client: str
    amount: Decimal
    access_key: AccessKey
    payer_account: str
    payer_type: str
    payer: str
    receiver: str
    reason: str
    receiver_account: str = ""
    payee_key: Optional[AccessKey] = None

    def describe(self) -> str:
        return (f"Bill of ${format_amount(self.amount)} paid to {self.receiver} by {self.payer} "
                f"for {self.reason} using {self.payer_type} account: {self.payer_account}")


@dataclass(frozen=True)
class CreateAccount(Transaction):
    account: str
    account_type: str
    owner: str
    initial_balance: Decimal

    def describe(self) -> str:
        return (f"Account {self.account} of type {self.account_type} created for {self.owner} "
                f"with initial balance of ${format_amount(self.initial_balance)}")


@dataclass(frozen=True)
class AddToAccount(Transaction):
    account: str
    account_type: str
    client: str
    level: CapabilityLevel

    def describe(self) -> str:
        return (f"{self.client} added to {self.account_type} account: {self.account} "
                f"as {self.level.role_label()}")


@dataclass(frozen=True)
class InitAccount(Transaction):
    account: str
    account_type: str
    owner: str
    level: CapabilityLevel

    def describe(self) -> str:
        return (f"{self.owner} added to {self.account_type} account: {self.account} "
                f"as {self.level.role_label(primary=True)}")


@dataclass(frozen=True)
class Transfer(Transaction):
    """Completed transfer; ``amount`` is what actually reached the destination"""
    amount: Decimal
    client: str
    from_account: str
    from_type: str
    to_account: str
    to_type: str

    def describe(self) -> str:
        return (f"{self.client} transferred ${format_amount(self.amount)} from {self.from_type} "
                f"account: {self.from_account} to {self.to_type} account: {self.to_account}")


@dataclass(frozen=True)
class Failed(Transaction):
    error: LedgerError

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    def describe(self) -> str:
        return self.error.describe()


@dataclass(frozen=True)
class Partial(Transaction):
    """Withdrawal clamped to the account's withdraw limit"""
    client: str
    amount: Decimal
    remainder: Decimal
    account: str
    account_type: str
    final_balance: Optional[Decimal] = None

    @property
    def requested(self) -> Decimal:
        return self.amount + self.remainder

    def describe(self) -> str:
        requested = format_amount(self.requested)
        msg = (f"{self.client} attempted to withdraw ${requested} from {self.account_type} "
               f"account: {self.account}, but only hit withdraw limit. \n"
               f" - ${format_amount(self.amount)} of ${requested} withdrawn.")
        if self.final_balance is not None:
            msg += f" - New balance: ${format_amount(self.final_balance)}"
        return msg


@dataclass(frozen=True)
class RequestBalance(Transaction):
    client: str
    account: str
    account_type: str
    balance: Decimal
    access_key: AccessKey

    def describe(self) -> str:
        return (f"{self.client} requested balance for {self.account_type} account: {self.account} "
                f"- Current balance: ${format_amount(self.balance)}")


@dataclass(frozen=True)
class Spacer(Transaction):
    is_marker = True

    def describe(self) -> str:
        return " "


@dataclass(frozen=True)
class Section(Transaction):
    header: str

    is_marker = True

    def describe(self) -> str:
        return f"\n{SECTION_RULE}\n{self.header}\n{SECTION_RULE}\n"
