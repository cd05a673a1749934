"""
Client Module

A client is one principal of the bank. It holds one access key per account it
was granted and composes single-account operations into deposits,
withdrawals, purchases, bills and transfers. Accounts are reached by number
through the bank; the client never holds account objects.

Every operation logs exactly one result to the bank history. Pre-check
failures raise OperationRejected internally and are turned into a Failed
entry at the operation boundary, so no failure escapes to the caller.

Purchases, bills and transfers are two independent ``transact`` calls that
share one request. They are not atomic: if the second leg fails, the first
leg is not rolled back.
"""

import secrets
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Tuple, TYPE_CHECKING

from .accounts import Account
from .errors import LedgerError, OperationRejected
from .logging_config import get_logger
from .permissions import AccessKey, CapabilityLevel
from .transactions import (
    Transaction, Deposit, Withdraw, Purchase, Bill, Transfer, Failed, Partial,
    InitAccount, AddToAccount, RequestBalance, to_decimal
)

if TYPE_CHECKING:
    from .bank import Bank


ADD_PERMISSION_ERROR = LedgerError.system_error("admin permissions required to add client to account")
KEY_IN_USE_ERROR = LedgerError.system_error("Add Account Failed: Key already registered on account")
BALANCE_ACCESS_ERROR = LedgerError.access_denied("Invalid permissions for accessing balance.")
PURCHASE_ACCESS_ERROR = LedgerError.access_denied("Invalid permissions for making purchases.")


class Client:
    """Per-principal orchestrator of ledger operations"""

    def __init__(self, name: str, bank: 'Bank'):
        self.name = name
        self.bank = bank
        self.client_key = AccessKey(name, CapabilityLevel.VIEW)
        self.account_keys: Dict[str, AccessKey] = {}
        self.logger = get_logger("keyledger.clients")

    @property
    def account_numbers(self):
        return list(self.account_keys)

    def key_for(self, account_number: str) -> Optional[AccessKey]:
        """Key this client holds for an account, if any"""
        return self.account_keys.get(account_number)

    # Key management

    def _generate_key(self, account: Account) -> str:
        digits = self.bank.config.access_key_digits
        for _ in range(self.bank.config.max_generation_attempts):
            candidate = f"{secrets.randbelow(10 ** digits):0{digits}d}"
            if not self._is_key_used(candidate, account):
                return candidate
        raise OperationRejected(LedgerError.system_error(
            f"Could not generate an access key for account {account.account_number}"
        ))

    def _is_key_used(self, secret: str, account: Account) -> bool:
        if secret in account.access_keys:
            return True
        return any(key.secret == secret for key in self.account_keys.values())

    def _check_admin(self, auth: AccessKey, account: Account, allow_root: bool = False) -> None:
        """
        The caller-supplied key must be ADMIN and registered on the account.
        The bank's root key is accepted only when initializing an account, and
        only as the bank's own key object; a copy built from its secret is refused.
        """
        if auth is None or auth.level is not CapabilityLevel.ADMIN:
            raise OperationRejected(ADD_PERMISSION_ERROR)
        if auth == self.bank.root_key and not (allow_root and auth is self.bank.root_key):
            raise OperationRejected(ADD_PERMISSION_ERROR)
        stored = account.access_keys.get(auth.secret)
        if stored is None or stored.level is not CapabilityLevel.ADMIN:
            raise OperationRejected(ADD_PERMISSION_ERROR)

    def _grant(self, account: Account, key: AccessKey) -> None:
        if key.secret in account.access_keys:
            raise OperationRejected(KEY_IN_USE_ERROR)
        account.register_key(key)
        if self.name not in account.owners:
            account.owners.append(self.name)
        self.account_keys[account.account_number] = key

    def _lookup_for_grant(self, account_number: str) -> Account:
        account = self.bank.get_account(account_number)
        if account is None:
            raise OperationRejected(LedgerError.system_error("Add Account Failed: Account not found"))
        return account

    def init_account(self, account_number: str, auth: AccessKey, owner_key: AccessKey) -> Transaction:
        """
        Become the primary owner of a newly created account

        Args:
            account_number: Account to initialize
            auth: Authorizing key; must be an ADMIN key registered on the account
            owner_key: Key handed to this client

        Returns:
            The logged InitAccount entry, or Failed
        """
        try:
            account = self._lookup_for_grant(account_number)
            self._check_admin(auth, account, allow_root=True)
            self._grant(account, owner_key)
            result = InitAccount(account.account_number, account.account_type, self.name, owner_key.level)
        except OperationRejected as e:
            result = Failed(e.error)
        return self.bank.log_transaction(result)

    def add_account(self, account_number: str, auth: AccessKey, level: CapabilityLevel) -> Transaction:
        """Join an account with a freshly minted key of the given level"""
        try:
            account = self._lookup_for_grant(account_number)
            self._check_admin(auth, account)
            key = AccessKey(self._generate_key(account), level)
        except OperationRejected as e:
            return self.bank.log_transaction(Failed(e.error))
        return self.add_account_key(account_number, auth, key)

    def add_account_key(self, account_number: str, auth: AccessKey, key: AccessKey) -> Transaction:
        """Join an account with a caller-provided key"""
        try:
            account = self._lookup_for_grant(account_number)
            self._check_admin(auth, account)
            self._grant(account, key)
            result = AddToAccount(account.account_number, account.account_type, self.name, key.level)
        except OperationRejected as e:
            result = Failed(e.error)
        return self.bank.log_transaction(result)

    # Pre-checks

    def _resolve(self, account_number: str) -> Tuple[AccessKey, Account]:
        key = self.account_keys.get(account_number)
        if key is None:
            raise OperationRejected(LedgerError.access_denied(f"No Key found for account {account_number}."))

        account = self.bank.get_account(account_number)
        if account is None:
            raise OperationRejected(LedgerError.system_error(f"Account {account_number} not found."))

        return key, account

    @staticmethod
    def _require_level(key: AccessKey, level: CapabilityLevel, error: LedgerError) -> None:
        if key.level is not level:
            raise OperationRejected(error)

    @staticmethod
    def _check_amount(amount) -> Decimal:
        try:
            amount = to_decimal(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise OperationRejected(LedgerError.transaction_error(f"Invalid amount: {amount!r}"))
        if not amount.is_finite():
            raise OperationRejected(LedgerError.transaction_error(f"Amount must be finite: {amount}"))
        if amount < 0:
            raise OperationRejected(LedgerError.transaction_error(f"Amount must not be negative: {amount}"))
        return amount

    def _lookup_counterparty(self, account_number: str) -> Account:
        account = self.bank.get_account(account_number)
        if account is None:
            raise OperationRejected(LedgerError.system_error(f"Account {account_number} not found."))
        return account

    # Operations

    def spend(self, amount, account_number: str, seller_account: str) -> Transaction:
        """
        Pay a seller from one of this client's accounts

        The payer leg runs first; the seller is credited only when the payer
        leg returned the purchase.

        Args:
            amount: Purchase price
            account_number: Paying account; the client's key must be WITHDRAW level
            seller_account: Account receiving the payment

        Returns:
            The logged result
        """
        try:
            amount = self._check_amount(amount)
            key, account = self._resolve(account_number)
            self._require_level(key, CapabilityLevel.WITHDRAW, PURCHASE_ACCESS_ERROR)
            seller = self._lookup_counterparty(seller_account)
            if seller is account:
                raise OperationRejected(LedgerError.transaction_error("Cannot purchase from the paying account"))

            purchase = Purchase(
                self.name, amount, key, account_number, account.account_type,
                seller_account, seller.primary_owner,
                payee_key=self.bank.payee_key(seller_account)
            )
            result = account.transact(purchase)
            if isinstance(result, Purchase):
                result = seller.transact(purchase)
            elif not isinstance(result, Failed):
                result = Failed(LedgerError.system_error("Purchase Failed: Unknown Error"))
        except OperationRejected as e:
            result = Failed(e.error)
        return self.bank.log_transaction(result)

    def bill(self, amount, account_number: str, receiver_account: str, reason: str) -> Transaction:
        """Pay a bill to a receiver account; mirrors ``spend`` with the Bill variant"""
        try:
            amount = self._check_amount(amount)
            key, account = self._resolve(account_number)
            self._require_level(key, CapabilityLevel.WITHDRAW, PURCHASE_ACCESS_ERROR)
            receiver = self._lookup_counterparty(receiver_account)
            if receiver is account:
                raise OperationRejected(LedgerError.transaction_error("Cannot bill the paying account"))

            bill = Bill(
                self.name, amount, key, account_number, account.account_type,
                self.name, receiver.primary_owner, reason,
                receiver_account=receiver_account,
                payee_key=self.bank.payee_key(receiver_account)
            )
            result = account.transact(bill)
            if isinstance(result, Bill):
                result = receiver.transact(bill)
            elif not isinstance(result, Failed):
                result = Failed(LedgerError.system_error("Bill Failed: Unknown Error"))
        except OperationRejected as e:
            result = Failed(e.error)
        return self.bank.log_transaction(result)

    def transfer(self, amount, from_account: str, to_account: str) -> Transaction:
        """
        Move funds between two accounts this client holds keys for

        The deposit leg is always issued: with the withdrawn amount on success,
        with the clamped amount on a partial withdrawal, and with zero when
        the withdrawal failed.

        Args:
            amount: Requested amount
            from_account: Source account; key must be WITHDRAW level
            to_account: Destination account; key must be DEPOSIT level

        Returns:
            The logged Transfer, or Failed
        """
        try:
            amount = self._check_amount(amount)
            from_key, source = self._resolve(from_account)
            to_key, destination = self._resolve(to_account)

            access_denied = LedgerError.access_denied(
                f"Invalid permissions to transfer from account: {from_account} to account: {to_account}."
            )
            self._require_level(from_key, CapabilityLevel.WITHDRAW, access_denied)
            self._require_level(to_key, CapabilityLevel.DEPOSIT, access_denied)

            withdrawn = source.transact(Withdraw(self.name, amount, from_account, access_key=from_key))

            if isinstance(withdrawn, (Partial, Withdraw)):
                moved = withdrawn.amount
                result = Transfer(
                    moved, self.name, from_account, source.account_type,
                    to_account, destination.account_type
                )
            else:
                moved = Decimal('0')
                if isinstance(withdrawn, Failed):
                    message = f"Transfer Failed: {withdrawn.describe()}"
                else:
                    message = "Transfer Failed: Unknown Error"
                result = Failed(LedgerError.transaction_error(message))

            deposited = destination.transact(Deposit(self.name, moved, to_account, access_key=to_key))
            if isinstance(deposited, Failed):
                self.logger.error(
                    "Deposit leg of transfer %s -> %s failed: %s",
                    from_account, to_account, deposited.describe()
                )
        except OperationRejected as e:
            result = Failed(e.error)
        return self.bank.log_transaction(result)

    def deposit(self, amount, account_number: str) -> Transaction:
        try:
            amount = self._check_amount(amount)
            key, account = self._resolve(account_number)
            self._require_level(key, CapabilityLevel.DEPOSIT,
                                LedgerError.access_denied("Invalid permissions for making deposits."))
            result = account.transact(Deposit(self.name, amount, account_number, access_key=key))
        except OperationRejected as e:
            result = Failed(e.error)
        return self.bank.log_transaction(result)

    def withdraw(self, amount, account_number: str) -> Transaction:
        try:
            amount = self._check_amount(amount)
            key, account = self._resolve(account_number)
            self._require_level(key, CapabilityLevel.WITHDRAW,
                                LedgerError.access_denied("Invalid permissions for making withdrawals."))
            result = account.transact(Withdraw(self.name, amount, account_number, access_key=key))
        except OperationRejected as e:
            result = Failed(e.error)
        return self.bank.log_transaction(result)

    def request_balance(self, account_number: Optional[str] = None) -> Transaction:
        """
        Log the balance of one account, or the total over every account
        this client holds a key for when no account is given
        """
        if account_number is None:
            total = Decimal('0')
            for number in self.account_keys:
                account = self.bank.get_account(number)
                if account is not None:
                    total += account.balance
            return self.bank.log_transaction(
                RequestBalance(self.name, "All Accounts", "", total, self.client_key)
            )

        account = self.bank.get_account(account_number)
        key = self.account_keys.get(account_number)
        if account is None or key is None:
            return self.bank.log_transaction(Failed(BALANCE_ACCESS_ERROR))

        return self.bank.log_transaction(
            RequestBalance(self.name, account_number, account.account_type, account.balance, key)
        )

    def __repr__(self):
        return f"Client(name={self.name!r}, accounts={len(self.account_keys)})"
