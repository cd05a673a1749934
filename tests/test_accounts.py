"""
Test suite for accounts module

Tests flag configuration, the per-operation dispatch of transact, withdraw
limit clamping, purchase and bill legs, and interest accrual.
"""

import pytest
from dataclasses import replace
from decimal import Decimal

from keyledger.accounts import (
    Account, AccountFlag, AccountKind, SavingsAccount, CheckingAccount, BillingAccount
)
from keyledger.errors import ConfigurationError, ErrorKind
from keyledger.permissions import AccessKey, CapabilityLevel
from keyledger.transactions import (
    Deposit, Withdraw, Purchase, Interest, Bill, Failed, Partial, Transfer, Spacer
)


ROOT = AccessKey("ROOT", CapabilityLevel.ADMIN)
DEPOSIT_KEY = AccessKey("dep001", CapabilityLevel.DEPOSIT)
WITHDRAW_KEY = AccessKey("wd001", CapabilityLevel.WITHDRAW)
VIEW_KEY = AccessKey("view001", CapabilityLevel.VIEW)


class PlainAccount(Account):
    kind = AccountKind.CHECKING


def with_keys(account: Account) -> Account:
    for key in (DEPOSIT_KEY, WITHDRAW_KEY, VIEW_KEY):
        account.register_key(key)
    account.owners.append("Alice")
    return account


class TestAccountConfiguration:
    """Test account construction and flag sets"""
    
    def test_savings_flags(self):
        account = SavingsAccount("000001", ROOT, Decimal('0.02'), withdraw_limit=Decimal('1000'))
        assert account.kind == AccountKind.SAVINGS
        assert account.account_type == "Savings"
        assert account.flags == {AccountFlag.WITHDRAW_LIMIT}
        assert account.withdraw_limit == Decimal('1000')
        assert not account.has_flag(AccountFlag.CAN_PURCHASE)
    
    def test_savings_requires_limit(self):
        with pytest.raises(ConfigurationError, match="requires a withdraw limit"):
            SavingsAccount("000001", ROOT, Decimal('0.02'), withdraw_limit=None)
    
    def test_checking_default_flags(self):
        """Default checking can purchase and pay bills, without a limit"""
        account = CheckingAccount("000002", ROOT, Decimal('0.01'))
        assert account.flags == {AccountFlag.CAN_PURCHASE, AccountFlag.BILLABLE}
        assert account.withdraw_limit is None
        assert account.overdraft_fee is None
    
    def test_checking_optional_flags(self):
        account = CheckingAccount("000003", ROOT, Decimal('0.01'),
                                  withdraw_limit=Decimal('500'), overdraft_fee=Decimal('5.50'))
        assert account.has_flag(AccountFlag.WITHDRAW_LIMIT)
        assert account.has_flag(AccountFlag.OVERDRAFT_FEE)
        assert account.overdraft_fee == Decimal('5.50')
    
    def test_billing_flags(self):
        account = BillingAccount("000004", ROOT, Decimal('0.03'))
        assert account.flags == {AccountFlag.BILLABLE}
    
    def test_initial_key_required(self):
        with pytest.raises(ConfigurationError, match="requires an initial access key"):
            BillingAccount("000005", None, Decimal('0'))
    
    def test_root_key_registered(self):
        account = BillingAccount("000006", ROOT, Decimal('0'))
        assert account.access_keys == {"ROOT": ROOT}
    
    def test_flag_without_limit_rejected_at_construction(self):
        """A flag that takes a parameter cannot be enabled without one"""
        with pytest.raises(ConfigurationError, match="flagged for a withdraw limit"):
            PlainAccount("000007", ROOT, Decimal('0'), flags={AccountFlag.WITHDRAW_LIMIT})
    
    def test_limit_without_flag_rejected(self):
        with pytest.raises(ConfigurationError, match="without the flag"):
            PlainAccount("000008", ROOT, Decimal('0'), limits={AccountFlag.OVERDRAFT_FEE: Decimal('1')})
    
    def test_float_inputs_are_converted_exactly(self):
        account = CheckingAccount("000009", ROOT, 0.04, balance=100.1)
        assert account.interest_rate == Decimal('0.04')
        assert account.balance == Decimal('100.1')


class TestDeposit:
    """Test deposits"""
    
    def setup_method(self):
        self.account = with_keys(CheckingAccount("200001", ROOT, Decimal('0'), balance=Decimal('1000')))
    
    def test_valid_deposit(self):
        result = self.account.transact(Deposit("Alice", Decimal('250'), "200001", access_key=DEPOSIT_KEY))
        
        assert isinstance(result, Deposit)
        assert self.account.balance == Decimal('1250')
        assert result.final_balance == self.account.balance
        assert result.amount == Decimal('250')
    
    def test_request_is_not_mutated(self):
        request = Deposit("Alice", Decimal('250'), "200001", access_key=DEPOSIT_KEY)
        result = self.account.transact(request)
        
        assert request.final_balance is None
        assert result is not request
    
    def test_withdraw_key_cannot_deposit(self):
        result = self.account.transact(Deposit("Alice", Decimal('250'), "200001", access_key=WITHDRAW_KEY))
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.ACCESS_DENIED
        assert self.account.balance == Decimal('1000')
    
    def test_wrong_account_number(self):
        result = self.account.transact(Deposit("Alice", Decimal('250'), "200002", access_key=DEPOSIT_KEY))
        assert isinstance(result, Failed)
        assert self.account.balance == Decimal('1000')
    
    def test_zero_deposit_is_harmless(self):
        result = self.account.transact(Deposit("Alice", Decimal('0'), "200001", access_key=DEPOSIT_KEY))
        assert isinstance(result, Deposit)
        assert self.account.balance == Decimal('1000')


class TestWithdraw:
    """Test withdrawals, limits and partial withdrawals"""
    
    def test_full_withdrawal(self):
        account = with_keys(CheckingAccount("300001", ROOT, Decimal('0'), balance=Decimal('1000')))
        result = account.transact(Withdraw("Alice", Decimal('400'), "300001", access_key=WITHDRAW_KEY))
        
        assert isinstance(result, Withdraw)
        assert account.balance == Decimal('600')
        assert result.final_balance == Decimal('600')
    
    def test_insufficient_funds_leaves_balance(self):
        account = with_keys(CheckingAccount("300002", ROOT, Decimal('0'), balance=Decimal('100')))
        result = account.transact(Withdraw("Alice", Decimal('400'), "300002", access_key=WITHDRAW_KEY))
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert "Available: 100" in result.error.message
        assert "Required: 400" in result.error.message
        assert account.balance == Decimal('100')
    
    def test_savings_partial_withdrawal(self):
        """Savings with limit 1000 and balance 2000: withdrawing 1500 clamps to 1000"""
        account = with_keys(SavingsAccount("300003", ROOT, Decimal('0.02'), withdraw_limit=Decimal('1000'),
                                           balance=Decimal('2000')))
        result = account.transact(Withdraw("Alice", Decimal('1500'), "300003", access_key=WITHDRAW_KEY))
        
        assert isinstance(result, Partial)
        assert result.amount == Decimal('1000')
        assert result.remainder == Decimal('500')
        assert result.amount + result.remainder == Decimal('1500')
        assert result.final_balance == Decimal('1000')
        assert result.account_type == "Savings"
        assert account.balance == Decimal('1000')
    
    def test_clamped_amount_checked_against_balance(self):
        account = with_keys(SavingsAccount("300004", ROOT, Decimal('0'), withdraw_limit=Decimal('1000'),
                                           balance=Decimal('800')))
        result = account.transact(Withdraw("Alice", Decimal('1500'), "300004", access_key=WITHDRAW_KEY))
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert account.balance == Decimal('800')
    
    def test_withdrawal_at_limit_is_full(self):
        account = with_keys(SavingsAccount("300005", ROOT, Decimal('0'), withdraw_limit=Decimal('1000'),
                                           balance=Decimal('2000')))
        result = account.transact(Withdraw("Alice", Decimal('1000'), "300005", access_key=WITHDRAW_KEY))
        assert isinstance(result, Withdraw)
    
    def test_view_key_denied(self):
        """A VIEW key attempting a withdrawal is denied and the balance is unchanged"""
        account = with_keys(CheckingAccount("300006", ROOT, Decimal('0'), balance=Decimal('1000')))
        result = account.transact(Withdraw("Alice", Decimal('10'), "300006", access_key=VIEW_KEY))
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.ACCESS_DENIED
        assert account.balance == Decimal('1000')
    
    def test_limit_flag_without_value_is_system_error(self):
        """A limit removed after construction is reported, not ignored"""
        account = with_keys(SavingsAccount("300007", ROOT, Decimal('0'), withdraw_limit=Decimal('100'),
                                           balance=Decimal('1000')))
        del account.limits[AccountFlag.WITHDRAW_LIMIT]
        result = account.transact(Withdraw("Alice", Decimal('10'), "300007", access_key=WITHDRAW_KEY))
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.SYSTEM_ERROR
        assert "no limit was provided" in result.error.message
        assert account.balance == Decimal('1000')


class TestPurchase:
    """Test both legs of a purchase"""
    
    def setup_method(self):
        self.payer = with_keys(CheckingAccount("400001", ROOT, Decimal('0'), balance=Decimal('1000')))
        self.seller = CheckingAccount("400002", ROOT, Decimal('0'), balance=Decimal('50'))
        self.payee_key = AccessKey("payee", CapabilityLevel.DEPOSIT)
        self.seller.register_key(self.payee_key)
    
    def purchase(self, amount, key=WITHDRAW_KEY, payee_key=None):
        return Purchase("Alice", Decimal(amount), key, "400001", "Checking", "400002", "Shop",
                        payee_key=payee_key or self.payee_key)
    
    def test_payer_leg_debits_and_echoes(self):
        request = self.purchase('300')
        result = self.payer.transact(request)
        
        assert result == request
        assert self.payer.balance == Decimal('700')
    
    def test_seller_leg_credits_and_echoes(self):
        request = self.purchase('300')
        result = self.seller.transact(request)
        
        assert result == request
        assert self.seller.balance == Decimal('350')
    
    def test_insufficient_balance(self):
        result = self.payer.transact(self.purchase('5000'))
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert self.payer.balance == Decimal('1000')
    
    def test_price_above_limit_rejected_outright(self):
        payer = with_keys(CheckingAccount("400001", ROOT, Decimal('0'), withdraw_limit=Decimal('100'),
                                          balance=Decimal('1000')))
        result = payer.transact(self.purchase('300'))
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert "more than 100" in result.error.message
        assert payer.balance == Decimal('1000')
    
    def test_requires_can_purchase_flag(self):
        """Savings accounts cannot purchase even with a valid key and funds"""
        savings = with_keys(SavingsAccount("400001", ROOT, Decimal('0'), withdraw_limit=Decimal('5000'),
                                           balance=Decimal('1000')))
        result = savings.transact(self.purchase('300'))
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.PAYMENT_ERROR
        assert savings.balance == Decimal('1000')
    
    def test_neither_leg_authorized(self):
        stranger = CheckingAccount("400002", ROOT, Decimal('0'))
        result = stranger.transact(self.purchase('300', payee_key=AccessKey("unknown", CapabilityLevel.DEPOSIT)))
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.ACCESS_DENIED


class TestBill:
    """Test both legs of a bill"""
    
    def setup_method(self):
        self.payer = with_keys(BillingAccount("500001", ROOT, Decimal('0'), balance=Decimal('2000')))
        self.receiver = CheckingAccount("500002", ROOT, Decimal('0'), balance=Decimal('0'))
        self.payee_key = AccessKey("payee", CapabilityLevel.DEPOSIT)
        self.receiver.register_key(self.payee_key)
        self.bill = Bill("Employer", Decimal('1000'), WITHDRAW_KEY, "500001", "Billing", "Employer",
                         "Alice", "salary", receiver_account="500002", payee_key=self.payee_key)
    
    def test_payer_leg(self):
        assert self.payer.transact(self.bill) == self.bill
        assert self.payer.balance == Decimal('1000')
    
    def test_receiver_leg(self):
        assert self.receiver.transact(self.bill) == self.bill
        assert self.receiver.balance == Decimal('1000')
    
    def test_requires_billable_flag(self):
        savings = with_keys(SavingsAccount("500001", ROOT, Decimal('0'), withdraw_limit=Decimal('5000'),
                                           balance=Decimal('2000')))
        result = savings.transact(self.bill)
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.PAYMENT_ERROR
        assert savings.balance == Decimal('2000')
    
    def test_bill_can_overdraw_payer(self):
        """Bills are not balance-checked; the payer may go negative"""
        payer = with_keys(BillingAccount("500001", ROOT, Decimal('0'), balance=Decimal('100')))
        bill = replace(self.bill, amount=Decimal('500'))
        result = payer.transact(bill)

        assert result == bill
        assert payer.balance == Decimal('-400')
    
    def test_deposit_key_cannot_pay(self):
        bill = Bill("Employer", Decimal('1'), DEPOSIT_KEY, "500001", "Billing", "Employer", "Alice", "x")
        result = self.payer.transact(bill)
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.ACCESS_DENIED


class TestInterestAndDispatch:
    """Test interest accrual and unsupported requests"""
    
    def test_interest_calc(self):
        account = with_keys(SavingsAccount("600001", ROOT, Decimal('0.2'), withdraw_limit=Decimal('1000'),
                                           balance=Decimal('2000')))
        result = account.interest_calc()
        
        assert isinstance(result, Interest)
        assert result.amount == Decimal('400')
        assert result.client == "Alice"
        assert result.account == "600001"
        assert account.balance == Decimal('2000') * (1 + Decimal('0.2'))
    
    def test_interest_compounds(self):
        account = with_keys(CheckingAccount("600002", ROOT, Decimal('0.1'), balance=Decimal('100')))
        account.interest_calc()
        account.interest_calc()
        assert account.balance == Decimal('121')
    
    def test_interest_request_ignores_payload(self):
        account = with_keys(CheckingAccount("600003", ROOT, Decimal('0.5'), balance=Decimal('100')))
        result = account.transact(Interest("Whatever", "Nobody", "999999", Decimal('1')))
        
        assert isinstance(result, Interest)
        assert result.amount == Decimal('50')
        assert result.account == "600003"
        assert account.balance == Decimal('150')
    
    @pytest.mark.parametrize("request_", [
        Spacer(),
        Transfer(Decimal('1'), "Alice", "1", "Checking", "2", "Savings"),
    ])
    def test_invalid_transaction(self, request_):
        account = with_keys(CheckingAccount("600004", ROOT, Decimal('0'), balance=Decimal('100')))
        result = account.transact(request_)
        
        assert isinstance(result, Failed)
        assert result.kind == ErrorKind.SYSTEM_ERROR
        assert result.error.message == "Invalid Transaction"
        assert account.balance == Decimal('100')
