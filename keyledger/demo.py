#!/usr/bin/env python3
"""Scripted demonstration of the ledger

Replays one business day: account creation, key grants, purchases, a denied
admin grant, limit-clamped transfers, a bill, interest accrual and the final
balances, then prints the rendered history.

Run with: python -m keyledger.demo
"""

from decimal import Decimal
from typing import Optional

from .bank import Bank
from .config import get_config
from .logging_config import setup_logging
from .permissions import AccessKey, CapabilityLevel


def run_demo(bank: Optional[Bank] = None) -> Bank:
    """Run the scripted day against ``bank`` (a new one by default) and return it"""
    bank = bank or Bank()

    bank.add_section("Creating Accounts")
    checking1 = bank.create_checking("John Doe", balance=Decimal('1000'), interest_rate=Decimal('0.04'),
                                     overdraft_fee=Decimal('5.50'))
    savings1 = bank.create_savings("Jane Doe", balance=Decimal('2000'), interest_rate=Decimal('0.2'),
                                   withdraw_limit=Decimal('1000'))
    bank.create_billing("John Doe", balance=Decimal('1500'), interest_rate=Decimal('0.03'))

    bank.add_spacer()

    checking2 = bank.create_checking("Totally Not A Hacker", balance=Decimal('100'), interest_rate=Decimal('5.0'))

    bank.add_spacer()

    employer_payroll = bank.create_billing("Employer Inc.", balance=Decimal('1000000'), interest_rate=Decimal('0.04'))
    employer_savings = bank.create_savings("Employer Inc.", balance=Decimal('100000000'), interest_rate=Decimal('0.5'),
                                           withdraw_limit=Decimal('100000'))
    employer_capital = bank.create_checking("Employer Inc.", balance=Decimal('1000000'), interest_rate=Decimal('0.04'))
    retail_capital = bank.create_checking("Retail Inc.", balance=Decimal('100000000'), interest_rate=Decimal('0.04'))
    restaurant_capital = bank.create_checking("Restaurant Inc.", balance=Decimal('100000000'),
                                              interest_rate=Decimal('0.04'))
    vendor_capital = bank.create_checking("BuyOnline Inc.", balance=Decimal('100000'), interest_rate=Decimal('0.06'))

    john = bank.get_client("John Doe")
    jane = bank.get_client("Jane Doe")
    employer = bank.get_client("Employer Inc.")
    retail = bank.get_client("Retail Inc.")
    restaurant = bank.get_client("Restaurant Inc.")
    not_hacker = bank.get_client("Totally Not A Hacker")
    treasury = bank.register_client("Employer Treasury")

    bank.add_section("Today's Transactions")
    jane.add_account(checking1, john.key_for(checking1), CapabilityLevel.WITHDRAW)
    jane.spend(Decimal('300'), checking1, retail_capital)

    bank.add_spacer()

    # Owners trade their admin key for a withdraw key before spending
    capital_admin = employer.key_for(employer_capital)
    treasury.add_account(employer_capital, capital_admin, CapabilityLevel.DEPOSIT)
    treasury.add_account(employer_savings, employer.key_for(employer_savings), CapabilityLevel.WITHDRAW)
    employer.add_account(employer_capital, capital_admin, CapabilityLevel.WITHDRAW)
    employer.spend(Decimal('10000'), employer_capital, restaurant_capital)

    retail.add_account(retail_capital, retail.key_for(retail_capital), CapabilityLevel.WITHDRAW)
    retail.spend(Decimal('15000'), retail_capital, employer_capital)

    restaurant.withdraw(Decimal('15000'), restaurant_capital)
    restaurant.add_account(restaurant_capital, restaurant.key_for(restaurant_capital), CapabilityLevel.WITHDRAW)
    restaurant.withdraw(Decimal('15000'), restaurant_capital)

    bank.add_spacer()

    not_hacker.add_account(employer_savings, AccessKey("Hahahaha", CapabilityLevel.ADMIN), CapabilityLevel.ADMIN)
    not_hacker.request_balance(employer_savings)
    not_hacker.transfer(Decimal('100000'), employer_savings, checking2)

    bank.add_spacer()

    treasury.transfer(Decimal('250000'), employer_savings, employer_capital)
    treasury.transfer(Decimal('50000'), employer_savings, employer_capital)

    employer.add_account(employer_payroll, employer.key_for(employer_payroll), CapabilityLevel.WITHDRAW)
    employer.bill(Decimal('1000'), employer_payroll, checking1, "employee salary")

    bank.add_spacer()

    not_hacker.add_account(checking2, not_hacker.key_for(checking2), CapabilityLevel.WITHDRAW)
    not_hacker.spend(Decimal('183465'), checking2, vendor_capital)
    not_hacker.spend(Decimal('90'), checking2, vendor_capital)
    not_hacker.request_balance(checking2)

    bank.add_section("Interest")
    bank.apply_interest([savings1, employer_savings])

    bank.add_section("Final Balances")
    john.request_balance(checking1)
    jane.request_balance(savings1)
    retail.request_balance(retail_capital)
    restaurant.request_balance(restaurant_capital)
    employer.request_balance(employer_capital)
    employer.request_balance(employer_payroll)
    employer.request_balance(employer_savings)
    not_hacker.request_balance()

    return bank


def main():
    """Run the demonstration and print the history"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)

    bank = run_demo()
    bank.print_log()


if __name__ == "__main__":
    main()
