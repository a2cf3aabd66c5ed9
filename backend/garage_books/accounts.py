# Overview: Chart of accounts used to label journal lines.

"""
Chart of Accounts

Accounts are labels on journal lines, not stored rows. Each code carries a
display name and an account type; the type decides the normal balance side
(ASSET/EXPENSE are debit-normal, LIABILITY/EQUITY/REVENUE credit-normal).

Manual vouchers may reference codes that are not registered here; those are
treated as expense accounts named after the code.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class AccountType(Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class NormalBalance(Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


NORMAL_BALANCE: Dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
}


@dataclass(frozen=True)
class Account:
    code: str
    name: str
    account_type: AccountType

    @property
    def normal_balance(self) -> NormalBalance:
        return NORMAL_BALANCE[self.account_type]

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "account_type": self.account_type.value,
            "normal_balance": self.normal_balance.value,
        }


# =============================================================================
# ACCOUNT CODES (CONSTANTS)
# =============================================================================

CASH = "CASH"
BANK = "BANK"
INVENTORY = "INVENTORY"
GST_INPUT = "GST_INPUT"
GST_OUTPUT = "GST_OUTPUT"
ACCOUNTS_RECEIVABLE = "ACCOUNTS_RECEIVABLE"
ACCOUNTS_PAYABLE = "ACCOUNTS_PAYABLE"
ACCOUNTS_PAYABLE_VENDORS = "ACCOUNTS_PAYABLE_VENDORS"
PAYROLL_PAYABLE = "PAYROLL_PAYABLE"
CONTRACTOR_PAYABLE = "CONTRACTOR_PAYABLE"
SALES = "SALES"
LABOUR_EXPENSE = "LABOUR_EXPENSE"
SERVICE_EXPENSE = "SERVICE_EXPENSE"
JOB_COST = "JOB_COST"
ROUND_OFF = "ROUND_OFF"

CHART_OF_ACCOUNTS: Dict[str, Account] = {
    a.code: a
    for a in (
        Account(CASH, "Cash in Hand", AccountType.ASSET),
        Account(BANK, "Bank Account", AccountType.ASSET),
        Account(INVENTORY, "Inventory", AccountType.ASSET),
        Account(GST_INPUT, "GST Input Credit", AccountType.ASSET),
        Account(ACCOUNTS_RECEIVABLE, "Accounts Receivable", AccountType.ASSET),
        Account(GST_OUTPUT, "GST Output Payable", AccountType.LIABILITY),
        Account(ACCOUNTS_PAYABLE, "Accounts Payable - Suppliers", AccountType.LIABILITY),
        Account(ACCOUNTS_PAYABLE_VENDORS, "Accounts Payable - Vendors", AccountType.LIABILITY),
        Account(PAYROLL_PAYABLE, "Payroll Payable", AccountType.LIABILITY),
        Account(CONTRACTOR_PAYABLE, "Contractor Payable", AccountType.LIABILITY),
        Account(SALES, "Sales", AccountType.REVENUE),
        Account(LABOUR_EXPENSE, "Labour Expense", AccountType.EXPENSE),
        Account(SERVICE_EXPENSE, "Outsourced Service Expense", AccountType.EXPENSE),
        Account(JOB_COST, "Job Cost", AccountType.EXPENSE),
        Account(ROUND_OFF, "Round Off", AccountType.EXPENSE),
    )
}


def get_account(code: str) -> Account:
    """Look up an account, falling back to an ad hoc expense account."""
    account = CHART_OF_ACCOUNTS.get(code)
    if account:
        return account
    return Account(code, code.replace("_", " ").title(), AccountType.EXPENSE)


def account_name(code: str) -> str:
    return get_account(code).name


def settlement_account(payment_mode: str | None) -> str:
    """Cash payments settle through CASH, everything else (UPI, cheque, card, transfer) through BANK."""
    if (payment_mode or "cash").strip().lower() == "cash":
        return CASH
    return BANK
