from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from pydantic import BaseModel

from cargo_ledger.errors import LedgerError
from cargo_ledger.models import (
    Company,
    FinancialAccount,
    FinancialTransaction,
    Invoice,
    TransactionMode,
    TransactionType,
)


SALES_ACCOUNT_ID = "acc_sales"

DEFAULT_ACCOUNTS: tuple[FinancialAccount, ...] = (
    FinancialAccount(id=SALES_ACCOUNT_ID, name="Sales", type="REVENUE", is_system=True),
    FinancialAccount(id="acc_other_income", name="Other Income", type="REVENUE"),
    FinancialAccount(id="acc_general_expense", name="General Expenses", type="EXPENSE", is_system=True),
    FinancialAccount(id="acc_rent", name="Rent", type="EXPENSE"),
    FinancialAccount(id="acc_salary", name="Salaries", type="EXPENSE"),
    FinancialAccount(id="acc_freight", name="Freight & Container Charges", type="EXPENSE"),
)


class AccountBalance(BaseModel):
    account_id: str
    name: str
    type: str
    balance: float


class FinanceSummary(BaseModel):
    total_income: float
    total_expense: float
    net_profit: float
    balances: list[AccountBalance]


class CashPosition(BaseModel):
    cash_in_hand: float = 0.0
    bank_balance: float = 0.0


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def default_accounts() -> list[FinancialAccount]:
    return [account.model_copy() for account in DEFAULT_ACCOUNTS]


def invoice_transactions(invoice: Invoice, now: Optional[datetime] = None) -> list[FinancialTransaction]:
    """Sales entries for a saved invoice, one per payment-mode part."""
    stamp = _now(now)
    base = {
        "date": stamp.date().isoformat(),
        "timestamp": stamp.isoformat(),
        "account_id": SALES_ACCOUNT_ID,
        "type": "INCOME",
        "reference_id": invoice.invoice_no,
    }
    suffix = uuid.uuid4().hex[:8]

    if invoice.payment_mode == "SPLIT" and invoice.split_details is not None:
        entries: list[FinancialTransaction] = []
        if invoice.split_details.cash > 0:
            entries.append(
                FinancialTransaction(
                    id=f"tx_{invoice.invoice_no}_cash_{suffix}",
                    amount=invoice.split_details.cash,
                    description=f"Invoice {invoice.invoice_no} (Cash Split)",
                    payment_mode="CASH",
                    **base,
                )
            )
        if invoice.split_details.bank > 0:
            entries.append(
                FinancialTransaction(
                    id=f"tx_{invoice.invoice_no}_bank_{suffix}",
                    amount=invoice.split_details.bank,
                    description=f"Invoice {invoice.invoice_no} (Bank Split)",
                    payment_mode="BANK",
                    **base,
                )
            )
        return entries

    mode = invoice.payment_mode if invoice.payment_mode in ("CASH", "BANK") else "CASH"
    return [
        FinancialTransaction(
            id=f"tx_{invoice.invoice_no}_{suffix}",
            amount=invoice.financials.net_total,
            description=f"Invoice {invoice.invoice_no}",
            payment_mode=mode,
            **base,
        )
    ]


def sync_invoice_transactions(
    tenant: Company,
    invoice: Invoice,
    now: Optional[datetime] = None,
) -> Company:
    """Replace whatever was generated for ``invoice`` before with fresh entries."""
    kept = [t for t in tenant.financial_transactions if t.reference_id != invoice.invoice_no]
    fresh = invoice_transactions(invoice, now)
    return tenant.model_copy(update={"financial_transactions": [*fresh, *kept]})


def add_manual_transaction(
    tenant: Company,
    account_id: str,
    amount: float,
    tx_type: TransactionType,
    description: str,
    payment_mode: TransactionMode = "CASH",
    tx_date: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[Company, FinancialTransaction]:
    if amount is None or amount <= 0:
        raise LedgerError("Transaction amount must be positive")
    if not description:
        raise LedgerError("Transaction description is required")
    if not any(a.id == account_id for a in tenant.financial_accounts):
        raise LedgerError(f"Unknown account: {account_id}")

    stamp = _now(now)
    tx = FinancialTransaction(
        id=f"tx_manual_{uuid.uuid4().hex[:12]}",
        date=tx_date or stamp.date().isoformat(),
        timestamp=stamp.isoformat(),
        account_id=account_id,
        amount=amount,
        type=tx_type,
        description=description,
        payment_mode=payment_mode,
    )
    updated = tenant.model_copy(
        update={"financial_transactions": [tx, *tenant.financial_transactions]}
    )
    return updated, tx


def finance_summary(tenant: Company) -> FinanceSummary:
    transactions = tenant.financial_transactions
    balances = [
        AccountBalance(
            account_id=account.id,
            name=account.name,
            type=account.type,
            balance=sum(t.amount for t in transactions if t.account_id == account.id),
        )
        for account in tenant.financial_accounts
    ]
    income = sum(t.amount for t in transactions if t.type == "INCOME")
    expense = sum(t.amount for t in transactions if t.type == "EXPENSE")
    return FinanceSummary(
        total_income=income,
        total_expense=expense,
        net_profit=income - expense,
        balances=balances,
    )


def cash_position(tenants: Iterable[Company]) -> CashPosition:
    """Cash in hand and bank balance over every transaction of ``tenants``."""
    position = CashPosition()
    for tenant in tenants:
        for tx in tenant.financial_transactions:
            sign = 1 if tx.type == "INCOME" else -1
            if (tx.payment_mode or "CASH") == "BANK":
                position.bank_balance += sign * tx.amount
            else:
                position.cash_in_hand += sign * tx.amount
    return position
