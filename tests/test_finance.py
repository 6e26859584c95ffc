"""Tests for invoice-linked ledger entries, manual transactions and summaries."""

from datetime import datetime, timezone

import pytest

from cargo_ledger.errors import LedgerError
from cargo_ledger.finance import (
    SALES_ACCOUNT_ID,
    add_manual_transaction,
    cash_position,
    default_accounts,
    finance_summary,
    invoice_transactions,
    sync_invoice_transactions,
)
from cargo_ledger.models import Company, Financials, Invoice, SplitDetails

NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


def _invoice(number="HQ-1000", total=200.0, **kwargs):
    return Invoice(invoice_no=number, date="14/10/2026", financials=Financials(total=total), **kwargs)


def _tenant(**kwargs):
    return Company(id="1", username="test", password="test", financial_accounts=default_accounts(), **kwargs)


# ---------------------------------------------------------------------------
# Invoice-linked entries
# ---------------------------------------------------------------------------

def test_cash_invoice_gives_one_sales_entry():
    (tx,) = invoice_transactions(_invoice(payment_mode="CASH"), NOW)
    assert tx.account_id == SALES_ACCOUNT_ID
    assert tx.type == "INCOME"
    assert tx.amount == pytest.approx(200.0)
    assert tx.payment_mode == "CASH"
    assert tx.reference_id == "HQ-1000"
    assert tx.date == "2026-10-14"


def test_missing_payment_mode_counts_as_cash():
    (tx,) = invoice_transactions(_invoice(), NOW)
    assert tx.payment_mode == "CASH"


def test_bank_invoice():
    (tx,) = invoice_transactions(_invoice(payment_mode="BANK"), NOW)
    assert tx.payment_mode == "BANK"


def test_split_invoice_gives_one_entry_per_part():
    invoice = _invoice(payment_mode="SPLIT", split_details=SplitDetails(cash=120, bank=80))
    entries = invoice_transactions(invoice, NOW)
    assert [(t.payment_mode, t.amount) for t in entries] == [("CASH", 120), ("BANK", 80)]
    assert len({t.id for t in entries}) == 2


def test_split_skips_empty_parts():
    invoice = _invoice(payment_mode="SPLIT", split_details=SplitDetails(cash=0, bank=200))
    entries = invoice_transactions(invoice, NOW)
    assert [t.payment_mode for t in entries] == ["BANK"]


def test_resave_replaces_previous_entries():
    manual_tenant, _ = add_manual_transaction(_tenant(), "acc_rent", 500, "EXPENSE", "October rent", now=NOW)
    tenant = sync_invoice_transactions(manual_tenant, _invoice(payment_mode="CASH"), NOW)
    tenant = sync_invoice_transactions(
        tenant, _invoice(payment_mode="SPLIT", split_details=SplitDetails(cash=100, bank=100)), NOW
    )
    linked = [t for t in tenant.financial_transactions if t.reference_id == "HQ-1000"]
    assert [t.payment_mode for t in linked] == ["CASH", "BANK"]
    assert len(tenant.financial_transactions) == 3


# ---------------------------------------------------------------------------
# Manual transactions
# ---------------------------------------------------------------------------

def test_manual_transaction_is_prepended():
    tenant, tx = add_manual_transaction(_tenant(), "acc_other_income", 75, "INCOME", "Packing material", "BANK", "2026-10-01", NOW)
    assert tenant.financial_transactions[0] == tx
    assert tx.date == "2026-10-01"
    assert tx.reference_id is None


@pytest.mark.parametrize(
    "account_id, amount, description",
    [
        ("acc_rent", 0, "Rent"),
        ("acc_rent", -5, "Rent"),
        ("acc_rent", 10, ""),
        ("acc_unknown", 10, "Rent"),
    ],
)
def test_manual_transaction_validation(account_id, amount, description):
    with pytest.raises(LedgerError):
        add_manual_transaction(_tenant(), account_id, amount, "EXPENSE", description)


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

class TestFinanceSummary:
    @pytest.fixture(autouse=True)
    def summarise(self):
        tenant = sync_invoice_transactions(_tenant(), _invoice(total=1000, payment_mode="BANK"), NOW)
        tenant, _ = add_manual_transaction(tenant, "acc_rent", 300, "EXPENSE", "Rent", "CASH", now=NOW)
        tenant, _ = add_manual_transaction(tenant, "acc_other_income", 50, "INCOME", "Tips", "CASH", now=NOW)
        self.tenant = tenant
        self.result = finance_summary(tenant)

    def test_totals(self):
        assert self.result.total_income == pytest.approx(1050.0)
        assert self.result.total_expense == pytest.approx(300.0)
        assert self.result.net_profit == pytest.approx(750.0)

    def test_balances_per_account(self):
        balances = {b.account_id: b.balance for b in self.result.balances}
        assert balances[SALES_ACCOUNT_ID] == pytest.approx(1000.0)
        assert balances["acc_rent"] == pytest.approx(300.0)
        assert balances["acc_salary"] == 0.0

    def test_cash_position(self):
        position = cash_position([self.tenant])
        assert position.bank_balance == pytest.approx(1000.0)
        assert position.cash_in_hand == pytest.approx(-250.0)


def test_cash_position_across_tenants():
    first = sync_invoice_transactions(_tenant(), _invoice(total=100), NOW)
    second = sync_invoice_transactions(
        Company(id="2", username="b", password="b", financial_accounts=default_accounts()),
        _invoice("DAM-1", total=40, payment_mode="BANK"),
        NOW,
    )
    position = cash_position([first, second])
    assert position.cash_in_hand == pytest.approx(100.0)
    assert position.bank_balance == pytest.approx(40.0)
