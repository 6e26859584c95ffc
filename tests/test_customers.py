"""Tests for customer fingerprints, aggregation and edits."""

import pytest

from cargo_ledger.customers import (
    aggregate_customers,
    apply_returning_shipper,
    customer_invoices,
    customer_key,
    edit_customer,
    find_returning_shipper,
    fingerprint,
    search_customers,
    total_spent,
)
from cargo_ledger.models import Company, Consignee, Financials, Invoice, Shipper, TaggedInvoice


def _invoice(number, name, tel="0550000000", id_no="", total=100.0, consignee="RAHIM"):
    return Invoice(
        invoice_no=number,
        date="14/10/2026",
        shipper=Shipper(name=name, tel=tel, id_no=id_no),
        consignee=Consignee(name=consignee, tel="+919000000000"),
        financials=Financials(total=total),
    )


def _tag(invoice, company_id="1", location="RIYADH"):
    return TaggedInvoice(invoice=invoice, company_id=company_id, location_name=location)


# ---------------------------------------------------------------------------
# fingerprint
# ---------------------------------------------------------------------------

def test_fingerprint_prefers_real_id():
    assert fingerprint(Shipper(name="Ali Khan", id_no="2577948892")) == "ID:2577948892"


def test_fingerprint_short_id_uses_name_and_phone():
    assert fingerprint(Shipper(name="  Ali Khan ", id_no="123", tel="0550000000")) == "NM:ali khan|0550000000"


def test_fingerprint_ignores_name_case_and_whitespace():
    first = Shipper(name="Ali Khan", tel="0550000000")
    second = Shipper(name="  ALI KHAN  ", tel="0550000000")
    assert fingerprint(first) == fingerprint(second)


def test_customer_key_is_tenant_scoped():
    shipper = Shipper(name="Ali Khan", tel="0550000000")
    assert customer_key(shipper, "1") != customer_key(shipper, "2")


# ---------------------------------------------------------------------------
# aggregate_customers
# ---------------------------------------------------------------------------

class TestRepeatShipperAggregation:
    @pytest.fixture(autouse=True)
    def aggregate(self):
        self.result = aggregate_customers(
            [
                _tag(_invoice("HQ-1001", "Ali Khan")),
                _tag(_invoice("HQ-1000", " ali khan ")),
                _tag(_invoice("HQ-0999", "Sara")),
                _tag(_invoice("HQ-0998", "")),
            ]
        )

    def test_two_customers(self):
        assert len(self.result) == 2

    def test_repeat_shipper_counted_twice(self):
        customer = self.result["NM:ali khan|0550000000_1"]
        assert customer.total_shipments == 2

    def test_first_seen_display_values(self):
        customer = self.result["NM:ali khan|0550000000_1"]
        assert customer.name == "Ali Khan"
        assert customer.location == "RIYADH"


def test_same_shipper_in_two_tenants_stays_separate():
    result = aggregate_customers(
        [
            _tag(_invoice("HQ-1000", "Ali Khan"), company_id="1"),
            _tag(_invoice("DAM-2000", "Ali Khan"), company_id="2"),
        ]
    )
    assert sorted(c.company_id for c in result.values()) == ["1", "2"]


def test_search_customers_by_name_and_mobile():
    customers = aggregate_customers(
        [_tag(_invoice("HQ-1", "Ali Khan")), _tag(_invoice("HQ-2", "Sara", tel="0561111111"))]
    ).values()
    assert [c.name for c in search_customers(customers, "ALI")] == ["Ali Khan"]
    assert [c.name for c in search_customers(customers, "05611")] == ["Sara"]


def test_customer_invoices_and_total_spent():
    tagged = [
        _tag(_invoice("HQ-1", "Ali Khan", total=100)),
        _tag(_invoice("HQ-2", "ALI KHAN", total=50)),
        _tag(_invoice("HQ-3", "Sara", total=999)),
    ]
    history = customer_invoices(tagged, "NM:ali khan|0550000000_1")
    assert [t.invoice.invoice_no for t in history] == ["HQ-1", "HQ-2"]
    assert total_spent(history) == pytest.approx(150.0)


# ---------------------------------------------------------------------------
# edit_customer
# ---------------------------------------------------------------------------

def test_edit_customer_rewrites_every_matching_invoice():
    tenant = Company(
        id="1",
        username="test",
        password="test",
        invoices=[_invoice("HQ-2", "Ali Khan"), _invoice("HQ-1", "ali khan "), _invoice("HQ-0", "Sara")],
    )
    updated, changed = edit_customer(tenant, "NM:ali khan|0550000000_1", "Ali K. Khan", "0551234567", "2400000001")
    assert changed == 2
    names = [i.shipper.name for i in updated.invoices]
    assert names == ["Ali K. Khan", "Ali K. Khan", "Sara"]
    assert updated.invoices[0].shipper.id_no == "2400000001"
    assert tenant.invoices[0].shipper.name == "Ali Khan"

    regrouped = aggregate_customers(_tag(i) for i in updated.invoices)
    assert regrouped["ID:2400000001_1"].total_shipments == 2


def test_edit_unknown_customer_changes_nothing():
    tenant = Company(id="1", username="test", password="test", invoices=[_invoice("HQ-0", "Sara")])
    updated, changed = edit_customer(tenant, "NM:nobody|_1", "X", "", "")
    assert changed == 0
    assert updated is tenant


# ---------------------------------------------------------------------------
# Returning shipper lookup
# ---------------------------------------------------------------------------

def test_find_returning_shipper_by_each_field():
    invoices = [
        _invoice("HQ-3", "Ali Khan", tel="0550000000", id_no="2577948892", consignee="LATEST"),
        _invoice("HQ-2", "Ali Khan", tel="0550000000", consignee="OLDER"),
    ]
    assert find_returning_shipper(invoices, "NAME", "ali khan").invoice_no == "HQ-3"
    assert find_returning_shipper(invoices, "ID", "2577948892").invoice_no == "HQ-3"
    assert find_returning_shipper(invoices, "MOBILE", " 0550000000 ").invoice_no == "HQ-3"
    assert find_returning_shipper(invoices, "NAME", "Nobody") is None
    assert find_returning_shipper(invoices, "NAME", "") is None


def test_apply_returning_shipper_keeps_draft_number():
    draft = Invoice(invoice_no="HQ-1002", date="14/10/2026")
    match = _invoice("HQ-0001", "Ali Khan", id_no="2577948892", consignee="FATIMA")
    filled = apply_returning_shipper(draft, match)
    assert filled.invoice_no == "HQ-1002"
    assert filled.shipper.name == "Ali Khan"
    assert filled.shipper.id_no == "2577948892"
    assert filled.consignee.name == "FATIMA"
    assert filled.financials.net_total == 0.0
