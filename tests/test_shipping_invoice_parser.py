"""Tests for the OCR shipping-invoice parser."""

import pytest

from cargo_ledger.parsers.shipping_invoice import parse_shipping_invoice


INVOICE_TEXT = """QOVOZ CARGO SERVICES
Invoice No: HQ-1042
Date: 05/02/2026
Shipment Type: IND SEA
SHIPPER
Name: AHMED ALI
ID No: 2577948892
Mobile: +966549934347
Pcs: 3
Weight: 45.5 KG
CONSIGNEE
Name: FATIMA BEEVI
Address: 12 MARKET ROAD
Pin: 673001
Country: INDIA
Mobile: +919336038580
Mobile 2: +919000000001
CARGO ITEMS
1 CLOTHES B1 15
2 FOOD STUFF B2 5
TOTAL: 273.00
BILL CHARGES: 120.00
VAT (15%): 58.95
NET TOTAL: 451.95
"""


# ---------------------------------------------------------------------------
# Full invoice photo
# ---------------------------------------------------------------------------

class TestFullInvoice:
    @pytest.fixture(autouse=True)
    def parse(self):
        self.result = parse_shipping_invoice(INVOICE_TEXT)

    def test_header(self):
        assert self.result.invoice_no == "HQ-1042"
        assert self.result.date == "05/02/2026"
        assert self.result.shipment_type == "IND SEA"

    def test_shipper(self):
        shipper = self.result.shipper
        assert shipper.name == "AHMED ALI"
        assert shipper.id_no == "2577948892"
        assert shipper.tel == "+966549934347"
        assert shipper.pcs == 3
        assert shipper.weight == pytest.approx(45.5)
        assert shipper.vatnos is None

    def test_consignee(self):
        consignee = self.result.consignee
        assert consignee.name == "FATIMA BEEVI"
        assert consignee.address == "12 MARKET ROAD"
        assert consignee.pin == "673001"
        assert consignee.country == "INDIA"
        assert consignee.tel == "+919336038580"
        assert consignee.tel2 == "+919000000001"
        assert consignee.state is None

    def test_items(self):
        items = [(i.sl_no, i.description, i.box_no, i.qty) for i in self.result.cargo_items]
        assert items == [(1, "CLOTHES", "B1", 15), (2, "FOOD STUFF", "B2", 5)]

    def test_financials(self):
        financials = self.result.financials
        assert financials.total == pytest.approx(273.0)
        assert financials.bill_charges == pytest.approx(120.0)
        assert financials.vat == pytest.approx(15.0)
        assert financials.vat_amount == pytest.approx(58.95)

    def test_no_warnings(self):
        assert self.result.warnings == []


# ---------------------------------------------------------------------------
# Partial and damaged scans
# ---------------------------------------------------------------------------

def test_totals_that_do_not_add_up_are_flagged():
    text = INVOICE_TEXT.replace("NET TOTAL: 451.95", "NET TOTAL: 500.00")
    result = parse_shipping_invoice(text)
    assert any("reconcile" in w for w in result.warnings)


def test_header_only_scan():
    result = parse_shipping_invoice("Invoice No: DAM-2001\nDate: 3-2-2026")
    assert result.invoice_no == "DAM-2001"
    assert result.date == "03/02/2026"
    assert result.shipper is None
    assert result.cargo_items is None
    assert result.financials is None


def test_empty_text():
    result = parse_shipping_invoice("")
    assert result.invoice_no is None
    assert result.date is None
    assert result.shipper is None
    assert result.consignee is None
    assert result.warnings == ["Invoice number not found", "Invoice date not found"]
