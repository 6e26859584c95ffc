from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from cargo_ledger.finance import default_accounts
from cargo_ledger.items import default_items
from cargo_ledger.models import (
    AppSettings,
    Company,
    Consignee,
    Financials,
    Invoice,
    InvoiceItem,
    ShipmentType,
    Shipper,
    StatusHistoryItem,
)
from cargo_ledger.parse_utils import format_date
from cargo_ledger.status import default_stage_settings


DEFAULT_TC_HEADER = "ACCEPT THE GOODS ONLY AFTER CHECKING AND CONFIRMING THEM ON DELIVERY."
DEFAULT_TC_ENGLISH = (
    "NO GUARANTEE FOR GLASS/BREAKABLE ITEMS. COMPANY NOT RESPONSIBLE FOR ITEMS RECEIVED IN "
    "DAMAGED CONDITION. COMPLAINTS WILL NOT BE ACCEPTED AFTER 2 DAYS FROM THE DATE OF DELIVERY. "
    "IN CASE OF CLAIM (LOSS), PROOF OF DOCUMENTS SHOULD BE PRODUCED. SETTLEMENT WILL BE MADE "
    "(20 SAR/KGS) PER COMPANY RULES."
)


def _stamp(day: date) -> str:
    return datetime.combine(day, time(9, 0), tzinfo=timezone.utc).isoformat()


def _sample_invoices(start: int, prefix: str, customer: str, city: str, cargo: str, today: date) -> list[Invoice]:
    yesterday = today - timedelta(days=1)
    shipper = Shipper(name=customer, id_no="2577948892", tel="+966549934347", pcs=2, weight=45.5)
    consignee = Consignee(
        name=f"{customer} INDIA",
        address="123 MARKET ROAD",
        post=f"{city} CENTER",
        pin="673001",
        country="INDIA",
        district="KERALA",
        state="KERALA",
        tel="+919336038580",
    )
    older = Invoice(
        invoice_no=f"{prefix}{start}",
        date=format_date(yesterday),
        shipment_type="IND SEA",
        shipper=shipper.model_copy(update={"name": f"{customer} TRADING", "id_no": "", "weight": 120.0}),
        consignee=consignee,
        cargo_items=[InvoiceItem(sl_no=1, description="ELECTRONICS", box_no="E1", qty=2)],
        financials=Financials(total=500, bill_charges=20),
        status_history=[
            StatusHistoryItem(status="Received", timestamp=_stamp(yesterday)),
            StatusHistoryItem(status="Departed from Branch", timestamp=_stamp(today)),
        ],
    )
    newer = Invoice(
        invoice_no=f"{prefix}{start + 1}",
        date=format_date(today),
        shipment_type="IND SEA",
        shipper=shipper,
        consignee=consignee,
        cargo_items=[
            InvoiceItem(sl_no=1, description=cargo, box_no="B1", qty=15),
            InvoiceItem(sl_no=2, description="FOOD STUFF", box_no="B2", qty=5),
        ],
        financials=Financials(total=200, bill_charges=20),
        status_history=[StatusHistoryItem(status="Received", timestamp=_stamp(today))],
    )
    return [newer, older]


def _tenant(
    tenant_id: str,
    parent_id: Optional[str],
    username: str,
    name: str,
    prefix: str,
    start: int,
    location: str,
    rates: tuple[float, float],
    customer: str,
    cargo: str,
    today: date,
) -> Company:
    return Company(
        id=tenant_id,
        parent_id=parent_id,
        username=username,
        password=username,
        expiry_date="2030-12-31",
        settings=AppSettings(
            company_name=name,
            invoice_prefix=prefix,
            invoice_start_number=start,
            location=location,
            address_line2=location,
            is_vat_enabled=True,
            shipment_types=[
                ShipmentType(name="IND SEA", value=rates[0]),
                ShipmentType(name="IND AIR", value=rates[1]),
            ],
            tc_header=DEFAULT_TC_HEADER,
            tc_english=DEFAULT_TC_ENGLISH,
            shipment_status_settings=default_stage_settings(),
        ),
        invoices=_sample_invoices(start, prefix, customer, location, cargo, today),
        financial_accounts=default_accounts(),
        items=default_items(),
    )


def default_tenants(today: Optional[date] = None) -> list[Company]:
    """A head office with two branches, used when the store is empty."""
    today = today or date.today()
    return [
        _tenant("1", None, "test", "TEST CARGO HQ", "HQ-", 1000, "RIYADH", (6, 12),
                "AL RAJHI TRADING", "TEXTILES", today),
        _tenant("2", "1", "test1", "TEST BRANCH 1", "DAM-", 2000, "DAMMAM", (5.5, 11.5),
                "EASTERN SUPPLIES LLC", "INDUSTRIAL PARTS", today),
        _tenant("3", "1", "test2", "TEST BRANCH 2", "JED-", 3000, "JEDDAH", (6.5, 13),
                "RED SEA MARKETS", "GIFT ITEMS", today),
    ]
