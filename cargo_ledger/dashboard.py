from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Literal, Optional

from cargo_ledger.models import DEFAULT_STATUS, Company, DashboardStats, TaggedInvoice
from cargo_ledger.parse_utils import parse_bound, parse_invoice_date


ALL_LOCATIONS = "ALL"

DateRange = Literal["TODAY", "WEEK", "MONTH", "LAST_MONTH", "CUSTOM", "ALL"]
DATE_RANGES: tuple[str, ...] = ("TODAY", "WEEK", "MONTH", "LAST_MONTH", "CUSTOM", "ALL")


def flatten_network(network: Iterable[Company]) -> list[TaggedInvoice]:
    return [
        TaggedInvoice(
            invoice=invoice,
            company_id=company.id,
            company_name=company.settings.company_name,
            location_name=company.location_name,
            is_head_office=company.is_head_office,
        )
        for company in network
        for invoice in company.invoices
    ]


def filter_by_location(invoices: Iterable[TaggedInvoice], location_filter: str) -> list[TaggedInvoice]:
    if not location_filter or location_filter == ALL_LOCATIONS:
        return list(invoices)
    return [t for t in invoices if t.company_id == location_filter]


def matches_search(tagged: TaggedInvoice, query: str) -> bool:
    q = query.lower()
    invoice = tagged.invoice
    return (
        q in invoice.invoice_no.lower()
        or q in invoice.consignee.name.lower()
        or q in invoice.shipper.name.lower()
        or q in invoice.consignee.tel.lower()
        or q in invoice.shipper.tel.lower()
        or q in invoice.date.lower()
    )


def start_of_week(today: date) -> date:
    """Most recent Sunday on or before ``today``."""
    return today - timedelta(days=(today.weekday() + 1) % 7)


def previous_month(today: date) -> tuple[int, int]:
    if today.month == 1:
        return today.year - 1, 12
    return today.year, today.month - 1


def in_date_range(
    invoice_date: Optional[date],
    date_range: str,
    today: date,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> bool:
    if date_range == "ALL":
        return True
    if date_range == "CUSTOM" and custom_start is None and custom_end is None:
        return True
    if invoice_date is None:
        return False

    if date_range == "TODAY":
        return invoice_date == today
    if date_range == "WEEK":
        return start_of_week(today) <= invoice_date <= today
    if date_range == "MONTH":
        return (invoice_date.year, invoice_date.month) == (today.year, today.month)
    if date_range == "LAST_MONTH":
        return (invoice_date.year, invoice_date.month) == previous_month(today)
    if date_range == "CUSTOM":
        if custom_start is not None and invoice_date < custom_start:
            return False
        if custom_end is not None and invoice_date > custom_end:
            return False
        return True
    raise ValueError(f"Unknown date range: {date_range}")


def query_invoices(
    network: Iterable[Company],
    location_filter: str = ALL_LOCATIONS,
    search_text: str = "",
    date_range: str = "TODAY",
    custom_start: str | date | None = None,
    custom_end: str | date | None = None,
    today: Optional[date] = None,
) -> list[TaggedInvoice]:
    """Invoices of ``network`` after location, search and date filters, in that order."""
    today = today or date.today()
    start = parse_bound(custom_start)
    end = parse_bound(custom_end)

    result = filter_by_location(flatten_network(network), location_filter)
    if search_text:
        result = [t for t in result if matches_search(t, search_text)]
    return [
        t
        for t in result
        if in_date_range(parse_invoice_date(t.invoice.date), date_range, today, start, end)
    ]


def aggregate(invoices: Iterable[TaggedInvoice]) -> DashboardStats:
    total_revenue = 0.0
    total_shipments = 0
    histogram: dict[str, int] = {}
    for tagged in invoices:
        total_revenue += tagged.invoice.financials.net_total
        total_shipments += 1
        status = tagged.invoice.status or DEFAULT_STATUS
        histogram[status] = histogram.get(status, 0) + 1
    return DashboardStats(
        total_revenue=total_revenue,
        total_shipments=total_shipments,
        status_histogram=histogram,
    )
