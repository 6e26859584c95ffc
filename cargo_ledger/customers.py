from __future__ import annotations

from typing import Iterable, Literal, Optional

from cargo_ledger.models import AggregatedCustomer, Company, Invoice, Shipper, TaggedInvoice


LookupField = Literal["NAME", "ID", "MOBILE"]

_MIN_ID_LENGTH = 3


def fingerprint(shipper: Shipper) -> str:
    """Identity of a shipper: the ID number when it looks real, else name + phone.

    Two shippers without a usable ID who share a name and phone are the same
    customer on purpose.
    """
    id_no = shipper.id_no or ""
    if len(id_no) > _MIN_ID_LENGTH:
        return f"ID:{id_no}"
    name = (shipper.name or "").strip().lower()
    return f"NM:{name}|{shipper.tel or ''}"


def customer_key(shipper: Shipper, tenant_id: str) -> str:
    return f"{fingerprint(shipper)}_{tenant_id}"


def aggregate_customers(invoices: Iterable[TaggedInvoice]) -> dict[str, AggregatedCustomer]:
    """Fold tagged invoices into one entry per customer key, first-seen display values."""
    customers: dict[str, AggregatedCustomer] = {}
    for tagged in invoices:
        shipper = tagged.invoice.shipper
        if not shipper.name:
            continue
        key = customer_key(shipper, tagged.company_id)
        customer = customers.get(key)
        if customer is None:
            customer = AggregatedCustomer(
                key=key,
                name=shipper.name,
                id_no=shipper.id_no,
                mobile=shipper.tel,
                vat_no=shipper.vatnos,
                location=tagged.location_name,
                company_id=tagged.company_id,
            )
            customers[key] = customer
        customer.total_shipments += 1
    return customers


def search_customers(customers: Iterable[AggregatedCustomer], query: str) -> list[AggregatedCustomer]:
    if not query:
        return list(customers)
    q = query.lower()
    return [c for c in customers if q in c.name.lower() or q in c.mobile or q in c.id_no]


def customer_invoices(invoices: Iterable[TaggedInvoice], key: str) -> list[TaggedInvoice]:
    return [t for t in invoices if customer_key(t.invoice.shipper, t.company_id) == key]


def total_spent(invoices: Iterable[TaggedInvoice]) -> float:
    return sum(t.invoice.financials.net_total for t in invoices)


def edit_customer(
    tenant: Company,
    key: str,
    new_name: str,
    new_phone: str,
    new_id_no: str,
) -> tuple[Company, int]:
    """Rewrite the shipper details on every invoice of ``tenant`` that maps to ``key``.

    The key is recomputed from each invoice instead of being trusted from a
    cache, since earlier edits may have moved invoices between keys.
    Returns the updated tenant and the number of invoices changed.
    """
    updated: list[Invoice] = []
    changed = 0
    for invoice in tenant.invoices:
        if customer_key(invoice.shipper, tenant.id) == key:
            shipper = invoice.shipper.model_copy(
                update={"name": new_name, "tel": new_phone, "id_no": new_id_no}
            )
            invoice = invoice.model_copy(update={"shipper": shipper})
            changed += 1
        updated.append(invoice)
    if not changed:
        return tenant, 0
    return tenant.model_copy(update={"invoices": updated}), changed


def find_returning_shipper(
    invoices: Iterable[Invoice],
    field: LookupField,
    value: str,
) -> Optional[Invoice]:
    """Most recent invoice whose shipper matches ``value``, for auto-filling a new invoice."""
    if not value:
        return None
    needle = value.strip().lower()
    for invoice in invoices:
        shipper = invoice.shipper
        if field == "NAME" and shipper.name.strip().lower() == needle:
            return invoice
        if field == "ID" and shipper.id_no.strip().lower() == needle:
            return invoice
        if field == "MOBILE" and shipper.tel.strip() == value.strip():
            return invoice
    return None


def apply_returning_shipper(draft: Invoice, match: Invoice) -> Invoice:
    shipper = draft.shipper.model_copy(
        update={
            "name": match.shipper.name,
            "id_no": match.shipper.id_no,
            "tel": match.shipper.tel,
            "vatnos": match.shipper.vatnos or draft.shipper.vatnos,
        }
    )
    return draft.model_copy(update={"shipper": shipper, "consignee": match.consignee.model_copy()})
