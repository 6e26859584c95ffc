from __future__ import annotations

from typing import Iterable, Optional

from cargo_ledger.errors import AmbiguousInvoiceError, TenantHierarchyError, TenantNotFoundError
from cargo_ledger.models import Company, Invoice


def resolve_network(
    tenants: Iterable[Company],
    active: Optional[Company],
    is_super_admin: bool = False,
) -> list[Company]:
    """Return the tenants visible to a session, in tenant-list order.

    Super-admin sees everything. A head office sees itself and its direct
    branches. A branch sees its parent and every branch of that parent,
    itself included.
    """
    tenants = list(tenants)
    if is_super_admin:
        return tenants
    if active is None:
        return []

    if not active.parent_id:
        return [t for t in tenants if t.id == active.id or t.parent_id == active.id]

    return [
        t
        for t in tenants
        if t.id == active.parent_id or t.parent_id == active.parent_id or t.id == active.id
    ]


def get_tenant(tenants: Iterable[Company], tenant_id: str) -> Company:
    for tenant in tenants:
        if tenant.id == tenant_id:
            return tenant
    raise TenantNotFoundError(f"Unknown tenant: {tenant_id}")


def head_office_of(tenants: Iterable[Company], tenant: Company) -> Company:
    if tenant.is_head_office:
        return tenant
    return get_tenant(tenants, tenant.parent_id or "")


def branches_of(tenants: Iterable[Company], head_office: Company) -> list[Company]:
    return [t for t in tenants if t.parent_id == head_office.id]


def validate_parent(tenants: Iterable[Company], tenant_id: Optional[str], parent_id: Optional[str]) -> None:
    """Reject any parent assignment that would nest branches more than one level deep."""
    if not parent_id:
        return
    tenants = list(tenants)
    if parent_id == tenant_id:
        raise TenantHierarchyError("A tenant cannot be its own parent")
    parent = get_tenant(tenants, parent_id)
    if parent.parent_id:
        raise TenantHierarchyError(f"{parent_id} is a branch and cannot own branches")
    if tenant_id and any(t.parent_id == tenant_id for t in tenants):
        raise TenantHierarchyError(f"{tenant_id} has branches and cannot become a branch")


def find_invoice(tenant: Company, invoice_no: str) -> Optional[Invoice]:
    for invoice in tenant.invoices:
        if invoice.invoice_no == invoice_no:
            return invoice
    return None


def find_invoice_owner(network: Iterable[Company], invoice_no: str) -> Optional[Company]:
    """Find the tenant in ``network`` that owns ``invoice_no``.

    Numbers are only unique per tenant, so a number held by two tenants is
    reported instead of silently picking one.
    """
    owners = [t for t in network if find_invoice(t, invoice_no) is not None]
    if len(owners) > 1:
        ids = ", ".join(t.id for t in owners)
        raise AmbiguousInvoiceError(f"Invoice {invoice_no} exists in tenants {ids}")
    return owners[0] if owners else None
