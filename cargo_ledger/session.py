from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from cargo_ledger import admin as tenant_admin
from cargo_ledger import finance, items
from cargo_ledger.credentials import SuperAdminCredentials, super_admin_credentials
from cargo_ledger.customers import (
    LookupField,
    aggregate_customers,
    apply_returning_shipper,
    customer_invoices,
    edit_customer,
    find_returning_shipper,
    search_customers,
    total_spent,
)
from cargo_ledger.dashboard import ALL_LOCATIONS, aggregate, flatten_network, filter_by_location, query_invoices
from cargo_ledger.errors import (
    AccountExpiredError,
    InvalidCredentialsError,
    InvoiceNotFoundError,
    PermissionDeniedError,
    PersistenceError,
)
from cargo_ledger.extraction import Extractor, prefill_draft
from cargo_ledger.financials import compute_invoice_financials, reconcile_manual_edit
from cargo_ledger.models import (
    AggregatedCustomer,
    BulkStatusEvent,
    Company,
    DashboardStats,
    FinancialTransaction,
    Financials,
    Invoice,
    ItemMaster,
    StatusHistoryItem,
    TaggedInvoice,
    TransactionMode,
    TransactionType,
)
from cargo_ledger.network import find_invoice, get_tenant, resolve_network
from cargo_ledger.numbering import next_invoice_number
from cargo_ledger.parse_utils import format_date
from cargo_ledger.seed import default_tenants
from cargo_ledger.status import bulk_set_status, configure_stages, ensure_known_status, set_status, status_chips
from cargo_ledger.store import TenantStore


logger = logging.getLogger(__name__)


class Ledger:
    """In-memory tenant snapshot plus its persistence store.

    Every mutation swaps in a new full tenant list and hands it to the store
    on a single background worker. Callers never wait for the save, so a
    failed save leaves the snapshot usable and is reported through
    ``last_save_error``.
    """

    def __init__(
        self,
        store: TenantStore,
        executor: Optional[ThreadPoolExecutor] = None,
        super_admin: Optional[SuperAdminCredentials] = None,
    ) -> None:
        self.store = store
        self.super_admin = super_admin
        self.last_save_error: Optional[BaseException] = None
        self._tenants: list[Company] = []
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="ledger-save")
        self._pending: list[Future] = []

    @property
    def tenants(self) -> list[Company]:
        return list(self._tenants)

    def load(self, seed_if_empty: bool = True) -> list[Company]:
        try:
            tenants = self.store.load()
        except PersistenceError:
            logger.exception("Tenant load failed; keeping %d tenants in memory", len(self._tenants))
            raise
        except Exception as exc:
            logger.exception("Tenant load failed; keeping %d tenants in memory", len(self._tenants))
            raise PersistenceError(f"Could not load tenants: {exc}") from exc

        if not tenants and seed_if_empty:
            logger.info("Store is empty, seeding default tenants")
            self.commit(default_tenants())
        else:
            self._tenants = list(tenants)
        logger.info("Loaded tenants", extra={"count": len(self._tenants)})
        return self.tenants

    def commit(self, tenants: Iterable[Company]) -> None:
        self._tenants = list(tenants)
        self._persist()

    def replace_tenant(self, tenant: Company) -> None:
        get_tenant(self._tenants, tenant.id)
        self.commit(tenant if t.id == tenant.id else t for t in self._tenants)

    def _persist(self) -> None:
        snapshot = list(self._tenants)
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(self._executor.submit(self._save, snapshot))

    def _save(self, snapshot: list[Company]) -> None:
        try:
            self.store.save_all(snapshot)
        except Exception as exc:
            logger.error("Tenant save failed, continuing with in-memory snapshot: %s", exc)
            self.last_save_error = exc
            return
        self.last_save_error = None

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every queued save has finished."""
        wait(list(self._pending), timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    # -- authentication ----------------------------------------------------

    def authenticate(self, username: str, password: str, today: Optional[date] = None) -> "Session":
        admin = self.super_admin
        if admin is not None and username == admin.username and password == admin.password:
            logger.info("Super-admin login")
            return Session(ledger=self, company_id=None, is_super_admin=True, username=username)

        for tenant in self._tenants:
            if tenant.username == username and tenant.password == password:
                if tenant_admin.is_expired(tenant, today or date.today()):
                    raise AccountExpiredError(f"Account for {tenant.settings.company_name} expired on {tenant.expiry_date}")
                location = ALL_LOCATIONS if tenant.is_head_office else tenant.id
                return Session(ledger=self, company_id=tenant.id, username=username, location_filter=location)
        raise InvalidCredentialsError("Invalid username or password")


def build_ledger(store: TenantStore) -> Ledger:
    return Ledger(store, super_admin=super_admin_credentials())


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


@dataclass
class Session:
    """One logged-in tenant (or super-admin) acting on the shared ledger."""

    ledger: Ledger
    company_id: Optional[str]
    is_super_admin: bool = False
    username: str = ""
    location_filter: str = ALL_LOCATIONS

    # -- scope -------------------------------------------------------------

    @property
    def company(self) -> Optional[Company]:
        if self.company_id is None:
            return None
        return get_tenant(self.ledger.tenants, self.company_id)

    def acting_tenant(self) -> Company:
        company = self.company
        if company is None:
            raise PermissionDeniedError("This action needs a tenant login")
        return company

    def network(self) -> list[Company]:
        return resolve_network(self.ledger.tenants, self.company, self.is_super_admin)

    def network_tenant(self, tenant_id: Optional[str]) -> Company:
        """Tenant ``tenant_id`` if this session can see it; the acting tenant when None."""
        if not tenant_id:
            return self.acting_tenant()
        for tenant in self.network():
            if tenant.id == tenant_id:
                return tenant
        raise PermissionDeniedError(f"Tenant {tenant_id} is outside this session's network")

    def require_super_admin(self) -> None:
        if not self.is_super_admin:
            raise PermissionDeniedError("Super-admin access required")

    # -- invoices ----------------------------------------------------------

    def new_invoice_draft(self, today: Optional[date] = None) -> Invoice:
        tenant = self.acting_tenant()
        settings = tenant.settings
        first_stage = settings.stage_names()[0]
        return Invoice(
            invoice_no=next_invoice_number(tenant),
            date=format_date(today or date.today()),
            shipment_type=settings.shipment_types[0].name if settings.shipment_types else "",
            financials=Financials(vat=15.0 if settings.is_vat_enabled else 0.0),
            status_history=[
                StatusHistoryItem(
                    status=first_stage,
                    timestamp=_now(None).isoformat(),
                    updated_by=self.username,
                    location=tenant.location_name,
                    action="Created",
                )
            ],
        )

    def save_invoice(
        self,
        invoice: Invoice,
        owner_id: Optional[str] = None,
        recalculate: bool = False,
        now: Optional[datetime] = None,
    ) -> Invoice:
        """Store ``invoice`` on its owning tenant and regenerate its ledger entries.

        An existing invoice keeps its stored history; a status change on the
        submitted copy is appended to that history instead of replacing it.
        Without ``recalculate``, hand-edited figures are reconciled against
        the stored ones, so a changed total or bill charge recomputes VAT.
        """
        owner = self.network_tenant(owner_id)
        existing = find_invoice(owner, invoice.invoice_no)
        if existing is None:
            for status in dict.fromkeys(h.status for h in invoice.status_history):
                ensure_known_status(owner, status)
        elif invoice.status != existing.status:
            ensure_known_status(owner, invoice.status)

        if recalculate:
            financials = compute_invoice_financials(invoice, owner.settings)
        else:
            previous = existing.financials if existing is not None else Financials(vat=invoice.financials.vat)
            financials = reconcile_manual_edit(invoice.financials, previous, owner.settings.is_vat_enabled)
        saved = invoice.model_copy(update={"financials": financials})

        if existing is not None:
            saved = saved.model_copy(update={"status_history": list(existing.status_history)})
            if invoice.status != existing.status:
                saved = set_status(
                    saved,
                    invoice.status,
                    updated_by=self.username,
                    location=owner.location_name,
                    action="Modified Details",
                    now=now,
                )
            invoices = [saved if i.invoice_no == invoice.invoice_no else i for i in owner.invoices]
        else:
            invoices = [saved, *owner.invoices]

        updated = owner.model_copy(update={"invoices": invoices})
        updated = finance.sync_invoice_transactions(updated, saved, now)
        self.ledger.replace_tenant(updated)
        logger.info(
            "Invoice saved",
            extra={"tenant_id": owner.id, "invoice_no": saved.invoice_no, "new": existing is None},
        )
        return saved

    def get_invoice(self, invoice_no: str, owner_id: Optional[str] = None) -> Invoice:
        owner = self.network_tenant(owner_id)
        invoice = find_invoice(owner, invoice_no)
        if invoice is None:
            raise InvoiceNotFoundError(f"Invoice {invoice_no} not found for tenant {owner.id}")
        return invoice

    def update_status(
        self,
        invoice_no: str,
        new_status: str,
        remark: Optional[str] = None,
        owner_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Invoice:
        owner = self.network_tenant(owner_id)
        ensure_known_status(owner, new_status)
        current = self.get_invoice(invoice_no, owner.id)
        changed = set_status(
            current,
            new_status,
            remark,
            updated_by=self.username,
            location=owner.location_name,
            now=now,
        )
        invoices = [changed if i.invoice_no == invoice_no else i for i in owner.invoices]
        self.ledger.replace_tenant(owner.model_copy(update={"invoices": invoices}))
        return changed

    def bulk_update_status(
        self,
        invoice_nos: Iterable[str],
        new_status: str,
        remark: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[BulkStatusEvent]:
        tenant = self.acting_tenant()
        updated, event = bulk_set_status(
            tenant, invoice_nos, new_status, remark, updated_by=self.username, now=now
        )
        if event is not None:
            self.ledger.replace_tenant(updated)
        return event

    # -- dashboard ---------------------------------------------------------

    def query(
        self,
        search_text: str = "",
        date_range: str = "TODAY",
        custom_start: Optional[str] = None,
        custom_end: Optional[str] = None,
        location_filter: Optional[str] = None,
        today: Optional[date] = None,
    ) -> list[TaggedInvoice]:
        return query_invoices(
            self.network(),
            location_filter or self.location_filter,
            search_text,
            date_range,
            custom_start,
            custom_end,
            today,
        )

    def stats(self, invoices: Iterable[TaggedInvoice]) -> DashboardStats:
        return aggregate(invoices)

    def chips(self, stats: DashboardStats) -> list[tuple[str, int]]:
        company = self.company
        if company is not None:
            stage_names = company.settings.stage_names()
        else:
            stage_names = []
        return status_chips(stage_names, stats.status_histogram)

    def cash_position(self, location_filter: Optional[str] = None) -> finance.CashPosition:
        location = location_filter or self.location_filter
        tenants = self.network()
        if location and location != ALL_LOCATIONS:
            tenants = [t for t in tenants if t.id == location]
        return finance.cash_position(tenants)

    # -- customers ---------------------------------------------------------

    def _scoped_invoices(self, location_filter: Optional[str] = None) -> list[TaggedInvoice]:
        return filter_by_location(flatten_network(self.network()), location_filter or self.location_filter)

    def customers(self, search: str = "", location_filter: Optional[str] = None) -> list[AggregatedCustomer]:
        found = aggregate_customers(self._scoped_invoices(location_filter)).values()
        return search_customers(found, search) if search else list(found)

    def customer_detail(self, key: str) -> tuple[AggregatedCustomer, list[TaggedInvoice], float]:
        tagged = flatten_network(self.network())
        customer = aggregate_customers(tagged).get(key)
        if customer is None:
            raise InvoiceNotFoundError(f"No invoices for customer {key}")
        history = customer_invoices(tagged, key)
        return customer, history, total_spent(history)

    def edit_customer(self, key: str, new_name: str, new_phone: str, new_id_no: str) -> int:
        customer, _, _ = self.customer_detail(key)
        tenant = self.network_tenant(customer.company_id)
        updated, changed = edit_customer(tenant, key, new_name, new_phone, new_id_no)
        if changed:
            self.ledger.replace_tenant(updated)
        return changed

    def returning_shipper(self, field_name: LookupField, value: str) -> Optional[Invoice]:
        invoices = [t.invoice for t in flatten_network(self.network())]
        return find_returning_shipper(invoices, field_name, value)

    def draft_for_returning_shipper(self, field_name: LookupField, value: str) -> Invoice:
        draft = self.new_invoice_draft()
        match = self.returning_shipper(field_name, value)
        return apply_returning_shipper(draft, match) if match is not None else draft

    def prefill(self, data: bytes, extractor: Optional[Extractor] = None) -> tuple[Invoice, list[str]]:
        draft = self.new_invoice_draft()
        return prefill_draft(draft, data, extractor, self.acting_tenant().settings.is_vat_enabled)

    # -- finance, items, stages ----------------------------------------------

    def finance_summary(self, tenant_id: Optional[str] = None) -> finance.FinanceSummary:
        return finance.finance_summary(self.network_tenant(tenant_id))

    def add_transaction(
        self,
        account_id: str,
        amount: float,
        tx_type: TransactionType,
        description: str,
        payment_mode: TransactionMode = "CASH",
        tx_date: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FinancialTransaction:
        updated, tx = finance.add_manual_transaction(
            self.acting_tenant(), account_id, amount, tx_type, description, payment_mode, tx_date, now
        )
        self.ledger.replace_tenant(updated)
        return tx

    def add_item(self, name: str) -> ItemMaster:
        updated, item = items.add_item(self.acting_tenant(), name)
        self.ledger.replace_tenant(updated)
        return item

    def rename_item(self, item_id: str, name: str) -> None:
        self.ledger.replace_tenant(items.rename_item(self.acting_tenant(), item_id, name))

    def delete_item(self, item_id: str) -> None:
        self.ledger.replace_tenant(items.delete_item(self.acting_tenant(), item_id))

    def configure_stages(self, names: list[str]) -> list[str]:
        updated = configure_stages(self.acting_tenant(), names)
        self.ledger.replace_tenant(updated)
        return updated.settings.stage_names()

    # -- tenant administration ---------------------------------------------

    def list_companies(
        self,
        search: str = "",
        expiry_filter: tenant_admin.ExpiryFilter = "ALL",
        today: Optional[date] = None,
    ) -> list[Company]:
        self.require_super_admin()
        return tenant_admin.filter_companies(self.ledger.tenants, search, expiry_filter, today)

    def create_company(self, **kwargs: Any) -> Company:
        self.require_super_admin()
        tenants, company = tenant_admin.create_company(self.ledger.tenants, **kwargs)
        self.ledger.commit(tenants)
        logger.info("Tenant created", extra={"tenant_id": company.id, "parent_id": company.parent_id})
        return company

    def update_company(self, tenant_id: str, **kwargs: Any) -> Company:
        self.require_super_admin()
        tenants, company = tenant_admin.update_company(self.ledger.tenants, tenant_id, **kwargs)
        self.ledger.commit(tenants)
        return company
