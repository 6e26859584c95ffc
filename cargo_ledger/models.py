# cargo_ledger/models.py
from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel


DEFAULT_STATUS = "Received"

DEFAULT_STAGES: tuple[str, ...] = (
    "Received",
    "Departed from Branch",
    "Received at HO",
    "Loaded into Container",
    "In transit",
    "Arrived at destination",
    "Out for delivery",
    "Delivered",
)

DEFAULT_INVOICE_START = 1000
DEFAULT_BILL_RATE_PER_PIECE = 40.0
DEFAULT_BRAND_COLOR = "#7f1d1d"

PaymentMode = Literal["CASH", "BANK", "SPLIT"]
TransactionMode = Literal["CASH", "BANK"]
TransactionType = Literal["INCOME", "EXPENSE"]
AccountType = Literal["REVENUE", "EXPENSE", "ASSET", "LIABILITY"]


class LedgerModel(BaseModel):
    """Stored documents use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class ShipmentType(LedgerModel):
    name: str
    value: float = Field(default=0.0, ge=0)


class ShipmentStatusSetting(LedgerModel):
    id: str
    name: str
    order: int = 0


class AppSettings(LedgerModel):
    company_name: str = ""
    company_arabic_name: str = ""
    invoice_prefix: str = ""
    invoice_start_number: int = DEFAULT_INVOICE_START
    location: str = ""
    address_line1: str = ""
    address_line2: str = ""
    address_line1_arabic: str = ""
    address_line2_arabic: str = ""
    phone1: str = ""
    phone2: str = ""
    vatnoc: str = ""
    is_vat_enabled: bool = False
    logo_url: str = ""
    brand_color: str = DEFAULT_BRAND_COLOR
    shipment_types: list[ShipmentType] = []
    bill_rate_per_piece: float = Field(default=DEFAULT_BILL_RATE_PER_PIECE, ge=0)
    tc_header: str = ""
    tc_english: str = ""
    tc_arabic: str = ""
    shipment_status_settings: list[ShipmentStatusSetting] = []

    def stage_names(self) -> list[str]:
        if not self.shipment_status_settings:
            return list(DEFAULT_STAGES)
        ordered = sorted(self.shipment_status_settings, key=lambda s: s.order)
        return [s.name for s in ordered]

    def rate_for(self, shipment_type: str) -> float:
        for entry in self.shipment_types:
            if entry.name == shipment_type:
                return entry.value
        return 0.0


# ---------------------------------------------------------------------------
# Invoice
# ---------------------------------------------------------------------------

class Shipper(LedgerModel):
    name: str = ""
    id_no: str = ""
    tel: str = ""
    vatnos: str = ""
    pcs: int = Field(default=0, ge=0)
    weight: float = Field(default=0.0, ge=0)

    @field_validator("name", "id_no", "tel", "vatnos", mode="before")
    @classmethod
    def _blank_if_none(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("pcs", "weight", mode="before")
    @classmethod
    def _zero_if_none(cls, value: Any) -> Any:
        return 0 if value is None else value


class Consignee(LedgerModel):
    name: str = ""
    address: str = ""
    post: str = ""
    pin: str = ""
    country: str = ""
    district: str = ""
    state: str = ""
    tel: str = ""
    tel2: str = ""

    # Older documents store missing address lines as null.
    @field_validator("*", mode="before")
    @classmethod
    def _blank_if_none(cls, value: Any) -> Any:
        return "" if value is None else value


class InvoiceItem(LedgerModel):
    sl_no: int
    description: str = ""
    box_no: str = ""
    qty: int = 0
    weight: Optional[float] = None


class SplitDetails(LedgerModel):
    cash: float = 0.0
    bank: float = 0.0


class Financials(LedgerModel):
    total: float = 0.0
    bill_charges: float = 0.0
    vat: float = 0.0  # percent, e.g. 15.0
    vat_amount: float = 0.0
    net_total: float = 0.0

    @model_validator(mode="after")
    def _derive_net_total(self) -> "Financials":
        self.net_total = self.total + self.bill_charges + self.vat_amount
        return self


class StatusHistoryItem(LedgerModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status: str
    timestamp: str
    updated_by: Optional[str] = None
    remark: Optional[str] = None
    location: Optional[str] = None
    action: Optional[str] = None


class Invoice(LedgerModel):
    invoice_no: str
    date: str
    shipment_type: str = ""
    payment_mode: Optional[PaymentMode] = None
    split_details: Optional[SplitDetails] = None
    shipper: Shipper = Field(default_factory=Shipper)
    consignee: Consignee = Field(default_factory=Consignee)
    cargo_items: list[InvoiceItem] = []
    financials: Financials = Field(default_factory=Financials)
    status_history: list[StatusHistoryItem] = []

    @model_validator(mode="before")
    @classmethod
    def _seed_history(cls, data: Any) -> Any:
        # Older documents carry only a "status" field.
        if not isinstance(data, dict):
            return data
        history = data.get("statusHistory", data.get("status_history"))
        if history:
            return data
        data = dict(data)
        data["statusHistory"] = [
            {"status": data.get("status") or DEFAULT_STATUS, "timestamp": "", "action": "Imported"}
        ]
        data.pop("status_history", None)
        return data

    @field_validator("shipper", "consignee", "financials", mode="before")
    @classmethod
    def _empty_if_none(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("cargo_items", mode="before")
    @classmethod
    def _no_items_if_none(cls, value: Any) -> Any:
        return [] if value is None else value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> str:
        return self.status_history[-1].status


# ---------------------------------------------------------------------------
# Finance, items, audit
# ---------------------------------------------------------------------------

class FinancialAccount(LedgerModel):
    id: str
    name: str
    type: AccountType
    is_system: bool = False


class FinancialTransaction(LedgerModel):
    id: str
    date: str
    account_id: str
    amount: float
    type: TransactionType
    description: str = ""
    reference_id: Optional[str] = None
    payment_mode: Optional[TransactionMode] = None
    timestamp: str = ""


class ItemMaster(LedgerModel):
    id: str
    name: str


class BulkStatusEvent(LedgerModel):
    id: str
    timestamp: str
    status: str
    affected_invoices: list[str]
    updated_by: str = ""
    location: str = ""
    remark: Optional[str] = None


# ---------------------------------------------------------------------------
# Tenant
# ---------------------------------------------------------------------------

class Company(LedgerModel):
    id: str
    parent_id: Optional[str] = None
    username: str
    password: str
    expiry_date: str = "2099-12-31"
    settings: AppSettings = Field(default_factory=AppSettings)
    invoices: list[Invoice] = []
    financial_accounts: list[FinancialAccount] = []
    financial_transactions: list[FinancialTransaction] = []
    items: list[ItemMaster] = []
    bulk_status_events: list[BulkStatusEvent] = []

    @property
    def is_head_office(self) -> bool:
        return not self.parent_id

    @property
    def location_name(self) -> str:
        s = self.settings
        return s.location or s.address_line2 or s.company_name


# ---------------------------------------------------------------------------
# Derived views (never persisted)
# ---------------------------------------------------------------------------

class TaggedInvoice(LedgerModel):
    invoice: Invoice
    company_id: str
    company_name: str = ""
    location_name: str = ""
    is_head_office: bool = False


class AggregatedCustomer(LedgerModel):
    key: str
    name: str
    id_no: str = ""
    mobile: str = ""
    vat_no: str = ""
    location: str = ""
    company_id: str
    total_shipments: int = 0


class DashboardStats(LedgerModel):
    total_revenue: float = 0.0
    total_shipments: int = 0
    status_histogram: dict[str, int] = {}


class PartialShipper(LedgerModel):
    name: Optional[str] = None
    id_no: Optional[str] = None
    tel: Optional[str] = None
    vatnos: Optional[str] = None
    pcs: Optional[int] = None
    weight: Optional[float] = None


class PartialConsignee(LedgerModel):
    name: Optional[str] = None
    address: Optional[str] = None
    post: Optional[str] = None
    pin: Optional[str] = None
    country: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    tel: Optional[str] = None
    tel2: Optional[str] = None


class PartialFinancials(LedgerModel):
    total: Optional[float] = None
    bill_charges: Optional[float] = None
    vat: Optional[float] = None
    vat_amount: Optional[float] = None


class PartialInvoice(LedgerModel):
    """Whatever the extraction service could read; unset fields stay None."""

    invoice_no: Optional[str] = None
    date: Optional[str] = None
    shipment_type: Optional[str] = None
    shipper: Optional[PartialShipper] = None
    consignee: Optional[PartialConsignee] = None
    cargo_items: Optional[list[InvoiceItem]] = None
    financials: Optional[PartialFinancials] = None
    warnings: list[str] = []
