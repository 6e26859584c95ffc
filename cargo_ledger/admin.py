from __future__ import annotations

import uuid
from datetime import date, timedelta
from typing import Any, Dict, Iterable, Literal, Optional

from cargo_ledger.errors import LedgerError
from cargo_ledger.finance import default_accounts
from cargo_ledger.items import default_items
from cargo_ledger.models import AppSettings, Company
from cargo_ledger.network import get_tenant, validate_parent
from cargo_ledger.seed import DEFAULT_TC_ENGLISH, DEFAULT_TC_HEADER
from cargo_ledger.status import default_stage_settings


ExpiryFilter = Literal["ALL", "EXPIRING", "EXPIRED"]

EXPIRY_WARNING_DAYS = 30


def one_year_from(today: date) -> str:
    try:
        return today.replace(year=today.year + 1).isoformat()
    except ValueError:  # 29 February
        return (today + timedelta(days=365)).isoformat()


def expiry_of(tenant: Company) -> date:
    try:
        return date.fromisoformat(tenant.expiry_date)
    except ValueError:
        return date.max


def is_expired(tenant: Company, today: date) -> bool:
    return today > expiry_of(tenant)


def create_company(
    tenants: list[Company],
    username: str,
    password: str,
    settings: Dict[str, Any],
    parent_id: Optional[str] = None,
    expiry_date: Optional[str] = None,
    today: Optional[date] = None,
) -> tuple[list[Company], Company]:
    if not username or not password or not settings.get("company_name"):
        raise LedgerError("Company name, username and password are required")
    if any(t.username == username for t in tenants):
        raise LedgerError(f"Username {username!r} is already taken")

    tenant_id = uuid.uuid4().hex[:12]
    validate_parent(tenants, tenant_id, parent_id)

    defaults: Dict[str, Any] = {
        "tc_header": DEFAULT_TC_HEADER,
        "tc_english": DEFAULT_TC_ENGLISH,
        "shipment_status_settings": default_stage_settings(),
    }
    defaults.update({k: v for k, v in settings.items() if v not in (None, "")})
    company = Company(
        id=tenant_id,
        parent_id=parent_id or None,
        username=username,
        password=password,
        expiry_date=expiry_date or one_year_from(today or date.today()),
        settings=AppSettings.model_validate(defaults),
        financial_accounts=default_accounts(),
        items=default_items(),
    )
    return [*tenants, company], company


def update_company(
    tenants: list[Company],
    tenant_id: str,
    username: Optional[str] = None,
    password: Optional[str] = None,
    settings: Optional[Dict[str, Any]] = None,
    parent_id: Optional[str] = None,
    expiry_date: Optional[str] = None,
) -> tuple[list[Company], Company]:
    """Update login and settings; blank values keep what was there before.

    ``parent_id`` is applied as given, so passing None turns a branch back
    into a head office.
    """
    current = get_tenant(tenants, tenant_id)
    validate_parent(tenants, tenant_id, parent_id)
    if username and username != current.username and any(t.username == username for t in tenants):
        raise LedgerError(f"Username {username!r} is already taken")

    merged = current.settings.model_dump()
    for field, value in (settings or {}).items():
        if value in (None, ""):
            continue
        merged[field] = value

    updated = current.model_copy(
        update={
            "username": username or current.username,
            "password": password or current.password,
            "expiry_date": expiry_date or current.expiry_date,
            "parent_id": parent_id or None,
            "settings": AppSettings.model_validate(merged),
        }
    )
    return [updated if t.id == tenant_id else t for t in tenants], updated


def filter_companies(
    tenants: Iterable[Company],
    search: str = "",
    expiry_filter: ExpiryFilter = "ALL",
    today: Optional[date] = None,
) -> list[Company]:
    """Super-admin tenant list, most urgent expiry first."""
    today = today or date.today()
    horizon = today + timedelta(days=EXPIRY_WARNING_DAYS)
    q = search.lower()

    result: list[Company] = []
    for tenant in tenants:
        if q and not (
            q in tenant.settings.company_name.lower()
            or q in tenant.username.lower()
            or q in tenant.settings.location.lower()
        ):
            continue
        expiry = expiry_of(tenant)
        if expiry_filter == "EXPIRED" and not expiry < today:
            continue
        if expiry_filter == "EXPIRING" and not today <= expiry <= horizon:
            continue
        result.append(tenant)
    return sorted(result, key=expiry_of)
