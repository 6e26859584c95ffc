from __future__ import annotations

import base64
import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from pydantic import ValidationError

from cargo_ledger.dashboard import DATE_RANGES
from cargo_ledger.errors import (
    AccountExpiredError,
    AmbiguousInvoiceError,
    InvalidCredentialsError,
    InvoiceNotFoundError,
    LedgerError,
    PermissionDeniedError,
    PersistenceError,
    TenantHierarchyError,
    TenantNotFoundError,
    UnknownStatusError,
)
from cargo_ledger.firestore_store import FirestoreTenantStore
from cargo_ledger.models import Company, Invoice
from cargo_ledger.session import Ledger, Session, build_ledger
from cargo_ledger.store import build_store


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cargo-ledger")

APP_VERSION = os.getenv("APP_VERSION", "0.1.0")
EXTRACTION_ENABLED = os.getenv("EXTRACTION_ENABLED", "").lower() in {"1", "true", "yes", "on"}
MAX_UPLOAD_BYTES = os.getenv("MAX_UPLOAD_BYTES")

app = FastAPI()

_LEDGER: Optional[Ledger] = None

_ERROR_STATUS = {
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    AccountExpiredError: status.HTTP_403_FORBIDDEN,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    TenantNotFoundError: status.HTTP_404_NOT_FOUND,
    InvoiceNotFoundError: status.HTTP_404_NOT_FOUND,
    AmbiguousInvoiceError: status.HTTP_400_BAD_REQUEST,
    UnknownStatusError: status.HTTP_400_BAD_REQUEST,
    TenantHierarchyError: status.HTTP_400_BAD_REQUEST,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _get_ledger() -> Ledger:
    global _LEDGER
    if _LEDGER is None:
        ledger = build_ledger(build_store())
        try:
            ledger.load()
        except PersistenceError as exc:
            logger.exception("Ledger load failed")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
        _LEDGER = ledger
    return _LEDGER


def _http_error(exc: LedgerError) -> HTTPException:
    code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=code, detail=str(exc))


def _max_upload_bytes() -> Optional[int]:
    if not MAX_UPLOAD_BYTES:
        return None
    try:
        return int(MAX_UPLOAD_BYTES)
    except ValueError:
        logger.warning("Invalid MAX_UPLOAD_BYTES value: %s", MAX_UPLOAD_BYTES)
        return None


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Basic"},
    )


def _check_basic_auth(request: Request) -> Session:
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.lower().startswith("basic "):
        raise _unauthorized()

    token = auth_header.split(" ", 1)[1].strip()
    try:
        decoded = base64.b64decode(token).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        raise _unauthorized()

    if ":" not in decoded:
        raise _unauthorized()

    username, password = decoded.split(":", 1)
    try:
        session = _get_ledger().authenticate(username, password)
    except InvalidCredentialsError:
        raise _unauthorized()
    except AccountExpiredError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))

    location = request.query_params.get("location")
    if location:
        session.location_filter = location
    return session


async def _json_object(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc

    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="JSON payload must be an object")
    return payload


def _company_summary(company: Company) -> Dict[str, Any]:
    return {
        "id": company.id,
        "parent_id": company.parent_id,
        "company_name": company.settings.company_name,
        "location": company.location_name,
        "is_head_office": company.is_head_office,
        "username": company.username,
        "expiry_date": company.expiry_date,
    }


def _check_date_range(date_range: str) -> str:
    value = (date_range or "TODAY").upper()
    if value not in DATE_RANGES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown date_range: {date_range}")
    return value


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/version")
async def version() -> Dict[str, Any]:
    return {
        "status": "ok",
        "revision": os.getenv("K_REVISION"),
        "service": os.getenv("K_SERVICE"),
        "app_version": APP_VERSION,
    }


@app.get("/network")
async def network(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    return {
        "status": "ok",
        "company_id": session.company_id,
        "is_super_admin": session.is_super_admin,
        "location_filter": session.location_filter,
        "tenants": [_company_summary(c) for c in session.network()],
    }


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------

@app.get("/invoices")
async def list_invoices(
    request: Request,
    search: str = "",
    date_range: str = "TODAY",
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    found = session.query(search, _check_date_range(date_range), start, end)
    return {"status": "ok", "count": len(found), "invoices": [t.model_dump(mode="json") for t in found]}


@app.get("/invoices/draft")
async def invoice_draft(request: Request, field: Optional[str] = None, value: str = "") -> Dict[str, Any]:
    session = _check_basic_auth(request)
    try:
        if field:
            lookup = field.upper()
            if lookup not in {"NAME", "ID", "MOBILE"}:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown lookup field: {field}")
            draft = session.draft_for_returning_shipper(lookup, value)  # type: ignore[arg-type]
        else:
            draft = session.new_invoice_draft()
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "invoice": draft.model_dump(mode="json")}


@app.get("/invoices/{invoice_no}")
async def get_invoice(request: Request, invoice_no: str, tenant_id: Optional[str] = None) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    try:
        invoice = session.get_invoice(invoice_no, tenant_id)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "invoice": invoice.model_dump(mode="json")}


@app.post("/invoices")
async def save_invoice(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    try:
        invoice = Invoice.model_validate(payload.get("invoice") or {})
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        saved = session.save_invoice(
            invoice,
            owner_id=payload.get("tenant_id"),
            recalculate=bool(payload.get("recalculate")),
        )
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "invoice": saved.model_dump(mode="json")}


@app.post("/invoices/bulk-status")
async def bulk_status(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    new_status = payload.get("status")
    if not new_status:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing status")
    selection = payload.get("invoice_nos") or []
    if not isinstance(selection, list):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invoice_nos must be a list")

    try:
        event = session.bulk_update_status([str(n) for n in selection], str(new_status), payload.get("remark"))
    except LedgerError as exc:
        raise _http_error(exc) from exc
    if event is None:
        return {"status": "ok", "updated": 0, "event": None}
    return {"status": "ok", "updated": len(event.affected_invoices), "event": event.model_dump(mode="json")}


@app.post("/invoices/{invoice_no}/status")
async def invoice_status(request: Request, invoice_no: str) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    new_status = payload.get("status")
    if not new_status:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing status")

    try:
        invoice = session.update_status(
            invoice_no,
            str(new_status),
            payload.get("remark"),
            owner_id=payload.get("tenant_id"),
        )
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "invoice": invoice.model_dump(mode="json")}


# ---------------------------------------------------------------------------
# Dashboard and customers
# ---------------------------------------------------------------------------

@app.get("/dashboard")
async def dashboard(
    request: Request,
    search: str = "",
    date_range: str = "TODAY",
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    found = session.query(search, _check_date_range(date_range), start, end)
    stats = session.stats(found)
    return {
        "status": "ok",
        "stats": stats.model_dump(mode="json"),
        "chips": [{"status": name, "count": count} for name, count in session.chips(stats)],
        "cash_position": session.cash_position().model_dump(mode="json"),
    }


@app.get("/customers")
async def customers(request: Request, search: str = "") -> Dict[str, Any]:
    session = _check_basic_auth(request)
    found = session.customers(search)
    return {"status": "ok", "count": len(found), "customers": [c.model_dump(mode="json") for c in found]}


@app.get("/customers/{key}")
async def customer_detail(request: Request, key: str) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    try:
        customer, history, spent = session.customer_detail(key)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {
        "status": "ok",
        "customer": customer.model_dump(mode="json"),
        "invoices": [t.model_dump(mode="json") for t in history],
        "total_spent": spent,
    }


@app.put("/customers/{key}")
async def edit_customer(request: Request, key: str) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    name = (payload.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing name")

    try:
        changed = session.edit_customer(key, name, payload.get("phone") or "", payload.get("id_no") or "")
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "updated": changed}


# ---------------------------------------------------------------------------
# Finance, items, stages
# ---------------------------------------------------------------------------

@app.get("/finance")
async def finance_overview(request: Request, tenant_id: Optional[str] = None) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    try:
        summary = session.finance_summary(tenant_id)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "summary": summary.model_dump(mode="json")}


@app.post("/finance/transactions")
async def add_transaction(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    tx_type = str(payload.get("type") or "").upper()
    if tx_type not in {"INCOME", "EXPENSE"}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="type must be INCOME or EXPENSE")
    payment_mode = str(payload.get("payment_mode") or "CASH").upper()
    if payment_mode not in {"CASH", "BANK"}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="payment_mode must be CASH or BANK")
    try:
        amount = float(payload.get("amount"))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid amount") from exc

    try:
        tx = session.add_transaction(
            account_id=str(payload.get("account_id") or ""),
            amount=amount,
            tx_type=tx_type,  # type: ignore[arg-type]
            description=str(payload.get("description") or ""),
            payment_mode=payment_mode,  # type: ignore[arg-type]
            tx_date=payload.get("date"),
        )
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "transaction": tx.model_dump(mode="json")}


@app.get("/items")
async def list_items(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    try:
        tenant = session.acting_tenant()
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "items": [i.model_dump(mode="json") for i in tenant.items]}


@app.post("/items")
async def add_item(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    try:
        item = session.add_item(str(payload.get("name") or ""))
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "item": item.model_dump(mode="json")}


@app.put("/items/{item_id}")
async def rename_item(request: Request, item_id: str) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    try:
        session.rename_item(item_id, str(payload.get("name") or ""))
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok"}


@app.delete("/items/{item_id}")
async def delete_item(request: Request, item_id: str) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    try:
        session.delete_item(item_id)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok"}


@app.get("/stages")
async def list_stages(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    try:
        tenant = session.acting_tenant()
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "stages": tenant.settings.stage_names()}


@app.put("/stages")
async def update_stages(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    names = payload.get("stages")
    if not isinstance(names, list):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="stages must be a list")
    try:
        stages = session.configure_stages([str(n) for n in names])
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "stages": stages}


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

@app.post("/extract")
async def extract(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    if not EXTRACTION_ENABLED:
        return {"status": "disabled"}

    data = await request.body()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty upload")
    limit = _max_upload_bytes()
    if limit is not None and len(data) > limit:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Upload too large")

    try:
        draft, warnings = session.prefill(data)
    except LedgerError as exc:
        raise _http_error(exc) from exc
    logger.info("Extraction finished", extra={"tenant_id": session.company_id, "warnings": len(warnings)})
    return {"status": "ok", "invoice": draft.model_dump(mode="json"), "warnings": warnings}


# ---------------------------------------------------------------------------
# Tenant administration
# ---------------------------------------------------------------------------

@app.get("/admin/companies")
async def admin_companies(request: Request, search: str = "", expiry: str = "ALL") -> Dict[str, Any]:
    session = _check_basic_auth(request)
    expiry_filter = expiry.upper()
    if expiry_filter not in {"ALL", "EXPIRING", "EXPIRED"}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown expiry filter: {expiry}")
    try:
        found = session.list_companies(search, expiry_filter)  # type: ignore[arg-type]
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "companies": [_company_summary(c) for c in found]}


@app.post("/admin/companies")
async def admin_create_company(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    try:
        company = session.create_company(
            username=str(payload.get("username") or ""),
            password=str(payload.get("password") or ""),
            settings=payload.get("settings") or {},
            parent_id=payload.get("parent_id"),
            expiry_date=payload.get("expiry_date"),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "company": _company_summary(company)}


@app.put("/admin/companies/{tenant_id}")
async def admin_update_company(request: Request, tenant_id: str) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    payload = await _json_object(request)
    # An omitted parent_id keeps the current parent; an explicit null detaches the branch.
    if "parent_id" in payload:
        parent_id = payload["parent_id"]
    else:
        parent_id = next((c.parent_id for c in session.ledger.tenants if c.id == tenant_id), None)
    try:
        company = session.update_company(
            tenant_id,
            username=payload.get("username"),
            password=payload.get("password"),
            settings=payload.get("settings") or {},
            parent_id=parent_id,
            expiry_date=payload.get("expiry_date"),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LedgerError as exc:
        raise _http_error(exc) from exc
    return {"status": "ok", "company": _company_summary(company)}


@app.get("/admin/persistence")
async def admin_persistence(request: Request) -> Dict[str, Any]:
    session = _check_basic_auth(request)
    if not session.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Super-admin access required")
    store = session.ledger.store
    info: Optional[Dict[str, Any]] = None
    if isinstance(store, FirestoreTenantStore):
        try:
            info = store.client_info()
        except Exception as exc:
            logger.info("Firestore client info failed, continuing: %s", exc)
    error = session.ledger.last_save_error
    return {
        "status": "ok",
        "store": type(store).__name__,
        "info": info,
        "tenants": len(session.ledger.tenants),
        "last_save_error": str(error) if error else None,
    }
