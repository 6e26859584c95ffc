from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from cargo_ledger.errors import UnknownStatusError
from cargo_ledger.models import (
    DEFAULT_STAGES,
    BulkStatusEvent,
    Company,
    Invoice,
    ShipmentStatusSetting,
    StatusHistoryItem,
)


logger = logging.getLogger(__name__)


def _timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def set_status(
    invoice: Invoice,
    new_status: str,
    remark: Optional[str] = None,
    *,
    updated_by: Optional[str] = None,
    location: Optional[str] = None,
    action: str = "Updated Status",
    now: Optional[datetime] = None,
) -> Invoice:
    """Return a copy of ``invoice`` with one more history entry.

    The current status is read from the last history entry, so appending is
    the only way to change it.
    """
    entry = StatusHistoryItem(
        status=new_status,
        timestamp=_timestamp(now),
        updated_by=updated_by,
        remark=remark or None,
        location=location,
        action=action,
    )
    return invoice.model_copy(update={"status_history": [*invoice.status_history, entry]})


def ensure_known_status(tenant: Company, status: str) -> None:
    if status not in tenant.settings.stage_names():
        raise UnknownStatusError(f"{status!r} is not a configured stage for tenant {tenant.id}")


def bulk_set_status(
    tenant: Company,
    selection: Iterable[str],
    new_status: str,
    remark: Optional[str] = None,
    *,
    updated_by: str = "",
    now: Optional[datetime] = None,
) -> tuple[Company, Optional[BulkStatusEvent]]:
    """Move every selected invoice owned by ``tenant`` to ``new_status``.

    Invoice numbers that ``tenant`` does not own are ignored. The stage is
    checked before anything is touched, so either every selected invoice
    moves or none does. An empty selection returns the tenant unchanged.
    """
    selected = set(selection)
    if not selected:
        return tenant, None
    ensure_known_status(tenant, new_status)

    stamp = now or datetime.now(timezone.utc)
    location = tenant.location_name
    affected: list[str] = []
    invoices: list[Invoice] = []
    for invoice in tenant.invoices:
        if invoice.invoice_no in selected:
            invoice = set_status(
                invoice,
                new_status,
                remark,
                updated_by=updated_by,
                location=location,
                action="Bulk Status Update",
                now=stamp,
            )
            affected.append(invoice.invoice_no)
        invoices.append(invoice)

    if not affected:
        return tenant, None

    event = BulkStatusEvent(
        id=f"bulk_{uuid.uuid4().hex[:12]}",
        timestamp=_timestamp(stamp),
        status=new_status,
        affected_invoices=affected,
        updated_by=updated_by,
        location=location,
        remark=remark or None,
    )
    logger.info(
        "Bulk status update",
        extra={"tenant_id": tenant.id, "status": new_status, "count": len(affected)},
    )
    updated = tenant.model_copy(
        update={"invoices": invoices, "bulk_status_events": [event, *tenant.bulk_status_events]}
    )
    return updated, event


# ---------------------------------------------------------------------------
# Stage configuration
# ---------------------------------------------------------------------------

def default_stage_settings() -> list[ShipmentStatusSetting]:
    return [
        ShipmentStatusSetting(id=f"st_{index + 1}", name=name, order=index)
        for index, name in enumerate(DEFAULT_STAGES)
    ]


def configure_stages(tenant: Company, names: list[str]) -> Company:
    """Replace the tenant's stage list; ``names`` order becomes display order."""
    cleaned: list[str] = []
    for name in names:
        name = (name or "").strip()
        if name and name not in cleaned:
            cleaned.append(name)
    if not cleaned:
        raise UnknownStatusError("At least one stage is required")

    existing = {s.name: s.id for s in tenant.settings.shipment_status_settings}
    stages = [
        ShipmentStatusSetting(id=existing.get(name) or f"st_{uuid.uuid4().hex[:8]}", name=name, order=index)
        for index, name in enumerate(cleaned)
    ]
    settings = tenant.settings.model_copy(update={"shipment_status_settings": stages})
    return tenant.model_copy(update={"settings": settings})


def status_chips(stage_names: list[str], histogram: dict[str, int]) -> list[tuple[str, int]]:
    """Counts per stage in configured order, then any stages no longer configured."""
    chips = [(name, histogram.get(name, 0)) for name in stage_names]
    chips.extend((name, count) for name, count in histogram.items() if name not in stage_names)
    return chips
