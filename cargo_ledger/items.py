from __future__ import annotations

import uuid

from cargo_ledger.errors import LedgerError
from cargo_ledger.models import Company, ItemMaster


DEFAULT_ITEM_NAMES: tuple[str, ...] = (
    "CLOTHES",
    "FOOD STUFF",
    "ELECTRONICS",
    "HOUSEHOLD ITEMS",
    "TOYS",
    "COSMETICS",
)


def default_items() -> list[ItemMaster]:
    return [ItemMaster(id=f"itm_{index + 1}", name=name) for index, name in enumerate(DEFAULT_ITEM_NAMES)]


def _clean(name: str) -> str:
    cleaned = (name or "").strip().upper()
    if not cleaned:
        raise LedgerError("Item name cannot be empty")
    return cleaned


def add_item(tenant: Company, name: str) -> tuple[Company, ItemMaster]:
    item = ItemMaster(id=f"itm_{uuid.uuid4().hex[:10]}", name=_clean(name))
    return tenant.model_copy(update={"items": [*tenant.items, item]}), item


def rename_item(tenant: Company, item_id: str, name: str) -> Company:
    cleaned = _clean(name)
    if not any(i.id == item_id for i in tenant.items):
        raise LedgerError(f"Unknown item: {item_id}")
    items = [i.model_copy(update={"name": cleaned}) if i.id == item_id else i for i in tenant.items]
    return tenant.model_copy(update={"items": items})


def delete_item(tenant: Company, item_id: str) -> Company:
    return tenant.model_copy(update={"items": [i for i in tenant.items if i.id != item_id]})
