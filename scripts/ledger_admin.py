#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from datetime import date
from typing import Any, Dict

from cargo_ledger.config import get_env
from cargo_ledger.dashboard import aggregate, query_invoices
from cargo_ledger.seed import default_tenants
from cargo_ledger.store import build_store, tenant_to_document


def _summary(tenants: list) -> list[Dict[str, Any]]:
    rows = []
    for tenant in tenants:
        stats = aggregate(query_invoices([tenant], date_range="ALL"))
        rows.append(
            {
                "id": tenant.id,
                "parent_id": tenant.parent_id,
                "company_name": tenant.settings.company_name,
                "location": tenant.location_name,
                "expiry_date": tenant.expiry_date,
                "invoices": stats.total_shipments,
                "revenue": round(stats.total_revenue, 2),
            }
        )
    return rows


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed, list or export the tenants of a ledger store.")
    parser.add_argument("command", choices=["seed", "list", "export"])
    parser.add_argument("--backend", default=get_env("LEDGER_STORE") or "local", help="memory, local or firestore")
    parser.add_argument("--force", action="store_true", help="Seed even when the store already has tenants")
    parser.add_argument("--today", default=None, help="Date for seeded sample invoices, e.g. 2026-02-05")
    args = parser.parse_args()

    store = build_store(args.backend)
    tenants = store.load()

    if args.command == "seed":
        if tenants and not args.force:
            raise SystemExit(f"Store already holds {len(tenants)} tenants; pass --force to overwrite them")
        today = date.fromisoformat(args.today) if args.today else None
        tenants = default_tenants(today)
        store.save_all(tenants)
        print(json.dumps(_summary(tenants), indent=2))
    elif args.command == "list":
        print(json.dumps(_summary(tenants), indent=2))
    else:
        print(json.dumps([tenant_to_document(t) for t in tenants], indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
