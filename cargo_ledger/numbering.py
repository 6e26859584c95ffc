from __future__ import annotations

import logging
import re
from typing import Optional

from cargo_ledger.models import DEFAULT_INVOICE_START, Company


logger = logging.getLogger(__name__)

_TRAILING_DIGITS_RE = re.compile(r"(\d+)$")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def _parse_leading_int(value: str) -> Optional[int]:
    # Mirrors a lenient integer parse: "1005" and "1005A" both give 1005.
    match = _LEADING_INT_RE.match(value)
    return int(match.group(1)) if match else None


def next_number_after(last_invoice_no: str, prefix: str) -> Optional[int]:
    """Numeric successor of ``last_invoice_no`` or None when it carries no number."""
    remainder = last_invoice_no.replace(prefix, "", 1) if prefix else last_invoice_no
    parsed = _parse_leading_int(remainder)
    if parsed is not None:
        return parsed + 1

    match = _TRAILING_DIGITS_RE.search(last_invoice_no)
    if match:
        return int(match.group(1)) + 1
    return None


def next_invoice_number(tenant: Company) -> str:
    """Derive the next invoice number for ``tenant``.

    Invoices are kept newest-first, so only the first one is consulted. Legacy
    numbers that do not carry the current prefix fall back to their trailing
    digits, and anything unreadable restarts from the configured start number.
    """
    prefix = tenant.settings.invoice_prefix or ""
    next_num = tenant.settings.invoice_start_number or DEFAULT_INVOICE_START

    if tenant.invoices:
        last_invoice_no = tenant.invoices[0].invoice_no or ""
        candidate = next_number_after(last_invoice_no, prefix)
        if candidate is not None:
            next_num = candidate
        else:
            logger.warning(
                "Could not read a number from last invoice; using start number",
                extra={"tenant_id": tenant.id, "invoice_no": last_invoice_no},
            )

    return f"{prefix}{next_num}"
