from __future__ import annotations

import logging
from typing import Callable, Optional

from cargo_ledger.financials import apply_manual_override
from cargo_ledger.models import Invoice, PartialInvoice
from cargo_ledger.ocr import document_text
from cargo_ledger.parsers.shipping_invoice import parse_shipping_invoice


logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], PartialInvoice]


def extract_from_image(data: bytes, content_type: Optional[str] = None) -> PartialInvoice:
    """OCR an uploaded invoice photo (or PDF) and parse the fields it shows."""
    text = document_text(data, content_type)
    if not text:
        return PartialInvoice(warnings=["No text found in upload"])
    return parse_shipping_invoice(text)


def merge_partial_invoice(draft: Invoice, partial: PartialInvoice, vat_enabled: Optional[bool] = None) -> Invoice:
    """Overlay the fields the extractor returned onto ``draft``.

    Only non-empty extracted values win. The draft keeps its own invoice
    number and status history, since both belong to this tenant's ledger.
    Extracted figures are applied as manual overrides: a total or bill charge
    read without a VAT amount gets its VAT recomputed at the draft's rate.
    """
    update: dict = {}
    if partial.date:
        update["date"] = partial.date
    if partial.shipment_type:
        update["shipment_type"] = partial.shipment_type
    if partial.shipper is not None:
        update["shipper"] = draft.shipper.model_copy(update=partial.shipper.model_dump(exclude_none=True))
    if partial.consignee is not None:
        update["consignee"] = draft.consignee.model_copy(
            update=partial.consignee.model_dump(exclude_none=True)
        )
    if partial.cargo_items:
        update["cargo_items"] = [item.model_copy() for item in partial.cargo_items]
    if partial.financials is not None:
        read = partial.financials
        if vat_enabled is None:
            vat_enabled = draft.financials.vat > 0
        update["financials"] = apply_manual_override(
            draft.financials,
            vat_enabled,
            total=read.total,
            bill_charges=read.bill_charges,
            vat_amount=read.vat_amount,
        )
    if not update:
        return draft
    return draft.model_copy(update=update)


def prefill_draft(
    draft: Invoice,
    data: bytes,
    extractor: Optional[Extractor] = None,
    vat_enabled: Optional[bool] = None,
) -> tuple[Invoice, list[str]]:
    """Best-effort pre-fill; the draft comes back untouched if extraction fails."""
    extractor = extractor or extract_from_image
    try:
        partial = extractor(data)
    except Exception as exc:
        logger.warning("Invoice extraction failed, continuing with manual entry: %s", exc)
        return draft, [f"Extraction unavailable: {exc}"]
    return merge_partial_invoice(draft, partial, vat_enabled), list(partial.warnings)
