# cargo_ledger/parsers/shipping_invoice.py
from __future__ import annotations

import re
from typing import Optional

from cargo_ledger.models import (
    InvoiceItem,
    PartialConsignee,
    PartialFinancials,
    PartialInvoice,
    PartialShipper,
)
from cargo_ledger.parse_utils import approx_equal, format_date, parse_invoice_date, parse_money


_SECTION_RE = re.compile(r"^\s*(SHIPPER|CONSIGNEE|CARGO\s+ITEMS)\b", re.IGNORECASE | re.MULTILINE)

# "1  CLOTHES  B1  15": serial, description, box label and quantity
_ITEM_LINE_RE = re.compile(r"^\s*(\d{1,3})[.)]?\s+(.+?)\s+([A-Z]{1,3}\d{1,3})\s+(\d{1,4})\s*$", re.IGNORECASE)


def _find(label_patterns: list[str], text: str) -> Optional[str]:
    for pat in label_patterns:
        m = re.search(pat, text, flags=re.IGNORECASE | re.MULTILINE)
        if m:
            value = m.group(1).strip()
            if value:
                return value
    return None


def _field(label: str, block: str) -> Optional[str]:
    return _find([rf"^\s*{label}\s*[:.\-]?\s*(.+?)\s*$"], block)


def _split_sections(text: str) -> dict[str, str]:
    """Cut the OCR text into header / shipper / consignee / items blocks.

    Totals sit below the item table, so they stay in the items block.
    """
    sections = {"header": "", "shipper": "", "consignee": "", "items": ""}
    matches = list(_SECTION_RE.finditer(text))
    if not matches:
        sections["header"] = text
        return sections
    sections["header"] = text[: matches[0].start()]
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        name = match.group(1).upper()
        key = "items" if name.startswith("CARGO") else name.lower()
        sections[key] += text[match.end():end]
    return sections


def _extract_invoice_number(text: str) -> Optional[str]:
    return _find(
        [
            r"Invoice\s*(?:No|Number)\.?\s*[:#]?\s*([A-Z0-9][A-Z0-9\-/]*)",
            r"\bINV\s*[:#]\s*([A-Z0-9][A-Z0-9\-/]*)",
        ],
        text,
    )


def _extract_invoice_date(text: str) -> Optional[str]:
    raw = _find(
        [
            r"\bDate\s*[:.]?\s*(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})",
            r"(\d{1,2}/\d{1,2}/\d{4})",
        ],
        text,
    )
    parsed = parse_invoice_date(raw.replace("-", "/").replace(".", "/")) if raw else None
    return format_date(parsed) if parsed else None


def _extract_shipment_type(text: str) -> Optional[str]:
    raw = _find([r"Shipment\s*Type\s*[:.]?\s*(.+?)\s*$", r"\b((?:IND|GCC|UK|US)\s+(?:SEA|AIR))\b"], text)
    return raw.upper() if raw else None


def _parse_shipper(block: str) -> Optional[PartialShipper]:
    pcs_raw = _field(r"(?:NO\.?\s*OF\s*PCS|PCS|PIECES)", block)
    weight_raw = _field(r"WEIGHT", block)
    weight = parse_money(weight_raw) if weight_raw else None
    pcs_value = parse_money(pcs_raw) if pcs_raw else None
    shipper = PartialShipper(
        name=_field(r"NAME", block),
        id_no=_field(r"(?:ID\s*NO|IQAMA(?:\s*NO)?)", block),
        tel=_field(r"(?:MOBILE|TEL|PHONE)", block),
        vatnos=_field(r"VAT\s*NO", block),
        pcs=int(pcs_value) if pcs_value is not None else None,
        weight=weight,
    )
    return shipper if shipper.model_dump(exclude_none=True) else None


def _parse_consignee(block: str) -> Optional[PartialConsignee]:
    phones = re.findall(r"^\s*(?:MOBILE|TEL|PHONE)\s*\d?\s*[:.\-]?\s*(.+?)\s*$", block, re.IGNORECASE | re.MULTILINE)
    consignee = PartialConsignee(
        name=_field(r"NAME", block),
        address=_field(r"ADDRESS", block),
        post=_field(r"POST", block),
        pin=_field(r"PIN(?:\s*CODE)?", block),
        country=_field(r"COUNTRY", block),
        district=_field(r"DISTRICT", block),
        state=_field(r"STATE", block),
        tel=phones[0] if phones else None,
        tel2=phones[1] if len(phones) > 1 else None,
    )
    return consignee if consignee.model_dump(exclude_none=True) else None


def _parse_items(block: str) -> list[InvoiceItem]:
    items: list[InvoiceItem] = []
    for line in block.splitlines():
        m = _ITEM_LINE_RE.match(line)
        if not m:
            continue
        items.append(
            InvoiceItem(
                sl_no=int(m.group(1)),
                description=m.group(2).strip().upper(),
                box_no=m.group(3).upper(),
                qty=int(m.group(4)),
            )
        )
    return items


def _amount(label: str, text: str) -> Optional[float]:
    raw = _find([rf"^\s*{label}\s*[:.]?\s*([\d.,]+)"], text)
    return parse_money(raw) if raw else None


def _parse_financials(text: str, warnings: list[str]) -> Optional[PartialFinancials]:
    net_total = _amount(r"NET\s*TOTAL", text)
    total = _amount(r"TOTAL", text)
    bill_charges = _amount(r"BILL\s*CHARGES", text)
    vat_amount = _amount(r"VAT\s*(?:\(\s*\d+(?:\.\d+)?\s*%\s*\)|AMOUNT)", text)
    vat_rate_raw = _find([r"VAT\s*\(\s*(\d+(?:\.\d+)?)\s*%\s*\)"], text)

    financials = PartialFinancials(
        total=total,
        bill_charges=bill_charges,
        vat=float(vat_rate_raw) if vat_rate_raw else None,
        vat_amount=vat_amount,
    )
    if net_total is not None and total is not None:
        expected = (total or 0.0) + (bill_charges or 0.0) + (vat_amount or 0.0)
        if not approx_equal(expected, net_total):
            warnings.append("Totals do not reconcile (total + charges + vat != net total)")
    return financials if financials.model_dump(exclude_none=True) else None


def parse_shipping_invoice(text: str) -> PartialInvoice:
    """Read whatever fields a photographed cargo invoice exposes.

    Nothing is required: missing fields stay None so the caller can merge
    the result into a draft without clobbering what the user already typed.
    """
    text = text or ""
    warnings: list[str] = []
    sections = _split_sections(text)

    invoice_no = _extract_invoice_number(sections["header"] or text)
    if not invoice_no:
        warnings.append("Invoice number not found")
    invoice_date = _extract_invoice_date(sections["header"] or text)
    if not invoice_date:
        warnings.append("Invoice date not found")

    items = _parse_items(sections["items"])

    return PartialInvoice(
        invoice_no=invoice_no,
        date=invoice_date,
        shipment_type=_extract_shipment_type(text),
        shipper=_parse_shipper(sections["shipper"]),
        consignee=_parse_consignee(sections["consignee"]),
        cargo_items=items or None,
        financials=_parse_financials(sections["items"] or text, warnings),
        warnings=warnings,
    )
