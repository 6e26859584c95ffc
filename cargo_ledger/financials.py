from __future__ import annotations

from typing import Optional

from cargo_ledger.models import AppSettings, Financials, Invoice, Shipper


VAT_RATE = 0.15


def _vat_rate(vat_enabled: bool) -> float:
    return VAT_RATE if vat_enabled else 0.0


def _vat_on(base: float, vat_enabled: bool) -> float:
    return round(base * _vat_rate(vat_enabled), 2)


def compute_financials(
    shipment: Shipper,
    rate_for_type: float,
    bill_rate_per_piece: float,
    vat_enabled: bool,
) -> Financials:
    """Price a shipment: weight × per-kg rate plus a fixed fee per piece, then VAT."""
    total = (shipment.weight or 0.0) * (rate_for_type or 0.0)
    bill_charges = (shipment.pcs or 0) * (bill_rate_per_piece or 0.0)
    return Financials(
        total=total,
        bill_charges=bill_charges,
        vat=_vat_rate(vat_enabled) * 100,
        vat_amount=_vat_on(total + bill_charges, vat_enabled),
    )


def compute_invoice_financials(invoice: Invoice, settings: AppSettings) -> Financials:
    return compute_financials(
        invoice.shipper,
        settings.rate_for(invoice.shipment_type),
        settings.bill_rate_per_piece,
        settings.is_vat_enabled,
    )


def apply_manual_override(
    financials: Financials,
    vat_enabled: bool,
    total: Optional[float] = None,
    bill_charges: Optional[float] = None,
    vat_amount: Optional[float] = None,
) -> Financials:
    """Apply hand-typed figures and reconcile the derived ones.

    Editing ``total`` or ``bill_charges`` recomputes VAT on the new base. A
    typed ``vat_amount`` is kept as entered. ``net_total`` is always derived.
    """
    new_total = financials.total if total is None else total
    new_bill = financials.bill_charges if bill_charges is None else bill_charges

    if vat_amount is not None:
        new_vat_amount = vat_amount
    elif total is not None or bill_charges is not None:
        new_vat_amount = _vat_on(new_total + new_bill, vat_enabled)
    else:
        new_vat_amount = financials.vat_amount

    return Financials(
        total=new_total,
        bill_charges=new_bill,
        vat=financials.vat,
        vat_amount=new_vat_amount,
    )


def reconcile_manual_edit(submitted: Financials, previous: Financials, vat_enabled: bool) -> Financials:
    """Treat every figure of ``submitted`` that differs from ``previous`` as typed by hand.

    Only the changed figures go through ``apply_manual_override``, so an
    edited total with an untouched VAT amount gets its VAT recomputed.
    """
    def edited(new: float, old: float) -> Optional[float]:
        return None if new == old else new

    return apply_manual_override(
        previous,
        vat_enabled,
        total=edited(submitted.total, previous.total),
        bill_charges=edited(submitted.bill_charges, previous.bill_charges),
        vat_amount=edited(submitted.vat_amount, previous.vat_amount),
    )
