from __future__ import annotations

import re
from datetime import date
from typing import Optional

from dateutil import parser as date_parser


_MONEY_RE = re.compile(r"-?\d{1,3}(?:,\d{3})*(?:\.\d{1,3})?|-?\d+(?:\.\d{1,3})?")
_DMY_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")
_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_money(value: str | None) -> Optional[float]:
    if not value:
        return None

    cleaned = value.strip().upper()
    for token in ("SAR", "SR", "INR", "RS.", "₹", "$"):
        cleaned = cleaned.replace(token, "")
    cleaned = cleaned.replace(" ", "")

    match = _MONEY_RE.search(cleaned)
    if not match:
        return None

    number = match.group(0).replace(",", "")
    try:
        return float(number)
    except ValueError:
        return None


def parse_invoice_date(value: str | None) -> Optional[date]:
    """Parse an invoice date stored as DD/MM/YYYY text.

    Anything that is not in the stored format goes through dateutil with
    ``dayfirst`` so hand-typed variants such as ``3-2-2026`` still resolve.
    """
    if not value:
        return None
    match = _DMY_RE.match(value)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None
    try:
        return date_parser.parse(value.strip(), dayfirst=True).date()
    except (ValueError, TypeError, OverflowError):
        return None


def parse_bound(value: str | date | None) -> Optional[date]:
    """Parse a date-range bound: ISO ``YYYY-MM-DD`` (date pickers) or DD/MM/YYYY."""
    if value is None or isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    if _ISO_RE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    return parse_invoice_date(text)


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def approx_equal(left: Optional[float], right: Optional[float], tolerance: float = 0.02) -> bool:
    """True when two amounts agree to within ``tolerance`` (OCR rounding slack)."""
    return left is not None and right is not None and abs(left - right) <= tolerance + 1e-9
