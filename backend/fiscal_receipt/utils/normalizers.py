"""Link, monetary value and date normalizers.

Every function here is pure, idempotent and never raises: input that
cannot be normalized yields ``None`` so the caller drops the field
instead of storing a guessed value.

Values follow the Brazilian convention used on receipts (``1.234,50``)
and are returned as ``"1234,50"``. Dates are returned as ``DD/MM/YYYY``.
"""

from __future__ import annotations

import datetime as dt
import re
import unicodedata
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional


_SCHEMES = ("http://", "https://")

# Digits with ``.``/``,`` separators, starting and ending with a digit
_VALUE_SHAPE = re.compile(r"^[+-]?\d(?:[\d.,]*\d)?$")
_CURRENCY_PREFIX = re.compile(r"R\$", re.IGNORECASE)
_CENT = Decimal("0.01")

# (regex, group order) pairs; order is day/month/year positions in the match
_DATE_SHAPES = (
    (re.compile(r"^(\d{2})/(\d{2})/(\d{4})(?:\s+\d{2}:\d{2}(?::\d{2})?)?$"), ("d", "m", "y")),
    (re.compile(r"^(\d{2})[-.](\d{2})[-.](\d{4})$"), ("d", "m", "y")),
    (re.compile(r"^(\d{4})([-/])(\d{2})\2(\d{2})(?:[T\s].*)?$"), ("y", None, "m", "d")),
    (re.compile(r"^(\d{4})(\d{2})(\d{2})(?:\d{6})?$"), ("y", "m", "d")),
)


def normalize_link(raw: Optional[str]) -> str:
    """Trim a scanned QR payload and make sure it carries a URI scheme."""
    link = (raw or "").strip()
    if not link.lower().startswith(_SCHEMES):
        link = f"https://{link}"
    return link


def _decimal_text(text: str) -> Optional[str]:
    """Rewrite ``text`` (digits with ``.``/``,`` separators) as ``1234.50``.

    When both separators appear the last one is the decimal separator.
    A lone comma is decimal. A lone point followed by one or two digits
    is decimal; any other point is a thousands separator.
    """
    last_comma = text.rfind(",")
    last_point = text.rfind(".")
    if last_comma != -1 and last_point != -1:
        decimal_sep: Optional[str] = "," if last_comma > last_point else "."
    elif last_comma != -1:
        decimal_sep = "," if text.count(",") == 1 else None
    elif last_point != -1:
        tail = len(text) - last_point - 1
        decimal_sep = "." if text.count(".") == 1 and tail in (1, 2) else None
    else:
        decimal_sep = None

    if decimal_sep is None:
        return text.replace(".", "").replace(",", "")
    integer, fraction = text.rsplit(decimal_sep, 1)
    integer = integer.replace(".", "").replace(",", "") or "0"
    if not fraction.isdigit():
        return None
    return f"{integer}.{fraction}"


def parse_amount(raw: Optional[str]) -> Optional[Decimal]:
    """Parse a locale-formatted amount into a finite ``Decimal``.

    Returns ``None`` for anything that is not a plain signed number with
    ``.``/``,`` separators (an optional ``R$`` prefix is tolerated). The
    sign is kept, so ``"-5,00"`` parses to ``Decimal("-5.00")``.
    """
    if raw is None:
        return None
    text = _CURRENCY_PREFIX.sub("", str(raw))
    text = re.sub(r"\s+", "", text)
    if not text or not _VALUE_SHAPE.match(text):
        return None
    sign = ""
    if text[0] in "+-":
        sign, text = text[0], text[1:]
    digits = _decimal_text(text)
    if not digits:
        return None
    try:
        amount = Decimal(sign + digits)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def normalize_value(raw: Optional[str]) -> Optional[str]:
    """Normalize a monetary value to ``"1234,50"`` or return ``None``.

    Values that do not parse, or that are zero or negative after rounding
    to cents, are discarded.
    """
    amount = parse_amount(raw)
    if amount is None or amount <= 0:
        return None
    cents = amount.quantize(_CENT, rounding=ROUND_HALF_UP)
    if cents <= 0:
        return None
    return f"{cents:.2f}".replace(".", ",")


def normalize_date(raw: Optional[str]) -> Optional[str]:
    """Normalize a date to ``DD/MM/YYYY`` or return ``None``.

    Recognized shapes: ``DD/MM/YYYY`` (optionally followed by a time),
    ``DD-MM-YYYY``, ``DD.MM.YYYY``, ``YYYY-MM-DD`` / ``YYYY/MM/DD``
    (optionally followed by an ISO time part), ``YYYYMMDD`` and 14-digit
    ``YYYYMMDDHHMMSS`` timestamps. The date must exist on the calendar.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    for pattern, order in _DATE_SHAPES:
        match = pattern.match(text)
        if not match:
            continue
        parts = dict(zip(order, match.groups()))
        try:
            day = dt.date(int(parts["y"]), int(parts["m"]), int(parts["d"]))
        except ValueError:
            return None
        return f"{day.day:02d}/{day.month:02d}/{day.year:04d}"
    return None


def fold_text(value: Optional[str]) -> str:
    """Casefold, strip accents and collapse whitespace for label matching."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())
