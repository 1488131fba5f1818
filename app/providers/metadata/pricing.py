"""Price normalization helpers shared by metadata providers."""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from app.providers.metadata.base import Price

# Checked in order; multi-char prefixes before the bare "$"
_SYMBOL_CURRENCIES = [
    ("US$", "USD"),
    ("C$", "CAD"),
    ("CA$", "CAD"),
    ("A$", "AUD"),
    ("AU$", "AUD"),
    ("€", "EUR"),
    ("£", "GBP"),
    ("¥", "JPY"),
    ("₹", "INR"),
    ("₩", "KRW"),
    ("$", "USD"),
]

_KNOWN_CODES = {
    "USD", "EUR", "GBP", "JPY", "CAD", "AUD", "INR", "KRW", "CHF", "CNY",
    "SEK", "NOK", "DKK", "MXN", "BRL", "NZD", "SGD", "HKD",
}

_CODE_RE = re.compile(r"\b([A-Z]{3})\b")
_NUMBER_RE = re.compile(r"\d[\d,.]*")
_DECIMAL_COMMA_RE = re.compile(r"^\d{1,3}(?:\.\d{3})*,\d{2}$|^\d+,\d{2}$")


def _clean_number(raw: str) -> str:
    raw = raw.rstrip(".,")
    if _DECIMAL_COMMA_RE.match(raw):
        # "19,00" / "1.299,00"
        return raw.replace(".", "").replace(",", ".")
    return raw.replace(",", "")


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a number or numeric string to Decimal; None when not a positive amount."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if not match:
            return None
        value = _clean_number(match.group(0))
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def normalize_currency(code: Any) -> Optional[str]:
    if not code or not isinstance(code, str):
        return None
    code = code.strip().upper()
    return code if re.fullmatch(r"[A-Z]{3}", code) else None


def currency_from_text(text: str) -> Optional[str]:
    for match in _CODE_RE.finditer(text):
        if match.group(1) in _KNOWN_CODES:
            return match.group(1)
    for symbol, code in _SYMBOL_CURRENCIES:
        if symbol in text:
            return code
    return None


def parse_price_text(text: Any) -> Price:
    """Parse a display price such as "$24.99" or "EUR 19,00"."""
    if text is None:
        return Price()
    text = str(text).strip()
    if not text:
        return Price()
    return Price(amount=to_decimal(text), currency=currency_from_text(text), formatted=text)


def format_price(amount: Optional[Decimal], currency: Optional[str]) -> Optional[str]:
    if amount is None or currency is None:
        return None
    return f"{currency} {amount}"
