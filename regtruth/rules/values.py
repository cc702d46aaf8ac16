"""Value normalization used to compare rule values across sources."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

NUMERIC_VALUE_TYPES = frozenset({"currency", "number", "percentage", "count", "rate", "threshold"})

_UNIT_RE = re.compile(r"(?i)(eur|€|kn|hrk|%|posto|kuna|eura)")
_CRO_THOUSANDS_RE = re.compile(r"\d{1,3}(\.\d{3})+")
_EN_THOUSANDS_RE = re.compile(r"\d{1,3}(,\d{3})+")
_HR_DATE_RE = re.compile(r"^(\d{1,2})\.\s*(\d{1,2})\.\s*(\d{4})\.?$")


def parse_decimal(text: str) -> Decimal | None:
    """Parse Croatian or English formatted numbers ("40.000,00 EUR", "25%", "1,234.5")."""
    t = _UNIT_RE.sub("", text)
    t = re.sub(r"\s", "", t)
    if not t:
        return None
    if "," in t and "." in t:
        if t.rfind(",") > t.rfind("."):
            t = t.replace(".", "").replace(",", ".")
        else:
            t = t.replace(",", "")
    elif "," in t:
        t = t.replace(",", "") if _EN_THOUSANDS_RE.fullmatch(t) else t.replace(",", ".")
    elif "." in t and _CRO_THOUSANDS_RE.fullmatch(t):
        t = t.replace(".", "")
    try:
        return Decimal(t)
    except InvalidOperation:
        return None


def parse_date_value(text: str) -> date | None:
    text = text.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    m = _HR_DATE_RE.match(text)
    if m:
        day, month, year = (int(g) for g in m.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return None


def normalize_value(value: str, value_type: str | None) -> str:
    """Canonical comparison form: plain decimal for numeric types, ISO for dates, folded text otherwise."""
    raw = (value or "").strip()
    if value_type in NUMERIC_VALUE_TYPES:
        number = parse_decimal(raw)
        if number is not None:
            return format(number.normalize(), "f")
    if value_type == "date":
        parsed = parse_date_value(raw)
        if parsed is not None:
            return parsed.isoformat()
    return re.sub(r"\s+", " ", raw).casefold()


def as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value
