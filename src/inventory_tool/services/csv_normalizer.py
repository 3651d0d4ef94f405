"""CSV normalization utilities for robust import handling"""
import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from src.inventory_tool.models.inventory_item import ItemStatus


BOOLEAN_TRUE_VALUES = {"true", "yes", "y", "1", "si", "sí", "verdadero"}

BOOLEAN_FALSE_VALUES = {"false", "no", "n", "0", "falso"}

STATUS_ALIASES = {
    "active": ItemStatus.ACTIVE,
    "activo": ItemStatus.ACTIVE,
    "enabled": ItemStatus.ACTIVE,
    "inactive": ItemStatus.INACTIVE,
    "inactivo": ItemStatus.INACTIVE,
    "disabled": ItemStatus.INACTIVE,
    "discontinued": ItemStatus.DISCONTINUED,
    "descontinuado": ItemStatus.DISCONTINUED,
}

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%m/%d/%y",
]

CURRENCY_PATTERN = re.compile(r"[\s$€£¥]|\b(?:USD|EUR|MXN|GBP)\b", re.IGNORECASE)
DECIMAL_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")
TAG_SEPARATORS = re.compile(r"[,;|]")
NUMBER_RUN_PATTERN = re.compile(r"[+-]?\d[\d.,]*")


def normalize_to_halfwidth(text: str) -> str:
    return unicodedata.normalize("NFKC", text)


def normalize_column_name(name: str) -> str:
    normalized = normalize_to_halfwidth(name)
    normalized = normalized.lower()
    normalized = re.sub(r'[\s\-_\.]+', '', normalized)
    normalized = re.sub(r'[^\w]', '', normalized)
    return normalized


def normalize_text(text: str) -> str:
    return normalize_to_halfwidth(text).strip()


def is_empty(value: Optional[str]) -> bool:
    return value is None or str(value).strip() == ""


def normalize_decimal_text(value: str) -> Optional[str]:
    """Strip currency symbols and unify thousands/decimal separators.

    Both ``1.234,50`` and ``1,234.50`` become ``1234.50``. A single comma
    followed by exactly three digits is read as a thousands separator
    unless the integer part is zero.
    Returns None when the result is not a plain decimal literal.
    """
    text = CURRENCY_PATTERN.sub("", normalize_to_halfwidth(value))
    if not text:
        return None

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        parts = text.split(",")
        if len(parts) > 2 or (len(parts[-1]) == 3 and parts[0].lstrip("+-") not in ("", "0")):
            text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    if not DECIMAL_PATTERN.fullmatch(text):
        return None
    return text


def parse_decimal(value: str) -> Optional[Decimal]:
    text = normalize_decimal_text(value)
    if text is None:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def suggest_decimal(value: str) -> Optional[str]:
    """Numeric reading of a value that failed to parse, e.g. ``12 units`` -> ``12``.

    Only offered when the value holds exactly one run of digits; ``1e5`` or
    ``3 x 4`` get no suggestion.
    """
    runs = NUMBER_RUN_PATTERN.findall(normalize_to_halfwidth(value))
    if len(runs) != 1:
        return None
    return normalize_decimal_text(runs[0])


def normalize_boolean(value: str) -> Tuple[Optional[bool], bool]:
    value = normalize_to_halfwidth(value).strip().lower()

    if value in BOOLEAN_TRUE_VALUES:
        return True, False
    if value in BOOLEAN_FALSE_VALUES:
        return False, False

    return None, True


def parse_date(value: str) -> Optional[date]:
    text = normalize_text(value)
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_status(value: str) -> Optional[ItemStatus]:
    return STATUS_ALIASES.get(normalize_text(value).lower())


def split_tags(value: str) -> List[str]:
    return [tag.strip() for tag in TAG_SEPARATORS.split(normalize_text(value)) if tag.strip()]
