"""
Text helpers shared by the extractors, the gazetteer and the merger.

Numbers on French pages use a comma decimal separator and a narrow no-break
space (or a plain space) as thousands separator, e.g. "4,7 sur 5" or
"1 234 évaluations".
"""

import re
import unicodedata
from typing import Dict, List, Optional, Union

# Longest first so "$CAN" is not read as "$"
_CURRENCY_RE = re.compile(r"\$[A-Z]{2,3}\b|[A-Z]{3}\b|[€$£¥]")
_PRICE_TOKEN_RE = re.compile(r"\d(?:[\d.,\u00a0\u202f ]*\d)?")
_PLAIN_AMOUNT_RE = re.compile(r"^\d+(?:[.,]\d{1,2})?$")
_GROUPED_AMOUNT_RE = re.compile(r"^\d{1,3}(?P<sep>[ .,])\d{3}(?:(?P=sep)\d{3})*(?P<decimal>[.,]\d{1,2})?$")

_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\d{1,3}(?:[\u00a0\u202f ,.]\d{3})+(?![\d])|\d+(?:[.,]\d+)?")
_THOUSANDS_GROUP_RE = re.compile(r"^\d{1,3}(?:[\u00a0\u202f ,.]\d{3})+$")
_IMAGE_ID_RE = re.compile(r"([A-Za-z0-9_+\-]+)\.[A-Za-z0-9_,\-]*\.?[A-Za-z]{3,4}$")
_IMAGE_PARAMS_RE = re.compile(r"[A-Za-z0-9_+\-]+\.([A-Za-z0-9_,\-]*)\.?[A-Za-z]{3,4}$")


def remove_accents(text: str) -> str:
    """Strip combining marks: "États-Unis" -> "Etats-Unis"."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def collapse_whitespace(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_bidi_marks(text: str) -> str:
    """Remove left-to-right / right-to-left marks sprinkled in detail tables."""
    return (text or "").replace("\u200e", "").replace("\u200f", "")


def _parse_number(raw: str) -> float:
    if _THOUSANDS_GROUP_RE.match(raw):
        return float(re.sub(r"[\u00a0\u202f ,.]", "", raw))
    return float(raw.replace(",", "."))


def extract_numbers(text: Optional[str]) -> List[Union[int, float]]:
    """
    Extract every number of a text, in reading order.

    Thousands groups ("1 234", "12.345") are read as integers, a single
    comma or dot is read as a decimal separator ("4,7" -> 4.7).

    Example:
        >>> extract_numbers("4,7 sur 5 étoiles (1 234)")
        [4.7, 5, 1234]
    """
    if not text:
        return []
    numbers: List[Union[int, float]] = []
    for match in _NUMBER_RE.finditer(text):
        value = _parse_number(match.group(0))
        numbers.append(int(value) if value.is_integer() else value)
    return numbers


def _parse_amount(raw: str) -> Optional[float]:
    """
    Read one price amount, None when it is malformed.

    Thousands groups use one separator throughout (space, dot or comma) and
    the decimal separator must differ from it: "1 234,56", "1.234,56" and
    "1,234.56" are read, "12,34,56" and "1.234.56" are not.
    """
    raw = raw.replace("\u00a0", " ").replace("\u202f", " ")
    if _PLAIN_AMOUNT_RE.match(raw):
        return float(raw.replace(",", "."))
    match = _GROUPED_AMOUNT_RE.match(raw)
    if not match:
        return None
    separator = match.group("sep")
    decimal = match.group("decimal") or ""
    if decimal.startswith(separator):
        return None
    integer = raw[: len(raw) - len(decimal)].replace(separator, "")
    return float(integer + "." + decimal[1:]) if decimal else float(integer)


def extract_price_and_currency(text: Optional[str]) -> Optional[Dict[str, Optional[Union[float, str]]]]:
    """
    Parse a displayed price such as "34,90€", "11.11 USD" or "99 999,99 $CAN".

    The currency is kept as displayed, symbol or code. A malformed amount
    gives a None price next to its currency.

    Returns:
        {"price": float | None, "currency": str | None}, or None when the
        text holds neither an amount nor a currency, or several amounts.

    Example:
        >>> extract_price_and_currency("1.234,56€")
        {'price': 1234.56, 'currency': '€'}
    """
    if not text or not text.strip():
        return None
    amounts = _PRICE_TOKEN_RE.findall(text)
    if len(amounts) > 1:
        return None
    currency_match = _CURRENCY_RE.search(_PRICE_TOKEN_RE.sub(" ", text))
    currency = currency_match.group(0) if currency_match else None
    if not amounts and currency is None:
        return None
    price = _parse_amount(amounts[0]) if amounts else None
    return {"price": price, "currency": currency}


def process_image_url(url: Optional[str], with_params: bool = True) -> str:
    """
    Reduce a media URL to its identifier.

    "https://m.media-amazon.com/images/I/71abc+XY-L._AC_SX679_.jpg" gives
    "71abc+XY-L._AC_SX679_" with params and "71abc+XY-L" without.
    An unrecognized URL gives "".
    """
    if not url:
        return ""
    path = url.split("?", 1)[0]
    match = _IMAGE_ID_RE.search(path)
    if not match:
        return ""
    image_id = match.group(1)
    if not with_params:
        return image_id
    params_match = _IMAGE_PARAMS_RE.search(path)
    params = params_match.group(1).strip(".") if params_match else ""
    return f"{image_id}.{params}" if params else image_id


def round_percent(part: int, total: int) -> float:
    if not total:
        return 0.0
    return round(part * 100.0 / total, 2)
