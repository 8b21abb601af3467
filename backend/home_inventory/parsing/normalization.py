"""
Normalization of OCR text fragments found on receipts.

- normalize_price_token: OCR-garbled price token -> Decimal (or None)
- normalize_merchant_name: header line -> clean store name
- clean_item_name: item line remainder -> readable product name
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

# Characters OCR commonly reads in place of digits inside a price
OCR_DIGIT_SUBSTITUTIONS = {
    "O": "0",
    "o": "0",
    "I": "1",
    "l": "1",
    "|": "1",
    "S": "5",
    "s": "5",
}

MIN_PRICE = Decimal("0")  # exclusive
MAX_PRICE = Decimal("100000")  # exclusive
CENT = Decimal("0.01")

_NUMERIC_PRICE = re.compile(r"\d+(?:\.\d{1,2})?")
_BARCODE = re.compile(r"\b\d{10,}\b")
_TRAILING_FLAG = re.compile(r"(?:\s+[A-Za-z*#])+$")
_EDGE_PUNCTUATION = " \t-_*=#:;.,|~"


def normalize_price_token(token: Optional[str]) -> Optional[Decimal]:
    """
    Converts a price token read by OCR into a Decimal.

    Applies OCR_DIGIT_SUBSTITUTIONS, accepts both "." and "," as the decimal
    separator, and rejects values outside (0, 100000). Rejected or unreadable
    tokens return None so the item is flagged for manual correction; they
    never default to zero.

    Args:
        token: Raw token (e.g. "$1O.99", "S.99", "4,49")

    Returns:
        Decimal with 2 decimal places, or None

    Examples:
        >>> normalize_price_token("1O.99")
        Decimal('10.99')
        >>> normalize_price_token("S.99")
        Decimal('5.99')
        >>> normalize_price_token("0.00") is None
        True
    """
    if not token:
        return None

    cleaned = token.strip().lstrip("$").strip()
    # A token made only of look-alike letters is a word, not a price
    if not any(ch.isdigit() for ch in cleaned):
        return None

    cleaned = "".join(OCR_DIGIT_SUBSTITUTIONS.get(ch, ch) for ch in cleaned)

    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")  # thousands separator
    else:
        cleaned = cleaned.replace(",", ".")

    if not _NUMERIC_PRICE.fullmatch(cleaned):
        return None

    try:
        value = Decimal(cleaned).quantize(CENT)
    except InvalidOperation:
        return None

    if not (MIN_PRICE < value < MAX_PRICE):
        return None

    return value


def normalize_merchant_name(name: Optional[str]) -> Optional[str]:
    """
    Cleans a receipt header line into a merchant name.

    Transformations:
    - trim and collapse whitespace
    - remove single and double quotes
    - strip decorative punctuation at both ends ("*** WALMART ***")

    Case is preserved; receipts print store names the way the store wants them shown.

    Examples:
        >>> normalize_merchant_name("  *** WALMART ***  ")
        'WALMART'
    """
    if not name:
        return None

    normalized = name.replace('"', '').replace("'", "")
    normalized = re.sub(r'\s+', ' ', normalized)
    normalized = normalized.strip(_EDGE_PUNCTUATION)

    return normalized or None


def clean_item_name(name: str) -> str:
    """
    Removes receipt noise from an item name.

    - barcodes / SKUs (10+ digit runs)
    - trailing single-letter tax or department flags ("F", "N", "T")
    - surrounding punctuation and repeated whitespace

    Examples:
        >>> clean_item_name("GV BRD WHEAT 007225003712 F")
        'GV BRD WHEAT'
    """
    cleaned = _BARCODE.sub(" ", name)
    cleaned = re.sub(r'\s+', ' ', cleaned).strip()
    cleaned = _TRAILING_FLAG.sub("", cleaned)
    return cleaned.strip(_EDGE_PUNCTUATION)
