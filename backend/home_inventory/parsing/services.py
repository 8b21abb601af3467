"""
Receipt text parser.

Turns flat OCR lines into receipt metadata (merchant, date, totals) and an
ordered list of candidate items. Low quality input never raises: an empty
or unreadable receipt simply produces empty metadata and no items, and the
review step takes it from there.
"""
import logging
import re
from datetime import date
from decimal import Decimal
from typing import Optional

from home_inventory.ocr.schemas import BoundingBox, OcrLine
from home_inventory.parsing.normalization import (
    CENT,
    clean_item_name,
    normalize_merchant_name,
    normalize_price_token,
)
from home_inventory.parsing.schemas import CandidateItem, ParsedReceipt

logger = logging.getLogger(__name__)

# Digit or a character OCR confuses with a digit
_P = r"[0-9OoIl|Ss]"
PRICE_CORE = rf"\$?(?:\d{{1,3}}(?:,\d{{3}})+\.\d{{2}}|{_P}{{1,7}}[.,]{_P}{{2}})"
PRICE_RE = re.compile(rf"(?<![\w.,]){PRICE_CORE}(?![\d.,])(?![A-Za-z]{{2}})")

_NAME = r"(?P<name>.*?[^\W\d_].*?)"
_FLAG = r"(?:\s*[A-Za-z]{1,2})?"
_TIMES = r"[xX×*]"

# Ordered attempts for lines that carry their own item name
ITEM_PATTERNS = [
    # 2 x COFFEE @ 4.99 = 9.98
    re.compile(rf"^\s*(?P<qty>\d{{1,3}})\s*{_TIMES}\s*{_NAME}\s*@\s*(?P<unit>{PRICE_CORE})(?:\s*=?\s*(?P<total>{PRICE_CORE}))?{_FLAG}\s*$"),
    # 2 x MILK 5.98
    re.compile(rf"^\s*(?P<qty>\d{{1,3}})\s*{_TIMES}\s+{_NAME}\s+(?P<total>{PRICE_CORE}){_FLAG}\s*$"),
    # BANANAS 3 @ 0.69 2.07
    re.compile(rf"^{_NAME}\s+(?P<qty>\d{{1,3}})\s*@\s*(?P<unit>{PRICE_CORE})(?:\s*=?\s*(?P<total>{PRICE_CORE}))?{_FLAG}\s*$"),
    # GV BRD WHEAT 2.99 N
    re.compile(rf"^{_NAME}\s+(?P<total>{PRICE_CORE}){_FLAG}\s*$"),
]

# Attempts for lines that only make sense after a name-only line
UNNAMED_PATTERNS = [
    # 3 @ 0.69 2.07
    re.compile(rf"^\s*(?P<qty>\d{{1,3}})\s*@\s*(?P<unit>{PRICE_CORE})(?:\s*=?\s*(?P<total>{PRICE_CORE}))?{_FLAG}\s*$"),
    # 2.07
    re.compile(rf"^\s*(?P<total>{PRICE_CORE}){_FLAG}\s*$"),
]

TOTAL_RE = re.compile(r"\b(grand\s+total|total\s+due|amount\s+due|balance\s+due|total)\b", re.IGNORECASE)
SUBTOTAL_RE = re.compile(r"\bsub\s*-?\s*total\b", re.IGNORECASE)
TAX_RE = re.compile(r"\b(tax|vat|hst|gst|pst)\b", re.IGNORECASE)
NON_ITEM_RE = re.compile(
    r"\b("
    r"sub\s*-?\s*total|total|tax|vat|hst|gst|pst|balance|amount\s+due|change(\s+due)?|cash|tend(er|ered)?"
    r"|visa|mastercard|amex|debit|credit|payment|card|coupon|discount|savings|you\s+saved"
    r"|items?\s+sold|thank\s+you|receipt|cashier|tel|phone|approved|auth(orization)?|ref(erence)?"
    r")\b",
    re.IGNORECASE,
)
NEGATIVE_PRICE_RE = re.compile(rf"-\s*{PRICE_CORE}|{PRICE_CORE}\s*-(?!\S)")
MERCHANT_SKIP_RE = re.compile(r"\b(receipt|invoice|welcome|thank\s+you|www\.|https?://|tel|phone)\b", re.IGNORECASE)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH = r"(?P<month>jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"

ISO_DATE_RE = re.compile(r"\b(?P<year>\d{4})[-/.](?P<month>\d{1,2})[-/.](?P<day>\d{1,2})\b")
NUMERIC_DATE_RE = re.compile(r"\b(?P<first>\d{1,2})[/.-](?P<second>\d{1,2})[/.-](?P<year>\d{4}|\d{2})\b")
MONTH_FIRST_DATE_RE = re.compile(rf"\b{_MONTH}\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?,?\s+(?P<year>\d{{4}})\b", re.IGNORECASE)
DAY_FIRST_DATE_RE = re.compile(rf"\b(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\s+{_MONTH},?\s+(?P<year>\d{{4}})\b", re.IGNORECASE)

MERCHANT_SEARCH_LINES = 8


class ReceiptParser:
    """
    Stateless parser; one instance can be shared between requests.

    Steps:
    1. Merchant: first plausible header line before any price appears
    2. Date: first recognizable date, scanning top-down
    3. Totals: "total" line scanning bottom-up; subtotal and tax separately
    4. Items: ordered pattern attempts on the item region (after the header, before the totals), in receipt order
    """

    def parse(self, lines: list[OcrLine]) -> ParsedReceipt:
        """
        Parses OCR lines into structured receipt data.

        Args:
            lines: OCR lines ordered top-to-bottom

        Returns:
            ParsedReceipt (items may be empty; that is not an error)
        """
        texts = [line.text.strip() for line in lines]

        merchant_index = self._find_merchant_index(texts)
        total_index, total_amount = self._find_amount(texts, self._is_total_line)
        subtotal_index, subtotal_amount = self._find_amount(texts, self._is_subtotal_line)
        _, tax_amount = self._find_amount(texts, self._is_tax_line)

        region_start = merchant_index + 1 if merchant_index is not None else 0
        region_end = min(
            [index for index in (total_index, subtotal_index) if index is not None and index >= region_start],
            default=len(texts),
        )

        items = self._extract_items(lines, texts, region_start, region_end)

        parsed = ParsedReceipt(
            merchant_name=normalize_merchant_name(texts[merchant_index]) if merchant_index is not None else None,
            receipt_date=self._find_date(texts),
            total_amount=total_amount,
            subtotal_amount=subtotal_amount,
            tax_amount=tax_amount,
            items=items,
            item_region=(region_start, region_end),
            raw_text="\n".join(texts),
        )

        logger.info(
            f"Parsed receipt: {len(items)} items from {len(lines)} lines",
            extra={
                "merchant_name": parsed.merchant_name,
                "total_amount": str(total_amount) if total_amount is not None else None,
                "receipt_date": parsed.receipt_date.isoformat() if parsed.receipt_date else None,
            }
        )
        return parsed

    # --- metadata ---

    def _find_merchant_index(self, texts: list[str]) -> Optional[int]:
        for index, text in enumerate(texts[:MERCHANT_SEARCH_LINES]):
            if PRICE_RE.search(text):
                # The header ends where prices begin
                return None
            if self._looks_like_merchant(text):
                return index
        return None

    def _looks_like_merchant(self, text: str) -> bool:
        if not text or MERCHANT_SKIP_RE.search(text) or self._parse_date(text):
            return False
        compact = text.replace(" ", "")
        letters = sum(1 for ch in compact if ch.isalpha())
        return letters >= 2 and letters / len(compact) >= 0.4

    def _find_amount(self, texts: list[str], predicate) -> tuple[Optional[int], Optional[Decimal]]:
        """Bottom-up search for the last line matching predicate that carries a valid price."""
        for index in range(len(texts) - 1, -1, -1):
            text = texts[index]
            if not predicate(text):
                continue
            prices = PRICE_RE.findall(text)
            if not prices:
                continue
            amount = normalize_price_token(prices[-1])
            if amount is not None:
                return index, amount
        return None, None

    def _is_total_line(self, text: str) -> bool:
        if not TOTAL_RE.search(text) or SUBTOTAL_RE.search(text) or TAX_RE.search(text):
            return False
        return not re.search(r"\b(savings|saved|discount|items?)\b", text, re.IGNORECASE)

    def _is_subtotal_line(self, text: str) -> bool:
        return bool(SUBTOTAL_RE.search(text))

    def _is_tax_line(self, text: str) -> bool:
        return bool(TAX_RE.search(text)) and not SUBTOTAL_RE.search(text)

    def _find_date(self, texts: list[str]) -> Optional[date]:
        for text in texts:
            found = self._parse_date(text)
            if found:
                return found
        return None

    def _parse_date(self, text: str) -> Optional[date]:
        match = ISO_DATE_RE.search(text)
        if match:
            found = _safe_date(int(match["year"]), int(match["month"]), int(match["day"]))
            if found:
                return found

        match = NUMERIC_DATE_RE.search(text)
        if match:
            year = int(match["year"])
            if year < 100:
                year += 2000
            first, second = int(match["first"]), int(match["second"])
            # US order first, day-first when the first part cannot be a month
            found = _safe_date(year, first, second) or _safe_date(year, second, first)
            if found:
                return found

        for pattern in (MONTH_FIRST_DATE_RE, DAY_FIRST_DATE_RE):
            match = pattern.search(text)
            if match:
                month = _MONTHS[match["month"].lower()[:3]]
                found = _safe_date(int(match["year"]), month, int(match["day"]))
                if found:
                    return found

        return None

    # --- items ---

    def _extract_items(self, lines: list[OcrLine], texts: list[str], start: int, end: int) -> list[CandidateItem]:
        """Tries item patterns on lines start..end-1; header and totals never yield items."""
        items: list[CandidateItem] = []
        pending: Optional[int] = None  # index of a name-only line waiting for its price line

        for index in range(start, end):
            text = texts[index]
            if not text:
                continue

            if self._is_non_item_line(text):
                pending = None
                continue

            match = self._match(ITEM_PATTERNS, text)
            if match:
                items.append(self._build_item(match, match["name"], index, [index], lines))
                pending = None
                continue

            if pending is not None:
                match = self._match(UNNAMED_PATTERNS, text)
                if match:
                    items.append(self._build_item(match, texts[pending], index, [pending, index], lines))
                    pending = None
                    continue

            if PRICE_RE.search(text):
                # Priced but unrecognized (e.g. "1.25 lb @"), nothing to attach a name to
                pending = None
            elif any(ch.isalpha() for ch in text):
                pending = index

        return items

    def _is_non_item_line(self, text: str) -> bool:
        if NON_ITEM_RE.search(text) or NEGATIVE_PRICE_RE.search(text):
            return True
        # A bare date/time line is never an item
        return self._parse_date(text) is not None and len(PRICE_RE.findall(text)) == 0

    def _match(self, patterns: list[re.Pattern], text: str) -> Optional[re.Match]:
        for pattern in patterns:
            match = pattern.match(text)
            if match:
                return match
        return None

    def _build_item(
        self,
        match: re.Match,
        raw_name: str,
        price_index: int,
        source_indexes: list[int],
        lines: list[OcrLine]
    ) -> CandidateItem:
        groups = match.groupdict()

        quantity_detected = groups.get("qty") is not None
        quantity = int(groups["qty"]) if quantity_detected else 1

        unit_price = normalize_price_token(groups.get("unit"))
        total_price = normalize_price_token(groups.get("total"))

        if quantity_detected and groups.get("unit") is not None:
            if total_price is None and groups.get("total") is None and unit_price is not None:
                total_price = (unit_price * quantity).quantize(CENT)
            price_detected = unit_price is not None and total_price is not None
        else:
            if total_price is not None and quantity > 0:
                unit_price = (total_price / quantity).quantize(CENT)
            price_detected = total_price is not None

        name = clean_item_name(raw_name) or raw_name.strip()

        bounding_box: Optional[BoundingBox] = None
        for source_index in source_indexes:
            box = lines[source_index].bounding_box
            bounding_box = box if bounding_box is None else bounding_box.union(box)

        return CandidateItem(
            name=name,
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price,
            quantity_detected=quantity_detected,
            price_detected=price_detected,
            line_index=price_index,
            raw_text="\n".join(lines[i].text for i in source_indexes),
            bounding_box=bounding_box,
        )


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def lines_from_text(text: str, confidence: float = 1.0) -> list[OcrLine]:
    """
    Builds synthetic OCR lines from plain text (manual entry, pasted receipts, tests).
    Each non-empty line gets the given confidence and a stacked bounding box.
    """
    lines: list[OcrLine] = []
    for row, line_text in enumerate(line for line in text.splitlines() if line.strip()):
        lines.append(
            OcrLine(
                text=line_text.strip(),
                confidence=confidence,
                bounding_box=BoundingBox(x=0, y=row * 20, width=len(line_text.strip()) * 10, height=18),
            )
        )
    return lines
