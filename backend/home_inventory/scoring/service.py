"""
Confidence scoring for extracted receipt items.

Item score (documented formula):

    base  = OCR confidence of the source line
    +0.15 if a well-formed price was detected
    +0.10 if a quantity token was detected
    +0.10 if the line lies in the item region (between header and totals)
    clamped to [0, 1]

Raw OCR confidence under-weights structure: a line with mediocre character
confidence but a clean "12.99" at the end is more trustworthy than its raw
score says.
"""
import logging
from typing import Optional

from home_inventory.common.exceptions import NextAction
from home_inventory.ocr.schemas import OcrLine, OcrResult
from home_inventory.parsing.schemas import CandidateItem, ParsedReceipt
from home_inventory.preprocessing.schemas import ImageQualityReport
from home_inventory.scoring.schemas import (
    ConfidenceBucket,
    FieldCompleteness,
    ReceiptQualityReport,
)

logger = logging.getLogger(__name__)

PRICE_BONUS = 0.15
QUANTITY_BONUS = 0.10
ITEM_REGION_BONUS = 0.10

# Bucket boundaries: low < 0.5 <= medium < 0.8 <= high
MEDIUM_THRESHOLD = 0.5
HIGH_THRESHOLD = 0.8

# Receipt-level weights
OCR_WEIGHT = 0.4
ITEM_COUNT_WEIGHT = 0.3
ITEM_CONFIDENCE_WEIGHT = 0.3
EXPECTED_ITEM_COUNT = 5

# Field completeness weights
COMPLETENESS_WEIGHTS = {
    "total_amount": 0.3,
    "receipt_date": 0.2,
    "merchant_name": 0.2,
    "items": 0.3,
}


def clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def bucket_for(confidence: float) -> ConfidenceBucket:
    if confidence >= HIGH_THRESHOLD:
        return ConfidenceBucket.HIGH
    if confidence >= MEDIUM_THRESHOLD:
        return ConfidenceBucket.MEDIUM
    return ConfidenceBucket.LOW


class ConfidenceScorer:
    """Pure functions of their inputs; safe to share between requests."""

    def score(self, candidate: CandidateItem, source_line: OcrLine, in_item_region: bool = False) -> float:
        """
        Composite confidence of one extracted item.

        Args:
            candidate: Parsed item
            source_line: OCR line the item's price was read from
            in_item_region: Whether the line lies between the header and the totals

        Returns:
            Confidence in [0, 1], rounded to 4 decimal places
        """
        confidence = source_line.confidence
        if candidate.price_detected:
            confidence += PRICE_BONUS
        if candidate.quantity_detected:
            confidence += QUANTITY_BONUS
        if in_item_region:
            confidence += ITEM_REGION_BONUS
        return round(clamp(confidence), 4)

    def score_items(self, parsed: ParsedReceipt, lines: list[OcrLine]) -> list[float]:
        """Scores every candidate of a parsed receipt, in item order."""
        return [
            self.score(item, lines[item.line_index], parsed.in_item_region(item.line_index))
            for item in parsed.items
        ]

    def receipt_confidence(self, ocr_confidence: float, item_confidences: list[float]) -> float:
        """
        Overall receipt confidence:
        0.4 * OCR confidence + 0.3 * min(items / 5, 1) + 0.3 * mean item confidence
        """
        count_factor = min(len(item_confidences) / EXPECTED_ITEM_COUNT, 1.0)
        mean_item = sum(item_confidences) / len(item_confidences) if item_confidences else 0.0
        confidence = (
            OCR_WEIGHT * ocr_confidence
            + ITEM_COUNT_WEIGHT * count_factor
            + ITEM_CONFIDENCE_WEIGHT * mean_item
        )
        return round(clamp(confidence), 4)

    def analyze(
        self,
        parsed: ParsedReceipt,
        ocr_result: OcrResult,
        item_confidences: list[float],
        image_quality: Optional[ImageQualityReport] = None
    ) -> ReceiptQualityReport:
        """
        Builds the receipt-level quality report with recommendations and the next step for the user.
        """
        overall = self.receipt_confidence(ocr_result.overall_confidence, item_confidences)
        completeness = self._completeness(parsed)
        low_items = sum(1 for confidence in item_confidences if bucket_for(confidence) == ConfidenceBucket.LOW)

        recommendations: list[str] = []
        if image_quality is not None:
            recommendations.extend(image_quality.issues)
            recommendations.extend(image_quality.warnings)

        if not ocr_result.text_detected:
            recommendations.append("No readable text found. Retake the photo in good light, flat and in focus.")
        elif not parsed.items:
            recommendations.append("No items recognized. Add the items manually.")

        if ocr_result.text_detected:
            if parsed.total_amount is None:
                recommendations.append("Total amount not found. Check the bottom of the receipt.")
            if parsed.receipt_date is None:
                recommendations.append("Purchase date not found. Enter it manually.")
            if parsed.merchant_name is None:
                recommendations.append("Store name not found. Enter it manually.")
        if low_items:
            recommendations.append(f"{low_items} item(s) have low confidence and likely need editing.")
        if parsed.total_amount is not None and parsed.items and self._totals_mismatch(parsed):
            recommendations.append("Item prices do not add up to the receipt total. Check for missed or misread items.")

        poor_image = image_quality is not None and not image_quality.is_acceptable
        if not ocr_result.text_detected or (poor_image and not parsed.items):
            next_action = NextAction.RETAKE
        elif not parsed.items:
            next_action = NextAction.MANUAL_ENTRY
        else:
            next_action = NextAction.REVIEW

        report = ReceiptQualityReport(
            overall_confidence=overall,
            bucket=bucket_for(overall),
            text_detected=ocr_result.text_detected,
            completeness=completeness,
            items_found=len(parsed.items),
            low_confidence_items=low_items,
            recommendations=recommendations,
            next_action=next_action,
        )
        logger.debug(f"Receipt quality: {report.bucket.value} ({overall:.2f}), next_action={next_action.value}")
        return report

    def _completeness(self, parsed: ParsedReceipt) -> FieldCompleteness:
        present = {
            "merchant_name": parsed.merchant_name is not None,
            "receipt_date": parsed.receipt_date is not None,
            "total_amount": parsed.total_amount is not None,
            "items": bool(parsed.items),
        }
        score = sum(weight for field, weight in COMPLETENESS_WEIGHTS.items() if present[field])
        return FieldCompleteness(score=round(score, 4), **present)

    def _totals_mismatch(self, parsed: ParsedReceipt) -> bool:
        """True when item totals (plus tax) miss the receipt total by more than 5%."""
        items_sum = sum(item.total_price for item in parsed.items if item.total_price is not None)
        expected = items_sum + (parsed.tax_amount or 0)
        tolerance = parsed.total_amount * 5 / 100
        return abs(expected - parsed.total_amount) > tolerance
