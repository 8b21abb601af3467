"""
Unit tests for ConfidenceScorer.

Tests cover:
- item score formula (price, quantity and item region bonuses, clamping)
- confidence buckets and their boundaries
- receipt-level confidence and quality report (next action, recommendations)
"""
from decimal import Decimal

import pytest

from home_inventory.common.exceptions import NextAction
from home_inventory.ocr.schemas import BoundingBox, OcrLine, OcrResult
from home_inventory.parsing.schemas import CandidateItem
from home_inventory.parsing.services import ReceiptParser, lines_from_text
from home_inventory.preprocessing.schemas import ImageQualityReport
from home_inventory.scoring.schemas import ConfidenceBucket
from home_inventory.scoring.service import ConfidenceScorer, bucket_for


def make_line(confidence: float) -> OcrLine:
    return OcrLine(text="ITEM 1.00", confidence=confidence, bounding_box=BoundingBox(x=0, y=0, width=90, height=18))


def make_candidate(price_detected: bool = True, quantity_detected: bool = False) -> CandidateItem:
    return CandidateItem(
        name="ITEM",
        total_price=Decimal("1.00") if price_detected else None,
        price_detected=price_detected,
        quantity_detected=quantity_detected,
        line_index=0,
        raw_text="ITEM 1.00",
    )


def make_ocr_result(lines: list[OcrLine]) -> OcrResult:
    confidence = sum(line.confidence for line in lines) / len(lines) if lines else 0.0
    return OcrResult(lines=lines, overall_confidence=confidence, text_detected=bool(lines), engine="fake")


class TestItemScore:
    """Tests for ConfidenceScorer.score()."""

    @pytest.mark.parametrize(
        "ocr_confidence,price,quantity,in_region,expected",
        [
            (0.3, True, False, False, 0.45),
            (0.3, False, False, False, 0.3),
            (0.5, True, True, False, 0.75),
            (0.6, True, True, True, 0.95),
            (0.95, True, True, True, 1.0),  # clamped
            (0.0, False, False, True, 0.1),
        ],
    )
    @pytest.mark.unit
    def test_score_formula(self, ocr_confidence, price, quantity, in_region, expected):
        score = ConfidenceScorer().score(make_candidate(price, quantity), make_line(ocr_confidence), in_region)
        assert score == pytest.approx(expected)

    @pytest.mark.unit
    def test_price_only_outside_region_is_low(self):
        score = ConfidenceScorer().score(make_candidate(), make_line(0.3))
        assert bucket_for(score) == ConfidenceBucket.LOW

    @pytest.mark.unit
    def test_score_items_uses_source_line_and_region(self):
        lines = lines_from_text("WALMART\nBREAD 2.99\nTOTAL 2.99", confidence=0.6)
        parsed = ReceiptParser().parse(lines)

        # 0.6 + price 0.15 + region 0.10
        assert ConfidenceScorer().score_items(parsed, lines) == [pytest.approx(0.85)]


class TestBuckets:

    @pytest.mark.parametrize(
        "confidence,bucket",
        [
            (0.0, ConfidenceBucket.LOW),
            (0.4999, ConfidenceBucket.LOW),
            (0.5, ConfidenceBucket.MEDIUM),
            (0.7999, ConfidenceBucket.MEDIUM),
            (0.8, ConfidenceBucket.HIGH),
            (1.0, ConfidenceBucket.HIGH),
        ],
    )
    @pytest.mark.unit
    def test_bucket_boundaries(self, confidence, bucket):
        assert bucket_for(confidence) == bucket


class TestReceiptConfidence:

    @pytest.mark.unit
    def test_weighted_formula(self):
        # 0.4 * 0.9 + 0.3 * (2 / 5) + 0.3 * 1.0
        assert ConfidenceScorer().receipt_confidence(0.9, [1.0, 1.0]) == pytest.approx(0.78)

    @pytest.mark.unit
    def test_no_text_no_items_is_zero(self):
        assert ConfidenceScorer().receipt_confidence(0.0, []) == 0.0

    @pytest.mark.unit
    def test_item_count_factor_is_capped(self):
        assert ConfidenceScorer().receipt_confidence(1.0, [1.0] * 12) == 1.0


class TestQualityReport:
    """Tests for ConfidenceScorer.analyze()."""

    def analyze(self, text: str, confidence: float = 0.9, image_quality=None):
        lines = lines_from_text(text, confidence=confidence)
        parsed = ReceiptParser().parse(lines)
        scorer = ConfidenceScorer()
        return scorer.analyze(parsed, make_ocr_result(lines), scorer.score_items(parsed, lines), image_quality)

    @pytest.mark.unit
    def test_complete_receipt_goes_to_review(self):
        report = self.analyze("WALMART\n03/14/2024\nGV BRD WHEAT 2.99\n2 x COFFEE @ 4.99 = 9.98\nTOTAL 12.97")

        assert report.overall_confidence == pytest.approx(0.78)
        assert report.bucket == ConfidenceBucket.MEDIUM
        assert report.items_found == 2
        assert report.low_confidence_items == 0
        assert report.completeness.score == pytest.approx(1.0)
        assert report.recommendations == []
        assert report.next_action == NextAction.REVIEW

    @pytest.mark.unit
    def test_no_text_suggests_retake(self):
        report = self.analyze("")

        assert report.text_detected is False
        assert report.overall_confidence == 0.0
        assert report.bucket == ConfidenceBucket.LOW
        assert report.completeness.score == 0.0
        assert report.next_action == NextAction.RETAKE

    @pytest.mark.unit
    def test_text_without_items_suggests_manual_entry(self):
        report = self.analyze("THANK YOU FOR SHOPPING")

        assert report.items_found == 0
        assert report.next_action == NextAction.MANUAL_ENTRY
        assert any("manually" in recommendation for recommendation in report.recommendations)

    @pytest.mark.unit
    def test_poor_image_without_items_suggests_retake(self):
        quality = ImageQualityReport(
            width=400, height=300, brightness=20.0, contrast=5.0, sharpness=3.0,
            issues=["Image is too dark"],
        )
        report = self.analyze("THANK YOU FOR SHOPPING", image_quality=quality)

        assert report.next_action == NextAction.RETAKE
        assert "Image is too dark" in report.recommendations

    @pytest.mark.unit
    def test_totals_mismatch_is_reported(self):
        report = self.analyze("SHOP\n01/02/2024\nAPPLE 1.00\nTOTAL 5.00")

        assert report.next_action == NextAction.REVIEW
        assert any("do not add up" in recommendation for recommendation in report.recommendations)

    @pytest.mark.unit
    def test_missing_fields_are_reported(self):
        report = self.analyze("BREAD 2.99", confidence=0.2)

        assert report.completeness.merchant_name is False
        assert report.completeness.total_amount is False
        assert report.completeness.items is True
        assert report.completeness.score == pytest.approx(0.3)
        assert report.low_confidence_items == 1
