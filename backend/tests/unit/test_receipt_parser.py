"""
Unit tests for ReceiptParser.

Tests cover:
- merchant, date and totals extraction
- item patterns (plain, quantity x, unit price @, continuation lines)
- OCR digit substitutions inside item prices
- low quality input producing empty results instead of errors
"""
from datetime import date
from decimal import Decimal

import pytest

from home_inventory.parsing.services import ReceiptParser, lines_from_text


def parse(*texts: str):
    return ReceiptParser().parse(lines_from_text("\n".join(texts)))


class TestReceiptMetadata:
    """Merchant, date and totals."""

    @pytest.mark.unit
    def test_sample_receipt(self):
        parsed = parse(
            "WALMART",
            "03/14/2024",
            "GV BRD WHEAT 2.99",
            "2 x COFFEE @ 4.99 = 9.98",
            "TOTAL 12.97",
        )

        assert parsed.merchant_name == "WALMART"
        assert parsed.receipt_date == date(2024, 3, 14)
        assert parsed.total_amount == Decimal("12.97")
        assert parsed.item_region == (1, 4)
        assert "GV BRD WHEAT 2.99" in parsed.raw_text

    @pytest.mark.unit
    def test_subtotal_and_tax_are_separate_from_total(self):
        parsed = parse("SHOP", "APPLE 1.00", "SUBTOTAL 1.00", "TAX 0.08", "TOTAL 1.08")

        assert parsed.total_amount == Decimal("1.08")
        assert parsed.subtotal_amount == Decimal("1.00")
        assert parsed.tax_amount == Decimal("0.08")
        # Totals block starts at the subtotal line
        assert parsed.item_region == (1, 2)
        assert [item.name for item in parsed.items] == ["APPLE"]

    @pytest.mark.parametrize(
        "date_line,expected",
        [
            ("03/14/2024", date(2024, 3, 14)),
            ("03/14/24", date(2024, 3, 14)),
            ("31/12/2023", date(2023, 12, 31)),  # cannot be month-first
            ("2024-03-14 10:22", date(2024, 3, 14)),
            ("Mar 14, 2024", date(2024, 3, 14)),
            ("14 March 2024", date(2024, 3, 14)),
        ],
    )
    @pytest.mark.unit
    def test_date_formats(self, date_line, expected):
        assert parse("SHOP", date_line).receipt_date == expected

    @pytest.mark.unit
    def test_invalid_date_is_ignored(self):
        assert parse("SHOP", "13/13/2024").receipt_date is None

    @pytest.mark.unit
    def test_merchant_skips_greeting_lines(self):
        parsed = parse("WELCOME", "*** CORNER SHOP ***", "MILK 2.49")
        assert parsed.merchant_name == "CORNER SHOP"

    @pytest.mark.unit
    def test_no_merchant_when_prices_start_first(self):
        parsed = parse("MILK 2.49", "BREAD 1.99")
        assert parsed.merchant_name is None
        assert len(parsed.items) == 2


class TestReceiptItems:
    """Item line recognition."""

    @pytest.mark.unit
    def test_plain_and_quantity_items(self):
        parsed = parse(
            "WALMART",
            "03/14/2024",
            "GV BRD WHEAT 2.99",
            "2 x COFFEE @ 4.99 = 9.98",
            "TOTAL 12.97",
        )

        wheat, coffee = parsed.items
        assert wheat.name == "GV BRD WHEAT"
        assert wheat.quantity == 1
        assert wheat.total_price == Decimal("2.99")
        assert wheat.unit_price == Decimal("2.99")
        assert wheat.price_detected is True
        assert wheat.quantity_detected is False
        assert wheat.line_index == 2

        assert coffee.name == "COFFEE"
        assert coffee.quantity == 2
        assert coffee.unit_price == Decimal("4.99")
        assert coffee.total_price == Decimal("9.98")
        assert coffee.quantity_detected is True
        assert coffee.line_index == 3

    @pytest.mark.unit
    def test_quantity_total_without_unit_price(self):
        (item,) = parse("SHOP", "2 x MILK 5.98").items
        assert item.quantity == 2
        assert item.total_price == Decimal("5.98")
        assert item.unit_price == Decimal("2.99")

    @pytest.mark.unit
    def test_unit_price_without_total_is_multiplied(self):
        (item,) = parse("SHOP", "BANANAS 3 @ 0.69").items
        assert item.quantity == 3
        assert item.unit_price == Decimal("0.69")
        assert item.total_price == Decimal("2.07")

    @pytest.mark.unit
    def test_continuation_line_takes_name_from_previous_line(self):
        parsed = parse("SHOP", "ORGANIC BANANAS", "3 @ 0.69 2.07", "TOTAL 2.07")

        (item,) = parsed.items
        assert item.name == "ORGANIC BANANAS"
        assert item.quantity == 3
        assert item.total_price == Decimal("2.07")
        assert item.line_index == 2
        assert item.raw_text == "ORGANIC BANANAS\n3 @ 0.69 2.07"
        # Box covers both source lines
        assert item.bounding_box.y == 20
        assert item.bounding_box.bottom == 58

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("MILK 3.4S", Decimal("3.45")),
            ("BREAD 1O.99", Decimal("10.99")),
            ("EGGS 2.49 F", Decimal("2.49")),
        ],
    )
    @pytest.mark.unit
    def test_ocr_garbled_prices(self, line, expected):
        (item,) = parse("SHOP", line).items
        assert item.total_price == expected

    @pytest.mark.unit
    def test_out_of_range_price_flags_item_instead_of_zero(self):
        (item,) = parse("SHOP", "TV 100000.00").items
        assert item.name == "TV"
        assert item.total_price is None
        assert item.unit_price is None
        assert item.price_detected is False

    @pytest.mark.unit
    def test_barcode_removed_from_item_name(self):
        (item,) = parse("SHOP", "GV BRD WHEAT 007225003712 F 2.99").items
        assert item.name == "GV BRD WHEAT"

    @pytest.mark.parametrize(
        "line",
        ["TOTAL 9.99", "SUBTOTAL 9.99", "TAX 0.50", "CASH 20.00", "CHANGE 10.01", "COUPON 1.00-", "VISA 9.99"],
    )
    @pytest.mark.unit
    def test_non_item_lines_are_skipped(self, line):
        parsed = parse("SHOP", "SOAP 3.99", line)
        assert [item.name for item in parsed.items] == ["SOAP"]

    @pytest.mark.unit
    def test_priced_lines_after_total_are_not_items(self):
        parsed = parse("SHOP", "SOAP 3.99", "TOTAL 3.99", "GIFT WRAP 1.50", "BOTTLE DEPOSIT 0.25")

        assert parsed.item_region == (1, 2)
        assert [item.name for item in parsed.items] == ["SOAP"]

    @pytest.mark.unit
    def test_items_keep_receipt_order(self):
        parsed = parse("SHOP", "ZUCCHINI 1.00", "APPLE 2.00", "MANGO 3.00")
        assert [item.name for item in parsed.items] == ["ZUCCHINI", "APPLE", "MANGO"]


class TestLowQualityInput:
    """Unreadable receipts produce empty results, never errors."""

    @pytest.mark.unit
    def test_no_lines(self):
        parsed = ReceiptParser().parse([])
        assert parsed.items == []
        assert parsed.merchant_name is None
        assert parsed.total_amount is None
        assert parsed.item_region == (0, 0)

    @pytest.mark.unit
    def test_text_without_items(self):
        parsed = parse("THANK YOU")
        assert parsed.items == []
        assert parsed.merchant_name is None

    @pytest.mark.unit
    def test_garbage_text(self):
        parsed = parse("~~ ## ~~", "|||| ....", "ll1l")
        assert parsed.items == []
        assert parsed.total_amount is None
