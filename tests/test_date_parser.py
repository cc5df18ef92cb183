"""Tests for DateParser component."""

from datetime import datetime

import pytest
from receipt_fields.models import OCRResult
from receipt_fields.parsers.date_normalizer import DateNormalizer
from receipt_fields.parsers.date_parser import DateParser


def ocr(text, confidence=0.9, candidates=()):
    return OCRResult(text=text, confidence=confidence, candidates=tuple(candidates))


class TestDateParser:
    """Test suite for DateParser."""

    def setup_method(self):
        """Set up test fixtures."""
        normalizer = DateNormalizer(clock=lambda: datetime(2025, 3, 1))
        self.parser = DateParser(normalizer=normalizer)

    def test_western_date(self):
        """Test a plain YYYY/MM/DD fragment."""
        result = self.parser.extract([ocr("2024/01/15")])

        assert result.value == "2024/01/15"
        assert result.confidence == pytest.approx(1.0)
        assert result.candidates == ("2024/01/15",)

    def test_wareki_date(self):
        """Test parsing of Japanese era dates."""
        result = self.parser.extract([ocr("令和6年1月15日"), ocr("株式会社テスト")])

        assert result.value == "2024/01/15"

    def test_abbreviated_era_date(self):
        """Test R6.1.15 style era dates."""
        result = self.parser.extract([ocr("R6.1.15 12:30")])

        assert result.value == "2024/01/15"

    def test_no_date(self):
        """Test fragments without a date give an empty result."""
        result = self.parser.extract([ocr("株式会社テスト"), ocr("合計 ¥1,500")])

        assert result.is_empty
        assert result.confidence == 0.0
        assert result.candidates == ()

    def test_empty_input(self):
        """Test no fragments at all."""
        assert self.parser.extract([]).is_empty

    def test_implausible_year_rejected(self):
        """Test dates far outside the receipt window are dropped."""
        result = self.parser.extract([ocr("2001/01/01")])

        assert result.is_empty

    def test_invalid_day_rejected(self):
        """Test calendar-invalid dates are dropped."""
        result = self.parser.extract([ocr("2023/02/29")])

        assert result.is_empty

    def test_four_digit_year_preferred(self):
        """Test a full Western date beats a two-digit-year date."""
        result = self.parser.extract([ocr("24.01.10", 0.6), ocr("2024/01/15", 0.6)])

        assert result.value == "2024/01/15"
        assert result.candidates == ("2024/01/10", "2024/01/15")

    def test_higher_ocr_confidence_wins(self):
        """Test OCR confidence decides between dates of the same form."""
        result = self.parser.extract([ocr("2024/01/10", 0.5), ocr("2024/01/15", 0.7)])

        assert result.value == "2024/01/15"

    def test_month_day_uses_current_year(self):
        """Test month/day-only text is dated in the clock's year."""
        result = self.parser.extract([ocr("1月15日 ご来店ありがとうございます")])

        assert result.value == "2025/01/15"

    def test_alternate_reading(self):
        """Test a date found only in an alternate OCR reading."""
        fragment = ocr("2O24/01/15", 0.6, candidates=("2O24/01/15", "2024/01/15"))

        result = self.parser.extract([fragment])

        assert result.value == "2024/01/15"
        # 0.6 + western 0.2 + recent 0.1 - alternate 0.1
        assert result.confidence == pytest.approx(0.8)
