"""Integration tests for the complete extraction system."""

from datetime import datetime

import pytest
from receipt_fields.exceptions import UnknownFieldError
from receipt_fields.extractor import ReceiptDataExtractor, merge_candidates
from receipt_fields.models import FieldResult, OCRResult, ReceiptData, ReceiptMetadata

NOW = datetime(2025, 3, 1, 10, 30, 0)


def ocr(text, confidence=0.9):
    return OCRResult(text=text, confidence=confidence)


def fragments(*texts, confidence=0.9):
    return [ocr(text, confidence) for text in texts]


class TestExtractReceiptData:
    """Integration tests for complete receipt extraction."""

    def setup_method(self):
        """Set up test fixtures."""
        self.extractor = ReceiptDataExtractor(clock=lambda: NOW)

    def test_company_receipt(self):
        """Test a typical company receipt."""
        receipt = self.extractor.extract_receipt_data(
            fragments("株式会社テストカンパニー", "2024/01/15", "合計 ¥1,500", "会議用弁当")
        )

        assert receipt.date.value == "2024/01/15"
        assert receipt.amount.value == "1500"
        assert receipt.usage.value == "会議費"
        assert "株式会社テストカンパニー" in receipt.payee.value

    def test_empty_input(self):
        """Test no fragments gives empty fields and the fallback usage."""
        receipt = self.extractor.extract_receipt_data([])

        assert receipt.date.is_empty
        assert receipt.payee.is_empty
        assert receipt.amount.is_empty
        assert receipt.usage.value == "雑費"
        assert receipt.date.confidence == 0.0

    def test_era_date_receipt(self):
        """Test a receipt dated in the Reiwa era."""
        receipt = self.extractor.extract_receipt_data(fragments("令和6年1月15日", "テスト商店", "¥800"))

        assert receipt.date.value == "2024/01/15"
        assert receipt.payee.value == "テスト商店"
        assert receipt.amount.value == "800"

    def test_abbreviated_era_receipt(self):
        """Test an abbreviated era date."""
        receipt = self.extractor.extract_receipt_data(fragments("R6.1.15", "合計 2,400円"))

        assert receipt.date.value == "2024/01/15"
        assert receipt.amount.value == "2400"

    def test_supermarket_receipt(self):
        """Test a longer receipt with subtotal, tax and change lines."""
        receipt = self.extractor.extract_receipt_data(fragments(
            "スーパーテスト",
            "2024年10月30日 14:30",
            "お茶 ¥150",
            "小計 ¥390",
            "合計 ¥390",
            "お預り ¥500",
            "おつり ¥110",
        ))

        assert receipt.date.value == "2024/10/30"
        assert receipt.amount.value == "390"
        assert receipt.payee.value == "スーパーテスト"
        assert receipt.usage.value == "雑費"

    def test_metadata(self):
        """Test processed_at comes from the clock and the hash is kept."""
        receipt = self.extractor.extract_receipt_data(fragments("¥100"), image_hash="abc123")

        assert receipt.metadata.processed_at == NOW
        assert receipt.metadata.image_hash == "abc123"

    def test_usage_never_empty(self):
        """Test usage resolves for arbitrary input."""
        for texts in [(), ("123",), ("unknown item",), ("¥1,000",)]:
            receipt = self.extractor.extract_receipt_data(fragments(*texts))
            assert receipt.usage.value

    def test_to_dict_round_trip(self):
        """Test serialization keeps values and metadata keys."""
        receipt = self.extractor.extract_receipt_data(
            fragments("株式会社テストカンパニー", "2024/01/15", "合計 ¥1,500"), image_hash="h"
        )

        data = receipt.to_dict()

        assert data['metadata'] == {'processedAt': NOW.isoformat(), 'imageHash': 'h'}
        assert ReceiptData.from_dict(data).amount.value == "1500"


class TestSingleFieldExtraction:
    """Test suite for per-field extraction."""

    def setup_method(self):
        """Set up test fixtures."""
        self.extractor = ReceiptDataExtractor(clock=lambda: NOW)

    def test_extract_field(self):
        """Test each selector reaches its parser."""
        texts = fragments("テストカフェ", "2024/01/15", "合計 ¥1,500")

        assert self.extractor.extract_field('date', texts).value == "2024/01/15"
        assert self.extractor.extract_field('payee', texts).value == "テストカフェ"
        assert self.extractor.extract_field('amount', texts).value == "1500"
        assert self.extractor.extract_field('usage', texts).value == "飲食代"

    def test_unknown_field(self):
        """Test an unknown selector raises UnknownFieldError."""
        with pytest.raises(UnknownFieldError) as excinfo:
            self.extractor.extract_field('total', [])

        assert excinfo.value.field_name == 'total'
        assert isinstance(excinfo.value, ValueError)


class TestAddRegionCandidates:
    """Test suite for enriching one field from an extra OCR region."""

    def setup_method(self):
        """Set up test fixtures."""
        self.extractor = ReceiptDataExtractor(clock=lambda: NOW)
        self.existing = ReceiptData(
            date=FieldResult("2024/01/15", 0.9, ("2024/01/15",)),
            payee=FieldResult("テスト商店", 0.8, ("テスト商店",)),
            amount=FieldResult("1500", 0.7, ("1500", "150")),
            usage=FieldResult("雑費", 0.1, ("雑費",)),
            metadata=ReceiptMetadata(processed_at=datetime(2024, 1, 1), image_hash="hash"),
        )

    def test_better_region_replaces_value(self):
        """Test a more confident region result replaces the value."""
        receipt = self.extractor.add_region_candidates(self.existing, fragments("合計 ¥2,000"), 'amount')

        assert receipt.amount.value == "2000"
        assert receipt.amount.confidence == pytest.approx(1.0)
        assert receipt.amount.candidates == ("1500", "150", "2000")

    def test_weaker_region_keeps_value(self):
        """Test a less confident region only adds candidates."""
        receipt = self.extractor.add_region_candidates(
            self.existing, fragments("¥3,000", confidence=0.3), 'amount'
        )

        assert receipt.amount.value == "1500"
        assert receipt.amount.confidence == 0.7
        assert receipt.amount.candidates == ("1500", "150", "3000")

    def test_empty_region_keeps_field(self):
        """Test a region with nothing usable changes nothing in the field."""
        receipt = self.extractor.add_region_candidates(self.existing, fragments("ありがとうございました"), 'amount')

        assert receipt.amount == self.existing.amount

    def test_other_fields_unchanged(self):
        """Test only the selected field is touched."""
        receipt = self.extractor.add_region_candidates(self.existing, fragments("合計 ¥2,000"), 'amount')

        assert receipt.date == self.existing.date
        assert receipt.payee == self.existing.payee
        assert receipt.usage == self.existing.usage

    def test_metadata_refreshed(self):
        """Test processed_at is refreshed and the image hash kept."""
        receipt = self.extractor.add_region_candidates(self.existing, fragments("合計 ¥2,000"), 'amount')

        assert receipt.metadata.processed_at == NOW
        assert receipt.metadata.image_hash == "hash"

    def test_existing_receipt_not_mutated(self):
        """Test enrichment returns a new receipt."""
        self.extractor.add_region_candidates(self.existing, fragments("合計 ¥2,000"), 'amount')

        assert self.existing.amount.value == "1500"

    def test_usage_region(self):
        """Test a usage keyword region upgrades the fallback category."""
        receipt = self.extractor.add_region_candidates(self.existing, fragments("タクシー代"), 'usage')

        assert receipt.usage.value == "交通費"
        assert receipt.usage.candidates == ("雑費", "交通費")

    def test_candidates_never_shrink(self):
        """Test merged candidates keep every existing entry, beyond the fresh-extraction cap."""
        many = tuple(str(n) for n in range(100, 106))
        existing = ReceiptData(
            date=self.existing.date,
            payee=self.existing.payee,
            amount=FieldResult("105", 0.95, many),
            usage=self.existing.usage,
            metadata=self.existing.metadata,
        )

        receipt = self.extractor.add_region_candidates(existing, fragments("¥999", confidence=0.5), 'amount')

        assert receipt.amount.candidates[:len(many)] == many
        assert "999" in receipt.amount.candidates
        assert receipt.amount.value == "105"

    def test_unknown_field(self):
        """Test an unknown selector raises before any parsing."""
        with pytest.raises(UnknownFieldError):
            self.extractor.add_region_candidates(self.existing, fragments("¥100"), 'vendor')


class TestMergeCandidates:
    """Test suite for candidate merging."""

    def test_order_of_first_appearance(self):
        """Test duplicates are dropped and order kept."""
        assert merge_candidates(("a", "b"), ("b", "c", "a", "d")) == ("a", "b", "c", "d")
