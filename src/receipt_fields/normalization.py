"""Typed cleanup of extracted field values."""

import logging
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional

from .config import ExtractionConfig
from .models import ReceiptData
from .parsers.date_normalizer import DateNormalizer, is_calendar_date
from .parsers.usage_classifier import UsageClassifier

logger = logging.getLogger(__name__)

MAX_AMOUNT = 10_000_000

# Traditional characters OCR engines commonly return in company names
PAYEE_OCR_FIXES = {
    '株式會社': '株式会社',
    '有限會社': '有限会社',
    '合同會社': '合同会社',
}

FULLWIDTH_DIGITS = str.maketrans('０１２３４５６７８９', '0123456789')


class ReceiptNormalizer:
    """Converts extracted strings into the typed values stored for a receipt."""

    def __init__(self,
                 config: Optional[ExtractionConfig] = None,
                 date_normalizer: Optional[DateNormalizer] = None,
                 usage_classifier: Optional[UsageClassifier] = None):
        self.config = config or ExtractionConfig()
        self.date_normalizer = date_normalizer or DateNormalizer()
        self.usage_classifier = usage_classifier or UsageClassifier(self.config)

    def normalize_date(self, date_string: str) -> str:
        """YYYY/MM/DD when the input names a real day, otherwise the input unchanged."""
        if not date_string or not date_string.strip():
            return date_string
        normalized = self.date_normalizer.normalize(date_string.strip())
        return normalized if is_calendar_date(normalized) else date_string

    def normalize_amount(self, amount_string: str) -> int:
        """
        Parse an amount string to whole yen.

        Decimals are rounded half up. Returns 0 for anything that is not an
        amount between 1 and MAX_AMOUNT.
        """
        cleaned = re.sub(r'[¥￥円,，\s]', '', (amount_string or '').translate(FULLWIDTH_DIGITS))
        if not cleaned:
            return 0

        try:
            value = Decimal(cleaned).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            logger.debug(f"Not a numeric amount: {amount_string!r}")
            return 0

        if not value.is_finite() or value < 1 or value > MAX_AMOUNT:
            logger.debug(f"Amount out of range: {amount_string!r}")
            return 0
        return int(value)

    def normalize_payee(self, payee_string: str) -> str:
        """Trim separators, collapse whitespace and fix common OCR character errors."""
        cleaned = re.sub(r'^[：:\s\-_]+|[：:\s\-_]+$', '', (payee_string or '').strip())
        cleaned = re.sub(r'\s+', ' ', cleaned)
        for wrong, right in PAYEE_OCR_FIXES.items():
            cleaned = cleaned.replace(wrong, right)
        return cleaned.translate(FULLWIDTH_DIGITS)

    def normalize_usage(self, usage_string: str) -> str:
        """
        Map free text to a usage category.

        Empty input becomes the fallback category; text with no known keyword is
        returned cleaned but otherwise unchanged.
        """
        cleaned = re.sub(r'^[：:\s]+|[：:\s]+$', '', (usage_string or '').strip())
        cleaned = re.sub(r'\s+', ' ', cleaned)
        if not cleaned:
            return self.usage_classifier.fallback
        return self.usage_classifier.classify_text(cleaned) or cleaned

    def normalize_receipt(self, receipt: ReceiptData) -> Dict[str, Any]:
        """Typed record for a receipt: date string, payee, integer amount, usage."""
        return {
            'date': self.normalize_date(receipt.date.value),
            'payee': self.normalize_payee(receipt.payee.value),
            'amount': self.normalize_amount(receipt.amount.value),
            'usage': self.normalize_usage(receipt.usage.value),
        }
