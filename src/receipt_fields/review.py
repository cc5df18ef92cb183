"""Review queue for uncertain or low-confidence extractions."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .models import FIELD_NAMES, ReceiptData

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('date', 'payee', 'amount')


@dataclass
class ReviewItem:
    """Represents a receipt that needs manual review."""
    source: str
    reason: str
    suggested_date: Optional[str] = None
    suggested_payee: Optional[str] = None
    suggested_amount: Optional[str] = None
    suggested_usage: Optional[str] = None
    confidence_scores: Optional[Dict[str, float]] = None


class ReviewQueue:
    """Manages receipts that need manual review."""

    def __init__(self, confidence_threshold: float = 0.5, fallback_usage: str = "雑費"):
        """
        Initialize review queue.

        Args:
            confidence_threshold: Fields found with lower confidence are flagged
            fallback_usage: Usage category that means no usage signal was found
        """
        self.items: List[ReviewItem] = []
        self.confidence_threshold = confidence_threshold
        self.fallback_usage = fallback_usage

    def review_reasons(self, receipt: ReceiptData) -> List[str]:
        """
        Reasons a receipt should be reviewed; empty when it looks complete.

        Args:
            receipt: Extracted receipt

        Returns:
            Short reason strings, e.g. "missing date" or "low amount confidence (0.32)"
        """
        reasons = []

        for name in REQUIRED_FIELDS:
            if receipt.get_field(name).is_empty:
                reasons.append(f"missing {name}")

        for name in FIELD_NAMES:
            result = receipt.get_field(name)
            if result.is_empty or (name == 'usage' and result.value == self.fallback_usage):
                continue
            if result.confidence < self.confidence_threshold:
                reasons.append(f"low {name} confidence ({result.confidence:.2f})")

        if receipt.usage.value == self.fallback_usage:
            reasons.append("usage could not be determined")

        return reasons

    def add_from_receipt(self, source: str, receipt: ReceiptData) -> bool:
        """
        Add a receipt to the queue if its extraction is uncertain.

        Returns:
            True if the receipt was queued
        """
        reasons = self.review_reasons(receipt)
        if not reasons:
            return False

        reason = "; ".join(reasons)
        self.items.append(ReviewItem(
            source=source,
            reason=reason,
            suggested_date=receipt.date.value or None,
            suggested_payee=receipt.payee.value or None,
            suggested_amount=receipt.amount.value or None,
            suggested_usage=receipt.usage.value or None,
            confidence_scores=receipt.confidence_scores(),
        ))
        logger.info(f"Sending {source} to review: {reason}")
        return True

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics for the review queue."""
        if not self.items:
            return {"total": 0}

        reason_counts: Dict[str, int] = {}
        missing_data = 0
        low_confidence = 0

        for item in self.items:
            for reason in item.reason.split(';'):
                # Drop the score so "low date confidence (0.31)" and (0.42) count together
                key = reason.split('(')[0].strip()
                reason_counts[key] = reason_counts.get(key, 0) + 1

            if 'missing' in item.reason:
                missing_data += 1
            if 'low' in item.reason:
                low_confidence += 1

        return {
            "total": len(self.items),
            "missing_data": missing_data,
            "low_confidence": low_confidence,
            "reason_breakdown": reason_counts,
        }

    def clear(self):
        """Clear all items from the review queue."""
        self.items.clear()
        logger.info("Review queue cleared")
