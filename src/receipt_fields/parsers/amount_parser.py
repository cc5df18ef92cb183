"""Amount parsing with keyword prioritization."""

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..models import FieldResult, OCRResult
from .base import BaseParser, Candidate

logger = logging.getLogger(__name__)

_NUMBER = r'(\d[\d,.]*\d|\d)'

# Currency-marked amounts and amounts written straight after a total label
AMOUNT_PATTERNS = [
    re.compile(r'¥\s*' + _NUMBER),
    re.compile(_NUMBER + r'\s*円'),
    re.compile(r'(?:合計|お会計|総額|小計|税込|金額)\s*:?\s*' + _NUMBER),
]

# Keyword priority weights; 税込/税別 carry no priority
AMOUNT_KEYWORDS = [
    ('合計', 100),
    ('お会計', 100),
    ('総額', 80),
    ('小計', 30),
    ('税込', 0),
    ('税別', 0),
]

STRONG_KEYWORDS = ('合計', 'お会計')


def score_amount_context(text: str) -> int:
    """Priority of an amount from the keywords on its line; 0 when none."""
    return max((weight for keyword, weight in AMOUNT_KEYWORDS if keyword in text), default=0)


def clean_amount(raw: str) -> Optional[str]:
    """
    Strip thousands separators and currency markers.

    Returns:
        Canonical integer string, or None when the remainder is not a
        non-negative integer
    """
    cleaned = raw.replace(',', '').replace('¥', '').replace('円', '').strip()
    if not cleaned or not (cleaned.isascii() and cleaned.isdigit()):
        return None
    return str(int(cleaned))


@dataclass(frozen=True)
class _AmountCandidate:
    candidate: Candidate
    amount: int


class AmountParser(BaseParser):
    """Specialized parser for extracting the receipt total."""

    field_name = "amount"

    def extract(self, fragments: Sequence[OCRResult]) -> FieldResult:
        found: List[_AmountCandidate] = []

        for fragment in fragments:
            for rank, reading in fragment.readings():
                text = unicodedata.normalize('NFKC', reading)
                priority = score_amount_context(text)
                boost = self.config.amount_strong_keyword_boost if any(k in text for k in STRONG_KEYWORDS) else 0.0

                for raw in self._amounts_in(text):
                    value = clean_amount(raw)
                    if value is None:
                        self.logger.debug(f"Rejected non-integer amount '{raw}' in: {reading}")
                        continue

                    confidence = fragment.confidence + boost - self._reading_penalty(rank)
                    found.append(_AmountCandidate(
                        candidate=Candidate(
                            value=value,
                            confidence=confidence,
                            source_text=reading,
                            bbox=fragment.bbox,
                            order=len(found),
                            priority=priority,
                        ),
                        amount=int(value),
                    ))

        if not found:
            result = FieldResult.empty()
            self._log_result(result)
            return result

        # Keyword priority, then larger amounts, then input order
        best = max(found, key=lambda f: (f.candidate.priority, f.amount, -f.candidate.order))
        result = self._select_best(
            [f.candidate for f in found],
            rank_key=lambda c: (c is best.candidate,),
        )
        self._log_result(result)
        return result

    def _amounts_in(self, text: str) -> List[str]:
        """Raw numeric substrings next to a currency marker or total label."""
        amounts = []
        seen_spans = set()
        for pattern in AMOUNT_PATTERNS:
            for match in pattern.finditer(text):
                span = match.span(1)
                if span in seen_spans:
                    continue
                seen_spans.add(span)
                amounts.append((span[0], match.group(1)))
        return [raw for _, raw in sorted(amounts)]
