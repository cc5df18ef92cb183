"""Date extraction from receipt fragments, Japanese era formats included."""

import logging
import re
from typing import List, Optional, Sequence

from ..models import FieldResult, OCRResult
from .base import BaseParser, Candidate
from .date_normalizer import DateNormalizer, format_date

logger = logging.getLogger(__name__)

MONTH_DAY_PATTERN = re.compile(r'(?<!\d)(\d{1,2})\s*月\s*(\d{1,2})\s*日')


class DateParser(BaseParser):
    """Specialized parser for extracting the transaction date."""

    field_name = "date"

    # Confidence boost by the form that recognized the date
    FORM_BOOSTS = {
        'western': 0.2,
        'western_kanji': 0.2,
        'month_first': 0.1,
        'era_long': 0.15,
        'era_abbreviated': 0.1,
        'two_digit_year': 0.05,
        'month_day': 0.0,
    }
    RECENT_YEARS = 5
    RECENT_BOOST = 0.1

    def __init__(self, config=None, normalizer: Optional[DateNormalizer] = None):
        super().__init__(config)
        self.normalizer = normalizer or DateNormalizer()

    def extract(self, fragments: Sequence[OCRResult]) -> FieldResult:
        candidates: List[Candidate] = []

        for fragment in fragments:
            for rank, reading in fragment.readings():
                for normalized, form in self._dates_in(reading):
                    if not self.normalizer.is_valid_date(normalized):
                        self.logger.debug(f"Rejected implausible date {normalized} in: {reading}")
                        continue

                    confidence = (
                        fragment.confidence
                        + self.FORM_BOOSTS.get(form, 0.0)
                        + self._recency_boost(normalized)
                        - self._reading_penalty(rank)
                    )
                    candidates.append(Candidate(
                        value=normalized,
                        confidence=confidence,
                        source_text=reading,
                        bbox=fragment.bbox,
                        order=len(candidates),
                    ))

        result = self._select_best(candidates)
        self._log_result(result)
        return result

    def _dates_in(self, text: str):
        """Yield (normalized, form) for each date in text."""
        matches = self.normalizer.find_dates(text)
        for match in matches:
            yield match.normalized, match.form

        if matches:
            return

        # Month and day only: assume the current year
        current_year = self.normalizer.clock().year
        for match in MONTH_DAY_PATTERN.finditer(text):
            normalized = format_date(current_year, int(match.group(1)), int(match.group(2)))
            if normalized:
                yield normalized, 'month_day'

    def _recency_boost(self, normalized: str) -> float:
        year = int(normalized[:4])
        if abs(self.normalizer.clock().year - year) <= self.RECENT_YEARS:
            return self.RECENT_BOOST
        return 0.0
