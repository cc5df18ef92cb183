"""Payee (business name) detection from receipt fragments."""

import logging
import re
import unicodedata
from typing import List, Optional, Sequence, Tuple

from ..models import BoundingBox, FieldResult, OCRResult
from .base import BaseParser, Candidate

logger = logging.getLogger(__name__)

# (marker, confidence boost); matched against NFKC text, so ㈱ reads as (株)
ENTITY_MARKERS: Tuple[Tuple[str, float], ...] = (
    ('株式会社', 0.15),
    ('有限会社', 0.15),
    ('(株)', 0.15),
    ('(有)', 0.15),
    ('合同会社', 0.12),
    ('合資会社', 0.12),
    ('合名会社', 0.12),
    ('商店', 0.1),
    ('ストア', 0.1),
    ('マート', 0.1),
    ('ショップ', 0.1),
    ('カフェ', 0.1),
    ('レストラン', 0.1),
    ('食堂', 0.1),
    ('居酒屋', 0.1),
    ('薬局', 0.1),
    ('医院', 0.1),
    ('クリニック', 0.1),
    ('病院', 0.1),
    ('ホテル', 0.1),
    ('旅館', 0.1),
    ('書店', 0.1),
    ('店', 0.1),
    ('堂', 0.1),
    ('センター', 0.05),
)

REJECT_PATTERNS = [
    re.compile(r'^[\d\s,.:/\-]+$'),                          # Numbers, times, dates
    re.compile(r'^¥?\s*[\d,]+\s*円?-?$'),                    # Amounts
    re.compile(r'^\d{2,4}\s*年\s*\d{1,2}\s*月\s*\d{1,2}\s*日$'),  # Kanji dates
    re.compile(r'^[:\s\-_=*]+$'),                            # Separators
]

BOILERPLATE_PATTERNS = [
    re.compile(r'領収書|領収証|レシート|receipt', re.IGNORECASE),
    re.compile(r'合計|税込|小計|金額|お釣り?|おつり|お預り?'),
    re.compile(r'ありがとうございま|またお越し'),
    re.compile(r'¥\s*\d|\d\s*円'),
    re.compile(r'\d{2,4}[/\-.年]\d{1,2}[/\-.月]'),
    re.compile(r"(?<![A-Za-z])TEL(?![A-Za-z])|電話", re.IGNORECASE),
]

WORD_CHARACTER = re.compile(r'[A-Za-z\u3040-\u30ff\u3400-\u9fff]')


def clean_payee_name(text: str) -> str:
    """Trim separators and collapse whitespace."""
    cleaned = re.sub(r'^[：:\s]+|[：:\s]+$', '', text.strip())
    return re.sub(r'\s+', ' ', cleaned)


def entity_marker(text: str) -> Optional[Tuple[str, float]]:
    """Strongest business-entity marker in text, if any."""
    normalized = unicodedata.normalize('NFKC', text)
    found = [(marker, boost) for marker, boost in ENTITY_MARKERS if marker in normalized]
    if not found:
        return None
    return max(found, key=lambda m: m[1])


def join_fragment_text(first: str, second: str) -> str:
    """Join two lines, with a space only between Latin characters."""
    first, second = first.strip(), second.strip()
    if first and second and first[-1].isascii() and second[0].isascii():
        return f"{first} {second}"
    return first + second


class PayeeParser(BaseParser):
    """Specialized parser for extracting the payee's business name."""

    field_name = "payee"

    def extract(self, fragments: Sequence[OCRResult]) -> FieldResult:
        candidates: List[Candidate] = []

        for fragment in fragments:
            for rank, reading in fragment.readings():
                confidence = self._fragment_confidence(reading, fragment.confidence)
                if confidence is None:
                    continue
                candidates.append(Candidate(
                    value=clean_payee_name(reading),
                    confidence=confidence - self._reading_penalty(rank),
                    source_text=reading,
                    bbox=fragment.bbox,
                    order=len(candidates),
                ))

        for value, confidence, bbox in self._joined_candidates(fragments):
            candidates.append(Candidate(
                value=value,
                confidence=confidence,
                source_text=value,
                bbox=bbox,
                order=len(candidates),
            ))

        result = self._select_best(candidates, rank_key=self._rank)
        self._log_result(result)
        return result

    @staticmethod
    def _rank(candidate: Candidate) -> Tuple:
        # Higher confidence first, then the line nearest the top of the receipt
        top = candidate.bbox.y if candidate.bbox else float('inf')
        return (candidate.confidence, -top, -candidate.order)

    def _fragment_confidence(self, text: str, ocr_confidence: float) -> Optional[float]:
        """Confidence for text as a payee, or None when it cannot be one."""
        stripped = text.strip()
        if self._is_rejected(stripped) or self._has_boilerplate(stripped):
            return None

        marker = entity_marker(stripped)
        if marker and self._is_complete_entity(stripped):
            return ocr_confidence + marker[1]

        if self._looks_like_name(stripped):
            return ocr_confidence * self.config.payee_heuristic_factor

        return None

    def _is_rejected(self, text: str) -> bool:
        normalized = unicodedata.normalize('NFKC', text)
        if len(normalized) < self.config.payee_min_length:
            return True
        if any(pattern.match(normalized) for pattern in REJECT_PATTERNS):
            return True
        return not WORD_CHARACTER.search(normalized)

    @staticmethod
    def _has_boilerplate(text: str) -> bool:
        normalized = unicodedata.normalize('NFKC', text)
        return any(pattern.search(normalized) for pattern in BOILERPLATE_PATTERNS)

    def _looks_like_name(self, text: str) -> bool:
        """No digits or currency, long enough, and mostly letters/kana/kanji."""
        normalized = unicodedata.normalize('NFKC', text)
        if re.search(r'\d|¥|円', normalized):
            return False

        compact = re.sub(r'\s+', '', normalized)
        if len(compact) < self.config.payee_heuristic_min_length:
            return False

        word_chars = len(WORD_CHARACTER.findall(compact))
        return word_chars / len(compact) >= 0.6

    def _is_complete_entity(self, text: str) -> bool:
        """A marker plus a name, e.g. テストカフェ rather than a bare 株式会社."""
        marker = entity_marker(text)
        if not marker:
            return False
        normalized = unicodedata.normalize('NFKC', text)
        remainder = re.sub(r'\s+', '', normalized.replace(marker[0], ''))
        return len(remainder) >= 2

    def _joined_candidates(self, fragments: Sequence[OCRResult]) -> List[Tuple[str, float, BoundingBox]]:
        """Business names split over two vertically adjacent lines."""
        joined = []
        positioned = sorted((f for f in fragments if f.bbox is not None), key=lambda f: f.bbox.y)

        for current, following in zip(positioned, positioned[1:]):
            if not self._joinable(current) or not self._joinable(following):
                continue
            if not self._vertically_adjacent(current.bbox, following.bbox):
                continue

            combined = clean_payee_name(join_fragment_text(current.text, following.text))
            marker = entity_marker(combined)
            if not marker:
                continue

            confidence = min(current.confidence, following.confidence) + marker[1]
            self.logger.debug(f"Joined adjacent payee lines: {combined}")
            joined.append((combined, confidence, current.bbox.union(following.bbox)))

        return joined

    def _joinable(self, fragment: OCRResult) -> bool:
        text = fragment.text.strip()
        return (not self._is_rejected(text)
                and not self._has_boilerplate(text)
                and not self._is_complete_entity(text))

    def _vertically_adjacent(self, upper: BoundingBox, lower: BoundingBox) -> bool:
        gap = abs(lower.y - upper.bottom)
        max_gap = max(upper.height, lower.height) * self.config.payee_adjacency_ratio
        horizontal_overlap = min(upper.right, lower.right) - max(upper.x, lower.x)
        return gap <= max_gap and horizontal_overlap > 0
