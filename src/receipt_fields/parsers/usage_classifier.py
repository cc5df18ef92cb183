"""Usage (expense category) classification using rules and fuzzy matching."""

import logging
import re
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import yaml
from rapidfuzz import fuzz

from ..models import FieldResult, OCRResult
from .base import BaseParser, Candidate

logger = logging.getLogger(__name__)

# Stage priorities; a higher stage always beats a lower one
EXPLICIT_LABEL = 4
KEYWORD = 3
FUZZY_KEYWORD = 2
BUSINESS_TYPE = 1

# (base, weight) applied as base + weight * OCR confidence
STAGE_CONFIDENCE = {
    EXPLICIT_LABEL: (0.7, 0.3),
    KEYWORD: (0.6, 0.3),
    FUZZY_KEYWORD: (0.45, 0.1),
    BUSINESS_TYPE: (0.3, 0.1),
}


def normalize_text(text: str) -> str:
    return unicodedata.normalize('NFKC', text or '').lower()


def _keyword_table(section: Optional[Dict], path: Path, name: str) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    if not isinstance(section, dict):
        raise ValueError(f"Rules file {path} is missing the '{name}' mapping")
    table = []
    for category, rules in section.items():
        keywords = (rules or {}).get('any', [])
        table.append((str(category), tuple(normalize_text(str(k)) for k in keywords)))
    return tuple(table)


@dataclass(frozen=True)
class UsageRules:
    """Immutable keyword tables loaded from usage_categories.yml."""
    categories: Tuple[Tuple[str, Tuple[str, ...]], ...]
    business_types: Tuple[Tuple[str, Tuple[str, ...]], ...]
    explicit_labels: Tuple[str, ...]
    fallback: str

    @classmethod
    def from_yaml(cls, rules_path: Path) -> 'UsageRules':
        """
        Load usage rules from a YAML file.

        Args:
            rules_path: Path to usage_categories.yml

        Returns:
            UsageRules with keywords NFKC-normalized and lowercased
        """
        try:
            with open(rules_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except Exception as e:
            logger.error(f"Failed to load usage rules: {e}")
            raise

        if not isinstance(data, dict):
            raise ValueError(f"Rules file {rules_path} must contain a mapping")

        rules = cls(
            categories=_keyword_table(data.get('categories'), rules_path, 'categories'),
            business_types=_keyword_table(data.get('business_types', {}), rules_path, 'business_types'),
            explicit_labels=tuple(str(label) for label in data.get('explicit_labels', [])),
            fallback=str(data.get('fallback') or '雑費'),
        )
        logger.info(f"Loaded {len(rules.categories)} usage categories from {rules_path}")
        return rules

    def category_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.categories)


class UsageClassifier(BaseParser):
    """Classify a receipt's purpose into a fixed set of expense categories."""

    field_name = "usage"

    def __init__(self, config=None, rules: Optional[UsageRules] = None):
        super().__init__(config)
        self.rules = rules or UsageRules.from_yaml(self.config.rules_path)

        labels = sorted(self.rules.explicit_labels, key=len, reverse=True)
        self._label_pattern = re.compile(
            '(?:' + '|'.join(re.escape(label) for label in labels) + r')\s*[:：]?\s*(.+)'
        ) if labels else None

    @property
    def fallback(self) -> str:
        return self.rules.fallback

    def extract(self, fragments: Sequence[OCRResult]) -> FieldResult:
        readings = [
            (normalize_text(reading), fragment.confidence - self._reading_penalty(rank))
            for fragment in fragments
            for rank, reading in fragment.readings()
        ]

        found: List[Tuple[str, float, int]] = []
        found.extend(self._label_matches(readings))
        keyword_matches = self._table_matches(self.rules.categories, readings, KEYWORD)
        found.extend(keyword_matches)
        if not keyword_matches:
            found.extend(self._fuzzy_matches(readings))
        found.extend(self._table_matches(self.rules.business_types, readings, BUSINESS_TYPE))

        if not found:
            result = FieldResult(
                value=self.fallback,
                confidence=self.config.usage_fallback_confidence,
                candidates=(self.fallback,),
            )
            self.logger.info(f"No usage signal found, defaulting to '{self.fallback}'")
            return result

        candidates = []
        for category, ocr_confidence, stage in found:
            base, weight = STAGE_CONFIDENCE[stage]
            candidates.append(Candidate(
                value=category,
                confidence=self._clamp(base + weight * self._clamp(ocr_confidence)),
                order=len(candidates),
                priority=stage,
            ))

        # Earliest stage wins, then the first category found within it
        result = self._select_best(candidates, rank_key=lambda c: (c.priority, -c.order))
        self._log_result(result)
        return result

    def classify_text(self, text: str) -> Optional[str]:
        """
        Map free text to a category by name or keyword.

        Returns:
            Category name, or None when nothing in the table matches
        """
        normalized = normalize_text(text)
        if not normalized:
            return None
        for name in (*self.rules.category_names(), self.fallback):
            if normalize_text(name) in normalized:
                return name
        for category, keywords in self.rules.categories:
            if any(keyword and keyword in normalized for keyword in keywords):
                return category
        return None

    def _label_matches(self, readings) -> List[Tuple[str, float, int]]:
        """Categories named after an explicit purpose label such as 但し or 用途."""
        matches = []
        if self._label_pattern is None:
            return matches
        for text, confidence in readings:
            match = self._label_pattern.search(text)
            if not match:
                continue
            category = self.classify_text(match.group(1))
            if category:
                self.logger.debug(f"Explicit usage label matched '{category}' in: {text}")
                matches.append((category, confidence, EXPLICIT_LABEL))
        return matches

    def _table_matches(self, table, readings, stage: int) -> List[Tuple[str, float, int]]:
        """One match per category in table order, scored by its best fragment."""
        matches = []
        for category, keywords in table:
            hits = [confidence for text, confidence in readings
                    if any(keyword and keyword in text for keyword in keywords)]
            if hits:
                matches.append((category, max(hits), stage))
        return matches

    def _fuzzy_matches(self, readings) -> List[Tuple[str, float, int]]:
        """Keyword matches tolerant of single-character OCR misreads."""
        matches = []
        min_length = self.config.usage_fuzzy_min_length
        for category, keywords in self.rules.categories:
            hits = []
            for text, confidence in readings:
                for keyword in keywords:
                    if len(keyword) < min_length or len(text) < len(keyword):
                        continue
                    score = fuzz.partial_ratio(keyword, text)
                    if score >= self.config.usage_fuzzy_threshold:
                        self.logger.debug(f"Fuzzy usage match '{keyword}' ~ '{text}' ({score:.0f})")
                        hits.append(confidence)
                        break
            if hits:
                matches.append((category, max(hits), FUZZY_KEYWORD))
        return matches
