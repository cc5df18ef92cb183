"""Base classes for receipt field parsers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple
import logging

from ..config import ExtractionConfig
from ..models import BoundingBox, FieldResult, OCRResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A scored value found in one fragment, before the best one is chosen."""
    value: str
    confidence: float
    source_text: str = ""
    bbox: Optional[BoundingBox] = None
    # Position of discovery; lower is earlier
    order: int = 0
    # Parser-specific ranking input, e.g. amount keyword priority or usage stage
    priority: float = 0.0


class BaseParser(ABC):
    """Base class for all receipt field parsers."""

    field_name = ""

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def extract(self, fragments: Sequence[OCRResult]) -> FieldResult:
        """
        Extract this parser's field from OCR fragments.

        Args:
            fragments: OCR results in the order the OCR engine produced them

        Returns:
            FieldResult; an empty value with confidence 0 when nothing qualified
        """
        pass

    def _log_result(self, result: FieldResult):
        """Log parsing result for debugging."""
        if result.value:
            self.logger.info(f"Parsed {self.field_name}: {result.value} (confidence: {result.confidence:.2f})")
        else:
            self.logger.warning(f"No {self.field_name} found")

    def _reading_penalty(self, rank: int) -> float:
        """Confidence penalty for values read from an alternate OCR candidate."""
        return self.config.alternate_reading_penalty if rank > 0 else 0.0

    @staticmethod
    def _clamp(confidence: float) -> float:
        return min(1.0, max(0.0, confidence))

    def _select_best(self,
                     candidates: List[Candidate],
                     rank_key: Optional[Callable[[Candidate], Tuple]] = None) -> FieldResult:
        """
        Pick the best candidate and collect the distinct values seen.

        Args:
            candidates: Scored candidates in discovery order
            rank_key: Sort key for choosing the winner; defaults to
                confidence then earliest discovery

        Returns:
            FieldResult for the winning candidate
        """
        if not candidates:
            return FieldResult.empty()

        if rank_key is None:
            rank_key = lambda c: (c.confidence, -c.order)

        best = max(candidates, key=rank_key)
        values = self._distinct_values(candidates, best.value)

        return FieldResult(
            value=best.value,
            confidence=self._clamp(best.confidence),
            candidates=values,
            bbox=best.bbox,
        )

    def _distinct_values(self, candidates: List[Candidate], keep: str) -> Tuple[str, ...]:
        """Distinct candidate values in discovery order, capped at max_candidates."""
        values = []
        for candidate in sorted(candidates, key=lambda c: c.order):
            if candidate.value and candidate.value not in values:
                values.append(candidate.value)

        limit = max(1, self.config.max_candidates)
        if len(values) <= limit:
            return tuple(values)

        # The chosen value always survives the cap
        kept = [v for v in values if v != keep][:limit - 1]
        kept.append(keep)
        return tuple(sorted(kept, key=values.index))
