"""Receipt field extraction using the specialized parsers."""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence

from .config import ExtractionConfig
from .exceptions import UnknownFieldError
from .models import FIELD_NAMES, FieldResult, OCRResult, ReceiptData, ReceiptMetadata
from .parsers import AmountParser, DateNormalizer, DateParser, PayeeParser, UsageClassifier
from .parsers.base import BaseParser

logger = logging.getLogger(__name__)


def merge_candidates(existing: Sequence[str], new: Sequence[str]) -> tuple:
    """Existing candidates followed by unseen new ones, in order of first appearance."""
    merged = list(existing)
    for candidate in new:
        if candidate and candidate not in merged:
            merged.append(candidate)
    return tuple(merged)


class ReceiptDataExtractor:
    """
    Extracts the four receipt fields from OCR fragments.

    Holds one parser per field and no per-call state, so a single instance can
    be shared between threads.
    """

    def __init__(self,
                 config: Optional[ExtractionConfig] = None,
                 clock: Callable[[], datetime] = datetime.now):
        """
        Initialize with specialized parser components.

        Args:
            config: Heuristic tunables; defaults to ExtractionConfig()
            clock: Source of the current time, used for date validation and
                the processed_at timestamp
        """
        self.config = config or ExtractionConfig()
        self.clock = clock
        self.normalizer = DateNormalizer(clock=clock)

        self.date_parser = DateParser(self.config, normalizer=self.normalizer)
        self.payee_parser = PayeeParser(self.config)
        self.amount_parser = AmountParser(self.config)
        self.usage_classifier = UsageClassifier(self.config)

        self._parsers: Dict[str, BaseParser] = {
            'date': self.date_parser,
            'payee': self.payee_parser,
            'amount': self.amount_parser,
            'usage': self.usage_classifier,
        }

        logger.info("Initialized receipt data extractor")

    def extract_receipt_data(self, fragments: Sequence[OCRResult], image_hash: str = "") -> ReceiptData:
        """
        Extract every field from a receipt's OCR fragments.

        Args:
            fragments: OCR results for the whole receipt
            image_hash: Fingerprint of the source image, if the caller has one

        Returns:
            ReceiptData; usage always resolves to a category
        """
        fragments = list(fragments)
        logger.debug(f"Extracting receipt data from {len(fragments)} fragments")

        receipt = ReceiptData(
            date=self.extract_date(fragments),
            payee=self.extract_payee(fragments),
            amount=self.extract_amount(fragments),
            usage=self.extract_usage(fragments),
            metadata=ReceiptMetadata(processed_at=self.clock(), image_hash=image_hash),
        )

        found = [name for name in FIELD_NAMES if not receipt.get_field(name).is_empty]
        logger.info(f"Extracted {len(found)}/{len(FIELD_NAMES)} fields: {', '.join(found)}")
        return receipt

    def extract_date(self, fragments: Sequence[OCRResult]) -> FieldResult:
        return self.date_parser.extract(fragments)

    def extract_payee(self, fragments: Sequence[OCRResult]) -> FieldResult:
        return self.payee_parser.extract(fragments)

    def extract_amount(self, fragments: Sequence[OCRResult]) -> FieldResult:
        return self.amount_parser.extract(fragments)

    def extract_usage(self, fragments: Sequence[OCRResult]) -> FieldResult:
        return self.usage_classifier.extract(fragments)

    def extract_field(self, field_name: str, fragments: Sequence[OCRResult]) -> FieldResult:
        """Run only the named field's parser."""
        parser = self._parsers.get(field_name)
        if parser is None:
            raise UnknownFieldError(field_name)
        return parser.extract(list(fragments))

    def add_region_candidates(self,
                              existing: ReceiptData,
                              fragments: Sequence[OCRResult],
                              field_name: str) -> ReceiptData:
        """
        Improve one field from an additional OCR region.

        New candidates are appended to the field's existing ones. The value is
        replaced only when the new result is non-empty and at least as
        confident as the current one; the other fields pass through unchanged.

        Args:
            existing: Previously extracted receipt
            fragments: OCR results for the extra region
            field_name: One of date, payee, amount, usage

        Returns:
            New ReceiptData with the merged field

        Raises:
            UnknownFieldError: field_name is not a known field
        """
        if field_name not in FIELD_NAMES:
            raise UnknownFieldError(field_name)

        current = existing.get_field(field_name)
        new = self.extract_field(field_name, fragments)
        candidates = merge_candidates(current.candidates, new.candidates)

        if not new.is_empty and new.confidence >= current.confidence:
            logger.info(f"Region result replaces {field_name}: '{current.value}' -> '{new.value}' "
                        f"(confidence {current.confidence:.2f} -> {new.confidence:.2f})")
            merged = replace(new, candidates=candidates)
        else:
            logger.info(f"Keeping existing {field_name} '{current.value}'; region added "
                        f"{len(candidates) - len(current.candidates)} candidates")
            merged = replace(current, candidates=candidates)

        return replace(
            existing,
            metadata=replace(existing.metadata, processed_at=self.clock()),
            **{field_name: merged},
        )
