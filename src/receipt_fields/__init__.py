"""Japanese Receipt Fields - Extract date, payee, amount and usage from receipt OCR output."""

__version__ = "1.0.0"
__author__ = "Receipt OCR Team"
__email__ = ""

from .config import ExtractionConfig
from .exceptions import ReceiptExtractionError, UnknownEraError, UnknownFieldError
from .extractor import ReceiptDataExtractor
from .models import BoundingBox, FieldResult, OCRResult, ReceiptData, ReceiptMetadata
from .normalization import ReceiptNormalizer
from .review import ReviewQueue, ReviewItem

__all__ = [
    'ExtractionConfig',
    'ReceiptExtractionError',
    'UnknownEraError',
    'UnknownFieldError',
    'ReceiptDataExtractor',
    'BoundingBox',
    'FieldResult',
    'OCRResult',
    'ReceiptData',
    'ReceiptMetadata',
    'ReceiptNormalizer',
    'ReviewQueue',
    'ReviewItem',
]
