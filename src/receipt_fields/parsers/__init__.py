"""Receipt field parsers - one focused parser per extracted field."""

from .date_normalizer import DateNormalizer
from .date_parser import DateParser
from .amount_parser import AmountParser
from .payee_parser import PayeeParser
from .usage_classifier import UsageClassifier, UsageRules

__all__ = ['DateNormalizer', 'DateParser', 'AmountParser', 'PayeeParser', 'UsageClassifier', 'UsageRules']
