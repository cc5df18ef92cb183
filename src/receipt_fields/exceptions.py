"""Errors raised for programmer misuse of the extraction engine."""


class ReceiptExtractionError(Exception):
    """Base exception for all receipt_fields errors."""


class UnknownEraError(ReceiptExtractionError, KeyError):
    """Raised when an era name or abbreviation is not in the era table."""

    def __init__(self, era_name: str):
        self.era_name = era_name
        super().__init__(era_name)

    def __str__(self) -> str:
        return f"Unknown era: {self.era_name}"


class UnknownFieldError(ReceiptExtractionError, ValueError):
    """Raised when a field selector is not one of date, payee, amount, usage."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Unknown field: {field_name!r}")
