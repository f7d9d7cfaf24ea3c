"""
Error Taxonomy

Batch-level ingestion failures and rejected queries. Row-level validation
problems never raise; they are counted and skipped by the parser.
"""

from typing import Any, Optional


class RetailAnalyticsError(Exception):
    """Base error carrying a human-readable message and optional detail."""

    code = "RETAIL_ANALYTICS_ERROR"

    def __init__(self, message: str, detail: Optional[Any] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class IngestionError(RetailAnalyticsError):
    """Raised when an ingestion batch fails and is rolled back."""

    code = "INGESTION_FAILED"


class ReferentialIntegrityError(IngestionError):
    """Raised when a fact or product references an unresolved entity."""

    code = "REFERENTIAL_INTEGRITY"


class QueryValidationError(RetailAnalyticsError):
    """Raised for malformed query filters or view parameters."""

    code = "INVALID_QUERY"
