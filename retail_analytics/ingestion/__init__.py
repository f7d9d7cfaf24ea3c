"""
Ingestion Module
"""
from .loader import LoadResult, LoadStatus, SalesLoader
from .normalizer import EntityNormalizer, NormalizationResult
from .parsers import ParsedBatch, RowParser, SalesRow, normalize_date, serial_to_date

__all__ = [
    "LoadResult",
    "LoadStatus",
    "SalesLoader",
    "EntityNormalizer",
    "NormalizationResult",
    "ParsedBatch",
    "RowParser",
    "SalesRow",
    "normalize_date",
    "serial_to_date",
]
