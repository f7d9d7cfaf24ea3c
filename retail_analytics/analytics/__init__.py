"""
Analytics Module
"""
from .aggregation import AggregationEngine
from .classification import ClassificationEngine, Grade, StockStatus, classify_stock, grade_abc
from .filters import SalesFilter
from .insights import Insight, InsightGenerator, InsightType
from .reports import ReportBuilder

__all__ = [
    "AggregationEngine",
    "ClassificationEngine",
    "Grade",
    "StockStatus",
    "classify_stock",
    "grade_abc",
    "SalesFilter",
    "Insight",
    "InsightGenerator",
    "InsightType",
    "ReportBuilder",
]
