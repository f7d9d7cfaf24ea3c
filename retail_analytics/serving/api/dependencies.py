"""
API Dependencies

Resolves the application's storage handle, loader and engines per request,
and parses the shared filter query parameters.
"""

from typing import Optional

from fastapi import Depends, Query, Request

from retail_analytics.analytics import (
    AggregationEngine,
    ClassificationEngine,
    InsightGenerator,
    ReportBuilder,
    SalesFilter,
)
from retail_analytics.database.connection import Database
from retail_analytics.ingestion import SalesLoader


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_loader(request: Request) -> SalesLoader:
    return request.app.state.loader


def get_aggregation(database: Database = Depends(get_database)) -> AggregationEngine:
    return AggregationEngine(database)


def get_classification(database: Database = Depends(get_database)) -> ClassificationEngine:
    return ClassificationEngine(database)


def get_insights(database: Database = Depends(get_database)) -> InsightGenerator:
    return InsightGenerator(database)


def get_reports(database: Database = Depends(get_database)) -> ReportBuilder:
    return ReportBuilder(database)


def sales_filter(
    start_date: Optional[str] = Query(None, alias="startDate", description="Inclusive YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, alias="endDate", description="Inclusive YYYY-MM-DD"),
    brand_id: Optional[str] = Query(None, alias="brandId"),
    store_id: Optional[str] = Query(None, alias="storeId"),
) -> SalesFilter:
    """
    Filter from query parameters.

    Values arrive as text and are validated by ``SalesFilter`` so malformed
    ids and dates are rejected with a descriptive reason.
    """
    return SalesFilter.from_params(
        startDate=start_date,
        endDate=end_date,
        brandId=brand_id,
        storeId=store_id,
    )
