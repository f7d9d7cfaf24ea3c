"""
Dashboard API Endpoints

Daily trend, headline metrics and filter metadata.
"""

from typing import List

from fastapi import APIRouter, Depends

from retail_analytics.analytics import AggregationEngine, SalesFilter
from retail_analytics.analytics.aggregation import DailySales, DeepMetrics, FilterMetadata
from retail_analytics.serving.api.dependencies import get_aggregation, sales_filter

router = APIRouter()


@router.get("/daily", response_model=List[DailySales])
async def get_daily_trend(
    filters: SalesFilter = Depends(sales_filter),
    engine: AggregationEngine = Depends(get_aggregation),
) -> List[DailySales]:
    """Per-date totals for the most recent 30 dates, newest first."""
    return await engine.daily_trend(filters)


@router.get("/deep", response_model=DeepMetrics)
async def get_deep_metrics(
    filters: SalesFilter = Depends(sales_filter),
    engine: AggregationEngine = Depends(get_aggregation),
) -> DeepMetrics:
    """Totals with ATV, UPT and sell-through."""
    return await engine.deep_metrics(filters)


@router.get("/meta", response_model=FilterMetadata)
async def get_metadata(
    engine: AggregationEngine = Depends(get_aggregation),
) -> FilterMetadata:
    """Brands and stores for filter selection."""
    return await engine.metadata()
