"""
Analysis API Endpoints

ABC grading, weekday pattern, pivots, store and brand analysis, product
trend, inventory health and automated insights.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from retail_analytics.analytics import (
    AggregationEngine,
    ClassificationEngine,
    InsightGenerator,
    ReportBuilder,
    SalesFilter,
)
from retail_analytics.analytics.aggregation import PivotRow, ProductTrendPoint, WeekdaySales
from retail_analytics.analytics.classification import GradedProduct, InventoryHealth
from retail_analytics.analytics.insights import Insight
from retail_analytics.analytics.reports import BrandAnalysis, StoreAnalysis
from retail_analytics.serving.api.dependencies import (
    get_aggregation,
    get_classification,
    get_insights,
    get_reports,
    sales_filter,
)

router = APIRouter()


@router.get("/abc", response_model=List[GradedProduct])
async def get_abc_analysis(
    filters: SalesFilter = Depends(sales_filter),
    engine: ClassificationEngine = Depends(get_classification),
) -> List[GradedProduct]:
    """Products graded A/B/C by revenue rank."""
    return await engine.abc_analysis(filters)


@router.get("/weekday", response_model=List[WeekdaySales])
async def get_weekday_pattern(
    filters: SalesFilter = Depends(sales_filter),
    engine: AggregationEngine = Depends(get_aggregation),
) -> List[WeekdaySales]:
    """Sales by day of week, 0=Sunday."""
    return await engine.weekday_pattern(filters)


@router.get("/pivot", response_model=List[PivotRow])
async def get_pivot(
    group_by: str = Query("brand", alias="groupBy", pattern="^(brand|store)$"),
    filters: SalesFilter = Depends(sales_filter),
    engine: AggregationEngine = Depends(get_aggregation),
) -> List[PivotRow]:
    """Totals by brand or store."""
    return await engine.pivot(group_by, filters)


@router.get("/store", response_model=StoreAnalysis)
async def get_store_analysis(
    store_id: int = Query(..., alias="storeId", ge=1),
    filters: SalesFilter = Depends(sales_filter),
    reports: ReportBuilder = Depends(get_reports),
) -> StoreAnalysis:
    """Weekly peaks and top brands for one store."""
    return await reports.store_analysis(store_id, filters)


@router.get("/brand", response_model=BrandAnalysis)
async def get_brand_analysis(
    brand_id: int = Query(..., alias="brandId", ge=1),
    reports: ReportBuilder = Depends(get_reports),
) -> BrandAnalysis:
    """Best sellers and inventory health for one brand."""
    return await reports.brand_analysis(brand_id)


@router.get("/inventory", response_model=List[InventoryHealth])
async def get_inventory_health(
    brand_id: int = Query(..., alias="brandId", ge=1),
    engine: ClassificationEngine = Depends(get_classification),
) -> List[InventoryHealth]:
    """Stock status against the 30-day coverage target for a brand's products."""
    return await engine.inventory_health(brand_id)


@router.get("/product/trend", response_model=List[ProductTrendPoint])
async def get_product_trend(
    product_id: int = Query(..., alias="productId", ge=1),
    days: int = Query(30, ge=1, le=3650),
    engine: AggregationEngine = Depends(get_aggregation),
) -> List[ProductTrendPoint]:
    """Daily quantity and amount of one product over the trailing window."""
    return await engine.product_trend(product_id, days)


@router.get("/insights", response_model=List[Insight])
async def get_insights(
    generator: InsightGenerator = Depends(get_insights),
) -> List[Insight]:
    """Month-over-month and low sell-through messages."""
    return await generator.generate()
