"""
Composite Reports

Store and brand analysis views built from independent sub-queries. Each
sub-query uses its own read session, so they run concurrently and are
joined before the composite result is returned.
"""

import asyncio
from datetime import date, timedelta
from typing import List, Optional

import structlog
from pydantic import BaseModel

from retail_analytics.analytics.aggregation import (
    AggregationEngine,
    BrandSales,
    ProductSales,
    WeeklySales,
)
from retail_analytics.analytics.classification import ClassificationEngine, InventoryHealth
from retail_analytics.analytics.filters import NO_FILTER, SalesFilter
from retail_analytics.config import get_settings
from retail_analytics.database.connection import Database

logger = structlog.get_logger(__name__)


class StoreAnalysis(BaseModel):
    """Weekly peaks and top brands of one store"""
    store_id: int
    weekly: List[WeeklySales]
    top_brands: List[BrandSales]


class BrandAnalysis(BaseModel):
    """Monthly and weekly best sellers and inventory health of one brand"""
    brand_id: int
    best_monthly: List[ProductSales]
    best_weekly: List[ProductSales]
    inventory_health: List[InventoryHealth]


class ReportBuilder:
    """
    Example:
        reports = ReportBuilder(database)
        store = await reports.store_analysis(3, SalesFilter(start_date=date(2024, 1, 1)))
    """

    def __init__(
        self,
        database: Database,
        aggregation: Optional[AggregationEngine] = None,
        classification: Optional[ClassificationEngine] = None,
    ):
        self.aggregation = aggregation or AggregationEngine(database)
        self.classification = classification or ClassificationEngine(database)
        self.settings = get_settings().analytics

    async def store_analysis(self, store_id: int, filters: SalesFilter = NO_FILTER) -> StoreAnalysis:
        """Weekly sales and top brands for a store within the filter's date range."""
        scoped = filters.model_copy(update={"store_id": store_id})
        weekly, top_brands = await asyncio.gather(
            self.aggregation.weekly_sales(scoped),
            self.aggregation.top_brands(scoped, self.settings.top_brands_limit),
        )
        logger.debug("Store analysis built", store_id=store_id, weeks=len(weekly))
        return StoreAnalysis(store_id=store_id, weekly=weekly, top_brands=top_brands)

    async def brand_analysis(self, brand_id: int, today: Optional[date] = None) -> BrandAnalysis:
        """Best sellers this month and over the last week, plus inventory health."""
        today = today or date.today()
        month_start = today.replace(day=1)
        week_start = today - timedelta(days=self.settings.best_seller_weekly_days)

        best_monthly, best_weekly, inventory = await asyncio.gather(
            self.aggregation.best_sellers(brand_id, month_start),
            self.aggregation.best_sellers(brand_id, week_start),
            self.classification.inventory_health(brand_id, today),
        )
        logger.debug("Brand analysis built", brand_id=brand_id, products=len(inventory))
        return BrandAnalysis(
            brand_id=brand_id,
            best_monthly=best_monthly,
            best_weekly=best_weekly,
            inventory_health=inventory,
        )
