"""
Insight Generator

Automated qualitative messages for the reporting surface:
- Month-over-month sales growth (month-to-date vs the same days last month)
- Brands whose all-time sell-through is below the alert threshold
"""

import calendar
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional, Tuple

import structlog
from pydantic import BaseModel
from sqlalchemy import and_, case, func, or_, select

from retail_analytics.analytics.aggregation import latest_snapshots, safe_ratio
from retail_analytics.config import get_settings
from retail_analytics.database.connection import Database
from retail_analytics.database.models import Brand, Product, SaleFact

logger = structlog.get_logger(__name__)


class InsightType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    WARNING = "warning"


class Insight(BaseModel):
    type: InsightType
    message: str
    value: Optional[float] = None


class BrandSellThrough(BaseModel):
    brand_id: int
    name: str
    qty: int
    stock: int
    ratio: float


def month_to_date_windows(today: date) -> Tuple[Tuple[date, date], Tuple[date, date]]:
    """
    Current month-to-date range and the equivalent range of the prior month.

    The prior range ends on the same day of month, clamped to the prior
    month's length (e.g. March 31 compares with February 28/29).
    """
    this_start = today.replace(day=1)
    last_end_of_month = this_start - timedelta(days=1)
    last_start = last_end_of_month.replace(day=1)
    last_days = calendar.monthrange(last_start.year, last_start.month)[1]
    last_end = last_start.replace(day=min(today.day, last_days))
    return (this_start, today), (last_start, last_end)


def growth_percent(this_total: float, last_total: float) -> Optional[float]:
    """Growth in percent, or None when the previous total is not positive."""
    if not last_total or last_total <= 0:
        return None
    return (this_total - last_total) / last_total * 100


def month_over_month_insight(this_total: float, last_total: float, threshold: Optional[float] = None) -> Optional[Insight]:
    """Positive insight above +threshold %, negative below -threshold %, else None."""
    threshold = get_settings().analytics.mom_threshold_pct if threshold is None else threshold
    growth = growth_percent(this_total, last_total)
    if growth is None:
        return None
    if growth > threshold:
        return Insight(
            type=InsightType.POSITIVE,
            message=f"Sales are up {growth:.1f}% on the same period last month.",
            value=round(growth, 1),
        )
    if growth < -threshold:
        return Insight(
            type=InsightType.NEGATIVE,
            message=f"Sales are down {abs(growth):.1f}% on the same period last month. Review the cause.",
            value=round(growth, 1),
        )
    return None


def sell_through_warning(brand: BrandSellThrough, threshold: float) -> Insight:
    return Insight(
        type=InsightType.WARNING,
        message=f"[{brand.name}] sell-through is below {threshold * 100:.0f}%. Consider a promotion.",
        value=round(brand.ratio * 100, 1),
    )


class InsightGenerator:
    """
    Example:
        insights = await InsightGenerator(database).generate()
    """

    def __init__(self, database: Database):
        self.database = database
        self.settings = get_settings().analytics

    async def month_over_month(self, today: Optional[date] = None) -> Tuple[float, float]:
        """
        Month-to-date total and the total of the same days last month.

        Both totals come from one statement, so they describe the same
        snapshot even while a batch is being ingested.
        """
        (this_start, this_end), (last_start, last_end) = month_to_date_windows(today or date.today())
        in_this = and_(SaleFact.sale_date >= this_start.isoformat(), SaleFact.sale_date <= this_end.isoformat())
        in_last = and_(SaleFact.sale_date >= last_start.isoformat(), SaleFact.sale_date <= last_end.isoformat())

        stmt = select(
            func.coalesce(func.sum(case((in_this, SaleFact.amount), else_=0)), 0).label("this_total"),
            func.coalesce(func.sum(case((in_last, SaleFact.amount), else_=0)), 0).label("last_total"),
        ).where(or_(in_this, in_last))
        async with self.database.session() as session:
            row = (await session.execute(stmt)).one()
        return float(row.this_total), float(row.last_total)

    async def brand_sell_through(self) -> List[BrandSellThrough]:
        """
        All-time sell-through per brand, ordered by brand id.

        Sell-through = quantity / (quantity + current stock), where current
        stock sums the latest snapshot of each of the brand's products.
        """
        qty = (
            select(Product.brand_id, func.sum(SaleFact.quantity).label("qty"))
            .select_from(SaleFact)
            .join(Product, SaleFact.product_id == Product.id)
            .group_by(Product.brand_id)
            .subquery("brand_qty")
        )
        latest = latest_snapshots()
        stock = (
            select(Product.brand_id, func.sum(latest.c.inventory).label("stock"))
            .select_from(latest)
            .join(Product, latest.c.product_id == Product.id)
            .group_by(Product.brand_id)
            .subquery("brand_stock")
        )
        stmt = (
            select(
                Brand.id,
                Brand.name,
                func.coalesce(qty.c.qty, 0).label("qty"),
                func.coalesce(stock.c.stock, 0).label("stock"),
            )
            .select_from(Brand)
            .join(qty, qty.c.brand_id == Brand.id)
            .outerjoin(stock, stock.c.brand_id == Brand.id)
            .order_by(Brand.id)
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).all()

        return [
            BrandSellThrough(
                brand_id=r.id,
                name=r.name,
                qty=int(r.qty),
                stock=int(r.stock),
                ratio=safe_ratio(int(r.qty), int(r.qty) + int(r.stock)),
            )
            for r in rows
        ]

    async def generate(self, today: Optional[date] = None) -> List[Insight]:
        """Month-over-month insight (if any) followed by low sell-through warnings."""
        insights: List[Insight] = []

        this_total, last_total = await self.month_over_month(today)
        mom = month_over_month_insight(this_total, last_total, self.settings.mom_threshold_pct)
        if mom is not None:
            insights.append(mom)

        low = [
            b for b in await self.brand_sell_through()
            # brands with neither sales nor stock have no defined ratio
            if b.qty + b.stock > 0 and b.ratio < self.settings.sell_through_alert_ratio
        ]
        insights.extend(
            sell_through_warning(b, self.settings.sell_through_alert_ratio)
            for b in low[: self.settings.max_sell_through_alerts]
        )

        logger.info(
            "Insights generated",
            this_month=this_total,
            last_month=last_total,
            low_sell_through_brands=len(low),
            insights=len(insights),
        )
        return insights
