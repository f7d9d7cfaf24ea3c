"""
Aggregation Engine

Grouped sums and counts over the sales fact table under a ``SalesFilter``.
Views:
- Daily trend (most recent dates first)
- Day-of-week pattern (0=Sunday..6=Saturday)
- Pivot by brand or store
- Deep metrics (ATV, UPT, sell-through)
- Weekly sales, top brands, best sellers, product trend
- Export rows with totals

Weekday and week folds run on per-date SQL aggregates with polars, which
keeps the SQL portable between SQLite and PostgreSQL.
"""

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

import polars as pl
import structlog
from pydantic import BaseModel
from sqlalchemy import func, select

from retail_analytics.analytics.filters import NO_FILTER, SalesFilter
from retail_analytics.config import get_settings
from retail_analytics.database.connection import Database
from retail_analytics.database.models import Brand, Product, SaleFact, Store
from retail_analytics.exceptions import QueryValidationError

logger = structlog.get_logger(__name__)


# =============================================================================
# RESULT MODELS
# =============================================================================

class DailySales(BaseModel):
    """Daily sales data point"""
    date: str
    total_sales: float
    total_qty: int
    total_customers: int


class WeekdaySales(BaseModel):
    """Sales for one day of the week, 0=Sunday"""
    day_of_week: int
    total_sales: float
    transaction_count: int


class PivotRow(BaseModel):
    """Sales grouped by brand or store name"""
    group_name: str
    total_sales: float
    total_qty: int
    total_customers: int


class DeepMetrics(BaseModel):
    """Totals and per-transaction ratios for the filtered facts"""
    total_sales: float
    total_qty: int
    total_customers: int
    current_stock: int
    atv: int
    upt: float
    sell_through: float


class WeeklySales(BaseModel):
    """Sales for one ``YYYY-WW`` week (Monday-based week of year)"""
    week_num: str
    total_sales: float


class BrandSales(BaseModel):
    brand_id: int
    name: str
    total_sales: float


class ProductSales(BaseModel):
    product_id: int
    name: str
    total_sales: float
    total_qty: int


class ProductTrendPoint(BaseModel):
    date: str
    qty: int
    amount: float


class ExportRow(BaseModel):
    """Raw joined sales line for tabular export"""
    sale_date: str
    store_name: str
    brand_name: str
    barcode: str
    product_name: str
    quantity: int
    amount: float


class ExportReport(BaseModel):
    rows: List[ExportRow]
    total_sales: float
    total_qty: int
    generated_at: datetime


class EntityRef(BaseModel):
    id: int
    name: str


class FilterMetadata(BaseModel):
    """Brands and stores available as filters"""
    brands: List[EntityRef]
    stores: List[EntityRef]


# =============================================================================
# HELPERS
# =============================================================================

def safe_ratio(numerator: float, denominator: float) -> float:
    """Ratio that resolves a zero denominator to 0."""
    if not denominator:
        return 0.0
    return numerator / denominator


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero, as spreadsheets and dashboards do."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def latest_snapshots(*conditions):
    """
    Most recent inventory snapshot per product among the facts matching
    ``conditions``. Same-date facts resolve to the one ingested last.
    """
    ranked = (
        select(
            SaleFact.product_id.label("product_id"),
            SaleFact.inventory.label("inventory"),
            func.row_number().over(
                partition_by=SaleFact.product_id,
                order_by=(SaleFact.sale_date.desc(), SaleFact.id.desc()),
            ).label("rn"),
        )
        .where(*conditions)
        .subquery("ranked_snapshots")
    )
    return (
        select(ranked.c.product_id, ranked.c.inventory)
        .where(ranked.c.rn == 1)
        .subquery("latest_snapshots")
    )


def _sum(column):
    return func.coalesce(func.sum(column), 0)


def _date_frame(rows) -> pl.DataFrame:
    return pl.DataFrame(
        [(r.sale_date, float(r.total_sales), int(r.transaction_count)) for r in rows],
        schema={"sale_date": pl.Utf8, "total_sales": pl.Float64, "transaction_count": pl.Int64},
        orient="row",
    ).with_columns(pl.col("sale_date").str.to_date("%Y-%m-%d").alias("day"))


# =============================================================================
# ENGINE
# =============================================================================

class AggregationEngine:
    """
    Read-only aggregation views over committed sales facts.

    Example:
        engine = AggregationEngine(database)
        trend = await engine.daily_trend(SalesFilter(start_date=date(2024, 1, 1)))
    """

    def __init__(self, database: Database):
        self.database = database
        self.settings = get_settings().analytics

    async def daily_trend(self, filters: SalesFilter = NO_FILTER, limit: Optional[int] = None) -> List[DailySales]:
        """Per-date totals, most recent dates first."""
        limit = limit or self.settings.daily_trend_limit
        stmt = (
            select(
                SaleFact.sale_date,
                _sum(SaleFact.amount).label("total_sales"),
                _sum(SaleFact.quantity).label("total_qty"),
                _sum(SaleFact.customer_count).label("total_customers"),
            )
            .where(*filters.conditions())
            .group_by(SaleFact.sale_date)
            .order_by(SaleFact.sale_date.desc())
            .limit(limit)
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).all()

        logger.debug("Daily trend computed", points=len(rows))
        return [
            DailySales(
                date=row.sale_date,
                total_sales=float(row.total_sales),
                total_qty=int(row.total_qty),
                total_customers=int(row.total_customers),
            )
            for row in rows
        ]

    async def _per_date(self, filters: SalesFilter):
        stmt = (
            select(
                SaleFact.sale_date,
                _sum(SaleFact.amount).label("total_sales"),
                func.count(func.distinct(SaleFact.id)).label("transaction_count"),
            )
            .where(*filters.conditions())
            .group_by(SaleFact.sale_date)
        )
        async with self.database.session() as session:
            return (await session.execute(stmt)).all()

    async def weekday_pattern(self, filters: SalesFilter = NO_FILTER) -> List[WeekdaySales]:
        """Totals by day of week (0=Sunday..6=Saturday), ascending."""
        rows = await self._per_date(filters)
        if not rows:
            return []

        # polars weekday is ISO (Monday=1..Sunday=7)
        folded = (
            _date_frame(rows)
            .with_columns((pl.col("day").dt.weekday().cast(pl.Int64) % 7).alias("day_of_week"))
            .group_by("day_of_week")
            .agg(pl.col("total_sales").sum(), pl.col("transaction_count").sum())
            .sort("day_of_week")
        )
        return [WeekdaySales(**record) for record in folded.to_dicts()]

    async def weekly_sales(self, filters: SalesFilter = NO_FILTER) -> List[WeeklySales]:
        """Totals by ``YYYY-WW`` week, ascending."""
        rows = await self._per_date(filters)
        if not rows:
            return []

        folded = (
            _date_frame(rows)
            .with_columns(pl.col("day").dt.strftime("%Y-%W").alias("week_num"))
            .group_by("week_num")
            .agg(pl.col("total_sales").sum())
            .sort("week_num")
        )
        return [WeeklySales(**record) for record in folded.to_dicts()]

    async def pivot(self, group_by: str = "brand", filters: SalesFilter = NO_FILTER) -> List[PivotRow]:
        """
        Totals grouped by brand or store name, largest sales first.

        Raises:
            QueryValidationError: If group_by is not "brand" or "store"
        """
        if group_by not in ("brand", "store"):
            raise QueryValidationError(
                f"Unsupported groupBy {group_by!r}",
                detail={"allowed": ["brand", "store"]},
            )

        group_col = Brand.name if group_by == "brand" else Store.name
        total_sales = _sum(SaleFact.amount).label("total_sales")
        stmt = select(
            group_col.label("group_name"),
            total_sales,
            _sum(SaleFact.quantity).label("total_qty"),
            _sum(SaleFact.customer_count).label("total_customers"),
        ).select_from(SaleFact)
        if group_by == "brand":
            stmt = stmt.join(Product, SaleFact.product_id == Product.id).join(Brand, Product.brand_id == Brand.id)
        else:
            stmt = stmt.join(Store, SaleFact.store_id == Store.id)
        stmt = (
            stmt.where(*filters.conditions())
            .group_by(group_col)
            .order_by(total_sales.desc(), group_col)
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).all()

        return [
            PivotRow(
                group_name=row.group_name,
                total_sales=float(row.total_sales),
                total_qty=int(row.total_qty),
                total_customers=int(row.total_customers),
            )
            for row in rows
        ]

    async def deep_metrics(self, filters: SalesFilter = NO_FILTER) -> DeepMetrics:
        """
        Totals plus ATV, UPT and sell-through.

        ATV = amount / customers and UPT = quantity / customers; sell-through
        is quantity / (quantity + current stock) as a percentage, with
        current stock summed over each filtered product's latest snapshot.
        Zero denominators yield 0.
        """
        conditions = filters.conditions()
        totals_stmt = select(
            _sum(SaleFact.amount).label("total_sales"),
            _sum(SaleFact.quantity).label("total_qty"),
            _sum(SaleFact.customer_count).label("total_customers"),
        ).where(*conditions)
        latest = latest_snapshots(*conditions)
        stock_stmt = select(_sum(latest.c.inventory))

        async with self.database.session() as session:
            totals = (await session.execute(totals_stmt)).one()
            current_stock = int((await session.execute(stock_stmt)).scalar_one())

        sales = float(totals.total_sales)
        qty = int(totals.total_qty)
        customers = int(totals.total_customers)

        return DeepMetrics(
            total_sales=sales,
            total_qty=qty,
            total_customers=customers,
            current_stock=current_stock,
            atv=int(round_half_up(safe_ratio(sales, customers))),
            upt=round_half_up(safe_ratio(qty, customers), 2),
            sell_through=round_half_up(safe_ratio(qty, qty + current_stock) * 100, 1),
        )

    async def top_brands(self, filters: SalesFilter = NO_FILTER, limit: Optional[int] = None) -> List[BrandSales]:
        """Brands by total sales, largest first."""
        limit = limit or self.settings.top_brands_limit
        total_sales = _sum(SaleFact.amount).label("total_sales")
        stmt = (
            select(Brand.id, Brand.name, total_sales)
            .select_from(SaleFact)
            .join(Product, SaleFact.product_id == Product.id)
            .join(Brand, Product.brand_id == Brand.id)
            .where(*filters.conditions())
            .group_by(Brand.id, Brand.name)
            .order_by(total_sales.desc(), Brand.id)
            .limit(limit)
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).all()
        return [BrandSales(brand_id=r.id, name=r.name, total_sales=float(r.total_sales)) for r in rows]

    async def best_sellers(self, brand_id: int, since: date, limit: Optional[int] = None) -> List[ProductSales]:
        """A brand's products by total sales since a date (inclusive)."""
        limit = limit or self.settings.best_seller_limit
        total_sales = _sum(SaleFact.amount).label("total_sales")
        stmt = (
            select(Product.id, Product.name, total_sales, _sum(SaleFact.quantity).label("total_qty"))
            .select_from(SaleFact)
            .join(Product, SaleFact.product_id == Product.id)
            .where(Product.brand_id == brand_id, SaleFact.sale_date >= since.isoformat())
            .group_by(Product.id, Product.name)
            .order_by(total_sales.desc(), Product.id)
            .limit(limit)
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).all()
        return [
            ProductSales(product_id=r.id, name=r.name, total_sales=float(r.total_sales), total_qty=int(r.total_qty))
            for r in rows
        ]

    async def product_trend(self, product_id: int, days: int = 30, today: Optional[date] = None) -> List[ProductTrendPoint]:
        """Per-date quantity and amount of one product over the trailing window, oldest first."""
        if days < 1:
            raise QueryValidationError("days must be a positive integer", detail={"days": days})
        since = (today or date.today()) - timedelta(days=days)
        stmt = (
            select(
                SaleFact.sale_date,
                _sum(SaleFact.quantity).label("qty"),
                _sum(SaleFact.amount).label("amount"),
            )
            .where(SaleFact.product_id == product_id, SaleFact.sale_date >= since.isoformat())
            .group_by(SaleFact.sale_date)
            .order_by(SaleFact.sale_date)
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).all()
        return [ProductTrendPoint(date=r.sale_date, qty=int(r.qty), amount=float(r.amount)) for r in rows]

    async def export_rows(self, brand_id: Optional[int] = None) -> ExportReport:
        """Raw joined sales lines with summary totals."""
        stmt = (
            select(
                SaleFact.sale_date,
                Store.name.label("store_name"),
                Brand.name.label("brand_name"),
                Product.barcode,
                Product.name.label("product_name"),
                SaleFact.quantity,
                SaleFact.amount,
            )
            .select_from(SaleFact)
            .join(Store, SaleFact.store_id == Store.id)
            .join(Product, SaleFact.product_id == Product.id)
            .join(Brand, Product.brand_id == Brand.id)
            .order_by(SaleFact.sale_date, SaleFact.id)
        )
        if brand_id is not None:
            stmt = stmt.where(Brand.id == brand_id)

        async with self.database.session() as session:
            rows = [ExportRow.model_validate(row._asdict()) for row in (await session.execute(stmt)).all()]

        return ExportReport(
            rows=rows,
            total_sales=sum(r.amount for r in rows),
            total_qty=sum(r.quantity for r in rows),
            generated_at=datetime.utcnow(),
        )

    async def metadata(self) -> FilterMetadata:
        """Brands and stores ordered by name."""
        async with self.database.session() as session:
            brands = (await session.execute(select(Brand.id, Brand.name).order_by(Brand.name))).all()
            stores = (await session.execute(select(Store.id, Store.name).order_by(Store.name))).all()
        return FilterMetadata(
            brands=[EntityRef(id=b.id, name=b.name) for b in brands],
            stores=[EntityRef(id=s.id, name=s.name) for s in stores],
        )
