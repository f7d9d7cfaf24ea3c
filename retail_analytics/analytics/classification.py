"""
Classification Engine

Product performance and inventory health classification.

ABC grading ranks products by revenue and grades them by rank percentile
(A up to the 20th percentile, B up to the 50th, C beyond). Inventory health
compares current stock with a 30-day coverage target derived from trailing
sales.
"""

from datetime import date, timedelta
from enum import Enum
from fractions import Fraction
from typing import Iterable, List, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import and_, func, select

from retail_analytics.analytics.aggregation import latest_snapshots, round_half_up
from retail_analytics.analytics.filters import NO_FILTER, SalesFilter, brand_products
from retail_analytics.config import get_settings
from retail_analytics.database.connection import Database
from retail_analytics.database.models import Brand, Product, SaleFact

logger = structlog.get_logger(__name__)


class Grade(str, Enum):
    """ABC grade"""
    A = "A"
    B = "B"
    C = "C"


class StockStatus(str, Enum):
    """Inventory health status"""
    LOW = "Low"
    OPTIMAL = "Optimal"
    HIGH = "High"


class ProductPerformance(BaseModel):
    """Per-product totals under the active filter"""
    product_id: int
    product_name: str
    barcode: str
    brand_name: str
    total_amount: float
    total_qty: int


class GradedProduct(ProductPerformance):
    rank: int
    rank_percent: float
    grade: Grade


class InventoryHealth(BaseModel):
    product_id: int
    product: str
    stock: int
    sold_30d: int
    target: int
    status: StockStatus


def grade_abc(
    products: Iterable[ProductPerformance],
    a_percentile: Optional[float] = None,
    b_percentile: Optional[float] = None,
) -> List[GradedProduct]:
    """
    Grade products by revenue rank percentile.

    Products are ranked by total amount descending; equal amounts rank by
    product id ascending. Percentile = rank / N * 100.
    """
    settings = get_settings().analytics
    a_cut = settings.abc_a_percentile if a_percentile is None else a_percentile
    b_cut = settings.abc_b_percentile if b_percentile is None else b_percentile

    ranked = sorted(products, key=lambda p: (-p.total_amount, p.product_id))
    total = len(ranked)
    graded = []
    for index, product in enumerate(ranked, start=1):
        rank_percent = index / total * 100
        if rank_percent <= a_cut:
            grade = Grade.A
        elif rank_percent <= b_cut:
            grade = Grade.B
        else:
            grade = Grade.C
        graded.append(
            GradedProduct(
                **product.model_dump(),
                rank=index,
                rank_percent=rank_percent,
                grade=grade,
            )
        )
    return graded


def _exact(value) -> Fraction:
    return Fraction(str(value))


def coverage_target(sold: float, window_days: int) -> Fraction:
    """Stock needed to cover ``window_days`` at the average daily sales rate."""
    ads = _exact(sold) / window_days
    return ads * window_days


def classify_stock(
    stock: float,
    sold: float,
    window_days: Optional[int] = None,
    low_ratio: Optional[float] = None,
    high_ratio: Optional[float] = None,
) -> StockStatus:
    """
    Classify stock against a coverage target.

    ADS = sold / window and target = ADS * window. Low when stock is below
    target * low_ratio, High when above target * high_ratio, otherwise
    Optimal. With no sales the target is 0: any stock is High, none is
    Optimal.

    Comparisons are exact, so stock of exactly target * ratio is Optimal.
    """
    settings = get_settings().analytics
    window = window_days or settings.coverage_days
    low = settings.low_stock_ratio if low_ratio is None else low_ratio
    high = settings.high_stock_ratio if high_ratio is None else high_ratio

    target = coverage_target(sold, window)
    stock = _exact(stock)
    if stock < target * _exact(low):
        return StockStatus.LOW
    if stock > target * _exact(high):
        return StockStatus.HIGH
    return StockStatus.OPTIMAL


class ClassificationEngine:
    """
    Example:
        engine = ClassificationEngine(database)
        graded = await engine.abc_analysis(SalesFilter(store_id=1))
    """

    def __init__(self, database: Database):
        self.database = database
        self.settings = get_settings().analytics

    async def product_performance(self, filters: SalesFilter = NO_FILTER) -> List[ProductPerformance]:
        """Per-product total amount and quantity joined to brand name."""
        total_amount = func.coalesce(func.sum(SaleFact.amount), 0).label("total_amount")
        stmt = (
            select(
                Product.id,
                Product.name,
                Product.barcode,
                Brand.name.label("brand_name"),
                total_amount,
                func.coalesce(func.sum(SaleFact.quantity), 0).label("total_qty"),
            )
            .select_from(SaleFact)
            .join(Product, SaleFact.product_id == Product.id)
            .join(Brand, Product.brand_id == Brand.id)
            .where(*filters.conditions())
            .group_by(Product.id, Product.name, Product.barcode, Brand.name)
            .order_by(total_amount.desc(), Product.id)
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).all()

        return [
            ProductPerformance(
                product_id=r.id,
                product_name=r.name,
                barcode=r.barcode,
                brand_name=r.brand_name,
                total_amount=float(r.total_amount),
                total_qty=int(r.total_qty),
            )
            for r in rows
        ]

    async def abc_analysis(self, filters: SalesFilter = NO_FILTER) -> List[GradedProduct]:
        """ABC grades for every product sold under the filter."""
        graded = grade_abc(
            await self.product_performance(filters),
            self.settings.abc_a_percentile,
            self.settings.abc_b_percentile,
        )
        logger.debug(
            "ABC grading computed",
            products=len(graded),
            grade_a=sum(1 for g in graded if g.grade == Grade.A),
        )
        return graded

    async def inventory_health(self, brand_id: int, today: Optional[date] = None) -> List[InventoryHealth]:
        """
        Stock status for every product of a brand.

        Sold quantity covers the trailing window ending today; current stock
        is the product's latest snapshot regardless of the window. Products
        without sales in the window are included.
        """
        window = self.settings.coverage_days
        since = ((today or date.today()) - timedelta(days=window)).isoformat()

        latest = latest_snapshots(SaleFact.product_id.in_(brand_products(brand_id)))
        sold = func.coalesce(func.sum(SaleFact.quantity), 0).label("sold")
        stmt = (
            select(
                Product.id,
                Product.name,
                sold,
                func.coalesce(func.max(latest.c.inventory), 0).label("stock"),
            )
            .select_from(Product)
            .outerjoin(SaleFact, and_(SaleFact.product_id == Product.id, SaleFact.sale_date >= since))
            .outerjoin(latest, latest.c.product_id == Product.id)
            .where(Product.brand_id == brand_id)
            .group_by(Product.id, Product.name)
            .order_by(Product.id)
        )
        async with self.database.session() as session:
            rows = (await session.execute(stmt)).all()

        results = []
        for r in rows:
            sold_qty = int(r.sold)
            stock = int(r.stock)
            results.append(
                InventoryHealth(
                    product_id=r.id,
                    product=r.name,
                    stock=stock,
                    sold_30d=sold_qty,
                    target=int(round_half_up(float(coverage_target(sold_qty, window)))),
                    status=classify_stock(
                        stock,
                        sold_qty,
                        window,
                        self.settings.low_stock_ratio,
                        self.settings.high_stock_ratio,
                    ),
                )
            )
        return results
