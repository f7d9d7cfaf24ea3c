"""
Integration Tests - Aggregation Views
"""
from datetime import date

import pytest
from sqlalchemy import select

from retail_analytics.analytics import AggregationEngine, SalesFilter
from retail_analytics.database.models import Brand, Product, Store
from retail_analytics.exceptions import QueryValidationError


async def ids_by_name(database, model, key="name"):
    column = getattr(model, key)
    async with database.session() as session:
        return dict((await session.execute(select(column, model.id))).all())


class TestScenario:
    """Two days of one product"""

    async def test_daily_trend(self, scenario_db):
        engine = AggregationEngine(scenario_db)

        trend = await engine.daily_trend(SalesFilter(start_date=date(2024, 1, 1), end_date=date(2024, 1, 2)))

        assert [(p.date, p.total_sales) for p in trend] == [("2024-01-02", 3000.0), ("2024-01-01", 5000.0)]
        assert [p.total_qty for p in trend] == [3, 5]

    async def test_deep_metrics(self, scenario_db):
        """Sell-through uses the latest stock snapshot, 8 / (8 + 97)"""
        engine = AggregationEngine(scenario_db)

        metrics = await engine.deep_metrics(SalesFilter(start_date=date(2024, 1, 1), end_date=date(2024, 1, 2)))

        assert metrics.total_sales == 8000.0
        assert metrics.total_qty == 8
        assert metrics.total_customers == 3
        assert metrics.current_stock == 97
        assert metrics.atv == 2667
        assert metrics.upt == pytest.approx(2.67)
        assert metrics.sell_through == pytest.approx(7.6)


class TestAggregationEngine:
    """Tests for AggregationEngine over two brands and two stores"""

    async def test_daily_trend_limit(self, mixed_db):
        engine = AggregationEngine(mixed_db)

        trend = await engine.daily_trend(limit=2)

        assert [p.date for p in trend] == ["2024-01-07", "2024-01-06"]

    async def test_daily_trend_store_filter(self, mixed_db):
        stores = await ids_by_name(mixed_db, Store)
        engine = AggregationEngine(mixed_db)

        trend = await engine.daily_trend(SalesFilter(store_id=stores["Hongdae"]))

        assert [(p.date, p.total_sales) for p in trend] == [("2024-01-06", 9000.0), ("2024-01-02", 4000.0)]

    async def test_weekday_pattern(self, mixed_db):
        """0=Sunday; 2024-01-01 was a Monday"""
        engine = AggregationEngine(mixed_db)

        pattern = await engine.weekday_pattern()

        assert [(w.day_of_week, w.total_sales, w.transaction_count) for w in pattern] == [
            (0, 2000.0, 1),
            (1, 5000.0, 1),
            (2, 7000.0, 2),
            (6, 9000.0, 1),
        ]

    async def test_weekly_sales(self, mixed_db):
        engine = AggregationEngine(mixed_db)

        weekly = await engine.weekly_sales()

        assert [(w.week_num, w.total_sales) for w in weekly] == [("2024-01", 23000.0)]

    async def test_pivot_by_brand(self, mixed_db):
        engine = AggregationEngine(mixed_db)

        pivot = await engine.pivot("brand")

        assert [(r.group_name, r.total_sales, r.total_qty, r.total_customers) for r in pivot] == [
            ("Acme", 12000.0, 10, 5),
            ("Bolt", 11000.0, 41, 11),
        ]

    async def test_pivot_by_store(self, mixed_db):
        engine = AggregationEngine(mixed_db)

        pivot = await engine.pivot("store")

        assert [(r.group_name, r.total_sales) for r in pivot] == [("Hongdae", 13000.0), ("Gangnam", 10000.0)]

    async def test_pivot_with_brand_filter(self, mixed_db):
        brands = await ids_by_name(mixed_db, Brand)
        engine = AggregationEngine(mixed_db)

        pivot = await engine.pivot("store", SalesFilter(brand_id=brands["Bolt"]))

        assert [(r.group_name, r.total_sales) for r in pivot] == [("Hongdae", 9000.0), ("Gangnam", 2000.0)]

    async def test_pivot_rejects_unknown_dimension(self, mixed_db):
        with pytest.raises(QueryValidationError):
            await AggregationEngine(mixed_db).pivot("category")

    async def test_deep_metrics_all(self, mixed_db):
        """ATV 23000 / 16 = 1437.5 rounds half up"""
        metrics = await AggregationEngine(mixed_db).deep_metrics()

        assert metrics.current_stock == 97 + 1 + 50 + 5
        assert metrics.atv == 1438
        assert metrics.upt == pytest.approx(3.19)
        assert metrics.sell_through == pytest.approx(25.0)

    async def test_deep_metrics_brand_filter(self, mixed_db):
        brands = await ids_by_name(mixed_db, Brand)

        metrics = await AggregationEngine(mixed_db).deep_metrics(SalesFilter(brand_id=brands["Acme"]))

        assert metrics.total_sales == 12000.0
        assert metrics.current_stock == 98
        assert metrics.atv == 2400
        assert metrics.sell_through == pytest.approx(9.3)

    async def test_deep_metrics_without_sales(self, database):
        """Zero denominators yield zeros"""
        metrics = await AggregationEngine(database).deep_metrics()

        assert metrics.total_sales == 0
        assert (metrics.atv, metrics.upt, metrics.sell_through) == (0, 0.0, 0.0)

    async def test_zero_quantity_and_stock(self, database, loader, make_sale):
        await loader.ingest([make_sale("2024-01-01", "Gangnam", "Acme", "111", "Widget", 0, 0, 0, 0)])

        metrics = await AggregationEngine(database).deep_metrics()

        assert metrics.sell_through == 0.0
        assert metrics.atv == 0

    async def test_empty_range(self, mixed_db):
        engine = AggregationEngine(mixed_db)
        filters = SalesFilter(start_date=date(2025, 1, 1))

        assert await engine.daily_trend(filters) == []
        assert await engine.weekday_pattern(filters) == []
        assert await engine.pivot("brand", filters) == []

    async def test_top_brands(self, mixed_db):
        stores = await ids_by_name(mixed_db, Store)

        top = await AggregationEngine(mixed_db).top_brands(SalesFilter(store_id=stores["Hongdae"]))

        assert [(b.name, b.total_sales) for b in top] == [("Bolt", 9000.0), ("Acme", 4000.0)]

    async def test_best_sellers(self, mixed_db):
        brands = await ids_by_name(mixed_db, Brand)
        engine = AggregationEngine(mixed_db)

        all_time = await engine.best_sellers(brands["Acme"], date(2024, 1, 1))
        recent = await engine.best_sellers(brands["Acme"], date(2024, 1, 2))

        assert [(p.name, p.total_sales) for p in all_time] == [("Widget", 8000.0), ("Gadget", 4000.0)]
        assert [(p.name, p.total_sales) for p in recent] == [("Gadget", 4000.0), ("Widget", 3000.0)]

    async def test_product_trend(self, mixed_db):
        products = await ids_by_name(mixed_db, Product, key="barcode")
        engine = AggregationEngine(mixed_db)

        trend = await engine.product_trend(products["111"], days=30, today=date(2024, 1, 10))
        recent = await engine.product_trend(products["111"], days=8, today=date(2024, 1, 10))

        assert [(p.date, p.qty, p.amount) for p in trend] == [("2024-01-01", 5, 5000.0), ("2024-01-02", 3, 3000.0)]
        assert [p.date for p in recent] == ["2024-01-02"]

    async def test_product_trend_rejects_empty_window(self, mixed_db):
        with pytest.raises(QueryValidationError):
            await AggregationEngine(mixed_db).product_trend(1, days=0)

    async def test_export_rows(self, mixed_db):
        brands = await ids_by_name(mixed_db, Brand)
        engine = AggregationEngine(mixed_db)

        report = await engine.export_rows(brands["Acme"])
        everything = await engine.export_rows()

        assert [(r.sale_date, r.store_name, r.barcode) for r in report.rows] == [
            ("2024-01-01", "Gangnam", "111"),
            ("2024-01-02", "Gangnam", "111"),
            ("2024-01-02", "Hongdae", "112"),
        ]
        assert report.total_sales == 12000.0
        assert report.total_qty == 10
        assert len(everything.rows) == 5
        assert everything.total_sales == 23000.0

    async def test_metadata(self, mixed_db):
        meta = await AggregationEngine(mixed_db).metadata()

        assert [b.name for b in meta.brands] == ["Acme", "Bolt"]
        assert [s.name for s in meta.stores] == ["Gangnam", "Hongdae"]
