"""
Unit Tests - ABC Grading and Stock Classification
"""
import pytest

from retail_analytics.analytics.classification import (
    Grade,
    ProductPerformance,
    StockStatus,
    classify_stock,
    grade_abc,
)


def performance(product_id: int, amount: float) -> ProductPerformance:
    return ProductPerformance(
        product_id=product_id,
        product_name=f"Product {product_id}",
        barcode=str(product_id),
        brand_name="Acme",
        total_amount=amount,
        total_qty=1,
    )


class TestGradeAbc:
    """Tests for ABC grading"""

    def test_partition_by_rank_percentile(self):
        """Top 20% are A, up to 50% B, the rest C"""
        products = [performance(i, 1000 - i * 10) for i in range(1, 11)]

        graded = grade_abc(products)

        assert [g.grade for g in graded] == [Grade.A] * 2 + [Grade.B] * 3 + [Grade.C] * 5
        assert [g.rank for g in graded] == list(range(1, 11))
        assert graded[1].rank_percent == pytest.approx(20.0)

    def test_ranked_by_amount_descending(self):
        graded = grade_abc([performance(1, 10), performance(2, 500), performance(3, 90)])
        assert [g.product_id for g in graded] == [2, 3, 1]

    def test_ties_broken_by_product_id(self):
        graded = grade_abc([performance(7, 100), performance(3, 100), performance(5, 100)])
        assert [g.product_id for g in graded] == [3, 5, 7]

    def test_single_product_is_c(self):
        """Rank 1 of 1 is the 100th percentile"""
        graded = grade_abc([performance(1, 100)])
        assert graded[0].grade == Grade.C

    def test_empty(self):
        assert grade_abc([]) == []

    def test_custom_cut_offs(self):
        products = [performance(i, 100 - i) for i in range(1, 5)]
        graded = grade_abc(products, a_percentile=50, b_percentile=75)
        assert [g.grade for g in graded] == [Grade.A, Grade.A, Grade.B, Grade.C]


class TestClassifyStock:
    """Tests for inventory health thresholds"""

    @pytest.mark.parametrize("stock, expected", [
        (14, StockStatus.LOW),
        (15, StockStatus.OPTIMAL),
        (30, StockStatus.OPTIMAL),
        (60, StockStatus.OPTIMAL),
        (61, StockStatus.HIGH),
    ])
    def test_thresholds_against_target(self, stock, expected):
        """30 sold in 30 days gives a target of 30; boundaries are Optimal"""
        assert classify_stock(stock, 30) == expected

    def test_no_sales_and_no_stock(self):
        assert classify_stock(0, 0) == StockStatus.OPTIMAL

    def test_no_sales_with_stock(self):
        assert classify_stock(5, 0) == StockStatus.HIGH

    def test_custom_ratios(self):
        assert classify_stock(20, 30, low_ratio=0.8) == StockStatus.LOW
        assert classify_stock(40, 30, high_ratio=1.2) == StockStatus.HIGH

    @pytest.mark.parametrize("sold, stock", [
        (62, 31),
        (124, 62),
        (30, 15),
        (123, 246),
        (245, 490),
        (30, 60),
    ])
    def test_boundaries_are_exact(self, sold, stock):
        """Stock at exactly half or double the target is Optimal for any sold quantity"""
        assert classify_stock(stock, sold) == StockStatus.OPTIMAL

    def test_boundaries_over_a_range_of_sales(self):
        for sold in range(1, 2001):
            assert classify_stock(sold * 2, sold) == StockStatus.OPTIMAL
            if sold % 2 == 0:
                assert classify_stock(sold // 2, sold) == StockStatus.OPTIMAL
