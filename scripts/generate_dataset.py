"""
Sales Extract Generator
Generates a synthetic daily sales extract (stores x products x days) as CSV
"""

import argparse
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import polars as pl
from faker import Faker

fake = Faker()
np.random.seed(42)
Faker.seed(42)

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"

CATEGORIES = ["outer", "top", "bottom", "shoes", "bag", "accessory"]


# ==========================================
# CATALOG
# ==========================================
def generate_catalog(n_brands=12, products_per_brand=15):
    print(f"📊 Generating {n_brands} brands x {products_per_brand} products...")

    brands = sorted({fake.company().split()[0] for _ in range(n_brands * 3)})[:n_brands]
    rows = []
    for b, brand in enumerate(brands):
        for p in range(products_per_brand):
            rows.append({
                "brand": brand,
                "barcode": f"880{b:03d}{p:06d}",
                "name": f"{brand} {fake.word().title()} {p}",
                "category": CATEGORIES[p % len(CATEGORIES)],
                "unit_price": float(np.random.choice([9900, 19900, 29900, 49900, 89900])),
                # Some brands sell far slower than others
                "velocity": float(np.random.uniform(0.05, 3.0)),
            })
    return pl.DataFrame(rows)


# ==========================================
# SALES LINES - VECTORIZED
# ==========================================
def generate_sales(catalog: pl.DataFrame, n_stores=6, days=120, end=None):
    end = end or date.today()
    start = end - timedelta(days=days - 1)
    stores = [f"{fake.city()} Store" for _ in range(n_stores)]
    print(f"📊 Generating {days} days of sales for {n_stores} stores (vectorized)...")

    dates = pl.DataFrame({"date": [start + timedelta(days=i) for i in range(days)]})
    grid = (
        dates.join(pl.DataFrame({"store": stores}), how="cross")
        .join(catalog, how="cross")
    )
    n = grid.height

    # Weekend uplift
    weekday = grid["date"].dt.weekday().to_numpy()
    uplift = np.where(weekday >= 6, 1.6, 1.0)
    quantity = np.random.poisson(grid["velocity"].to_numpy() * uplift)

    df = grid.with_columns(
        pl.Series("quantity", quantity),
        pl.Series("customer_count", np.maximum(quantity - np.random.binomial(quantity, 0.3), 0)),
        pl.Series("inventory", np.random.randint(0, 120, n)),
    ).with_columns(
        (pl.col("quantity") * pl.col("unit_price")).alias("amount"),
        pl.col("date").dt.strftime("%Y-%m-%d"),
    ).filter(pl.col("quantity") > 0)

    return df.select(
        "date", "store", "brand", "barcode", "name",
        "quantity", "amount", "customer_count", "inventory", "category",
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a synthetic sales extract")
    parser.add_argument("--days", type=int, default=120)
    parser.add_argument("--stores", type=int, default=6)
    parser.add_argument("--brands", type=int, default=12)
    parser.add_argument("--output", type=Path, default=OUTPUT_DIR / "sales_extract.csv")
    args = parser.parse_args()

    args.output.parent.mkdir(parents=True, exist_ok=True)
    catalog = generate_catalog(n_brands=args.brands)
    sales = generate_sales(catalog, n_stores=args.stores, days=args.days)
    sales.write_csv(args.output)
    print(f"   ✅ {args.output.name}: {sales.height:,} rows")
