"""
Database Models - Sales Star Schema

Reference dimensions are append-only and keyed by their natural names or
barcodes; the sales fact table holds one immutable row per ingested
(date, store, product) line.

Dimension Tables:
- Brand: brands, unique by name
- Store: stores, unique by name
- Product: products, unique by barcode, linked to Brand by foreign key

Fact Tables:
- SaleFact: sales lines with quantity, amount, customers and an
  inventory-on-hand snapshot
"""

from typing import List, Optional

from sqlalchemy import (
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class Brand(Base):
    """
    Brand Dimension Table

    Created on first sighting during ingestion; never updated or deleted.
    """
    __tablename__ = "brands"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)

    products: Mapped[List["Product"]] = relationship(back_populates="brand")

    def __repr__(self) -> str:
        return f"<Brand {self.id} {self.name!r}>"


class Store(Base):
    """Store Dimension Table"""
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)

    sales: Mapped[List["SaleFact"]] = relationship(back_populates="store")

    def __repr__(self) -> str:
        return f"<Store {self.id} {self.name!r}>"


class Product(Base):
    """
    Product Dimension Table

    Unique by barcode. First-seen name and category win; later rows with the
    same barcode never overwrite them.
    """
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    barcode: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    brand_id: Mapped[int] = mapped_column(
        ForeignKey("brands.id"), nullable=False
    )

    brand: Mapped["Brand"] = relationship(back_populates="products")
    sales: Mapped[List["SaleFact"]] = relationship(back_populates="product")

    __table_args__ = (
        Index("ix_products_brand_id", "brand_id"),
    )

    def __repr__(self) -> str:
        return f"<Product {self.id} {self.barcode}>"


# =============================================================================
# FACT TABLES
# =============================================================================

class SaleFact(Base):
    """
    Sales Fact Table

    Grain: one row per ingested extract line. Repeated (date, store, product)
    lines are kept as separate facts. ``sale_date`` is an ISO ``YYYY-MM-DD``
    string, so string comparison is date comparison. ``inventory`` is a
    stock-on-hand snapshot, not a delta.
    """
    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sale_date: Mapped[str] = mapped_column(String(10), nullable=False)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)

    # Metrics
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    customer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inventory: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    store: Mapped["Store"] = relationship(back_populates="sales")
    product: Mapped["Product"] = relationship(back_populates="sales")

    __table_args__ = (
        Index("ix_sales_sale_date", "sale_date"),
        Index("ix_sales_product_date", "product_id", "sale_date"),
        Index("ix_sales_store_id", "store_id"),
    )
