"""
Entity Normalizer

Deduplicates brand, store and product identities from parsed extract rows
and links products to brands. Every insert is insert-if-absent: existing
rows are never overwritten, so re-ingesting the same names and barcodes
creates nothing new.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from retail_analytics.database.models import Brand, Product, Store
from retail_analytics.exceptions import ReferentialIntegrityError
from retail_analytics.ingestion.parsers import SalesRow

logger = structlog.get_logger(__name__)

# Keep IN (...) lists under SQLite's bound-parameter limit
_LOOKUP_CHUNK = 500


@dataclass
class ProductSeed:
    """First-seen attributes of a barcode within a batch"""
    name: str
    category: Optional[str]
    brand: str


@dataclass
class NormalizationResult:
    """Counts of created reference rows and the natural-key -> id maps"""
    brands_created: int = 0
    stores_created: int = 0
    products_created: int = 0
    brand_ids: Dict[str, int] = field(default_factory=dict)
    store_ids: Dict[str, int] = field(default_factory=dict)
    product_ids: Dict[str, int] = field(default_factory=dict)


def _chunks(values: Sequence[str], size: int = _LOOKUP_CHUNK) -> Iterable[Sequence[str]]:
    for i in range(0, len(values), size):
        yield values[i:i + size]


async def lookup_ids(session: AsyncSession, column, key_column, keys: Iterable[str]) -> Dict[str, int]:
    """Resolve natural keys to ids for one reference table."""
    keys = list(dict.fromkeys(keys))
    resolved: Dict[str, int] = {}
    for chunk in _chunks(keys):
        result = await session.execute(select(key_column, column).where(key_column.in_(chunk)))
        resolved.update({row[0]: row[1] for row in result.all()})
    return resolved


class EntityNormalizer:
    """
    Inserts the reference data of a batch in the order brands, stores,
    products, inside the caller's transaction.

    Example:
        async with database.transaction() as session:
            result = await EntityNormalizer().normalize(session, rows)
    """

    @staticmethod
    def collect(rows: Sequence[SalesRow]):
        """Distinct brands, stores and barcode seeds, in first-seen order"""
        brands: Dict[str, None] = {}
        stores: Dict[str, None] = {}
        products: Dict[str, ProductSeed] = {}
        for row in rows:
            brands.setdefault(row.brand, None)
            stores.setdefault(row.store, None)
            if row.barcode not in products:
                products[row.barcode] = ProductSeed(row.name, row.category, row.brand)
        return list(brands), list(stores), products

    async def _insert_names(self, session: AsyncSession, model, names: List[str]) -> Tuple[Dict[str, int], int]:
        existing = await lookup_ids(session, model.id, model.name, names)
        missing = [name for name in names if name not in existing]
        if missing:
            await session.execute(insert(model), [{"name": name} for name in missing])
            existing.update(await lookup_ids(session, model.id, model.name, missing))
        return existing, len(missing)

    async def normalize(self, session: AsyncSession, rows: Sequence[SalesRow]) -> NormalizationResult:
        """
        Insert missing brands, stores and products for a batch.

        Raises:
            ReferentialIntegrityError: If a product's brand cannot be resolved
        """
        brand_names, store_names, seeds = self.collect(rows)
        result = NormalizationResult()

        result.brand_ids, result.brands_created = await self._insert_names(session, Brand, brand_names)

        result.store_ids, result.stores_created = await self._insert_names(session, Store, store_names)

        barcodes = list(seeds)
        result.product_ids = await lookup_ids(session, Product.id, Product.barcode, barcodes)
        new_products = []
        for barcode in barcodes:
            if barcode in result.product_ids:
                continue
            seed = seeds[barcode]
            brand_id = result.brand_ids.get(seed.brand)
            if brand_id is None:
                raise ReferentialIntegrityError(
                    f"Product {barcode} references unknown brand {seed.brand!r}",
                    detail={"barcode": barcode, "brand": seed.brand},
                )
            new_products.append({
                "barcode": barcode,
                "name": seed.name,
                "category": seed.category,
                "brand_id": brand_id,
            })

        if new_products:
            await session.execute(insert(Product), new_products)
            result.product_ids.update(
                await lookup_ids(session, Product.id, Product.barcode, [p["barcode"] for p in new_products])
            )
        result.products_created = len(new_products)

        logger.info(
            "Reference data normalized",
            brands_created=result.brands_created,
            stores_created=result.stores_created,
            products_created=result.products_created,
        )
        return result
