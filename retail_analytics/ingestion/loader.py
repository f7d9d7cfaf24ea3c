"""
Sales Fact Loader

Batch ingestion of sales extracts into the fact store.
Supports:
- Row records, polars DataFrames and CSV files
- Entity normalization and fact inserts in one transaction
- Serialized batches (one ingestion in flight at a time)
- Load results for auditing
"""

import asyncio
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

import polars as pl
import structlog
from pydantic import BaseModel
from sqlalchemy import insert

from retail_analytics.config import get_settings
from retail_analytics.database.connection import Database
from retail_analytics.database.models import Product, SaleFact, Store
from retail_analytics.exceptions import IngestionError, ReferentialIntegrityError
from retail_analytics.ingestion.normalizer import (
    EntityNormalizer,
    NormalizationResult,
    lookup_ids,
)
from retail_analytics.ingestion.parsers import (
    ParsedBatch,
    RowParser,
    SalesRow,
    read_sales_csv,
    records_from_frame,
)

logger = structlog.get_logger(__name__)

_INSERT_CHUNK = 1000


class LoadStatus(str, Enum):
    """Batch load status"""
    COMPLETED = "completed"
    FAILED = "failed"


class LoadResult(BaseModel):
    """Result of a batch load operation"""
    batch_id: str
    status: LoadStatus
    rows_received: int = 0
    rows_loaded: int = 0
    rows_skipped: int = 0
    brands_created: int = 0
    stores_created: int = 0
    products_created: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    load_duration_seconds: float = 0


class SalesLoader:
    """
    Loads sales extracts into the fact store.

    Either the whole batch (brands, stores, products and facts) commits, or
    nothing does. Batches are serialized with a lock, so a single loader
    must be shared by everything that ingests into one database.

    Example:
        loader = SalesLoader(database)
        result = await loader.ingest(records)
    """

    def __init__(
        self,
        database: Database,
        parser: Optional[RowParser] = None,
        normalizer: Optional[EntityNormalizer] = None,
    ):
        self.database = database
        self.parser = parser or RowParser()
        self.normalizer = normalizer or EntityNormalizer()
        self.max_rows = get_settings().ingestion.max_upload_rows
        self._lock = asyncio.Lock()

    @staticmethod
    def _build_facts(rows: List[SalesRow], refs: NormalizationResult) -> List[Dict[str, Any]]:
        """Resolve every row to store and product ids; fail closed on a miss."""
        facts = []
        for index, row in enumerate(rows):
            store_id = refs.store_ids.get(row.store)
            product_id = refs.product_ids.get(row.barcode)
            if store_id is None or product_id is None:
                missing = "store" if store_id is None else "product"
                raise ReferentialIntegrityError(
                    f"Row {index} references an unknown {missing}",
                    detail={"row": index, "store": row.store, "barcode": row.barcode},
                )
            facts.append({
                "sale_date": row.sale_date,
                "store_id": store_id,
                "product_id": product_id,
                "quantity": row.quantity,
                "amount": row.amount,
                "customer_count": row.customer_count,
                "inventory": row.inventory,
            })
        return facts

    async def ingest(
        self,
        records: Iterable[Mapping[str, Any]],
        normalize: bool = True,
    ) -> LoadResult:
        """
        Ingest a batch of extract records.

        Every log event emitted while the batch is processed, including the
        parser's, the normalizer's and the transaction's, carries the
        batch's ``batch_id``.

        Args:
            records: Row records with date, store, brand, barcode, name,
                quantity, amount, customer count, inventory and category
            normalize: Create missing brands, stores and products first.
                When False, facts resolve against existing reference rows only.

        Returns:
            LoadResult: rows_loaded is the count of rows accepted

        Raises:
            IngestionError: If the batch was rolled back
        """
        batch_id = uuid.uuid4().hex
        with structlog.contextvars.bound_contextvars(batch_id=batch_id):
            return await self._ingest_batch(batch_id, records, normalize)

    async def _ingest_batch(
        self,
        batch_id: str,
        records: Iterable[Mapping[str, Any]],
        normalize: bool,
    ) -> LoadResult:
        started_at = datetime.utcnow()
        batch = self.parser.parse(records)
        if batch.received > self.max_rows:
            raise IngestionError(
                f"Batch of {batch.received} rows exceeds the limit of {self.max_rows}",
                detail={"rows": batch.received, "limit": self.max_rows},
            )

        logger.info(
            "Starting batch ingestion",
            rows_received=batch.received,
            rows_valid=len(batch.rows),
            rows_skipped=batch.skipped,
        )

        async with self._lock:
            try:
                async with self.database.transaction() as session:
                    if normalize:
                        refs = await self.normalizer.normalize(session, batch.rows)
                    else:
                        refs = NormalizationResult(
                            store_ids=await lookup_ids(session, Store.id, Store.name, [r.store for r in batch.rows]),
                            product_ids=await lookup_ids(session, Product.id, Product.barcode, [r.barcode for r in batch.rows]),
                        )

                    facts = self._build_facts(batch.rows, refs)
                    for i in range(0, len(facts), _INSERT_CHUNK):
                        await session.execute(insert(SaleFact), facts[i:i + _INSERT_CHUNK])
            except IngestionError as e:
                self._log_failure(batch_id, batch, started_at, e.message, detail=e.detail)
                raise
            except Exception as e:
                self._log_failure(batch_id, batch, started_at, str(e), error_type=type(e).__name__)
                raise IngestionError("Failed to process sales batch", detail=str(e)) from e

        completed_at = datetime.utcnow()
        result = LoadResult(
            batch_id=batch_id,
            status=LoadStatus.COMPLETED,
            rows_received=batch.received,
            rows_loaded=len(facts),
            rows_skipped=batch.skipped,
            brands_created=refs.brands_created,
            stores_created=refs.stores_created,
            products_created=refs.products_created,
            started_at=started_at,
            completed_at=completed_at,
            load_duration_seconds=(completed_at - started_at).total_seconds(),
        )
        logger.info(
            "Batch ingestion completed",
            rows_loaded=result.rows_loaded,
            duration_seconds=result.load_duration_seconds,
        )
        return result

    @staticmethod
    def _log_failure(batch_id: str, batch: ParsedBatch, started_at: datetime, message: str, **context) -> LoadResult:
        """Record a rolled-back batch as a failed load; nothing from it was committed."""
        completed_at = datetime.utcnow()
        result = LoadResult(
            batch_id=batch_id,
            status=LoadStatus.FAILED,
            rows_received=batch.received,
            rows_skipped=batch.skipped,
            error_message=message,
            started_at=started_at,
            completed_at=completed_at,
            load_duration_seconds=(completed_at - started_at).total_seconds(),
        )
        logger.error("Batch ingestion rolled back", load_result=result.model_dump(mode="json"), **context)
        return result

    async def ingest_frame(self, df: pl.DataFrame) -> LoadResult:
        """Ingest an extract DataFrame"""
        return await self.ingest(records_from_frame(df))

    async def ingest_csv(self, source: Any) -> LoadResult:
        """Ingest a CSV extract from a path, bytes or file-like object"""
        try:
            df = read_sales_csv(source)
        except (pl.exceptions.ComputeError, pl.exceptions.NoDataError) as e:
            raise IngestionError("Could not read sales extract", detail=str(e)) from e
        return await self.ingest_frame(df)
