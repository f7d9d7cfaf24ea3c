"""
Seed the sales store from CSV extracts.

Usage:
    python -m retail_analytics.ingestion.seed_db data/generated/sales_extract.csv
"""

import argparse
import asyncio
from pathlib import Path
from typing import List, Optional

import structlog

from retail_analytics.config.logging import configure_logging
from retail_analytics.database.connection import Database
from retail_analytics.ingestion.loader import LoadResult, SalesLoader

logger = structlog.get_logger(__name__)


async def seed(paths: List[Path], url: Optional[str] = None) -> List[LoadResult]:
    """Create the schema and ingest each extract as its own batch."""
    database = Database(url)
    await database.connect()
    try:
        await database.create_all()
        loader = SalesLoader(database)
        results = []
        for path in paths:
            logger.info("Seeding extract", file=str(path))
            results.append(await loader.ingest_csv(path))
        return results
    finally:
        await database.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Load sales extract CSVs into the database")
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument("--database-url", default=None, help="Overrides DATABASE_URL")
    args = parser.parse_args()

    configure_logging()
    results = asyncio.run(seed(args.files, args.database_url))
    for path, result in zip(args.files, results):
        logger.info(
            "Extract loaded",
            file=str(path),
            rows_loaded=result.rows_loaded,
            rows_skipped=result.rows_skipped,
        )


if __name__ == "__main__":
    main()
