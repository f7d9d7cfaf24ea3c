"""
Test Suite Configuration
"""
from typing import AsyncGenerator, Dict, List

import httpx
import polars as pl
import pytest
import structlog
from sqlalchemy import func, select
from structlog.testing import LogCapture

from retail_analytics.database.connection import Database
from retail_analytics.ingestion import SalesLoader
from retail_analytics.main import create_app


def sale(date, store, brand, barcode, name, qty, amount, customers, inventory, category=None) -> Dict:
    """Build one extract record with the short column names used in tests"""
    return {
        "date": date,
        "store": store,
        "brand": brand,
        "barcode": barcode,
        "name": name,
        "qty": qty,
        "amount": amount,
        "customers": customers,
        "inventory": inventory,
        "category": category,
    }


async def count_rows(database: Database, model) -> int:
    async with database.session() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """File-backed SQLite store, so concurrent sessions see committed data"""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'retail.db'}")
    await db.connect()
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def loader(database) -> SalesLoader:
    return SalesLoader(database)


@pytest.fixture
def scenario_rows() -> List[Dict]:
    """Two days of one product in one store"""
    return [
        sale("2024-01-01", "Gangnam", "Acme", "111", "Widget", 5, 5000, 2, 100),
        sale("2024-01-02", "Gangnam", "Acme", "111", "Widget", 3, 3000, 1, 97),
    ]


@pytest.fixture
def mixed_rows(scenario_rows) -> List[Dict]:
    """
    Two brands, two stores, four products.

    Totals: sales 23000, qty 51, customers 16. Latest stock per product:
    111=97, 112=1, 221=50, 222=5.
    """
    return scenario_rows + [
        sale("2024-01-02", "Hongdae", "Acme", "112", "Gadget", 2, 4000, 2, 1),
        sale("2024-01-06", "Hongdae", "Bolt", "221", "Bolt Tee", 1, 9000, 1, 50),
        sale("2024-01-07", "Gangnam", "Bolt", "222", "Bolt Cap", 40, 2000, 10, 5),
    ]


@pytest.fixture
async def scenario_db(database, loader, scenario_rows) -> Database:
    await loader.ingest(scenario_rows)
    return database


@pytest.fixture
async def mixed_db(database, loader, mixed_rows) -> Database:
    await loader.ingest(mixed_rows)
    return database


@pytest.fixture
def sample_extract_df() -> pl.DataFrame:
    """Extract as read from a CSV: every column is text"""
    return pl.DataFrame({
        "날짜": ["날짜", "2024-01-01", "2024-01-02", ""],
        "매장": ["매장", "Gangnam", "Gangnam", "Gangnam"],
        "브랜드": ["브랜드", "Acme", "Acme", "Acme"],
        "바코드": ["바코드", "0111", "0111", "0111"],
        "상품명": ["상품명", "Widget", "Widget", "Widget"],
        "수량": ["수량", "5", "3", "1"],
        "매출": ["매출", "5,000", "3,000", "1,000"],
        "객수": ["객수", "2", "1", "1"],
        "재고": ["재고", "100", "97", "96"],
        "카테고리": ["카테고리", "outer", "outer", "outer"],
    })


@pytest.fixture
def sample_csv() -> bytes:
    return (
        "date,store,brand,barcode,name,quantity,amount,customer_count,inventory,category\n"
        "2024-01-01,Gangnam,Acme,0111,Widget,5,\"5,000\",2,100,outer\n"
        "2024-01-02,Gangnam,Acme,0111,Widget,3,3000,1,97,outer\n"
    ).encode("utf-8")


@pytest.fixture
async def client(database) -> AsyncGenerator[httpx.AsyncClient, None]:
    """API client bound to the test store"""
    app = create_app(database)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_sale():
    return sale


@pytest.fixture
def row_count(database):
    async def _count(model) -> int:
        return await count_rows(database, model)
    return _count


@pytest.fixture
def log_events() -> List[Dict]:
    """Structlog events emitted during the test, with bound context merged in"""
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    yield capture.entries
    structlog.reset_defaults()
