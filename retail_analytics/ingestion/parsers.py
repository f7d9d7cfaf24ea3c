"""
Sales Extract Row Parsing

Turns raw extract records into validated ``SalesRow`` objects.
Handles:
- Column aliases (canonical names, extract headers, spreadsheet letters)
- Header-row sentinels repeated inside the data
- Spreadsheet date serials and common date string layouts
- Numeric defaults for missing or unparseable values
"""

import io
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import polars as pl
import structlog

from retail_analytics.config import get_settings

logger = structlog.get_logger(__name__)

# Canonical field -> accepted source column names (matched case-insensitively).
# The single letters are the spreadsheet columns of the store extract layout.
COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "date": ("date", "sale_date", "날짜", "A"),
    "store": ("store", "store_name", "매장", "매장명", "B"),
    "brand": ("brand", "brand_name", "브랜드", "C"),
    "barcode": ("barcode", "바코드", "D"),
    "name": ("name", "product_name", "product", "상품명", "E"),
    "quantity": ("quantity", "qty", "수량", "F"),
    "amount": ("amount", "sales", "매출", "매출액", "G"),
    "customer_count": ("customer_count", "customers", "객수", "H"),
    "inventory": ("inventory", "stock", "재고", "J"),
    "category": ("category", "카테고리", "K"),
}

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%Y%m%d")


@dataclass(frozen=True)
class SalesRow:
    """One validated extract line."""
    sale_date: str
    store: str
    brand: str
    barcode: str
    name: str
    category: Optional[str]
    quantity: int = 0
    amount: float = 0.0
    customer_count: int = 0
    inventory: int = 0


@dataclass
class ParsedBatch:
    """Validated rows plus the count of skipped source rows"""
    rows: List[SalesRow] = field(default_factory=list)
    skipped: int = 0

    @property
    def received(self) -> int:
        return len(self.rows) + self.skipped


def serial_to_date(serial: float, epoch: Optional[date] = None) -> date:
    """
    Convert a spreadsheet date serial to a calendar date.

    Day 0 is the spreadsheet epoch (1899-12-30 by default); the fractional
    part of the serial is a time of day and is dropped.
    """
    epoch = epoch or get_settings().ingestion.spreadsheet_epoch
    seconds = round(float(serial) * 86400)
    moment = datetime.combine(epoch, datetime.min.time()) + timedelta(seconds=seconds)
    return moment.date()


def normalize_date(value: Any, epoch: Optional[date] = None) -> Optional[str]:
    """
    Normalize a source date value to ISO ``YYYY-MM-DD``.

    Returns None when the value is empty or cannot be read as a date.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        try:
            return serial_to_date(value, epoch).isoformat()
        except (OverflowError, ValueError):
            return None

    text = str(value).strip()
    if not text:
        return None
    if not (len(text) == 8 and text.isdigit()):
        # Serials that arrived as text, e.g. "44927.25" from a CSV export.
        # Eight plain digits are a compact YYYYMMDD date instead.
        try:
            serial = float(text)
        except ValueError:
            serial = None
        if serial is not None:
            try:
                return serial_to_date(serial, epoch).isoformat()
            except (OverflowError, ValueError):
                return None
    # ISO date-times keep only their date part
    candidate = text.split("T")[0].split(" ")[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def to_number(value: Any, cast=float):
    """Parse a numeric field, defaulting to 0 when missing or unparseable."""
    if value is None or isinstance(value, bool):
        return cast(0)
    if isinstance(value, (int, float)):
        try:
            return cast(value)
        except (OverflowError, ValueError):
            return cast(0)
    text = str(value).strip().replace(",", "")
    if not text:
        return cast(0)
    try:
        return cast(float(text))
    except (OverflowError, ValueError):
        return cast(0)


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Barcodes read from spreadsheets often arrive as floats
        value = int(value)
    return str(value).strip()


class RowParser:
    """
    Validates raw extract records.

    A record is skipped when its date is empty, equals a header sentinel or
    cannot be parsed, or when its store, brand or barcode is empty.

    Example:
        parser = RowParser()
        batch = parser.parse([{"date": "2024-01-01", "store": "Gangnam", ...}])
    """

    def __init__(
        self,
        header_sentinels: Optional[Sequence[str]] = None,
        epoch: Optional[date] = None,
    ):
        settings = get_settings()
        sentinels = settings.ingestion.header_sentinels if header_sentinels is None else header_sentinels
        self.header_sentinels = {s.strip() for s in sentinels}
        self.epoch = epoch or settings.ingestion.spreadsheet_epoch

    @staticmethod
    def _resolve_columns(record: Mapping[str, Any]) -> Dict[str, str]:
        """Map canonical field names to the keys present in a record"""
        lowered = {str(key).strip().lower(): key for key in record.keys()}
        resolved = {}
        for canonical, aliases in COLUMN_ALIASES.items():
            for alias in aliases:
                key = lowered.get(alias.lower())
                if key is not None:
                    resolved[canonical] = key
                    break
        return resolved

    def parse_record(self, record: Mapping[str, Any]) -> Optional[SalesRow]:
        """Parse one record, returning None when it must be skipped."""
        columns = self._resolve_columns(record)

        def get(name: str) -> Any:
            key = columns.get(name)
            return record.get(key) if key is not None else None

        raw_date = get("date")
        if raw_date is None or _clean_text(raw_date) == "":
            return None
        if isinstance(raw_date, str) and raw_date.strip() in self.header_sentinels:
            return None

        sale_date = normalize_date(raw_date, self.epoch)
        store = _clean_text(get("store"))
        brand = _clean_text(get("brand"))
        barcode = _clean_text(get("barcode"))
        if not sale_date or not store or not brand or not barcode:
            return None

        category = _clean_text(get("category")) or None
        return SalesRow(
            sale_date=sale_date,
            store=store,
            brand=brand,
            barcode=barcode,
            name=_clean_text(get("name")) or barcode,
            category=category,
            quantity=to_number(get("quantity"), int),
            amount=to_number(get("amount"), float),
            customer_count=to_number(get("customer_count"), int),
            inventory=to_number(get("inventory"), int),
        )

    def parse(self, records: Iterable[Mapping[str, Any]]) -> ParsedBatch:
        """Parse a batch, skipping invalid records."""
        batch = ParsedBatch()
        for record in records:
            row = self.parse_record(record)
            if row is None:
                batch.skipped += 1
                continue
            batch.rows.append(row)

        if batch.skipped:
            logger.info(
                "Skipped invalid extract rows",
                skipped=batch.skipped,
                accepted=len(batch.rows),
            )
        return batch


def records_from_frame(df: pl.DataFrame) -> List[Dict[str, Any]]:
    """Convert an extract DataFrame to row records."""
    return df.to_dicts()


def read_sales_csv(source: Any) -> pl.DataFrame:
    """
    Read a sales extract CSV with every column as text.

    Numbers and dates are interpreted by ``RowParser``, so nothing is
    inferred here.

    Args:
        source: Path, bytes or file-like object
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    return pl.read_csv(
        source,
        infer_schema_length=0,
        null_values=["", "NULL", "null", "None", "NA", "N/A"],
    )
