"""
Export API Endpoints

Raw joined sales rows with summary totals, as JSON or as a CSV download.
"""

from typing import Optional

import polars as pl
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from retail_analytics.analytics import AggregationEngine
from retail_analytics.analytics.aggregation import ExportReport
from retail_analytics.serving.api.dependencies import get_aggregation

router = APIRouter()


def render_csv(report: ExportReport) -> str:
    """Detail rows followed by a blank line and the summary totals."""
    detail = pl.DataFrame(
        [row.model_dump() for row in report.rows],
        schema={
            "sale_date": pl.Utf8,
            "store_name": pl.Utf8,
            "brand_name": pl.Utf8,
            "barcode": pl.Utf8,
            "product_name": pl.Utf8,
            "quantity": pl.Int64,
            "amount": pl.Float64,
        },
    )
    summary = (
        "\n"
        f"Total Sales,{report.total_sales}\n"
        f"Total Quantity,{report.total_qty}\n"
        f"Generated At,{report.generated_at.isoformat()}\n"
    )
    return detail.write_csv() + summary


@router.get("/brand", response_model=ExportReport)
async def export_brand(
    brand_id: Optional[int] = Query(None, alias="brandId", ge=1),
    engine: AggregationEngine = Depends(get_aggregation),
) -> ExportReport:
    """Sales lines for one brand (or all brands) with totals."""
    return await engine.export_rows(brand_id)


@router.get("/brand.csv")
async def export_brand_csv(
    brand_id: Optional[int] = Query(None, alias="brandId", ge=1),
    engine: AggregationEngine = Depends(get_aggregation),
) -> Response:
    """CSV download of the brand report."""
    report = await engine.export_rows(brand_id)
    return Response(
        content=render_csv(report),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="BrandReport.csv"'},
    )
