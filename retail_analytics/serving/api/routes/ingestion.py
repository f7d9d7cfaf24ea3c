"""
Ingestion API Endpoints

Accepts sales extract rows as JSON or as an uploaded CSV file.
"""

from typing import Any, Dict, List

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from retail_analytics.ingestion import LoadResult, SalesLoader
from retail_analytics.serving.api.dependencies import get_loader

router = APIRouter()
logger = structlog.get_logger(__name__)


class IngestRequest(BaseModel):
    """Row records of one sales extract"""
    rows: List[Dict[str, Any]] = Field(default_factory=list)


@router.post("", response_model=LoadResult)
async def ingest_rows(
    payload: IngestRequest,
    loader: SalesLoader = Depends(get_loader),
) -> LoadResult:
    """Ingest a batch of row records atomically."""
    return await loader.ingest(payload.rows)


@router.post("/upload", response_model=LoadResult)
async def upload_extract(
    file: UploadFile = File(...),
    loader: SalesLoader = Depends(get_loader),
) -> LoadResult:
    """Ingest an uploaded CSV extract atomically."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=415, detail="Only CSV extracts are supported")

    content = await file.read()
    logger.info("Extract uploaded", filename=file.filename, size_bytes=len(content))
    return await loader.ingest_csv(content)
