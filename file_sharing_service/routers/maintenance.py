from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

import cleanup, schemas
from blob_store import BlobStore, get_blob_store
from database import get_db
from logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    tags=["maintenance"],
)

@router.post("/api/cleanup", response_model=schemas.CleanupResponse)
async def cleanup_expired(
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store)
):
    logger.info("Cleanup requested")
    try:
        cleaned = await cleanup.cleanup_expired_files(db, store)
    except Exception:
        logger.exception("Error during cleanup")
        return JSONResponse(status_code=500, content={"error": "Cleanup failed"})
    return schemas.CleanupResponse(cleaned=cleaned)
