from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

import schemas, sharing
from blob_store import BlobStore, get_blob_store
from database import get_db
from logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    tags=["files"],
)

@router.post("/api/upload-url", response_model=schemas.UploadUrlResponse)
async def request_upload_url(
    upload_request: schemas.UploadUrlRequest,
    request: Request,
    store: BlobStore = Depends(get_blob_store)
):
    logger.info(f"Upload URL request for filename: '{upload_request.filename}', mime_type: '{upload_request.mime_type}', size: {upload_request.size}, expiration: {upload_request.expiration.value}")
    object_path = store.new_object_path()
    try:
        upload_url = store.issue_upload_url(object_path, str(request.base_url))
    except Exception:
        logger.exception(f"Error getting upload URL for '{upload_request.filename}'")
        return JSONResponse(status_code=500, content={"error": "Failed to get upload URL"})

    logger.info(f"Issued upload URL for {object_path}")
    return schemas.UploadUrlResponse(upload_url=upload_url)

@router.post("/api/files", response_model=schemas.FileShareResponse)
async def confirm_upload(
    file_request: schemas.FileCreateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store)
):
    logger.info(f"Upload confirmation for '{file_request.original_name}' at {file_request.object_path}")
    try:
        db_file = await sharing.create_shared_file(db, store, file_request)
    except Exception:
        logger.exception(f"Error saving file '{file_request.original_name}'")
        return JSONResponse(status_code=500, content={"error": "Failed to save file"})

    return schemas.FileShareResponse(
        id=db_file.id,
        share_id=db_file.share_id,
        share_url=sharing.build_share_url(request.base_url, db_file.share_id),
        filename=db_file.original_name,
        size=db_file.size,
        expires_at=db_file.expires_at
    )

@router.get("/files/{share_id}")
async def download_shared_file(
    share_id: str,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store)
):
    logger.info(f"Download request for share_id: {share_id}")
    try:
        db_file, stream = await sharing.resolve_shared_file(db, store, share_id)
    except sharing.SharedFileNotFound:
        return JSONResponse(status_code=404, content={"error": "File not found"})
    except Exception:
        logger.exception(f"Error serving file for share_id: {share_id}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    logger.debug(f"Streaming {db_file.object_path} as '{db_file.original_name}' ({db_file.mime_type})")
    return StreamingResponse(
        stream,
        headers={
            "Content-Type": db_file.mime_type,
            "Content-Disposition": sharing.content_disposition(db_file.original_name)
        }
    )
