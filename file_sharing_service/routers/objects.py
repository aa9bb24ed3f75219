from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

import schemas
from blob_store import UPLOADS_PREFIX, BlobNotFoundError, BlobStoreError, LocalBlobStore, get_blob_store
from logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    tags=["objects"],
)

@router.put("/objects/uploads/{object_id}", response_model=schemas.UploadedObjectResponse)
async def upload_object(
    object_id: str,
    request: Request,
    expires: Optional[int] = None,
    signature: Optional[str] = None,
    store: LocalBlobStore = Depends(get_blob_store)
):
    object_path = f"{UPLOADS_PREFIX}{object_id}"
    try:
        store.object_id(object_path)
    except BlobNotFoundError:
        logger.warning(f"Rejected upload to invalid object path: {object_path}")
        return JSONResponse(status_code=404, content={"error": "Object not found"})

    if expires is None or signature is None or not store.verify_upload_signature(object_path, expires, signature):
        logger.warning(f"Rejected upload to {object_path}: invalid or expired signature")
        return JSONResponse(status_code=403, content={"error": "Invalid or expired upload URL"})

    try:
        size = await store.write(object_path, request.stream())
    except BlobStoreError:
        return JSONResponse(status_code=500, content={"error": "Failed to store upload"})

    logger.info(f"Stored {size} bytes at {object_path}")
    return schemas.UploadedObjectResponse(object_path=object_path, size=size)
