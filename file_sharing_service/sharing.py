import secrets
from datetime import datetime, timedelta
from typing import AsyncIterator, Optional, Tuple
from urllib.parse import quote

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import crud, models, schemas
from blob_store import BlobNotFoundError, BlobStore
from cleanup import reclaim_file
from logging_config import get_logger
from models import utcnow

logger = get_logger(__name__)

EXPIRATION_WINDOWS = {
    schemas.ExpirationWindow.ONE_HOUR: timedelta(hours=1),
    schemas.ExpirationWindow.ONE_DAY: timedelta(days=1),
    schemas.ExpirationWindow.ONE_WEEK: timedelta(days=7),
}

SHARE_ID_ATTEMPTS = 3

class SharedFileNotFound(Exception):
    """Unknown, expired, or blob-less share. Callers must not tell these apart."""
    pass

def generate_share_id() -> str:
    return secrets.token_hex(16)

def compute_expires_at(expiration: schemas.ExpirationWindow, now: datetime) -> datetime:
    return now + EXPIRATION_WINDOWS[schemas.ExpirationWindow(expiration)]

def build_share_url(base_url, share_id: str) -> str:
    return str(base_url.replace(path=f"/files/{share_id}", query=""))

def content_disposition(filename: str) -> str:
    try:
        filename.encode("latin-1")
    except UnicodeEncodeError:
        return f"attachment; filename*=utf-8''{quote(filename)}"
    escaped = filename.replace("\\", "\\\\").replace('"', '\\"')
    return f'attachment; filename="{escaped}"'

async def create_shared_file(
    db: AsyncSession,
    store: BlobStore,
    file_request: schemas.FileCreateRequest,
    now: Optional[datetime] = None
) -> models.SharedFile:
    now = now or utcnow()
    object_path = store.normalize_object_path(file_request.object_path)
    expires_at = compute_expires_at(file_request.expiration, now)

    for attempt in range(1, SHARE_ID_ATTEMPTS + 1):
        share_id = generate_share_id()
        try:
            db_file = await crud.create_file(
                db,
                file_in=file_request,
                object_path=object_path,
                share_id=share_id,
                expires_at=expires_at,
                created_at=now
            )
        except IntegrityError:
            if attempt == SHARE_ID_ATTEMPTS:
                raise
            logger.warning(f"Share id collision on attempt {attempt} for '{file_request.original_name}', retrying")
            continue
        logger.info(f"Created shared file {db_file.id} ('{db_file.original_name}', {db_file.size} bytes) at {object_path}, expires {expires_at.isoformat()}")
        return db_file

async def resolve_shared_file(
    db: AsyncSession,
    store: BlobStore,
    share_id: str,
    now: Optional[datetime] = None
) -> Tuple[models.SharedFile, AsyncIterator[bytes]]:
    now = now or utcnow()
    db_file = await crud.get_file_by_share_id(db, share_id=share_id)
    if db_file is None:
        logger.warning(f"Share id not found: {share_id}")
        raise SharedFileNotFound(share_id)

    if db_file.is_expired(now):
        logger.info(f"Share id {share_id} expired at {db_file.expires_at.isoformat()}, reclaiming file {db_file.id}")
        await reclaim_file(db, store, db_file.id, db_file.object_path, strict=False)
        raise SharedFileNotFound(share_id)

    try:
        stream = await store.open_read_stream(db_file.object_path)
    except BlobNotFoundError:
        logger.error(f"File {db_file.id} found in DB (object_path: {db_file.object_path}) but not in blob storage. Inconsistency!")
        raise SharedFileNotFound(share_id)
    return db_file, stream
