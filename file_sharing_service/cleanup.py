import asyncio
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

import crud
from blob_store import BlobStore, BlobStoreError
from logging_config import get_logger
from models import utcnow

logger = get_logger(__name__)

async def reclaim_file(
    db: AsyncSession,
    store: BlobStore,
    file_id: uuid.UUID,
    object_path: str,
    strict: bool = True
) -> None:
    """Delete the blob, then the record. Both deletes are idempotent.

    With ``strict=False`` a blob store failure is logged and the record is
    deleted anyway; the orphan sweep picks the blob up later.
    """
    try:
        await store.delete(object_path)
    except BlobStoreError:
        if strict:
            raise
        logger.exception(f"Could not delete blob {object_path} for file {file_id}, leaving it for the orphan sweep")
    await crud.delete_file(db, file_id=file_id)
    logger.info(f"Reclaimed file {file_id} ({object_path})")

async def cleanup_expired_files(db: AsyncSession, store: BlobStore, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    expired_files = await crud.get_expired_files(db, now=now)
    # commits inside the loop expire loaded instances
    targets = [(db_file.id, db_file.object_path) for db_file in expired_files]
    logger.info(f"Found {len(targets)} expired file(s) as of {now.isoformat()}")

    cleaned_count = 0
    for file_id, object_path in targets:
        try:
            await reclaim_file(db, store, file_id, object_path)
            cleaned_count += 1
        except Exception:
            logger.exception(f"Error cleaning up file {file_id}")
            await db.rollback()

    logger.info(f"Cleaned up {cleaned_count} of {len(targets)} expired file(s)")
    return cleaned_count

async def cleanup_orphaned_blobs(
    db: AsyncSession,
    store: BlobStore,
    max_age: timedelta,
    now: Optional[datetime] = None
) -> int:
    now = now or utcnow()
    cutoff = now - max_age
    removed_count = 0
    for blob in await store.list_blobs():
        if blob.modified_at > cutoff:
            continue
        try:
            if await crud.object_path_in_use(db, blob.object_path):
                continue
            await store.delete(blob.object_path)
            removed_count += 1
            logger.info(f"Removed orphaned blob {blob.object_path} (last modified {blob.modified_at.isoformat()})")
        except Exception:
            logger.exception(f"Error removing orphaned blob {blob.object_path}")
    return removed_count

async def run_periodic_cleanup(
    store: BlobStore,
    session_factory,
    interval_seconds: int,
    orphan_max_age: timedelta
):
    logger.info(f"Cleanup worker started, interval {interval_seconds}s")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with session_factory() as db:
                cleaned = await cleanup_expired_files(db, store)
                orphans = await cleanup_orphaned_blobs(db, store, max_age=orphan_max_age)
            logger.info(f"Periodic cleanup: {cleaned} expired file(s), {orphans} orphaned blob(s)")
        except Exception:
            logger.exception("Periodic cleanup pass failed")
