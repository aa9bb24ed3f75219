import uuid as py_uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

import models, schemas

async def get_file(db: AsyncSession, file_id: py_uuid.UUID) -> Optional[models.SharedFile]:
    result = await db.execute(select(models.SharedFile).filter(models.SharedFile.id == file_id))
    return result.scalars().first()

async def get_file_by_share_id(db: AsyncSession, share_id: str) -> Optional[models.SharedFile]:
    result = await db.execute(select(models.SharedFile).filter(models.SharedFile.share_id == share_id))
    return result.scalars().first()

async def create_file(
    db: AsyncSession,
    file_in: schemas.SharedFileCreate,
    object_path: str,
    share_id: str,
    expires_at: datetime,
    created_at: Optional[datetime] = None
) -> models.SharedFile:
    db_file = models.SharedFile(
        filename=file_in.filename,
        original_name=file_in.original_name,
        mime_type=file_in.mime_type,
        size=file_in.size,
        object_path=object_path,
        share_id=share_id,
        expires_at=expires_at,
        created_at=created_at or models.utcnow()
    )
    db.add(db_file)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    await db.refresh(db_file)
    return db_file

async def delete_file(db: AsyncSession, file_id: py_uuid.UUID) -> None:
    await db.execute(delete(models.SharedFile).where(models.SharedFile.id == file_id))
    await db.commit()

async def get_expired_files(db: AsyncSession, now: Optional[datetime] = None) -> List[models.SharedFile]:
    now = now or models.utcnow()
    result = await db.execute(
        select(models.SharedFile)
        .filter(models.SharedFile.expires_at <= now)
        .order_by(models.SharedFile.expires_at)
    )
    return list(result.scalars().all())

async def object_path_in_use(db: AsyncSession, object_path: str) -> bool:
    result = await db.execute(
        select(models.SharedFile.id).filter(models.SharedFile.object_path == object_path).limit(1)
    )
    return result.first() is not None
