import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base

Base = declarative_base()

def utcnow() -> datetime:
    # naive UTC, matching what DateTime columns round-trip
    return datetime.now(timezone.utc).replace(tzinfo=None)

class SharedFile(Base):
    __tablename__ = "files"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    filename = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    size = Column(Integer, nullable=False)
    object_path = Column(String, nullable=False, index=True)
    share_id = Column(String, nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def __repr__(self):
        return f"<SharedFile(id={self.id}, name='{self.original_name}', share_id='{self.share_id}', expires_at={self.expires_at})>"
