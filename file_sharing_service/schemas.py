import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

class ExpirationWindow(str, Enum):
    ONE_HOUR = "1h"
    ONE_DAY = "1d"
    ONE_WEEK = "1w"

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class UploadUrlRequest(CamelModel):
    filename: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)
    size: int = Field(..., gt=0)
    expiration: ExpirationWindow

class UploadUrlResponse(CamelModel):
    upload_url: str = Field(..., alias="uploadURL")

class SharedFileCreate(CamelModel):
    filename: str
    original_name: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)
    size: int = Field(..., gt=0)

class FileCreateRequest(SharedFileCreate):
    object_path: str = Field(..., min_length=1)
    expiration: ExpirationWindow

class FileShareResponse(CamelModel):
    id: uuid.UUID
    share_id: str
    share_url: str
    filename: str
    size: int
    expires_at: datetime

    @field_serializer("expires_at")
    def serialize_expires_at(self, value: datetime) -> datetime:
        # stored naive, always UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

class UploadedObjectResponse(CamelModel):
    object_path: str
    size: int

class CleanupResponse(BaseModel):
    cleaned: int
