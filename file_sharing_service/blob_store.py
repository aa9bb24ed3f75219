"""
Blob storage for uploaded files.

Blobs are addressed by an opaque object path of the form
``/objects/uploads/<id>``. Clients never write through the API directly:
they receive a signed, time-limited upload URL and push bytes to it.
"""

import hashlib
import hmac
import re
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, List, Optional
from urllib.parse import urlencode, urlsplit

import aiofiles
import aiofiles.os

from config import settings
from logging_config import get_logger

logger = get_logger(__name__)

UPLOADS_PREFIX = "/objects/uploads/"
CHUNK_SIZE = 1024 * 1024

_OBJECT_ID_RE = re.compile(r"^[A-Za-z0-9-]{1,64}$")


class BlobNotFoundError(Exception):
    """Raised when a blob does not exist or its path is not a valid object path."""
    pass


class BlobStoreError(Exception):
    """Raised when the underlying storage fails."""
    pass


@dataclass
class BlobInfo:
    object_path: str
    modified_at: datetime


class BlobStore(ABC):
    """Capability interface the file lifecycle code depends on."""

    @abstractmethod
    def new_object_path(self) -> str:
        ...

    @abstractmethod
    def issue_upload_url(self, object_path: str, base_url: str) -> str:
        ...

    @abstractmethod
    def normalize_object_path(self, raw_path: str) -> str:
        ...

    @abstractmethod
    async def write(self, object_path: str, chunks: AsyncIterator[bytes]) -> int:
        ...

    @abstractmethod
    async def open_read_stream(self, object_path: str) -> AsyncIterator[bytes]:
        ...

    @abstractmethod
    async def delete(self, object_path: str) -> None:
        ...

    @abstractmethod
    async def list_blobs(self) -> List[BlobInfo]:
        ...


class LocalBlobStore(BlobStore):
    """
    Filesystem-backed blob store.

    Blobs live under ``<base_path>/uploads/<id>``. Upload URLs point back at
    this service (``PUT /objects/uploads/<id>``) and carry an expiry and an
    HMAC-SHA256 signature over ``"<object_path>:<expires>"``.
    """

    def __init__(self, base_path: Path, secret_key: str, upload_url_ttl_seconds: int = 900):
        self.base_path = Path(base_path)
        self.uploads_dir = self.base_path / "uploads"
        self.secret_key = secret_key
        self.upload_url_ttl_seconds = upload_url_ttl_seconds

    def new_object_path(self) -> str:
        return f"{UPLOADS_PREFIX}{uuid.uuid4()}"

    def object_id(self, object_path: str) -> str:
        if not object_path.startswith(UPLOADS_PREFIX):
            raise BlobNotFoundError(f"Not an upload object path: {object_path}")
        object_id = object_path[len(UPLOADS_PREFIX):]
        if not _OBJECT_ID_RE.match(object_id):
            raise BlobNotFoundError(f"Invalid object id in path: {object_path}")
        return object_id

    def _file_path(self, object_path: str) -> Path:
        return self.uploads_dir / self.object_id(object_path)

    def _sign(self, object_path: str, expires: int) -> str:
        message = f"{object_path}:{expires}"
        return hmac.new(
            self.secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def issue_upload_url(self, object_path: str, base_url: str) -> str:
        """
        Build a signed PUT URL for ``object_path``.

        Raises:
            BlobStoreError: If the storage directory cannot be prepared
        """
        self.object_id(object_path)
        try:
            self.uploads_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BlobStoreError(f"Cannot prepare storage at {self.uploads_dir}: {e}") from e

        expires = int(time.time()) + self.upload_url_ttl_seconds
        query = urlencode({"expires": expires, "signature": self._sign(object_path, expires)})
        return f"{base_url.rstrip('/')}{object_path}?{query}"

    def verify_upload_signature(
        self, object_path: str, expires: int, signature: str, now: Optional[float] = None
    ) -> bool:
        if now is None:
            now = time.time()
        if expires < now:
            return False
        return hmac.compare_digest(signature, self._sign(object_path, expires))

    def normalize_object_path(self, raw_path: str) -> str:
        """
        Translate a signed upload URL into its canonical object path.

        Paths that are already canonical lose any query string; anything that
        is not recognisable as one of our upload URLs is returned unchanged.
        """
        if raw_path.startswith(UPLOADS_PREFIX):
            return raw_path.split("?", 1)[0]

        parts = urlsplit(raw_path)
        if parts.scheme in ("http", "https") and parts.path.startswith(UPLOADS_PREFIX):
            return parts.path
        return raw_path

    async def write(self, object_path: str, chunks: AsyncIterator[bytes]) -> int:
        file_path = self._file_path(object_path)
        partial_path = file_path.with_name(file_path.name + ".part")
        written = 0
        try:
            self.uploads_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(partial_path, 'wb') as out_file:
                async for chunk in chunks:
                    if chunk:
                        await out_file.write(chunk)
                        written += len(chunk)
            await aiofiles.os.replace(partial_path, file_path)
        except OSError as e:
            logger.exception(f"Error writing blob {object_path} to {file_path}")
            if partial_path.exists():
                partial_path.unlink()
            raise BlobStoreError(f"Error writing blob {object_path}: {e}") from e
        logger.debug(f"Wrote {written} bytes to {file_path}")
        return written

    async def open_read_stream(self, object_path: str) -> AsyncIterator[bytes]:
        """
        Open a blob for streaming.

        The file is opened before returning so a missing blob surfaces as
        BlobNotFoundError here, not halfway through a response.
        """
        file_path = self._file_path(object_path)
        try:
            in_file = await aiofiles.open(file_path, 'rb')
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"Blob not found: {object_path}") from e
        except OSError as e:
            raise BlobStoreError(f"Error opening blob {object_path}: {e}") from e
        return self._iter_chunks(in_file)

    @staticmethod
    async def _iter_chunks(in_file) -> AsyncIterator[bytes]:
        try:
            while chunk := await in_file.read(CHUNK_SIZE):
                yield chunk
        finally:
            await in_file.close()

    async def delete(self, object_path: str) -> None:
        try:
            file_path = self._file_path(object_path)
        except BlobNotFoundError:
            logger.warning(f"Skipping delete of non-upload object path: {object_path}")
            return
        try:
            await aiofiles.os.remove(file_path)
            logger.debug(f"Deleted blob {object_path}")
        except FileNotFoundError:
            logger.debug(f"Blob {object_path} already absent")
        except OSError as e:
            raise BlobStoreError(f"Error deleting blob {object_path}: {e}") from e

    async def list_blobs(self) -> List[BlobInfo]:
        if not self.uploads_dir.exists():
            return []
        blobs = []
        for entry in self.uploads_dir.iterdir():
            if not entry.is_file() or not _OBJECT_ID_RE.match(entry.name):
                continue
            modified_at = datetime.fromtimestamp(entry.stat().st_mtime, timezone.utc).replace(tzinfo=None)
            blobs.append(BlobInfo(object_path=f"{UPLOADS_PREFIX}{entry.name}", modified_at=modified_at))
        return blobs


blob_store = LocalBlobStore(
    base_path=settings.STORAGE_BASE_PATH,
    secret_key=settings.SECRET_KEY,
    upload_url_ttl_seconds=settings.UPLOAD_URL_TTL_SECONDS
)

def get_blob_store() -> BlobStore:
    return blob_store
