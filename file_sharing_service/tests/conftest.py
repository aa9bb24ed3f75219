import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import datetime
from typing import AsyncGenerator, AsyncIterator

import pytest
import pytest_asyncio
import httpx
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from main import app
from models import Base
from database import get_db
from blob_store import LocalBlobStore, get_blob_store

TEST_SECRET_KEY = "test-secret-key"
T0 = datetime(2026, 10, 19, 12, 0, 0)

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with TestingSessionLocal() as session:
        yield session
        await session.rollback()

@pytest.fixture(scope="function")
def local_blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(
        base_path=tmp_path / "filestorage_share_test",
        secret_key=TEST_SECRET_KEY,
        upload_url_ttl_seconds=900
    )

@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession, local_blob_store: LocalBlobStore) -> AsyncGenerator[AsyncClient, None]:
    def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: local_blob_store

    transport = httpx.ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testshare") as client:
        yield client

    app.dependency_overrides.clear()

async def iter_chunks(*chunks: bytes) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk

async def read_all(stream: AsyncIterator[bytes]) -> bytes:
    return b"".join([chunk async for chunk in stream])

async def put_blob(store: LocalBlobStore, content: bytes) -> str:
    object_path = store.new_object_path()
    await store.write(object_path, iter_chunks(content))
    return object_path
