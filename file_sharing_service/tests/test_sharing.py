import pytest
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.ext.asyncio import AsyncSession

import crud, sharing
from schemas import ExpirationWindow, FileCreateRequest
from conftest import T0, put_blob, read_all

def make_request(object_path: str, expiration: str = "1h", name: str = "notes.txt") -> FileCreateRequest:
    return FileCreateRequest(
        object_path=object_path,
        filename=name,
        original_name=name,
        mime_type="text/plain",
        size=5,
        expiration=expiration
    )

@pytest.mark.asyncio
@pytest.mark.parametrize("expiration, window", [
    ("1h", timedelta(hours=1)),
    ("1d", timedelta(days=1)),
    ("1w", timedelta(days=7)),
])
async def test_expiry_window_is_exact(db_session: AsyncSession, local_blob_store, expiration, window):
    object_path = await put_blob(local_blob_store, b"hello")

    db_file = await sharing.create_shared_file(db_session, local_blob_store, make_request(object_path, expiration), now=T0)

    assert db_file.created_at == T0
    assert db_file.expires_at - db_file.created_at == window

def test_compute_expires_at_accepts_raw_values():
    assert sharing.compute_expires_at("1w", T0) == T0 + timedelta(days=7)
    assert sharing.compute_expires_at(ExpirationWindow.ONE_DAY, T0) == T0 + timedelta(days=1)

def test_share_ids_do_not_collide():
    share_ids = {sharing.generate_share_id() for _ in range(10_001)}
    assert len(share_ids) == 10_001
    assert all(len(share_id) == 32 for share_id in share_ids)

@pytest.mark.asyncio
async def test_same_filename_gets_distinct_share_and_object(db_session: AsyncSession, local_blob_store):
    path_1 = await put_blob(local_blob_store, b"first content")
    path_2 = await put_blob(local_blob_store, b"second content")

    file_1 = await sharing.create_shared_file(db_session, local_blob_store, make_request(path_1, name="same.txt"), now=T0)
    file_2 = await sharing.create_shared_file(db_session, local_blob_store, make_request(path_2, name="same.txt"), now=T0)

    assert file_1.share_id != file_2.share_id
    assert file_1.object_path != file_2.object_path

@pytest.mark.asyncio
async def test_upload_url_is_normalized_before_storage(db_session: AsyncSession, local_blob_store):
    object_path = local_blob_store.new_object_path()
    upload_url = local_blob_store.issue_upload_url(object_path, "https://share.example.com/")

    db_file = await sharing.create_shared_file(db_session, local_blob_store, make_request(upload_url), now=T0)

    assert db_file.object_path == object_path

@pytest.mark.asyncio
async def test_share_id_collision_retries(db_session: AsyncSession, local_blob_store):
    path_1 = await put_blob(local_blob_store, b"one")
    path_2 = await put_blob(local_blob_store, b"two")

    with patch("sharing.generate_share_id", side_effect=["taken", "taken", "fresh"]) as mock_generate:
        first = await sharing.create_shared_file(db_session, local_blob_store, make_request(path_1), now=T0)
        first_share_id = first.share_id
        second = await sharing.create_shared_file(db_session, local_blob_store, make_request(path_2), now=T0)

    assert first_share_id == "taken"
    assert second.share_id == "fresh"
    assert mock_generate.call_count == 3
    assert await crud.get_file_by_share_id(db_session, "taken") is not None

@pytest.mark.asyncio
async def test_resolve_unknown_share_id(db_session: AsyncSession, local_blob_store):
    with pytest.raises(sharing.SharedFileNotFound):
        await sharing.resolve_shared_file(db_session, local_blob_store, "never-issued", now=T0)

@pytest.mark.asyncio
async def test_resolve_live_then_expired(db_session: AsyncSession, local_blob_store):
    object_path = await put_blob(local_blob_store, b"hello")
    db_file = await sharing.create_shared_file(db_session, local_blob_store, make_request(object_path, "1h"), now=T0)
    share_id = db_file.share_id
    file_id = db_file.id

    resolved, stream = await sharing.resolve_shared_file(db_session, local_blob_store, share_id, now=T0 + timedelta(minutes=30))
    assert resolved.id == file_id
    assert await read_all(stream) == b"hello"

    with pytest.raises(sharing.SharedFileNotFound):
        await sharing.resolve_shared_file(db_session, local_blob_store, share_id, now=T0 + timedelta(minutes=61))

    assert await crud.get_file(db_session, file_id) is None
    assert await crud.get_expired_files(db_session, now=T0 + timedelta(days=30)) == []
    assert await local_blob_store.list_blobs() == []

    with pytest.raises(sharing.SharedFileNotFound):
        await sharing.resolve_shared_file(db_session, local_blob_store, share_id, now=T0 + timedelta(minutes=62))

@pytest.mark.asyncio
async def test_resolve_with_missing_blob_is_not_found(db_session: AsyncSession, local_blob_store):
    object_path = await put_blob(local_blob_store, b"hello")
    db_file = await sharing.create_shared_file(db_session, local_blob_store, make_request(object_path), now=T0)
    await local_blob_store.delete(object_path)

    with pytest.raises(sharing.SharedFileNotFound):
        await sharing.resolve_shared_file(db_session, local_blob_store, db_file.share_id, now=T0)

def test_content_disposition():
    assert sharing.content_disposition("report.pdf") == 'attachment; filename="report.pdf"'
    assert sharing.content_disposition('say "hi".txt') == 'attachment; filename="say \\"hi\\".txt"'
    assert sharing.content_disposition("отчёт.pdf") == "attachment; filename*=utf-8''%D0%BE%D1%82%D1%87%D1%91%D1%82.pdf"
