import time

import pytest

from homevault.server.db.session import DatabaseSessionManager
from homevault.server.exceptions import (
    Gone,
    NotFound,
    PermissionDenied,
    Unauthorized,
    ValidationError,
)
from homevault.server.services.file import FileService, FileStream
from homevault.server.services.file_catalog import FileEntity
from homevault.server.services.folder import VirtualFolderService
from homevault.server.services.shared_link import (
    SharedLinkService,
    check_password,
    hash_password,
)
from homevault.server.services.shared_link_catalog import SharedLinkCatalog
from homevault.server.services.user import UserEntity
from tests.conftest import make_source

CONTENT = b"hello shared world"


async def read_all(stream: FileStream) -> bytes:
    return b"".join([chunk async for chunk in stream.iter_chunks()])


@pytest.fixture
async def shared_file(file_service: FileService, user: UserEntity) -> FileEntity:
    result = await file_service.upload(user, make_source("notes.txt", CONTENT), "/docs")
    return result.file


def test_password_hashing() -> None:
    hashed = hash_password("s3cret")
    assert "s3cret" not in hashed
    assert hash_password("s3cret") != hashed
    assert check_password("s3cret", hashed)
    assert not check_password("wrong", hashed)


async def test_create_and_download(
    shared_link_service: SharedLinkService,
    user: UserEntity,
    shared_file: FileEntity,
) -> None:
    link = await shared_link_service.create_link(user, shared_file.id)
    assert link.url == f"/shared/{link.token}"
    assert len(link.token) >= 16
    assert not link.has_password
    assert link.access_count == 0

    # Looking at the link does not count as a download
    shared = await shared_link_service.get_shared_file(link.token)
    assert shared.file.id == shared_file.id
    assert shared.link.access_count == 0

    used, stream = await shared_link_service.open_shared_stream(link.token)
    assert await read_all(stream) == CONTENT
    assert stream.byte_range is None
    assert used.access_count == 1
    assert used.last_access_time is not None


async def test_download_range(
    shared_link_service: SharedLinkService,
    user: UserEntity,
    shared_file: FileEntity,
) -> None:
    link = await shared_link_service.create_link(user, shared_file.id)
    _, stream = await shared_link_service.open_shared_stream(
        link.token, range_header="bytes=6-11"
    )
    assert stream.byte_range is not None
    assert stream.byte_range.content_range == f"bytes 6-11/{len(CONTENT)}"
    assert await read_all(stream) == b"shared"


async def test_password_protected(
    shared_link_service: SharedLinkService,
    user: UserEntity,
    shared_file: FileEntity,
) -> None:
    link = await shared_link_service.create_link(user, shared_file.id, password="pw")
    assert link.has_password

    with pytest.raises(Unauthorized):
        await shared_link_service.get_shared_file(link.token)
    with pytest.raises(Unauthorized):
        await shared_link_service.open_shared_stream(link.token, "nope")

    _, stream = await shared_link_service.open_shared_stream(link.token, "pw")
    assert await read_all(stream) == CONTENT

    # An empty password means no password
    open_link = await shared_link_service.create_link(user, shared_file.id, password="")
    assert not open_link.has_password


async def test_download_limit(
    shared_link_service: SharedLinkService,
    user: UserEntity,
    shared_file: FileEntity,
) -> None:
    link = await shared_link_service.create_link(
        user, shared_file.id, max_access_count=2
    )
    await shared_link_service.open_shared_stream(link.token)
    used, _ = await shared_link_service.open_shared_stream(link.token)
    assert used.access_count == 2

    with pytest.raises(Gone):
        await shared_link_service.open_shared_stream(link.token)
    with pytest.raises(Gone):
        await shared_link_service.get_shared_file(link.token)


async def test_expired_link(
    shared_link_service: SharedLinkService,
    session_manager: DatabaseSessionManager,
    user: UserEntity,
    shared_file: FileEntity,
) -> None:
    expires_at = int(time.time() * 1000) + 60_000
    link = await shared_link_service.create_link(
        user, shared_file.id, expires_at=expires_at
    )
    assert link.expires_at == expires_at
    await shared_link_service.get_shared_file(link.token)

    async with session_manager.session() as session:
        node = await SharedLinkCatalog(session).get_by_token(link.token)
        assert node is not None
        node.expires_at = int(time.time() * 1000) - 1
        await session.commit()

    with pytest.raises(Gone):
        await shared_link_service.get_shared_file(link.token)
    with pytest.raises(Gone):
        await shared_link_service.open_shared_stream(link.token)


async def test_create_validation(
    shared_link_service: SharedLinkService,
    user: UserEntity,
    other_user: UserEntity,
    admin_user: UserEntity,
    shared_file: FileEntity,
) -> None:
    with pytest.raises(ValidationError):
        await shared_link_service.create_link(user, shared_file.id, expires_at=1)
    with pytest.raises(ValidationError):
        await shared_link_service.create_link(
            user, shared_file.id, max_access_count=0
        )
    with pytest.raises(NotFound):
        await shared_link_service.create_link(user, 9999)
    with pytest.raises(PermissionDenied):
        await shared_link_service.create_link(other_user, shared_file.id)

    link = await shared_link_service.create_link(admin_user, shared_file.id)
    assert link.user_id == admin_user.id


async def test_revoke(
    shared_link_service: SharedLinkService,
    user: UserEntity,
    other_user: UserEntity,
    shared_file: FileEntity,
) -> None:
    link = await shared_link_service.create_link(user, shared_file.id)

    with pytest.raises(PermissionDenied):
        await shared_link_service.revoke_link(other_user, link.token)
    with pytest.raises(NotFound):
        await shared_link_service.revoke_link(user, "missing")

    revoked = await shared_link_service.revoke_link(user, link.token)
    assert revoked.revoked

    with pytest.raises(NotFound):
        await shared_link_service.get_shared_file(link.token)
    with pytest.raises(NotFound):
        await shared_link_service.open_shared_stream(link.token)


async def test_list_links(
    shared_link_service: SharedLinkService,
    user: UserEntity,
    other_user: UserEntity,
    shared_file: FileEntity,
) -> None:
    first = await shared_link_service.create_link(user, shared_file.id)
    second = await shared_link_service.create_link(user, shared_file.id)

    links = await shared_link_service.list_links(user)
    assert [link.token for link in links] == [second.token, first.token]
    assert await shared_link_service.list_links(other_user) == []


async def test_links_removed_with_file(
    shared_link_service: SharedLinkService,
    file_service: FileService,
    user: UserEntity,
    shared_file: FileEntity,
) -> None:
    link = await shared_link_service.create_link(user, shared_file.id)
    assert await file_service.delete(user, shared_file.id)

    assert await shared_link_service.list_links(user) == []
    with pytest.raises(NotFound):
        await shared_link_service.get_shared_file(link.token)


async def test_links_removed_with_folder(
    shared_link_service: SharedLinkService,
    file_service: FileService,
    folder_service: VirtualFolderService,
    user: UserEntity,
    shared_file: FileEntity,
) -> None:
    nested = await file_service.upload(user, make_source("deep.txt", b"x"), "/docs/sub")
    kept = await file_service.upload(user, make_source("kept.txt", b"y"), "/other")
    await shared_link_service.create_link(user, shared_file.id)
    await shared_link_service.create_link(user, nested.file.id)
    kept_link = await shared_link_service.create_link(user, kept.file.id)

    report = await folder_service.delete_folder_recursive(user, "/docs")
    assert report.files_deleted == 2

    links = await shared_link_service.list_links(user)
    assert [link.token for link in links] == [kept_link.token]
