"""Shared pytest fixtures for server tests.

This module is automatically discovered by pytest as a plugin.
"""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
from aiohttp.test_utils import TestClient

from homevault.server.app import create_app
from homevault.server.config import AuthConfig, ServerConfig, UploadConfig, UserEntry
from homevault.server.db.session import DatabaseSessionManager
from homevault.server.services.blob import LocalBlobStorage
from homevault.server.services.file import FileService
from homevault.server.services.folder import VirtualFolderService
from homevault.server.services.shared_link import SharedLinkService
from homevault.server.services.user import UserEntity, UserService
from tests.conftest import (
    ADMIN_USER_ID,
    ADMIN_USERNAME,
    INACTIVE_USERNAME,
    OTHER_USER_ID,
    OTHER_USERNAME,
    TEST_USER_ID,
    TEST_USERNAME,
    AiohttpClient,
)

TEST_MAX_FILE_SIZE = 1024


@pytest.fixture
def mock_trace_log(tmp_path: Path) -> Generator[str, None, None]:
    """Create a temporary trace log file for testing."""
    log_file = tmp_path / "trace.log"
    yield str(log_file)


@pytest.fixture
def server_config(
    mock_trace_log: str, mock_storage: Path, tmp_path: Path
) -> ServerConfig:
    """Create a ServerConfig object for testing."""
    return ServerConfig(
        trace_log_file=mock_trace_log,
        storage_dir=str(mock_storage),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        auth=AuthConfig(
            secret_key="test-secret-key",
            users=[
                UserEntry(username=TEST_USERNAME, user_id=TEST_USER_ID),
                UserEntry(username=OTHER_USERNAME, user_id=OTHER_USER_ID),
                UserEntry(username=ADMIN_USERNAME, user_id=ADMIN_USER_ID, is_admin=True),
                UserEntry(username=INACTIVE_USERNAME, user_id=3, is_active=False),
            ],
        ),
        upload=UploadConfig(max_file_size=TEST_MAX_FILE_SIZE, max_files_per_upload=3),
    )


@pytest.fixture(autouse=True)
def patch_server_config(server_config: ServerConfig) -> Generator[None, None, None]:
    """Automatically patch server config for all server tests."""
    with patch(
        "homevault.server.config.ServerConfig.load", return_value=server_config
    ):
        yield


@pytest.fixture
def user_service(server_config: ServerConfig) -> UserService:
    return UserService(server_config.auth)


@pytest.fixture
def user() -> UserEntity:
    return UserEntity(id=TEST_USER_ID, username=TEST_USERNAME)


@pytest.fixture
def other_user() -> UserEntity:
    return UserEntity(id=OTHER_USER_ID, username=OTHER_USERNAME)


@pytest.fixture
def admin_user() -> UserEntity:
    return UserEntity(id=ADMIN_USER_ID, username=ADMIN_USERNAME, is_admin=True)


@pytest.fixture
def blob_storage(mock_storage: Path) -> LocalBlobStorage:
    return LocalBlobStorage(mock_storage)


@pytest.fixture
def folder_service(
    session_manager: DatabaseSessionManager, blob_storage: LocalBlobStorage
) -> VirtualFolderService:
    return VirtualFolderService(session_manager, blob_storage)


@pytest.fixture
def file_service(
    server_config: ServerConfig,
    session_manager: DatabaseSessionManager,
    blob_storage: LocalBlobStorage,
    folder_service: VirtualFolderService,
) -> FileService:
    return FileService(
        server_config.upload, session_manager, blob_storage, folder_service
    )


@pytest.fixture
def shared_link_service(
    session_manager: DatabaseSessionManager, file_service: FileService
) -> SharedLinkService:
    return SharedLinkService(session_manager, file_service)


def _bearer(user_service: UserService, username: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_service.create_token(username)}"}


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(user_service: UserService) -> dict[str, str]:
    """Auth headers for the default test user."""
    return _bearer(user_service, TEST_USERNAME)


@pytest.fixture
def other_auth_headers(user_service: UserService) -> dict[str, str]:
    return _bearer(user_service, OTHER_USERNAME)


@pytest.fixture
def admin_auth_headers(user_service: UserService) -> dict[str, str]:
    return _bearer(user_service, ADMIN_USERNAME)


@pytest.fixture
async def client(aiohttp_client: AiohttpClient) -> TestClient:
    """A test client for a freshly created app."""
    return await aiohttp_client(create_app())
