"""Root conftest for all tests."""

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Awaitable, Callable, Generator

import pytest
from aiohttp.test_utils import TestClient
from aiohttp.web import Application

from homevault.server.services.file import UploadSource

pytest_plugins = ["tests.plugins.db_fixtures"]

# Shared test constants
TEST_USERNAME = "alice@example.com"
TEST_USER_ID = 1
OTHER_USERNAME = "bob@example.com"
OTHER_USER_ID = 2
ADMIN_USERNAME = "admin@example.com"
ADMIN_USER_ID = 100
INACTIVE_USERNAME = "carol@example.com"

# Type alias for the aiohttp_client fixture - shared across all tests
AiohttpClient = Callable[[Application], Awaitable[TestClient]]


@pytest.fixture(autouse=True)
def mock_storage(tmp_path: Path) -> Generator[Path, None, None]:
    """Mock storage directory for all tests."""
    storage_root = tmp_path / "storage"
    storage_root.mkdir(parents=True)
    yield storage_root


async def iter_bytes(data: bytes, chunk_size: int = 7) -> AsyncIterator[bytes]:
    """Yield `data` in small chunks, like a request body."""
    for i in range(0, len(data), chunk_size):
        yield data[i : i + chunk_size]


def make_source(
    filename: str, data: bytes, mime_type: str | None = "text/plain"
) -> UploadSource:
    return UploadSource(filename=filename, mime_type=mime_type, chunks=iter_bytes(data))
