import os
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from homevault.server.config import (
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_FILES_PER_UPLOAD,
    ServerConfig,
)


@pytest.fixture(autouse=True)
def patch_server_config() -> Generator[None, None, None]:
    """Override the autouse fixture from conftest.py to do nothing.

    This ensures that ServerConfig.load() runs the real logic instead of returning a mock.
    """
    yield


def test_server_config_defaults(tmp_path: Path) -> None:
    """Test loading configuration with defaults."""
    config_dir = tmp_path / "config"
    # Ensure directory exists but no file
    config_dir.mkdir()

    config = ServerConfig.load(config_dir)

    assert config.host == "0.0.0.0"
    assert config.port == 8080
    assert config.storage_dir == "storage"
    assert config.auth.secret_key != ""  # Should be generated in-memory
    assert config.upload.max_file_size == DEFAULT_MAX_FILE_SIZE == 100 * 1024 * 1024
    assert config.upload.max_files_per_upload == DEFAULT_MAX_FILES_PER_UPLOAD == 10
    assert "image/*" in config.upload.allowed_file_types
    assert ".exe" in config.upload.blocked_file_extensions
    assert config.db_url.startswith("sqlite+aiosqlite:///")
    assert config.db_url.endswith("homevault.db")

    # Verify NO config file was created (read-only)
    config_file = config_dir / "config.yaml"
    assert not config_file.exists()


def test_server_config_load_from_file(tmp_path: Path) -> None:
    """Test loading configuration from a file including users."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_file = config_dir / "config.yaml"

    data = {
        "host": "127.0.0.1",
        "port": 9090,
        "storage_dir": str(tmp_path / "data"),
        "auth": {
            "secret_key": "my-secret-key",
            "users": [
                {"username": "alice", "user_id": 1},
                {"username": "root", "user_id": 2, "is_admin": True},
            ],
        },
        "upload": {
            "max_file_size": 2048,
            "allowed_file_types": ["image/*"],
        },
    }
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f)

    config = ServerConfig.load(config_dir)

    assert config.host == "127.0.0.1"
    assert config.port == 9090
    assert config.storage_root == (tmp_path / "data").resolve()
    assert config.auth.secret_key == "my-secret-key"
    assert [u.username for u in config.auth.users] == ["alice", "root"]
    assert config.auth.users[0].is_active
    assert not config.auth.users[0].is_admin
    assert config.auth.users[1].is_admin
    assert config.upload.max_file_size == 2048
    assert config.upload.allowed_file_types == ["image/*"]
    # Unset values keep their defaults
    assert config.upload.max_files_per_upload == DEFAULT_MAX_FILES_PER_UPLOAD
    assert ".bat" in config.upload.blocked_file_extensions


def test_server_config_env_var_override(tmp_path: Path) -> None:
    """Test that environment variables override config file."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("host: 10.0.0.1\nport: 7000\n")

    with patch.dict(
        os.environ,
        {
            "HOMEVAULT_HOST": "1.2.3.4",
            "HOMEVAULT_PORT": "5555",
            "HOMEVAULT_STORAGE_DIR": str(tmp_path / "elsewhere"),
            "HOMEVAULT_DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        },
    ):
        config = ServerConfig.load(config_dir)

    assert config.host == "1.2.3.4"
    assert config.port == 5555
    assert config.storage_root == (tmp_path / "elsewhere").resolve()
    assert config.db_url == "sqlite+aiosqlite:///:memory:"


def test_server_config_dir_from_env(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("port: 8181\n")
    with patch.dict(os.environ, {"HOMEVAULT_CONFIG_DIR": str(tmp_path)}):
        config = ServerConfig.load()
    assert config.port == 8181
