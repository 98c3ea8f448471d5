"""Server configuration.

Configuration is read from `config.yaml` inside the configuration directory.
Every setting has a default so a missing file yields a working server; a few
settings may be overridden from the environment.
"""

import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path

from mashumaro.mixins.yaml import DataClassYAMLMixin

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.yaml"
DEFAULT_CONFIG_DIR = "config"

DEFAULT_MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB
DEFAULT_MAX_FILES_PER_UPLOAD = 10

DEFAULT_ALLOWED_FILE_TYPES = [
    "image/*",
    "text/*",
    "audio/*",
    "video/*",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "application/octet-stream",
]

DEFAULT_BLOCKED_FILE_EXTENSIONS = [
    ".exe",
    ".bat",
    ".cmd",
    ".com",
    ".scr",
    ".pif",
    ".jar",
    ".py",
    ".pyc",
    ".pyo",
    ".pyd",
]


@dataclass
class UserEntry(DataClassYAMLMixin):
    """A user allowed to sign in to the server."""

    username: str
    user_id: int
    is_active: bool = True
    is_admin: bool = False


@dataclass
class AuthConfig(DataClassYAMLMixin):
    """Token signing and the list of known users."""

    secret_key: str = ""
    users: list[UserEntry] = field(default_factory=list)
    token_ttl_seconds: int = 7 * 24 * 3600


@dataclass
class UploadConfig(DataClassYAMLMixin):
    """Limits applied to uploaded files."""

    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_files_per_upload: int = DEFAULT_MAX_FILES_PER_UPLOAD
    allowed_file_types: list[str] = field(
        default_factory=lambda: list(DEFAULT_ALLOWED_FILE_TYPES)
    )
    blocked_file_extensions: list[str] = field(
        default_factory=lambda: list(DEFAULT_BLOCKED_FILE_EXTENSIONS)
    )


@dataclass
class ServerConfig(DataClassYAMLMixin):
    """Top level server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    storage_dir: str = "storage"
    database_url: str | None = None
    trace_log_file: str | None = None
    auth: AuthConfig = field(default_factory=AuthConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)

    @property
    def storage_root(self) -> Path:
        """Absolute directory that holds the uploaded bytes."""
        return Path(self.storage_dir).resolve()

    @property
    def db_url(self) -> str:
        """Database URL, defaulting to a SQLite file in the storage directory."""
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.storage_root / 'homevault.db'}"

    @classmethod
    def load(cls, config_dir: Path | str | None = None) -> "ServerConfig":
        """Load configuration from `config_dir/config.yaml`.

        The file is only read, never created. A missing secret key is replaced
        by a random in-memory key, which invalidates tokens on restart.
        """
        if config_dir is None:
            config_dir = os.getenv("HOMEVAULT_CONFIG_DIR", DEFAULT_CONFIG_DIR)
        config_file = Path(config_dir) / CONFIG_FILE_NAME

        if config_file.exists():
            logger.info("Loading configuration from %s", config_file)
            config = cls.from_yaml(config_file.read_text())
        else:
            logger.info("No configuration at %s, using defaults", config_file)
            config = cls()

        config._apply_env()
        if not config.auth.secret_key:
            logger.warning("No secret_key configured, generating a temporary key")
            config.auth.secret_key = secrets.token_hex(32)
        return config

    def _apply_env(self) -> None:
        if host := os.getenv("HOMEVAULT_HOST"):
            self.host = host
        if port := os.getenv("HOMEVAULT_PORT"):
            self.port = int(port)
        if storage_dir := os.getenv("HOMEVAULT_STORAGE_DIR"):
            self.storage_dir = storage_dir
        if database_url := os.getenv("HOMEVAULT_DATABASE_URL"):
            self.database_url = database_url
