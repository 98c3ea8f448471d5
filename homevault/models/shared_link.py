"""Shared link API data models."""

from dataclasses import dataclass, field

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.json import DataClassJSONMixin

from .base import BaseResponse


@dataclass
class SharedLinkCreateDTO(DataClassJSONMixin):
    """Request model for sharing a file."""

    file_id: int = field(metadata=field_options(alias="fileId"))
    password: str | None = None
    expires_at: int | None = field(
        metadata=field_options(alias="expiresAt"), default=None
    )
    """Expiry timestamp in milliseconds."""

    max_access_count: int | None = field(
        metadata=field_options(alias="maxAccessCount"), default=None
    )

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class SharedLinkVO(DataClassJSONMixin):
    """A shared link as shown to its creator."""

    token: str
    url: str
    file_id: int = field(metadata=field_options(alias="fileId"))
    has_password: bool = field(metadata=field_options(alias="hasPassword"))
    access_count: int = field(metadata=field_options(alias="accessCount"))
    revoked: bool
    create_time: int = field(metadata=field_options(alias="createTime"))
    expires_at: int | None = field(
        metadata=field_options(alias="expiresAt"), default=None
    )
    max_access_count: int | None = field(
        metadata=field_options(alias="maxAccessCount"), default=None
    )
    last_access_time: int | None = field(
        metadata=field_options(alias="lastAccessTime"), default=None
    )

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class SharedLinkResponse(BaseResponse):
    data: SharedLinkVO | None = None


@dataclass
class SharedLinkListVO(BaseResponse):
    data: list[SharedLinkVO] = field(default_factory=list)


@dataclass
class SharedFileVO(DataClassJSONMixin):
    """Public details of a shared file. Storage locations are never exposed."""

    id: int
    name: str
    mime_type: str = field(metadata=field_options(alias="mimeType"))
    size: int

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class SharedFileResponse(BaseResponse):
    """Response for the public view of a shared link."""

    file: SharedFileVO | None = None
    link: SharedLinkVO | None = None
