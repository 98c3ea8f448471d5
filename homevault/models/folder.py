"""Virtual folder API data models."""

from dataclasses import dataclass, field

from mashumaro.config import BaseConfig
from mashumaro.mixins.json import DataClassJSONMixin

from .base import BaseResponse
from .file import FileVO


@dataclass
class FolderVO(DataClassJSONMixin):
    """Object representing a virtual folder."""

    id: int
    name: str
    path: str
    """Full virtual path, e.g. `/documents/work`."""

    parent_path: str
    """Path of the parent folder, `/` for folders directly under the root."""

    user_id: int
    create_time: int
    update_time: int

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class FolderCreateDTO(DataClassJSONMixin):
    """Request model for creating a folder."""

    name: str
    path: str | None = None
    parent_path: str | None = None


@dataclass
class FolderUpdateDTO(DataClassJSONMixin):
    """Request model for renaming or relocating a folder."""

    name: str | None = None
    path: str | None = None


@dataclass
class FolderMoveDTO(DataClassJSONMixin):
    """Request model for moving a folder under a new parent."""

    new_parent_path: str | None = None


@dataclass
class FolderResponse(BaseResponse):
    """Response wrapping a single folder."""

    data: FolderVO | None = None


@dataclass
class FolderListVO(BaseResponse):
    """Response containing a flat list of folders."""

    data: list[FolderVO] = field(default_factory=list)


@dataclass
class FolderContentsData(DataClassJSONMixin):
    """Direct children of a virtual folder."""

    current_path: str
    parent_path: str | None
    folders: list[FolderVO] = field(default_factory=list)
    files: list[FileVO] = field(default_factory=list)


@dataclass
class FolderContentsVO(BaseResponse):
    """Response for a folder contents listing."""

    data: FolderContentsData | None = None


@dataclass
class FolderDeleteData(DataClassJSONMixin):
    """Outcome of a recursive folder delete."""

    path: str
    folders_deleted: int = 0
    files_deleted: int = 0
    unlink_failures: int = 0


@dataclass
class FolderDeleteVO(BaseResponse):
    """Response for a recursive folder delete."""

    data: FolderDeleteData | None = None
