"""File related API data models."""

from dataclasses import dataclass, field

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.json import DataClassJSONMixin

from .base import BaseResponse, PageInfo


@dataclass
class FileVO(DataClassJSONMixin):
    """Object representing a stored file."""

    id: int
    filename: str
    """Generated name of the file on disk."""

    original_filename: str
    """Name supplied by the uploader, used for display and downloads."""

    size: int
    mime_type: str
    user_id: int
    folder_path: str
    """Physical bucket directory the bytes were written under."""

    virtual_folder_path: str
    """Logical location in the virtual folder tree."""

    create_time: int
    update_time: int

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class FileResponse(BaseResponse):
    """Response wrapping a single file."""

    data: FileVO | None = None


@dataclass
class FileListVO(BaseResponse):
    """Paginated list of files."""

    data: list[FileVO] = field(default_factory=list)
    page_info: PageInfo | None = field(
        metadata=field_options(alias="pageInfo"), default=None
    )


@dataclass
class UploadResultVO(DataClassJSONMixin):
    """A successfully stored upload and where to fetch it."""

    file: FileVO
    url: str


@dataclass
class UploadResponse(BaseResponse):
    """Response for a (possibly partially) completed upload.

    When some files fail, `success` is false, `errorMsg` names every failed
    file and `data` still lists the uploads that were committed.
    """

    data: list[UploadResultVO] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)


@dataclass
class UploadConfigVO(DataClassJSONMixin):
    """Upload limits advertised to clients."""

    max_file_size: int = field(metadata=field_options(alias="maxFileSize"))
    max_files_per_upload: int = field(
        metadata=field_options(alias="maxFilesPerUpload")
    )
    allowed_file_types: list[str] = field(
        metadata=field_options(alias="allowedFileTypes"), default_factory=list
    )
    blocked_file_extensions: list[str] = field(
        metadata=field_options(alias="blockedFileExtensions"), default_factory=list
    )

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class UploadConfigResponse(BaseResponse):
    """Response wrapping the upload configuration."""

    data: UploadConfigVO | None = None


@dataclass
class FileMoveDTO(DataClassJSONMixin):
    """Request model for moving files into a virtual folder."""

    file_ids: list[int] = field(metadata=field_options(alias="fileIds"))
    destination_path: str = field(metadata=field_options(alias="destinationPath"))

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class FileMoveData(DataClassJSONMixin):
    """Files moved by a move request."""

    moved_files: list[FileVO] = field(
        metadata=field_options(alias="movedFiles"), default_factory=list
    )
    destination_path: str = field(
        metadata=field_options(alias="destinationPath"), default="/"
    )

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class FileMoveVO(BaseResponse):
    """Response for a move request."""

    data: FileMoveData | None = None


@dataclass
class FileRenameDTO(DataClassJSONMixin):
    """Request model for renaming the display name of a file."""

    original_filename: str


@dataclass
class StorageUsageVO(BaseResponse):
    """Bytes used by the caller's files."""

    used: int = 0
    file_count: int = field(metadata=field_options(alias="fileCount"), default=0)
