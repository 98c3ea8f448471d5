import datetime
import logging
import mimetypes
import os
from collections.abc import AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass
from pathlib import Path

from homevault.server.config import UploadConfig
from homevault.server.constants import (
    DOWNLOAD_URL_TEMPLATE,
    MAX_PAGE_SIZE,
    ROOT_FOLDER_ID,
    ROOT_PATH,
)
from homevault.server.db.models.file import FileDO
from homevault.server.db.session import DatabaseSessionManager
from homevault.server.exceptions import (
    HomeVaultError,
    NotFound,
    PermissionDenied,
    StorageIOError,
    UnsupportedType,
    UploadBatchError,
    ValidationError,
)
from homevault.server.utils.byte_range import ByteRange, parse_range_header
from homevault.server.utils.paths import is_root, normalize_path, validate_name

from .blob import BlobStorage, generate_filename
from .file_catalog import FileCatalog, FileEntity, to_file_entity
from .shared_link_catalog import SharedLinkCatalog
from .folder import VirtualFolderService, folder_path_of
from .user import UserEntity
from .vfs import VirtualFileSystem

logger = logging.getLogger(__name__)

__all__ = [
    "FileService",
    "FileStream",
    "UploadResult",
    "UploadSource",
    "StorageUsage",
]

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass
class UploadSource:
    """One file of an upload request."""

    filename: str
    mime_type: str | None
    chunks: AsyncIterable[bytes]


@dataclass
class UploadResult:
    """A stored upload and the URL it can be fetched from."""

    file: FileEntity
    url: str


@dataclass
class StorageUsage:
    used: int
    file_count: int


@dataclass
class FileStream:
    """An open request to read a file, possibly restricted to a byte range."""

    file: FileEntity
    total: int
    byte_range: ByteRange | None
    blob_storage: BlobStorage

    @property
    def length(self) -> int:
        return self.byte_range.length if self.byte_range else self.total

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield the requested bytes; each call reads through its own handle."""
        if self.total == 0:
            return
        if self.byte_range:
            start, end = self.byte_range.start, self.byte_range.end
        else:
            start, end = 0, self.total - 1
        async for chunk in self.blob_storage.read_range(Path(self.file.path), start, end):
            yield chunk


def _matches_mime(mime_type: str, pattern: str) -> bool:
    pattern = pattern.strip().lower()
    if pattern in ("*", "*/*"):
        return True
    if pattern.endswith("/*"):
        return mime_type.startswith(pattern[:-1])
    return mime_type == pattern


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


class FileService:
    """Stores uploaded files and serves them back."""

    def __init__(
        self,
        config: UploadConfig,
        session_manager: DatabaseSessionManager,
        blob_storage: BlobStorage,
        folder_service: VirtualFolderService,
    ) -> None:
        """Initialize the file service."""
        self.config = config
        self.session_manager = session_manager
        self.blob_storage = blob_storage
        self.folder_service = folder_service

    def check_file_type(self, filename: str, mime_type: str) -> None:
        """Apply the extension deny-list, then the MIME allow-list.

        Raises:
          UnsupportedType: The extension is blocked or the MIME type is not
            allowed.
        """
        stem, ext = os.path.splitext(filename)
        if not ext and stem.startswith("."):
            # Dotfiles such as ".exe" have no extension for splitext
            ext = "." + stem.lstrip(".")
        ext = ext.lower()
        blocked = {_normalize_extension(e) for e in self.config.blocked_file_extensions}
        if ext and ext in blocked:
            raise UnsupportedType(f"File extension {ext} is not allowed")
        allowed = self.config.allowed_file_types
        essence = mime_type.split(";", 1)[0].strip().lower()
        if allowed and not any(_matches_mime(essence, p) for p in allowed):
            raise UnsupportedType(f"File type {mime_type} is not allowed")

    def get_upload_config(self) -> UploadConfig:
        return self.config

    async def upload(
        self,
        user: UserEntity,
        source: UploadSource,
        virtual_folder_path: str | None = None,
    ) -> UploadResult:
        """Store one uploaded file in `virtual_folder_path`."""
        original_filename = validate_name(source.filename, kind="File")
        mime_type = (
            source.mime_type
            or mimetypes.guess_type(original_filename)[0]
            or DEFAULT_MIME_TYPE
        )
        folder_path = normalize_path(virtual_folder_path)
        folder_id = ROOT_FOLDER_ID
        if not is_root(folder_path):
            folder_id = (await self.folder_service.create_folder_path(user, folder_path)).id

        self.check_file_type(original_filename, mime_type)

        now = datetime.datetime.now(tz=datetime.timezone.utc)
        bucket = self.blob_storage.bucket_dir(now)
        filename = generate_filename(original_filename, now)
        dest = bucket / filename
        size = await self.blob_storage.write_stream(
            source.chunks, dest, max_size=self.config.max_file_size
        )

        try:
            async with self.session_manager.session() as session:
                node = await FileCatalog(session).create(
                    user_id=user.id,
                    filename=filename,
                    original_filename=original_filename,
                    path=str(dest),
                    size=size,
                    mime_type=mime_type,
                    folder_path=str(bucket),
                    folder_id=folder_id,
                )
                await session.commit()
        except BaseException:
            logger.warning("Catalog insert failed, removing %s", dest)
            await self._discard(dest)
            raise

        logger.info(
            "Stored %s (%d bytes) for user %s in %s",
            original_filename,
            size,
            user.username,
            folder_path,
        )
        entity = to_file_entity(node, folder_path)
        return UploadResult(file=entity, url=DOWNLOAD_URL_TEMPLATE.format(file_id=node.id))

    async def upload_many(
        self,
        user: UserEntity,
        sources: AsyncIterable[UploadSource] | Iterable[UploadSource],
        virtual_folder_path: str | None = None,
    ) -> list[UploadResult]:
        """Store several files independently of each other.

        Raises:
          UploadBatchError: At least one file failed. Stored files remain and
            are available on the exception.
        """
        results: list[UploadResult] = []
        failures: list[str] = []
        count = 0
        async for source in _aiter(sources):
            count += 1
            if count > self.config.max_files_per_upload:
                failures.append(
                    f"{source.filename}: Too many files, at most "
                    f"{self.config.max_files_per_upload} per upload"
                )
                continue
            try:
                results.append(await self.upload(user, source, virtual_folder_path))
            except HomeVaultError as err:
                logger.info("Upload of %s failed: %s", source.filename, err.message)
                failures.append(f"{source.filename}: {err.message}")

        if count == 0:
            raise ValidationError("No files provided")
        if failures:
            raise UploadBatchError(results, failures)
        return results

    async def get_file(self, user: UserEntity, file_id: int) -> FileEntity:
        file = await self.lookup_file(file_id)
        self._check_access(user, file)
        return file

    async def lookup_file(self, file_id: int) -> FileEntity:
        """Fetch any file by ID. Access control is left to the caller."""
        async with self.session_manager.session() as session:
            node = await FileCatalog(session).get(file_id)
            if node is None:
                raise NotFound(f"File {file_id} not found")
            vpath = await self._virtual_path(VirtualFileSystem(session), node)
        return to_file_entity(node, vpath)

    async def list_files(
        self, user: UserEntity, page: int, limit: int
    ) -> tuple[list[FileEntity], int]:
        """One page of the caller's files, newest first, and the total count."""
        return await self._list_page(user.id, page, limit)

    async def list_all_files(
        self, user: UserEntity, page: int, limit: int
    ) -> tuple[list[FileEntity], int]:
        """One page of every owner's files. Administrators only."""
        if not user.is_admin:
            raise PermissionDenied("Administrator access required")
        return await self._list_page(None, page, limit)

    async def _list_page(
        self, user_id: int | None, page: int, limit: int
    ) -> tuple[list[FileEntity], int]:
        if page < 1:
            raise ValidationError("page must be at least 1")
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        async with self.session_manager.session() as session:
            nodes, total = await FileCatalog(session).list_page(
                user_id, (page - 1) * limit, limit
            )
            vfs = VirtualFileSystem(session)
            trees = {
                owner: await vfs.load_tree(owner)
                for owner in {node.user_id for node in nodes}
            }
        return [
            to_file_entity(node, folder_path_of(trees[node.user_id], node.folder_id))
            for node in nodes
        ], total

    async def rename_file(
        self, user: UserEntity, file_id: int, new_name: str
    ) -> FileEntity:
        """Change the display name of a file. The stored bytes are not touched."""
        new_name = validate_name(new_name, kind="File")
        async with self.session_manager.session() as session:
            node = await self._get_accessible(FileCatalog(session), user, file_id)
            node.original_filename = new_name
            await session.commit()
            vpath = await self._virtual_path(VirtualFileSystem(session), node)
        return to_file_entity(node, vpath)

    async def stream(
        self, user: UserEntity, file_id: int, range_header: str | None = None
    ) -> FileStream:
        """Prepare a file, or one byte range of it, for reading."""
        return await self.open_stream(await self.get_file(user, file_id), range_header)

    async def open_stream(
        self, file: FileEntity, range_header: str | None = None
    ) -> FileStream:
        total = await self.blob_storage.size(Path(file.path))
        if total is None:
            logger.warning("File %s has no content at %s", file.id, file.path)
            raise NotFound(f"Content of file {file.id} not found")
        return FileStream(
            file=file,
            total=total,
            byte_range=parse_range_header(range_header, total),
            blob_storage=self.blob_storage,
        )

    async def delete(self, user: UserEntity, file_id: int) -> bool:
        """Delete a file. Returns False if it does not exist."""
        async with self.session_manager.session() as session:
            catalog = FileCatalog(session)
            node = await catalog.get(file_id)
            if node is None:
                return False
            self._check_access(user, node)
            physical_path = Path(node.path)
            await catalog.delete(file_id)
            await SharedLinkCatalog(session).delete_by_file_ids([file_id])
            await session.commit()

        await self._discard(physical_path)
        logger.info("Deleted file %s for user %s", file_id, user.username)
        return True

    async def move_files(
        self, user: UserEntity, file_ids: list[int], destination: str
    ) -> list[FileEntity]:
        """Place files in another virtual folder.

        Every file is checked before any of them is moved. Only the virtual
        location changes; the stored bytes stay where they are.
        """
        if not destination or not destination.startswith("/"):
            raise ValidationError("Destination path must start with '/'")
        destination = normalize_path(destination)
        if not file_ids:
            raise ValidationError("No files selected")
        file_ids = list(dict.fromkeys(file_ids))

        async with self.session_manager.write_lock:
            async with self.session_manager.session() as session:
                vfs = VirtualFileSystem(session)
                nodes = await FileCatalog(session).get_many(file_ids)
                for file_id in file_ids:
                    if (node := nodes.get(file_id)) is None:
                        raise NotFound(f"File {file_id} not found")
                    self._check_access(user, node)

                targets: dict[int, int] = {}
                for node in nodes.values():
                    if node.user_id not in targets:
                        folder_id = await vfs.resolve_folder_id(node.user_id, destination)
                        if folder_id is None:
                            raise NotFound(f"Folder {destination} not found")
                        targets[node.user_id] = folder_id

                for file_id in file_ids:
                    nodes[file_id].folder_id = targets[nodes[file_id].user_id]
                await session.commit()

        logger.info("Moved %d file(s) to %s", len(file_ids), destination)
        return [to_file_entity(nodes[file_id], destination) for file_id in file_ids]

    async def virtual_folder_exists(self, user: UserEntity, path: str | None) -> bool:
        return await self.folder_service.folder_exists(user, path)

    async def get_storage_usage(self, user: UserEntity) -> StorageUsage:
        async with self.session_manager.session() as session:
            used, count = await FileCatalog(session).usage(user.id)
        return StorageUsage(used=used, file_count=count)

    def _check_access(self, user: UserEntity, node: FileDO | FileEntity) -> None:
        if node.user_id != user.id and not user.is_admin:
            raise PermissionDenied(f"Access to file {node.id} denied")

    async def _get_accessible(
        self, catalog: FileCatalog, user: UserEntity, file_id: int
    ) -> FileDO:
        node = await catalog.get(file_id)
        if node is None:
            raise NotFound(f"File {file_id} not found")
        self._check_access(user, node)
        return node

    async def _virtual_path(self, vfs: VirtualFileSystem, node: FileDO) -> str:
        if node.folder_id == ROOT_FOLDER_ID:
            return ROOT_PATH
        return await vfs.get_full_path(node.user_id, node.folder_id)

    async def _discard(self, path: Path) -> None:
        try:
            if not await self.blob_storage.delete(path):
                logger.warning("Physical file already missing: %s", path)
        except StorageIOError as err:
            logger.warning("Unable to remove %s: %s", path, err)


async def _aiter(
    sources: AsyncIterable[UploadSource] | Iterable[UploadSource],
) -> AsyncIterator[UploadSource]:
    if isinstance(sources, AsyncIterable):
        async for source in sources:
            yield source
    else:
        for source in sources:
            yield source
