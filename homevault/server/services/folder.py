import logging
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.exc import IntegrityError

from homevault.server.constants import ROOT_FOLDER_ID, ROOT_PATH
from homevault.server.db.models.folder import FolderDO
from homevault.server.db.session import DatabaseSessionManager
from homevault.server.exceptions import (
    Conflict,
    NotFound,
    StorageIOError,
    ValidationError,
)
from homevault.server.utils.paths import (
    is_root,
    join_path,
    normalize_path,
    parent_path,
    split_path,
    validate_name,
)

from .blob import BlobStorage
from .file_catalog import FileCatalog, FileEntity, to_file_entity
from .shared_link_catalog import SharedLinkCatalog
from .user import UserEntity
from .vfs import FolderEntity, FolderTree, VirtualFileSystem, to_folder_entity

logger = logging.getLogger(__name__)

__all__ = [
    "VirtualFolderService",
    "FolderContents",
    "FolderDeleteReport",
]


@dataclass
class FolderContents:
    """Direct children of one folder."""

    current_path: str
    parent_path: str | None
    folders: list[FolderEntity] = field(default_factory=list)
    files: list[FileEntity] = field(default_factory=list)


@dataclass
class FolderDeleteReport:
    """Outcome of a recursive folder delete."""

    path: str
    folders_deleted: int = 0
    files_deleted: int = 0
    unlink_failures: int = 0


class VirtualFolderService:
    """Manages the per-user tree of virtual folders."""

    def __init__(
        self,
        session_manager: DatabaseSessionManager,
        blob_storage: BlobStorage,
    ) -> None:
        """Initialize the folder service."""
        self.session_manager = session_manager
        self.blob_storage = blob_storage

    async def create_folder(
        self,
        user: UserEntity,
        name: str,
        path: str | None = None,
        parent_path_str: str | None = None,
    ) -> FolderEntity:
        """Create a single folder below an existing parent.

        When only `path` is given the parent is taken from it. When both are
        given, `path` must equal the parent joined with `name`.
        """
        name = validate_name(name)
        if parent_path_str is None and path is not None:
            parent = parent_path(normalize_path(path)) or ROOT_PATH
        else:
            parent = normalize_path(parent_path_str)
        full_path = join_path(parent, name)
        if path is not None and normalize_path(path) != full_path:
            raise ValidationError(
                f"Path {path} does not match parent path {parent} and name {name}"
            )

        async with self.session_manager.write_lock:
            async with self.session_manager.session() as session:
                vfs = VirtualFileSystem(session)
                parent_id = await vfs.resolve_folder_id(user.id, parent)
                if parent_id is None:
                    raise NotFound(f"Parent folder {parent} not found")
                if await vfs.find_child(user.id, parent_id, name) is not None:
                    raise Conflict(f"Folder already exists: {full_path}")
                try:
                    node = await vfs.create_folder(user.id, parent_id, name)
                    await session.commit()
                except IntegrityError as err:
                    raise Conflict(f"Folder already exists: {full_path}") from err

        logger.info("Created folder %s for user %s", full_path, user.username)
        return to_folder_entity(node, full_path)

    async def create_folder_path(self, user: UserEntity, full_path: str) -> FolderEntity:
        """Create `full_path` and any missing ancestors. Existing segments are reused."""
        path = normalize_path(full_path)
        if is_root(path):
            raise ValidationError("Cannot create the root folder")

        async with self.session_manager.write_lock:
            async with self.session_manager.session() as session:
                vfs = VirtualFileSystem(session)
                try:
                    node, created = await vfs.ensure_path(user.id, path)
                    await session.commit()
                except IntegrityError as err:
                    raise Conflict(f"Unable to create folder path {path}") from err

        if created:
            logger.info(
                "Created %d folder(s) for %s (user %s)", created, path, user.username
            )
        return to_folder_entity(node, path)

    async def get_folder(self, user: UserEntity, folder_id: int) -> FolderEntity:
        async with self.session_manager.session() as session:
            vfs = VirtualFileSystem(session)
            node = await vfs.get_folder(user.id, folder_id)
            if node is None:
                raise NotFound(f"Folder {folder_id} not found")
            full_path = await vfs.get_full_path(user.id, folder_id)
        return to_folder_entity(node, full_path)

    async def get_folder_by_path(self, user: UserEntity, path: str) -> FolderEntity:
        path = normalize_path(path)
        if is_root(path):
            raise ValidationError("The root folder has no record")
        async with self.session_manager.session() as session:
            node = await VirtualFileSystem(session).resolve_path(user.id, path)
        if node is None:
            raise NotFound(f"Folder {path} not found")
        return to_folder_entity(node, path)

    async def list_folders(self, user: UserEntity) -> list[FolderEntity]:
        """All folders owned by the user, ordered by path."""
        async with self.session_manager.session() as session:
            tree = await VirtualFileSystem(session).load_tree(user.id)
        return sorted(tree.entities(), key=lambda f: f.path)

    async def get_path_hierarchy(self, user: UserEntity) -> list[FolderEntity]:
        """All folders owned by the user, shallowest first."""
        async with self.session_manager.session() as session:
            tree = await VirtualFileSystem(session).load_tree(user.id)
        return sorted(tree.entities(), key=lambda f: (f.depth, f.path))

    async def folder_exists(self, user: UserEntity, path: str | None) -> bool:
        path = normalize_path(path)
        if is_root(path):
            return True
        async with self.session_manager.session() as session:
            return await VirtualFileSystem(session).resolve_path(user.id, path) is not None

    async def get_folder_contents(
        self, user: UserEntity, path: str | None
    ) -> FolderContents:
        """List the folders and files directly inside `path`."""
        path = normalize_path(path)
        async with self.session_manager.session() as session:
            vfs = VirtualFileSystem(session)
            folder_id = await vfs.resolve_folder_id(user.id, path)
            if folder_id is None:
                raise NotFound(f"Folder {path} not found")
            children = await vfs.list_children(user.id, folder_id)
            files = await FileCatalog(session).list_by_folder(user.id, folder_id)

        return FolderContents(
            current_path=path,
            parent_path=parent_path(path),
            folders=[to_folder_entity(c, join_path(path, c.name)) for c in children],
            files=[to_file_entity(f, path) for f in files],
        )

    async def update_folder(
        self,
        user: UserEntity,
        folder_id: int,
        name: str | None = None,
        path: str | None = None,
    ) -> FolderEntity:
        """Rename a folder and/or relocate it to `path`."""
        new_parent: str | None = None
        new_name = validate_name(name) if name is not None else None
        if path is not None:
            target = normalize_path(path)
            if is_root(target):
                raise ValidationError("Cannot move a folder onto the root")
            leaf = split_path(target)[-1]
            if new_name is not None and new_name != leaf:
                raise ValidationError(f"Path {target} does not end with name {new_name}")
            new_name = leaf
            new_parent = parent_path(target)

        async with self.session_manager.write_lock:
            async with self.session_manager.session() as session:
                vfs = VirtualFileSystem(session)
                node = await vfs.get_folder(user.id, folder_id)
                if node is None:
                    raise NotFound(f"Folder {folder_id} not found")
                full_path = await self._relocate(
                    vfs, user, node, new_parent, new_name or node.name
                )
                await session.commit()

        return to_folder_entity(node, full_path)

    async def move_folder(
        self, user: UserEntity, folder_id: int, new_parent_path: str | None
    ) -> FolderEntity:
        """Move a folder below `new_parent_path`.

        Descendant folders and files follow the folder since their paths are
        derived from it.
        """
        target_parent = normalize_path(new_parent_path)
        async with self.session_manager.write_lock:
            async with self.session_manager.session() as session:
                vfs = VirtualFileSystem(session)
                node = await vfs.get_folder(user.id, folder_id)
                if node is None:
                    raise NotFound(f"Folder {folder_id} not found")
                old_path = await vfs.get_full_path(user.id, folder_id)
                full_path = await self._relocate(
                    vfs, user, node, target_parent, node.name
                )
                await session.commit()

        logger.info("Moved folder %s to %s", old_path, full_path)
        return to_folder_entity(node, full_path)

    async def _relocate(
        self,
        vfs: VirtualFileSystem,
        user: UserEntity,
        node: FolderDO,
        new_parent: str | None,
        new_name: str,
    ) -> str:
        """Apply a rename/reparent to `node` and return its new path."""
        tree = await vfs.load_tree(user.id)
        if new_parent is None:
            parent_id = node.parent_id
            parent = tree.path_of(parent_id)
        else:
            parent = new_parent
            resolved = await vfs.resolve_folder_id(user.id, parent)
            if resolved is None:
                raise NotFound(f"Parent folder {parent} not found")
            parent_id = resolved
            if tree.is_same_or_descendant(parent_id, node.id):
                raise ValidationError("Cannot move a folder into itself or a descendant")

        full_path = join_path(parent, new_name)
        if parent_id == node.parent_id and new_name == node.name:
            return full_path
        existing = await vfs.find_child(user.id, parent_id, new_name)
        if existing is not None and existing.id != node.id:
            raise Conflict(f"Folder already exists: {full_path}")
        try:
            await vfs.update_folder(node, parent_id=parent_id, name=new_name)
        except IntegrityError as err:
            raise Conflict(f"Folder already exists: {full_path}") from err
        return full_path

    async def delete_folder(self, user: UserEntity, folder_id: int) -> bool:
        """Delete an empty folder."""
        async with self.session_manager.write_lock:
            async with self.session_manager.session() as session:
                vfs = VirtualFileSystem(session)
                node = await vfs.get_folder(user.id, folder_id)
                if node is None:
                    raise NotFound(f"Folder {folder_id} not found")
                if await vfs.count_children(user.id, folder_id):
                    raise Conflict("Folder has subfolders")
                if await FileCatalog(session).count_in_folder(user.id, folder_id):
                    raise Conflict("Folder has files")
                await vfs.delete_folders(user.id, [folder_id])
                await session.commit()
        logger.info("Deleted folder %s (%s)", folder_id, node.name)
        return True

    async def delete_folder_recursive(
        self, user: UserEntity, path: str | None
    ) -> FolderDeleteReport:
        """Delete a folder with every descendant folder and file.

        All catalog rows go in one transaction. Physical files are removed
        afterwards; failures are counted in the report.
        """
        path = normalize_path(path)
        if is_root(path):
            raise ValidationError("Cannot delete the root folder")

        async with self.session_manager.write_lock:
            async with self.session_manager.session() as session:
                vfs = VirtualFileSystem(session)
                catalog = FileCatalog(session)
                node = await vfs.resolve_path(user.id, path)
                if node is None:
                    raise NotFound(f"Folder {path} not found")
                tree = await vfs.load_tree(user.id)
                folder_ids = [node.id] + [d.id for d in tree.descendants(node.id)]
                files = await catalog.list_by_folders(user.id, folder_ids)
                physical_paths = [Path(f.path) for f in files]
                file_ids = [f.id for f in files]
                files_deleted = await catalog.delete_many(file_ids)
                await SharedLinkCatalog(session).delete_by_file_ids(file_ids)
                folders_deleted = await vfs.delete_folders(user.id, folder_ids)
                await session.commit()

        report = FolderDeleteReport(
            path=path, folders_deleted=folders_deleted, files_deleted=files_deleted
        )
        for physical_path in physical_paths:
            try:
                if not await self.blob_storage.delete(physical_path):
                    logger.warning("Physical file already missing: %s", physical_path)
                    report.unlink_failures += 1
            except StorageIOError as err:
                logger.warning("Unable to remove %s: %s", physical_path, err)
                report.unlink_failures += 1

        logger.info(
            "Deleted %s: %d folder(s), %d file(s), %d unlink failure(s)",
            path,
            report.folders_deleted,
            report.files_deleted,
            report.unlink_failures,
        )
        return report


def folder_path_of(tree: FolderTree, folder_id: int) -> str:
    """Derived virtual path of a file's folder; unknown IDs map to the root."""
    if folder_id == ROOT_FOLDER_ID or folder_id not in tree:
        return ROOT_PATH
    return tree.path_of(folder_id)
