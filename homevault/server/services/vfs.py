import logging
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from homevault.server.constants import ROOT_FOLDER_ID, ROOT_PATH
from homevault.server.db.models.folder import FolderDO
from homevault.server.exceptions import ValidationError
from homevault.server.utils.paths import join_path, parent_path, path_depth, split_path

logger = logging.getLogger(__name__)


@dataclass
class FolderEntity:
    """Domain object representing a virtual folder with its derived path."""

    id: int
    parent_id: int
    user_id: int
    name: str
    path: str
    create_time: int
    update_time: int

    @property
    def parent_path(self) -> str:
        """Path of the parent folder; `/` for folders under the root."""
        return parent_path(self.path) or ROOT_PATH

    @property
    def depth(self) -> int:
        return path_depth(self.path)


class FolderTree:
    """In-memory view of all folders of one owner.

    Built from a single query so that paths and descendants can be derived
    without a query per level.
    """

    def __init__(self, nodes: list[FolderDO]) -> None:
        self._nodes = {node.id: node for node in nodes}
        self._children: dict[int, list[FolderDO]] = defaultdict(list)
        for node in nodes:
            self._children[node.parent_id].append(node)
        self._paths: dict[int, str] = {ROOT_FOLDER_ID: ROOT_PATH}

    def __contains__(self, folder_id: int) -> bool:
        return folder_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def path_of(self, folder_id: int) -> str:
        """Derive the full path of a folder by walking up to the root."""
        if folder_id in self._paths:
            return self._paths[folder_id]
        chain: list[FolderDO] = []
        curr_id = folder_id
        while curr_id not in self._paths:
            node = self._nodes.get(curr_id)
            if node is None:
                raise KeyError(f"Folder {curr_id} is not part of the tree")
            chain.append(node)
            curr_id = node.parent_id
        for node in reversed(chain):
            self._paths[node.id] = join_path(self._paths[node.parent_id], node.name)
        return self._paths[folder_id]

    def children(self, folder_id: int) -> list[FolderDO]:
        return sorted(self._children.get(folder_id, []), key=lambda n: n.name)

    def descendants(self, folder_id: int) -> list[FolderDO]:
        """All folders below `folder_id`, parents before children."""
        result: list[FolderDO] = []
        queue = list(self._children.get(folder_id, []))
        while queue:
            node = queue.pop(0)
            result.append(node)
            queue.extend(self._children.get(node.id, []))
        return result

    def is_same_or_descendant(self, folder_id: int, ancestor_id: int) -> bool:
        """Whether `folder_id` is `ancestor_id` or lies below it."""
        curr_id = folder_id
        while curr_id != ROOT_FOLDER_ID:
            if curr_id == ancestor_id:
                return True
            node = self._nodes.get(curr_id)
            if node is None:
                return False
            curr_id = node.parent_id
        return ancestor_id == ROOT_FOLDER_ID

    def entity(self, folder_id: int) -> FolderEntity:
        node = self._nodes[folder_id]
        return to_folder_entity(node, self.path_of(folder_id))

    def entities(self) -> list[FolderEntity]:
        return [self.entity(folder_id) for folder_id in self._nodes]


def to_folder_entity(node: FolderDO, full_path: str) -> FolderEntity:
    """Convert a FolderDO to a FolderEntity."""
    return FolderEntity(
        id=node.id,
        parent_id=node.parent_id,
        user_id=node.user_id,
        name=node.name,
        path=full_path,
        create_time=int(node.create_time),
        update_time=int(node.update_time),
    )


class VirtualFileSystem:
    """Catalog access for the virtual folder tree.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_folder(self, user_id: int, folder_id: int) -> FolderDO | None:
        stmt = select(FolderDO).where(
            FolderDO.user_id == user_id,
            FolderDO.id == folder_id,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_child(
        self, user_id: int, parent_id: int, name: str
    ) -> FolderDO | None:
        stmt = select(FolderDO).where(
            FolderDO.user_id == user_id,
            FolderDO.parent_id == parent_id,
            FolderDO.name == name,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_children(self, user_id: int, parent_id: int) -> list[FolderDO]:
        """List the direct sub-folders of a folder."""
        stmt = (
            select(FolderDO)
            .where(FolderDO.user_id == user_id, FolderDO.parent_id == parent_id)
            .order_by(FolderDO.name)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_children(self, user_id: int, parent_id: int) -> int:
        stmt = select(func.count(FolderDO.id)).where(
            FolderDO.user_id == user_id, FolderDO.parent_id == parent_id
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def load_tree(self, user_id: int) -> FolderTree:
        """Load every folder of an owner into a FolderTree."""
        stmt = select(FolderDO).where(FolderDO.user_id == user_id)
        result = await self.db.execute(stmt)
        return FolderTree(list(result.scalars().all()))

    async def resolve_path(self, user_id: int, path: str | None) -> FolderDO | None:
        """Resolve a non-root path to its folder, or None if any segment is missing."""
        parent_id = ROOT_FOLDER_ID
        node: FolderDO | None = None
        for part in split_path(path):
            node = await self.find_child(user_id, parent_id, part)
            if node is None:
                return None
            parent_id = node.id
        return node

    async def resolve_folder_id(self, user_id: int, path: str | None) -> int | None:
        """Resolve a path to a folder ID; the root resolves to 0."""
        if not split_path(path):
            return ROOT_FOLDER_ID
        node = await self.resolve_path(user_id, path)
        return node.id if node else None

    async def get_full_path(self, user_id: int, folder_id: int) -> str:
        """Derive the path of a folder by walking up its parents."""
        parts: list[str] = []
        curr_id = folder_id
        while curr_id != ROOT_FOLDER_ID:
            node = await self.get_folder(user_id, curr_id)
            if node is None:
                break
            parts.insert(0, node.name)
            curr_id = node.parent_id
        return "/" + "/".join(parts)

    async def create_folder(self, user_id: int, parent_id: int, name: str) -> FolderDO:
        """Insert a folder row."""
        new_folder = FolderDO(user_id=user_id, parent_id=parent_id, name=name)
        self.db.add(new_folder)
        await self.db.flush()
        await self.db.refresh(new_folder)
        return new_folder

    async def ensure_path(self, user_id: int, path: str) -> tuple[FolderDO, int]:
        """Create every missing segment of `path`.

        Returns the leaf folder and how many folders were created.
        """
        parts = split_path(path)
        if not parts:
            raise ValidationError("Cannot create the root folder")
        *ancestors, leaf_name = parts

        parent_id = ROOT_FOLDER_ID
        created = 0
        for part in ancestors:
            node, was_created = await self._ensure_child(user_id, parent_id, part)
            created += was_created
            parent_id = node.id
        leaf, was_created = await self._ensure_child(user_id, parent_id, leaf_name)
        return leaf, created + was_created

    async def _ensure_child(
        self, user_id: int, parent_id: int, name: str
    ) -> tuple[FolderDO, bool]:
        node = await self.find_child(user_id, parent_id, name)
        if node is not None:
            return node, False
        node = await self.create_folder(user_id, parent_id, name)
        logger.debug("Created folder %s (id=%s)", name, node.id)
        return node, True

    async def update_folder(
        self, node: FolderDO, parent_id: int | None = None, name: str | None = None
    ) -> FolderDO:
        """Rename and/or reparent a folder."""
        if parent_id is not None:
            node.parent_id = parent_id
        if name is not None:
            node.name = name
        await self.db.flush()
        await self.db.refresh(node)
        return node

    async def delete_folders(self, user_id: int, folder_ids: list[int]) -> int:
        """Delete folder rows by ID."""
        if not folder_ids:
            return 0
        stmt = delete(FolderDO).where(
            FolderDO.user_id == user_id, FolderDO.id.in_(folder_ids)
        )
        result = await self.db.execute(stmt)
        return int(result.rowcount or 0)
