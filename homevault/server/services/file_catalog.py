from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from homevault.server.db.models.file import FileDO


@dataclass
class FileEntity:
    """Domain object representing a stored file."""

    id: int
    user_id: int
    filename: str
    original_filename: str
    path: str
    size: int
    mime_type: str
    folder_path: str
    folder_id: int
    create_time: int
    update_time: int

    # Derived from `folder_id` by the service.
    virtual_folder_path: str


def to_file_entity(node: FileDO, virtual_folder_path: str) -> FileEntity:
    """Convert a FileDO to a FileEntity."""
    return FileEntity(
        id=node.id,
        user_id=node.user_id,
        filename=node.filename,
        original_filename=node.original_filename,
        path=node.path,
        size=node.size,
        mime_type=node.mime_type,
        folder_path=node.folder_path,
        folder_id=node.folder_id,
        create_time=int(node.create_time),
        update_time=int(node.update_time),
        virtual_folder_path=virtual_folder_path,
    )


class FileCatalog:
    """Catalog access for file rows. The caller owns the transaction."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create(
        self,
        user_id: int,
        filename: str,
        original_filename: str,
        path: str,
        size: int,
        mime_type: str,
        folder_path: str,
        folder_id: int,
    ) -> FileDO:
        node = FileDO(
            user_id=user_id,
            filename=filename,
            original_filename=original_filename,
            path=path,
            size=size,
            mime_type=mime_type,
            folder_path=folder_path,
            folder_id=folder_id,
        )
        self.db.add(node)
        await self.db.flush()
        await self.db.refresh(node)
        return node

    async def get(self, file_id: int) -> FileDO | None:
        """Fetch a file by ID regardless of owner."""
        return await self.db.get(FileDO, file_id)

    async def get_many(self, file_ids: list[int]) -> dict[int, FileDO]:
        if not file_ids:
            return {}
        stmt = select(FileDO).where(FileDO.id.in_(file_ids))
        result = await self.db.execute(stmt)
        return {node.id: node for node in result.scalars().all()}

    async def list_by_folder(self, user_id: int, folder_id: int) -> list[FileDO]:
        stmt = (
            select(FileDO)
            .where(FileDO.user_id == user_id, FileDO.folder_id == folder_id)
            .order_by(FileDO.original_filename, FileDO.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_by_folders(self, user_id: int, folder_ids: list[int]) -> list[FileDO]:
        if not folder_ids:
            return []
        stmt = select(FileDO).where(
            FileDO.user_id == user_id, FileDO.folder_id.in_(folder_ids)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_in_folder(self, user_id: int, folder_id: int) -> int:
        stmt = select(func.count(FileDO.id)).where(
            FileDO.user_id == user_id, FileDO.folder_id == folder_id
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def list_page(
        self, user_id: int | None, offset: int, limit: int
    ) -> tuple[list[FileDO], int]:
        """Return one page of files, newest first, and the total count.

        A `user_id` of None lists the files of every owner.
        """
        filters = [] if user_id is None else [FileDO.user_id == user_id]
        count_stmt = select(func.count(FileDO.id)).where(*filters)
        total = int((await self.db.execute(count_stmt)).scalar_one())
        stmt = (
            select(FileDO)
            .where(*filters)
            .order_by(FileDO.create_time.desc(), FileDO.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def usage(self, user_id: int) -> tuple[int, int]:
        """Total bytes and number of files owned by a user."""
        stmt = select(func.coalesce(func.sum(FileDO.size), 0), func.count(FileDO.id)).where(
            FileDO.user_id == user_id
        )
        used, count = (await self.db.execute(stmt)).one()
        return int(used), int(count)

    async def list_by_user(self, user_id: int) -> list[FileDO]:
        stmt = select(FileDO).where(FileDO.user_id == user_id).order_by(FileDO.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete(self, file_id: int) -> bool:
        stmt = delete(FileDO).where(FileDO.id == file_id)
        result = await self.db.execute(stmt)
        return bool(result.rowcount)

    async def delete_many(self, file_ids: list[int]) -> int:
        if not file_ids:
            return 0
        stmt = delete(FileDO).where(FileDO.id.in_(file_ids))
        result = await self.db.execute(stmt)
        return int(result.rowcount or 0)
