import time

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from homevault.server.db.models.shared_link import SharedLinkDO


class SharedLinkCatalog:
    """Catalog access for shared link rows. The caller owns the transaction."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create(
        self,
        token: str,
        file_id: int,
        user_id: int,
        password_hash: str | None,
        expires_at: int | None,
        max_access_count: int | None,
    ) -> SharedLinkDO:
        node = SharedLinkDO(
            token=token,
            file_id=file_id,
            user_id=user_id,
            password_hash=password_hash,
            expires_at=expires_at,
            max_access_count=max_access_count,
            access_count=0,
            revoked=False,
        )
        self.db.add(node)
        await self.db.flush()
        await self.db.refresh(node)
        return node

    async def get_by_token(self, token: str) -> SharedLinkDO | None:
        stmt = select(SharedLinkDO).where(SharedLinkDO.token == token)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_user(self, user_id: int) -> list[SharedLinkDO]:
        stmt = (
            select(SharedLinkDO)
            .where(SharedLinkDO.user_id == user_id)
            .order_by(SharedLinkDO.create_time.desc(), SharedLinkDO.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def record_access(self, node: SharedLinkDO) -> SharedLinkDO:
        node.access_count += 1
        node.last_access_time = int(time.time() * 1000)
        await self.db.flush()
        return node

    async def revoke(self, token: str) -> bool:
        stmt = (
            update(SharedLinkDO)
            .where(SharedLinkDO.token == token)
            .values(revoked=True)
        )
        result = await self.db.execute(stmt)
        return bool(result.rowcount)

    async def delete_by_file_ids(self, file_ids: list[int]) -> int:
        """Remove every link that points at one of `file_ids`."""
        if not file_ids:
            return 0
        stmt = delete(SharedLinkDO).where(SharedLinkDO.file_id.in_(file_ids))
        result = await self.db.execute(stmt)
        return int(result.rowcount or 0)
