"""Public links that let anyone holding the token fetch one file.

A link can require a password, expire at a point in time and allow a
limited number of downloads. Only downloads count towards that limit; looking
at the metadata of a link does not.
"""

import hashlib
import hmac
import logging
import secrets
import time
from dataclasses import dataclass

from homevault.server.constants import SHARED_LINK_TOKEN_BYTES, SHARED_URL_TEMPLATE
from homevault.server.db.models.shared_link import SharedLinkDO
from homevault.server.db.session import DatabaseSessionManager
from homevault.server.exceptions import (
    Gone,
    NotFound,
    PermissionDenied,
    Unauthorized,
    ValidationError,
)

from .file import FileService, FileStream
from .file_catalog import FileEntity
from .shared_link_catalog import SharedLinkCatalog
from .user import UserEntity

logger = logging.getLogger(__name__)

__all__ = [
    "SharedLinkService",
    "SharedLinkEntity",
    "SharedFile",
    "hash_password",
    "check_password",
]


@dataclass
class SharedLinkEntity:
    """Domain object representing a shared link."""

    id: int
    token: str
    file_id: int
    user_id: int
    has_password: bool
    expires_at: int | None
    max_access_count: int | None
    access_count: int
    revoked: bool
    create_time: int
    last_access_time: int | None

    @property
    def url(self) -> str:
        return SHARED_URL_TEMPLATE.format(token=self.token)


@dataclass
class SharedFile:
    """A usable link and the file it points at."""

    link: SharedLinkEntity
    file: FileEntity


def to_shared_link_entity(node: SharedLinkDO) -> SharedLinkEntity:
    return SharedLinkEntity(
        id=node.id,
        token=node.token,
        file_id=node.file_id,
        user_id=node.user_id,
        has_password=node.password_hash is not None,
        expires_at=node.expires_at,
        max_access_count=node.max_access_count,
        access_count=node.access_count,
        revoked=node.revoked,
        create_time=int(node.create_time),
        last_access_time=node.last_access_time,
    )


def hash_password(password: str, salt: str | None = None) -> str:
    """Hash a link password as `<salt>$<sha256 hex>`."""
    if salt is None:
        salt = secrets.token_hex(8)
    digest = hashlib.sha256(f"{salt}{password}".encode()).hexdigest()
    return f"{salt}${digest}"


def check_password(password: str, password_hash: str) -> bool:
    salt, _, _ = password_hash.partition("$")
    return hmac.compare_digest(hash_password(password, salt), password_hash)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SharedLinkService:
    """Creates, revokes and resolves shared links."""

    def __init__(
        self, session_manager: DatabaseSessionManager, file_service: FileService
    ) -> None:
        self.session_manager = session_manager
        self.file_service = file_service

    async def create_link(
        self,
        user: UserEntity,
        file_id: int,
        password: str | None = None,
        expires_at: int | None = None,
        max_access_count: int | None = None,
    ) -> SharedLinkEntity:
        """Create a link to a file the caller may access.

        Args:
          password: Required from anyone using the link. Empty means none.
          expires_at: Expiry timestamp in milliseconds, must be in the future.
          max_access_count: Number of downloads allowed, at least 1.
        """
        file = await self.file_service.get_file(user, file_id)
        if expires_at is not None and expires_at <= _now_ms():
            raise ValidationError("expiresAt must be in the future")
        if max_access_count is not None and max_access_count < 1:
            raise ValidationError("maxAccessCount must be at least 1")

        async with self.session_manager.session() as session:
            node = await SharedLinkCatalog(session).create(
                token=secrets.token_urlsafe(SHARED_LINK_TOKEN_BYTES),
                file_id=file.id,
                user_id=user.id,
                password_hash=hash_password(password) if password else None,
                expires_at=expires_at,
                max_access_count=max_access_count,
            )
            await session.commit()

        logger.info("User %s shared file %s", user.username, file.id)
        return to_shared_link_entity(node)

    async def list_links(self, user: UserEntity) -> list[SharedLinkEntity]:
        """The caller's links, newest first."""
        async with self.session_manager.session() as session:
            nodes = await SharedLinkCatalog(session).list_by_user(user.id)
        return [to_shared_link_entity(node) for node in nodes]

    async def revoke_link(self, user: UserEntity, token: str) -> SharedLinkEntity:
        async with self.session_manager.session() as session:
            catalog = SharedLinkCatalog(session)
            node = await catalog.get_by_token(token)
            if node is None:
                raise NotFound("Shared link not found")
            if node.user_id != user.id and not user.is_admin:
                raise PermissionDenied("Access to shared link denied")
            await catalog.revoke(token)
            await session.commit()
            await session.refresh(node)
        logger.info("User %s revoked shared link %s", user.username, node.id)
        return to_shared_link_entity(node)

    async def get_shared_file(
        self, token: str, password: str | None = None
    ) -> SharedFile:
        """Resolve a usable link to its file without counting an access."""
        link = await self._get_usable(token, password)
        file = await self.file_service.lookup_file(link.file_id)
        return SharedFile(link=link, file=file)

    async def open_shared_stream(
        self,
        token: str,
        password: str | None = None,
        range_header: str | None = None,
    ) -> tuple[SharedLinkEntity, FileStream]:
        """Open the file behind a link for reading and count the access.

        Raises:
          NotFound: The link does not exist, was revoked or its file is gone.
          Gone: The link expired or reached its download limit.
          Unauthorized: The password is missing or wrong.
        """
        link = await self._get_usable(token, password)
        file = await self.file_service.lookup_file(link.file_id)
        stream = await self.file_service.open_stream(file, range_header)

        async with self.session_manager.write_lock:
            async with self.session_manager.session() as session:
                catalog = SharedLinkCatalog(session)
                node = self._check_usable(await catalog.get_by_token(token), password)
                node = await catalog.record_access(node)
                await session.commit()
                link = to_shared_link_entity(node)

        logger.info("Shared link %s used (%d)", link.id, link.access_count)
        return link, stream

    async def _get_usable(
        self, token: str, password: str | None
    ) -> SharedLinkEntity:
        async with self.session_manager.session() as session:
            catalog = SharedLinkCatalog(session)
            node = self._check_usable(await catalog.get_by_token(token), password)
            return to_shared_link_entity(node)

    @staticmethod
    def _check_usable(
        node: SharedLinkDO | None, password: str | None
    ) -> SharedLinkDO:
        if node is None or node.revoked:
            raise NotFound("Shared link not found")
        if node.expires_at is not None and node.expires_at <= _now_ms():
            raise Gone("Shared link has expired")
        if (
            node.max_access_count is not None
            and node.access_count >= node.max_access_count
        ):
            raise Gone("Shared link has reached its download limit")
        if node.password_hash is not None and (
            not password or not check_password(password, node.password_hash)
        ):
            raise Unauthorized("Password required or incorrect")
        return node
