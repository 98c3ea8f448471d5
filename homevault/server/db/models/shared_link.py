import time

from sqlalchemy import BigInteger, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from homevault.server.db.base import Base


class SharedLinkDO(Base):
    """A public link to one file.

    A link stops working once it is revoked, once `expires_at` has passed or
    once `access_count` reaches `max_access_count`.
    """

    __tablename__ = "f_shared_link"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Internal database ID."""

    token: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    """Random URL-safe token that identifies the link."""

    file_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    """Shared file."""

    user_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    """User who created the link."""

    password_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    """Salted hash of the optional link password."""

    expires_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    """Expiry timestamp in milliseconds, if any."""

    max_access_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    """Number of downloads allowed, if limited."""

    access_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    create_time: Mapped[int] = mapped_column(
        BigInteger, default=lambda: int(time.time() * 1000)
    )
    """Creation timestamp in milliseconds."""

    last_access_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    """Timestamp of the latest download in milliseconds."""

    def __repr__(self) -> str:
        return f"<SharedLinkDO(id={self.id}, file_id={self.file_id})>"
