import time

from sqlalchemy import BigInteger, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from homevault.server.constants import ROOT_FOLDER_ID
from homevault.server.db.base import Base


class FolderDO(Base):
    """A virtual folder.

    Folders form a tree per owner through `parent_id`. Paths are not stored;
    they are derived by walking the parents, so moving a folder moves its
    whole subtree with a single row update.
    """

    __tablename__ = "f_folder"
    __table_args__ = (
        UniqueConstraint("user_id", "parent_id", "name", name="uq_folder_path"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Internal database ID."""

    user_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    """Owner user ID."""

    parent_id: Mapped[int] = mapped_column(
        BigInteger, index=True, nullable=False, default=ROOT_FOLDER_ID
    )
    """ID of the parent folder, 0 for folders directly under the root."""

    name: Mapped[str] = mapped_column(String, nullable=False)
    """Leaf name, unique among siblings."""

    create_time: Mapped[int] = mapped_column(
        BigInteger, default=lambda: int(time.time() * 1000)
    )
    """Creation timestamp in milliseconds."""

    update_time: Mapped[int] = mapped_column(
        BigInteger,
        default=lambda: int(time.time() * 1000),
        onupdate=lambda: int(time.time() * 1000),
    )
    """Last update timestamp in milliseconds."""

    def __repr__(self) -> str:
        return f"<FolderDO(id={self.id}, parent_id={self.parent_id}, name='{self.name}')>"
