import time

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from homevault.server.constants import ROOT_FOLDER_ID
from homevault.server.db.base import Base


class FileDO(Base):
    """A stored file.

    The bytes live at `path`, inside a date bucket on disk. The file's place
    in the virtual tree is `folder_id`; moving a file only changes that
    column.
    """

    __tablename__ = "f_file"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Internal database ID."""

    user_id: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    """Owner user ID."""

    filename: Mapped[str] = mapped_column(String, nullable=False)
    """Generated physical file name."""

    original_filename: Mapped[str] = mapped_column(String, nullable=False)
    """Name supplied by the uploader."""

    path: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    """Absolute physical path of the bytes."""

    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    """Number of bytes written to disk."""

    mime_type: Mapped[str] = mapped_column(String, nullable=False)
    """MIME type declared at upload."""

    folder_path: Mapped[str] = mapped_column(String, nullable=False)
    """Physical bucket directory, informational only."""

    folder_id: Mapped[int] = mapped_column(
        BigInteger, index=True, nullable=False, default=ROOT_FOLDER_ID
    )
    """Virtual folder holding the file, 0 for the root."""

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
        return f"<FileDO(id={self.id}, original_filename='{self.original_filename}')>"
