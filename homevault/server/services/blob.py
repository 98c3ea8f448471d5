import datetime
import logging
import secrets
import time
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import AsyncIterable, AsyncIterator

import aiofiles
import aiofiles.os

from homevault.server.constants import CHUNK_SIZE
from homevault.server.exceptions import StorageIOError, TooLarge

logger = logging.getLogger(__name__)

DEFAULT_BASE_NAME = "file"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)


def generate_filename(original_filename: str, now: datetime.datetime | None = None) -> str:
    """Build a collision resistant physical name for an upload.

    The format is `<base>_<ms>_<random>.<ext>`. Directory components of the
    original name are dropped.
    """
    now = now or _utcnow()
    leaf = PureWindowsPath(PurePosixPath(original_filename or "").name).name
    stem, dot, ext = leaf.rpartition(".")
    if not dot or not stem:
        stem, ext = leaf, ""
    stem = stem.strip() or DEFAULT_BASE_NAME
    suffix = f".{ext}" if ext else ""
    millis = int(now.timestamp() * 1000)
    return f"{stem}_{millis}_{secrets.token_hex(3)}{suffix}"


class BlobStorage(ABC):
    """Interface for the physical storage of uploaded bytes."""

    @abstractmethod
    def bucket_dir(self, now: datetime.datetime | None = None) -> Path:
        """Directory that new uploads are written to."""

    @abstractmethod
    async def write_stream(
        self, stream: AsyncIterable[bytes], dest: Path, max_size: int | None = None
    ) -> int:
        """Write a stream to `dest` and return the number of bytes written."""

    @abstractmethod
    def read_range(
        self, path: Path, start: int, end: int, chunk_size: int = CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Yield the inclusive byte span `start..end` of a stored file."""

    @abstractmethod
    async def size(self, path: Path) -> int | None:
        """Size of a stored file, or None when it is missing."""

    @abstractmethod
    async def delete(self, path: Path) -> bool:
        """Remove a stored file. Returns False if nothing was removed."""


class LocalBlobStorage(BlobStorage):
    """Local filesystem storage in one directory per UTC day.

    Path structure: <root>/<YYYY-MM-DD>/<generated name>
    Example: storage/2024-05-01/report_1714521600000_a1b2c3.pdf
    """

    def __init__(self, storage_root: Path) -> None:
        """Create a local blob storage instance."""
        self.root = storage_root
        self.root.mkdir(parents=True, exist_ok=True)

    def bucket_dir(self, now: datetime.datetime | None = None) -> Path:
        """Return (and create) the bucket directory for `now`."""
        now = now or _utcnow()
        bucket = self.root / now.astimezone(datetime.timezone.utc).strftime("%Y-%m-%d")
        try:
            bucket.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise StorageIOError(f"Unable to create storage directory: {err}") from err
        return bucket

    async def write_stream(
        self, stream: AsyncIterable[bytes], dest: Path, max_size: int | None = None
    ) -> int:
        """Write stream to `dest`, aborting as soon as `max_size` is exceeded.

        Bytes go to a temporary file next to `dest` which is renamed into place
        once the stream is complete, so a partial upload never appears under
        its final name.
        """
        temp_path = dest.with_name(f".{dest.name}.{secrets.token_hex(4)}.part")
        written = 0
        start = time.perf_counter()
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in stream:
                    written += len(chunk)
                    if max_size is not None and written > max_size:
                        raise TooLarge(
                            f"File exceeds the maximum size of {max_size} bytes"
                        )
                    await f.write(chunk)
            await aiofiles.os.replace(temp_path, dest)
        except TooLarge:
            await self._discard(temp_path)
            raise
        except OSError as err:
            await self._discard(temp_path)
            raise StorageIOError(f"Unable to write file: {err}") from err
        except BaseException:
            await self._discard(temp_path)
            raise

        logger.debug(
            "Wrote %d bytes to %s in %.3fs",
            written,
            dest,
            time.perf_counter() - start,
        )
        return written

    async def read_range(
        self, path: Path, start: int, end: int, chunk_size: int = CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Yield the inclusive byte span `start..end` in chunks."""
        remaining = end - start + 1
        try:
            async with aiofiles.open(path, "rb") as f:
                await f.seek(start)
                while remaining > 0:
                    chunk = await f.read(min(chunk_size, remaining))
                    if not chunk:
                        break
                    remaining -= len(chunk)
                    yield chunk
        except OSError as err:
            raise StorageIOError(f"Unable to read file: {err}") from err

    async def size(self, path: Path) -> int | None:
        try:
            stat = await aiofiles.os.stat(path)
        except FileNotFoundError:
            return None
        except OSError as err:
            raise StorageIOError(f"Unable to stat file: {err}") from err
        return stat.st_size

    async def delete(self, path: Path) -> bool:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as err:
            raise StorageIOError(f"Unable to delete file: {err}") from err
        return True

    async def _discard(self, temp_path: Path) -> None:
        try:
            await aiofiles.os.remove(temp_path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Unable to remove partial upload %s", temp_path)
