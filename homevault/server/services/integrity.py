import logging
from dataclasses import dataclass, field
from pathlib import Path

from homevault.server.db.session import DatabaseSessionManager
from homevault.server.services.blob import BlobStorage
from homevault.server.services.file_catalog import FileCatalog

logger = logging.getLogger(__name__)


@dataclass
class IntegrityReport:
    scanned: int = 0
    missing_file: int = 0
    size_mismatch: int = 0
    ok: int = 0
    problem_file_ids: list[int] = field(default_factory=list)


class IntegrityService:
    """Service to verify data consistency between the catalog and disk."""

    def __init__(
        self, session_manager: DatabaseSessionManager, blob_storage: BlobStorage
    ) -> None:
        """Create an integrity service instance."""
        self.session_manager = session_manager
        self.blob_storage = blob_storage

    async def verify_user_storage(self, user_id: int) -> IntegrityReport:
        """Check all files for a user."""
        report = IntegrityReport()

        async with self.session_manager.session() as session:
            files = await FileCatalog(session).list_by_user(user_id)

        for file_do in files:
            report.scanned += 1
            size = await self.blob_storage.size(Path(file_do.path))
            if size is None:
                logger.error(
                    "Integrity Fail: File %s (%s) missing at %s",
                    file_do.id,
                    file_do.original_filename,
                    file_do.path,
                )
                report.missing_file += 1
                report.problem_file_ids.append(file_do.id)
                continue

            if size != file_do.size:
                logger.warning(
                    "Integrity Warning: File %s size mismatch. Catalog: %s, Disk: %s",
                    file_do.id,
                    file_do.size,
                    size,
                )
                report.size_mismatch += 1
                report.problem_file_ids.append(file_do.id)
                continue

            report.ok += 1

        return report
