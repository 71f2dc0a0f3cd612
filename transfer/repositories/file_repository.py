"""File repository for database operations."""

from datetime import datetime
from typing import List, Optional

from common.logging_config import get_logger
from common.types import FileRecord, FileStatus
from transfer.database import get_db_connection

logger = get_logger(__name__)

_FILE_COLUMNS = "file_id, file_name, file_size, chunk_count, status, user_id, created_at, updated_at"


def _row_to_file(row) -> FileRecord:
    return FileRecord(
        file_id=row["file_id"],
        file_name=row["file_name"],
        file_size=row["file_size"],
        chunk_count=row["chunk_count"],
        status=FileStatus(row["status"]),
        user_id=row["user_id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class FileRepository:
    @staticmethod
    def create_file(record: FileRecord, conn=None) -> FileRecord:
        """
        Insert a file row. Commits only when it opened the connection itself.
        """
        if conn is None:
            with get_db_connection() as conn:
                created = FileRepository.create_file(record, conn=conn)
                conn.commit()
                return created

        cursor = conn.cursor()
        cursor.execute(
            f"""
            INSERT INTO files ({_FILE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.file_id,
                record.file_name,
                record.file_size,
                record.chunk_count,
                record.status.value,
                record.user_id,
                record.created_at.isoformat(),
                record.updated_at.isoformat(),
            )
        )
        logger.debug(f"Created file row [file_id={record.file_id}]")
        return record

    @staticmethod
    def get_by_id(file_id: str, conn=None) -> Optional[FileRecord]:
        if conn is None:
            with get_db_connection() as conn:
                return FileRepository.get_by_id(file_id, conn=conn)

        cursor = conn.cursor()
        cursor.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE file_id = ?", (file_id,))
        row = cursor.fetchone()
        return _row_to_file(row) if row is not None else None

    @staticmethod
    def finalize(
        file_id: str,
        chunk_count: int,
        status: FileStatus,
        updated_at: datetime,
        file_size: Optional[int] = None,
        conn=None
    ) -> int:
        """
        Move an uploading file to a terminal status in a single UPDATE.

        The WHERE clause only matches rows still uploading, so a terminal
        file is never moved again.

        Returns:
            Number of rows updated (0 or 1)
        """
        if conn is None:
            with get_db_connection() as conn:
                updated = FileRepository.finalize(
                    file_id, chunk_count, status, updated_at, file_size=file_size, conn=conn
                )
                conn.commit()
                return updated

        cursor = conn.cursor()
        cursor.execute(
            """
            UPDATE files
            SET chunk_count = ?,
                status = ?,
                updated_at = ?,
                file_size = COALESCE(?, file_size)
            WHERE file_id = ? AND status = ?
            """,
            (
                chunk_count,
                status.value,
                updated_at.isoformat(),
                file_size,
                file_id,
                FileStatus.UPLOADING.value,
            )
        )
        return cursor.rowcount

    @staticmethod
    def list_files(status: Optional[FileStatus] = None, limit: int = 100) -> List[FileRecord]:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            if status is None:
                cursor.execute(
                    f"SELECT {_FILE_COLUMNS} FROM files ORDER BY created_at DESC LIMIT ?",
                    (limit,)
                )
            else:
                cursor.execute(
                    f"SELECT {_FILE_COLUMNS} FROM files WHERE status = ? ORDER BY created_at DESC LIMIT ?",
                    (status.value, limit)
                )
            return [_row_to_file(row) for row in cursor.fetchall()]

    @staticmethod
    def delete_file(file_id: str, conn=None) -> bool:
        """
        Hard delete a file row; chunk rows go with it through ON DELETE CASCADE.
        """
        if conn is None:
            with get_db_connection() as conn:
                deleted = FileRepository.delete_file(file_id, conn=conn)
                conn.commit()
                return deleted

        logger.debug(f"Deleting file [file_id={file_id}]")
        try:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM files WHERE file_id = ?", (file_id,))
            return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Failed to delete file [file_id={file_id}]: {e}", exc_info=True)
            raise
