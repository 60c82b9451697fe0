"""Record store: paper metadata, PDF binaries and thumbnails in SQLite."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from litreview.database.blobs import BlobRegistry
from litreview.errors import StoreUnavailable, WriteError
from litreview.models.paper import Paper

logger = logging.getLogger(__name__)


@dataclass
class PdfFile:
    """A stored PDF together with the session reference created for it."""

    paper_id: str
    file_name: str
    data: bytes
    url: str

    @property
    def size(self) -> int:
        return len(self.data)


class RecordStore:
    """Repository for paper CRUD operations using SQLite.

    Papers, PDF binaries and thumbnails live in three tables keyed by paper
    id.  Writes of a record and its binary are two separate commits: a
    failure on one side is logged and raised as :class:`WriteError` but
    does not undo the other side.
    """

    def __init__(self, db_path: Path, blobs: Optional[BlobRegistry] = None):
        """Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file
            blobs: Registry that owns the ``blob:`` references this store
                hands out (a private one is created when omitted)
        """
        self.db_path = Path(db_path)
        self.blobs = blobs or BlobRegistry()
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def init(self) -> None:
        """Create the schema.

        Raises:
            StoreUnavailable: If the database cannot be opened or created
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS papers (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        id TEXT NOT NULL UNIQUE,
                        data TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                """)
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS pdf_files (
                        paper_id TEXT PRIMARY KEY,
                        file_name TEXT NOT NULL,
                        data BLOB NOT NULL,
                        size INTEGER NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                """)
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS thumbnails (
                        paper_id TEXT PRIMARY KEY,
                        image TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                """)
                conn.commit()
        except (sqlite3.Error, OSError) as e:
            self._available = False
            logger.error("Record store initialization failed: %s", e)
            raise StoreUnavailable(f"Cannot open record store at {self.db_path}: {e}") from e
        self._available = True
        logger.debug("Record store ready at %s", self.db_path)

    def put(
        self,
        paper: Paper,
        binary: Optional[bytes] = None,
        file_name: Optional[str] = None,
    ) -> None:
        """Insert or replace a paper and, optionally, its PDF binary.

        Args:
            paper: Paper to persist (must carry an id)
            binary: PDF bytes to store under the same id
            file_name: Original file name of the PDF

        Raises:
            WriteError: If either write failed (the other one is kept)
        """
        if not paper.id:
            raise WriteError("Cannot store a paper without an id")

        now = datetime.now(timezone.utc).isoformat()
        record = paper.to_dict()
        # Thumbnails have their own table
        record.pop("thumbnail", None)
        failures: list[str] = []

        try:
            with self._connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO papers (id, data, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET data = excluded.data,
                                                  updated_at = excluded.updated_at
                    """,
                    (paper.id, json.dumps(record, ensure_ascii=False), now),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error("Failed to write record %s: %s", paper.id, e)
            failures.append(f"record: {e}")

        if binary is not None:
            name = file_name or paper.original_file_name or f"{paper.id}.pdf"
            try:
                with self._connection() as conn:
                    cursor = conn.cursor()
                    cursor.execute(
                        """
                        INSERT OR REPLACE INTO pdf_files
                        (paper_id, file_name, data, size, updated_at)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (paper.id, name, sqlite3.Binary(binary), len(binary), now),
                    )
                    conn.commit()
            except sqlite3.Error as e:
                logger.error("Failed to write PDF for %s: %s", paper.id, e)
                failures.append(f"binary: {e}")

        if failures:
            raise WriteError(
                f"Write failed for paper {paper.id} ({'; '.join(failures)})",
                paper_id=paper.id,
            )

    def get(self, paper_id: str) -> Optional[Paper]:
        """Find a single paper by ID (thumbnail included)."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT p.data, t.image FROM papers p
                LEFT JOIN thumbnails t ON t.paper_id = p.id
                WHERE p.id = ?
                """,
                (paper_id,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_paper(row)

    def get_all(self) -> list[Paper]:
        """Return every stored paper in insertion order."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT p.data, t.image FROM papers p
                LEFT JOIN thumbnails t ON t.paper_id = p.id
                ORDER BY p.seq ASC
                """
            )
            rows = cursor.fetchall()
        return [self._row_to_paper(row) for row in rows]

    def delete(self, paper_id: str) -> bool:
        """Delete a paper with its binary and thumbnail.

        Returns:
            True if a paper record was removed
        """
        try:
            with self._connection() as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM pdf_files WHERE paper_id = ?", (paper_id,))
                cursor.execute("DELETE FROM thumbnails WHERE paper_id = ?", (paper_id,))
                cursor.execute("DELETE FROM papers WHERE id = ?", (paper_id,))
                deleted = cursor.rowcount > 0
                conn.commit()
        except sqlite3.Error as e:
            raise WriteError(f"Delete failed for paper {paper_id}: {e}", paper_id=paper_id) from e
        return deleted

    def count(self) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS cnt FROM papers")
            return cursor.fetchone()["cnt"]

    def get_binary(self, paper_id: str) -> Optional[PdfFile]:
        """Load a stored PDF and register a fresh ``blob:`` reference for it.

        The caller owns the returned ``url`` and releases it with
        :meth:`release` when done.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT file_name, data FROM pdf_files WHERE paper_id = ?",
                (paper_id,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        data = bytes(row["data"])
        return PdfFile(
            paper_id=paper_id,
            file_name=row["file_name"],
            data=data,
            url=self.blobs.create(data, "application/pdf"),
        )

    def has_binary(self, paper_id: str) -> bool:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM pdf_files WHERE paper_id = ?", (paper_id,))
            return cursor.fetchone() is not None

    def release(self, url: str) -> bool:
        """Release a reference returned by :meth:`get_binary`."""
        return self.blobs.revoke(url)

    def put_thumbnail(self, paper_id: str, image: Optional[str]) -> None:
        """Store (or, with ``None``, remove) the thumbnail of a paper."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            with self._connection() as conn:
                cursor = conn.cursor()
                if image:
                    cursor.execute(
                        """
                        INSERT OR REPLACE INTO thumbnails (paper_id, image, updated_at)
                        VALUES (?, ?, ?)
                        """,
                        (paper_id, image, now),
                    )
                else:
                    cursor.execute("DELETE FROM thumbnails WHERE paper_id = ?", (paper_id,))
                conn.commit()
        except sqlite3.Error as e:
            logger.error("Failed to write thumbnail for %s: %s", paper_id, e)
            raise WriteError(f"Thumbnail write failed for {paper_id}: {e}", paper_id=paper_id) from e

    def get_thumbnail(self, paper_id: str) -> Optional[str]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT image FROM thumbnails WHERE paper_id = ?", (paper_id,))
            row = cursor.fetchone()
        return row["image"] if row else None

    def usage(self) -> dict[str, int]:
        """Return counts and on-disk size for the storage report."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS cnt FROM papers")
            papers = cursor.fetchone()["cnt"]
            cursor.execute("SELECT COUNT(*) AS cnt, COALESCE(SUM(size), 0) AS total FROM pdf_files")
            row = cursor.fetchone()
            pdfs, pdf_bytes = row["cnt"], row["total"]
            cursor.execute("SELECT COUNT(*) AS cnt FROM thumbnails")
            thumbnails = cursor.fetchone()["cnt"]
        return {
            "papers": papers,
            "pdfs": pdfs,
            "pdf_bytes": pdf_bytes,
            "thumbnails": thumbnails,
            "db_bytes": self.db_path.stat().st_size if self.db_path.exists() else 0,
        }

    @staticmethod
    def _row_to_paper(row: sqlite3.Row) -> Paper:
        record = json.loads(row["data"])
        record["thumbnail"] = row["image"]
        return Paper.from_dict(record)
