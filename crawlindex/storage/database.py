"""
Database storage layer for crawled pages and the inverted index.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, List, Any, Iterable, Tuple

import aiosqlite

from ..utils.config import DatabaseConfig


class DatabaseError(Exception):
    """Custom exception for database operations."""
    pass


class StoreError(DatabaseError):
    """Raised when a page or its links cannot be written."""
    pass


class IndexingError(DatabaseError):
    """Raised when term frequencies cannot be written."""
    pass


@dataclass
class PageRecord:
    """One stored page. A re-crawl overwrites the record in place."""
    url: str
    html: str
    text: str
    title: Optional[str]
    last_crawled: datetime
    id: Optional[int] = None


SCHEMA = """
CREATE TABLE IF NOT EXISTS pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT UNIQUE,
    html TEXT,
    text TEXT,
    title TEXT,
    last_crawled TIMESTAMP
);

CREATE TABLE IF NOT EXISTS links (
    from_page_id INTEGER,
    to_url TEXT,
    FOREIGN KEY(from_page_id) REFERENCES pages(id)
);

CREATE TABLE IF NOT EXISTS inverted_index (
    term TEXT,
    page_id INTEGER,
    frequency INTEGER,
    FOREIGN KEY(page_id) REFERENCES pages(id)
);

CREATE INDEX IF NOT EXISTS idx_links_from_page_id ON links(from_page_id);
CREATE INDEX IF NOT EXISTS idx_inverted_index_term ON inverted_index(term);
CREATE INDEX IF NOT EXISTS idx_inverted_index_page_id ON inverted_index(page_id);
"""


class StorageBackend:
    """Abstract base class for storage backends."""

    async def initialize(self):
        """Initialize the storage backend and provision its schema."""
        raise NotImplementedError

    async def upsert_page(self, url: str, html: str, text: str,
                          title: Optional[str], timestamp: datetime) -> int:
        """Insert or overwrite the page record for url. Returns the page id."""
        raise NotImplementedError

    async def get_page(self, url: str) -> Optional[PageRecord]:
        """Retrieve a page by URL."""
        raise NotImplementedError

    async def get_page_id(self, url: str) -> Optional[int]:
        """Look up a page's identity by URL."""
        raise NotImplementedError

    async def record_term_frequency(self, url: str, term: str, count: int):
        """Write one term-frequency row for the page stored under url."""
        raise NotImplementedError

    async def replace_term_frequencies(self, url: str, counts: Dict[str, int]):
        """Drop the page's previous term rows and write the new counts."""
        raise NotImplementedError

    async def get_term_frequencies(self, url: str) -> List[Tuple[str, int]]:
        """Get (term, frequency) rows for a page."""
        raise NotImplementedError

    async def record_links(self, url: str, links: Iterable[str]):
        """Replace the outgoing links recorded for a page."""
        raise NotImplementedError

    async def get_links(self, url: str) -> List[str]:
        """Get the outgoing links recorded for a page."""
        raise NotImplementedError

    async def get_stats(self) -> Dict[str, Any]:
        """Get storage statistics."""
        raise NotImplementedError

    async def close(self):
        """Close storage connections."""
        raise NotImplementedError


class SQLiteStorageBackend(StorageBackend):
    """SQLite storage backend holding pages, links and the inverted index."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.connection: Optional[aiosqlite.Connection] = None
        self.logger = logging.getLogger(__name__)
        self.stats = {
            'pages_upserted': 0,
            'terms_recorded': 0,
            'links_recorded': 0,
            'storage_errors': 0
        }

    async def initialize(self):
        """Open the database and create tables."""
        try:
            if self.db_path != ':memory:':
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("PRAGMA foreign_keys = ON")
            await self.connection.executescript(SCHEMA)
            await self.connection.commit()

            self.logger.info(f"SQLite storage initialized at {self.db_path}")

        except (aiosqlite.Error, OSError) as e:
            raise DatabaseError(f"Failed to initialize SQLite storage: {e}") from e

    def _require_connection(self) -> aiosqlite.Connection:
        if self.connection is None:
            raise DatabaseError("Database not initialized")
        return self.connection

    async def upsert_page(self, url: str, html: str, text: str,
                          title: Optional[str], timestamp: datetime) -> int:
        """Store a page, keeping the existing row id on a re-crawl."""
        db = self._require_connection()
        try:
            await db.execute(
                """
                INSERT INTO pages (url, html, text, title, last_crawled)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(url) DO UPDATE SET
                    html = excluded.html,
                    text = excluded.text,
                    title = excluded.title,
                    last_crawled = excluded.last_crawled
                """,
                (url, html, text, title, timestamp.isoformat())
            )
            await db.commit()
            page_id = await self.get_page_id(url)

        except aiosqlite.Error as e:
            self.stats['storage_errors'] += 1
            raise StoreError(f"Error storing page {url}: {e}") from e

        self.stats['pages_upserted'] += 1
        self.logger.debug(f"Stored page {url} (id={page_id})")
        return page_id

    async def get_page(self, url: str) -> Optional[PageRecord]:
        db = self._require_connection()
        async with db.execute(
            "SELECT id, url, html, text, title, last_crawled FROM pages WHERE url = ?",
            (url,)
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return None

        return PageRecord(
            id=row[0],
            url=row[1],
            html=row[2],
            text=row[3],
            title=row[4],
            last_crawled=datetime.fromisoformat(row[5])
        )

    async def get_page_id(self, url: str) -> Optional[int]:
        db = self._require_connection()
        async with db.execute("SELECT id FROM pages WHERE url = ?", (url,)) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def _insert_term(self, db: aiosqlite.Connection, url: str, term: str, count: int):
        cursor = await db.execute(
            """
            INSERT INTO inverted_index (term, page_id, frequency)
            SELECT ?, id, ? FROM pages WHERE url = ?
            """,
            (term, count, url)
        )
        if cursor.rowcount == 0:
            raise IndexingError(f"No stored page for {url}")

    async def record_term_frequency(self, url: str, term: str, count: int):
        db = self._require_connection()
        try:
            await self._insert_term(db, url, term, count)
            await db.commit()
        except IndexingError:
            await db.rollback()
            raise
        except aiosqlite.Error as e:
            await db.rollback()
            self.stats['storage_errors'] += 1
            raise IndexingError(f"Error indexing term {term!r} for {url}: {e}") from e

        self.stats['terms_recorded'] += 1

    async def replace_term_frequencies(self, url: str, counts: Dict[str, int]):
        """Delete-then-insert in one transaction so a re-crawl never duplicates rows."""
        db = self._require_connection()
        try:
            page_id = await self.get_page_id(url)
            if page_id is None:
                raise IndexingError(f"No stored page for {url}")

            await db.execute("DELETE FROM inverted_index WHERE page_id = ?", (page_id,))
            for term, count in counts.items():
                await self._insert_term(db, url, term, count)
            await db.commit()

        except IndexingError:
            await db.rollback()
            raise
        except aiosqlite.Error as e:
            await db.rollback()
            self.stats['storage_errors'] += 1
            raise IndexingError(f"Error indexing {url}: {e}") from e

        self.stats['terms_recorded'] += len(counts)
        self.logger.debug(f"Indexed {len(counts)} terms for {url}")

    async def get_term_frequencies(self, url: str) -> List[Tuple[str, int]]:
        db = self._require_connection()
        async with db.execute(
            """
            SELECT i.term, i.frequency FROM inverted_index i
            JOIN pages p ON p.id = i.page_id
            WHERE p.url = ?
            ORDER BY i.term
            """,
            (url,)
        ) as cursor:
            rows = await cursor.fetchall()
        return [(row[0], row[1]) for row in rows]

    async def record_links(self, url: str, links: Iterable[str]):
        db = self._require_connection()
        links = list(links)
        try:
            page_id = await self.get_page_id(url)
            if page_id is None:
                raise StoreError(f"No stored page for {url}")

            await db.execute("DELETE FROM links WHERE from_page_id = ?", (page_id,))
            await db.executemany(
                "INSERT INTO links (from_page_id, to_url) VALUES (?, ?)",
                [(page_id, link) for link in links]
            )
            await db.commit()

        except StoreError:
            await db.rollback()
            raise
        except aiosqlite.Error as e:
            await db.rollback()
            self.stats['storage_errors'] += 1
            raise StoreError(f"Error storing links for {url}: {e}") from e

        self.stats['links_recorded'] += len(links)

    async def get_links(self, url: str) -> List[str]:
        db = self._require_connection()
        async with db.execute(
            """
            SELECT l.to_url FROM links l
            JOIN pages p ON p.id = l.from_page_id
            WHERE p.url = ?
            ORDER BY l.rowid
            """,
            (url,)
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def get_stats(self) -> Dict[str, Any]:
        db = self._require_connection()
        counts = {}
        for table in ('pages', 'links', 'inverted_index'):
            async with db.execute(f"SELECT COUNT(*) FROM {table}") as cursor:
                row = await cursor.fetchone()
            counts[f"{table}_rows"] = row[0]

        return {**self.stats, **counts}

    async def close(self):
        if self.connection:
            await self.connection.close()
            self.connection = None
            self.logger.info("SQLite connection closed")


class DatabaseManager:
    """Main database manager that handles different storage backends."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.backend: Optional[StorageBackend] = None
        self.logger = logging.getLogger(__name__)

    async def initialize(self):
        """Initialize the appropriate storage backend."""
        backend_type = self.config.type.lower()

        if backend_type == 'sqlite':
            self.backend = SQLiteStorageBackend(self.config.path)
        else:
            raise DatabaseError(f"Unknown database type: {backend_type}")

        await self.backend.initialize()
        self.logger.info(f"Database manager initialized with {backend_type} backend")

    def _require_backend(self) -> StorageBackend:
        if not self.backend:
            raise DatabaseError("Database not initialized")
        return self.backend

    async def upsert_page(self, url: str, html: str, text: str,
                          title: Optional[str], timestamp: Optional[datetime] = None) -> int:
        """Store a crawled page. Defaults the timestamp to now (UTC)."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        return await self._require_backend().upsert_page(url, html, text, title, timestamp)

    async def get_page(self, url: str) -> Optional[PageRecord]:
        return await self._require_backend().get_page(url)

    async def get_page_id(self, url: str) -> Optional[int]:
        return await self._require_backend().get_page_id(url)

    async def record_term_frequency(self, url: str, term: str, count: int):
        await self._require_backend().record_term_frequency(url, term, count)

    async def replace_term_frequencies(self, url: str, counts: Dict[str, int]):
        await self._require_backend().replace_term_frequencies(url, counts)

    async def get_term_frequencies(self, url: str) -> List[Tuple[str, int]]:
        return await self._require_backend().get_term_frequencies(url)

    async def record_links(self, url: str, links: Iterable[str]):
        await self._require_backend().record_links(url, links)

    async def get_links(self, url: str) -> List[str]:
        return await self._require_backend().get_links(url)

    async def get_stats(self) -> Dict[str, Any]:
        """Get storage statistics."""
        return await self._require_backend().get_stats()

    async def close(self):
        """Close database connections."""
        if self.backend:
            await self.backend.close()
            self.logger.info("Database connections closed")
