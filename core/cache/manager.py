"""Two-tier cache for resolved terms.

The fast tier is an in-process LRU map with per-entry TTL. The persistent tier is a SQLite database in
WAL mode holding the same entries as camelCase JSON records. Reads fall through fast -> persistent and
repopulate the fast tier on a persistent hit. Writes go to both tiers; a persistent write failure is
logged and the entry stays available from the fast tier.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections import OrderedDict
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from models.cache_models import CacheEntry, CacheStatistics
from models.lookup_models import QueryKey, TranslationResult
from models.provider_models import ProviderId
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import Config

__all__: list[str] = ["CacheTierManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class CacheTierManager:
    """Fast in-memory tier backed by a persistent SQLite tier.

    Both tiers are keyed by ``QueryKey.digest``. The fast tier is usable without ``component_load``;
    the persistent tier is only consulted once the database has been opened.

    Attributes:
        DB_SCHEMA_VERSION (ClassVar[int]): Persistent schema version.
    """

    DB_SCHEMA_VERSION: ClassVar[int] = 1

    def __init__(self, config: Config, *, db_path: Path | str | None = None) -> None:
        self.config: Config = config
        self._db_path: Path = Path(db_path if db_path is not None else config.CACHE.DB_PATH)
        self._db_conn: sqlite3.Connection | None = None
        self._db_lock: asyncio.Lock = asyncio.Lock()
        self._fast: OrderedDict[str, CacheEntry] = OrderedDict()
        self._fast_max_entries: int = config.CACHE.FAST_TIER_MAX_ENTRIES
        self._max_entries_per_provider: int = config.CACHE.MAX_ENTRIES_PER_PROVIDER
        self._is_initialized: bool = False

    @property
    def is_initialized(self) -> bool:
        """Whether the persistent tier is open."""
        return self._is_initialized

    async def component_load(self) -> None:
        """Open the persistent tier.

        A database that cannot be opened leaves the manager running with the fast tier only.
        """
        logger.info("CacheTierManager initialization started (db: '%s')", self._db_path)
        try:
            await asyncio.to_thread(self._initialize_database)
        except sqlite3.Error as err:
            logger.critical("Persistent cache unavailable, continuing with the fast tier only: %s", err)
            self._is_initialized = False
        else:
            self._is_initialized = True
            logger.info("CacheTierManager initialized successfully")

    async def component_teardown(self) -> None:
        logger.info("CacheTierManager shutdown started")
        async with self._db_lock:
            if self._db_conn is not None:
                try:
                    self._db_conn.close()
                except sqlite3.Error as err:
                    logger.error("Error closing database connection: %s", err)
                self._db_conn = None
        self._is_initialized = False
        self._fast.clear()
        logger.info("CacheTierManager shutdown completed")

    def _initialize_database(self) -> None:
        self._db_conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._db_conn.execute("PRAGMA journal_mode=WAL")
        self._db_conn.execute(
            """
            CREATE TABLE IF NOT EXISTS term_cache (
                cache_key TEXT PRIMARY KEY,
                normalized_term TEXT NOT NULL,
                target_lang TEXT NOT NULL,
                ui_lang TEXT NOT NULL,
                value_json TEXT NOT NULL,
                source TEXT NOT NULL,
                created_at REAL NOT NULL,
                last_used_at REAL NOT NULL,
                ttl REAL NOT NULL,
                hit_count INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        self._db_conn.execute("CREATE INDEX IF NOT EXISTS idx_term_source ON term_cache(source)")
        self._db_conn.execute("CREATE INDEX IF NOT EXISTS idx_term_last_used ON term_cache(last_used_at)")
        self._db_conn.execute("CREATE TABLE IF NOT EXISTS cache_metadata (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
        self._db_conn.execute(
            "INSERT OR IGNORE INTO cache_metadata (key, value) VALUES (?, ?)",
            ("schema_version", str(self.DB_SCHEMA_VERSION)),
        )
        row = self._db_conn.execute("SELECT value FROM cache_metadata WHERE key = ?", ("schema_version",)).fetchone()
        if row is not None and row[0] != str(self.DB_SCHEMA_VERSION):
            logger.warning("Cache DB schema version mismatch (db: %s, expected: %s)", row[0], self.DB_SCHEMA_VERSION)
        self._db_conn.commit()
        logger.info("Database initialized with WAL mode")

    @staticmethod
    def _now() -> datetime:
        return datetime.now().astimezone()

    @staticmethod
    def _epoch_to_datetime(value: float) -> datetime:
        return datetime.fromtimestamp(float(value), tz=UTC).astimezone()

    # ---- fast tier ----

    def _fast_get(self, digest: str) -> CacheEntry | None:
        entry: CacheEntry | None = self._fast.get(digest)
        if entry is None:
            return None
        if entry.is_expired():
            del self._fast[digest]
            logger.debug("Fast tier entry expired for key: %s", StringUtils.short_key(digest))
            return None
        self._fast.move_to_end(digest)
        entry.hits += 1
        return entry

    def _fast_put(self, digest: str, entry: CacheEntry) -> None:
        self._fast[digest] = entry
        self._fast.move_to_end(digest)
        while len(self._fast) > self._fast_max_entries:
            evicted, _ = self._fast.popitem(last=False)
            logger.debug("Fast tier evicted key: %s", StringUtils.short_key(evicted))

    # ---- public API ----

    async def get(self, key: QueryKey) -> CacheEntry | None:
        """Look up an entry, fast tier first.

        Args:
            key (QueryKey): Normalized lookup key.

        Returns:
            CacheEntry | None: Unexpired entry, or None when both tiers miss.
        """
        digest: str = key.digest
        entry: CacheEntry | None = self._fast_get(digest)
        if entry is not None:
            logger.debug("Fast tier hit for %s (hits: %d)", key, entry.hits)
            return entry

        if not self._is_initialized:
            return None

        async with self._db_lock:
            try:
                entry = await asyncio.to_thread(self._read_row, key)
            except sqlite3.Error as err:
                logger.error("Error reading persistent cache for %s: %s", key, err)
                return None

        if entry is None:
            logger.debug("Cache miss for %s", key)
            return None

        self._fast_put(digest, entry)
        logger.debug("Persistent tier hit for %s, fast tier repopulated", key)
        return entry

    def _read_row(self, key: QueryKey) -> CacheEntry | None:
        if self._db_conn is None:
            return None
        digest: str = key.digest
        row = self._db_conn.execute(
            "SELECT value_json, source, created_at, ttl, hit_count FROM term_cache WHERE cache_key = ?",
            (digest,),
        ).fetchone()
        if row is None:
            return None

        entry = CacheEntry(
            key=key,
            value=TranslationResult.from_json(row[0]),
            source=ProviderId(row[1]),
            created_at=self._epoch_to_datetime(row[2]),
            ttl=float(row[3]),
            hits=int(row[4]) + 1,
        )
        if entry.is_expired():
            logger.debug("Persistent entry expired for %s", key)
            return None

        self._db_conn.execute(
            "UPDATE term_cache SET last_used_at = ?, hit_count = hit_count + 1 WHERE cache_key = ?",
            (self._now().timestamp(), digest),
        )
        self._db_conn.commit()
        return entry

    async def put(self, key: QueryKey, value: TranslationResult, source: ProviderId, ttl: float) -> CacheEntry:
        """Write an entry to both tiers.

        The fast tier is always updated. A failure of the persistent tier is logged and does not raise.

        Args:
            key (QueryKey): Normalized lookup key.
            value (TranslationResult): Assembled record.
            source (ProviderId): Provider that produced the record.
            ttl (float): Seconds the entry is trusted. 0 or less never expires.

        Returns:
            CacheEntry: The entry as stored in the fast tier.
        """
        entry = CacheEntry(key=key, value=value, source=source, created_at=self._now(), ttl=ttl)
        self._fast_put(key.digest, entry)

        if not self._is_initialized:
            logger.debug("Persistent tier not open, %s cached in the fast tier only", key)
            return entry

        async with self._db_lock:
            try:
                await asyncio.to_thread(self._write_row, entry)
            except sqlite3.Error as err:
                logger.error("Persistent cache write failed for %s, fast tier only: %s", key, err)
        return entry

    def _write_row(self, entry: CacheEntry) -> None:
        if self._db_conn is None:
            return
        created: float = entry.created_at.timestamp()
        self._db_conn.execute(
            """
            INSERT OR REPLACE INTO term_cache
            (cache_key, normalized_term, target_lang, ui_lang, value_json, source,
             created_at, last_used_at, ttl, hit_count)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
            """,
            (
                entry.key.digest,
                entry.key.normalized_term,
                entry.key.target_language,
                entry.key.ui_language,
                entry.value.to_json(ensure_ascii=False),
                str(entry.source),
                created,
                created,
                entry.ttl,
            ),
        )
        self._db_conn.commit()
        logger.debug("Persisted %s (source: %s, ttl: %s)", entry.key, entry.source, entry.ttl)
        self._enforce_capacity_limit(entry.source)

    def _enforce_capacity_limit(self, source: ProviderId) -> None:
        """Delete least recently used rows of ``source`` above the per-provider capacity."""
        if self._db_conn is None or self._max_entries_per_provider <= 0:
            return
        count: int = self._db_conn.execute(
            "SELECT COUNT(*) FROM term_cache WHERE source = ?", (str(source),)
        ).fetchone()[0]
        if count <= self._max_entries_per_provider:
            return
        to_delete: int = count - self._max_entries_per_provider
        self._db_conn.execute(
            """
            DELETE FROM term_cache
            WHERE cache_key IN (
                SELECT cache_key FROM term_cache
                WHERE source = ?
                ORDER BY last_used_at ASC, hit_count ASC
                LIMIT ?
            )
            """,
            (str(source), to_delete),
        )
        self._db_conn.commit()
        logger.info("Deleted %d LRU entries for provider: %s", to_delete, source)

    async def invalidate(self, key: QueryKey) -> bool:
        """Remove an entry from both tiers.

        Returns:
            bool: True if either tier held the entry.
        """
        digest: str = key.digest
        removed: bool = self._fast.pop(digest, None) is not None
        if self._is_initialized and self._db_conn is not None:
            async with self._db_lock:
                try:
                    cursor: sqlite3.Cursor = self._db_conn.execute(
                        "DELETE FROM term_cache WHERE cache_key = ?", (digest,)
                    )
                    self._db_conn.commit()
                    removed = removed or cursor.rowcount > 0
                except sqlite3.Error as err:
                    logger.error("Error invalidating %s: %s", key, err)
        logger.debug("Invalidated %s (found: %s)", key, removed)
        return removed

    async def clear(self) -> None:
        """Empty both tiers."""
        self._fast.clear()
        if self._is_initialized and self._db_conn is not None:
            async with self._db_lock:
                try:
                    self._db_conn.execute("DELETE FROM term_cache")
                    self._db_conn.commit()
                except sqlite3.Error as err:
                    logger.error("Error clearing persistent cache: %s", err)
        logger.info("Cache cleared")

    async def cleanup_expired_entries(self) -> int:
        """Delete expired rows from both tiers.

        Returns:
            int: Number of persistent rows deleted.
        """
        for digest in [digest for digest, entry in self._fast.items() if entry.is_expired()]:
            del self._fast[digest]

        if not self._is_initialized or self._db_conn is None:
            return 0

        deleted: int = 0
        async with self._db_lock:
            try:
                cursor: sqlite3.Cursor = self._db_conn.execute(
                    "DELETE FROM term_cache WHERE ttl > 0 AND created_at + ttl <= ?", (self._now().timestamp(),)
                )
                deleted = cursor.rowcount
                self._db_conn.commit()
            except sqlite3.Error as err:
                logger.error("Error during cache cleanup: %s", err)
        logger.info("Deleted %d expired cache entries", deleted)
        return deleted

    async def get_cache_statistics(self) -> CacheStatistics:
        """Summarize both tiers."""
        stats = CacheStatistics(fast_tier_entries=len(self._fast))
        if not self._is_initialized or self._db_conn is None:
            return stats

        async with self._db_lock:
            try:
                row = self._db_conn.execute("SELECT COUNT(*), SUM(hit_count) FROM term_cache").fetchone()
                stats.total_entries = row[0] or 0
                stats.total_hits = row[1] or 0

                cursor: sqlite3.Cursor = self._db_conn.execute(
                    "SELECT source, COUNT(*) FROM term_cache GROUP BY source"
                )
                stats.provider_distribution = {source: count for source, count in cursor.fetchall()}

                row = self._db_conn.execute("SELECT MIN(created_at), MAX(created_at) FROM term_cache").fetchone()
                stats.oldest_entry = self._epoch_to_datetime(row[0]) if row[0] else None
                stats.newest_entry = self._epoch_to_datetime(row[1]) if row[1] else None
            except sqlite3.Error as err:
                logger.error("Error getting cache statistics: %s", err)
        return stats
