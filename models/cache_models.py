"""Models for cached resolution data.

Defines the cache entry shared by both tiers and the cache statistics snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models.lookup_models import QueryKey, TranslationResult
    from models.provider_models import ProviderId

__all__: list[str] = ["CacheEntry", "CacheStatistics"]


@dataclass
class CacheEntry:
    """Resolution record stored in the cache tiers.

    Attributes:
        key (QueryKey): Normalized lookup key.
        value (TranslationResult): Assembled record.
        source (ProviderId): Provider that produced the record.
        created_at (datetime): When the record was written.
        ttl (float): Seconds the entry is trusted without revalidation. 0 or less never expires.
        hits (int): Number of reads served from the entry.
    """

    key: QueryKey
    value: TranslationResult
    source: ProviderId
    created_at: datetime
    ttl: float
    hits: int = 0

    @property
    def expires_at(self) -> datetime | None:
        if self.ttl <= 0:
            return None
        return self.created_at + timedelta(seconds=self.ttl)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the entry's TTL has run out.

        Args:
            now (datetime | None): Reference time. Defaults to the current local time.

        Returns:
            bool: True when the entry must no longer be served.
        """
        expires_at: datetime | None = self.expires_at
        if expires_at is None:
            return False
        return (now or datetime.now().astimezone()) >= expires_at


@dataclass
class CacheStatistics:
    """Cache usage statistics.

    Attributes:
        total_entries (int): Rows in the persistent tier.
        total_hits (int): Hits recorded across persistent rows.
        fast_tier_entries (int): Entries currently held in memory.
        provider_distribution (dict[str, int]): Persistent rows per provider.
        oldest_entry (datetime | None): Creation time of the oldest row.
        newest_entry (datetime | None): Creation time of the newest row.
    """

    total_entries: int = 0
    total_hits: int = 0
    fast_tier_entries: int = 0
    provider_distribution: dict[str, int] = field(default_factory=dict)
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
