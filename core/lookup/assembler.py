"""Response assembly: cache write-through and release of coalesced callers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from models.provider_models import ProviderId
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.cache.inflight_manager import InFlightManager
    from core.cache.manager import CacheTierManager
    from models.cache_models import CacheEntry
    from models.config_models import Cache
    from models.lookup_models import QueryKey, TranslationResult

__all__: list[str] = ["ResponseAssembler"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ResponseAssembler:
    """Store a resolved entry with its provider's TTL and hand it to waiting callers.

    Args:
        cache_config (Cache): ``CACHE`` section holding the TTL per provider class.
        cache_manager (CacheTierManager): Both cache tiers.
        inflight_manager (InFlightManager): Coalescing state to release.
    """

    def __init__(self, cache_config: Cache, cache_manager: CacheTierManager, inflight_manager: InFlightManager) -> None:
        self.cache_config: Cache = cache_config
        self.cache_manager: CacheTierManager = cache_manager
        self.inflight_manager: InFlightManager = inflight_manager

    def ttl_for(self, source: ProviderId | None) -> float:
        """TTL in seconds for entries produced by ``source``.

        Static dictionary data is trusted longest, generated entries shortest. An untagged result gets
        the generative TTL.
        """
        ttl_by_provider: dict[ProviderId, float] = {
            ProviderId.SPECIALIZED_DICTIONARY: self.cache_config.TTL_SPECIALIZED_DICTIONARY_SEC,
            ProviderId.PRIMARY_TRANSLATOR: self.cache_config.TTL_PRIMARY_TRANSLATOR_SEC,
            ProviderId.SECONDARY_TRANSLATOR: self.cache_config.TTL_SECONDARY_TRANSLATOR_SEC,
            ProviderId.GENERATIVE_FALLBACK: self.cache_config.TTL_GENERATIVE_FALLBACK_SEC,
        }
        if source is None:
            return self.cache_config.TTL_GENERATIVE_FALLBACK_SEC
        return ttl_by_provider[source]

    async def assemble(self, key: QueryKey, result: TranslationResult) -> CacheEntry:
        """Write ``result`` to both cache tiers, then release every caller coalesced on ``key``.

        Args:
            key (QueryKey): Normalized lookup key.
            result (TranslationResult): Augmented, complete result.

        Returns:
            CacheEntry: The stored entry.
        """
        source: ProviderId = result.source_provider or ProviderId.GENERATIVE_FALLBACK
        entry: CacheEntry = await self.cache_manager.put(key, result, source, self.ttl_for(result.source_provider))
        await self.inflight_manager.store_inflight_result(key, result)
        logger.debug("Assembled %s from '%s' (ttl: %.0fs)", key, source, entry.ttl)
        return entry
