"""Lookup manager: the entry point of the term resolution pipeline.

A lookup is served from the cache when possible; otherwise concurrent lookups of the same key are
coalesced and a single leader classifies the term, runs the provider cascade, augments the result and
hands it to the assembler.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from core.cache.inflight_manager import InFlightManager
from core.cache.manager import CacheTierManager
from core.governor import RateGovernor
from core.lookup.assembler import ResponseAssembler
from core.lookup.augmenter import PhoneticAugmenter
from core.lookup.errors import AllProvidersExhaustedError, DeadlineExceededError, InvalidLookupRequestError
from core.lookup.orchestrator import CascadeOrchestrator, Deadline
from core.providers.registry import ProviderRegistry
from handlers.script_classifier import ScriptClassifier
from models.lookup_models import QueryKey
from models.provider_models import ResolutionFailure, ResolutionFailureKind
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.cache_models import CacheEntry, CacheStatistics
    from models.config_models import Config
    from models.lookup_models import Classification, LookupRequest, TranslationResult
    from models.provider_models import AttemptSuccess, GovernorStatus

__all__: list[str] = ["LookupManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class LookupManager:
    """Owns the pipeline components and their lifecycle.

    Components not passed in are built from ``config`` (the registry during ``component_load``).

    Args:
        config (Config): Application configuration.
        cache_manager (CacheTierManager | None): Cache tiers.
        inflight_manager (InFlightManager | None): Coalescing state.
        governor (RateGovernor | None): Provider rate and concurrency governor.
        registry (ProviderRegistry | None): Initialized providers.
    """

    def __init__(
        self,
        config: Config,
        *,
        cache_manager: CacheTierManager | None = None,
        inflight_manager: InFlightManager | None = None,
        governor: RateGovernor | None = None,
        registry: ProviderRegistry | None = None,
    ) -> None:
        self.config: Config = config
        self.cache_manager: CacheTierManager = cache_manager or CacheTierManager(config)
        self.inflight_manager: InFlightManager = inflight_manager or InFlightManager()
        self.governor: RateGovernor = governor or RateGovernor.from_config(config)
        self.registry: ProviderRegistry | None = registry
        self.assembler = ResponseAssembler(config.CACHE, self.cache_manager, self.inflight_manager)
        self._orchestrator: CascadeOrchestrator | None = None

    @property
    def orchestrator(self) -> CascadeOrchestrator:
        if self._orchestrator is None:
            msg = "LookupManager is not loaded"
            raise RuntimeError(msg)
        return self._orchestrator

    async def component_load(self) -> None:
        """Open the cache, start the governor and initialize the providers."""
        logger.info("LookupManager initialization started")
        await self.cache_manager.component_load()
        await self.governor.component_load()
        if self.registry is None:
            # Engine setup performs blocking authentication calls.
            self.registry = await asyncio.to_thread(ProviderRegistry.from_config, self.config)
        if not self.registry.provider_ids:
            logger.critical("No provider is available; every lookup will fail")
        if self.config.RESOLUTION.ACTIVE_USERS > 0:
            await self.governor.apply_traffic_profile(self.config.RESOLUTION.ACTIVE_USERS)
        self._orchestrator = CascadeOrchestrator(
            self.registry, self.governor, queue_timeout_sec=self.config.RESOLUTION.QUEUE_TIMEOUT_SEC
        )
        removed: int = await self.cache_manager.cleanup_expired_entries()
        logger.info(
            "LookupManager loaded (providers: %s, expired entries removed: %d)",
            [str(pid) for pid in self.registry.provider_ids],
            removed,
        )

    async def component_teardown(self) -> None:
        """Release waiters, drain permits, close providers and the cache, in that order."""
        await self.inflight_manager.component_teardown()
        await self.governor.component_teardown()
        if self.registry is not None:
            await self.registry.close()
        await self.cache_manager.component_teardown()
        self._orchestrator = None
        logger.info("LookupManager torn down")

    async def lookup(
        self, request: LookupRequest, *, deadline_sec: float | None = None, requester: str | None = None
    ) -> TranslationResult:
        """Resolve one term.

        Args:
            request (LookupRequest): Term, target language and UI language.
            deadline_sec (float | None): Overall time budget. Defaults to ``RESOLUTION.DEADLINE_SEC``.
            requester (str | None): Opaque caller identity, logged only.

        Returns:
            TranslationResult: Complete result, from the cache or freshly resolved.

        Raises:
            InvalidLookupRequestError: If the term or a language code is empty.
            AllProvidersExhaustedError: If every eligible provider failed or none was eligible.
            DeadlineExceededError: If the deadline passed first.
        """
        if not request.term.strip() or not request.target_language.strip() or not request.ui_language.strip():
            msg = "Term, target language and UI language must not be empty"
            raise InvalidLookupRequestError(msg)

        key: QueryKey = QueryKey.build(request.term, request.target_language, request.ui_language)
        deadline = Deadline(self.config.RESOLUTION.DEADLINE_SEC if deadline_sec is None else deadline_sec)

        entry: CacheEntry | None = await self.cache_manager.get(key)
        if entry is not None:
            logger.info("Cache hit for %s (source: '%s')", key, entry.source)
            return entry.value

        try:
            shared: TranslationResult | None = await self.inflight_manager.mark_inflight_start(
                key, timeout=deadline.remaining
            )
        except TimeoutError as err:
            failure = ResolutionFailure(
                kind=ResolutionFailureKind.DEADLINE_EXCEEDED,
                term=request.term,
                target_language=request.target_language,
                ui_language=request.ui_language,
            )
            raise DeadlineExceededError(failure) from err
        if shared is not None:
            logger.debug("Coalesced lookup of %s answered by the in-flight leader", key)
            return shared

        try:
            # Another leader may have completed between the cache miss and becoming leader.
            entry = await self.cache_manager.get(key)
            if entry is not None:
                await self.inflight_manager.store_inflight_result(key, entry.value)
                return entry.value
            return await self._resolve(request, key, deadline, requester)
        except (asyncio.CancelledError, Exception) as err:
            await self.inflight_manager.store_inflight_exception(key, err)
            raise

    async def _resolve(
        self, request: LookupRequest, key: QueryKey, deadline: Deadline, requester: str | None
    ) -> TranslationResult:
        classification: Classification = ScriptClassifier.classify(request.term, request.target_language)
        outcome: AttemptSuccess | ResolutionFailure = await self.orchestrator.resolve(
            request.term,
            key.target_language,
            key.ui_language,
            classification,
            deadline=deadline,
            requester=requester,
        )
        if isinstance(outcome, ResolutionFailure):
            if outcome.kind is ResolutionFailureKind.DEADLINE_EXCEEDED:
                raise DeadlineExceededError(outcome)
            raise AllProvidersExhaustedError(outcome)

        result: TranslationResult = PhoneticAugmenter.augment(outcome.result)
        await self.assembler.assemble(key, result)
        return result

    async def get_cache_statistics(self) -> CacheStatistics:
        return await self.cache_manager.get_cache_statistics()

    def governor_status(self) -> list[GovernorStatus]:
        if self.registry is None:
            return []
        return [self.governor.get_status(pid) for pid in self.registry.provider_ids]
