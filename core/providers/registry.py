"""Provider capability registry.

Maps each cascade role to an initialized engine and the capability record the orchestrator filters on.
Priority follows ``RESOLUTION.PROVIDER_ORDER`` and can be changed at runtime with ``reorder``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from core.providers.engines import (
    DeeplTranslation,  # noqa: F401
    GoogleCloudTranslation,  # noqa: F401
    JotobaDictionary,  # noqa: F401
    OpenAIGenerative,  # noqa: F401
)
from core.providers.interface import ProviderError, ProviderInterface
from models.provider_models import ProviderCapability, ProviderId
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import Config, ProviderSettings
    from models.lookup_models import Classification

__all__: list[str] = ["ProviderRegistry"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ProviderRegistry:
    """Registry of initialized providers keyed by cascade role.

    Args:
        config (Config): Application configuration.
    """

    def __init__(self, config: Config) -> None:
        self.config: Config = config
        self._providers: dict[ProviderId, ProviderInterface] = {}
        self._capabilities: dict[ProviderId, ProviderCapability] = {}

    @classmethod
    def from_config(cls, config: Config) -> ProviderRegistry:
        """Create a registry and initialize every enabled provider of ``config``.

        Providers whose engine cannot be set up are logged and left out of the cascade.
        """
        registry: ProviderRegistry = cls(config)
        for provider_id in ProviderId:
            settings: ProviderSettings = getattr(config, provider_id.config_section)
            if not settings.ENABLED:
                logger.info("Provider '%s' is disabled", provider_id)
                continue
            engine_cls: type[ProviderInterface] | None = ProviderInterface.registered.get(settings.ENGINE)
            if engine_cls is None:
                logger.critical("Provider engine not found: '%s'", settings.ENGINE)
                continue
            instance: ProviderInterface = engine_cls()
            try:
                instance.initialize(settings)
            except (RuntimeError, ProviderError) as err:
                logger.critical("Exception in '%s' (%s) setup: %s", provider_id, settings.ENGINE, err)
                continue
            registry.register(provider_id, instance)
            logger.info("Provider initialized: '%s' -> '%s'", provider_id, settings.ENGINE)
        return registry

    def register(self, provider_id: ProviderId, instance: ProviderInterface) -> ProviderCapability:
        """Add an initialized engine under ``provider_id`` and derive its capability record.

        Returns:
            ProviderCapability: The stored capability.
        """
        settings: ProviderSettings = instance.settings
        attributes = instance.attributes
        capability = ProviderCapability(
            provider_id=provider_id,
            priority=self._configured_priority(provider_id),
            target_languages=frozenset(StringUtils.base_language(lang) for lang in settings.TARGET_LANGUAGES),
            source_scripts=attributes.source_scripts,
            single_word_only=attributes.single_word_only,
            max_term_length=self.config.RESOLUTION.SPECIALIZED_MAX_TERM_LENGTH if attributes.single_word_only else 0,
            accepts_romanized=attributes.accepts_romanized,
        )
        self._providers[provider_id] = instance
        self._capabilities[provider_id] = capability
        return capability

    def _configured_priority(self, provider_id: ProviderId) -> int:
        order: list[str] = self.config.RESOLUTION.PROVIDER_ORDER
        if provider_id.value in order:
            return order.index(provider_id.value)
        return len(order) + list(ProviderId).index(provider_id)

    @property
    def provider_ids(self) -> list[ProviderId]:
        """Registered providers in priority order."""
        return [capability.provider_id for capability in sorted(self._capabilities.values(), key=_priority)]

    def capability(self, provider_id: ProviderId) -> ProviderCapability:
        """Raises:
        KeyError: If ``provider_id`` is not registered.
        """
        return self._capabilities[provider_id]

    def provider(self, provider_id: ProviderId) -> ProviderInterface:
        """Raises:
        KeyError: If ``provider_id`` is not registered.
        """
        return self._providers[provider_id]

    def reorder(self, provider_ids: list[ProviderId]) -> None:
        """Assign priorities in the given order. Unlisted providers follow in their current order."""
        unknown: list[ProviderId] = [pid for pid in provider_ids if pid not in self._capabilities]
        if unknown:
            logger.warning("Ignoring unregistered providers in reorder: %s", unknown)
        ordered: list[ProviderId] = [pid for pid in dict.fromkeys(provider_ids) if pid in self._capabilities]
        ordered += [pid for pid in self.provider_ids if pid not in ordered]
        for rank, pid in enumerate(ordered):
            self._capabilities[pid] = replace(self._capabilities[pid], priority=rank)
        logger.info("Provider order: %s", [str(pid) for pid in ordered])

    def candidates(
        self,
        term: str,
        target_language: str,
        classification: Classification,
        *,
        romanized_phase: bool = False,
    ) -> list[ProviderCapability]:
        """Providers eligible for ``term``, sorted by priority.

        Args:
            term (str): Term as submitted.
            target_language (str): Target language code.
            classification (Classification): Classifier verdict for ``term``.
            romanized_phase (bool): Select providers for the transliteration-first pass of a romanized term.

        Returns:
            list[ProviderCapability]: Eligible providers, lowest priority value first.
        """
        multi_word: bool = StringUtils.is_multi_word(term)
        eligible: list[ProviderCapability] = []
        for capability in sorted(self._capabilities.values(), key=_priority):
            if not capability.supports_target(target_language):
                continue
            if romanized_phase and not capability.accepts_romanized:
                continue
            if capability.single_word_only and (multi_word or not capability.accepts_length(term)):
                continue
            # Romanized input is converted to the provider's script before the call.
            if not romanized_phase and not capability.supports_script(classification.script):
                continue
            eligible.append(capability)
        logger.debug(
            "'candidates' for %r (%s, romanized=%s): %s",
            term,
            target_language,
            romanized_phase,
            [str(capability.provider_id) for capability in eligible],
        )
        return eligible

    async def close(self) -> None:
        for provider_id, instance in self._providers.items():
            try:
                await instance.close()
            except (RuntimeError, ProviderError) as err:
                logger.error("Failed to close provider '%s': %s", provider_id, err)
        self._providers.clear()
        self._capabilities.clear()


def _priority(capability: ProviderCapability) -> int:
    return capability.priority
