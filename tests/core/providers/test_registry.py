from __future__ import annotations

from dataclasses import fields
from typing import TYPE_CHECKING

import pytest

from core.providers.engines.jotoba_dictionary import JotobaDictionary
from core.providers.engines.openai_generative import OpenAIGenerative
from core.providers.interface import ProviderAttributes, ProviderInterface
from core.providers.registry import ProviderRegistry
from handlers.script_classifier import ScriptClassifier
from models.lookup_models import Classification, ScriptTag
from models.provider_models import ProviderCapability, ProviderId
from tests.fakes import FakeProvider, build_registry

if TYPE_CHECKING:
    from core.providers.interface import ProviderRequest
    from models.config_models import Config, ProviderSettings
    from models.lookup_models import TranslationResult

DICT: ProviderId = ProviderId.SPECIALIZED_DICTIONARY
PRIMARY: ProviderId = ProviderId.PRIMARY_TRANSLATOR
SECONDARY: ProviderId = ProviderId.SECONDARY_TRANSLATOR
FALLBACK: ProviderId = ProviderId.GENERATIVE_FALLBACK


@pytest.fixture
def registry(config: Config) -> ProviderRegistry:
    return build_registry(
        config,
        {
            DICT: FakeProvider(attributes=JotobaDictionary.attributes),
            PRIMARY: FakeProvider(),
            SECONDARY: FakeProvider(),
            FALLBACK: FakeProvider(attributes=OpenAIGenerative.attributes),
        },
    )


def _ids(candidates: list[ProviderCapability]) -> list[ProviderId]:
    return [capability.provider_id for capability in candidates]


def test_engines_register_by_name() -> None:
    assert ProviderInterface.registered["jotoba"] is JotobaDictionary
    assert ProviderInterface.registered["openai"] is OpenAIGenerative
    assert {"google_cloud", "deepl"} <= set(ProviderInterface.registered)


def test_duplicate_engine_name_is_rejected() -> None:
    with pytest.raises(ValueError, match="already registered"):

        class _Duplicate(FakeProvider):
            @staticmethod
            def fetch_engine_name() -> str:
                return "jotoba"


def test_capability_follows_configuration(registry: ProviderRegistry) -> None:
    capability: ProviderCapability = registry.capability(DICT)

    assert capability.priority == 0
    assert capability.target_languages == frozenset({"ja"})
    assert capability.single_word_only is True
    assert capability.max_term_length == 12
    assert capability.accepts_romanized is True
    assert registry.capability(PRIMARY).target_languages == frozenset()
    assert registry.provider_ids == [DICT, PRIMARY, SECONDARY, FALLBACK]


def test_japanese_word_goes_to_every_provider(registry: ProviderRegistry) -> None:
    classification: Classification = ScriptClassifier.classify("寿司", "ja")

    assert _ids(registry.candidates("寿司", "ja", classification)) == [DICT, PRIMARY, SECONDARY, FALLBACK]


def test_dictionary_is_skipped_for_other_targets(registry: ProviderRegistry) -> None:
    classification: Classification = ScriptClassifier.classify("你好", "zh-CN")

    assert DICT not in _ids(registry.candidates("你好", "zh-CN", classification))


def test_dictionary_is_skipped_for_phrases_and_long_terms(registry: ProviderRegistry) -> None:
    phrase: str = "お元気ですか？"
    long_term: str = "あ" * 13

    assert DICT not in _ids(registry.candidates(phrase, "ja", ScriptClassifier.classify(phrase, "ja")))
    assert DICT not in _ids(registry.candidates(long_term, "ja", ScriptClassifier.classify(long_term, "ja")))


def test_dictionary_is_skipped_for_latin_literal_lookup(registry: ProviderRegistry) -> None:
    classification: Classification = ScriptClassifier.classify("cat", "ja")

    assert classification.script is ScriptTag.LATIN

    assert _ids(registry.candidates("cat", "ja", classification)) == [PRIMARY, SECONDARY, FALLBACK]


def test_romanized_phase_selects_romanization_aware_providers(registry: ProviderRegistry) -> None:
    classification: Classification = ScriptClassifier.classify("game", "ja")

    assert _ids(registry.candidates("game", "ja", classification, romanized_phase=True)) == [DICT, FALLBACK]


def test_reorder_changes_priority(registry: ProviderRegistry, caplog: pytest.LogCaptureFixture) -> None:
    registry._providers.pop(SECONDARY)  # noqa: SLF001
    registry._capabilities.pop(SECONDARY)  # noqa: SLF001

    registry.reorder([FALLBACK, SECONDARY, PRIMARY])

    assert registry.provider_ids == [FALLBACK, PRIMARY, DICT]
    assert any("Ignoring unregistered providers" in rec.message for rec in caplog.records)


def test_configured_order_sets_priority(config: Config) -> None:
    config.RESOLUTION.PROVIDER_ORDER = ["generative-fallback", "primary-translator"]

    registry: ProviderRegistry = build_registry(config, {PRIMARY: FakeProvider(), FALLBACK: FakeProvider()})

    assert registry.provider_ids == [FALLBACK, PRIMARY]


@pytest.mark.parametrize(
    ("provider_id", "attributes"), [(DICT, JotobaDictionary.attributes), (FALLBACK, OpenAIGenerative.attributes)]
)
def test_every_engine_attribute_reaches_the_capability(
    registry: ProviderRegistry, provider_id: ProviderId, attributes: ProviderAttributes
) -> None:
    capability: ProviderCapability = registry.capability(provider_id)

    for name in {field.name for field in fields(ProviderAttributes)} - {"name"}:
        assert getattr(capability, name) == getattr(attributes, name)


def test_unknown_provider_raises_key_error(registry: ProviderRegistry) -> None:
    registry._providers.pop(SECONDARY)  # noqa: SLF001
    registry._capabilities.pop(SECONDARY)  # noqa: SLF001

    with pytest.raises(KeyError):
        registry.provider(SECONDARY)
    with pytest.raises(KeyError):
        registry.capability(SECONDARY)


class _FailingEngine(ProviderInterface):
    attributes = ProviderAttributes(name="Failing")

    @staticmethod
    def fetch_engine_name() -> str:
        return "test_failing"

    def initialize(self, settings: ProviderSettings) -> None:
        super().initialize(settings)
        msg = "no credentials"
        raise RuntimeError(msg)

    async def lookup(self, request: ProviderRequest) -> TranslationResult:
        raise NotImplementedError


class _WorkingEngine(FakeProvider):
    @staticmethod
    def fetch_engine_name() -> str:
        return "test_working"


def test_from_config_skips_failed_disabled_and_unknown_engines(
    config: Config, caplog: pytest.LogCaptureFixture
) -> None:
    config.SPECIALIZED_DICTIONARY.ENABLED = False
    config.PRIMARY_TRANSLATOR.ENGINE = "test_failing"
    config.SECONDARY_TRANSLATOR.ENGINE = "test_missing"
    config.GENERATIVE_FALLBACK.ENGINE = "test_working"

    registry: ProviderRegistry = ProviderRegistry.from_config(config)

    assert registry.provider_ids == [FALLBACK]
    assert any("setup" in rec.message and "no credentials" in rec.message for rec in caplog.records)
    assert any("Provider engine not found" in rec.message for rec in caplog.records)


@pytest.mark.asyncio
async def test_close_closes_every_provider(config: Config) -> None:
    providers: dict[ProviderId, FakeProvider] = {PRIMARY: FakeProvider(), FALLBACK: FakeProvider()}
    registry: ProviderRegistry = build_registry(config, providers)

    await registry.close()

    assert all(provider.closed for provider in providers.values())
    assert registry.provider_ids == []
