"""Tests for the provider cascade: ordering, retries, deadlines and the romanization-first pass."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from core.governor import RateGovernor
from core.lookup.orchestrator import CascadeOrchestrator, Deadline
from core.providers.engines.jotoba_dictionary import JotobaDictionary
from core.providers.engines.openai_generative import OpenAIGenerative
from core.providers.interface import (
    NoProviderResultError,
    ProviderRateLimitedError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from handlers.script_classifier import ScriptClassifier
from models.provider_models import (
    AttemptSuccess,
    FailureKind,
    ProviderId,
    ProviderLimits,
    ResolutionFailure,
    ResolutionFailureKind,
)
from tests.fakes import FakeProvider, build_registry, result_for

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from core.providers.registry import ProviderRegistry
    from models.config_models import Config
    from models.provider_models import Permit

DICT: ProviderId = ProviderId.SPECIALIZED_DICTIONARY
PRIMARY: ProviderId = ProviderId.PRIMARY_TRANSLATOR
SECONDARY: ProviderId = ProviderId.SECONDARY_TRANSLATOR
FALLBACK: ProviderId = ProviderId.GENERATIVE_FALLBACK

type OrchestratorFactory = Callable[[dict[ProviderId, FakeProvider]], CascadeOrchestrator]


@pytest.fixture
async def governor(config: Config) -> AsyncGenerator[RateGovernor]:
    gov: RateGovernor = RateGovernor.from_config(config)
    await gov.component_load()
    yield gov
    await gov.component_teardown(drain_timeout=0.1)


@pytest.fixture
def make_orchestrator(config: Config, governor: RateGovernor) -> OrchestratorFactory:
    def factory(providers: dict[ProviderId, FakeProvider]) -> CascadeOrchestrator:
        registry: ProviderRegistry = build_registry(config, providers)
        return CascadeOrchestrator(registry, governor, queue_timeout_sec=config.RESOLUTION.QUEUE_TIMEOUT_SEC)

    return factory


async def _resolve(
    orchestrator: CascadeOrchestrator, term: str, target: str = "ja", ui: str = "en", deadline: Deadline | None = None
) -> AttemptSuccess | ResolutionFailure:
    return await orchestrator.resolve(term, target, ui, ScriptClassifier.classify(term, target), deadline=deadline)


@pytest.mark.asyncio
async def test_first_provider_failure_falls_through_to_second(make_orchestrator: OrchestratorFactory) -> None:
    dictionary = FakeProvider([NoProviderResultError("no entry")], attributes=JotobaDictionary.attributes)
    primary = FakeProvider([result_for("寿司", "ja", "sushi")])
    secondary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({DICT: dictionary, PRIMARY: primary, SECONDARY: secondary})

    outcome = await _resolve(orchestrator, "寿司")

    assert isinstance(outcome, AttemptSuccess)
    assert outcome.result.translation == "sushi"
    assert outcome.result.source_provider is PRIMARY
    assert dictionary.calls == 1
    assert primary.calls == 1
    assert secondary.calls == 0
    assert len(outcome.failures) == 1
    assert outcome.failures[0].provider_id is DICT
    assert outcome.failures[0].kind is FailureKind.PROVIDER_REJECTED


@pytest.mark.asyncio
async def test_unexpected_provider_exception_falls_through(
    make_orchestrator: OrchestratorFactory, caplog: pytest.LogCaptureFixture
) -> None:
    primary = FakeProvider([RequestsConnectionError("dns failure")])
    secondary = FakeProvider([result_for("寿司", "ja", "sushi")])
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: primary, SECONDARY: secondary})

    outcome = await _resolve(orchestrator, "寿司")

    assert isinstance(outcome, AttemptSuccess)
    assert outcome.result.source_provider is SECONDARY
    assert secondary.calls == 1
    assert [(f.provider_id, f.kind) for f in outcome.failures] == [(PRIMARY, FailureKind.PROVIDER_UNAVAILABLE)]
    assert "dns failure" in outcome.failures[0].message
    assert "raised an unexpected error" in caplog.text


@pytest.mark.asyncio
async def test_native_term_is_explained_in_ui_language(make_orchestrator: OrchestratorFactory) -> None:
    primary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: primary})

    await _resolve(orchestrator, "寿司", ui="de")

    request = primary.requests[0]
    assert request.source_language == "ja"
    assert request.translate_to == "de"
    assert request.romanized is False


@pytest.mark.asyncio
async def test_foreign_term_is_translated_into_target(make_orchestrator: OrchestratorFactory) -> None:
    primary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: primary})

    await _resolve(orchestrator, "hello")

    request = primary.requests[0]
    assert request.source_language is None
    assert request.translate_to == "ja"
    assert request.lookup_language == "ja"


@pytest.mark.asyncio
async def test_retryable_failure_is_retried_on_same_provider(make_orchestrator: OrchestratorFactory) -> None:
    primary = FakeProvider([ProviderUnavailableError("503"), result_for("寿司", "ja", "sushi")])
    secondary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: primary, SECONDARY: secondary})

    outcome = await _resolve(orchestrator, "寿司")

    assert isinstance(outcome, AttemptSuccess)
    assert primary.calls == 2
    assert secondary.calls == 0


@pytest.mark.asyncio
async def test_rejection_is_not_retried(make_orchestrator: OrchestratorFactory) -> None:
    primary = FakeProvider([ProviderRejectedError("400")])
    secondary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: primary, SECONDARY: secondary})

    outcome = await _resolve(orchestrator, "寿司")

    assert isinstance(outcome, AttemptSuccess)
    assert outcome.result.source_provider is SECONDARY
    assert primary.calls == 1


@pytest.mark.asyncio
async def test_retries_stop_at_max_retries(make_orchestrator: OrchestratorFactory) -> None:
    primary = FakeProvider([ProviderRateLimitedError("429")])
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: primary})

    outcome = await _resolve(orchestrator, "寿司")

    assert isinstance(outcome, ResolutionFailure)
    assert primary.calls == 2
    assert outcome.failures[0].attempts == 2
    assert outcome.failures[0].kind is FailureKind.PROVIDER_REJECTED


@pytest.mark.asyncio
async def test_all_providers_exhausted_lists_failures_in_order(make_orchestrator: OrchestratorFactory) -> None:
    orchestrator: CascadeOrchestrator = make_orchestrator(
        {
            PRIMARY: FakeProvider([ProviderRejectedError("unsupported")]),
            SECONDARY: FakeProvider([ProviderUnavailableError("down")]),
            FALLBACK: FakeProvider([result_for("寿司", "ja", "")]),
        }
    )

    outcome = await _resolve(orchestrator, "寿司")

    assert isinstance(outcome, ResolutionFailure)
    assert outcome.kind is ResolutionFailureKind.ALL_PROVIDERS_EXHAUSTED
    assert [(f.provider_id, f.kind) for f in outcome.failures] == [
        (PRIMARY, FailureKind.PROVIDER_REJECTED),
        (SECONDARY, FailureKind.PROVIDER_UNAVAILABLE),
        (FALLBACK, FailureKind.MALFORMED_RESPONSE),
    ]
    assert outcome.is_unsupported_language_pair is False


@pytest.mark.asyncio
async def test_no_eligible_provider_is_an_unsupported_pair(make_orchestrator: OrchestratorFactory) -> None:
    dictionary = FakeProvider(attributes=JotobaDictionary.attributes)
    orchestrator: CascadeOrchestrator = make_orchestrator({DICT: dictionary})

    outcome = await _resolve(orchestrator, "hola", target="es")

    assert isinstance(outcome, ResolutionFailure)
    assert outcome.failures == []
    assert outcome.is_unsupported_language_pair is True
    assert dictionary.calls == 0


@pytest.mark.asyncio
async def test_call_timeout_moves_to_next_provider(
    governor: RateGovernor, make_orchestrator: OrchestratorFactory
) -> None:
    await governor.update_limits(PRIMARY, ProviderLimits(max_retries=0, call_timeout_sec=0.05))
    slow = FakeProvider(delay=2.0)
    secondary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: slow, SECONDARY: secondary})

    outcome = await _resolve(orchestrator, "寿司")

    assert isinstance(outcome, AttemptSuccess)
    assert outcome.result.source_provider is SECONDARY


@pytest.mark.asyncio
async def test_deadline_stops_the_cascade(make_orchestrator: OrchestratorFactory) -> None:
    slow = FakeProvider(delay=0.5)
    secondary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: slow, SECONDARY: secondary})

    outcome = await _resolve(orchestrator, "寿司", deadline=Deadline(0.1))

    assert isinstance(outcome, ResolutionFailure)
    assert outcome.kind is ResolutionFailureKind.DEADLINE_EXCEEDED
    assert outcome.failures[0].kind is FailureKind.DEADLINE_EXCEEDED
    assert secondary.calls == 0


@pytest.mark.asyncio
async def test_backoff_longer_than_remaining_time_gives_up(
    governor: RateGovernor, make_orchestrator: OrchestratorFactory
) -> None:
    primary = FakeProvider([ProviderUnavailableError("503")])
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: primary})
    await governor.update_limits(PRIMARY, ProviderLimits(max_retries=3, backoff_ms=5000))

    outcome = await _resolve(orchestrator, "寿司", deadline=Deadline(1.0))

    assert isinstance(outcome, ResolutionFailure)
    assert primary.calls == 1
    assert "no time left to retry" in outcome.failures[0].message


@pytest.mark.asyncio
async def test_governor_queue_timeout_is_recorded(
    governor: RateGovernor, make_orchestrator: OrchestratorFactory
) -> None:
    await governor.update_limits(PRIMARY, ProviderLimits(max_concurrent_requests=1))
    held: Permit = await governor.acquire(PRIMARY)
    secondary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: FakeProvider(), SECONDARY: secondary})
    orchestrator.queue_timeout_sec = 0.05

    try:
        outcome = await _resolve(orchestrator, "寿司")
    finally:
        await governor.release(held)

    assert isinstance(outcome, AttemptSuccess)
    assert outcome.result.source_provider is SECONDARY


@pytest.mark.asyncio
async def test_romanized_term_is_tried_as_kana_first(make_orchestrator: OrchestratorFactory) -> None:
    dictionary = FakeProvider([result_for("game", "ja", "game", script="がめ")], attributes=JotobaDictionary.attributes)
    primary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({DICT: dictionary, PRIMARY: primary})

    outcome = await _resolve(orchestrator, "game")

    assert isinstance(outcome, AttemptSuccess)
    assert outcome.result.source_provider is DICT
    request = dictionary.requests[0]
    assert request.term == "がめ"
    assert request.original_term == "game"
    assert request.romanized is True
    assert request.source_language == "ja"
    assert request.translate_to == "en"
    assert primary.calls == 0


@pytest.mark.asyncio
async def test_literal_pass_follows_failed_romanized_pass(make_orchestrator: OrchestratorFactory) -> None:
    dictionary = FakeProvider([NoProviderResultError("no entry")], attributes=JotobaDictionary.attributes)
    fallback = FakeProvider(
        [ProviderRejectedError("refused"), result_for("game", "ja", "ゲーム")], attributes=OpenAIGenerative.attributes
    )
    primary = FakeProvider()
    orchestrator: CascadeOrchestrator = make_orchestrator({DICT: dictionary, PRIMARY: primary, FALLBACK: fallback})

    outcome = await _resolve(orchestrator, "game")

    assert isinstance(outcome, AttemptSuccess)
    assert outcome.result.source_provider is PRIMARY
    assert dictionary.calls == 1
    assert fallback.calls == 1
    literal = primary.requests[0]
    assert literal.term == "game"
    assert literal.romanized is False
    assert literal.translate_to == "ja"


def test_plan_skips_romanized_pass_for_english(make_orchestrator: OrchestratorFactory) -> None:
    orchestrator: CascadeOrchestrator = make_orchestrator({PRIMARY: FakeProvider()})

    passes = orchestrator.plan("hello", "ja", "en", ScriptClassifier.classify("hello", "ja"))

    assert len(passes) == 1
    assert passes[0][0].romanized is False


def test_deadline_arithmetic() -> None:
    now: list[float] = [100.0]
    deadline = Deadline(5.0, clock=lambda: now[0])

    assert deadline.remaining == 5.0
    assert deadline.bound(8.0) == 5.0
    assert deadline.bound(2.0) == 2.0

    now[0] = 106.0

    assert deadline.remaining == 0.0
    assert deadline.expired is True
    assert Deadline(None).remaining is None
    assert Deadline(None).expired is False
    assert Deadline(None).bound(3.0) == 3.0
