"""Models for providers, governor state and cascade outcomes.

Defines the provider identities, their capability and limit records, the governor's per-provider
budget, and the tagged attempt results folded by the cascade orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING

from dataclasses_json import DataClassJsonMixin, LetterCase, dataclass_json

if TYPE_CHECKING:
    from models.lookup_models import ScriptTag, TranslationResult

__all__: list[str] = [
    "AttemptFailure",
    "AttemptSuccess",
    "BackoffStrategy",
    "FailureKind",
    "GovernorStatus",
    "Permit",
    "ProviderAttempt",
    "ProviderBudget",
    "ProviderCapability",
    "ProviderFailure",
    "ProviderId",
    "ProviderLimits",
    "ResolutionFailure",
    "ResolutionFailureKind",
    "TrafficProfile",
]


class ProviderId(StrEnum):
    """Cascade members, in their default trust order."""

    SPECIALIZED_DICTIONARY = "specialized-dictionary"
    PRIMARY_TRANSLATOR = "primary-translator"
    SECONDARY_TRANSLATOR = "secondary-translator"
    GENERATIVE_FALLBACK = "generative-fallback"

    @property
    def config_section(self) -> str:
        """Name of the INI section holding this provider's settings."""
        return self.name


class BackoffStrategy(StrEnum):
    FIXED = "fixed"
    LINEAR = "linear"


class TrafficProfile(StrEnum):
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"


@dataclass(frozen=True)
class ProviderCapability:
    """Registry entry describing what a provider can be asked.

    Attributes:
        provider_id (ProviderId): Provider identity.
        priority (int): Rank, lower is tried first.
        target_languages (frozenset[str]): Supported base target language codes. Empty means any.
        source_scripts (frozenset[ScriptTag]): Scripts the provider specializes in. Empty means any.
        single_word_only (bool): Skip the provider for phrases and sentences.
        max_term_length (int): Longest term the provider is asked about. 0 means unlimited.
        accepts_romanized (bool): Provider may be asked to interpret romanized input.
    """

    provider_id: ProviderId
    priority: int
    target_languages: frozenset[str] = frozenset()
    source_scripts: frozenset[ScriptTag] = frozenset()
    single_word_only: bool = False
    max_term_length: int = 0
    accepts_romanized: bool = False

    def supports_target(self, language: str) -> bool:
        if not self.target_languages:
            return True
        return language.split("-")[0].lower() in self.target_languages

    def supports_script(self, script: ScriptTag) -> bool:
        if not self.source_scripts:
            return True
        return script in self.source_scripts

    def accepts_length(self, term: str) -> bool:
        return self.max_term_length <= 0 or len(term) <= self.max_term_length


@dataclass(frozen=True)
class ProviderLimits:
    """Per-provider throttling and retry configuration.

    Attributes:
        max_requests_per_window (int): Requests allowed per rolling window.
        window_duration_ms (int): Window length in milliseconds.
        max_concurrent_requests (int): Simultaneous calls allowed.
        max_retries (int): Additional attempts on the same provider after a retryable failure.
        backoff_ms (int): Base delay between attempts.
        backoff_strategy (BackoffStrategy): Fixed delay, or delay growing linearly with the attempt number.
        call_timeout_sec (float): Timeout of a single provider call.
    """

    max_requests_per_window: int = 60
    window_duration_ms: int = 60_000
    max_concurrent_requests: int = 5
    max_retries: int = 3
    backoff_ms: int = 1000
    backoff_strategy: BackoffStrategy = BackoffStrategy.FIXED
    call_timeout_sec: float = 8.0

    @property
    def window_duration_sec(self) -> float:
        return self.window_duration_ms / 1000.0

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (1-based)."""
        base: float = self.backoff_ms / 1000.0
        if self.backoff_strategy is BackoffStrategy.LINEAR:
            return base * max(attempt, 1)
        return base

    def scaled(self, factor: float, backoff_factor: float = 1.0) -> ProviderLimits:
        """Scale window budget and concurrency together. Values never drop below 1."""
        return replace(
            self,
            max_requests_per_window=max(1, round(self.max_requests_per_window * factor)),
            max_concurrent_requests=max(1, round(self.max_concurrent_requests * factor)),
            backoff_ms=max(0, round(self.backoff_ms * backoff_factor)),
        )


@dataclass
class ProviderBudget:
    """Mutable governor state for one provider. Owned and mutated by the governor only."""

    provider_id: ProviderId
    window_start: float
    max_per_window: int
    max_concurrent: int
    requests_in_window: int = 0
    active_requests: int = 0

    @property
    def has_slot(self) -> bool:
        return self.active_requests < self.max_concurrent and self.requests_in_window < self.max_per_window


@dataclass(frozen=True)
class GovernorStatus:
    provider_id: ProviderId
    requests_in_window: int
    active_requests: int
    max_per_window: int
    max_concurrent: int
    queue_length: int
    window_start: float
    profile: TrafficProfile


@dataclass
class Permit:
    """Right to issue one provider call. Returned to the governor through ``release``."""

    provider_id: ProviderId
    permit_id: int
    granted_at: float
    requester: str | None = None
    released: bool = False


class FailureKind(StrEnum):
    PROVIDER_TIMEOUT = "provider-timeout"
    PROVIDER_REJECTED = "provider-rejected"
    PROVIDER_UNAVAILABLE = "provider-unavailable"
    MALFORMED_RESPONSE = "malformed-provider-response"
    GOVERNOR_QUEUE_TIMEOUT = "governor-queue-timeout"
    DEADLINE_EXCEEDED = "deadline-exceeded"


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class ProviderFailure(DataClassJsonMixin):
    """Why one provider could not satisfy the request.

    Attributes:
        provider_id (ProviderId): Provider that failed.
        kind (FailureKind): Failure category.
        message (str): Human-readable detail.
        attempts (int): Calls issued before giving up on the provider.
        romanized (bool): Whether the failure happened during the romanization-aware pass.
    """

    provider_id: ProviderId
    kind: FailureKind
    message: str
    attempts: int = 1
    romanized: bool = False


@dataclass(frozen=True)
class AttemptSuccess:
    provider_id: ProviderId
    result: TranslationResult
    attempts: int = 1
    failures: list[ProviderFailure] = field(default_factory=list)


@dataclass(frozen=True)
class AttemptFailure:
    failure: ProviderFailure


type ProviderAttempt = AttemptSuccess | AttemptFailure


class ResolutionFailureKind(StrEnum):
    ALL_PROVIDERS_EXHAUSTED = "all-providers-exhausted"
    DEADLINE_EXCEEDED = "deadline-exceeded"


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class ResolutionFailure(DataClassJsonMixin):
    """Structured failure returned when no provider produced a translation.

    Attributes:
        kind (ResolutionFailureKind): Exhaustion or deadline.
        term (str): Term as submitted.
        target_language (str): Target language code.
        ui_language (str): UI language code.
        failures (list[ProviderFailure]): Per-provider reasons in attempt order.
    """

    kind: ResolutionFailureKind
    term: str
    target_language: str
    ui_language: str
    failures: list[ProviderFailure] = field(default_factory=list)

    @property
    def is_unsupported_language_pair(self) -> bool:
        """True when no provider was eligible, or every provider rejected the request outright."""
        if self.kind is not ResolutionFailureKind.ALL_PROVIDERS_EXHAUSTED:
            return False
        return all(failure.kind is FailureKind.PROVIDER_REJECTED for failure in self.failures)

    def describe(self) -> str:
        reasons: str = ", ".join(f"{f.provider_id}:{f.kind}" for f in self.failures) or "no eligible provider"
        return f"{self.kind} for {self.term!r} ({self.target_language}/{self.ui_language}): {reasons}"
