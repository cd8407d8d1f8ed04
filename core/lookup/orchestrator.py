"""Provider cascade orchestrator.

Tries eligible providers in priority order until one returns a complete translation. Each attempt is
folded into an ``AttemptSuccess`` or ``AttemptFailure``; provider errors are recorded as data and never
leave this module. A term that looks romanized is first tried as a transliteration of the target
language, then as a literal term.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import TYPE_CHECKING

from core.governor import GovernorQueueTimeoutError
from core.providers.interface import (
    MalformedProviderResponseError,
    ProviderError,
    ProviderRequest,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from handlers.romanizer import Romaji
from handlers.script_classifier import ScriptClassifier
from models.provider_models import (
    AttemptFailure,
    AttemptSuccess,
    FailureKind,
    ProviderFailure,
    ResolutionFailure,
    ResolutionFailureKind,
)
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from core.governor import RateGovernor
    from core.providers.registry import ProviderRegistry
    from models.lookup_models import Classification, TranslationResult
    from models.provider_models import Permit, ProviderAttempt, ProviderCapability, ProviderId, ProviderLimits

__all__: list[str] = ["CascadeOrchestrator", "Deadline"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class Deadline:
    """Point in monotonic time by which a whole resolution must finish.

    Args:
        seconds (float | None): Time budget from now. None means no deadline.
        clock (Callable[[], float]): Monotonic time source.
    """

    def __init__(self, seconds: float | None, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock: Callable[[], float] = clock
        self.seconds: float | None = seconds
        self.expires_at: float | None = None if seconds is None else clock() + seconds

    @property
    def remaining(self) -> float | None:
        """Seconds left, never negative. None when unbounded."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining: float | None = self.remaining
        return remaining is not None and remaining <= 0.0

    def bound(self, value: float) -> float:
        """Clamp ``value`` to the time left."""
        remaining: float | None = self.remaining
        return value if remaining is None else min(value, remaining)


class CascadeOrchestrator:
    """Resolve terms through the provider cascade.

    Args:
        registry (ProviderRegistry): Eligible providers and their engines.
        governor (RateGovernor): Permit source for provider calls.
        queue_timeout_sec (float): Longest wait for a governor permit per attempt.
    """

    def __init__(self, registry: ProviderRegistry, governor: RateGovernor, *, queue_timeout_sec: float = 10.0) -> None:
        self.registry: ProviderRegistry = registry
        self.governor: RateGovernor = governor
        self.queue_timeout_sec: float = queue_timeout_sec

    async def resolve(
        self,
        term: str,
        target_language: str,
        ui_language: str,
        classification: Classification,
        *,
        deadline: Deadline | None = None,
        requester: str | None = None,
    ) -> AttemptSuccess | ResolutionFailure:
        """Run the cascade for one term.

        Args:
            term (str): Term as submitted.
            target_language (str): Target language code.
            ui_language (str): UI language code.
            classification (Classification): Classifier verdict for ``term``.
            deadline (Deadline | None): Overall deadline. Remaining candidates are skipped once it passes.
            requester (str | None): Opaque caller identity, logged only.

        Returns:
            AttemptSuccess | ResolutionFailure: The first complete result, tagged with its provider and
                carrying the failures of the providers tried before it, or the ordered list of per-provider
                failures.
        """
        deadline = deadline or Deadline(None)
        failures: list[ProviderFailure] = []
        for request, candidates in self.plan(term, target_language, ui_language, classification):
            for capability in candidates:
                if deadline.expired:
                    logger.warning("Deadline exceeded for '%s' before trying '%s'", term, capability.provider_id)
                    return self._failure(
                        ResolutionFailureKind.DEADLINE_EXCEEDED, term, target_language, ui_language, failures
                    )
                attempt: ProviderAttempt = await self._attempt(capability.provider_id, request, deadline, requester)
                if isinstance(attempt, AttemptSuccess):
                    logger.info(
                        "'%s' resolved by '%s' after %d call(s) (romanized=%s)",
                        term,
                        attempt.provider_id,
                        attempt.attempts,
                        request.romanized,
                    )
                    return replace(attempt, failures=list(failures))
                failures.append(attempt.failure)

        kind: ResolutionFailureKind = ResolutionFailureKind.ALL_PROVIDERS_EXHAUSTED
        if deadline.expired or any(failure.kind is FailureKind.DEADLINE_EXCEEDED for failure in failures):
            kind = ResolutionFailureKind.DEADLINE_EXCEEDED
        return self._failure(kind, term, target_language, ui_language, failures)

    def plan(
        self, term: str, target_language: str, ui_language: str, classification: Classification
    ) -> list[tuple[ProviderRequest, list[ProviderCapability]]]:
        """Build the cascade passes: transliteration first for romanized input, then the literal term."""
        passes: list[tuple[ProviderRequest, list[ProviderCapability]]] = []
        if classification.is_likely_romanization:
            romanized: ProviderRequest | None = self.romanized_request(
                term, target_language, ui_language, classification
            )
            if romanized is not None:
                candidates = self.registry.candidates(term, target_language, classification, romanized_phase=True)
                passes.append((romanized, candidates))
        literal: ProviderRequest = self.literal_request(term, target_language, ui_language, classification)
        passes.append((literal, self.registry.candidates(term, target_language, classification)))
        return passes

    @staticmethod
    def literal_request(
        term: str, target_language: str, ui_language: str, classification: Classification
    ) -> ProviderRequest:
        """Request for the term as typed.

        A term written in the target language's own script is explained in the UI language; anything
        else is translated into the target language.
        """
        native: bool = ScriptClassifier.is_native_script(classification.script, target_language)
        return ProviderRequest(
            term=term,
            original_term=term,
            lookup_language=target_language,
            source_language=target_language if native else None,
            translate_to=ui_language if native else target_language,
            ui_language=ui_language,
            classification=classification,
        )

    @staticmethod
    def romanized_request(
        term: str, target_language: str, ui_language: str, classification: Classification
    ) -> ProviderRequest | None:
        """Request treating ``term`` as romanized ``target_language``.

        Romaji is converted to hiragana for Japanese. Returns None when the conversion is incomplete.
        """
        lookup_term: str = term
        if StringUtils.base_language(target_language) == "ja":
            kana = Romaji.to_kana(StringUtils.compress_blanks(term).lower())
            if not kana.is_complete:
                return None
            lookup_term = kana.text
        return ProviderRequest(
            term=lookup_term,
            original_term=term,
            lookup_language=target_language,
            source_language=target_language,
            translate_to=ui_language,
            ui_language=ui_language,
            classification=classification,
            romanized=True,
        )

    async def _attempt(
        self, provider_id: ProviderId, request: ProviderRequest, deadline: Deadline, requester: str | None
    ) -> ProviderAttempt:
        """Call one provider, retrying retryable failures with backoff while the deadline allows."""
        limits: ProviderLimits = self.governor.limits(provider_id)
        calls: int = 0

        def failed(kind: FailureKind, message: str) -> AttemptFailure:
            logger.warning("Provider '%s' failed for '%s' (%s): %s", provider_id, request.term, kind, message)
            return AttemptFailure(
                ProviderFailure(
                    provider_id=provider_id, kind=kind, message=message, attempts=calls, romanized=request.romanized
                )
            )

        while True:
            if deadline.expired:
                return failed(FailureKind.DEADLINE_EXCEEDED, "Deadline passed before the call")
            try:
                permit: Permit = await self.governor.acquire(
                    provider_id, timeout=deadline.bound(self.queue_timeout_sec), requester=requester
                )
            except GovernorQueueTimeoutError as err:
                kind = FailureKind.DEADLINE_EXCEEDED if deadline.expired else FailureKind.GOVERNOR_QUEUE_TIMEOUT
                return failed(kind, str(err))

            calls += 1
            call_timeout: float = deadline.bound(limits.call_timeout_sec)
            try:
                result: TranslationResult = await asyncio.wait_for(
                    self.registry.provider(provider_id).lookup(request), timeout=call_timeout
                )
            except TimeoutError:
                error: ProviderError = ProviderTimeoutError(f"No answer within {call_timeout:.2f}s")
            except ProviderError as err:
                error = err
            except Exception as err:
                logger.exception("Provider '%s' raised an unexpected error", provider_id)
                error = ProviderUnavailableError(f"Unexpected error: {err!r}")
            else:
                if result.is_complete:
                    return AttemptSuccess(
                        provider_id=provider_id, result=replace(result, source_provider=provider_id), attempts=calls
                    )
                error = MalformedProviderResponseError("Result has no translation")
            finally:
                await self.governor.release(permit)

            if deadline.expired:
                return failed(FailureKind.DEADLINE_EXCEEDED, f"{error.kind}: {error}")
            if not error.retryable or calls > limits.max_retries:
                return failed(error.kind, str(error))

            delay: float = limits.backoff_delay(calls)
            remaining: float | None = deadline.remaining
            if remaining is not None and delay >= remaining:
                return failed(error.kind, f"{error} (no time left to retry)")
            logger.info(
                "Retrying '%s' in %.2fs (call %d of %d): %s", provider_id, delay, calls, limits.max_retries + 1, error
            )
            await asyncio.sleep(delay)

    @staticmethod
    def _failure(
        kind: ResolutionFailureKind,
        term: str,
        target_language: str,
        ui_language: str,
        failures: list[ProviderFailure],
    ) -> ResolutionFailure:
        failure = ResolutionFailure(
            kind=kind,
            term=term,
            target_language=target_language,
            ui_language=ui_language,
            failures=list(failures),
        )
        logger.warning("Resolution failed: %s", failure.describe())
        return failure
