"""Exceptions propagated to callers of the lookup pipeline.

Provider-level errors never leave the orchestrator; only these reach the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models.provider_models import ResolutionFailure

__all__: list[str] = [
    "AllProvidersExhaustedError",
    "DeadlineExceededError",
    "InvalidLookupRequestError",
    "ResolutionError",
    "TermLookupError",
]


class TermLookupError(Exception):
    """Base class of lookup pipeline errors."""


class InvalidLookupRequestError(TermLookupError):
    """The lookup request has an empty term or language code."""


class ResolutionError(TermLookupError):
    """No provider produced a translation.

    Attributes:
        failure (ResolutionFailure): Structured failure with per-provider reasons in attempt order.
    """

    def __init__(self, failure: ResolutionFailure) -> None:
        self.failure: ResolutionFailure = failure
        super().__init__(failure.describe())


class AllProvidersExhaustedError(ResolutionError):
    """Every eligible provider failed, or none was eligible."""


class DeadlineExceededError(ResolutionError):
    """The overall lookup deadline passed before a provider succeeded."""
