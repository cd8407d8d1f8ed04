"""Lookup providers.

Contains the provider interface and error taxonomy, the concrete engines and the capability registry
the cascade orchestrator consults.
"""

from core.providers.interface import (
    MalformedProviderResponseError,
    NoProviderResultError,
    NotSupportedLanguagesError,
    ProviderAttributes,
    ProviderError,
    ProviderInterface,
    ProviderRateLimitedError,
    ProviderRejectedError,
    ProviderRequest,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from core.providers.registry import ProviderRegistry

__all__: list[str] = [
    "MalformedProviderResponseError",
    "NoProviderResultError",
    "NotSupportedLanguagesError",
    "ProviderAttributes",
    "ProviderError",
    "ProviderInterface",
    "ProviderRateLimitedError",
    "ProviderRejectedError",
    "ProviderRequest",
    "ProviderRegistry",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
]
