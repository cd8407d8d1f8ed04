"""Data models for the term resolver.

This package contains dataclass definitions for configuration, provider and governor state,
cascade outcomes, and the regular expression patterns used for script classification.
Lookup and cache records live in ``models.lookup_models`` and ``models.cache_models``.
"""

from __future__ import annotations

from models.config_models import Config, ProviderSettings
from models.provider_models import (
    FailureKind,
    ProviderCapability,
    ProviderFailure,
    ProviderId,
    ProviderLimits,
    ResolutionFailure,
    ResolutionFailureKind,
    TrafficProfile,
)

__all__: list[str] = [
    "Config",
    "FailureKind",
    "ProviderCapability",
    "ProviderFailure",
    "ProviderId",
    "ProviderLimits",
    "ProviderSettings",
    "ResolutionFailure",
    "ResolutionFailureKind",
    "TrafficProfile",
]
