"""Term lookup pipeline.

Provides the cascade orchestrator, phonetic augmenter, response assembler and the lookup manager that
wires them to the cache, the governor and the provider registry.
"""

from core.lookup.assembler import ResponseAssembler
from core.lookup.augmenter import PhoneticAugmenter
from core.lookup.errors import (
    AllProvidersExhaustedError,
    DeadlineExceededError,
    InvalidLookupRequestError,
    ResolutionError,
    TermLookupError,
)
from core.lookup.manager import LookupManager
from core.lookup.orchestrator import CascadeOrchestrator, Deadline

__all__: list[str] = [
    "AllProvidersExhaustedError",
    "CascadeOrchestrator",
    "Deadline",
    "DeadlineExceededError",
    "InvalidLookupRequestError",
    "LookupManager",
    "PhoneticAugmenter",
    "ResolutionError",
    "ResponseAssembler",
    "TermLookupError",
]
