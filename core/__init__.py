"""Core components of the term resolver.

This package contains the lookup pipeline, the two-tier cache, the rate governor and the provider
engines.
"""

from core.lookup import LookupManager
from core.version import VERSION

__all__: list[str] = [
    "VERSION",
    "LookupManager",
]
