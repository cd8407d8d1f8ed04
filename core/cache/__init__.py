"""Term cache package.

Provides the two-tier result cache and in-flight request coalescing.
"""

from __future__ import annotations

from core.cache.inflight_manager import InFlightManager
from core.cache.manager import CacheTierManager

__all__: list[str] = ["CacheTierManager", "InFlightManager"]
