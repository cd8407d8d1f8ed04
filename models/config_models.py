"""Configuration data models for the term resolver.

Each dataclass mirrors one INI section. Field names are upper case to match the keys in the file;
the default values double as type declarations for the loader's coercion rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "Cache",
    "Config",
    "General",
    "ProviderSettings",
    "Resolution",
]


@dataclass
class General:
    DEBUG: bool = False
    VERSION: str = ""
    SCRIPT_NAME: str = ""
    LOG_FILE: str = "term_resolver.log"
    LOG_LEVEL: str = "INFO"


@dataclass
class Cache:
    DB_PATH: str = "term_cache.db"
    FAST_TIER_MAX_ENTRIES: int = 2000
    MAX_ENTRIES_PER_PROVIDER: int = 20000
    TTL_SPECIALIZED_DICTIONARY_SEC: float = 30 * 24 * 3600.0
    TTL_PRIMARY_TRANSLATOR_SEC: float = 7 * 24 * 3600.0
    TTL_SECONDARY_TRANSLATOR_SEC: float = 7 * 24 * 3600.0
    TTL_GENERATIVE_FALLBACK_SEC: float = 24 * 3600.0


@dataclass
class Resolution:
    PROVIDER_ORDER: list[str] = field(
        default_factory=lambda: [
            "specialized-dictionary",
            "primary-translator",
            "secondary-translator",
            "generative-fallback",
        ]
    )
    DEADLINE_SEC: float = 20.0
    QUEUE_TIMEOUT_SEC: float = 10.0
    ACTIVE_USERS: int = 0
    SPECIALIZED_MAX_TERM_LENGTH: int = 12
    WINDOW_TICK_SEC: float = 0.5


@dataclass
class ProviderSettings:
    ENGINE: str = ""
    ENABLED: bool = True
    ENDPOINT: str = ""
    MODEL: str = ""
    MAX_REQUESTS_PER_WINDOW: int = 60
    WINDOW_DURATION_MS: int = 60_000
    MAX_CONCURRENT_REQUESTS: int = 5
    MAX_RETRIES: int = 3
    BACKOFF_MS: int = 1000
    BACKOFF_STRATEGY: str = "fixed"
    CALL_TIMEOUT_SEC: float = 8.0
    TARGET_LANGUAGES: list[str] = field(default_factory=list)


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    CACHE: Cache = field(default_factory=Cache)
    RESOLUTION: Resolution = field(default_factory=Resolution)
    SPECIALIZED_DICTIONARY: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(
            ENGINE="jotoba",
            ENDPOINT="https://jotoba.de/api/search/words",
            MAX_REQUESTS_PER_WINDOW=120,
            MAX_CONCURRENT_REQUESTS=5,
            MAX_RETRIES=1,
            BACKOFF_MS=500,
            CALL_TIMEOUT_SEC=5.0,
            TARGET_LANGUAGES=["ja"],
        )
    )
    PRIMARY_TRANSLATOR: ProviderSettings = field(default_factory=lambda: ProviderSettings(ENGINE="google_cloud"))
    SECONDARY_TRANSLATOR: ProviderSettings = field(default_factory=lambda: ProviderSettings(ENGINE="deepl"))
    GENERATIVE_FALLBACK: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(
            ENGINE="openai",
            MODEL="gpt-3.5-turbo",
            MAX_REQUESTS_PER_WINDOW=60,
            MAX_CONCURRENT_REQUESTS=5,
            MAX_RETRIES=3,
            BACKOFF_MS=1000,
            BACKOFF_STRATEGY="linear",
            CALL_TIMEOUT_SEC=9.0,
        )
    )
