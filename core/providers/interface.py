"""Abstract provider interface, request record and provider error taxonomy.

Concrete engines subclass ``ProviderInterface`` and register themselves by engine name when their module
is imported. Configuration maps each cascade role (``ProviderId``) to one engine name.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from models.lookup_models import ScriptTag
from models.provider_models import FailureKind
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import ProviderSettings
    from models.lookup_models import Classification, TranslationResult

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
    "ProviderTimeoutError",
    "ProviderUnavailableError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class ProviderError(Exception):
    """An error occurred while calling a provider.

    Attributes:
        kind (ClassVar[FailureKind]): Failure category recorded by the orchestrator.
        retryable (ClassVar[bool]): Whether the same provider may be asked again.
    """

    kind: ClassVar[FailureKind] = FailureKind.PROVIDER_UNAVAILABLE
    retryable: ClassVar[bool] = True


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within the call timeout."""

    kind = FailureKind.PROVIDER_TIMEOUT


class ProviderRejectedError(ProviderError):
    """The provider refused the request (4xx equivalent)."""

    kind = FailureKind.PROVIDER_REJECTED
    retryable = False


class ProviderRateLimitedError(ProviderRejectedError):
    """The provider throttled the request. Retried after backoff."""

    retryable = True


class NotSupportedLanguagesError(ProviderRejectedError):
    """The provider does not support the requested language pair."""


class NoProviderResultError(ProviderRejectedError):
    """The provider answered but had no entry for the term."""


class ProviderUnavailableError(ProviderError):
    """The provider could not be reached or failed internally (5xx equivalent)."""

    kind = FailureKind.PROVIDER_UNAVAILABLE


class MalformedProviderResponseError(ProviderError):
    """The provider's payload did not match the expected shape."""

    kind = FailureKind.MALFORMED_RESPONSE


@dataclass(frozen=True)
class ProviderRequest:
    """One provider call.

    Attributes:
        term (str): Text sent to the provider (a kana transliteration during the romanized pass).
        original_term (str): Term as the caller submitted it.
        lookup_language (str): Target language of the lookup, recorded on the result.
        source_language (str | None): Language of ``term``. None lets the provider detect it.
        translate_to (str): Language the provider must translate into.
        ui_language (str): Caller's UI language, used for glosses and prompts.
        classification (Classification): Classifier verdict for ``original_term``.
        romanized (bool): Whether ``original_term`` is treated as romanized ``lookup_language``.
    """

    term: str
    original_term: str
    lookup_language: str
    source_language: str | None
    translate_to: str
    ui_language: str
    classification: Classification
    romanized: bool = False


@dataclass(frozen=True)
class ProviderAttributes:
    """Engine capability defaults. The registry combines them with configuration.

    Attributes:
        name (str): Display name of the engine.
        source_scripts (frozenset[ScriptTag]): Scripts the engine specializes in. Empty means any.
        single_word_only (bool): Engine is a word dictionary and cannot handle phrases.
        accepts_romanized (bool): Engine can interpret romanized input of a non-Latin language.
    """

    name: str
    source_scripts: frozenset[ScriptTag] = field(default_factory=frozenset)
    single_word_only: bool = False
    accepts_romanized: bool = False


class ProviderInterface(ABC):
    """Abstract base class for lookup providers.

    Attributes:
        registered (ClassVar[dict[str, type[ProviderInterface]]]): Engine classes keyed by engine name.
        attributes (ClassVar[ProviderAttributes]): Capability defaults of the engine.
    """

    registered: ClassVar[dict[str, type[ProviderInterface]]] = {}
    attributes: ClassVar[ProviderAttributes] = ProviderAttributes(name="")

    def __init_subclass__(cls, **kwargs) -> None:
        """Register the subclass under its engine name.

        Raises:
            TypeError: If the subclass does not provide ``fetch_engine_name``.
            ValueError: If another engine already uses the name.
        """
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, "fetch_engine_name") or not callable(cls.fetch_engine_name):
            msg = "Subclasses of ProviderInterface must implement the static method fetch_engine_name()."
            raise TypeError(msg)

        name: str = cls.fetch_engine_name()
        if not isinstance(name, str) or name == "":
            return  # Unnamed engines (test doubles, abstract helpers) are not registered.

        if name in cls.registered:
            msg: str = f"A provider engine with the name '{name}' is already registered."
            raise ValueError(msg)

        cls.registered[name] = cls

    def __init__(self) -> None:
        self._settings: ProviderSettings | None = None

    @property
    def settings(self) -> ProviderSettings:
        if self._settings is None:
            msg = f"Provider '{self.engine_name}' has not been initialized."
            raise RuntimeError(msg)
        return self._settings

    @property
    def engine_name(self) -> str:
        return self.fetch_engine_name()

    @staticmethod
    @abstractmethod
    def fetch_engine_name() -> str:
        """Fetch the distinguished name of the engine.

        Called during class registration, so the implementation must be available at subclass definition.
        """
        raise NotImplementedError

    def initialize(self, settings: ProviderSettings) -> None:
        """Bind configuration and create API clients.

        Args:
            settings (ProviderSettings): Section of the provider's cascade role.

        Raises:
            RuntimeError: If the engine cannot be set up.
        """
        self._settings = settings

    @abstractmethod
    async def lookup(self, request: ProviderRequest) -> TranslationResult:
        """Resolve one request.

        Args:
            request (ProviderRequest): What to look up and in which direction.

        Returns:
            TranslationResult: Result with a non-empty translation. ``source_provider`` is set by the caller.

        Raises:
            ProviderTimeoutError: If the call timed out.
            ProviderRejectedError: If the provider refused the request.
            ProviderUnavailableError: If the provider could not be reached.
            MalformedProviderResponseError: If the payload could not be decoded.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release clients and sessions. Engines without resources need not override this."""
        logger.debug("'%s' process termination", self.__class__.__name__)

    def get_authentication_key(self) -> str:
        """Read the credential from ``<ENGINE_NAME>_API_OAUTH``.

        Returns:
            str: The key, or an empty string if the variable is not set.
        """
        return os.getenv(f"{self.fetch_engine_name().upper()}_API_OAUTH", "")

    @property
    def has_credentials(self) -> bool:
        return bool(self.get_authentication_key())
