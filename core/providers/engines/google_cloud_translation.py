"""Google Cloud Translation API Basic (v2) provider.

Requires google-cloud-translate and either an API key (``GOOGLE_CLOUD_API_OAUTH``) or service account
credentials (``GOOGLE_APPLICATION_CREDENTIALS``).
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from google.api_core.exceptions import BadRequest, Forbidden, GoogleAPIError, TooManyRequests, Unauthorized
from google.auth.credentials import AnonymousCredentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.cloud import translate_v2 as translate
from requests.exceptions import RequestException

from core.providers.interface import (
    MalformedProviderResponseError,
    NoProviderResultError,
    NotSupportedLanguagesError,
    ProviderAttributes,
    ProviderInterface,
    ProviderRateLimitedError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from models.lookup_models import TranslationResult
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.providers.interface import ProviderRequest
    from models.config_models import ProviderSettings

__all__: list[str] = ["GoogleCloudTranslation"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class APIKeySession:
    """HTTP session that appends the API key to every request URL."""

    def __init__(self, api_key: str) -> None:
        self.api_key: str = api_key
        self._session: AuthorizedSession = AuthorizedSession(AnonymousCredentials())

    def request(self, method: str, url: str, **kwargs):
        separator = "&" if "?" in url else "?"
        url_with_key: str = f"{url}{separator}key={self.api_key}"
        return self._session.request(method, url_with_key, **kwargs)


class GoogleCloudTranslation(ProviderInterface):
    """General-purpose machine translator backed by Google Cloud Translation v2.

    The client library is synchronous, so calls run in a worker thread.
    """

    attributes = ProviderAttributes(name="Google Cloud Translation")

    def __init__(self) -> None:
        super().__init__()
        self.__inst: translate.Client | None = None

    @property
    def _inst(self) -> translate.Client:
        if self.__inst is None:
            msg = "The Google Cloud Translate instance is not initialised"
            raise ProviderUnavailableError(msg)
        return self.__inst

    @staticmethod
    def fetch_engine_name() -> str:
        return "google_cloud"

    def initialize(self, settings: ProviderSettings) -> None:
        """Create the client and test the connection.

        Raises:
            RuntimeError: If authentication or the connection test fails.
        """
        super().initialize(settings)
        logger.debug("'%s' Initialization start", self.__class__.__name__)
        try:
            api_key: str = self.get_authentication_key()
            if api_key:
                logger.debug("Using API key authentication")
                self.__inst = translate.Client(credentials=AnonymousCredentials(), _http=APIKeySession(api_key))
            else:
                logger.debug("Using default credentials (GOOGLE_APPLICATION_CREDENTIALS)")
                self.__inst = translate.Client()
            self.__inst.get_languages()
        except (Unauthorized, Forbidden, GoogleAuthError) as err:
            self.__inst = None
            msg = (
                "Authentication failed. Please set GOOGLE_APPLICATION_CREDENTIALS "
                "or GOOGLE_CLOUD_API_OAUTH environment variable"
            )
            raise RuntimeError(msg) from err
        except GoogleAPIError as err:
            self.__inst = None
            msg: str = f"Failed to initialize Google Cloud Translation client: {err}"
            raise RuntimeError(msg) from err
        else:
            logger.info("Google Cloud Translation API connection test successful")

    async def lookup(self, request: ProviderRequest) -> TranslationResult:
        logger.debug(
            "'term': '%s', 'src_lang': '%s', 'tgt_lang': '%s'",
            request.term,
            request.source_language,
            request.translate_to,
        )
        try:
            response: Any = await asyncio.to_thread(
                self._inst.translate,
                request.term,
                target_language=request.translate_to,
                source_language=request.source_language,
                format_="text",
            )
            translated_text: str = response["translatedText"]
        except BadRequest as err:
            msg: str = (
                f"Unsupported language pair (src: '{request.source_language}', tgt: '{request.translate_to}'): {err}"
            )
            raise NotSupportedLanguagesError(msg) from err
        except TooManyRequests as err:
            msg = f"Translation rate limited: {err}"
            raise ProviderRateLimitedError(msg) from err
        except (Unauthorized, Forbidden) as err:
            msg = f"Translation refused: {err}"
            raise ProviderRejectedError(msg) from err
        except GoogleAPIError as err:
            msg = f"Translation failed: {err}"
            raise ProviderUnavailableError(msg) from err
        except (RequestException, GoogleAuthError) as err:
            msg = f"Translation service unreachable: {err}"
            raise ProviderUnavailableError(msg) from err
        except (KeyError, TypeError) as err:
            msg = f"Unexpected translation payload: {err}"
            raise MalformedProviderResponseError(msg) from err

        if not isinstance(translated_text, str) or not translated_text.strip():
            msg = f"Empty translation for '{request.term}'"
            raise NoProviderResultError(msg)

        detected: str | None = response.get("detectedSourceLanguage", request.source_language)
        logger.info("translation completed (%s > %s)", detected, request.translate_to)
        return TranslationResult(
            term=request.original_term,
            language=request.lookup_language,
            translation=translated_text,
        )

    async def close(self) -> None:
        self.__inst = None
        await super().close()
