from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, ClassVar

from deepl import DeepLClient, Language, TextResult
from deepl.exceptions import (
    AuthorizationException,
    ConnectionException,
    DeepLException,
    QuotaExceededException,
    TooManyRequestsException,
)

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
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from core.providers.interface import ProviderRequest
    from models.config_models import ProviderSettings


__all__: list[str] = ["DeeplTranslation"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class DeeplTranslation(ProviderInterface):
    attributes = ProviderAttributes(name="DeepL")

    _source_codes: ClassVar[dict[str, str]] = {}  # Base language code to DeepL source code
    _target_codes: ClassVar[dict[str, str]] = {}  # Base language code to DeepL target code
    # DeepL rejects the bare codes of these languages as targets.
    _preferred_targets: ClassVar[dict[str, str]] = {"en": "EN-US", "pt": "PT-BR"}

    def __init__(self) -> None:
        super().__init__()
        self.__inst: DeepLClient | None = None
        self.__quota_exhausted: bool = False
        self._generate_langcode_mappings()

    @classmethod
    def _generate_langcode_mappings(cls) -> None:
        """Populate the language code tables from the ``deepl.Language`` constants."""
        if cls._source_codes:
            return
        language_constants: dict[str, str] = {
            name: value for name, value in vars(Language).items() if isinstance(value, str) and name.isupper()
        }
        for code in language_constants.values():
            base_code: str = code.split("-")[0].lower()
            cls._source_codes[base_code] = base_code.upper()
            cls._target_codes.setdefault(base_code, code.upper())
        cls._target_codes.update(cls._preferred_targets)
        cls._target_codes["zh"] = "ZH"
        logger.debug("Language code mapping generated for DeepL.")

    @property
    def _inst(self) -> DeepLClient:
        if self.__inst is None:
            msg = "The DeepL instance is not initialised"
            raise ProviderUnavailableError(msg)
        return self.__inst

    @staticmethod
    def fetch_engine_name() -> str:
        return "deepl"

    def initialize(self, settings: ProviderSettings) -> None:
        """Create the DeepL client and verify the key against the usage endpoint.

        Raises:
            RuntimeError: If the client cannot be created or the key is refused.
        """
        super().initialize(settings)
        logger.debug("'%s' Initialization start", self.__class__.__name__)
        try:
            # Authentication happens on the first API call, not on construction.
            self.__inst = DeepLClient(self.get_authentication_key())
            usage = self.__inst.get_usage()
        except (AttributeError, ValueError) as err:
            msg = "An error occurred while creating the DeepL client instance"
            raise RuntimeError(msg) from err
        except AuthorizationException as err:
            self.__inst = None
            msg = "Authorisation failed. Please check your authentication key"
            raise RuntimeError(msg) from err
        except DeepLException as err:
            self.__inst = None
            msg: str = f"DeepL usage check failed: {err}"
            raise RuntimeError(msg) from err
        self.__quota_exhausted = bool(usage.any_limit_reached)
        if self.__quota_exhausted:
            logger.warning("DeepL character quota already exhausted")

    def _language_codes(self, request: ProviderRequest) -> tuple[str | None, str]:
        src_base: str | None = StringUtils.base_language(request.source_language) if request.source_language else None
        tgt_base: str = StringUtils.base_language(request.translate_to)
        try:
            src_code: str | None = self._source_codes[src_base] if src_base else None
            tgt_code: str = self._target_codes[tgt_base]
        except KeyError:
            msg: str = (
                "Languages not supported by DeepL. "
                f"Source language: '{request.source_language}'. Target language: '{request.translate_to}'."
            )
            raise NotSupportedLanguagesError(msg) from None
        return src_code, tgt_code

    async def lookup(self, request: ProviderRequest) -> TranslationResult:
        if self.__quota_exhausted:
            msg = "DeepL character quota exhausted"
            raise ProviderRejectedError(msg)

        src_code, tgt_code = self._language_codes(request)
        logger.debug("'term': '%s', 'src_lang': '%s', 'tgt_lang': '%s'", request.term, src_code, tgt_code)
        try:
            results: TextResult | list[TextResult] = await asyncio.to_thread(
                self._inst.translate_text,
                request.term,
                source_lang=src_code,
                target_lang=tgt_code,
            )
        except QuotaExceededException as err:
            self.__quota_exhausted = True
            raise ProviderRejectedError(str(err)) from err
        except AuthorizationException as err:
            msg = "Authorisation failed. Please check your authentication key"
            raise ProviderRejectedError(msg) from err
        except TooManyRequestsException as err:
            msg = "DeepL rate limit reached"
            raise ProviderRateLimitedError(msg) from err
        except ConnectionException as err:
            msg = "An error occurred when connecting to the DeepL server"
            raise ProviderUnavailableError(msg) from err
        except DeepLException as err:
            msg = "An anomaly occurred during the translation process at DeepL"
            raise ProviderUnavailableError(msg) from err
        except ValueError as err:
            raise ProviderRejectedError(str(err)) from err

        logger.info("translation completed (%s > %s)", src_code, tgt_code)
        return self._build_result(request, results)

    @staticmethod
    def _build_result(request: ProviderRequest, results: TextResult | list[TextResult]) -> TranslationResult:
        if isinstance(results, list):
            if not results:
                msg = "DeepL returned no translation"
                raise NoProviderResultError(msg)
            results = results[0]
        if not isinstance(results, TextResult):
            msg = "An anomaly occurred during the translation process at DeepL"
            raise MalformedProviderResponseError(msg)
        if not results.text.strip():
            msg = f"Empty translation for '{request.term}'"
            raise NoProviderResultError(msg)
        return TranslationResult(
            term=request.original_term,
            language=request.lookup_language,
            translation=results.text,
        )

    async def close(self) -> None:
        if self.__inst is not None:
            await asyncio.to_thread(self.__inst.close)
        self.__inst = None
        await super().close()
