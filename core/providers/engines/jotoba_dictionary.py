"""Jotoba Japanese dictionary provider.

Queries the Jotoba word search API and maps its first matching entry to a ``TranslationResult``:
glosses become definitions, the kana reading becomes the script annotation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from core.providers.interface import (
    MalformedProviderResponseError,
    NoProviderResultError,
    NotSupportedLanguagesError,
    ProviderAttributes,
    ProviderInterface,
    ProviderRateLimitedError,
    ProviderRejectedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from handlers.async_comm import (
    AsyncCommError,
    AsyncCommInvalidContentTypeError,
    AsyncCommStatusError,
    AsyncCommTimeoutError,
    AsyncHttp,
)
from models.lookup_models import Definition, ScriptTag, TranslationResult
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from core.providers.interface import ProviderRequest
    from models.config_models import ProviderSettings

__all__: list[str] = ["JotobaDictionary"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

HTTP_TOO_MANY_REQUESTS: int = 429
MAX_GLOSSES_IN_TRANSLATION: int = 3


class JotobaDictionary(ProviderInterface):
    """Curated Japanese word dictionary (single words, Japanese script or romaji)."""

    attributes = ProviderAttributes(
        name="Jotoba",
        source_scripts=frozenset({ScriptTag.JAPANESE, ScriptTag.CJK}),
        single_word_only=True,
        accepts_romanized=True,
    )
    # Gloss languages offered by Jotoba, keyed by base language code.
    gloss_languages: ClassVar[dict[str, str]] = {
        "en": "English",
        "de": "German",
        "ru": "Russian",
        "es": "Spanish",
        "sv": "Swedish",
        "fr": "French",
        "nl": "Dutch",
        "hu": "Hungarian",
        "sl": "Slovenian",
    }

    def __init__(self) -> None:
        super().__init__()
        self._http: AsyncHttp | None = None

    @staticmethod
    def fetch_engine_name() -> str:
        return "jotoba"

    def initialize(self, settings: ProviderSettings) -> None:
        super().initialize(settings)
        if not settings.ENDPOINT:
            msg = "Jotoba endpoint is not configured"
            raise RuntimeError(msg)
        self._http = AsyncHttp(headers={"Content-Type": "application/json", "Accept": "application/json"})
        logger.debug("'%s' initialized with endpoint '%s'", self.__class__.__name__, settings.ENDPOINT)

    @property
    def http(self) -> AsyncHttp:
        if self._http is None:
            msg = "Jotoba client is not initialized"
            raise RuntimeError(msg)
        return self._http

    async def lookup(self, request: ProviderRequest) -> TranslationResult:
        """Search Jotoba for ``request.term``.

        Japanese input is glossed in ``request.translate_to``; English input with a Japanese target
        yields the headword.

        Raises:
            NotSupportedLanguagesError: If Jotoba has no glosses in the requested language.
            NoProviderResultError: If no word matched.
        """
        to_japanese: bool = StringUtils.base_language(request.translate_to) == "ja"
        gloss_base: str = "en" if to_japanese else StringUtils.base_language(request.translate_to)
        gloss_language: str | None = self.gloss_languages.get(gloss_base)
        if gloss_language is None:
            msg: str = f"Jotoba has no glosses for '{request.translate_to}'"
            raise NotSupportedLanguagesError(msg)

        payload: dict[str, Any] = {"query": request.term, "language": gloss_language, "no_english": False}
        try:
            data: Any = await self.http.post(
                url=self.settings.ENDPOINT, data=payload, total_timeout=self.settings.CALL_TIMEOUT_SEC
            )
        except AsyncCommTimeoutError as err:
            raise ProviderTimeoutError(str(err)) from err
        except AsyncCommStatusError as err:
            if err.status == HTTP_TOO_MANY_REQUESTS:
                raise ProviderRateLimitedError(str(err)) from err
            if err.is_client_error:
                raise ProviderRejectedError(str(err)) from err
            raise ProviderUnavailableError(str(err)) from err
        except AsyncCommInvalidContentTypeError as err:
            raise MalformedProviderResponseError(str(err)) from err
        except AsyncCommError as err:
            raise ProviderUnavailableError(str(err)) from err

        return self._build_result(request, data, to_japanese=to_japanese)

    def _build_result(self, request: ProviderRequest, data: Any, *, to_japanese: bool) -> TranslationResult:
        """Decode the search response.

        Raises:
            MalformedProviderResponseError: If the payload does not have the documented shape.
            NoProviderResultError: If ``words`` is empty.
        """
        if not isinstance(data, dict) or not isinstance(data.get("words"), list):
            msg = "Jotoba response has no 'words' array"
            raise MalformedProviderResponseError(msg)
        if not data["words"]:
            msg = f"No Jotoba entry for '{request.term}'"
            raise NoProviderResultError(msg)

        word: Any = data["words"][0]
        reading: Any = word.get("reading") if isinstance(word, dict) else None
        senses: Any = word.get("senses") if isinstance(word, dict) else None
        if not isinstance(reading, dict) or not isinstance(reading.get("kana"), str) or not isinstance(senses, list):
            msg = "Jotoba word entry lacks 'reading.kana' or 'senses'"
            raise MalformedProviderResponseError(msg)

        definitions: list[Definition] = [self._decode_sense(sense) for sense in senses]
        definitions = [definition for definition in definitions if definition.gloss]
        kana: str = reading["kana"]
        headword: str = reading.get("kanji") or kana

        if to_japanese:
            translation: str = headword
        elif definitions:
            translation = "; ".join(definitions[0].gloss.split("; ")[:MAX_GLOSSES_IN_TRANSLATION])
        else:
            translation = ""
        if not translation:
            msg = f"Jotoba entry for '{request.term}' has no glosses"
            raise NoProviderResultError(msg)

        notes: dict[str, str] = {}
        if headword != request.original_term:
            notes["headword"] = headword
        return TranslationResult(
            term=request.original_term,
            language=request.lookup_language,
            translation=translation,
            script=kana,
            definitions=definitions,
            notes=notes,
        )

    @staticmethod
    def _decode_sense(sense: Any) -> Definition:
        if (
            not isinstance(sense, dict)
            or not isinstance(sense.get("glosses", []), list)
            or not isinstance(sense.get("pos") or [], list)
        ):
            msg = "Jotoba sense has an unexpected shape"
            raise MalformedProviderResponseError(msg)
        glosses: list[str] = [gloss for gloss in sense.get("glosses", []) if isinstance(gloss, str)]
        # "pos" holds plain tags ("Noun") or single-key objects ({"Verb": "Ichidan"}).
        pos_labels: list[str] = []
        for pos in sense.get("pos") or []:
            if isinstance(pos, str):
                pos_labels.append(pos)
            elif isinstance(pos, dict) and pos:
                pos_labels.append(str(next(iter(pos))))
            else:
                msg = f"Jotoba part of speech has an unexpected shape: {pos!r}"
                raise MalformedProviderResponseError(msg)
        return Definition(part_of_speech=", ".join(pos_labels), gloss="; ".join(glosses))

    async def close(self) -> None:
        if self._http is not None:
            await self._http.close()
        await super().close()
