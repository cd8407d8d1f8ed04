"""OpenAI chat completion provider.

Last resort of the cascade. The model is asked for a strict JSON dictionary entry; a reply that cannot
be decoded into an entry with a non-empty translation is a malformed response, never a result.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, ClassVar

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
)

from core.providers.interface import (
    MalformedProviderResponseError,
    ProviderAttributes,
    ProviderInterface,
    ProviderRateLimitedError,
    ProviderRejectedError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from models.lookup_models import Definition, ExamplePair, TranslationResult
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from core.providers.interface import ProviderRequest
    from models.config_models import ProviderSettings

__all__: list[str] = ["OpenAIGenerative"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "fr": "French",
    "es": "Spanish",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
}

COMMON_INSTRUCTION: str = (
    "You are an intelligent dictionary assistant. Explain the meaning of a word like you're chatting with "
    "a curious learner. Include context, slang (if any), tone and simple examples. Always return JSON format."
)

ENTRY_FORMAT: str = """Return only a JSON object with these keys:
{
  "translation": "<translation into %(translate_to)s>",
  "phonetic": "<romanized pronunciation of the %(language)s form, or null>",
  "kana": "<hiragana reading if the %(language)s form is Japanese, or null>",
  "pinyin": "<pinyin with tone marks if the %(language)s form is Chinese, or null>",
  "definitions": [
    {"partOfSpeech": "<part of speech>", "definition": "<meaning in %(ui)s>",
     "examples": [{"source": "<%(language)s sentence>", "target": "<%(ui)s translation>"}]}
  ],
  "correctedWord": "<corrected spelling if the input was misspelled, or null>",
  "slangMeaning": "<slang meaning in %(ui)s, or null>",
  "phraseExplanation": "<explanation in %(ui)s if the input is a phrase, or null>"
}"""

NOTE_FIELDS: dict[str, str] = {
    "correctedWord": "corrected_word",
    "slangMeaning": "slang_meaning",
    "phraseExplanation": "phrase_explanation",
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(StringUtils.base_language(code), code)


class OpenAIGenerative(ProviderInterface):
    """Generative dictionary entry via the OpenAI chat completions API."""

    attributes = ProviderAttributes(name="OpenAI", accepts_romanized=True)
    default_model: ClassVar[str] = "gpt-3.5-turbo"
    temperature: ClassVar[float] = 0.1
    max_tokens: ClassVar[int] = 1000

    def __init__(self) -> None:
        super().__init__()
        self._client: AsyncOpenAI | None = None

    @staticmethod
    def fetch_engine_name() -> str:
        return "openai"

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            msg = "The OpenAI client is not initialised"
            raise ProviderUnavailableError(msg)
        return self._client

    @property
    def model(self) -> str:
        return self.settings.MODEL or self.default_model

    def initialize(self, settings: ProviderSettings) -> None:
        """Create the async client. Retries are left to the orchestrator.

        Raises:
            RuntimeError: If ``OPENAI_API_OAUTH`` is not set.
        """
        super().initialize(settings)
        api_key: str = self.get_authentication_key()
        if not api_key:
            msg = "OPENAI_API_OAUTH is not set"
            raise RuntimeError(msg)
        self._client = AsyncOpenAI(api_key=api_key, timeout=settings.CALL_TIMEOUT_SEC, max_retries=0)
        logger.debug("'%s' initialized with model '%s'", self.__class__.__name__, self.model)

    @staticmethod
    def build_messages(request: ProviderRequest) -> list[dict[str, str]]:
        """Build the system and user messages for ``request``."""
        language: str = language_name(request.lookup_language)
        ui: str = language_name(request.ui_language)
        translate_to: str = language_name(request.translate_to)
        if StringUtils.base_language(request.lookup_language) == StringUtils.base_language(request.ui_language):
            system: str = COMMON_INSTRUCTION
        else:
            system = f"You are a {language}-{ui} dictionary assistant. All output should be in {ui}. {COMMON_INSTRUCTION}"

        if request.romanized:
            subject: str = f'The input "{request.original_term}" is romanized {language}. Interpret it as {language}.'
        else:
            subject = f'Look up "{request.term}" for a learner of {language}.'
        user: str = f"{subject}\n{ENTRY_FORMAT % {'translate_to': translate_to, 'language': language, 'ui': ui}}"
        return [{"role": "system", "content": system}, {"role": "user", "content": user}]

    async def lookup(self, request: ProviderRequest) -> TranslationResult:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(request),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except APITimeoutError as err:
            raise ProviderTimeoutError(str(err)) from err
        except RateLimitError as err:
            raise ProviderRateLimitedError(str(err)) from err
        except (AuthenticationError, PermissionDeniedError, BadRequestError, NotFoundError) as err:
            raise ProviderRejectedError(str(err)) from err
        except (APIConnectionError, InternalServerError, APIError) as err:
            raise ProviderUnavailableError(str(err)) from err

        content: str | None = completion.choices[0].message.content if completion.choices else None
        if not content:
            msg = "No response from OpenAI"
            raise MalformedProviderResponseError(msg)
        logger.debug("'raw response': '%s'", content)
        return self.decode_entry(request, content)

    @staticmethod
    def strip_code_fence(text: str) -> str:
        cleaned: str = text.strip()
        if cleaned.startswith("```json"):
            cleaned = cleaned.removeprefix("```json")
        elif cleaned.startswith("```"):
            cleaned = cleaned.removeprefix("```")
        return cleaned.removesuffix("```").strip()

    @classmethod
    def decode_entry(cls, request: ProviderRequest, content: str) -> TranslationResult:
        """Decode the model reply into a ``TranslationResult``.

        Only a surrounding markdown code fence is tolerated; anything else that is not a JSON object
        with a non-empty ``translation`` string is rejected.

        Raises:
            MalformedProviderResponseError: If the reply does not match the entry format.
        """
        try:
            data: Any = json.loads(cls.strip_code_fence(content))
        except json.JSONDecodeError as err:
            msg = f"OpenAI reply is not valid JSON: {err}"
            raise MalformedProviderResponseError(msg) from err
        if not isinstance(data, dict):
            msg = "OpenAI reply is not a JSON object"
            raise MalformedProviderResponseError(msg)

        translation: Any = data.get("translation")
        if not isinstance(translation, str) or not translation.strip():
            msg = "OpenAI reply has no translation"
            raise MalformedProviderResponseError(msg)

        base: str = StringUtils.base_language(request.lookup_language)
        phonetic: str | None = cls._optional_str(data, "phonetic")
        script: str | None = None
        if base == "ja":
            script = cls._optional_str(data, "kana")
        elif base == "zh":
            script = cls._optional_str(data, "pinyin")
            phonetic = phonetic or script

        notes: dict[str, str] = {}
        for key, note in NOTE_FIELDS.items():
            value: str | None = cls._optional_str(data, key)
            if value:
                notes[note] = value

        return TranslationResult(
            term=request.original_term,
            language=request.lookup_language,
            translation=translation.strip(),
            phonetic=phonetic,
            script=script,
            definitions=cls._decode_definitions(data.get("definitions")),
            notes=notes,
        )

    @staticmethod
    def _optional_str(data: dict[str, Any], key: str) -> str | None:
        value: Any = data.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            msg: str = f"OpenAI reply field '{key}' is not a string"
            raise MalformedProviderResponseError(msg)
        return value.strip() or None

    @staticmethod
    def _decode_definitions(raw: Any) -> list[Definition]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            msg = "OpenAI reply field 'definitions' is not an array"
            raise MalformedProviderResponseError(msg)
        definitions: list[Definition] = []
        for item in raw:
            if not isinstance(item, dict) or not isinstance(item.get("definition"), str):
                msg = "OpenAI definition entry has an unexpected shape"
                raise MalformedProviderResponseError(msg)
            raw_examples: Any = item.get("examples") or []
            if not isinstance(raw_examples, list) or not all(
                isinstance(example, dict)
                and isinstance(example.get("source"), str)
                and isinstance(example.get("target"), str)
                for example in raw_examples
            ):
                msg = "OpenAI example entries have an unexpected shape"
                raise MalformedProviderResponseError(msg)
            examples: list[ExamplePair] = [
                ExamplePair(source_text=example["source"], target_text=example["target"]) for example in raw_examples
            ]
            definitions.append(
                Definition(
                    part_of_speech=str(item.get("partOfSpeech") or ""),
                    gloss=item["definition"],
                    examples=examples,
                )
            )
        return definitions

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
        self._client = None
        await super().close()
