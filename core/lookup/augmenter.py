"""Phonetic and script augmentation of resolved entries.

Fills ``phonetic`` and ``script`` with the romanizers when the winning provider left them out.
Characters the converters leave alone are kept verbatim, and nothing is guessed when no character maps.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from handlers.romanizer import HangulRomanizer, JapaneseRomanizer, PinyinRomanizer
from handlers.script_classifier import ScriptClassifier
from models.lookup_models import ScriptTag
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from handlers.romanizer import RomanizedText
    from models.lookup_models import TranslationResult

__all__: list[str] = ["PhoneticAugmenter"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class PhoneticAugmenter:
    """Derive readings for Japanese, Chinese and Korean entries. Pure, no I/O."""

    @classmethod
    def augment(cls, result: TranslationResult) -> TranslationResult:
        """Return ``result`` with missing ``phonetic``/``script`` filled where a reading can be derived.

        Args:
            result (TranslationResult): Entry from the winning provider.

        Returns:
            TranslationResult: The same object when nothing was missing or nothing could be derived,
                otherwise an updated copy.
        """
        if result.phonetic and result.script:
            return result

        base: str = StringUtils.base_language(result.language)
        if base == "ja":
            phonetic, script = cls._japanese(result)
        elif base == "zh":
            phonetic, script = cls._chinese(result)
        elif base == "ko":
            phonetic, script = cls._korean(result)
        else:
            return result

        phonetic = result.phonetic or phonetic
        script = result.script or script
        if phonetic == result.phonetic and script == result.script:
            return result
        logger.debug("Augmented '%s': phonetic=%r script=%r", result.term, phonetic, script)
        return replace(result, phonetic=phonetic, script=script)

    @staticmethod
    def native_text(result: TranslationResult) -> str | None:
        """First of script, term and translation written in the entry language's own script."""
        for text in (result.script, result.term, result.translation):
            if not text:
                continue
            counts = ScriptClassifier.count_scripts(text)
            if any(ScriptClassifier.is_native_script(tag, result.language) for tag in counts if tag != ScriptTag.LATIN):
                return text
        return None

    @classmethod
    def _japanese(cls, result: TranslationResult) -> tuple[str | None, str | None]:
        text: str | None = cls.native_text(result)
        if text is None:
            return None, None
        romaji: RomanizedText = JapaneseRomanizer.romanize(text)
        if romaji.mapped == 0:
            return None, None
        return romaji.text, romaji.reading

    @classmethod
    def _chinese(cls, result: TranslationResult) -> tuple[str | None, str | None]:
        text: str | None = cls.native_text(result)
        if text is None:
            return None, None
        pinyin: RomanizedText = PinyinRomanizer.romanize(text)
        if pinyin.mapped == 0:
            return None, None
        return pinyin.text, pinyin.text

    @classmethod
    def _korean(cls, result: TranslationResult) -> tuple[str | None, str | None]:
        text: str | None = cls.native_text(result)
        if text is None:
            return None, None
        romanized: RomanizedText = HangulRomanizer.romanize(text)
        if romanized.mapped == 0:
            return None, None
        return romanized.text, None
