"""Writing system detection for lookup terms.

Counts characters per Unicode script block, picks the plurality script and decides whether Latin input
is more likely a romanized word of the target language than genuine English.
"""

from __future__ import annotations

import re
from collections import Counter
from re import Pattern
from typing import TYPE_CHECKING, ClassVar, Final

from handlers.romanizer import Romaji
from models.lookup_models import Classification, Confidence, ScriptTag
from models.re_models import (
    ARABIC_PATTERN,
    CJK_IDEOGRAPH_PATTERN,
    CYRILLIC_PATTERN,
    DEVANAGARI_PATTERN,
    GREEK_PATTERN,
    HANGUL_PATTERN,
    HEBREW_PATTERN,
    KANA_PATTERN,
    LATIN_LETTER_PATTERN,
    ROMAN_PHRASE_PATTERN,
    ROMAN_WORD_PATTERN,
    THAI_PATTERN,
)
from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

__all__: list[str] = ["NATIVE_SCRIPTS", "ScriptClassifier"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

COMMON_ENGLISH_WORDS: Final[frozenset[str]] = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "can", "must", "shall",
        "hello", "world", "good", "bad", "nice", "beautiful", "wonderful", "amazing",
    }
)  # fmt: skip

# Time words and courtesy phrases are frequently typed by learners of Chinese and collide with pinyin-shaped strings.
COMMON_ENGLISH_WORDS_ZH: Final[frozenset[str]] = COMMON_ENGLISH_WORDS | {
    "tomorrow",
    "today",
    "yesterday",
    "morning",
    "afternoon",
    "evening",
    "yes",
    "no",
    "please",
    "thank",
    "you",
}

# Language codes whose usual orthography is not Latin.
NON_LATIN_TARGETS: Final[frozenset[str]] = frozenset(
    {"ja", "zh", "ko", "ru", "uk", "bg", "sr", "el", "he", "ar", "fa", "ur", "hi", "mr", "ne", "th"}
)

# Scripts a term of each language is normally written in. Unlisted languages are Latin-scripted.
NATIVE_SCRIPTS: Final[dict[str, frozenset[ScriptTag]]] = {
    "ja": frozenset({ScriptTag.JAPANESE, ScriptTag.CJK}),
    "zh": frozenset({ScriptTag.CJK}),
    "ko": frozenset({ScriptTag.HANGUL}),
    "ru": frozenset({ScriptTag.CYRILLIC}),
    "uk": frozenset({ScriptTag.CYRILLIC}),
    "bg": frozenset({ScriptTag.CYRILLIC}),
    "sr": frozenset({ScriptTag.CYRILLIC, ScriptTag.LATIN}),
    "el": frozenset({ScriptTag.GREEK}),
    "he": frozenset({ScriptTag.HEBREW}),
    "ar": frozenset({ScriptTag.ARABIC}),
    "fa": frozenset({ScriptTag.ARABIC}),
    "ur": frozenset({ScriptTag.ARABIC}),
    "hi": frozenset({ScriptTag.DEVANAGARI}),
    "mr": frozenset({ScriptTag.DEVANAGARI}),
    "ne": frozenset({ScriptTag.DEVANAGARI}),
    "th": frozenset({ScriptTag.THAI}),
}

_ROMAJI_PATTERNS: Final[tuple[Pattern[str], ...]] = (
    re.compile(r"^[aeiou]"),
    re.compile(r"[aeiou]$"),
    re.compile(r"^[kgsztdnhbpmyrw][aeiou]"),
    re.compile(r"[kgsztdnhbpmyrw][aeiou]$"),
)
_PINYIN_WORD_PATTERN: Final[Pattern[str]] = re.compile(r"^[a-z]*[aeiouv][a-z]*$")
_KOREAN_RR_PATTERN: Final[Pattern[str]] = re.compile(
    r"^(?:(?:kk|tt|pp|ss|jj|ch|[gkndrlmbsjtph])?"
    r"(?:yae|yeo|wae|ae|ya|eo|ye|wa|oe|yo|wo|we|wi|yu|eu|ui|a|e|o|u|i)"
    r"(?:ng|[kntlmp])?)+$"
)


class ScriptClassifier:
    """Classify the dominant writing system of a term.

    All methods are pure: the same input always yields the same ``Classification``.
    """

    # Order matters for ties: the earlier script wins, Latin first.
    script_patterns: ClassVar[tuple[tuple[ScriptTag, Pattern[str]], ...]] = (
        (ScriptTag.LATIN, LATIN_LETTER_PATTERN),
        (ScriptTag.CJK, CJK_IDEOGRAPH_PATTERN),
        (ScriptTag.JAPANESE, KANA_PATTERN),
        (ScriptTag.HANGUL, HANGUL_PATTERN),
        (ScriptTag.CYRILLIC, CYRILLIC_PATTERN),
        (ScriptTag.ARABIC, ARABIC_PATTERN),
        (ScriptTag.THAI, THAI_PATTERN),
        (ScriptTag.DEVANAGARI, DEVANAGARI_PATTERN),
        (ScriptTag.GREEK, GREEK_PATTERN),
        (ScriptTag.HEBREW, HEBREW_PATTERN),
    )
    romanization_min_length: ClassVar[int] = 2
    romanization_max_length: ClassVar[int] = 20
    pinyin_max_length: ClassVar[int] = 50
    pinyin_max_words: ClassVar[int] = 3

    @classmethod
    def count_scripts(cls, term: str) -> Counter[ScriptTag]:
        """Count characters per script.

        Kana anywhere in the term turns ideographs into Japanese (kanji mixed with kana).

        Args:
            term (str): Raw input.

        Returns:
            Counter[ScriptTag]: Character counts, zero counts omitted.
        """
        counts: Counter[ScriptTag] = Counter()
        for char in term:
            for tag, pattern in cls.script_patterns:
                if pattern.match(char):
                    counts[tag] += 1
                    break
        if counts[ScriptTag.JAPANESE] and counts[ScriptTag.CJK]:
            counts[ScriptTag.JAPANESE] += counts.pop(ScriptTag.CJK)
        return +counts

    @classmethod
    def classify(cls, term: str, target_language: str | None = None) -> Classification:
        """Assign the dominant script and romanization likelihood.

        Args:
            term (str): Raw input text.
            target_language (str | None): Target language code. Romanization is only considered for
                non-Latin targets.

        Returns:
            Classification: Script, confidence and romanization flag.
        """
        counts: Counter[ScriptTag] = cls.count_scripts(term)
        total: int = sum(counts.values())
        if total == 0:
            return Classification(script=ScriptTag.LATIN, confidence=Confidence.LOW)

        best: int = max(counts.values())
        script: ScriptTag = next(tag for tag, _ in cls.script_patterns if counts[tag] == best)
        ratio: float = best / total
        if ratio >= 0.8:
            confidence = Confidence.HIGH
        elif ratio >= 0.5:
            confidence = Confidence.MEDIUM
        else:
            confidence = Confidence.LOW

        romanized: bool = script == ScriptTag.LATIN and cls.is_likely_romanization(term, target_language)
        logger.debug(
            "Classified '%s' as %s (%s, romanized=%s, counts=%s)", term, script, confidence, romanized, dict(counts)
        )
        return Classification(script=script, confidence=confidence, is_likely_romanization=romanized)

    @staticmethod
    def is_native_script(script: ScriptTag, language: str) -> bool:
        """Whether ``script`` is an ordinary way of writing ``language``."""
        return script in NATIVE_SCRIPTS.get(StringUtils.base_language(language), frozenset({ScriptTag.LATIN}))

    @classmethod
    def is_likely_romanization(cls, term: str, target_language: str | None) -> bool:
        """Decide whether Latin input is a romanized word of ``target_language``.

        Args:
            term (str): Latin-script input.
            target_language (str | None): Target language code.

        Returns:
            bool: True only for non-Latin targets with a matching romanization heuristic.
        """
        if not target_language:
            return False
        base: str = StringUtils.base_language(target_language)
        if base not in NON_LATIN_TARGETS:
            return False
        text: str = StringUtils.compress_blanks(term).lower()
        if base == "ja":
            return cls._is_romaji(text)
        if base == "zh":
            return cls._is_pinyin(text)
        if base == "ko":
            return cls._is_korean_romanization(text)
        return False

    @classmethod
    def _within_word_bounds(cls, text: str) -> bool:
        return (
            ROMAN_WORD_PATTERN.match(text) is not None
            and cls.romanization_min_length <= len(text) <= cls.romanization_max_length
            and text not in COMMON_ENGLISH_WORDS
        )

    @classmethod
    def _is_romaji(cls, text: str) -> bool:
        if not cls._within_word_bounds(text):
            return False
        if not any(pattern.search(text) for pattern in _ROMAJI_PATTERNS):
            return False
        # Every letter must land on a kana; "cat" or "strong" cannot be Japanese.
        return Romaji.to_kana(text).is_complete

    @classmethod
    def _is_pinyin(cls, text: str) -> bool:
        if ROMAN_PHRASE_PATTERN.match(text) is None:
            return False
        if not cls.romanization_min_length <= len(text) <= cls.pinyin_max_length:
            return False
        words: list[str] = text.split(" ")
        if len(words) > cls.pinyin_max_words or text in COMMON_ENGLISH_WORDS_ZH:
            return False
        if any(word in COMMON_ENGLISH_WORDS_ZH for word in words):
            return False
        return all(_PINYIN_WORD_PATTERN.match(word) for word in words)

    @classmethod
    def _is_korean_romanization(cls, text: str) -> bool:
        return cls._within_word_bounds(text) and _KOREAN_RR_PATTERN.match(text) is not None
