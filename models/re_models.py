"""Regular expressions for term classification.

Unicode block patterns per writing system, plus the word/sentence shape patterns used by the
classifier and the cache key normalization.
"""

from __future__ import annotations

import re
from re import Pattern
from typing import Final

__all__: list[str] = [
    "ARABIC_PATTERN",
    "CJK_IDEOGRAPH_PATTERN",
    "CYRILLIC_PATTERN",
    "DEVANAGARI_PATTERN",
    "GREEK_PATTERN",
    "HANGUL_PATTERN",
    "HEBREW_PATTERN",
    "KANA_PATTERN",
    "LATIN_LETTER_PATTERN",
    "MULTI_WORD_PATTERN",
    "ROMAN_PHRASE_PATTERN",
    "ROMAN_WORD_PATTERN",
    "THAI_PATTERN",
]

# Unified ideographs, extension A and compatibility ideographs.
# Example: "你好", "日本"
CJK_IDEOGRAPH_PATTERN: Final[Pattern[str]] = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff]")

# Hiragana, katakana, katakana phonetic extensions and halfwidth katakana.
# The prolonged sound mark (U+30FC) sits inside the katakana block.
KANA_PATTERN: Final[Pattern[str]] = re.compile(r"[\u3040-\u309f\u30a0-\u30ff\u31f0-\u31ff\uff66-\uff9f]")

# Precomposed syllables plus conjoining and compatibility jamo.
HANGUL_PATTERN: Final[Pattern[str]] = re.compile(r"[\uac00-\ud7af\u1100-\u11ff\u3130-\u318f]")

CYRILLIC_PATTERN: Final[Pattern[str]] = re.compile(r"[\u0400-\u04ff\u0500-\u052f]")
ARABIC_PATTERN: Final[Pattern[str]] = re.compile(r"[\u0600-\u06ff\u0750-\u077f]")
THAI_PATTERN: Final[Pattern[str]] = re.compile(r"[\u0e00-\u0e7f]")
DEVANAGARI_PATTERN: Final[Pattern[str]] = re.compile(r"[\u0900-\u097f]")
GREEK_PATTERN: Final[Pattern[str]] = re.compile(r"[\u0370-\u03ff]")
HEBREW_PATTERN: Final[Pattern[str]] = re.compile(r"[\u0590-\u05ff]")

# Basic Latin letters and Latin-1 / Extended-A / Extended-B letters (accented forms).
LATIN_LETTER_PATTERN: Final[Pattern[str]] = re.compile(r"[A-Za-z\u00c0-\u00d6\u00d8-\u00f6\u00f8-\u024f]")

# Whitespace or sentence punctuation in either ASCII or fullwidth/CJK form.
# Example: "good morning", "お元気ですか？", "hi!"
MULTI_WORD_PATTERN: Final[Pattern[str]] = re.compile(r"[\s.,!?;:\u3001\u3002\uff01\uff1f\uff0c\uff1b\uff1a]")

# A single token made only of ASCII letters.
# Example: "game", "Sushi"
ROMAN_WORD_PATTERN: Final[Pattern[str]] = re.compile(r"^[A-Za-z]+$")

# ASCII letters separated by single spaces (pinyin is often typed syllable by syllable).
# Example: "ni hao", "xie xie"
ROMAN_PHRASE_PATTERN: Final[Pattern[str]] = re.compile(r"^[a-z]+(?: [a-z]+)*$")
