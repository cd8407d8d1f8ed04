"""Text handling utilities for the term resolver.

This package provides writing system classification, romanization tables (kana, pinyin, hangul)
and the asynchronous HTTP client used by HTTP-based providers.
"""

from handlers.async_comm import (
    AsyncCommError,
    AsyncCommInvalidContentTypeError,
    AsyncCommStatusError,
    AsyncCommTimeoutError,
    AsyncHttp,
)
from handlers.romanizer import HangulRomanizer, JapaneseRomanizer, PinyinRomanizer, Romaji, RomanizedText
from handlers.script_classifier import ScriptClassifier

__all__: list[str] = [
    "AsyncCommError",
    "AsyncCommInvalidContentTypeError",
    "AsyncCommStatusError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
    "HangulRomanizer",
    "JapaneseRomanizer",
    "PinyinRomanizer",
    "Romaji",
    "RomanizedText",
    "ScriptClassifier",
]
