from __future__ import annotations

import pytest

from handlers.script_classifier import ScriptClassifier
from models.lookup_models import Classification, Confidence, ScriptTag


@pytest.mark.parametrize(
    ("term", "script"),
    [
        ("hello", ScriptTag.LATIN),
        ("你好", ScriptTag.CJK),
        ("すし", ScriptTag.JAPANESE),
        ("日本語です", ScriptTag.JAPANESE),
        ("한국어", ScriptTag.HANGUL),
        ("привет", ScriptTag.CYRILLIC),
        ("مرحبا", ScriptTag.ARABIC),
        ("สวัสดี", ScriptTag.THAI),
        ("नमस्ते", ScriptTag.DEVANAGARI),
        ("γειά", ScriptTag.GREEK),
        ("שלום", ScriptTag.HEBREW),
    ],
)
def test_classify_dominant_script(term: str, script: ScriptTag) -> None:
    assert ScriptClassifier.classify(term).script is script


def test_kanji_mixed_with_kana_counts_as_japanese() -> None:
    counts = ScriptClassifier.count_scripts("食べる")

    assert counts == {ScriptTag.JAPANESE: 3}


def test_input_without_letters_is_latin_with_low_confidence() -> None:
    for term in ("", "   ", "123", "!?"):
        classification: Classification = ScriptClassifier.classify(term, "ja")
        assert classification == Classification(script=ScriptTag.LATIN, confidence=Confidence.LOW)


def test_tie_goes_to_the_earlier_script() -> None:
    classification: Classification = ScriptClassifier.classify("a你")

    assert classification.script is ScriptTag.LATIN
    assert classification.confidence is Confidence.MEDIUM


def test_mixed_script_confidence() -> None:
    assert ScriptClassifier.classify("ab東京пр").confidence is Confidence.LOW
    assert ScriptClassifier.classify("東京tower").confidence is Confidence.MEDIUM
    assert ScriptClassifier.classify("東京").confidence is Confidence.HIGH


@pytest.mark.parametrize(
    ("term", "target", "expected"),
    [
        ("game", "ja", True),
        ("sushi", "ja", True),
        ("konnichiwa", "ja", True),
        ("hello", "ja", False),
        ("strong", "ja", False),
        ("cat", "ja", False),
        ("sushi", "en", False),
        ("sushi", None, False),
        ("ni hao", "zh", True),
        ("xiexie", "zh-CN", True),
        ("tomorrow", "zh", False),
        ("good morning", "zh", False),
        ("thank you", "zh", False),
        ("please", "zh", False),
        ("no", "zh", False),
        ("annyeong", "ko", True),
        ("world", "ko", False),
        ("privet", "ru", False),
    ],
)
def test_romanization_heuristic(term: str, target: str | None, expected: bool) -> None:
    assert ScriptClassifier.classify(term, target).is_likely_romanization is expected


def test_romanization_never_flagged_for_native_script() -> None:
    assert ScriptClassifier.classify("すし", "ja").is_likely_romanization is False


def test_classification_is_deterministic() -> None:
    assert ScriptClassifier.classify("Game", "ja") == ScriptClassifier.classify("Game", "ja")


@pytest.mark.parametrize(
    ("script", "language", "expected"),
    [
        (ScriptTag.CJK, "ja", True),
        (ScriptTag.JAPANESE, "ja-JP", True),
        (ScriptTag.CJK, "zh-TW", True),
        (ScriptTag.LATIN, "ja", False),
        (ScriptTag.LATIN, "fr", True),
        (ScriptTag.CYRILLIC, "en", False),
        (ScriptTag.LATIN, "sr", True),
    ],
)
def test_is_native_script(script: ScriptTag, language: str, expected: bool) -> None:
    assert ScriptClassifier.is_native_script(script, language) is expected
