from __future__ import annotations

import pytest

from utils.string_utils import StringUtils


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("  Sushi ", "sushi"),
        ("Good\t\nMorning", "good morning"),
        ("東京", "東京"),
        ("école", "école"),
        (None, ""),
    ],
)
def test_normalize_term(raw: str, expected: str) -> None:
    assert StringUtils.normalize_term(raw) == expected


@pytest.mark.parametrize(
    ("code", "expected", "base"),
    [("EN", "en", "en"), ("zh_cn", "zh-CN", "zh"), (" pt-br ", "pt-BR", "pt"), ("", "", "")],
)
def test_language_codes(code: str, expected: str, base: str) -> None:
    assert StringUtils.normalize_language(code) == expected
    assert StringUtils.base_language(code) == base


@pytest.mark.parametrize(
    ("term", "expected"),
    [("game", False), ("寿司", False), ("good morning", True), ("お元気ですか？", True), ("hi!", True), (" game ", False)],
)
def test_is_multi_word(term: str, expected: bool) -> None:
    assert StringUtils.is_multi_word(term) is expected


def test_hash_key_is_stable_and_separated() -> None:
    digest: str = StringUtils.generate_hash_key("game", "ja", "en")

    assert digest == StringUtils.generate_hash_key("game", "ja", "en")
    assert digest != StringUtils.generate_hash_key("gam", "eja", "en")
    assert StringUtils.short_key(digest) == digest[:16]
