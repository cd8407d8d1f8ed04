"""Romanization and kana conversion utilities.

Readings of non-Latin text come from the usual libraries:

    - Kanji and kana to Hepburn romaji and a hiragana reading (pykakasi)
    - Hanzi to tone-marked pinyin (pypinyin)
    - Hangul to Revised Romanization (korean_romanizer)

Romaji to hiragana, used to try romanized input as a Japanese word, stays table driven.

Characters a converter leaves alone are never dropped: they are kept verbatim and separated from the
surrounding romanization by single spaces.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Final

import pykakasi
from korean_romanizer.romanizer import Romanizer
from pypinyin import Style, lazy_pinyin

from models.re_models import CJK_IDEOGRAPH_PATTERN
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Iterator

__all__: list[str] = ["HangulRomanizer", "JapaneseRomanizer", "PinyinRomanizer", "Romaji", "RomanizedText"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

_SOKUON: Final[str] = "っ"
_HATSUON: Final[str] = "ん"
_HANGUL_FIRST: Final[str] = "가"
_HANGUL_LAST: Final[str] = "힣"


def _build_kana_table() -> dict[str, str]:
    rows: dict[str, tuple[str, ...]] = {
        "": ("あ", "い", "う", "え", "お"),
        "k": ("か", "き", "く", "け", "こ"),
        "g": ("が", "ぎ", "ぐ", "げ", "ご"),
        "s": ("さ", "し", "す", "せ", "そ"),
        "z": ("ざ", "じ", "ず", "ぜ", "ぞ"),
        "t": ("た", "ち", "つ", "て", "と"),
        "d": ("だ", "ぢ", "づ", "で", "ど"),
        "n": ("な", "に", "ぬ", "ね", "の"),
        "h": ("は", "ひ", "ふ", "へ", "ほ"),
        "b": ("ば", "び", "ぶ", "べ", "ぼ"),
        "p": ("ぱ", "ぴ", "ぷ", "ぺ", "ぽ"),
        "m": ("ま", "み", "む", "め", "も"),
        "r": ("ら", "り", "る", "れ", "ろ"),
    }
    table: dict[str, str] = {}
    for consonant, kana_row in rows.items():
        for kana, vowel in zip(kana_row, "aiueo", strict=True):
            table[kana] = consonant + vowel

    # Hepburn exceptions
    table.update({"し": "shi", "じ": "ji", "ち": "chi", "ぢ": "ji", "つ": "tsu", "づ": "zu", "ふ": "fu"})
    table.update({"や": "ya", "ゆ": "yu", "よ": "yo", "わ": "wa", "ゐ": "i", "ゑ": "e", "を": "o", "ゔ": "vu"})
    table.update({"ぁ": "a", "ぃ": "i", "ぅ": "u", "ぇ": "e", "ぉ": "o", "ゃ": "ya", "ゅ": "yu", "ょ": "yo"})
    table["ゎ"] = "wa"
    table[_HATSUON] = "n"

    # Palatalized syllables (youon)
    for base, head in {
        "き": "ky",
        "ぎ": "gy",
        "に": "ny",
        "ひ": "hy",
        "び": "by",
        "ぴ": "py",
        "み": "my",
        "り": "ry",
    }.items():
        for small, vowel in (("ゃ", "a"), ("ゅ", "u"), ("ょ", "o")):
            table[base + small] = head + vowel
    for base, head in {"し": "sh", "じ": "j", "ち": "ch", "ぢ": "j"}.items():
        for small, vowel in (("ゃ", "a"), ("ゅ", "u"), ("ょ", "o"), ("ぇ", "e")):
            table[base + small] = head + vowel

    # Loanword combinations
    table.update(
        {
            "ふぁ": "fa",
            "ふぃ": "fi",
            "ふぇ": "fe",
            "ふぉ": "fo",
            "てぃ": "ti",
            "でぃ": "di",
            "とぅ": "tu",
            "どぅ": "du",
            "うぃ": "wi",
            "うぇ": "we",
            "うぉ": "wo",
            "ゔぁ": "va",
            "ゔぃ": "vi",
            "ゔぇ": "ve",
            "ゔぉ": "vo",
            "つぁ": "tsa",
        }
    )
    return table


KANA_ROMAJI_TABLE: Final[dict[str, str]] = _build_kana_table()


@dataclass(frozen=True)
class RomanizedText:
    """Conversion output.

    Attributes:
        text (str): Converted text with unmapped characters kept and space separated.
        mapped (int): Number of source characters the converter produced a reading for.
        unmapped (int): Number of non-space source characters that were kept verbatim.
        reading (str | None): Native phonetic spelling (hiragana for Japanese), when the converter gives one.
    """

    text: str
    mapped: int
    unmapped: int
    reading: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.mapped > 0 and self.unmapped == 0


def _split_runs(text: str, is_native: Callable[[str], bool]) -> Iterator[tuple[bool, str]]:
    """Yield ``(native, chunk)`` runs of ``text``; whitespace ends a run and is not yielded."""
    current: list[str] = []
    current_native: bool = False
    for char in text:
        if char.isspace():
            if current:
                yield current_native, "".join(current)
            current = []
            continue
        native: bool = is_native(char)
        if current and native != current_native:
            yield current_native, "".join(current)
            current = []
        current_native = native
        current.append(char)
    if current:
        yield current_native, "".join(current)


def _visible_length(text: str) -> int:
    return sum(1 for char in text if not char.isspace())


class JapaneseRomanizer:
    """Convert Japanese text (kanji, hiragana, katakana) to Hepburn romaji with pykakasi."""

    _kakasi: ClassVar[Any] = None

    @classmethod
    def converter(cls) -> Any:
        if cls._kakasi is None:
            cls._kakasi = pykakasi.kakasi()
            logger.debug("pykakasi converter initialized")
        return cls._kakasi

    @staticmethod
    def _is_converted(orig: str, roman: str) -> bool:
        return bool(roman.strip()) and roman.isascii() and not orig.isascii()

    @classmethod
    def romanize(cls, text: str) -> RomanizedText:
        """Convert ``text`` to romaji, one space between the words pykakasi segments.

        Args:
            text (str): Japanese text, possibly mixed with other characters.

        Returns:
            RomanizedText: Romaji with unmapped characters preserved. ``reading`` holds the hiragana
                spelling when every character was converted.
        """
        segments: list[str] = []
        readings: list[str] = []
        mapped: int = 0
        unmapped: int = 0
        for item in cls.converter().convert(text):
            orig: str = item["orig"]
            roman: str = item["hepburn"]
            if not orig.strip():
                continue
            if cls._is_converted(orig, roman):
                segments.append(roman.strip())
                readings.append(item["hira"].strip())
                mapped += _visible_length(orig)
            else:
                segments.extend(orig.split())
                unmapped += _visible_length(orig)

        reading: str | None = "".join(readings) if mapped and not unmapped else None
        return RomanizedText(text=" ".join(segments), mapped=mapped, unmapped=unmapped, reading=reading)


class Romaji:
    """Convert romanized Japanese (romaji) to hiragana.

    Uses a longest-match lookup over the inverse of the kana table plus the common Kunrei/Nihon-shiki
    spellings, with the usual rules for the moraic n and doubled consonants.

    Attributes:
        tree (dict[str, str]): Mapping of romaji units to hiragana.
        max_unit_len (int): Length of the longest romaji unit.
    """

    tree: ClassVar[dict[str, str]] = {}
    max_unit_len: ClassVar[int] = 0

    @classmethod
    def _ensure_tree(cls) -> None:
        if cls.tree:
            return
        tree: dict[str, str] = {}
        for kana, roman in KANA_ROMAJI_TABLE.items():
            # Prefer the first (standard) kana for ambiguous readings such as "ji" and "zu".
            if kana in (_HATSUON, "ぢ", "づ", "ゐ", "ゑ", "を") or kana[0] in "ぁぃぅぇぉゃゅょゎ":
                continue
            tree.setdefault(roman, kana)
        tree.update(
            {
                "si": "し",
                "zi": "じ",
                "ti": "ち",
                "tu": "つ",
                "hu": "ふ",
                "di": "ぢ",
                "du": "づ",
                "wo": "を",
                "sya": "しゃ",
                "syu": "しゅ",
                "syo": "しょ",
                "zya": "じゃ",
                "zyu": "じゅ",
                "zyo": "じょ",
                "jya": "じゃ",
                "jyu": "じゅ",
                "jyo": "じょ",
                "tya": "ちゃ",
                "tyu": "ちゅ",
                "tyo": "ちょ",
                "nn": _HATSUON,
                "n'": _HATSUON,
            }
        )
        cls.tree = tree
        cls.max_unit_len = max(len(key) for key in tree)
        logger.debug("Romaji lookup tree built with %d units", len(tree))

    @classmethod
    def is_unit(cls, tokens: str, s: int = 0) -> bool:
        return any(tokens[s : s + i] in cls.tree for i in range(cls.max_unit_len, 0, -1))

    @classmethod
    def get_unit(cls, tokens: str, s: int = 0) -> tuple[str, int]:
        for i in range(cls.max_unit_len, 0, -1):
            if tokens[s : s + i] in cls.tree:
                return cls.tree[tokens[s : s + i]], s + i
        return "", s

    @classmethod
    def is_hatsuon(cls, tokens: str, s: int = 0) -> bool:
        """Check if the position is a moraic n ('n' not followed by a vowel, or 'm' before b/m/p)."""
        if s >= len(tokens):
            return False
        ch: str = tokens[s]
        if ch == "n":
            return s + 1 == len(tokens) or tokens[s + 1] not in "aiueoy"
        if ch == "m":
            return s + 1 < len(tokens) and tokens[s + 1] in "bmp"
        return False

    @classmethod
    def is_sokuon(cls, tokens: str, s: int = 0) -> bool:
        """Check if the position doubles the next consonant ("kk", "tch")."""
        if s + 1 >= len(tokens) or not tokens[s].isalpha() or tokens[s] in "aiueonm":
            return False
        return tokens[s] == tokens[s + 1] or tokens[s : s + 3] == "tch"

    @classmethod
    def to_kana(cls, text: str) -> RomanizedText:
        """Convert romaji to hiragana.

        Args:
            text (str): Romanized text, case-insensitive.

        Returns:
            RomanizedText: Hiragana text. ``is_complete`` is False when any letter could not be placed.
        """
        cls._ensure_tree()
        tokens: str = text.lower()
        res: list[str] = []
        mapped: int = 0
        unmapped: int = 0
        idx: int = 0
        while idx < len(tokens):
            if cls.is_sokuon(tokens, idx):
                res.append(_SOKUON)
                mapped += 1
                idx += 1
            elif cls.is_hatsuon(tokens, idx):
                res.append(_HATSUON)
                mapped += 1
                idx += 1
            elif cls.is_unit(tokens, idx):
                kana, next_idx = cls.get_unit(tokens, idx)
                res.append(kana)
                mapped += next_idx - idx
                idx = next_idx
            else:
                if not tokens[idx].isspace():
                    unmapped += 1
                res.append(tokens[idx])
                idx += 1
        return RomanizedText(text="".join(res), mapped=mapped, unmapped=unmapped)




class PinyinRomanizer:
    """Convert hanzi to tone-marked pinyin with pypinyin."""

    @staticmethod
    def romanize(text: str) -> RomanizedText:
        """Convert ``text`` to pinyin, one space between syllables.

        Args:
            text (str): Chinese text.

        Returns:
            RomanizedText: Space-separated pinyin; characters without a reading are kept verbatim.
        """
        segments: list[str] = []
        mapped: int = 0
        unmapped: int = 0
        for native, chunk in _split_runs(text, lambda char: CJK_IDEOGRAPH_PATTERN.match(char) is not None):
            if not native:
                segments.append(chunk)
                unmapped += len(chunk)
                continue
            for syllable in lazy_pinyin(chunk, style=Style.TONE):
                segments.append(syllable)
                if CJK_IDEOGRAPH_PATTERN.search(syllable):
                    unmapped += len(syllable)
                else:
                    mapped += 1
        return RomanizedText(text=" ".join(segments), mapped=mapped, unmapped=unmapped)


class HangulRomanizer:
    """Convert hangul syllables to Revised Romanization with korean_romanizer."""

    @staticmethod
    def romanize(text: str) -> RomanizedText:
        segments: list[str] = []
        mapped: int = 0
        unmapped: int = 0
        for native, chunk in _split_runs(text, lambda char: _HANGUL_FIRST <= char <= _HANGUL_LAST):
            if native:
                segments.append(Romanizer(chunk).romanize())
                mapped += len(chunk)
            else:
                segments.append(chunk)
                unmapped += len(chunk)
        return RomanizedText(text=" ".join(segments), mapped=mapped, unmapped=unmapped)
