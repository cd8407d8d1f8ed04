"""Models for term lookup requests and results.

Defines the cache/coalescing key, the classifier output and the canonical translation record.
The record classes serialize to camelCase JSON through dataclasses-json so that persisted cache rows
and structured log lines share one shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from dataclasses_json import DataClassJsonMixin, LetterCase, dataclass_json

from models.provider_models import ProviderId
from utils.string_utils import StringUtils

__all__: list[str] = [
    "Classification",
    "Confidence",
    "Definition",
    "ExamplePair",
    "LookupRequest",
    "QueryKey",
    "ScriptTag",
    "TranslationResult",
]


class ScriptTag(StrEnum):
    """Dominant writing system of a term."""

    LATIN = "latin"
    CJK = "cjk"
    JAPANESE = "japanese"
    HANGUL = "hangul"
    CYRILLIC = "cyrillic"
    ARABIC = "arabic"
    THAI = "thai"
    DEVANAGARI = "devanagari"
    GREEK = "greek"
    HEBREW = "hebrew"


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Classification:
    """Classifier verdict for a term.

    Attributes:
        script (ScriptTag): Script with the plurality of letters. Latin on ties or when no letters match.
        confidence (Confidence): Share of letters belonging to the winning script.
        is_likely_romanization (bool): Latin input that is probably a romanized word of the target language.
    """

    script: ScriptTag
    confidence: Confidence
    is_likely_romanization: bool = False


@dataclass(frozen=True)
class QueryKey:
    """Immutable (normalized term, target language, UI language) triple.

    Used both as the cache index and as the coalescing key for in-flight resolutions.
    Use ``QueryKey.build`` to construct keys from raw input so normalization is applied uniformly.

    Attributes:
        normalized_term (str): Trimmed, NFC-normalized, case-folded (Latin only) term.
        target_language (str): Normalized target language code.
        ui_language (str): Normalized UI language code.
    """

    normalized_term: str
    target_language: str
    ui_language: str

    @classmethod
    def build(cls, term: str, target_language: str, ui_language: str) -> QueryKey:
        """Create a key from raw user input.

        Args:
            term (str): Raw term.
            target_language (str): Raw target language code.
            ui_language (str): Raw UI language code.

        Returns:
            QueryKey: Normalized key.
        """
        return cls(
            normalized_term=StringUtils.normalize_term(term),
            target_language=StringUtils.normalize_language(target_language),
            ui_language=StringUtils.normalize_language(ui_language),
        )

    @property
    def digest(self) -> str:
        """SHA-256 digest of the three fields, used as the persistent primary key."""
        return StringUtils.generate_hash_key(self.normalized_term, self.target_language, self.ui_language)

    def __str__(self) -> str:
        return f"({self.normalized_term!r}, {self.target_language}, {self.ui_language})"


@dataclass(frozen=True)
class LookupRequest:
    """Raw lookup request received from the calling application."""

    term: str
    target_language: str
    ui_language: str


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class ExamplePair(DataClassJsonMixin):
    source_text: str
    target_text: str


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class Definition(DataClassJsonMixin):
    """One sense of a term.

    Attributes:
        part_of_speech (str): Part of speech label as reported by the provider ("noun", "verb", ...).
        gloss (str): Definition text in the UI language.
        examples (list[ExamplePair]): Example sentences with translations.
    """

    part_of_speech: str
    gloss: str
    examples: list[ExamplePair] = field(default_factory=list)


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass(frozen=True)
class TranslationResult(DataClassJsonMixin):
    """Canonical resolution record.

    ``definitions`` may be empty for phrase and sentence translations. ``phonetic`` and ``script``
    are filled by the augmenter when the winning provider leaves them out.

    Attributes:
        term (str): The term as submitted by the caller.
        language (str): Target language code of the lookup.
        translation (str): Translation text. Never empty in an assembled record.
        phonetic (str | None): Romanized pronunciation (romaji, pinyin with tone marks, RR for Korean).
        script (str | None): Native reading (kana for Japanese, pinyin for Chinese).
        definitions (list[Definition]): Senses with glosses and examples.
        source_provider (ProviderId | None): Provider that satisfied the request.
        retrieved_at (datetime): When the provider answered.
        notes (dict[str, str]): Optional extras (corrected spelling, slang meaning, phrase explanation).
    """

    term: str
    language: str
    translation: str
    phonetic: str | None = None
    script: str | None = None
    definitions: list[Definition] = field(default_factory=list)
    source_provider: ProviderId | None = None
    retrieved_at: datetime = field(default_factory=lambda: datetime.now().astimezone())
    notes: dict[str, str] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        """Whether the record carries the one field a caller cannot do without."""
        return bool(self.translation and self.translation.strip())

    @property
    def has_phonetic(self) -> bool:
        return bool(self.phonetic)
