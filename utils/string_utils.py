from __future__ import annotations

import hashlib
import unicodedata
from typing import Final

from models.re_models import LATIN_LETTER_PATTERN, MULTI_WORD_PATTERN

__all__: list[str] = ["StringUtils"]

KEY_DIGEST_PREFIX_LENGTH: Final[int] = 16  # Characters of the digest shown in log lines.


class StringUtils:
    """Utility class for term normalization and key hashing.

    Provides static methods shared by the classifier, the cache tiers and the providers.
    """

    @staticmethod
    def ensure_str(value: str | None) -> str:
        """Ensure that the value is a string, returning an empty string if None.

        Args:
            value (str | None): The value to ensure as a string.

        Returns:
            str: The value as a string, or empty string if None.
        """
        if not isinstance(value, str):
            value = str(value) if value is not None else ""
        return value

    @staticmethod
    def compress_blanks(value: str) -> str:
        """Collapse runs of whitespace into single spaces and strip both ends.

        Args:
            value (str): The string to compress.

        Returns:
            str: The compressed string.
        """
        return " ".join(StringUtils.ensure_str(value).split())

    @staticmethod
    def normalize_text(text: str) -> str:
        """Normalize text using Unicode NFC normalization.

        Args:
            text (str): Text to normalize.

        Returns:
            str: Normalized text.
        """
        return unicodedata.normalize("NFC", text)

    @staticmethod
    def normalize_term(term: str) -> str:
        """Build the canonical form of a user-entered term.

        The term is NFC-normalized and whitespace-compressed. Terms containing Latin letters are
        case-folded; terms written purely in caseless scripts are returned as typed.

        Args:
            term (str): Raw user input.

        Returns:
            str: Normalized term, possibly empty.
        """
        normalized: str = StringUtils.compress_blanks(StringUtils.normalize_text(StringUtils.ensure_str(term)))
        if LATIN_LETTER_PATTERN.search(normalized):
            return normalized.casefold()
        return normalized

    @staticmethod
    def normalize_language(code: str) -> str:
        """Normalize a language code: trimmed, region kept, underscores replaced (``zh_cn`` -> ``zh-CN``).

        Args:
            code (str): Language code as supplied by the caller.

        Returns:
            str: Normalized language code.
        """
        parts: list[str] = StringUtils.ensure_str(code).strip().replace("_", "-").split("-")
        if not parts or not parts[0]:
            return ""
        base: str = parts[0].lower()
        if len(parts) == 1:
            return base
        return f"{base}-{parts[1].upper()}"

    @staticmethod
    def base_language(code: str) -> str:
        """Return the primary subtag of a language code (``zh-CN`` -> ``zh``)."""
        return StringUtils.normalize_language(code).split("-")[0]

    @staticmethod
    def is_multi_word(term: str) -> bool:
        """Check whether a term contains whitespace or sentence punctuation.

        Args:
            term (str): Term to inspect.

        Returns:
            bool: True for phrases and sentences.
        """
        return MULTI_WORD_PATTERN.search(term.strip()) is not None

    @staticmethod
    def generate_hash_key(*parts: str) -> str:
        """Generate a SHA-256 hex digest over '|'-joined parts.

        Args:
            *parts (str): Key components, already normalized.

        Returns:
            str: Hex digest used as a storage key.
        """
        key_data: str = "|".join(parts)
        return hashlib.sha256(key_data.encode("utf-8")).hexdigest()

    @staticmethod
    def short_key(digest: str) -> str:
        """Shorten a digest for log output."""
        return digest[:KEY_DIGEST_PREFIX_LENGTH]
