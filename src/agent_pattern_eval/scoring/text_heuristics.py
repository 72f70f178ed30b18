"""
Text heuristics shared by the pattern evaluators

Implements normalization, tokenization and the small counting helpers that the
rule-based metric scorers are built from.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable


def remove_markdown(text: str) -> str:
    """
    Remove markdown formatting

    - Remove code blocks (```...```)
    - Remove inline code (`...`)
    - Remove bullet point symbols (-, *, bullet)
    - Remove numbering from numbered lists (1. 2. etc.)

    Args:
        text: Text that may contain markdown

    Returns:
        Text with markdown removed
    """
    text = re.sub(r"```[\w]*\n?(.*?)```", r"\1", text, flags=re.DOTALL)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = re.sub(r"^[\s]*[-*•]\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^[\s]*\d+\.\s+", "", text, flags=re.MULTILINE)
    return text


def normalize_text(text: str) -> str:
    """
    Normalize text

    - Remove markdown formatting
    - Unicode normalization (NFKC)
    - Convert to lowercase
    - Collapse consecutive whitespace to a single space
    - Strip leading and trailing whitespace
    """
    text = remove_markdown(text)
    text = unicodedata.normalize("NFKC", text)
    text = text.lower()
    text = re.sub(r"\s+", " ", text)
    return text.strip()


# If whitespace splitting produces this many or more tokens, use them as-is;
# otherwise fall back to character-type-based tokenization.
_WHITESPACE_TOKEN_THRESHOLD = 3


def _tokenize(text: str) -> list[str]:
    """
    Split text into tokens

    Attempts tokenization by whitespace splitting, and falls back to grouping
    runs of the same character type when the token count is low (e.g., Japanese
    or Chinese translations, which carry no spaces).
    """
    whitespace_tokens = text.split()
    if len(whitespace_tokens) >= _WHITESPACE_TOKEN_THRESHOLD:
        return whitespace_tokens

    tokens = []
    current = []
    prev_type = None

    for char in text:
        if char == ' ':
            if current:
                tokens.append(''.join(current))
                current = []
                prev_type = None
            continue

        char_type = _char_type(char)
        if prev_type is not None and char_type != prev_type:
            if current:
                tokens.append(''.join(current))
            current = [char]
        else:
            current.append(char)
        prev_type = char_type

    if current:
        tokens.append(''.join(current))

    return tokens if tokens else whitespace_tokens


def _char_type(char: str) -> str:
    """Determine the character type"""
    cp = ord(char)
    if 0x3040 <= cp <= 0x309F:
        return 'hiragana'
    if 0x30A0 <= cp <= 0x30FF:
        return 'katakana'
    if 0x4E00 <= cp <= 0x9FFF:
        return 'kanji'
    if char.isascii() and char.isalnum():
        return 'ascii_alnum'
    if char.isascii():
        return 'ascii_symbol'
    return 'other'


def word_count(text: str) -> int:
    """Number of tokens in text (CJK aware)"""
    return len(_tokenize(normalize_text(text)))


_SENTENCE_SPLIT_RE = re.compile(r"[.!?。！？]+")


def sentences(text: str) -> list[str]:
    """Non-empty sentences, split on western and CJK terminal punctuation"""
    return [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]


def length_ratio(a: int, b: int) -> float:
    """Symmetric length ratio min(a/b, b/a); 0.0 when either side is empty"""
    if a <= 0 or b <= 0:
        return 0.0
    return min(a / b, b / a)


def keyword_coverage(keywords: Iterable[str], text: str) -> float:
    """
    Fraction of keywords that occur in text (case-insensitive substring match)

    Returns:
        0.0 to 1.0; 0.0 when there are no keywords
    """
    keywords = [k.lower() for k in keywords if k]
    if not keywords:
        return 0.0
    haystack = text.lower()
    return sum(1 for k in keywords if k in haystack) / len(keywords)


def significant_words(text: str, min_length: int = 4) -> list[str]:
    """Lowercased space-separated words of at least min_length characters"""
    return [w for w in text.lower().split(" ") if len(w) >= min_length]


def count_chars(text: str, chars: Iterable[str]) -> int:
    """Total occurrences of each character in chars"""
    return sum(text.count(c) for c in chars)
