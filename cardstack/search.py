"""
Search index over flashcard and tag text.

Matching ignores case, diacritics and character width. Korean syllables are
decomposed into their jamo before indexing and querying, so that typing
"ㄱ" finds "김". Unicode decomposition alone is not enough: the typed ㄱ
(U+3131, Hangul Compatibility Jamo) differs from the decomposed ᄀ (U+1100,
Hangul Jamo), so a prefix search would find nothing.
"""

import unicodedata
from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")

SYLLABLE_BASE = 0xAC00
SYLLABLE_LAST = 0xD7A3

INITIAL_JAMO = "ㄱㄲㄴㄷㄸㄹㅁㅂㅃㅅㅆㅇㅈㅉㅊㅋㅌㅍㅎ"
MEDIAL_JAMO = "ㅏㅐㅑㅒㅓㅔㅕㅖㅗㅘㅙㅚㅛㅜㅝㅞㅟㅠㅡㅢㅣ"
FINAL_JAMO = "ㄱㄲㄳㄴㄵㄶㄷㄹㄺㄻㄼㄽㄾㄿㅀㅁㅂㅄㅅㅆㅇㅈㅊㅋㅌㅍㅎ"


def is_korean_syllable(char: str) -> bool:
    return SYLLABLE_BASE <= ord(char) <= SYLLABLE_LAST


def decompose_syllable(char: str) -> str:
    """Convert a Korean syllable such as 김 to its jamo ㄱㅣㅁ."""
    x = ord(char) - SYLLABLE_BASE
    initial = INITIAL_JAMO[x // 28 // 21]
    medial = MEDIAL_JAMO[(x // 28) % 21]
    final_index = x % 28
    final = FINAL_JAMO[final_index - 1] if final_index else ""
    return initial + medial + final


def decompose_korean(text: str) -> str:
    """Replace Korean syllables in ``text`` by their jamo."""
    return "".join(decompose_syllable(char) if is_korean_syllable(char) else char for char in text)


def normalize_key(text: str) -> str:
    """Normalize text for case, diacritic and width insensitive matching."""
    decomposed = unicodedata.normalize("NFKD", decompose_korean(text))
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return stripped.casefold()


class SearchIndex(Generic[T]):
    """Values indexed by a normalized text key, for substring and prefix search."""

    def __init__(self, values: Iterable[T] = (), key: Callable[[T], str] = str):
        self._entries: list[tuple[str, T]] = [(normalize_key(key(value)), value) for value in values]

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def values(self) -> list[T]:
        return [value for _, value in self._entries]

    def including(self, text: str) -> Iterator[T]:
        """Yield the values whose key contains ``text``."""
        needle = normalize_key(text)
        return (value for key, value in self._entries if needle in key)

    def starting_with(self, text: str) -> Iterator[T]:
        """Yield the values whose key starts with ``text``."""
        prefix = normalize_key(text)
        return (value for key, value in self._entries if key.startswith(prefix))
